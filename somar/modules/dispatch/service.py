# somar/modules/dispatch/service.py
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from somar.core.errors import ValidationError
from somar.shared.database.models import Order
from somar.shared.schemas.enums import (
    ACTIVE_COURIER_STATES, COARSE_PROJECTION, CoarseState, OrderState, OrderType,
    PaymentMethod, ReceiptStatus
)
from somar.shared.services.notifier import LoggingNotifier, ORDER_CREATED
from somar.shared.services.receipt_storage import ReceiptFile
from somar.modules.courier.cash_ledger import CashLedger
from somar.modules.courier.repository import CourierRepository
from somar.modules.courier.schemas import CourierSummary, CourierListResponse
from somar.modules.orders.repository import OrderRepository
from somar.modules.orders.schemas import (
    SplitConfig, OrderView, OrderResponse, OrderListResponse, money
)
from somar.modules.orders.split_calculator import compute_split, parse_amount
from somar.modules.orders.state_machine import OrderStateMachine
from .repository import DispatchRepository
from .schemas import OrderCreateRequest, ParsedOrder, SplitPreviewRequest, SplitPreviewResponse

logger = logging.getLogger(__name__)

SEQUENCE_RETRIES = 3

DEFAULT_DASHBOARD_STATES = (CoarseState.PENDING, CoarseState.ASSIGNED, CoarseState.EN_ROUTE)


class DispatchService:
    """
    Creación de pedidos y vistas de despacho.

    La cancelación y la asignación se delegan a OrderStateMachine; este
    servicio no agrega reglas propias sobre esas transiciones.
    """

    def __init__(self, db: Session, config: SplitConfig, receipt_storage=None, notifier=None):
        self.db = db
        self.config = config
        self.notifier = notifier or LoggingNotifier()
        self.repository = DispatchRepository(db)
        self.orders = OrderRepository(db)
        self.couriers = CourierRepository(db)
        self.ledger = CashLedger(db)
        self.state_machine = OrderStateMachine(db, config, receipt_storage, self.notifier)

    # ==================== CREACIÓN ====================

    async def create_order(self, payload: OrderCreateRequest) -> OrderResponse:
        """
        Crear pedido: validar, calcular montos y numerar.

        Si viene rider, la asignación ocurre en la misma transacción; si la
        asignación es rechazada no se crea nada.
        """
        parsed = self.parse_order_input(payload)
        split = compute_split(
            parsed.shipping_fee, parsed.purchase_total, parsed.tip, parsed.payment_method, self.config
        )

        for attempt in range(SEQUENCE_RETRIES):
            try:
                order = self.orders.add(Order(
                    sequence=self.orders.next_sequence(),
                    created_at=datetime.now(),
                    order_type=parsed.order_type.value,
                    payment_method=parsed.payment_method.value,
                    customer_id=parsed.customer_id,
                    customer_name=parsed.customer_name,
                    customer_phone=parsed.customer_phone,
                    address_id=parsed.address_id,
                    delivery_address=parsed.delivery_address,
                    merchant_id=parsed.merchant_id,
                    shipping_fee=parsed.shipping_fee,
                    purchase_total=parsed.purchase_total,
                    estimated_purchase_total=parsed.purchase_total,
                    tip=parsed.tip,
                    rider_earning=split.rider_earning,
                    platform_margin=split.platform_margin,
                    amount_due_from_customer=split.amount_due_from_customer,
                    state=OrderState.UNASSIGNED.value,
                    receipt_status=ReceiptStatus.NONE.value,
                    delivery_note=parsed.delivery_note
                ))
                order_id = order.id
                if parsed.courier_id is not None:
                    self.state_machine.assign(order_id, parsed.courier_id, commit=False)
                self.db.commit()
                break
            except IntegrityError:
                # Dos pedidos tomaron el mismo consecutivo; se reintenta
                self.db.rollback()
                if attempt == SEQUENCE_RETRIES - 1:
                    raise
                logger.warning("⚠️ Consecutivo de pedido en uso, reintentando")
            except Exception:
                self.db.rollback()
                raise

        order = self.orders.get(order_id)
        logger.info(f"📦 Pedido creado {order.order_number} ({order.order_type}, {order.payment_method})")

        self.notifier.publish(ORDER_CREATED, {
            "order_id": order.id,
            "order_number": order.order_number,
            "state": order.state,
        })
        if parsed.courier_id is not None:
            self.state_machine.publish_update(order)

        return OrderResponse(
            success=True,
            message=f"Pedido {order.order_number} creado exitosamente",
            order=OrderView.from_order(order),
            next_step="Esperando rider" if order.state == OrderState.UNASSIGNED else "Rider en camino al comercio"
        )

    def parse_order_input(self, payload: OrderCreateRequest) -> ParsedOrder:
        """Coerción y validación de borde; acumula todos los errores"""
        errors: List[Dict[str, str]] = []

        order_type = self._parse_enum(OrderType, payload.order_type, "order_type", errors)
        payment_method = self._parse_enum(PaymentMethod, payload.payment_method, "payment_method", errors)

        customer_name = (payload.customer_name or "").strip()
        customer_phone = (payload.customer_phone or "").strip() or None
        if payload.customer_id is not None:
            customer = self.repository.get_customer(payload.customer_id)
            if customer is None:
                errors.append({"field": "customer_id", "message": "Cliente no encontrado"})
            else:
                customer_name = customer_name or customer.full_name
                customer_phone = customer_phone or customer.phone
        elif not customer_name:
            errors.append({"field": "customer_name", "message": "Nombre del cliente o cliente guardado requerido"})

        delivery_address = (payload.delivery_address or "").strip()
        if payload.address_id is not None:
            address = self.repository.get_address(payload.address_id)
            if address is None:
                errors.append({"field": "address_id", "message": "Dirección no encontrada"})
            elif payload.customer_id is not None and address.customer_id != payload.customer_id:
                errors.append({"field": "address_id", "message": "La dirección no pertenece al cliente"})
            else:
                delivery_address = delivery_address or address.address
        elif not delivery_address:
            errors.append({"field": "delivery_address", "message": "Dirección de entrega requerida"})

        if payload.merchant_id is not None:
            merchant = self.repository.get_merchant(payload.merchant_id)
            if merchant is None or not merchant.is_active:
                errors.append({"field": "merchant_id", "message": "Comercio no encontrado o inactivo"})

        shipping_fee = self._parse_amount(payload.shipping_fee, "shipping_fee", errors, required=True)
        purchase_total = self._parse_amount(payload.purchase_total, "purchase_total", errors)
        tip = self._parse_amount(payload.tip, "tip", errors)

        if errors:
            logger.warning(f"⚠️ Pedido rechazado: {[e['field'] for e in errors]}")
            raise ValidationError(errors)

        if order_type == OrderType.PICKUP_ONLY:
            purchase_total = Decimal("0")

        return ParsedOrder(
            order_type=order_type,
            payment_method=payment_method,
            customer_id=payload.customer_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            address_id=payload.address_id,
            delivery_address=delivery_address,
            merchant_id=payload.merchant_id,
            courier_id=payload.courier_id,
            shipping_fee=shipping_fee,
            purchase_total=purchase_total,
            tip=tip,
            delivery_note=(payload.delivery_note or "").strip() or None
        )

    @staticmethod
    def _parse_enum(enum_cls, value: Optional[str], field: str, errors: List[Dict[str, str]]):
        if value is None or not str(value).strip():
            errors.append({"field": field, "message": "Campo requerido"})
            return None
        try:
            return enum_cls(str(value).strip())
        except ValueError:
            allowed = ", ".join(e.value for e in enum_cls)
            errors.append({"field": field, "message": f"Valor inválido, opciones: {allowed}"})
            return None

    @staticmethod
    def _parse_amount(value: Any, field: str, errors: List[Dict[str, str]], required: bool = False) -> Decimal:
        try:
            amount = parse_amount(value)
        except (InvalidOperation, ValueError):
            errors.append({"field": field, "message": "Monto inválido"})
            return Decimal("0")
        if amount is None:
            if required:
                errors.append({"field": field, "message": "Campo requerido"})
            return Decimal("0")
        if amount < 0:
            errors.append({"field": field, "message": "El monto no puede ser negativo"})
            return Decimal("0")
        return amount

    # ==================== CONSULTAS ====================

    async def list_assignable_orders(self) -> OrderListResponse:
        orders = self.orders.list_by_states([OrderState.UNASSIGNED])
        return self._list("Pedidos sin rider", orders)

    async def list_active_for_courier(self, courier_id: int) -> OrderListResponse:
        self.couriers.get(courier_id)
        orders = self.orders.list_for_courier(courier_id, ACTIVE_COURIER_STATES)
        return self._list(f"Pedidos activos del rider {courier_id}", orders)

    async def list_dashboard_orders(self, coarse_states: Optional[Iterable[CoarseState]] = None) -> OrderListResponse:
        """Pedidos cuyo estado resumido está en el filtro (por defecto, los activos)"""
        wanted = set(CoarseState(s) for s in (coarse_states or DEFAULT_DASHBOARD_STATES))
        states = [state for state, coarse in COARSE_PROJECTION.items() if coarse in wanted]
        orders = self.orders.list_by_states(states)
        return self._list("Pedidos del tablero", orders)

    async def get_order(self, order_id: int) -> OrderResponse:
        order = self.orders.get(order_id)
        return OrderResponse(success=True, message=f"Pedido {order.order_number}", order=OrderView.from_order(order))

    async def list_available_couriers(self) -> CourierListResponse:
        couriers = self.couriers.list_active()
        summaries = [
            CourierSummary(
                id=c.id,
                full_name=c.full_name,
                phone=c.phone,
                cash_on_hand=money(c.cash_on_hand),
                is_verified=c.is_verified,
                eligible_for_cash_orders=self.ledger.is_eligible_for_cash_order(c, self.config)
            )
            for c in couriers
        ]
        return CourierListResponse(
            success=True,
            message="Riders activos",
            couriers=summaries,
            count=len(summaries)
        )

    async def preview_split(self, payload: SplitPreviewRequest) -> SplitPreviewResponse:
        """Recalcular montos del borrador en vivo; nunca falla"""
        split = compute_split(
            payload.shipping_fee, payload.purchase_total, payload.tip, payload.payment_method, self.config
        )
        return SplitPreviewResponse(success=True, message="Cálculo de montos", split=split.rounded())

    # ==================== TRANSICIONES DELEGADAS ====================

    async def assign_order(self, order_id: int, courier_id: int) -> OrderResponse:
        order = self.state_machine.assign(order_id, courier_id)
        return OrderResponse(
            success=True,
            message=f"Pedido {order.order_number} asignado",
            order=OrderView.from_order(order)
        )

    async def cancel_order(self, order_id: int, reason: Optional[str] = None) -> OrderResponse:
        order = self.state_machine.cancel(order_id, reason)
        return OrderResponse(
            success=True,
            message=f"Pedido {order.order_number} cancelado",
            order=OrderView.from_order(order)
        )

    async def validate_transfer_receipt(self, order_id: int, receipt: Optional[ReceiptFile] = None) -> OrderResponse:
        order = self.state_machine.validate_transfer_receipt(order_id, receipt)
        return OrderResponse(
            success=True,
            message="Transferencia validada",
            order=OrderView.from_order(order),
            next_step="El rider puede finalizar la entrega"
        )

    def _list(self, message: str, orders) -> OrderListResponse:
        return OrderListResponse(
            success=True,
            message=message,
            orders=[OrderView.from_order(o) for o in orders],
            count=len(orders)
        )
