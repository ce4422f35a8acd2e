# somar/modules/orders/state_machine.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging

from somar.core.errors import (
    ValidationError, InvalidTransition, AlreadyAssigned, MissingProofOfPurchase,
    TransferNotConfirmed, CourierUnavailable, NotOrderOwner, ReceiptStorageError
)
from somar.shared.database.models import Order
from somar.shared.schemas.enums import (
    OrderState, OrderType, PaymentMethod, ReceiptStatus, TERMINAL_STATES, coarse_state_of
)
from somar.shared.services.notifier import LoggingNotifier, ORDER_UPDATED
from somar.shared.services.receipt_storage import ReceiptFile
from somar.modules.courier.cash_ledger import CashLedger
from .repository import OrderRepository
from .schemas import SplitConfig
from .split_calculator import compute_split, to_amount

logger = logging.getLogger(__name__)

# transición -> (estado requerido, estado destino, timestamp)
SIMPLE_TRANSITIONS = {
    "reach_merchant": (OrderState.ASSIGNED, OrderState.AT_MERCHANT, "at_merchant_at"),
    "depart": (OrderState.PICKED_UP, OrderState.EN_ROUTE, "en_route_at"),
    "reach_customer": (OrderState.EN_ROUTE, OrderState.ARRIVED_AT_CUSTOMER, "arrived_at"),
}

CANCELABLE_STATES = frozenset({OrderState.UNASSIGNED, OrderState.ASSIGNED, OrderState.AT_MERCHANT})

# Única bifurcación por tipo de pedido: el paso en comercio -> recogido
MERCHANT_STAGE = {
    OrderType.PURCHASE: "confirm_purchase",
    OrderType.PICKUP_ONLY: "confirm_pickup",
}


class OrderStateMachine:
    """
    Transiciones del pedido con sus efectos (timestamps, montos, guaca).

    Cada transición es una escritura condicional sobre el estado leído: si
    otro proceso movió el pedido antes, no se escribe nada y se lanza
    InvalidTransition (o AlreadyAssigned en la carrera de asignación).
    Tras cada commit se publica un evento order-updated.
    """

    def __init__(
        self,
        db: Session,
        config: SplitConfig,
        receipt_storage=None,
        notifier=None
    ):
        self.db = db
        self.config = config
        self.receipt_storage = receipt_storage
        self.notifier = notifier or LoggingNotifier()
        self.repository = OrderRepository(db)
        self.ledger = CashLedger(db)

    # ==================== ASIGNACIÓN ====================

    def assign(self, order_id: int, courier_id: int, commit: bool = True) -> Order:
        """
        unassigned -> assigned

        Con commit=False la asignación queda dentro de la transacción del
        llamador (creación de pedido con rider incluido).
        """
        order = self.repository.get(order_id)
        self._ensure_assignable(order)

        try:
            courier = self.ledger.lock_courier(courier_id)
            if not courier.is_active:
                raise CourierUnavailable(
                    f"El rider {courier_id} no está activo", {"courier_id": courier_id}
                )
            if order.payment_method == PaymentMethod.CASH:
                self.ledger.ensure_can_take_cash_order(courier, self.config)

            written = self.repository.compare_and_set(
                order.id,
                OrderState.UNASSIGNED.value,
                {
                    "state": OrderState.ASSIGNED.value,
                    "courier_id": courier_id,
                    "assigned_at": datetime.now(),
                },
                Order.courier_id.is_(None)
            )
            if written != 1:
                self.db.rollback()
                self._ensure_assignable(self.repository.get(order_id))
                raise AlreadyAssigned(order_id, OrderState.ASSIGNED.value)
        except Exception:
            if commit:
                self.db.rollback()
            raise

        if not commit:
            self.db.flush()
            return order

        return self._finish(order.id, "assign")

    def _ensure_assignable(self, order: Order) -> None:
        if order.state == OrderState.UNASSIGNED:
            return
        if order.state == OrderState.CANCELED:
            raise InvalidTransition(order.id, order.state, "assign")
        logger.warning(f"⚠️ Pedido {order.order_number} ya asignado al rider {order.courier_id}")
        raise AlreadyAssigned(order.id, order.state)

    # ==================== FLUJO DEL RIDER ====================

    def reach_merchant(self, order_id: int, courier_id: Optional[int] = None) -> Order:
        return self._simple(order_id, "reach_merchant", courier_id)

    def depart(self, order_id: int, courier_id: Optional[int] = None) -> Order:
        return self._simple(order_id, "depart", courier_id)

    def reach_customer(self, order_id: int, courier_id: Optional[int] = None) -> Order:
        return self._simple(order_id, "reach_customer", courier_id)

    def confirm_purchase(
        self,
        order_id: int,
        total: Any,
        receipt_file: Optional[ReceiptFile],
        courier_id: Optional[int] = None
    ) -> Order:
        """
        at_merchant -> picked_up (solo pedidos de compra)

        Exige monto de factura > 0 y foto del comprobante. El monto real
        reemplaza al estimado y se recalcula lo que se cobra al cliente.
        """
        order = self._load(order_id, "confirm_purchase", {OrderState.AT_MERCHANT}, courier_id)
        self._ensure_merchant_stage(order, "confirm_purchase")

        purchase_total = to_amount(total)
        if purchase_total <= 0:
            raise MissingProofOfPurchase(
                "Debes ingresar el monto de la factura", {"order_id": order.id, "field": "total"}
            )
        if receipt_file is None or receipt_file.is_empty:
            raise MissingProofOfPurchase(
                "Debes subir la foto de la factura", {"order_id": order.id, "field": "receipt"}
            )

        receipt_url = self._store_receipt(order.id, receipt_file)

        # Solo cambia el cobro; ganancia y margen dependen de envío y propina
        split = compute_split(
            order.shipping_fee, purchase_total, order.tip, order.payment_method, self.config
        )
        return self._transition(order, "confirm_purchase", {
            "state": OrderState.PICKED_UP.value,
            "picked_up_at": datetime.now(),
            "purchase_total": purchase_total,
            "amount_due_from_customer": split.amount_due_from_customer,
            "purchase_receipt_url": receipt_url,
        })

    def confirm_pickup(self, order_id: int, courier_id: Optional[int] = None) -> Order:
        """at_merchant -> picked_up (solo pedidos de recolección)"""
        order = self._load(order_id, "confirm_pickup", {OrderState.AT_MERCHANT}, courier_id)
        self._ensure_merchant_stage(order, "confirm_pickup")

        return self._transition(order, "confirm_pickup", {
            "state": OrderState.PICKED_UP.value,
            "picked_up_at": datetime.now(),
        })

    def finalize(self, order_id: int, courier_id: Optional[int] = None) -> Order:
        """
        arrived_at_customer -> delivered

        Transferencias: requiere comprobante validado. Efectivo: el cobro se
        acredita a la guaca del rider en la misma transacción.
        """
        order = self._load(order_id, "finalize", {OrderState.ARRIVED_AT_CUSTOMER}, courier_id)

        conditions = []
        is_cash = order.payment_method == PaymentMethod.CASH
        if not is_cash:
            if order.receipt_status != ReceiptStatus.VALIDATED:
                logger.info(f"⏳ Pedido {order.order_number} espera validación de transferencia")
                raise TransferNotConfirmed(order.id, order.receipt_status)
            conditions.append(Order.receipt_status == ReceiptStatus.VALIDATED.value)

        def credit():
            if is_cash:
                self.ledger.credit_delivery(order.courier_id, Decimal(order.amount_due_from_customer))

        return self._transition(order, "finalize", {
            "state": OrderState.DELIVERED.value,
            "delivered_at": datetime.now(),
        }, *conditions, after_write=credit)

    # ==================== CANCELACIÓN ====================

    def cancel(self, order_id: int, reason: Optional[str] = None) -> Order:
        """{unassigned, assigned, at_merchant} -> canceled, liberando al rider"""
        order = self._load(order_id, "cancel", CANCELABLE_STATES)

        return self._transition(order, "cancel", {
            "state": OrderState.CANCELED.value,
            "canceled_at": datetime.now(),
            "courier_id": None,
            "cancel_reason": reason,
        })

    # ==================== COMPROBANTE DE TRANSFERENCIA ====================

    def submit_transfer_receipt(
        self,
        order_id: int,
        receipt_file: Optional[ReceiptFile],
        courier_id: Optional[int] = None
    ) -> Order:
        """Registrar comprobante de transferencia (queda pendiente de validación)"""
        order = self._load_for_receipt(order_id, "submit_transfer_receipt", courier_id)

        if receipt_file is None or receipt_file.is_empty:
            raise ValidationError([{"field": "receipt", "message": "El comprobante es obligatorio"}])

        receipt_url = self._store_receipt(order.id, receipt_file)
        return self._receipt_change(order, "submit_transfer_receipt", ReceiptStatus.PENDING, {
            "receipt_url": receipt_url,
            "receipt_status": ReceiptStatus.PENDING.value,
            "receipt_submitted_at": datetime.now(),
        })

    def validate_transfer_receipt(
        self,
        order_id: int,
        receipt_file: Optional[ReceiptFile] = None
    ) -> Order:
        """
        Validar la transferencia desde despacho.

        Si se adjunta archivo se guarda primero (subir y validar en un paso);
        si no, se valida el comprobante ya enviado.
        """
        order = self._load_for_receipt(order_id, "validate_transfer_receipt")

        now = datetime.now()
        values = {
            "receipt_status": ReceiptStatus.VALIDATED.value,
            "receipt_validated_at": now,
        }
        if receipt_file is not None and not receipt_file.is_empty:
            values["receipt_url"] = self._store_receipt(order.id, receipt_file)
            values["receipt_submitted_at"] = now
        elif not order.receipt_url:
            raise ValidationError([{"field": "receipt", "message": "No hay comprobante para validar"}])

        return self._receipt_change(order, "validate_transfer_receipt", ReceiptStatus.VALIDATED, values)

    def _load_for_receipt(self, order_id: int, transition: str, courier_id: Optional[int] = None) -> Order:
        order = self.repository.get(order_id)

        if order.payment_method != PaymentMethod.BANK_TRANSFER:
            raise ValidationError([{
                "field": "payment_method",
                "message": "Solo los pedidos por transferencia llevan comprobante de pago"
            }])
        if OrderState(order.state) in TERMINAL_STATES:
            raise InvalidTransition(order.id, order.state, transition)
        if courier_id is not None and order.courier_id != courier_id:
            raise NotOrderOwner(order.id, courier_id)
        if order.receipt_status == ReceiptStatus.VALIDATED:
            raise InvalidTransition(order.id, f"receipt:{order.receipt_status}", transition)
        return order

    def _receipt_change(
        self,
        order: Order,
        transition: str,
        new_status: ReceiptStatus,
        values: Dict[str, Any]
    ) -> Order:
        previous_status = order.receipt_status

        def record():
            self.repository.add_receipt_event(
                order.id, previous_status, new_status.value, values.get("receipt_url", order.receipt_url)
            )

        # El comprobante avanza en paralelo al recorrido: solo importa que
        # el pedido siga abierto, no en qué estado está
        return self._transition(
            order, transition, values,
            Order.receipt_status == previous_status,
            Order.state.notin_([s.value for s in TERMINAL_STATES]),
            after_write=record,
            guard_state=False
        )

    # ==================== INTERNOS ====================

    def _simple(self, order_id: int, transition: str, courier_id: Optional[int]) -> Order:
        required, target, stamp = SIMPLE_TRANSITIONS[transition]
        order = self._load(order_id, transition, {required}, courier_id)
        return self._transition(order, transition, {
            "state": target.value,
            stamp: datetime.now(),
        })

    def _load(self, order_id: int, transition: str, allowed, courier_id: Optional[int] = None) -> Order:
        order = self.repository.get(order_id)

        if OrderState(order.state) not in allowed:
            logger.warning(f"⚠️ Transición '{transition}' inválida para {order.order_number} en '{order.state}'")
            raise InvalidTransition(order.id, order.state, transition)
        if courier_id is not None and order.courier_id != courier_id:
            raise NotOrderOwner(order.id, courier_id)
        return order

    def _ensure_merchant_stage(self, order: Order, transition: str) -> None:
        if MERCHANT_STAGE[OrderType(order.order_type)] != transition:
            raise InvalidTransition(order.id, order.state, transition)

    def _store_receipt(self, order_id: int, receipt_file: ReceiptFile) -> str:
        if self.receipt_storage is None:
            raise ReceiptStorageError("El almacenamiento de comprobantes no está configurado")
        return self.receipt_storage.store(order_id, receipt_file)

    def _transition(
        self,
        order: Order,
        transition: str,
        values: Dict[str, Any],
        *conditions,
        after_write=None,
        guard_state: bool = True
    ) -> Order:
        """Escritura condicional + efectos en una sola transacción"""
        try:
            if guard_state:
                written = self.repository.compare_and_set(order.id, order.state, values, *conditions)
            else:
                written = self.repository.update_where(order.id, values, *conditions)
            if written != 1:
                self.db.rollback()
                current = self.repository.get(order.id)
                if guard_state or OrderState(current.state) in TERMINAL_STATES:
                    raise InvalidTransition(order.id, current.state, transition)
                raise InvalidTransition(order.id, f"receipt:{current.receipt_status}", transition)

            if after_write is not None:
                after_write()
        except Exception:
            self.db.rollback()
            raise

        return self._finish(order.id, transition)

    def _finish(self, order_id: int, transition: str) -> Order:
        self.db.commit()
        order = self.repository.get(order_id)

        logger.info(f"✅ {order.order_number}: {transition} -> {order.state}")
        self.publish_update(order)
        return order

    def publish_update(self, order: Order) -> None:
        self.notifier.publish(ORDER_UPDATED, {
            "order_id": order.id,
            "order_number": order.order_number,
            "state": order.state,
            "coarse_state": coarse_state_of(order.state).value,
            "receipt_status": order.receipt_status,
        })
