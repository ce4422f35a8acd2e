# somar/modules/courier/service.py
from typing import Any, Optional
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session

from somar.shared.schemas.enums import ACTIVE_COURIER_STATES, OrderState, PaymentMethod
from somar.shared.services.receipt_storage import ReceiptFile
from somar.modules.orders.repository import OrderRepository
from somar.modules.orders.schemas import SplitConfig, OrderView, OrderResponse, money
from somar.modules.orders.state_machine import OrderStateMachine
from .cash_ledger import CashLedger
from .schemas import (
    CourierProfile, CustodyStatus, CourierLevel, CourierStats, AvailableOrder,
    ProfileResponse, AvailableOrdersResponse, MyOrdersResponse, CourierStatsResponse
)

# (pedidos mínimos, nivel, siguiente meta)
LEVELS = (
    (500, "Oro", 1000),
    (200, "Plata", 500),
    (50, "Bronce", 200),
    (0, "Novato", 50),
)

NEXT_STEPS = {
    OrderState.ASSIGNED: "Dirigirse al comercio",
    OrderState.AT_MERCHANT: "Confirmar compra o recolección",
    OrderState.PICKED_UP: "Salir hacia el cliente",
    OrderState.EN_ROUTE: "Marcar llegada donde el cliente",
    OrderState.ARRIVED_AT_CUSTOMER: "Cobrar y finalizar la entrega",
    OrderState.DELIVERED: "Entrega completada",
}


def courier_level(total_orders: int) -> CourierLevel:
    for minimum, name, next_target in LEVELS:
        if total_orders >= minimum:
            return CourierLevel(level=name, next_target=next_target)
    return CourierLevel(level="Novato", next_target=50)


class CourierService:
    def __init__(self, db: Session, config: SplitConfig, receipt_storage=None, notifier=None):
        self.db = db
        self.config = config
        self.orders = OrderRepository(db)
        self.ledger = CashLedger(db)
        self.state_machine = OrderStateMachine(db, config, receipt_storage, notifier)

    async def get_profile(self, courier) -> ProfileResponse:
        return ProfileResponse(
            success=True,
            message=f"Hola, {courier.full_name}",
            courier=CourierProfile.from_courier(courier),
            custody=self._custody(courier)
        )

    async def get_available_orders(self, courier) -> AvailableOrdersResponse:
        """Pedidos sin rider; los de efectivo no se pueden tomar con la guaca llena"""
        eligible_for_cash = self.ledger.is_eligible_for_cash_order(courier, self.config)
        orders = self.orders.list_by_states([OrderState.UNASSIGNED])

        available = []
        for order in orders:
            view = OrderView.from_order(order)
            can_accept = courier.is_active and (
                eligible_for_cash or order.payment_method != PaymentMethod.CASH
            )
            available.append(AvailableOrder(**view.model_dump(), can_accept=can_accept))

        return AvailableOrdersResponse(
            success=True,
            message="Pedidos disponibles",
            available_orders=available,
            count=len(available),
            custody=self._custody(courier)
        )

    async def get_my_orders(self, courier) -> MyOrdersResponse:
        orders = self.orders.list_for_courier(courier.id, ACTIVE_COURIER_STATES)
        return MyOrdersResponse(
            success=True,
            message="Pedidos asignados",
            my_orders=[OrderView.from_order(o) for o in orders],
            count=len(orders)
        )

    async def get_custody(self, courier) -> CustodyStatus:
        return self._custody(courier)

    async def get_stats(self, courier) -> CourierStatsResponse:
        """Ganancias acumuladas; rider_earning ya incluye la propina"""
        delivered = self.orders.list_delivered_for_courier(courier.id)

        total_orders = len(delivered)
        total_earnings = sum((Decimal(o.rider_earning) for o in delivered), Decimal("0"))
        today = date.today()
        orders_today = len([o for o in delivered if o.delivered_at and o.delivered_at.date() == today])
        average = total_earnings / total_orders if total_orders > 0 else Decimal("0")

        return CourierStatsResponse(
            success=True,
            message=f"Estadísticas al {today.isoformat()}",
            courier_id=courier.id,
            stats=CourierStats(
                total_earnings=money(total_earnings),
                total_orders=total_orders,
                orders_today=orders_today,
                average_earning=money(average),
                level=courier_level(total_orders)
            )
        )

    # ==================== TRANSICIONES ====================

    async def accept_order(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.assign(order_id, courier.id)
        return self._response("Pedido aceptado", order)

    async def reach_merchant(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.reach_merchant(order_id, courier.id)
        return self._response("Llegada al comercio registrada", order)

    async def confirm_purchase(
        self, order_id: int, total: Any, receipt: Optional[ReceiptFile], courier
    ) -> OrderResponse:
        order = self.state_machine.confirm_purchase(order_id, total, receipt, courier.id)
        return self._response("Compra confirmada", order)

    async def confirm_pickup(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.confirm_pickup(order_id, courier.id)
        return self._response("Recolección confirmada", order)

    async def depart(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.depart(order_id, courier.id)
        return self._response("En camino al cliente", order)

    async def reach_customer(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.reach_customer(order_id, courier.id)
        return self._response("Llegada donde el cliente registrada", order)

    async def finalize(self, order_id: int, courier) -> OrderResponse:
        order = self.state_machine.finalize(order_id, courier.id)
        return self._response("Entrega finalizada", order)

    async def submit_transfer_receipt(self, order_id: int, receipt: Optional[ReceiptFile], courier) -> OrderResponse:
        order = self.state_machine.submit_transfer_receipt(order_id, receipt, courier.id)
        return self._response("Comprobante enviado, pendiente de validación", order)

    def _custody(self, courier) -> CustodyStatus:
        return CustodyStatus(**self.ledger.custody_status(courier, self.config))

    def _response(self, message: str, order) -> OrderResponse:
        return OrderResponse(
            success=True,
            message=message,
            order=OrderView.from_order(order),
            next_step=NEXT_STEPS.get(OrderState(order.state))
        )
