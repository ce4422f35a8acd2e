# somar/shared/schemas/enums.py
from enum import Enum


class OrderType(str, Enum):
    """Tipo de pedido: con compra en comercio o solo recolección"""
    PURCHASE = "purchase"
    PICKUP_ONLY = "pickup_only"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"


class OrderState(str, Enum):
    """Estados canónicos del pedido (flujo del rider)"""
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    AT_MERCHANT = "at_merchant"
    PICKED_UP = "picked_up"
    EN_ROUTE = "en_route"
    ARRIVED_AT_CUSTOMER = "arrived_at_customer"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class CoarseState(str, Enum):
    """Vista resumida que usa el dashboard de despacho"""
    PENDING = "pending"
    ASSIGNED = "assigned"
    EN_ROUTE = "en_route"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class ReceiptStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    VALIDATED = "validated"


TERMINAL_STATES = frozenset({OrderState.DELIVERED, OrderState.CANCELED})

ACTIVE_COURIER_STATES = (
    OrderState.ASSIGNED,
    OrderState.AT_MERCHANT,
    OrderState.PICKED_UP,
    OrderState.EN_ROUTE,
    OrderState.ARRIVED_AT_CUSTOMER,
)

COARSE_PROJECTION = {
    OrderState.UNASSIGNED: CoarseState.PENDING,
    OrderState.ASSIGNED: CoarseState.ASSIGNED,
    OrderState.AT_MERCHANT: CoarseState.ASSIGNED,
    OrderState.PICKED_UP: CoarseState.ASSIGNED,
    OrderState.EN_ROUTE: CoarseState.EN_ROUTE,
    OrderState.ARRIVED_AT_CUSTOMER: CoarseState.EN_ROUTE,
    OrderState.DELIVERED: CoarseState.DELIVERED,
    OrderState.CANCELED: CoarseState.CANCELED,
}


def coarse_state_of(state) -> CoarseState:
    return COARSE_PROJECTION[OrderState(state)]
