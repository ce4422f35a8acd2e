# somar/modules/orders/schemas.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime

from somar.shared.schemas.common import BaseResponse
from somar.shared.schemas.enums import (
    OrderType, PaymentMethod, OrderState, CoarseState, ReceiptStatus, coarse_state_of
)

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Redondeo de presentación a 2 decimales"""
    return Decimal(value if value is not None else 0).quantize(CENT, rounding=ROUND_HALF_UP)


class SplitConfig(BaseModel):
    """Valores de GlobalConfig que usan el cálculo de montos y la guaca"""
    model_config = ConfigDict(frozen=True)

    rider_share_percent: Decimal = Field(..., ge=0, le=100)
    platform_share_percent: Decimal = Field(..., ge=0, le=100)
    cash_custody_limit: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_shares(self):
        if self.rider_share_percent + self.platform_share_percent != Decimal("100"):
            raise ValueError("Los porcentajes rider/plataforma deben sumar 100")
        return self


class SplitResult(BaseModel):
    """Montos calculados de un pedido, sin redondear"""
    model_config = ConfigDict(frozen=True)

    rider_earning: Decimal
    platform_margin: Decimal
    amount_due_from_customer: Decimal

    def rounded(self) -> "SplitPreview":
        return SplitPreview(
            rider_earning=money(self.rider_earning),
            platform_margin=money(self.platform_margin),
            amount_due_from_customer=money(self.amount_due_from_customer),
        )


class SplitPreview(BaseModel):
    rider_earning: Decimal
    platform_margin: Decimal
    amount_due_from_customer: Decimal


class OrderView(BaseModel):
    """Representación de un pedido para dashboard y app del rider"""
    id: int
    order_number: str
    order_type: OrderType
    payment_method: PaymentMethod
    state: OrderState
    coarse_state: CoarseState

    customer_id: Optional[int] = None
    customer_name: str
    customer_phone: Optional[str] = None
    address_id: Optional[int] = None
    delivery_address: str
    merchant_id: Optional[int] = None
    merchant_name: Optional[str] = None
    courier_id: Optional[int] = None
    courier_name: Optional[str] = None

    shipping_fee: Decimal
    purchase_total: Decimal
    estimated_purchase_total: Decimal
    tip: Decimal
    rider_earning: Decimal
    platform_margin: Decimal
    amount_due_from_customer: Decimal

    receipt_status: ReceiptStatus
    receipt_url: Optional[str] = None
    purchase_receipt_url: Optional[str] = None
    delivery_note: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    at_merchant_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    en_route_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    receipt_submitted_at: Optional[datetime] = None
    receipt_validated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderView":
        return cls(
            id=order.id,
            order_number=order.order_number,
            order_type=order.order_type,
            payment_method=order.payment_method,
            state=order.state,
            coarse_state=coarse_state_of(order.state),
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            address_id=order.address_id,
            delivery_address=order.delivery_address,
            merchant_id=order.merchant_id,
            merchant_name=order.merchant.name if order.merchant else None,
            courier_id=order.courier_id,
            courier_name=order.courier.full_name if order.courier else None,
            shipping_fee=money(order.shipping_fee),
            purchase_total=money(order.purchase_total),
            estimated_purchase_total=money(order.estimated_purchase_total),
            tip=money(order.tip),
            rider_earning=money(order.rider_earning),
            platform_margin=money(order.platform_margin),
            amount_due_from_customer=money(order.amount_due_from_customer),
            receipt_status=order.receipt_status,
            receipt_url=order.receipt_url,
            purchase_receipt_url=order.purchase_receipt_url,
            delivery_note=order.delivery_note,
            cancel_reason=order.cancel_reason,
            created_at=order.created_at,
            assigned_at=order.assigned_at,
            at_merchant_at=order.at_merchant_at,
            picked_up_at=order.picked_up_at,
            en_route_at=order.en_route_at,
            arrived_at=order.arrived_at,
            delivered_at=order.delivered_at,
            canceled_at=order.canceled_at,
            receipt_submitted_at=order.receipt_submitted_at,
            receipt_validated_at=order.receipt_validated_at,
        )


class OrderResponse(BaseResponse):
    order: OrderView
    next_step: Optional[str] = None


class OrderListResponse(BaseResponse):
    orders: List[OrderView]
    count: int
