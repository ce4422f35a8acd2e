# somar/modules/courier/schemas.py
from pydantic import BaseModel
from typing import Optional, List
from decimal import Decimal

from somar.shared.schemas.common import BaseResponse
from somar.modules.orders.schemas import OrderView, money

class CourierProfile(BaseModel):
    id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    cash_on_hand: Decimal
    is_active: bool
    is_verified: bool

    @classmethod
    def from_courier(cls, courier) -> "CourierProfile":
        return cls(
            id=courier.id,
            full_name=courier.full_name,
            email=courier.email,
            phone=courier.phone,
            cash_on_hand=money(courier.cash_on_hand),
            is_active=courier.is_active,
            is_verified=courier.is_verified
        )

class CustodyStatus(BaseModel):
    courier_id: int
    cash_on_hand: Decimal
    cash_custody_limit: Decimal
    usage_percent: Decimal
    eligible_for_cash_orders: bool
    message: str

class CourierLevel(BaseModel):
    level: str
    next_target: Optional[int] = None

class CourierStats(BaseModel):
    total_earnings: Decimal
    total_orders: int
    orders_today: int
    average_earning: Decimal
    level: CourierLevel

class AvailableOrder(OrderView):
    can_accept: bool = True

class ProfileResponse(BaseResponse):
    courier: CourierProfile
    custody: CustodyStatus

class AvailableOrdersResponse(BaseResponse):
    available_orders: List[AvailableOrder]
    count: int
    custody: CustodyStatus

class MyOrdersResponse(BaseResponse):
    my_orders: List[OrderView]
    count: int

class CourierStatsResponse(BaseResponse):
    courier_id: int
    stats: CourierStats

class CourierSummary(BaseModel):
    id: int
    full_name: str
    phone: Optional[str] = None
    cash_on_hand: Decimal
    is_verified: bool
    eligible_for_cash_orders: bool

class CourierListResponse(BaseResponse):
    couriers: List[CourierSummary]
    count: int

