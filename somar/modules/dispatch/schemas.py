# somar/modules/dispatch/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, Any
from decimal import Decimal

from somar.shared.schemas.common import BaseResponse
from somar.shared.schemas.enums import OrderType, PaymentMethod
from somar.modules.orders.schemas import SplitPreview

class OrderCreateRequest(BaseModel):
    """
    Datos del formulario de despacho.

    Los montos llegan como texto o número y se validan en el servicio,
    que reporta todos los campos con problemas de una sola vez.
    """
    order_type: Optional[str] = Field(None, description="purchase o pickup_only")
    payment_method: Optional[str] = Field(None, description="cash o bank_transfer")

    customer_id: Optional[int] = Field(None, description="Cliente guardado")
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    address_id: Optional[int] = Field(None, description="Dirección guardada")
    delivery_address: Optional[str] = None
    merchant_id: Optional[int] = None
    courier_id: Optional[int] = Field(None, description="Rider asignado desde la creación")

    shipping_fee: Optional[Any] = Field(None, description="Costo de envío")
    purchase_total: Optional[Any] = Field(None, description="Total estimado de la compra")
    tip: Optional[Any] = Field(None, description="Propina")
    delivery_note: Optional[str] = Field(None, max_length=1000)

    class Config:
        json_schema_extra = {
            "example": {
                "order_type": "purchase",
                "payment_method": "cash",
                "customer_name": "María López",
                "customer_phone": "3001234567",
                "delivery_address": "Calle 10 # 5-20",
                "merchant_id": 1,
                "shipping_fee": "100",
                "purchase_total": "500",
                "tip": "20"
            }
        }

class ParsedOrder(BaseModel):
    """Pedido validado y tipado, listo para persistir"""
    order_type: OrderType
    payment_method: PaymentMethod
    customer_id: Optional[int] = None
    customer_name: str
    customer_phone: Optional[str] = None
    address_id: Optional[int] = None
    delivery_address: str
    merchant_id: Optional[int] = None
    courier_id: Optional[int] = None
    shipping_fee: Decimal
    purchase_total: Decimal
    tip: Decimal
    delivery_note: Optional[str] = None

class SplitPreviewRequest(BaseModel):
    shipping_fee: Optional[Any] = None
    purchase_total: Optional[Any] = None
    tip: Optional[Any] = None
    payment_method: Optional[str] = PaymentMethod.CASH.value

class SplitPreviewResponse(BaseResponse):
    split: SplitPreview

class AssignRequest(BaseModel):
    courier_id: int = Field(..., gt=0)

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de cancelación")

class ConfigResponse(BaseResponse):
    rider_share_percent: Decimal
    platform_share_percent: Decimal
    cash_custody_limit: Decimal
