# somar/modules/courier/router.py
from fastapi import APIRouter, Depends, Path, File, Form, UploadFile
from sqlalchemy.orm import Session
from typing import Optional

from somar.config.database import get_db
from somar.core.auth.dependencies import get_current_courier, get_active_courier
from somar.core.dependencies import get_split_config, get_receipt_storage, get_notifier
from somar.modules.orders.schemas import SplitConfig, OrderResponse
from somar.shared.services.receipt_storage import ReceiptFile
from .service import CourierService
from .schemas import (
    ProfileResponse, AvailableOrdersResponse, MyOrdersResponse, CourierStatsResponse, CustodyStatus
)

router = APIRouter()


def get_courier_service(
    db: Session = Depends(get_db),
    config: SplitConfig = Depends(get_split_config),
    receipt_storage=Depends(get_receipt_storage),
    notifier=Depends(get_notifier)
) -> CourierService:
    return CourierService(db, config, receipt_storage, notifier)


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    courier = Depends(get_current_courier),
    service: CourierService = Depends(get_courier_service)
):
    """
    Perfil del rider autenticado

    - Se crea automáticamente en el primer acceso
    - Incluye el estado de la guaca (efectivo en mano vs límite)
    """
    return await service.get_profile(courier)


@router.get("/custody", response_model=CustodyStatus)
async def get_custody(
    courier = Depends(get_current_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Efectivo en mano, límite y porcentaje usado de la guaca"""
    return await service.get_custody(courier)


@router.get("/stats", response_model=CourierStatsResponse)
async def get_stats(
    courier = Depends(get_current_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Ganancias acumuladas, entregas del día y nivel del rider"""
    return await service.get_stats(courier)


@router.get("/available-orders", response_model=AvailableOrdersResponse)
async def get_available_orders(
    courier = Depends(get_current_courier),
    service: CourierService = Depends(get_courier_service)
):
    """
    Pedidos sin rider asignado

    **can_accept** es falso para pedidos en efectivo cuando la guaca
    alcanzó el límite: liquida para continuar.
    """
    return await service.get_available_orders(courier)


@router.get("/my-orders", response_model=MyOrdersResponse)
async def get_my_orders(
    courier = Depends(get_current_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Pedidos en curso del rider (asignado → llegada al cliente)"""
    return await service.get_my_orders(courier)


@router.post("/orders/{order_id}/accept", response_model=OrderResponse)
async def accept_order(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """
    Aceptar pedido

    **Concurrencia:**
    - Solo un rider puede tomar cada pedido
    - El perdedor de la carrera recibe ALREADY_ASSIGNED
    """
    return await service.accept_order(order_id, courier)


@router.post("/orders/{order_id}/reach-merchant", response_model=OrderResponse)
async def reach_merchant(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Llegada al comercio"""
    return await service.reach_merchant(order_id, courier)


@router.post("/orders/{order_id}/confirm-purchase", response_model=OrderResponse)
async def confirm_purchase(
    order_id: int = Path(..., description="ID del pedido"),
    total: Optional[str] = Form(None, description="Monto de la factura"),
    receipt: Optional[UploadFile] = File(None, description="Foto de la factura"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """
    Confirmar compra (pedidos de compra)

    **Validaciones:**
    - Monto de factura mayor a 0
    - Foto de la factura obligatoria
    - El monto real reemplaza el estimado y se recalcula el cobro
    """
    receipt_file = await ReceiptFile.from_upload(receipt)
    return await service.confirm_purchase(order_id, total, receipt_file, courier)


@router.post("/orders/{order_id}/confirm-pickup", response_model=OrderResponse)
async def confirm_pickup(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Confirmar recolección (pedidos sin compra)"""
    return await service.confirm_pickup(order_id, courier)


@router.post("/orders/{order_id}/depart", response_model=OrderResponse)
async def depart(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Salir hacia el cliente"""
    return await service.depart(order_id, courier)


@router.post("/orders/{order_id}/reach-customer", response_model=OrderResponse)
async def reach_customer(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Llegada donde el cliente"""
    return await service.reach_customer(order_id, courier)


@router.post("/orders/{order_id}/finalize", response_model=OrderResponse)
async def finalize(
    order_id: int = Path(..., description="ID del pedido"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """
    Finalizar entrega

    - Efectivo: el cobro se suma a la guaca del rider
    - Transferencia: requiere comprobante validado por despacho
      (TRANSFER_NOT_CONFIRMED mientras tanto)
    """
    return await service.finalize(order_id, courier)


@router.post("/orders/{order_id}/transfer-receipt", response_model=OrderResponse)
async def submit_transfer_receipt(
    order_id: int = Path(..., description="ID del pedido"),
    receipt: Optional[UploadFile] = File(None, description="Comprobante de transferencia"),
    courier = Depends(get_active_courier),
    service: CourierService = Depends(get_courier_service)
):
    """Enviar comprobante de transferencia del cliente para validación"""
    receipt_file = await ReceiptFile.from_upload(receipt)
    return await service.submit_transfer_receipt(order_id, receipt_file, courier)


@router.get("/health")
async def courier_health():
    """Health check del módulo courier"""
    return {
        "service": "courier",
        "status": "healthy",
        "version": "1.0.0",
        "features": [
            "Pedidos disponibles con control de guaca",
            "Aceptar pedido con control de concurrencia",
            "Flujo comercio → cliente",
            "Comprobantes de compra y transferencia",
            "Estadísticas y nivel del rider"
        ]
    }
