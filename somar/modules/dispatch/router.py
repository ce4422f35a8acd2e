# somar/modules/dispatch/router.py
from fastapi import APIRouter, Depends, Path, Query, File, UploadFile
from sqlalchemy.orm import Session
from typing import List, Optional

from somar.config.database import get_db
from somar.core.auth.dependencies import get_dispatcher
from somar.core.dependencies import (
    get_config_provider, get_split_config, get_receipt_storage, get_notifier
)
from somar.shared.schemas.enums import CoarseState
from somar.shared.services.receipt_storage import ReceiptFile
from somar.modules.courier.schemas import CourierListResponse
from somar.modules.orders.schemas import SplitConfig, OrderResponse, OrderListResponse
from .service import DispatchService
from .schemas import (
    OrderCreateRequest, SplitPreviewRequest, SplitPreviewResponse,
    AssignRequest, CancelRequest, ConfigResponse
)

router = APIRouter()


def get_dispatch_service(
    db: Session = Depends(get_db),
    config: SplitConfig = Depends(get_split_config),
    receipt_storage=Depends(get_receipt_storage),
    notifier=Depends(get_notifier)
) -> DispatchService:
    return DispatchService(db, config, receipt_storage, notifier)


@router.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: OrderCreateRequest,
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """
    Crear pedido

    **Campos requeridos:**
    - Cliente (nombre o cliente guardado) y dirección (texto o guardada)
    - Costo de envío, tipo de pedido y método de pago

    **Cálculo automático:**
    - Ganancia del rider, margen de la plataforma y monto a cobrar
    - Número consecutivo PED-XXXXX
    - Si se envía courier_id el pedido nace asignado
    """
    return await service.create_order(payload)


@router.get("/orders", response_model=OrderListResponse)
async def list_dashboard_orders(
    coarse_state: Optional[List[CoarseState]] = Query(None, description="pending, assigned, en_route, delivered, canceled"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Tablero de despacho (por defecto: pendientes, asignados y en camino)"""
    return await service.list_dashboard_orders(coarse_state)


@router.get("/orders/assignable", response_model=OrderListResponse)
async def list_assignable_orders(
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Pedidos sin rider asignado"""
    return await service.list_assignable_orders()


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int = Path(..., description="ID del pedido"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    return await service.get_order(order_id)


@router.post("/orders/{order_id}/assign", response_model=OrderResponse)
async def assign_order(
    payload: AssignRequest,
    order_id: int = Path(..., description="ID del pedido"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Asignar rider desde el tablero (mismas reglas que aceptar desde la app)"""
    return await service.assign_order(order_id, payload.courier_id)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    payload: CancelRequest = CancelRequest(),
    order_id: int = Path(..., description="ID del pedido"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Cancelar pedido (sin rider, asignado o en comercio)"""
    return await service.cancel_order(order_id, payload.reason)


@router.post("/orders/{order_id}/validate-transfer", response_model=OrderResponse)
async def validate_transfer(
    order_id: int = Path(..., description="ID del pedido"),
    receipt: Optional[UploadFile] = File(None, description="Comprobante (opcional si el rider ya lo envió)"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """
    Validar transferencia

    - Con archivo: se sube y se valida en un paso
    - Sin archivo: se valida el comprobante pendiente
    """
    receipt_file = await ReceiptFile.from_upload(receipt)
    return await service.validate_transfer_receipt(order_id, receipt_file)


@router.get("/couriers", response_model=CourierListResponse)
async def list_available_couriers(
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Riders activos con su efectivo en mano"""
    return await service.list_available_couriers()


@router.get("/couriers/{courier_id}/active-orders", response_model=OrderListResponse)
async def list_active_for_courier(
    courier_id: int = Path(..., description="ID del rider"),
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    return await service.list_active_for_courier(courier_id)


@router.post("/split-preview", response_model=SplitPreviewResponse)
async def preview_split(
    payload: SplitPreviewRequest,
    dispatcher = Depends(get_dispatcher),
    service: DispatchService = Depends(get_dispatch_service)
):
    """Cálculo en vivo mientras se edita el borrador del pedido"""
    return await service.preview_split(payload)


@router.get("/config", response_model=ConfigResponse)
async def get_config(
    dispatcher = Depends(get_dispatcher),
    config: SplitConfig = Depends(get_split_config)
):
    return ConfigResponse(success=True, message="Configuración vigente", **config.model_dump())


@router.post("/config/refresh", response_model=ConfigResponse)
async def refresh_config(
    dispatcher = Depends(get_dispatcher),
    config_provider = Depends(get_config_provider),
    db: Session = Depends(get_db)
):
    """Recargar la configuración global desde la base de datos"""
    config = config_provider.refresh(db)
    return ConfigResponse(success=True, message="Configuración recargada", **config.model_dump())
