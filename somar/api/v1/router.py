# somar/api/v1/router.py
from fastapi import APIRouter
from somar.modules.dispatch.router import router as dispatch_router
from somar.modules.courier.router import router as courier_router

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(
    dispatch_router,
    prefix="/dispatch",
    tags=["Dispatch Operations"]
)

api_router.include_router(
    courier_router,
    prefix="/courier",
    tags=["Courier Operations"]
)

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": "Somar API v1",
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "dispatch": "/api/v1/dispatch",
            "courier": "/api/v1/courier"
        }
    }

@api_router.get("/modules")
async def list_modules():
    """
    Listado de módulos disponibles
    """
    return {
        "success": True,
        "modules": [
            {
                "name": "dispatch",
                "prefix": "/dispatch",
                "description": "Creación de pedidos y tablero de despacho",
                "roles_allowed": ["dispatcher", "admin"],
                "features": [
                    "Crear pedido con reparto automático",
                    "Tablero por estado",
                    "Asignar y cancelar",
                    "Validar transferencias",
                    "Configuración global"
                ]
            },
            {
                "name": "courier",
                "prefix": "/courier",
                "description": "Flujo del rider de punta a punta",
                "roles_allowed": ["rider", "admin"],
                "features": [
                    "Pedidos disponibles",
                    "Aceptar con control de concurrencia",
                    "Comprobantes de compra y transferencia",
                    "Guaca y estadísticas"
                ]
            }
        ]
    }
