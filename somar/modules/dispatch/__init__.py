# somar/modules/dispatch/__init__.py
"""
Módulo Dispatch - Operaciones de despacho

- Crear pedidos con cálculo automático de montos
- Tablero por estado resumido
- Asignar riders y cancelar pedidos
- Validar transferencias de clientes
- Configuración global del reparto

Arquitectura:
- router.py: Endpoints de despacho
- service.py: Creación de pedidos y consultas
- repository.py: Directorio de clientes y comercios
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import DispatchService
from .repository import DispatchRepository

__all__ = [
    "router",
    "DispatchService",
    "DispatchRepository"
]
