# somar/modules/courier/__init__.py
"""
Módulo Courier - Operaciones del rider

- Pedidos disponibles y aceptación con control de concurrencia
- Flujo comercio → cliente con comprobantes
- Guaca: efectivo en mano contra el límite de custodia
- Estadísticas y nivel del rider

Arquitectura:
- router.py: Endpoints del rider
- service.py: Lógica de negocio del rider
- cash_ledger.py: Saldo de efectivo y elegibilidad
- repository.py: Acceso a datos de riders
- schemas.py: Modelos de request/response
"""

from .cash_ledger import CashLedger
from .repository import CourierRepository

__all__ = [
    "CashLedger",
    "CourierRepository"
]
