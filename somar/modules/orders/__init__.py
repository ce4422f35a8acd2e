# somar/modules/orders/__init__.py
"""
Módulo Orders - Núcleo del pedido

- split_calculator.py: Reparto del envío entre rider y plataforma
- state_machine.py: Transiciones del pedido con control de concurrencia
- repository.py: Escrituras condicionales sobre pedidos
- schemas.py: Configuración de reparto y vistas de pedido

La máquina de estados no se exporta aquí porque depende del módulo courier.
"""

from .schemas import SplitConfig, SplitResult, OrderView
from .split_calculator import compute_split

__all__ = [
    "SplitConfig",
    "SplitResult",
    "OrderView",
    "compute_split"
]
