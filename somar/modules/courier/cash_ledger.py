# somar/modules/courier/cash_ledger.py
from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
import logging

from somar.core.errors import NotFoundError, InsufficientCustody
from somar.shared.database.models import Courier
from somar.modules.orders.schemas import SplitConfig, money

logger = logging.getLogger(__name__)


class CashLedger:
    """
    Efectivo en mano de cada rider ("la guaca").

    El saldo solo sube al finalizar un pedido en efectivo. Tanto el crédito
    como la verificación de elegibilidad pasan por la fila del rider
    bloqueada, de modo que una asignación nunca evalúa un saldo viejo.
    La liquidación es un proceso operativo externo.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_courier(self, courier_id: int) -> Courier:
        """Leer el rider con SELECT ... FOR UPDATE dentro de la transacción actual"""
        courier = self.db.query(Courier).populate_existing().filter(
            Courier.id == courier_id
        ).with_for_update().first()

        if courier is None:
            raise NotFoundError(f"Rider {courier_id} no encontrado", {"courier_id": courier_id})
        return courier

    @staticmethod
    def is_eligible_for_cash_order(courier: Courier, config: SplitConfig) -> bool:
        return Decimal(courier.cash_on_hand) < config.cash_custody_limit

    def ensure_can_take_cash_order(self, courier: Courier, config: SplitConfig) -> None:
        if not self.is_eligible_for_cash_order(courier, config):
            logger.warning(
                f"⛔ Rider {courier.id} sobre el límite de guaca: "
                f"{courier.cash_on_hand} / {config.cash_custody_limit}"
            )
            raise InsufficientCustody(courier.id, money(courier.cash_on_hand), money(config.cash_custody_limit))

    def credit_delivery(self, courier_id: int, amount: Decimal) -> None:
        """
        Sumar el cobro de una entrega al saldo del rider.

        No hace commit: el crédito forma parte de la transacción de
        finalización del pedido y se confirma o revierte junto con ella.
        """
        if amount < 0:
            raise ValueError("El crédito de una entrega no puede ser negativo")

        updated = self.db.query(Courier).filter(
            Courier.id == courier_id
        ).update({"cash_on_hand": Courier.cash_on_hand + amount}, synchronize_session=False)
        if updated != 1:
            raise NotFoundError(f"Rider {courier_id} no encontrado", {"courier_id": courier_id})

        logger.info(f"💵 Guaca del rider {courier_id} +{money(amount)}")

    def custody_status(self, courier: Courier, config: SplitConfig) -> Dict[str, Any]:
        cash_on_hand = Decimal(courier.cash_on_hand)
        limit = config.cash_custody_limit

        if limit > 0:
            usage = min(cash_on_hand / limit * 100, Decimal("100"))
        else:
            usage = Decimal("100")

        eligible = self.is_eligible_for_cash_order(courier, config)
        return {
            "courier_id": courier.id,
            "cash_on_hand": money(cash_on_hand),
            "cash_custody_limit": money(limit),
            "usage_percent": money(usage),
            "eligible_for_cash_orders": eligible,
            "message": "Puedes tomar pedidos en efectivo" if eligible
                       else "Límite de efectivo alcanzado: liquida la guaca para continuar"
        }
