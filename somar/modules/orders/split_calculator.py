# somar/modules/orders/split_calculator.py
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from somar.shared.schemas.enums import PaymentMethod
from .schemas import SplitConfig, SplitResult

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Leer un monto de formulario: acepta coma o punto decimal.

    Retorna None si viene vacío; lanza InvalidOperation si no es un número
    finito. El signo no se valida aquí.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidOperation
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        amount = Decimal(text)
    if not amount.is_finite():
        raise InvalidOperation
    return amount


def to_amount(value: Any) -> Decimal:
    """
    Convertir un valor de formulario a monto.

    Vacío, inválido, no finito o negativo cuenta como 0: el cálculo se
    repite en vivo mientras el operador edita el borrador y nunca falla.
    """
    try:
        amount = parse_amount(value)
    except (InvalidOperation, ValueError):
        return ZERO
    if amount is None or amount < 0:
        return ZERO
    return amount


def compute_split(
    shipping_fee: Any,
    purchase_total: Any,
    tip: Any,
    payment_method: Any,
    config: SplitConfig
) -> SplitResult:
    """
    Calcular ganancia del rider, margen de la plataforma y monto a cobrar.

    - ganancia rider = envío * % rider / 100 + propina
    - margen plataforma = envío * % plataforma / 100
    - a cobrar al cliente = compra + envío + propina, solo en efectivo
    """
    fee = to_amount(shipping_fee)
    purchase = to_amount(purchase_total)
    tip_amount = to_amount(tip)

    rider_earning = fee * config.rider_share_percent / HUNDRED + tip_amount
    platform_margin = fee * config.platform_share_percent / HUNDRED

    if _is_cash(payment_method):
        amount_due = purchase + fee + tip_amount
    else:
        amount_due = ZERO

    return SplitResult(
        rider_earning=rider_earning,
        platform_margin=platform_margin,
        amount_due_from_customer=amount_due
    )


def _is_cash(payment_method: Any) -> bool:
    try:
        return PaymentMethod(payment_method) == PaymentMethod.CASH
    except ValueError:
        return False
