# somar/core/errors.py
from typing import Any, Dict, List, Optional


class DispatchError(Exception):
    """Error base del núcleo de despacho"""
    status_code = 400
    error_code = "DISPATCH_ERROR"
    # Los estados de espera se muestran como bloqueo informativo, no como fallo
    informational = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DispatchError):
    status_code = 422
    error_code = "VALIDATION_ERROR"

    def __init__(self, errors: List[Dict[str, str]], message: str = "Datos del pedido inválidos"):
        super().__init__(message, {"errors": errors})
        self.errors = errors

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class NotFoundError(DispatchError):
    status_code = 404
    error_code = "NOT_FOUND"


class InvalidTransition(DispatchError):
    status_code = 409
    error_code = "INVALID_TRANSITION"

    def __init__(self, order_id: int, current_state: str, transition: str):
        super().__init__(
            f"No se puede aplicar '{transition}' al pedido {order_id} en estado '{current_state}'",
            {"order_id": order_id, "current_state": current_state, "transition": transition}
        )
        self.current_state = current_state
        self.transition = transition


class AlreadyAssigned(InvalidTransition):
    """La asignación perdió la carrera: otro rider ya tomó el pedido"""
    error_code = "ALREADY_ASSIGNED"

    def __init__(self, order_id: int, current_state: str):
        super().__init__(order_id, current_state, "assign")
        self.message = "El pedido ya fue tomado por otro rider"
        self.args = (self.message,)


class MissingProofOfPurchase(DispatchError):
    status_code = 422
    error_code = "MISSING_PROOF_OF_PURCHASE"


class TransferNotConfirmed(DispatchError):
    status_code = 409
    error_code = "TRANSFER_NOT_CONFIRMED"
    informational = True

    def __init__(self, order_id: int, receipt_status: str):
        super().__init__(
            "Esperando validación de la transferencia antes de finalizar",
            {"order_id": order_id, "receipt_status": receipt_status}
        )


class InsufficientCustody(DispatchError):
    status_code = 409
    error_code = "INSUFFICIENT_CUSTODY"
    informational = True

    def __init__(self, courier_id: int, cash_on_hand, limit):
        super().__init__(
            "Límite de efectivo alcanzado: liquida la guaca para continuar",
            {"courier_id": courier_id, "cash_on_hand": str(cash_on_hand), "cash_custody_limit": str(limit)}
        )


class CourierUnavailable(DispatchError):
    status_code = 409
    error_code = "COURIER_UNAVAILABLE"


class NotOrderOwner(DispatchError):
    status_code = 403
    error_code = "NOT_ORDER_OWNER"

    def __init__(self, order_id: int, courier_id: int):
        super().__init__(
            "El pedido no está asignado a este rider",
            {"order_id": order_id, "courier_id": courier_id}
        )


class ReceiptStorageError(DispatchError):
    status_code = 502
    error_code = "RECEIPT_STORAGE_ERROR"


class InvalidGlobalConfig(DispatchError):
    """La fila de configuración global no forma un reparto válido"""
    status_code = 500
    error_code = "INVALID_GLOBAL_CONFIG"
