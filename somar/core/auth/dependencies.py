from dataclasses import dataclass
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional

from somar.config.database import get_db
from somar.core.auth.service import AuthService
from somar.core.errors import CourierUnavailable
from somar.modules.courier.repository import CourierRepository
from somar.shared.database.models import Courier

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


@dataclass
class Identity:
    """Usuario autenticado según el token"""
    user_id: str
    role: str
    email: Optional[str] = None


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Identity:
    """Obtener identidad actual desde el token"""
    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        raise AuthenticationError("Payload del token inválido")

    return Identity(user_id=str(user_id), role=role, email=payload.get("email"))


def require_roles(allowed_roles: List[str]):
    """Factory para crear dependency que requiere roles específicos"""
    def role_checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed_roles:
            raise AuthorizationError(
                f"Rol '{identity.role}' no autorizado. Roles permitidos: {allowed_roles}"
            )
        return identity
    return role_checker


def get_dispatcher(identity: Identity = Depends(require_roles(["dispatcher", "admin"]))) -> Identity:
    """Dependency para operadores de despacho"""
    return identity


def get_current_courier(
    identity: Identity = Depends(require_roles(["rider", "admin"])),
    db: Session = Depends(get_db)
) -> Courier:
    """
    Perfil del rider autenticado; se crea en el primer acceso.

    Un admin solo entra con un perfil de rider ya existente.
    """
    repository = CourierRepository(db)
    if identity.role != "rider":
        courier = repository.get_by_auth_user(identity.user_id)
        if courier is None:
            raise AuthorizationError("El usuario no tiene perfil de rider")
        return courier
    return repository.get_or_create(identity.user_id, identity.email)


def get_active_courier(courier: Courier = Depends(get_current_courier)) -> Courier:
    """Rider habilitado para operar pedidos"""
    if not courier.is_active:
        raise CourierUnavailable("Tu cuenta de rider está inactiva", {"courier_id": courier.id})
    return courier
