from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError
from somar.config.settings import settings

class AuthService:
    """Verificación de tokens emitidos por el proveedor de identidad"""

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Crear token firmado (scripts de prueba y entornos locales)"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(hours=12)

        to_encode.update({"exp": expire})

        if "sub" not in to_encode:
            raise ValueError("sub es requerido en el token")

        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        """Verificar y decodificar token"""
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
            return payload
        except JWTError:
            return None
