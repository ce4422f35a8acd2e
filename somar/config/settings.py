# somar/config/settings.py
from pydantic_settings import BaseSettings
from typing import Optional
from decimal import Decimal
import os

class Settings(BaseSettings):
    # App Info
    app_name: str = "Somar Dispatch API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./somar.db")

    # Security (la emisión de tokens vive en el proveedor de identidad)
    secret_key: str = os.getenv("SECRET_KEY", "change-in-production")
    algorithm: str = "HS256"

    # External Services
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: str = "somar"

    # Comprobantes (compra y transferencia)
    max_receipt_size: int = 10 * 1024 * 1024
    allowed_receipt_formats: set = {"image/jpeg", "image/png", "image/webp", "image/jpg", "application/pdf"}

    # Notificaciones en tiempo real
    notifier_webhook_url: Optional[str] = None
    notifier_timeout: int = 5

    # Configuración global: valores por defecto si no existe la fila
    default_rider_share_percent: Decimal = Decimal("66.66")
    default_platform_share_percent: Decimal = Decimal("33.34")
    default_cash_custody_limit: Decimal = Decimal("300")
    config_cache_ttl_seconds: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = int(os.getenv("PORT", 10000))

    @property
    def database_url_with_ssl(self) -> str:
        """Agregar SSL para conexiones PostgreSQL remotas"""
        if self.database_url.startswith("postgresql") and "localhost" not in self.database_url:
            if "sslmode=" not in self.database_url:
                return f"{self.database_url}?sslmode=require"
        return self.database_url

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = 'ignore'

settings = Settings()
