# somar/shared/services/config_provider.py
import logging
import threading
import time
from typing import Optional
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from somar.config.settings import settings
from somar.core.errors import InvalidGlobalConfig
from somar.shared.database.models import GlobalConfig
from somar.modules.orders.schemas import SplitConfig

logger = logging.getLogger(__name__)


def default_split_config() -> SplitConfig:
    return SplitConfig(
        rider_share_percent=settings.default_rider_share_percent,
        platform_share_percent=settings.default_platform_share_percent,
        cash_custody_limit=settings.default_cash_custody_limit
    )


class GlobalConfigProvider:
    """
    Caché de la configuración global.

    Una sola instancia por proceso (guardada en app.state) que se recarga
    cuando vence el TTL o cuando se pide explícitamente.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = settings.config_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._config: Optional[SplitConfig] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def get(self, db: Session) -> SplitConfig:
        with self._lock:
            if self._config is None or time.monotonic() - self._loaded_at > self.ttl_seconds:
                self._load(db)
            return self._config

    def refresh(self, db: Session) -> SplitConfig:
        with self._lock:
            self._load(db)
            return self._config

    def _load(self, db: Session) -> None:
        row = db.query(GlobalConfig).order_by(GlobalConfig.id).first()

        if row is None:
            logger.info("ℹ️ Sin configuración global, usando valores por defecto")
            self._config = default_split_config()
        else:
            try:
                self._config = SplitConfig(
                    rider_share_percent=row.rider_share_percent,
                    platform_share_percent=row.platform_share_percent,
                    cash_custody_limit=row.cash_custody_limit
                )
            except SchemaValidationError as e:
                logger.error(f"❌ Configuración global {row.id} inválida: {e}")
                raise InvalidGlobalConfig(
                    "La configuración global es inválida: revisa los porcentajes y el límite de guaca",
                    {
                        "config_id": row.id,
                        "rider_share_percent": str(row.rider_share_percent),
                        "platform_share_percent": str(row.platform_share_percent),
                    }
                )
        self._loaded_at = time.monotonic()
