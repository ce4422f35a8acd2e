# somar/shared/services/notifier.py
import httpx
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Any, Optional

from somar.config.settings import settings

logger = logging.getLogger(__name__)

ORDER_CREATED = "order-created"
ORDER_UPDATED = "order-updated"


class LoggingNotifier:
    """Notificador por defecto cuando no hay webhook configurado"""

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        logger.info(f"📣 {topic}: {event}")

    def shutdown(self) -> None:
        pass


class WebhookNotifier:
    """
    Publicar eventos de pedidos a un webhook (dashboard / app del rider).

    Es fire-and-forget: el envío corre en un hilo aparte y los errores se
    registran sin propagarse. Los clientes se resincronizan consultando la API.
    """

    def __init__(self, webhook_url: str, timeout: Optional[int] = None, max_workers: int = 2):
        self.webhook_url = webhook_url
        self.timeout = timeout or settings.notifier_timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notifier")

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        try:
            self._executor.submit(self._send, topic, event)
        except RuntimeError as e:
            # El executor ya fue cerrado durante el apagado
            logger.warning(f"⚠️ Evento {topic} descartado: {e}")

    def _send(self, topic: str, event: Dict[str, Any]) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.webhook_url, json={"topic": topic, "event": event})
            if response.status_code >= 400:
                logger.warning(f"⚠️ Webhook respondió {response.status_code} para {topic}")
        except httpx.HTTPError as e:
            logger.error(f"❌ Error publicando {topic}: {str(e)}")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


def build_notifier():
    if settings.notifier_webhook_url:
        logger.info(f"📡 Notificaciones vía webhook: {settings.notifier_webhook_url}")
        return WebhookNotifier(settings.notifier_webhook_url)
    return LoggingNotifier()
