# somar/shared/services/receipt_storage.py

import cloudinary
import cloudinary.uploader
from dataclasses import dataclass
from fastapi import UploadFile
from typing import Optional
import re
import uuid
import logging
from datetime import datetime

from somar.config.settings import settings
from somar.core.errors import ValidationError, ReceiptStorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptFile:
    """Archivo de comprobante ya leído en el borde HTTP"""
    filename: str
    content_type: str
    content: bytes

    @property
    def is_empty(self) -> bool:
        return not self.content

    @classmethod
    async def from_upload(cls, upload: Optional[UploadFile]) -> Optional["ReceiptFile"]:
        if upload is None:
            return None
        await upload.seek(0)
        content = await upload.read()
        return cls(
            filename=upload.filename or "comprobante",
            content_type=upload.content_type or "application/octet-stream",
            content=content
        )


class CloudinaryReceiptStorage:
    """Almacén de comprobantes de compra y transferencia en Cloudinary"""

    def __init__(self):
        if not all([settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret]):
            logger.warning("⚠️ Cloudinary no está completamente configurado")
            self.configured = False
            return

        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True
        )
        self.configured = True
        logger.info("✅ Cloudinary configurado correctamente")

    def store(self, order_id: int, file: ReceiptFile) -> str:
        """
        Subir un comprobante y retornar su URL pública

        Raises:
            ValidationError: formato o tamaño no permitido
            ReceiptStorageError: Cloudinary no configurado o falla de subida
        """
        self._validate(file)

        if not self.configured:
            raise ReceiptStorageError("El almacenamiento de comprobantes no está configurado")

        file_id = str(uuid.uuid4())[:8]
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        public_id = f"pedido-{order_id}_{timestamp}_{file_id}"

        try:
            logger.info(f"📤 Subiendo comprobante: {public_id}")
            result = cloudinary.uploader.upload(
                file.content,
                public_id=public_id,
                folder=f"{settings.cloudinary_folder}/receipts/{order_id}",
                resource_type="auto",
                tags=["receipt", f"order_{order_id}"],
                context={"order_id": str(order_id), "filename": self._sanitize_filename(file.filename)},
                overwrite=False,
                unique_filename=True,
                use_filename=False
            )
        except Exception as e:
            logger.error(f"❌ Error subiendo comprobante a Cloudinary: {str(e)}")
            raise ReceiptStorageError(f"Error subiendo comprobante: {str(e)}")

        if "secure_url" not in result:
            raise ReceiptStorageError("Cloudinary no retornó URL válida")

        logger.info(f"✅ Comprobante subido: {result['secure_url']}")
        return result["secure_url"]

    def _validate(self, file: ReceiptFile) -> None:
        if file.content_type not in settings.allowed_receipt_formats:
            raise ValidationError([{
                "field": "receipt",
                "message": f"Formato no permitido: {file.content_type}"
            }])
        if len(file.content) > settings.max_receipt_size:
            raise ValidationError([{
                "field": "receipt",
                "message": f"El comprobante no debe superar {settings.max_receipt_size // (1024*1024)}MB"
            }])

    def _sanitize_filename(self, filename: str) -> str:
        sanitized = re.sub(r'[^a-zA-Z0-9_.-]', '_', filename)[:50]
        return sanitized or "comprobante"
