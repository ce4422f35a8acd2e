# somar/modules/courier/repository.py
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from somar.core.errors import NotFoundError
from somar.shared.database.models import Courier
import logging

logger = logging.getLogger(__name__)

class CourierRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, courier_id: int) -> Courier:
        courier = self.db.get(Courier, courier_id, populate_existing=True)
        if courier is None:
            raise NotFoundError(f"Rider {courier_id} no encontrado", {"courier_id": courier_id})
        return courier

    def get_by_auth_user(self, auth_user_id: str) -> Optional[Courier]:
        return self.db.query(Courier).populate_existing().filter(
            Courier.auth_user_id == auth_user_id
        ).first()

    def get_or_create(self, auth_user_id: str, email: Optional[str]) -> Courier:
        """Perfil del rider; se crea en el primer acceso autenticado"""
        courier = self.get_by_auth_user(auth_user_id)
        if courier is not None:
            return courier

        full_name = email.split("@")[0] if email else f"rider-{auth_user_id}"
        courier = Courier(
            auth_user_id=auth_user_id,
            full_name=full_name,
            email=email,
            phone="",
            cash_on_hand=0,
            is_active=True,
            is_verified=False
        )
        try:
            self.db.add(courier)
            self.db.commit()
        except IntegrityError:
            # Otro request creó el perfil al mismo tiempo
            self.db.rollback()
            existing = self.get_by_auth_user(auth_user_id)
            if existing is None:
                raise
            return existing

        logger.info(f"🆕 Perfil de rider creado: {full_name} ({auth_user_id})")
        self.db.refresh(courier)
        return courier

    def list_active(self) -> List[Courier]:
        return self.db.query(Courier).filter(
            Courier.is_active.is_(True)
        ).order_by(Courier.full_name).all()
