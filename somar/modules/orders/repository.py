# somar/modules/orders/repository.py
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from typing import List, Dict, Any, Optional, Iterable

from somar.core.errors import NotFoundError
from somar.shared.database.models import Order, TransferReceiptEvent
from somar.shared.schemas.enums import OrderState
import logging

logger = logging.getLogger(__name__)

class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Order:
        """Leer el pedido desde la base, descartando cualquier copia en memoria"""
        order = self.db.query(Order).options(
            joinedload(Order.courier),
            joinedload(Order.merchant)
        ).populate_existing().filter(Order.id == order_id).first()

        if order is None:
            raise NotFoundError(f"Pedido {order_id} no encontrado", {"order_id": order_id})
        return order

    def compare_and_set(
        self,
        order_id: int,
        expected_state: str,
        values: Dict[str, Any],
        *conditions
    ) -> int:
        """
        Escritura condicional: UPDATE orders SET ... WHERE id = :id AND state = :expected.

        Retorna las filas afectadas; 0 significa que otro proceso movió el
        pedido primero y nada fue escrito.
        """
        return self.update_where(order_id, values, Order.state == expected_state, *conditions)

    def update_where(self, order_id: int, values: Dict[str, Any], *conditions) -> int:
        """UPDATE orders SET ... WHERE id = :id AND <condiciones>; retorna las filas afectadas"""
        return self.db.query(Order).filter(
            Order.id == order_id,
            *conditions
        ).update(values, synchronize_session=False)

    def next_sequence(self) -> int:
        current = self.db.query(func.max(Order.sequence)).scalar()
        return (current or 0) + 1

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def add_receipt_event(
        self,
        order_id: int,
        previous_status: str,
        new_status: str,
        receipt_url: Optional[str]
    ) -> TransferReceiptEvent:
        event = TransferReceiptEvent(
            order_id=order_id,
            previous_status=previous_status,
            new_status=new_status,
            receipt_url=receipt_url,
            created_at=datetime.now()
        )
        self.db.add(event)
        return event

    def list_by_states(self, states: Iterable[OrderState], newest_first: bool = True) -> List[Order]:
        ordering = Order.created_at.desc() if newest_first else Order.created_at.asc()
        return self.db.query(Order).options(
            joinedload(Order.courier),
            joinedload(Order.merchant)
        ).filter(
            Order.state.in_([OrderState(s).value for s in states])
        ).order_by(ordering, Order.id.desc() if newest_first else Order.id.asc()).all()

    def list_for_courier(self, courier_id: int, states: Iterable[OrderState]) -> List[Order]:
        return self.db.query(Order).options(
            joinedload(Order.merchant)
        ).filter(
            Order.courier_id == courier_id,
            Order.state.in_([OrderState(s).value for s in states])
        ).order_by(Order.created_at.asc(), Order.id.asc()).all()

    def list_delivered_for_courier(self, courier_id: int) -> List[Order]:
        return self.db.query(Order).filter(
            Order.courier_id == courier_id,
            Order.state == OrderState.DELIVERED.value
        ).order_by(Order.delivered_at.desc()).all()
