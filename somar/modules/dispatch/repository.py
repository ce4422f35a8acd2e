# somar/modules/dispatch/repository.py
from sqlalchemy.orm import Session
from typing import Optional

from somar.shared.database.models import Customer, CustomerAddress, Merchant

class DispatchRepository:
    """Lecturas del directorio (clientes, direcciones, comercios) para crear pedidos"""

    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self.db.get(Customer, customer_id)

    def get_address(self, address_id: int) -> Optional[CustomerAddress]:
        return self.db.get(CustomerAddress, address_id)

    def get_merchant(self, merchant_id: int) -> Optional[Merchant]:
        return self.db.get(Merchant, merchant_id)
