# somar/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    Numeric, ForeignKey, CheckConstraint, func
)
from sqlalchemy.orm import relationship, declarative_base

from somar.shared.schemas.enums import OrderState, ReceiptStatus

Base = declarative_base()

# Precisión completa; el redondeo a 2 decimales ocurre solo al presentar
Money = Numeric(16, 6)


# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at"""
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


# =====================================================
# CONFIGURACIÓN GLOBAL
# =====================================================

class GlobalConfig(Base):
    """Configuración global de reparto (fila única, solo lectura para el núcleo)"""
    __tablename__ = "global_config"

    id = Column(Integer, primary_key=True)
    rider_share_percent = Column(Numeric(5, 2), nullable=False, default=66.66)
    platform_share_percent = Column(Numeric(5, 2), nullable=False, default=33.34)
    cash_custody_limit = Column(Money, nullable=False, default=300)
    updated_at = Column(DateTime, server_default=func.current_timestamp())


# =====================================================
# RIDERS
# =====================================================

class Courier(Base, TimestampMixin):
    """Modelo de Rider (corredor)"""
    __tablename__ = "couriers"
    __table_args__ = (
        CheckConstraint("cash_on_hand >= 0", name="ck_couriers_cash_on_hand_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    auth_user_id = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))

    # "La guaca": efectivo cobrado en entregas y aún no liquidado
    cash_on_hand = Column(Money, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    orders = relationship("Order", back_populates="courier")


# =====================================================
# DIRECTORIO (solo lectura para el núcleo)
# =====================================================

class Customer(Base):
    """Perfil de cliente guardado"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    addresses = relationship("CustomerAddress", back_populates="customer")


class CustomerAddress(Base):
    """Dirección guardada de un cliente"""
    __tablename__ = "customer_addresses"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    label = Column(String(100))
    address = Column(Text, nullable=False)

    customer = relationship("Customer", back_populates="addresses")


class Merchant(Base):
    """Comercio donde se compra o recoge"""
    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    phone = Column(String(50))
    is_active = Column(Boolean, default=True)


# =====================================================
# PEDIDOS
# =====================================================

class Order(Base):
    """Modelo de Pedido"""
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("shipping_fee >= 0", name="ck_orders_shipping_fee_non_negative"),
        CheckConstraint("purchase_total >= 0", name="ck_orders_purchase_total_non_negative"),
        CheckConstraint("tip >= 0", name="ck_orders_tip_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sequence = Column(Integer, unique=True, nullable=False)
    order_type = Column(String(20), nullable=False)
    payment_method = Column(String(20), nullable=False)

    # Partes
    customer_id = Column(Integer, ForeignKey("customers.id"))
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50))
    address_id = Column(Integer, ForeignKey("customer_addresses.id"))
    delivery_address = Column(Text, nullable=False)
    merchant_id = Column(Integer, ForeignKey("merchants.id"))
    courier_id = Column(Integer, ForeignKey("couriers.id"), index=True)

    # Montos de entrada
    shipping_fee = Column(Money, nullable=False)
    purchase_total = Column(Money, nullable=False, default=0)
    estimated_purchase_total = Column(Money, nullable=False, default=0)
    tip = Column(Money, nullable=False, default=0)

    # Montos calculados
    rider_earning = Column(Money, nullable=False)
    platform_margin = Column(Money, nullable=False)
    amount_due_from_customer = Column(Money, nullable=False)

    state = Column(String(30), nullable=False, default=OrderState.UNASSIGNED.value, index=True)

    # Comprobantes
    purchase_receipt_url = Column(Text)
    receipt_status = Column(String(20), nullable=False, default=ReceiptStatus.NONE.value)
    receipt_url = Column(Text)

    delivery_note = Column(Text)
    cancel_reason = Column(Text)

    # Timestamps del flujo
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    assigned_at = Column(DateTime)
    at_merchant_at = Column(DateTime)
    picked_up_at = Column(DateTime)
    en_route_at = Column(DateTime)
    arrived_at = Column(DateTime)
    delivered_at = Column(DateTime)
    canceled_at = Column(DateTime)
    receipt_submitted_at = Column(DateTime)
    receipt_validated_at = Column(DateTime)

    # Relationships
    courier = relationship("Courier", back_populates="orders")
    merchant = relationship("Merchant")
    customer = relationship("Customer")
    receipt_history = relationship(
        "TransferReceiptEvent", back_populates="order", order_by="TransferReceiptEvent.id"
    )

    @property
    def order_number(self) -> str:
        return f"PED-{self.sequence:05d}"


class TransferReceiptEvent(Base):
    """Historial de cambios del comprobante de transferencia"""
    __tablename__ = "transfer_receipt_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    previous_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    receipt_url = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    order = relationship("Order", back_populates="receipt_history")
