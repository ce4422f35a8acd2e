"""
Script para cargar datos de demostración: configuración global, comercios,
clientes y riders. Imprime tokens de prueba para despacho y riders.

Ejecutar desde la raíz del proyecto: python scripts/seed_demo_data.py
"""
from datetime import timedelta
from decimal import Decimal

from somar.config.database import engine, SessionLocal
from somar.core.auth.service import AuthService
from somar.shared.database.models import (
    Base, GlobalConfig, Merchant, Customer, CustomerAddress, Courier
)

MERCHANTS = [
    {"name": "Droguería Central", "address": "Calle 12 # 4-18", "phone": "6017451200"},
    {"name": "Supermercado La 14", "address": "Avenida 3 # 22-40", "phone": "6017459900"},
    {"name": "Panadería El Trigal", "address": "Carrera 9 # 15-02", "phone": "3124448899"},
]

CUSTOMERS = [
    {"full_name": "María López", "phone": "3001234567", "addresses": [("Casa", "Calle 10 # 5-20")]},
    {"full_name": "Carlos Pérez", "phone": "3101112233", "addresses": [
        ("Casa", "Carrera 7 # 12-30"),
        ("Oficina", "Calle 26 # 68-35 Of. 402"),
    ]},
]

RIDERS = [
    {"auth_user_id": "rider-luis", "full_name": "Luis Corredor", "email": "luis@somar.co", "phone": "3205550101"},
    {"auth_user_id": "rider-sofia", "full_name": "Sofía Ruiz", "email": "sofia@somar.co", "phone": "3205550202"},
]


def seed_demo_data():
    """Crear tablas y datos base si no existen"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        if db.query(GlobalConfig).count() == 0:
            db.add(GlobalConfig(
                rider_share_percent=Decimal("66.66"),
                platform_share_percent=Decimal("33.34"),
                cash_custody_limit=Decimal("300")
            ))
            print("✅ Configuración global creada (66.66 / 33.34, límite 300)")
        else:
            print("✅ Ya existe configuración global")

        if db.query(Merchant).count() == 0:
            for data in MERCHANTS:
                db.add(Merchant(is_active=True, **data))
            print(f"🏪 {len(MERCHANTS)} comercios creados")

        if db.query(Customer).count() == 0:
            for data in CUSTOMERS:
                customer = Customer(full_name=data["full_name"], phone=data["phone"])
                db.add(customer)
                db.flush()
                for label, address in data["addresses"]:
                    db.add(CustomerAddress(customer_id=customer.id, label=label, address=address))
            print(f"👥 {len(CUSTOMERS)} clientes creados")

        for data in RIDERS:
            if db.query(Courier).filter(Courier.auth_user_id == data["auth_user_id"]).first():
                continue
            db.add(Courier(cash_on_hand=Decimal("0"), is_active=True, is_verified=True, **data))
            print(f"🛵 Rider creado: {data['full_name']}")

        db.commit()

    except Exception as e:
        print(f"❌ Error cargando datos: {e}")
        db.rollback()
        raise
    finally:
        db.close()

    print("\n🔑 Tokens de prueba (12 horas):")
    print(f"   dispatcher: {AuthService.create_access_token({'sub': 'operator-1', 'role': 'dispatcher', 'email': 'despacho@somar.co'})}")
    for data in RIDERS:
        token = AuthService.create_access_token(
            {"sub": data["auth_user_id"], "role": "rider", "email": data["email"]},
            expires_delta=timedelta(hours=12)
        )
        print(f"   {data['auth_user_id']}: {token}")


if __name__ == "__main__":
    seed_demo_data()
