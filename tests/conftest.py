# tests/conftest.py
from datetime import datetime
from decimal import Decimal
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from somar.config.database import get_db
from somar.core.auth.service import AuthService
from somar.shared.database.models import Base, Courier, Order
from somar.shared.schemas.enums import OrderState, OrderType, PaymentMethod, ReceiptStatus
from somar.shared.services.config_provider import GlobalConfigProvider, default_split_config
from somar.shared.services.receipt_storage import ReceiptFile
from somar.modules.orders.split_calculator import compute_split
from somar.modules.orders.state_machine import OrderStateMachine


class FakeReceiptStorage:
    """Guarda los comprobantes en memoria; puede forzarse a fallar"""

    def __init__(self):
        self.stored = []
        self.error = None
        # Se ejecuta justo antes de guardar; sirve para intercalar otra sesión
        self.before_store = None

    def store(self, order_id, file):
        if self.before_store is not None:
            self.before_store()
        if self.error is not None:
            raise self.error
        url = f"https://receipts.test/{order_id}/{len(self.stored) + 1}/{file.filename}"
        self.stored.append((order_id, file, url))
        return url


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def publish(self, topic, event):
        self.events.append((topic, event))

    def topics(self):
        return [topic for topic, _ in self.events]

    def shutdown(self):
        pass


@pytest.fixture
def engine(tmp_path):
    # Archivo y no memoria: las pruebas de carrera abren dos sesiones
    engine = create_engine(
        f"sqlite:///{tmp_path / 'somar-test.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def config():
    return default_split_config()


@pytest.fixture
def storage():
    return FakeReceiptStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def machine(db, config, storage, notifier):
    return OrderStateMachine(db, config, storage, notifier)


@pytest.fixture
def receipt():
    return ReceiptFile(filename="factura.jpg", content_type="image/jpeg", content=b"\xff\xd8fake-jpeg")


@pytest.fixture
def make_courier(db):
    counter = {"n": 0}

    def _make(cash_on_hand="0", is_active=True, name=None):
        counter["n"] += 1
        courier = Courier(
            auth_user_id=f"auth-{counter['n']}",
            full_name=name or f"Rider {counter['n']}",
            email=f"rider{counter['n']}@somar.test",
            phone="3000000000",
            cash_on_hand=Decimal(cash_on_hand),
            is_active=is_active,
            is_verified=True
        )
        db.add(courier)
        db.commit()
        db.refresh(courier)
        return courier

    return _make


@pytest.fixture
def make_order(db, config):
    """Insertar un pedido en el estado pedido, con montos calculados"""
    counter = {"n": 0}

    def _make(
        order_type=OrderType.PURCHASE,
        payment_method=PaymentMethod.CASH,
        state=OrderState.UNASSIGNED,
        courier=None,
        shipping_fee="100",
        purchase_total="500",
        tip="20",
        receipt_status=ReceiptStatus.NONE,
        receipt_url=None
    ):
        counter["n"] += 1
        split = compute_split(shipping_fee, purchase_total, tip, payment_method, config)
        order = Order(
            sequence=counter["n"],
            created_at=datetime.now(),
            order_type=OrderType(order_type).value,
            payment_method=PaymentMethod(payment_method).value,
            customer_name="María López",
            delivery_address="Calle 10 # 5-20",
            shipping_fee=Decimal(shipping_fee),
            purchase_total=Decimal(purchase_total),
            estimated_purchase_total=Decimal(purchase_total),
            tip=Decimal(tip),
            rider_earning=split.rider_earning,
            platform_margin=split.platform_margin,
            amount_due_from_customer=split.amount_due_from_customer,
            state=OrderState(state).value,
            courier_id=courier.id if courier is not None else None,
            receipt_status=ReceiptStatus(receipt_status).value,
            receipt_url=receipt_url
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def app(session_factory, storage, notifier):
    from somar.main import app as fastapi_app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.state.config_provider = GlobalConfigProvider(ttl_seconds=0)
    fastapi_app.state.receipt_storage = storage
    fastapi_app.state.notifier = notifier
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # Sin bloque "with": el lifespan real no se ejecuta en pruebas
    return TestClient(app)


def auth_headers(user_id, role, email=None):
    token = AuthService.create_access_token({"sub": user_id, "role": role, "email": email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def dispatcher_headers():
    return auth_headers("operator-1", "dispatcher", "despacho@somar.test")


@pytest.fixture
def rider_headers():
    return auth_headers("rider-ana", "rider", "ana@somar.test")


@pytest.fixture
def make_headers():
    return auth_headers
