# tests/test_dispatch_service.py
import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
import pytest

from somar.core.errors import InsufficientCustody, NotFoundError, ValidationError
from somar.shared.database.models import Customer, CustomerAddress, Merchant, Order
from somar.shared.schemas.enums import CoarseState, OrderState, PaymentMethod
from somar.shared.services.notifier import ORDER_CREATED, ORDER_UPDATED
from somar.modules.dispatch.schemas import OrderCreateRequest, SplitPreviewRequest
from somar.modules.dispatch.service import DispatchService


@pytest.fixture
def service(db, config, storage, notifier):
    return DispatchService(db, config, storage, notifier)


def create(service, **fields):
    payload = {
        "order_type": "purchase",
        "payment_method": "cash",
        "customer_name": "María López",
        "delivery_address": "Calle 10 # 5-20",
        "shipping_fee": "100",
        "purchase_total": "500",
        "tip": "20",
    }
    payload.update(fields)
    return asyncio.run(service.create_order(OrderCreateRequest(**payload)))


def test_create_order_computes_split_and_number(service, notifier):
    response = create(service)
    order = response.order

    assert order.order_number == "PED-00001"
    assert order.state == OrderState.UNASSIGNED
    assert order.coarse_state == CoarseState.PENDING
    assert order.rider_earning == Decimal("86.66")
    assert order.platform_margin == Decimal("33.34")
    assert order.amount_due_from_customer == Decimal("620.00")
    assert order.estimated_purchase_total == Decimal("500.00")
    assert notifier.topics() == [ORDER_CREATED]

    second = create(service, payment_method="bank_transfer")
    assert second.order.order_number == "PED-00002"
    assert second.order.amount_due_from_customer == Decimal("0.00")


def test_create_order_reports_every_invalid_field(service, db):
    with pytest.raises(ValidationError) as exc:
        create(
            service,
            order_type="express",
            payment_method=None,
            customer_name="  ",
            delivery_address="",
            shipping_fee="cien",
            tip="-3"
        )

    assert set(exc.value.fields) == {
        "order_type", "payment_method", "customer_name", "delivery_address", "shipping_fee", "tip"
    }
    assert db.query(Order).count() == 0


def test_shipping_fee_is_required(service):
    with pytest.raises(ValidationError) as exc:
        create(service, shipping_fee=None)
    assert exc.value.fields == ["shipping_fee"]


def test_pickup_only_orders_have_no_purchase(service):
    response = create(service, order_type="pickup_only", purchase_total="500")

    assert response.order.purchase_total == Decimal("0.00")
    assert response.order.amount_due_from_customer == Decimal("120.00")


def test_saved_customer_and_address_fill_the_order(service, db):
    customer = Customer(full_name="Carlos Pérez", phone="3101112233")
    db.add(customer)
    db.flush()
    address = CustomerAddress(customer_id=customer.id, label="Casa", address="Carrera 7 # 12-30")
    merchant = Merchant(name="Droguería Central", is_active=True)
    db.add_all([address, merchant])
    db.commit()

    response = create(
        service,
        customer_name=None,
        delivery_address=None,
        customer_id=customer.id,
        address_id=address.id,
        merchant_id=merchant.id
    )

    assert response.order.customer_name == "Carlos Pérez"
    assert response.order.customer_phone == "3101112233"
    assert response.order.delivery_address == "Carrera 7 # 12-30"
    assert response.order.merchant_name == "Droguería Central"


def test_address_must_belong_to_customer(service, db):
    owner = Customer(full_name="Ana")
    stranger = Customer(full_name="Luis")
    db.add_all([owner, stranger])
    db.flush()
    address = CustomerAddress(customer_id=owner.id, address="Calle 1")
    db.add(address)
    db.commit()

    with pytest.raises(ValidationError) as exc:
        create(service, customer_id=stranger.id, address_id=address.id, delivery_address=None)
    assert exc.value.fields == ["address_id"]


def test_create_with_courier_assigns_in_the_same_step(service, notifier, make_courier):
    courier = make_courier()

    response = create(service, courier_id=courier.id)

    assert response.order.state == OrderState.ASSIGNED
    assert response.order.courier_id == courier.id
    assert response.order.assigned_at is not None
    assert notifier.topics() == [ORDER_CREATED, ORDER_UPDATED]


def test_creation_and_assignment_share_one_clock(service, db, make_courier):
    courier = make_courier()

    response = create(service, courier_id=courier.id)
    stored = db.get(Order, response.order.id, populate_existing=True)

    assert stored.assigned_at >= stored.created_at
    assert abs(datetime.now() - stored.created_at) < timedelta(minutes=1)


def test_refused_assignment_creates_nothing(service, db, make_courier):
    courier = make_courier(cash_on_hand="300")

    with pytest.raises(InsufficientCustody):
        create(service, courier_id=courier.id)

    assert db.query(Order).count() == 0


def test_dashboard_filters_by_coarse_state(service, make_courier, make_order):
    courier = make_courier()
    make_order()
    make_order(state=OrderState.AT_MERCHANT, courier=courier)
    make_order(state=OrderState.ARRIVED_AT_CUSTOMER, courier=courier)
    make_order(state=OrderState.DELIVERED, courier=courier)
    make_order(state=OrderState.CANCELED)

    active = asyncio.run(service.list_dashboard_orders())
    assert active.count == 3

    en_route = asyncio.run(service.list_dashboard_orders([CoarseState.EN_ROUTE]))
    assert [o.state for o in en_route.orders] == [OrderState.ARRIVED_AT_CUSTOMER]

    closed = asyncio.run(service.list_dashboard_orders(["delivered", "canceled"]))
    assert closed.count == 2


def test_assignable_and_active_lists(service, make_courier, make_order):
    courier = make_courier()
    other = make_courier()
    open_order = make_order()
    mine = make_order(state=OrderState.PICKED_UP, courier=courier)
    make_order(state=OrderState.DELIVERED, courier=courier)
    make_order(state=OrderState.ASSIGNED, courier=other)

    assignable = asyncio.run(service.list_assignable_orders())
    assert [o.id for o in assignable.orders] == [open_order.id]

    active = asyncio.run(service.list_active_for_courier(courier.id))
    assert [o.id for o in active.orders] == [mine.id]

    with pytest.raises(NotFoundError):
        asyncio.run(service.list_active_for_courier(999))


def test_cancel_is_delegated(service, make_order):
    order = make_order()

    response = asyncio.run(service.cancel_order(order.id, "Cliente no responde"))

    assert response.order.state == OrderState.CANCELED
    assert response.order.cancel_reason == "Cliente no responde"


def test_available_couriers_show_cash_eligibility(service, make_courier):
    make_courier(cash_on_hand="10", name="Ana")
    make_courier(cash_on_hand="310", name="Beto")
    make_courier(is_active=False, name="Ciro")

    response = asyncio.run(service.list_available_couriers())

    assert [(c.full_name, c.eligible_for_cash_orders) for c in response.couriers] == [
        ("Ana", True),
        ("Beto", False),
    ]


def test_split_preview_never_fails(service):
    response = asyncio.run(service.preview_split(SplitPreviewRequest(
        shipping_fee="100", purchase_total="abc", tip="-5", payment_method=PaymentMethod.CASH.value
    )))

    assert response.split.rider_earning == Decimal("66.66")
    assert response.split.amount_due_from_customer == Decimal("100.00")


def test_decimal_comma_is_read_like_the_preview(service):
    draft = {"shipping_fee": "12,5", "purchase_total": "0", "tip": "0", "payment_method": "cash"}
    preview = asyncio.run(service.preview_split(SplitPreviewRequest(**draft)))

    response = create(service, **draft)

    assert response.order.shipping_fee == Decimal("12.50")
    assert response.order.rider_earning == preview.split.rider_earning == Decimal("8.33")
    assert response.order.amount_due_from_customer == preview.split.amount_due_from_customer


def test_amounts_that_are_not_numbers_are_rejected(service):
    with pytest.raises(ValidationError) as exc:
        create(service, shipping_fee="12,5,0", tip="Infinity")
    assert set(exc.value.fields) == {"shipping_fee", "tip"}
