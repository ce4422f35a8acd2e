# tests/test_api.py
from decimal import Decimal

from somar.shared.database.models import Courier, GlobalConfig

ORDER_PAYLOAD = {
    "order_type": "purchase",
    "payment_method": "cash",
    "customer_name": "María López",
    "delivery_address": "Calle 10 # 5-20",
    "shipping_fee": "100",
    "purchase_total": "500",
    "tip": "20",
}


def create_order(client, headers, **fields):
    payload = dict(ORDER_PAYLOAD, **fields)
    response = client.post("/api/v1/dispatch/orders", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["order"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/api/v1/courier/health").json()["service"] == "courier"


def test_requires_token(client):
    response = client.get("/api/v1/dispatch/orders")
    assert response.status_code in (401, 403)


def test_roles_are_enforced(client, rider_headers, dispatcher_headers):
    assert client.get("/api/v1/dispatch/orders", headers=rider_headers).status_code == 403
    assert client.get("/api/v1/courier/me", headers=dispatcher_headers).status_code == 403


def test_create_order_endpoint(client, dispatcher_headers, notifier):
    order = create_order(client, dispatcher_headers)

    assert order["order_number"] == "PED-00001"
    assert order["state"] == "unassigned"
    assert order["coarse_state"] == "pending"
    assert order["rider_earning"] == "86.66"
    assert order["amount_due_from_customer"] == "620.00"
    assert notifier.topics() == ["order-created"]


def test_create_order_validation_error(client, dispatcher_headers):
    response = client.post("/api/v1/dispatch/orders", json={"tip": "x"}, headers=dispatcher_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "VALIDATION_ERROR"
    fields = {e["field"] for e in body["details"]["errors"]}
    assert {"order_type", "payment_method", "customer_name", "delivery_address", "shipping_fee", "tip"} <= fields


def test_rider_profile_is_created_on_first_access(client, rider_headers, db):
    body = client.get("/api/v1/courier/me", headers=rider_headers).json()

    assert body["courier"]["full_name"] == "ana"
    assert body["custody"]["cash_custody_limit"] == "300.00"
    assert db.query(Courier).filter_by(auth_user_id="rider-ana").count() == 1

    client.get("/api/v1/courier/me", headers=rider_headers)
    assert db.query(Courier).filter_by(auth_user_id="rider-ana").count() == 1


def test_cash_order_end_to_end(client, dispatcher_headers, rider_headers, storage):
    order = create_order(client, dispatcher_headers)
    base = f"/api/v1/courier/orders/{order['id']}"

    available = client.get("/api/v1/courier/available-orders", headers=rider_headers).json()
    assert [(o["id"], o["can_accept"]) for o in available["available_orders"]] == [(order["id"], True)]

    accepted = client.post(f"{base}/accept", headers=rider_headers).json()
    assert accepted["order"]["state"] == "assigned"
    assert accepted["next_step"] == "Dirigirse al comercio"

    assert client.post(f"{base}/reach-merchant", headers=rider_headers).status_code == 200

    missing = client.post(f"{base}/confirm-purchase", data={"total": "450"}, headers=rider_headers)
    assert missing.status_code == 422
    assert missing.json()["error_code"] == "MISSING_PROOF_OF_PURCHASE"

    confirmed = client.post(
        f"{base}/confirm-purchase",
        data={"total": "450"},
        files={"receipt": ("factura.jpg", b"\xff\xd8fake", "image/jpeg")},
        headers=rider_headers
    ).json()
    assert confirmed["order"]["state"] == "picked_up"
    assert confirmed["order"]["amount_due_from_customer"] == "570.00"
    assert confirmed["order"]["purchase_receipt_url"] == storage.stored[0][2]

    for step in ("depart", "reach-customer", "finalize"):
        response = client.post(f"{base}/{step}", headers=rider_headers)
        assert response.status_code == 200, response.text
    assert response.json()["order"]["coarse_state"] == "delivered"

    custody = client.get("/api/v1/courier/custody", headers=rider_headers).json()
    assert custody["cash_on_hand"] == "570.00"
    assert custody["eligible_for_cash_orders"] is False

    again = client.post(f"{base}/finalize", headers=rider_headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "INVALID_TRANSITION"

    stats = client.get("/api/v1/courier/stats", headers=rider_headers).json()["stats"]
    assert stats["total_orders"] == 1
    assert stats["orders_today"] == 1
    assert stats["total_earnings"] == "86.66"
    assert stats["level"]["level"] == "Novato"


def test_transfer_order_needs_dispatch_validation(client, dispatcher_headers, rider_headers):
    order = create_order(client, dispatcher_headers, payment_method="bank_transfer", shipping_fee="80", tip="0")
    assert order["amount_due_from_customer"] == "0.00"
    base = f"/api/v1/courier/orders/{order['id']}"

    for step in ("accept", "reach-merchant"):
        client.post(f"{base}/{step}", headers=rider_headers)
    client.post(
        f"{base}/confirm-purchase",
        data={"total": "500"},
        files={"receipt": ("factura.jpg", b"img", "image/jpeg")},
        headers=rider_headers
    )
    for step in ("depart", "reach-customer"):
        client.post(f"{base}/{step}", headers=rider_headers)

    blocked = client.post(f"{base}/finalize", headers=rider_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error_code"] == "TRANSFER_NOT_CONFIRMED"
    assert blocked.json()["informational"] is True

    submitted = client.post(
        f"{base}/transfer-receipt",
        files={"receipt": ("transferencia.png", b"png", "image/png")},
        headers=rider_headers
    )
    assert submitted.json()["order"]["receipt_status"] == "pending"

    validated = client.post(
        f"/api/v1/dispatch/orders/{order['id']}/validate-transfer", headers=dispatcher_headers
    )
    assert validated.json()["order"]["receipt_status"] == "validated"

    delivered = client.post(f"{base}/finalize", headers=rider_headers).json()
    assert delivered["order"]["state"] == "delivered"

    custody = client.get("/api/v1/courier/custody", headers=rider_headers).json()
    assert custody["cash_on_hand"] == "0.00"


def test_full_custody_hides_cash_orders(client, dispatcher_headers, rider_headers, db):
    client.get("/api/v1/courier/me", headers=rider_headers)
    courier = db.query(Courier).filter_by(auth_user_id="rider-ana").one()
    courier.cash_on_hand = Decimal("300")
    db.commit()

    cash = create_order(client, dispatcher_headers)
    transfer = create_order(client, dispatcher_headers, payment_method="bank_transfer")

    available = client.get("/api/v1/courier/available-orders", headers=rider_headers).json()
    flags = {o["id"]: o["can_accept"] for o in available["available_orders"]}
    assert flags == {cash["id"]: False, transfer["id"]: True}

    refused = client.post(f"/api/v1/courier/orders/{cash['id']}/accept", headers=rider_headers)
    assert refused.status_code == 409
    assert refused.json()["error_code"] == "INSUFFICIENT_CUSTODY"
    assert refused.json()["informational"] is True

    accepted = client.post(f"/api/v1/courier/orders/{transfer['id']}/accept", headers=rider_headers)
    assert accepted.status_code == 200


def test_second_rider_sees_order_taken(client, dispatcher_headers, rider_headers, make_headers):
    order = create_order(client, dispatcher_headers)
    other = make_headers("rider-beto", "rider", "beto@somar.test")

    assert client.post(f"/api/v1/courier/orders/{order['id']}/accept", headers=rider_headers).status_code == 200
    taken = client.post(f"/api/v1/courier/orders/{order['id']}/accept", headers=other)

    assert taken.status_code == 409
    assert taken.json()["error_code"] == "ALREADY_ASSIGNED"

    stolen = client.post(f"/api/v1/courier/orders/{order['id']}/reach-merchant", headers=other)
    assert stolen.status_code == 403
    assert stolen.json()["error_code"] == "NOT_ORDER_OWNER"


def test_dispatch_assign_cancel_and_dashboard(client, dispatcher_headers, make_courier):
    courier = make_courier()
    first = create_order(client, dispatcher_headers)
    second = create_order(client, dispatcher_headers)

    assigned = client.post(
        f"/api/v1/dispatch/orders/{first['id']}/assign",
        json={"courier_id": courier.id},
        headers=dispatcher_headers
    ).json()
    assert assigned["order"]["courier_name"] == courier.full_name

    canceled = client.post(
        f"/api/v1/dispatch/orders/{second['id']}/cancel",
        json={"reason": "Cliente canceló"},
        headers=dispatcher_headers
    ).json()
    assert canceled["order"]["state"] == "canceled"

    board = client.get(
        "/api/v1/dispatch/orders", params={"coarse_state": ["assigned", "canceled"]}, headers=dispatcher_headers
    ).json()
    assert {o["id"] for o in board["orders"]} == {first["id"], second["id"]}

    assignable = client.get("/api/v1/dispatch/orders/assignable", headers=dispatcher_headers).json()
    assert assignable["count"] == 0

    active = client.get(f"/api/v1/dispatch/couriers/{courier.id}/active-orders", headers=dispatcher_headers).json()
    assert [o["id"] for o in active["orders"]] == [first["id"]]

    cancel_again = client.post(f"/api/v1/dispatch/orders/{second['id']}/cancel", headers=dispatcher_headers)
    assert cancel_again.status_code == 409


def test_unknown_order_is_404(client, dispatcher_headers):
    response = client.get("/api/v1/dispatch/orders/4040", headers=dispatcher_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


def test_split_preview_and_config(client, dispatcher_headers, db):
    preview = client.post(
        "/api/v1/dispatch/split-preview",
        json={"shipping_fee": "100", "purchase_total": "500", "tip": "20"},
        headers=dispatcher_headers
    ).json()
    assert preview["split"] == {
        "rider_earning": "86.66",
        "platform_margin": "33.34",
        "amount_due_from_customer": "620.00",
    }

    defaults = client.get("/api/v1/dispatch/config", headers=dispatcher_headers).json()
    assert Decimal(defaults["rider_share_percent"]) == Decimal("66.66")
    assert Decimal(defaults["cash_custody_limit"]) == Decimal("300")

    db.add(GlobalConfig(rider_share_percent=Decimal("70"), platform_share_percent=Decimal("30"), cash_custody_limit=Decimal("500")))
    db.commit()

    refreshed = client.post("/api/v1/dispatch/config/refresh", headers=dispatcher_headers).json()
    assert Decimal(refreshed["rider_share_percent"]) == Decimal("70")
    assert Decimal(refreshed["cash_custody_limit"]) == Decimal("500")


def test_previewed_draft_can_be_created(client, dispatcher_headers):
    draft = {"shipping_fee": "12,5", "purchase_total": "0", "tip": "0", "payment_method": "cash"}

    preview = client.post("/api/v1/dispatch/split-preview", json=draft, headers=dispatcher_headers)
    assert preview.status_code == 200
    order = create_order(client, dispatcher_headers, **draft)

    assert order["rider_earning"] == preview.json()["split"]["rider_earning"] == "8.33"
    assert order["amount_due_from_customer"] == preview.json()["split"]["amount_due_from_customer"]


def test_broken_global_config_is_reported(client, rider_headers, dispatcher_headers, db):
    db.add(GlobalConfig(rider_share_percent=Decimal("70"), platform_share_percent=Decimal("20"), cash_custody_limit=Decimal("300")))
    db.commit()

    response = client.get("/api/v1/courier/me", headers=rider_headers)
    assert response.status_code == 500
    assert response.json()["error_code"] == "INVALID_GLOBAL_CONFIG"

    refresh = client.post("/api/v1/dispatch/config/refresh", headers=dispatcher_headers)
    assert refresh.status_code == 500
    assert Decimal(refresh.json()["details"]["rider_share_percent"]) == Decimal("70")


def test_admin_without_rider_profile_gets_no_courier(client, make_headers, db):
    admin_headers = make_headers("admin-1", "admin", "admin@somar.test")

    response = client.get("/api/v1/courier/me", headers=admin_headers)

    assert response.status_code == 403
    assert db.query(Courier).filter_by(auth_user_id="admin-1").count() == 0
    assert client.get("/api/v1/dispatch/orders", headers=admin_headers).status_code == 200
