"""Integration tests for the storefront HTTP API.

Runs the full order lifecycle through the routers with a real (SQLite)
database; only authentication is replaced by fixed bearer tokens.
"""

import pytest
from tests.factories import seed_customer, seed_product

CUSTOMER_ID = "customer-1"


async def _checkout(client, headers, product_id, quantity=1, **extra):
    return await client.post(
        "/store/checkout",
        json={"items": [{"product_id": product_id, "quantity": quantity}], **extra},
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_creates_pending_purchase(client, db_session, customer_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session, stock=5, price="250.00")

    response = await _checkout(client, customer_headers, product.id, 2)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["user_id"] == CUSTOMER_ID
    assert data["total_amount"] == "500.00"
    assert data["items"][0]["quantity"] == 2
    assert data["items"][0]["price_at_time"] == "250.00"
    assert data["transaction_details"]["first_name"] == "Juan"

    mine = await client.get("/store/purchases", headers=customer_headers)
    assert mine.status_code == 200
    assert mine.json()["total"] == 1
    assert mine.json()["items"][0]["id"] == data["id"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_insufficient_stock(client, db_session, customer_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session, stock=1)

    response = await _checkout(client, customer_headers, product.id, 3)

    assert response.status_code == 409
    data = response.json()
    assert data["error_type"] == "InsufficientStock"
    assert data["product_id"] == product.id
    assert data["requested"] == 3
    assert data["available"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_incomplete_profile(client, db_session, customer_headers):
    await seed_customer(db_session, id=CUSTOMER_ID, phone_number=None)
    product = await seed_product(db_session)

    response = await _checkout(client, customer_headers, product.id)

    assert response.status_code == 422
    assert response.json()["error_type"] == "IncompleteProfile"
    assert response.json()["missing_fields"] == ["phone_number"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_rejects_zero_quantity(client, db_session, customer_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)

    response = await _checkout(client, customer_headers, product.id, 0)

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_requires_authentication(client):
    response = await client.get("/store/purchases")

    assert response.status_code in (401, 403)


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_full_lifecycle(client, db_session, customer_headers, admin_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session, stock=10, product_name="Tote Bag")
    purchase_id = (await _checkout(client, customer_headers, product.id, 3)).json()["id"]

    approved = await client.post(
        f"/admin/store/purchases/{purchase_id}/approve", headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["applied"] is True
    assert approved.json()["to_status"] == "processing"

    shipped = await client.post(
        f"/admin/store/purchases/{purchase_id}/advance",
        json={"tracking_number": "JT555", "expected_delivery_date": "2026-11-02"},
        headers=admin_headers,
    )
    assert shipped.status_code == 200
    assert shipped.json()["purchase"]["status"] == "delivering"

    completed = await client.post(
        f"/admin/store/purchases/{purchase_id}/complete", headers=admin_headers
    )
    assert completed.json()["purchase"]["status"] == "completed"

    inbox = (await client.get("/store/notifications", headers=customer_headers)).json()
    types = [n["type"] for n in inbox]
    assert types.count("review_request") == 1
    assert types.count("tracking_update") == 1
    tracking = next(n for n in inbox if n["type"] == "tracking_update")
    assert tracking["tracking_number"] == "JT555"
    assert tracking["expected_delivery_date"] == "2026-11-02"

    again = await client.post(
        f"/admin/store/purchases/{purchase_id}/approve", headers=admin_headers
    )
    assert again.status_code == 409
    assert again.json()["error_type"] == "InvalidTransition"
    assert again.json()["current_status"] == "completed"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reject_restores_stock_and_is_idempotent(
    client, db_session, customer_headers, admin_headers
):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session, stock=10)
    purchase_id = (await _checkout(client, customer_headers, product.id, 3)).json()["id"]

    first = await client.post(
        f"/admin/store/purchases/{purchase_id}/reject",
        json={"reason": "Out of stock at supplier"},
        headers=admin_headers,
    )
    second = await client.post(
        f"/admin/store/purchases/{purchase_id}/reject", headers=admin_headers
    )

    assert first.json()["applied"] is True
    assert first.json()["compensation"] == {
        "restored_units": 3,
        "complete": True,
        "failures": [],
    }
    assert second.status_code == 200
    assert second.json()["applied"] is False

    movements = (
        await client.get(
            f"/admin/store/purchases/{purchase_id}/movements", headers=admin_headers
        )
    ).json()
    assert movements["outstanding_reservation"] == 0
    assert [m["movement_type"] for m in movements["movements"]] == [
        "reservation",
        "release",
    ]

    inventory = (await client.get("/admin/store/inventory", headers=admin_headers)).json()
    assert next(r for r in inventory if r["product_id"] == product.id)["quantity"] == 10


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cancel(client, db_session, customer_headers, other_customer_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]

    reasons = await client.get(
        "/store/purchases/cancellation-reasons", headers=customer_headers
    )
    assert "Changed my mind" in reasons.json()

    stranger = await client.post(
        f"/store/purchases/{purchase_id}/cancel",
        json={"reason": "Changed my mind"},
        headers=other_customer_headers,
    )
    assert stranger.status_code == 404

    invalid = await client.post(
        f"/store/purchases/{purchase_id}/cancel",
        json={"reason": "Just because"},
        headers=customer_headers,
    )
    assert invalid.status_code == 400
    assert invalid.json()["error_type"] == "InvalidCancellationReason"

    cancelled = await client.post(
        f"/store/purchases/{purchase_id}/cancel",
        json={"reason": "Changed my mind"},
        headers=customer_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["purchase"]["status"] == "cancelled"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_approve_with_incomplete_profile_cancels(
    client, db_session, customer_headers, admin_headers
):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]
    await client.patch(
        "/store/profile", json={"phone_number": ""}, headers=customer_headers
    )

    response = await client.post(
        f"/admin/store/purchases/{purchase_id}/approve", headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["to_status"] == "cancelled"
    assert response.json()["missing_fields"] == ["phone_number"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_advance_without_tracking_number(
    client, db_session, customer_headers, admin_headers
):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]
    await client.post(f"/admin/store/purchases/{purchase_id}/approve", headers=admin_headers)

    response = await client.post(
        f"/admin/store/purchases/{purchase_id}/advance",
        json={"tracking_number": " "},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_type"] == "MissingTrackingNumber"


# ---------------------------------------------------------------------------
# Admin queues
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customer_cannot_use_admin_routes(client, customer_headers):
    response = await client.get("/admin/store/purchases", headers=customer_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_queue_search_and_counts(
    client, db_session, customer_headers, admin_headers
):
    await seed_customer(db_session, id=CUSTOMER_ID, first_name="Lorna")
    lamp = await seed_product(db_session, product_name="Reading Lamp")
    mug = await seed_product(db_session, product_name="Coffee Mug")
    lamp_order = (await _checkout(client, customer_headers, lamp.id)).json()["id"]
    mug_order = (await _checkout(client, customer_headers, mug.id)).json()["id"]
    await client.post(f"/admin/store/purchases/{mug_order}/approve", headers=admin_headers)

    searched = await client.get(
        "/admin/store/purchases", params={"q": "lamp"}, headers=admin_headers
    )
    assert [p["id"] for p in searched.json()["items"]] == [lamp_order]

    pending = await client.get(
        "/admin/store/purchases", params={"status": "pending"}, headers=admin_headers
    )
    data = pending.json()
    assert [p["id"] for p in data["items"]] == [lamp_order]
    assert data["queue_counts"]["pending"] == 1
    assert data["queue_counts"]["processing"] == 1
    assert data["queue_counts"]["completed"] == 0


# ---------------------------------------------------------------------------
# Profile & addresses
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_profile_and_address_book(client, customer_headers):
    profile = await client.get("/store/profile", headers=customer_headers)
    assert profile.status_code == 200
    assert profile.json()["id"] == CUSTOMER_ID

    updated = await client.patch(
        "/store/profile",
        json={"first_name": "Ana", "last_name": "Lim", "phone_number": "09175550000"},
        headers=customer_headers,
    )
    assert updated.json()["first_name"] == "Ana"

    address = {
        "address_name": "Home",
        "address_line1": "8 Luna St",
        "barangay": "Poblacion",
        "city": "Iloilo City",
        "state_province": "Iloilo",
        "postal_code": "5000",
        "phone_number": "09175550000",
    }
    first = await client.post("/store/addresses", json=address, headers=customer_headers)
    second = await client.post(
        "/store/addresses",
        json={**address, "address_name": "Work"},
        headers=customer_headers,
    )
    assert first.status_code == 201
    assert first.json()["is_default"] is True
    assert first.json()["recipient_name"] == "Ana Lim"
    assert first.json()["country"] == "Philippines"
    assert second.json()["is_default"] is False

    moved = await client.post(
        f"/store/addresses/{second.json()['id']}/default", headers=customer_headers
    )
    assert moved.json()["is_default"] is True

    deleted = await client.delete(
        f"/store/addresses/{second.json()['id']}", headers=customer_headers
    )
    assert deleted.status_code == 204

    remaining = (await client.get("/store/addresses", headers=customer_headers)).json()
    assert [(a["id"], a["is_default"]) for a in remaining] == [(first.json()["id"], True)]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_notification_inbox(client, db_session, customer_headers, admin_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]

    sent = await client.post(
        "/admin/store/notifications",
        json={"user_id": CUSTOMER_ID, "message": "Packed!", "purchase_id": purchase_id},
        headers=admin_headers,
    )
    assert sent.status_code == 201

    count = await client.get("/store/notifications/unread-count", headers=customer_headers)
    assert count.json() == {"unread": 2}

    inbox = (await client.get("/store/notifications", headers=customer_headers)).json()
    assert inbox[0]["message"] == "Packed!"

    read = await client.post(
        f"/store/notifications/{inbox[0]['id']}/read", headers=customer_headers
    )
    assert read.json()["is_read"] is True

    read_all = await client.post("/store/notifications/read-all", headers=customer_headers)
    assert read_all.json() == {"updated": 1}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_message_for_foreign_purchase(
    client, db_session, customer_headers, admin_headers
):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]

    response = await client.post(
        "/admin/store/notifications",
        json={"user_id": "customer-2", "message": "Hi", "purchase_id": purchase_id},
        headers=admin_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delivery_reminders(client, db_session, customer_headers, admin_headers):
    await seed_customer(db_session, id=CUSTOMER_ID)
    product = await seed_product(db_session)
    purchase_id = (await _checkout(client, customer_headers, product.id)).json()["id"]
    await client.post(f"/admin/store/purchases/{purchase_id}/approve", headers=admin_headers)
    await client.post(
        f"/admin/store/purchases/{purchase_id}/advance",
        json={"tracking_number": "JT42", "expected_delivery_date": "2026-11-02"},
        headers=admin_headers,
    )

    first = await client.post(
        "/admin/store/notifications/delivery-reminders",
        json={"today": "2026-11-01"},
        headers=admin_headers,
    )
    second = await client.post(
        "/admin/store/notifications/delivery-reminders",
        json={"today": "2026-11-01"},
        headers=admin_headers,
    )

    assert first.json()["sent"] == 1
    assert first.json()["notifications"][0]["tracking_number"] == "JT42"
    assert second.json()["sent"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bulk_message_history_and_delete(
    client, db_session, customer_headers, other_customer_headers, admin_headers
):
    await seed_customer(
        db_session,
        id=CUSTOMER_ID,
        first_name="Ana",
        last_name="Reyes",
        email="ana@test.com",
    )

    sent = await client.post(
        "/admin/store/notifications/bulk",
        json={"user_ids": [CUSTOMER_ID, "customer-2"], "message": " Holiday sale! "},
        headers=admin_headers,
    )
    assert sent.status_code == 201
    assert sent.json()["sent"] == 2
    assert sent.json()["failed"] == []

    history = await client.get(
        "/admin/store/notifications/history",
        params={"type": "general"},
        headers=admin_headers,
    )
    assert history.status_code == 200
    by_user = {entry["user_id"]: entry for entry in history.json()}
    assert by_user[CUSTOMER_ID]["recipient_name"] == "Ana Reyes"
    assert by_user[CUSTOMER_ID]["recipient_email"] == "ana@test.com"
    assert by_user[CUSTOMER_ID]["message"] == "Holiday sale!"
    assert by_user["customer-2"]["recipient_name"] is None

    deleted = await client.delete(
        f"/admin/store/notifications/{by_user[CUSTOMER_ID]['id']}", headers=admin_headers
    )
    assert deleted.status_code == 204
    inbox = (await client.get("/store/notifications", headers=customer_headers)).json()
    assert inbox == []
    other_inbox = await client.get("/store/notifications", headers=other_customer_headers)
    assert len(other_inbox.json()) == 1

    missing = await client.delete(
        f"/admin/store/notifications/{by_user[CUSTOMER_ID]['id']}", headers=admin_headers
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bulk_message_validation_and_access(client, customer_headers, admin_headers):
    blank = await client.post(
        "/admin/store/notifications/bulk",
        json={"user_ids": [CUSTOMER_ID], "message": "   "},
        headers=admin_headers,
    )
    no_recipients = await client.post(
        "/admin/store/notifications/bulk",
        json={"user_ids": [], "message": "Hi"},
        headers=admin_headers,
    )
    as_customer = await client.get(
        "/admin/store/notifications/history", headers=customer_headers
    )

    assert blank.status_code == 422
    assert no_recipients.status_code == 422
    assert as_customer.status_code == 403


# ---------------------------------------------------------------------------
# Inventory administration
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inventory_adjustments(client, db_session, admin_headers):
    product = await seed_product(db_session, stock=2)

    restocked = await client.patch(
        f"/admin/store/inventory/{product.id}",
        json={"delta": 8, "notes": "Delivery"},
        headers=admin_headers,
    )
    assert restocked.status_code == 200
    assert restocked.json()["quantity"] == 10

    counted = await client.patch(
        f"/admin/store/inventory/{product.id}",
        json={"quantity": 4},
        headers=admin_headers,
    )
    assert counted.json()["quantity"] == 4
    assert counted.json()["is_low_stock"] is True

    both = await client.patch(
        f"/admin/store/inventory/{product.id}",
        json={"delta": 1, "quantity": 1},
        headers=admin_headers,
    )
    assert both.status_code == 400

    negative = await client.patch(
        f"/admin/store/inventory/{product.id}",
        json={"delta": -5},
        headers=admin_headers,
    )
    assert negative.status_code == 400
    assert negative.json()["error_type"] == "InvalidStockAdjustment"

    low = await client.get(
        "/admin/store/inventory", params={"low_stock_only": True}, headers=admin_headers
    )
    assert [r["product_name"] for r in low.json()] == [product.product_name]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_compensation_failures_listed(client, admin_headers):
    response = await client.get("/admin/store/compensation-failures", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == []


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health_and_request_id(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "storefront"}
    assert response.headers["X-Request-ID"] == "req-123"
