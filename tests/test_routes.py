from decimal import Decimal

import pytest


@pytest.fixture
def shop(make_product, make_design_file, make_discount):
    poster = make_product("25.00", name="Poster")
    poster_file = make_design_file(poster, max_downloads=2)
    custom = make_product("30.00", name="Custom Card", customization_enabled=True)
    custom_file = make_design_file(custom)
    make_discount("SAVE20", value="20")
    make_discount("FREEBIE", value="100")
    return {"poster": poster, "poster_file": poster_file, "custom": custom, "custom_file": custom_file}


def _place(client, headers, product, **body):
    body.setdefault("items", [{"product_id": product.id}])
    return client.post("/orders", json=body, headers=headers)


def test_requires_authentication(client):
    assert client.get("/orders").status_code == 401


def test_health_check(client):
    data = client.get("/health/check").json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"


def test_place_order_with_idempotency_key(client, customer, auth_headers, shop):
    headers = auth_headers(customer)

    first = _place(client, headers, shop["poster"], discount_code="save20", idempotency_key="cart-42")
    again = _place(client, headers, shop["poster"], discount_code="save20", idempotency_key="cart-42")

    assert first.status_code == 201
    assert again.status_code == 200
    assert again.json()["id"] == first.json()["id"]
    assert Decimal(first.json()["final_total"]) == Decimal("20.00")
    assert first.json()["history"][0]["event_type"] == "pending"

    listing = client.get("/orders", headers=headers).json()
    assert listing["total_items"] == 1


def test_invalid_discount_code_is_reported(client, customer, auth_headers, shop):
    resp = _place(client, auth_headers(customer), shop["poster"], discount_code="NOPE")

    assert resp.status_code == 404
    assert resp.json()["reason"] == "invalid_code"


def test_validate_discount(client, customer, auth_headers, shop):
    resp = client.post(
        "/discounts/validate",
        json={"code": "SAVE20", "cart_value": "100.00"},
        headers=auth_headers(customer),
    )

    assert resp.status_code == 200
    assert Decimal(resp.json()["discount_amount"]) == Decimal("20.00")
    assert Decimal(resp.json()["final_total"]) == Decimal("80.00")


def test_other_customers_order_is_forbidden(client, make_user, customer, auth_headers, shop):
    order = _place(client, auth_headers(customer), shop["poster"]).json()

    resp = client.get(f"/orders/{order['id']}", headers=auth_headers(make_user()))

    assert resp.status_code == 403
    assert resp.json()["reason"] == "access_denied"


def test_pay_and_download(client, customer, auth_headers, shop, storage):
    headers = auth_headers(customer)
    order = _place(client, headers, shop["poster"]).json()

    intent = client.post(f"/payments/{order['id']}/intent", headers=headers).json()
    assert Decimal(intent["amount"]) == Decimal("25.00")
    assert intent["key_id"] == "rzp_test_key"

    capture = {"intent_id": intent["intent_id"], "payment_id": "pay_1", "signature": "sig"}
    paid = client.post(f"/payments/{order['id']}/capture", json=capture, headers=headers)
    assert paid.status_code == 200
    assert paid.json()["already_captured"] is False
    assert paid.json()["order"]["order_status"] == "completed"

    repeat = client.post(f"/payments/{order['id']}/capture", json=capture, headers=headers)
    assert repeat.json()["already_captured"] is True
    assert repeat.json()["message"] == "Payment already processed"

    file_id = shop["poster_file"].id
    download = client.get(f"/design-files/{file_id}/download", headers=headers)
    assert download.status_code == 200
    assert download.headers["x-downloads-remaining"] == "1"
    assert "attachment" in download.headers["content-disposition"]
    assert download.content == f"contents of {shop['poster_file'].storage_key}".encode()

    client.get(f"/design-files/{file_id}/download", headers=headers)
    exhausted = client.get(f"/design-files/{file_id}/download", headers=headers)
    assert exhausted.status_code == 429
    assert exhausted.json()["reason"] == "quota_exhausted"
    assert len(storage.opened) == 2


def test_download_without_purchase_is_denied(client, customer, auth_headers, shop, storage):
    resp = client.get(f"/design-files/{shop['poster_file'].id}/download", headers=auth_headers(customer))

    assert resp.status_code == 403
    assert resp.json()["reason"] == "access_denied"
    assert storage.opened == []


def test_customer_cancels_unpaid_order(client, customer, auth_headers, shop):
    headers = auth_headers(customer)
    order = _place(client, headers, shop["poster"]).json()

    resp = client.post(f"/orders/{order['id']}/cancel", json={"reason": "changed my mind"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["order_status"] == "cancelled"

    again = client.post(f"/orders/{order['id']}/cancel", headers=headers)
    assert again.status_code == 409


def test_free_order_review_then_admin_release(client, customer, admin, auth_headers, shop):
    headers = auth_headers(customer)
    admin_headers = auth_headers(admin)
    order = _place(
        client,
        headers,
        shop["custom"],
        discount_code="FREEBIE",
        items=[{
            "product_id": shop["custom"].id,
            "customizations": {
                "colors": [{"name": "Gold", "hex": "#FFD700"}],
                "customization_notes": "Names on the front",
            },
        }],
    ).json()

    routed = client.post(f"/orders/{order['id']}/complete-free", headers=headers).json()
    assert routed["route"] == "needs_review"
    assert routed["order"]["order_status"] == "pending"
    assert routed["order"]["payment_status"] == "free"

    again = client.post(f"/orders/{order['id']}/complete-free", headers=headers).json()
    assert again["already_processed"] is True

    file_id = shop["custom_file"].id
    assert client.get(f"/design-files/{file_id}/download", headers=headers).status_code == 403

    granted = client.post(
        f"/admin/orders/{order['id']}/grants", json={"design_file_ids": [file_id]}, headers=admin_headers
    )
    assert [g["design_file_id"] for g in granted.json()] == [file_id]

    completed = client.post(f"/admin/orders/{order['id']}/complete", headers=admin_headers)
    assert completed.status_code == 200
    assert completed.json()["order_status"] == "completed"

    assert client.get(f"/design-files/{file_id}/download", headers=headers).status_code == 200


def test_admin_routes_require_admin(client, customer, auth_headers, shop):
    headers = auth_headers(customer)

    assert client.get("/admin/orders", headers=headers).status_code == 403
    assert client.get("/admin/discount-codes/SAVE20/stats", headers=headers).status_code == 403


def test_admin_refund_flags_failure(client, customer, admin, auth_headers, shop, gateway):
    headers = auth_headers(customer)
    admin_headers = auth_headers(admin)
    order = _place(client, headers, shop["poster"]).json()
    intent = client.post(f"/payments/{order['id']}/intent", headers=headers).json()
    client.post(
        f"/payments/{order['id']}/capture",
        json={"intent_id": intent["intent_id"], "payment_id": "pay_9", "signature": "sig"},
        headers=headers,
    )

    gateway.refund_fails = True
    failed = client.post(f"/admin/orders/{order['id']}/refund", headers=admin_headers)
    assert failed.status_code == 502
    assert failed.json()["reason"] == "refund_failed"

    flagged = client.get("/admin/orders", params={"needs_reconciliation": True}, headers=admin_headers).json()
    assert [o["id"] for o in flagged["results"]] == [order["id"]]

    resolved = client.post(f"/admin/orders/{order['id']}/reconciled", headers=admin_headers)
    assert resolved.json()["needs_reconciliation"] is False


def test_admin_discount_stats(client, customer, admin, auth_headers, shop):
    headers = auth_headers(customer)
    order = _place(client, headers, shop["poster"], discount_code="SAVE20").json()
    intent = client.post(f"/payments/{order['id']}/intent", headers=headers).json()
    client.post(
        f"/payments/{order['id']}/capture",
        json={"intent_id": intent["intent_id"], "payment_id": "pay_7", "signature": "sig"},
        headers=headers,
    )

    stats = client.get("/admin/discount-codes/save20/stats", headers=auth_headers(admin)).json()

    assert stats["usage_count"] == 1
    assert stats["unique_customers"] == 1
    assert Decimal(stats["total_discount_given"]) == Decimal("5.00")


def test_admin_uploads_custom_deliverable(client, customer, admin, auth_headers, shop, storage):
    headers = auth_headers(customer)
    admin_headers = auth_headers(admin)
    order = _place(
        client,
        headers,
        shop["custom"],
        discount_code="FREEBIE",
        items=[{"product_id": shop["custom"].id, "customizations": {"customization_notes": "Team names"}}],
    ).json()
    client.post(f"/orders/{order['id']}/complete-free", headers=headers)

    uploaded = client.post(
        f"/admin/orders/{order['id']}/files",
        json={"files": [{
            "product_id": shop["custom"].id,
            "file_name": "team-card.pdf",
            "storage_key": f"orders/{order['id']}/team-card.pdf",
            "file_size": 5120,
            "mime_type": "application/pdf",
        }]},
        headers=admin_headers,
    )
    assert uploaded.status_code == 201
    file_id = uploaded.json()[0]["design_file_id"]

    client.post(f"/admin/orders/{order['id']}/complete", headers=admin_headers)

    download = client.get(f"/design-files/{file_id}/download", headers=headers)
    assert download.status_code == 200
    assert storage.opened == [f"orders/{order['id']}/team-card.pdf"]

    detail = client.get(f"/admin/orders/{order['id']}", headers=admin_headers).json()
    assert "files_uploaded" in [h["event_type"] for h in detail["history"]]


def test_admin_order_history(client, customer, admin, auth_headers, shop):
    headers = auth_headers(customer)
    order = _place(client, headers, shop["poster"]).json()
    client.post(f"/orders/{order['id']}/cancel", json={"reason": "duplicate"}, headers=headers)

    history = client.get(f"/admin/orders/{order['id']}/history", headers=auth_headers(admin))

    assert history.status_code == 200
    assert [h["event_type"] for h in history.json()] == ["pending", "cancelled"]
    assert history.json()[-1]["created_by"] == f"customer:{customer.id}"
    assert client.get(f"/admin/orders/{order['id']}/history", headers=headers).status_code == 403
