from jose import jwt

from storefront import config
from storefront.models import CartItem, Order
from storefront.notifications import generate_order_token

from factories import add_to_cart


def submit(client, headers, order_id, transaction_id="ABCD12345678"):
    return client.post(
        "/api/orders/verify",
        json={"orderId": order_id, "upiTransactionId": transaction_id},
        headers=headers,
    )


def verify(client, headers, order_id, action):
    return client.post(f"/api/admin/orders/{order_id}/verify", json={"action": action}, headers=headers)


def test_admin_approves_submitted_payment(client, customer, placed_order, admin_headers, db):
    submit(client, customer["headers"], placed_order["id"])
    paid_at = db.get(Order, placed_order["id"]).paid_at
    db.expire_all()
    # Customer refilled the cart after paying
    add_to_cart(customer["id"], "P1", 1)

    response = verify(client, admin_headers, placed_order["id"], "approve")

    assert response.status_code == 200
    assert response.json() == {
        "message": f"Order #{placed_order['orderNumber']} approved. Customer has been confirmed."
    }
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "PAID"
    assert order.status == "CONFIRMED"
    assert order.paid_at == paid_at
    assert order.payment_verified_by == "admin-1"
    assert order.payment_verified_at is not None
    assert db.query(CartItem).filter_by(user_id=customer["id"]).count() == 0


def test_admin_approves_notified_payment(client, customer, placed_order, admin_headers, db):
    client.post("/api/orders/notify-payment", json={"orderId": placed_order["id"]}, headers=customer["headers"])

    response = verify(client, admin_headers, placed_order["id"], "approve")

    assert response.status_code == 200
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "PAID"
    assert order.status == "CONFIRMED"
    assert order.paid_at is not None
    assert db.query(CartItem).filter_by(user_id=customer["id"]).count() == 0


def test_admin_reject_reopens_transaction_id(client, customer, placed_order, admin_headers, db):
    submit(client, customer["headers"], placed_order["id"], "ABCD12345678")

    response = verify(client, admin_headers, placed_order["id"], "reject")

    assert response.status_code == 200
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "FAILED"
    assert order.payment_id is None
    assert order.paid_at is None
    assert order.status == "PENDING"

    again = submit(client, customer["headers"], placed_order["id"], "ABCD12345678")
    assert again.status_code == 200
    assert again.json()["order"]["paymentStatus"] == "PAID"


def test_audited_order_cannot_be_reviewed_again(client, customer, placed_order, admin_headers):
    submit(client, customer["headers"], placed_order["id"])
    verify(client, admin_headers, placed_order["id"], "approve")

    response = verify(client, admin_headers, placed_order["id"], "reject")

    assert response.status_code == 400
    assert response.json()["error"] == "Order is not awaiting verification (current status: PAID)"


def test_unpaid_order_cannot_be_approved(client, placed_order, admin_headers, db):
    response = verify(client, admin_headers, placed_order["id"], "approve")

    assert response.status_code == 400
    assert "current status: PENDING" in response.json()["error"]
    assert db.get(Order, placed_order["id"]).payment_status == "PENDING"


def test_invalid_action(client, placed_order, admin_headers):
    response = verify(client, admin_headers, placed_order["id"], "refund")

    assert response.status_code == 400


def test_unknown_order(client, admin_headers):
    response = verify(client, admin_headers, "missing-order", "approve")

    assert response.status_code == 404


def test_customer_cannot_use_admin_verify(client, customer, placed_order, db):
    submit(client, customer["headers"], placed_order["id"])

    response = verify(client, customer["headers"], placed_order["id"], "approve")
    missing = verify(client, customer["headers"], "missing-order", "approve")

    assert response.status_code == 401
    assert missing.status_code == 401
    assert response.json() == missing.json()
    assert db.get(Order, placed_order["id"]).payment_verified_at is None


def test_admin_verify_requires_session(client, placed_order):
    response = verify(client, {}, placed_order["id"], "approve")

    assert response.status_code == 401


def test_tokens_are_refused_when_jwt_secret_is_unset(client, customer, placed_order, db, monkeypatch):
    client.post("/api/orders/notify-payment", json={"orderId": placed_order["id"]}, headers=customer["headers"])
    monkeypatch.setattr(config, "JWT_SECRET", "")
    self_signed = jwt.encode({"sub": "attacker", "role": "ADMIN"}, "", algorithm="HS256")

    response = verify(client, {"Authorization": f"Bearer {self_signed}"}, placed_order["id"], "approve")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or missing token"}
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "VERIFICATION_PENDING"
    assert order.payment_verified_at is None


def test_review_queue_lists_orders_awaiting_audit(client, customer, placed_order, admin_headers):
    submit(client, customer["headers"], placed_order["id"])

    response = client.get("/api/admin/orders", headers=admin_headers)

    assert response.status_code == 200
    orders = response.json()["orders"]
    assert [o["id"] for o in orders] == [placed_order["id"]]
    assert orders[0]["paymentId"] == "ABCD12345678"
    assert orders[0]["customer"]["email"] == "user-1@example.com"

    verify(client, admin_headers, placed_order["id"], "approve")
    assert client.get("/api/admin/orders", headers=admin_headers).json()["orders"] == []


def test_review_queue_is_admin_only(client, customer):
    response = client.get("/api/admin/orders", headers=customer["headers"])

    assert response.status_code == 401


# One-click email links


def link(client, order_id, action, token=None):
    path = "confirm" if action == "approve" else "reject"
    token = generate_order_token(order_id, action) if token is None else token
    return client.get(f"/api/orders/{order_id}/{path}", params={"token": token})


def test_email_confirm_link_approves(client, customer, placed_order, db):
    submit(client, customer["headers"], placed_order["id"])

    response = link(client, placed_order["id"], "approve")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Order Confirmed!" in response.text
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "PAID"
    assert order.payment_verified_by == "email-link"


def test_email_confirm_link_twice_reports_already_confirmed(client, customer, placed_order):
    submit(client, customer["headers"], placed_order["id"])
    link(client, placed_order["id"], "approve")

    response = link(client, placed_order["id"], "approve")

    assert response.status_code == 200
    assert "Already Confirmed" in response.text


def test_email_confirm_link_on_pending_order(client, placed_order, db):
    response = link(client, placed_order["id"], "approve")

    assert response.status_code == 409
    assert "Cannot Confirm" in response.text
    assert "status: PENDING" in response.text
    assert db.get(Order, placed_order["id"]).payment_status == "PENDING"


def test_email_reject_link_clears_transaction_id(client, customer, placed_order, db):
    submit(client, customer["headers"], placed_order["id"], "ABCD12345678")

    response = link(client, placed_order["id"], "reject")

    assert response.status_code == 200
    assert "Payment Rejected" in response.text
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "FAILED"
    assert order.payment_id is None

    second = link(client, placed_order["id"], "reject")
    assert "Already Rejected" in second.text

    again = submit(client, customer["headers"], placed_order["id"], "ABCD12345678")
    assert again.status_code == 200


def test_email_link_with_bad_token(client, customer, placed_order, db):
    submit(client, customer["headers"], placed_order["id"])

    forged = link(client, placed_order["id"], "approve", token="0" * 64)
    swapped = link(client, placed_order["id"], "approve", token=generate_order_token(placed_order["id"], "reject"))
    missing = client.get(f"/api/orders/{placed_order['id']}/confirm")

    for response in (forged, swapped, missing):
        assert response.status_code == 403
        assert "Invalid Link" in response.text
    assert db.get(Order, placed_order["id"]).payment_verified_at is None


def test_email_link_for_unknown_order(client):
    response = link(client, "missing-order", "reject")

    assert response.status_code == 404
    assert "Order Not Found" in response.text


def test_token_for_one_order_does_not_work_for_another(client, customer, placed_order):
    submit(client, customer["headers"], placed_order["id"])

    response = link(client, placed_order["id"], "approve", token=generate_order_token("another-order", "approve"))

    assert response.status_code == 403


def test_email_reject_link_on_unpaid_order(client, placed_order, db):
    response = link(client, placed_order["id"], "reject")

    assert response.status_code == 409
    assert "Cannot Reject" in response.text
    assert "status: PENDING" in response.text
    assert db.get(Order, placed_order["id"]).payment_status == "PENDING"


def test_email_reject_link_after_approval(client, customer, placed_order, admin_headers, db):
    submit(client, customer["headers"], placed_order["id"], "ABCD12345678")
    verify(client, admin_headers, placed_order["id"], "approve")

    response = link(client, placed_order["id"], "reject")

    assert response.status_code == 409
    assert "Cannot Reject" in response.text
    assert "status: PAID" in response.text
    order = db.get(Order, placed_order["id"])
    assert order.payment_status == "PAID"
    assert order.payment_id == "ABCD12345678"
