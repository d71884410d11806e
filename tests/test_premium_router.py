import asyncio
import json

import requests

from monetra_svc.models.membership import Membership, Order
from monetra_svc.premium_orders import create_order
from monetra_svc.razorpay_event_processor import process_event
from monetra_svc.routers import premium_router

from conftest import TEST_SETTINGS, auth_headers, client_signature, make_user, sign


def webhook_body(order, payment_id='pay_1', event='payment.captured'):
    return json.dumps({
        "entity": "event",
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "order_id": order.gateway_order_id,
                    "notes": {
                        "customer_id": order.user_id,
                        "membership_id": order.plan_id,
                        "order_id": order.id,
                    },
                }
            }
        },
    })


def post_webhook(client, body, secret=TEST_SETTINGS.razorpay_webhook_secret, signature=None):
    headers = {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": signature or sign(body, secret),
    }
    return client.post("/premium/webhook", content=body, headers=headers)


def test_list_memberships(client, plans):
    response = client.get("/premium/memberships")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert [(m["id"], m["tier"], m["tenure"]) for m in data["memberships"]] == [
        ("pro_plan", "pro", "year"),
        ("ultra_plan", "ultra", "year"),
        ("max_plan", "max", "year"),
    ]


def test_create_order_success(client, plans, test_user):
    response = client.post("/premium/create-order", json={"plan_id": "pro_plan"}, headers=auth_headers(test_user))
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["key_id"] == TEST_SETTINGS.razorpay_key_id
    assert data["order"]["status"] == "pending"
    assert data["order"]["amount"] == 49900
    assert data["order"]["gateway_order_id"] == "order_gw_1"


def test_create_order_requires_login(client, plans):
    response = client.post("/premium/create-order", json={"plan_id": "pro_plan"})
    assert response.status_code == 401


def test_create_order_unknown_plan(client, plans, test_user):
    response = client.post("/premium/create-order", json={"plan_id": "gold"}, headers=auth_headers(test_user))
    assert response.status_code == 404
    assert "gold" in response.json()["detail"]


def test_create_order_missing_plan_id(client, plans, test_user):
    response = client.post("/premium/create-order", json={}, headers=auth_headers(test_user))
    assert response.status_code == 422


def test_create_order_gateway_unavailable(client, db_session, razorpay_client, plans, test_user):
    razorpay_client.order.errors = [requests.exceptions.ConnectionError("down")] * 3
    response = client.post("/premium/create-order", json={"plan_id": "pro_plan"}, headers=auth_headers(test_user))
    assert response.status_code == 502
    assert db_session.query(Order).count() == 0


def test_verify_order_success(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    payload = {
        "razorpay_order_id": order.gateway_order_id,
        "razorpay_payment_id": "pay_123",
        "razorpay_signature": client_signature(order.gateway_order_id, "pay_123"),
        "plan_id": "pro_plan",
    }
    response = client.post("/premium/verify-order", json=payload, headers=auth_headers(test_user))
    assert response.status_code == 200
    membership = response.json()["membership"]
    assert membership["tier"] == "pro"
    assert membership["status"] == "active"

    db_session.expire_all()
    assert db_session.query(Order).filter(Order.id == order.id).one().status == "succeeded"


def test_verify_order_bad_signature(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    payload = {
        "razorpay_order_id": order.gateway_order_id,
        "razorpay_payment_id": "pay_123",
        "razorpay_signature": client_signature(order.gateway_order_id, "pay_123", secret=TEST_SETTINGS.razorpay_webhook_secret),
        "plan_id": "pro_plan",
    }
    response = client.post("/premium/verify-order", json=payload, headers=auth_headers(test_user))
    assert response.status_code == 400
    assert "Invalid payment signature" in response.json()["detail"]
    assert db_session.query(Membership).count() == 0


def test_verify_order_for_someone_elses_order(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    other = make_user(db_session, email="other@example.com")
    payload = {
        "razorpay_order_id": order.gateway_order_id,
        "razorpay_payment_id": "pay_123",
        "razorpay_signature": client_signature(order.gateway_order_id, "pay_123"),
        "plan_id": "pro_plan",
    }
    response = client.post("/premium/verify-order", json=payload, headers=auth_headers(other))
    assert response.status_code == 400
    assert db_session.query(Membership).count() == 0


def test_webhook_payment_captured(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    response = post_webhook(client, webhook_body(order))
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "processed"
    assert data["event"] == "payment.captured"
    assert data["metadata"] == {"user_id": test_user.id, "tier": "pro", "status": "active"}


def test_webhook_settles_off_the_event_loop(client, db_session, gateway, plans, test_user, monkeypatch):
    loop_running = []

    def recording_process_event(event, db):
        try:
            asyncio.get_running_loop()
            loop_running.append(True)
        except RuntimeError:
            loop_running.append(False)
        return process_event(event, db)

    monkeypatch.setattr(premium_router, "process_event", recording_process_event)
    order = create_order(db_session, gateway, test_user.id, "pro_plan")

    response = post_webhook(client, webhook_body(order))
    assert response.status_code == 200
    assert loop_running == [False]


def test_webhook_delivered_twice(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    body = webhook_body(order)
    assert post_webhook(client, body).status_code == 200
    db_session.expire_all()
    first = db_session.query(Membership).filter(Membership.user_id == test_user.id).one()
    first_state = (first.id, first.tier, first.current_period_start, first.current_period_end)

    assert post_webhook(client, body).status_code == 200
    db_session.expire_all()
    memberships = db_session.query(Membership).filter(Membership.user_id == test_user.id).all()
    assert len(memberships) == 1
    second = memberships[0]
    assert (second.id, second.tier, second.current_period_start, second.current_period_end) == first_state
    assert db_session.query(Order).filter(Order.id == order.id).one().status == "succeeded"


def test_webhook_missing_signature(client):
    response = client.post("/premium/webhook", content='{"event": "payment.captured"}')
    assert response.status_code == 400
    assert "Missing X-Razorpay-Signature header" in response.json()["detail"]


def test_webhook_bad_signature_mutates_nothing(client, db_session, gateway, plans, test_user):
    order = create_order(db_session, gateway, test_user.id, "pro_plan")
    response = post_webhook(client, webhook_body(order), secret=TEST_SETTINGS.razorpay_key_secret)
    assert response.status_code == 400
    assert "Invalid webhook signature" in response.json()["detail"]

    db_session.expire_all()
    assert db_session.query(Membership).count() == 0
    assert db_session.query(Order).filter(Order.id == order.id).one().status == "pending"


def test_webhook_other_event_acknowledged(client):
    body = json.dumps({"event": "order.paid", "payload": {}})
    response = post_webhook(client, body)
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_webhook_malformed_body(client):
    response = post_webhook(client, "not json")
    assert response.status_code == 400
    assert response.json()["detail"] == "Malformed webhook body"


def test_webhook_unknown_order_is_dropped(client, plans, test_user):
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": "pay_9",
            "order_id": "order_gw_404",
            "notes": {"customer_id": test_user.id, "membership_id": "pro_plan"},
        }}},
    })
    response = post_webhook(client, body)
    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_my_membership_and_orders(client, db_session, gateway, plans, test_user):
    headers = auth_headers(test_user)
    assert client.get("/premium/my-membership", headers=headers).json()["membership"] is None

    order = create_order(db_session, gateway, test_user.id, "max_plan")
    post_webhook(client, webhook_body(order))

    membership = client.get("/premium/my-membership", headers=headers).json()["membership"]
    assert membership["tier"] == "max"

    orders = client.get("/premium/orders", headers=headers).json()
    assert [(o["id"], o["status"], o["amount"]) for o in orders] == [(order.id, "succeeded", 199900)]
