import asyncio
from datetime import datetime, timedelta

from bson import ObjectId


def user_id_of(client, headers):
    return ObjectId(client.get("/api/auth/user", headers=headers).json()["user"]["id"])


def test_plans_are_public(client):
    response = client.get("/api/subscription/plans")
    assert response.status_code == 200
    plans = response.json()["plans"]
    assert plans["basic"]["monthly_price"] == 99900
    assert plans["basic"]["chat_limit"] == 500
    assert plans["premium"]["chat_limit"] is None


def test_create_subscription(client, auth_headers):
    response = client.post(
        "/api/subscription/",
        json={"plan": "premium", "payment_cycle": "yearly", "payment_id": "pay_123"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    subscription = response.json()["subscription"]
    assert subscription["status"] == "active"
    assert subscription["plan"] == "premium"
    assert subscription["chat_limit"] is None
    assert subscription["chats_used"] == 0
    assert subscription["had_trial"] is False

    start = datetime.fromisoformat(subscription["start_date"])
    end = datetime.fromisoformat(subscription["end_date"])
    assert end.year == start.year + 1

    user = client.get("/api/auth/user", headers=auth_headers).json()["user"]
    assert user["subscription_active"] is True
    assert user["subscription_plan"] == "premium"


def test_create_rejects_unknown_plan_and_second_subscription(client, auth_headers):
    response = client.post("/api/subscription/", json={"plan": "gold"}, headers=auth_headers)
    assert response.status_code == 400

    client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    response = client.post("/api/subscription/", json={"plan": "premium"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "User already has an active subscription"


def test_get_subscription(client, auth_headers):
    assert client.get("/api/subscription/", headers=auth_headers).status_code == 404

    client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    response = client.get("/api/subscription/", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["plan_details"]["name"] == "Basic Plan"


def test_expired_subscription_is_marked_on_read(client, db, auth_headers):
    client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    user_id = user_id_of(client, auth_headers)
    asyncio.run(db.subscriptions.update_one(
        {"user": user_id},
        {"$set": {"end_date": datetime.utcnow() - timedelta(days=1)}},
    ))

    response = client.get("/api/subscription/", headers=auth_headers)
    assert response.json()["subscription"]["status"] == "expired"
    user = client.get("/api/auth/user", headers=auth_headers).json()["user"]
    assert user["subscription_active"] is False

    # an expired subscription can be renewed
    response = client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    assert response.status_code == 201


def test_cancel_subscription(client, auth_headers):
    assert client.post("/api/subscription/cancel", headers=auth_headers).status_code == 404

    client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    response = client.post("/api/subscription/cancel", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["subscription"]["status"] == "cancelled"

    assert client.post("/api/subscription/cancel", headers=auth_headers).status_code == 400
    user = client.get("/api/auth/user", headers=auth_headers).json()["user"]
    assert user["subscription_active"] is False


def test_trial_only_once(client, auth_headers):
    response = client.post("/api/subscription/trial", headers=auth_headers)
    assert response.status_code == 201
    subscription = response.json()["subscription"]
    assert subscription["status"] == "trial"
    assert subscription["plan"] == "basic"
    assert subscription["had_trial"] is True

    start = datetime.fromisoformat(subscription["start_date"])
    end = datetime.fromisoformat(subscription["end_date"])
    assert end - start == timedelta(days=14)

    client.post("/api/subscription/cancel", headers=auth_headers)
    response = client.post("/api/subscription/trial", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "You have already used your free trial"


def test_trial_refused_with_active_subscription(client, auth_headers):
    client.post("/api/subscription/", json={"plan": "basic"}, headers=auth_headers)
    response = client.post("/api/subscription/trial", headers=auth_headers)
    assert response.status_code == 400


def test_subscribing_after_trial_keeps_trial_flag(client, auth_headers):
    client.post("/api/subscription/trial", headers=auth_headers)
    response = client.post("/api/subscription/", json={"plan": "premium"}, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["subscription"]["had_trial"] is True
