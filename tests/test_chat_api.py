import asyncio
from datetime import datetime, timedelta

from bson import ObjectId
from unittest.mock import AsyncMock

from helpmate.core.exceptions import ExternalServiceError
from utils.constants import CHAT_LIMIT_MESSAGE, DEFAULT_SYSTEM_PROMPT, ESCALATION_MESSAGE


def current_user_id(client, headers):
    return ObjectId(client.get("/api/auth/user", headers=headers).json()["user"]["id"])


def send(client, message, headers=None, **extra):
    return client.post("/api/chat/send", json={"message": message, **extra}, headers=headers or {})


def test_guest_chat_is_not_persisted(client, db, fake_llm):
    response = send(client, "Do you ship to Canada?")

    assert response.status_code == 200
    assert response.json() == {"response": "Happy to help!", "chat_id": None}

    messages = fake_llm.complete.await_args.args[0]
    assert messages == [
        {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": "Do you ship to Canada?"},
    ]
    assert fake_llm.complete.await_args.kwargs["max_tokens"] == 800
    assert asyncio.run(db.chats.count_documents({})) == 0


def test_new_chat_is_saved_with_generated_title(client, auth_headers, fake_llm):
    response = send(client, "Do you ship to Canada?", auth_headers)
    chat_id = response.json()["chat_id"]
    assert chat_id

    fake_llm.generate_title.assert_awaited_once_with("Do you ship to Canada?")

    history = client.get("/api/chat/history", headers=auth_headers).json()["chats"]
    assert len(history) == 1
    assert history[0]["id"] == chat_id
    assert history[0]["title"] == "Shipping Question"
    assert "messages" not in history[0]


def test_continuing_a_chat_sends_full_history(client, auth_headers, fake_llm):
    chat_id = send(client, "First question", auth_headers).json()["chat_id"]
    fake_llm.complete.return_value = "Second answer"

    response = send(client, "Second question", auth_headers, chat_id=chat_id)
    assert response.json() == {"response": "Second answer", "chat_id": chat_id}

    sent = fake_llm.complete.await_args.args[0]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert fake_llm.generate_title.await_count == 1

    chat = client.get("/api/chat/history", params={"chat_id": chat_id}, headers=auth_headers).json()["chat"]
    assert len(chat["messages"]) == 5


def test_unknown_or_foreign_chat_is_not_found(client, auth_headers, other_headers):
    chat_id = send(client, "Hello", auth_headers).json()["chat_id"]

    assert send(client, "Hi", other_headers, chat_id=chat_id).status_code == 404
    assert send(client, "Hi", auth_headers, chat_id="not-an-id").status_code == 404
    response = client.get("/api/chat/history", params={"chat_id": chat_id}, headers=other_headers)
    assert response.status_code == 404


def test_chat_with_integration_knowledge(client, auth_headers, integration, fake_llm):
    client.post(
        f"/api/integration/{integration['id']}/knowledge/documents",
        json={"name": "Returns", "content": "Returns are accepted within 30 days."},
        headers=auth_headers,
    )

    response = send(client, "Can I return a mug?", auth_headers, integration_id=integration["id"])
    assert response.status_code == 200

    system = fake_llm.complete.await_args.args[0][0]["content"]
    assert "DOCUMENT CONTENT:" in system
    assert "Returns are accepted within 30 days." in system


def test_continued_chat_reuses_its_system_prompt(client, auth_headers, integration, fake_llm, fake_scraper):
    client.post(
        f"/api/integration/{integration['id']}/knowledge/url",
        json={"url": "https://shop.com/shipping"},
        headers=auth_headers,
    )
    chat_id = send(client, "Do you ship to Canada?", auth_headers, integration_id=integration["id"]).json()["chat_id"]
    first_system = fake_llm.complete.await_args.args[0][0]
    assert fake_scraper.fetch_pages.await_count == 1

    response = send(client, "How long does it take?", auth_headers, chat_id=chat_id, integration_id=integration["id"])
    assert response.status_code == 200

    assert fake_scraper.fetch_pages.await_count == 1
    assert fake_llm.complete.await_args.args[0][0] == first_system


def test_unknown_integration_is_not_found(client):
    response = send(client, "Hello", integration_id=str(ObjectId()))
    assert response.status_code == 404


def test_chat_limit_is_enforced(client, db, auth_headers):
    user_id = current_user_id(client, auth_headers)
    asyncio.run(db.subscriptions.insert_one({
        "user": user_id,
        "plan": "basic",
        "status": "active",
        "end_date": datetime.utcnow() + timedelta(days=10),
        "chat_limit": 2,
        "chats_used": 1,
    }))

    assert send(client, "one", auth_headers).status_code == 200
    response = send(client, "two", auth_headers)
    assert response.status_code == 403
    assert response.json()["error"] == CHAT_LIMIT_MESSAGE

    subscription = asyncio.run(db.subscriptions.find_one({"user": user_id}))
    assert subscription["chats_used"] == 2


def test_unlimited_plan_is_metered_but_not_blocked(client, db, auth_headers):
    user_id = current_user_id(client, auth_headers)
    asyncio.run(db.subscriptions.insert_one({
        "user": user_id,
        "plan": "premium",
        "status": "active",
        "end_date": datetime.utcnow() + timedelta(days=10),
        "chat_limit": None,
        "chats_used": 10000,
    }))

    assert send(client, "one", auth_headers).status_code == 200
    assert send(client, "two", auth_headers).status_code == 200

    subscription = asyncio.run(db.subscriptions.find_one({"user": user_id}))
    assert subscription["chats_used"] == 10002


def test_llm_failure_is_bad_gateway(client, fake_llm):
    fake_llm.complete = AsyncMock(side_effect=ExternalServiceError("The AI service is temporarily unavailable"))
    response = send(client, "Hello")
    assert response.status_code == 502
    assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"


def test_feedback(client, db, auth_headers):
    chat_id = send(client, "Hello", auth_headers).json()["chat_id"]

    response = client.post("/api/chat/feedback", json={"chat_id": chat_id}, headers=auth_headers)
    assert response.status_code == 400

    response = client.post("/api/chat/feedback", json={"chat_id": chat_id, "rating": 6}, headers=auth_headers)
    assert response.status_code == 422

    response = client.post("/api/chat/feedback", json={"chat_id": chat_id, "rating": 4}, headers=auth_headers)
    assert response.status_code == 200

    chat = asyncio.run(db.chats.find_one({"_id": ObjectId(chat_id)}))
    assert chat["feedback"] == {"rating": 4, "comment": ""}


def test_escalate(client, auth_headers):
    chat_id = send(client, "I want a human", auth_headers).json()["chat_id"]

    response = client.post("/api/chat/escalate", json={"chat_id": chat_id}, headers=auth_headers)
    assert response.status_code == 200
    chat = response.json()["chat"]
    assert chat["escalated_to_human"] is True
    assert chat["messages"][-1]["role"] == "system"
    assert chat["messages"][-1]["content"] == ESCALATION_MESSAGE

    assert client.post("/api/chat/escalate", json={}, headers=auth_headers).status_code == 400


def test_delete_chat(client, auth_headers, other_headers):
    chat_id = send(client, "Hello", auth_headers).json()["chat_id"]

    assert client.delete(f"/api/chat/{chat_id}", headers=other_headers).status_code == 404
    assert client.delete(f"/api/chat/{chat_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/chat/{chat_id}", headers=auth_headers).status_code == 404


def test_analytics(client, auth_headers):
    first = send(client, "Hello", auth_headers).json()["chat_id"]
    send(client, "Another question", auth_headers)
    client.post("/api/chat/escalate", json={"chat_id": first}, headers=auth_headers)
    client.post("/api/chat/feedback", json={"chat_id": first, "rating": 4}, headers=auth_headers)

    response = client.get("/api/chat/analytics", headers=auth_headers)
    assert response.status_code == 200
    analytics = response.json()["analytics"]

    assert analytics["total_chats"] == 2
    assert analytics["escalated_chats"] == 1
    assert analytics["escalation_rate"] == 50.0
    assert analytics["average_rating"] == 4.0
    assert analytics["rated_chats"] == 1
    assert analytics["total_messages"] == 7
    assert analytics["messages_per_chat"] == 3.5
    assert analytics["chats_by_day"] == [
        {"date": datetime.utcnow().strftime("%Y-%m-%d"), "count": 2}
    ]


def test_analytics_window_excludes_old_chats(client, auth_headers):
    send(client, "Hello", auth_headers)
    response = client.get(
        "/api/chat/analytics",
        params={"start_date": "2020-01-01", "end_date": "2020-01-31"},
        headers=auth_headers,
    )
    assert response.json()["analytics"]["total_chats"] == 0


def test_history_requires_login(client):
    assert client.get("/api/chat/history").status_code == 401
