import asyncio
import re
from datetime import datetime, timedelta

from bson import ObjectId

from helpmate.core.config import settings
from helpmate.services.session_store import session_store
from utils.constants import WIDGET_LIMIT_MESSAGE


def widget_chat(client, api_key, message="Do you ship to Canada?", **extra):
    return client.post("/api/integration/chat", json={"api_key": api_key, "message": message, **extra})


def test_missing_fields_are_bad_request(client, integration):
    assert client.post("/api/integration/chat", json={"message": "hi"}).status_code == 400
    assert client.post("/api/integration/chat", json={"api_key": integration["api_key"]}).status_code == 400
    assert widget_chat(client, integration["api_key"], message="   ").status_code == 400


def test_unknown_or_inactive_key_is_unauthorized(client, integration, auth_headers):
    assert widget_chat(client, "0" * 32).status_code == 401

    client.put(f"/api/integration/{integration['id']}", json={"active": False}, headers=auth_headers)
    response = widget_chat(client, integration["api_key"])
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid API key"


def test_rotated_key_stops_working(client, integration, auth_headers):
    client.post(f"/api/integration/{integration['id']}/generate-key", headers=auth_headers)
    assert widget_chat(client, integration["api_key"]).status_code == 401


def test_first_message_creates_session_and_transcript(client, db, integration, fake_llm):
    response = widget_chat(client, integration["api_key"], visitor_id="visitor-1")

    assert response.status_code == 200
    data = response.json()
    assert data["response"] == "Happy to help!"
    assert re.fullmatch(r"[0-9a-f]{32}", data["chat_id"])

    sent = fake_llm.complete.await_args.args[0]
    assert [m["role"] for m in sent] == ["system", "user"]
    assert sent[0]["content"].startswith(
        "You are a helpful customer service assistant for the website https://www.shop.com."
    )
    assert fake_llm.complete.await_args.kwargs["max_tokens"] == 500

    chat = asyncio.run(db.chats.find_one({"session_id": data["chat_id"]}))
    assert chat["source"] == "widget"
    assert chat["title"] == "Website Chat - https://www.shop.com"
    assert chat["integration"] == ObjectId(integration["id"])
    assert chat["user"] == ObjectId(integration["user"])
    assert chat["visitor_id"] == "visitor-1"
    assert [m["role"] for m in chat["messages"]] == ["system", "user", "assistant"]


def test_follow_up_uses_session_history(client, db, integration, fake_llm):
    chat_id = widget_chat(client, integration["api_key"]).json()["chat_id"]

    response = widget_chat(client, integration["api_key"], message="How long does it take?", chat_id=chat_id)
    assert response.json()["chat_id"] == chat_id

    sent = fake_llm.complete.await_args.args[0]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[-1]["content"] == "How long does it take?"

    assert asyncio.run(db.chats.count_documents({"session_id": chat_id})) == 1
    chat = asyncio.run(db.chats.find_one({"session_id": chat_id}))
    assert len(chat["messages"]) == 5


def test_client_chosen_id_is_kept(client, integration):
    response = widget_chat(client, integration["api_key"], chat_id="my-widget-session")
    assert response.json()["chat_id"] == "my-widget-session"


def test_page_metadata_reaches_prompt(client, integration, fake_llm):
    widget_chat(
        client,
        integration["api_key"],
        message="How much is this mug?",
        metadata={
            "url": "https://shop.com/products/mug",
            "title": "Ceramic Mug | Shop",
            "page_content": "Ceramic mug 350ml. Price: $12.",
            "demoType": "store",
        },
    )

    system = fake_llm.complete.await_args.args[0][0]["content"]
    assert "CURRENT PAGE:" in system
    assert "Price: $12." in system
    assert "demoType: store" in system


def test_knowledge_urls_are_scraped_for_context(client, integration, auth_headers, fake_llm, fake_scraper):
    from helpmate.services.scraper_service import ScrapedPage

    client.post(
        f"/api/integration/{integration['id']}/knowledge/url",
        json={"url": "https://shop.com/shipping"},
        headers=auth_headers,
    )
    fake_scraper.fetch_pages.return_value = {
        "https://shop.com/shipping": ScrapedPage("https://shop.com/shipping", "Shipping", "We ship to Canada in 5 days."),
    }

    widget_chat(client, integration["api_key"])

    fake_scraper.fetch_pages.assert_awaited_once_with(["https://shop.com/shipping"])
    system = fake_llm.complete.await_args.args[0][0]["content"]
    assert "WEBSITE CONTENT:" in system
    assert "We ship to Canada in 5 days." in system


def test_history_sent_to_model_is_bounded(client, integration, fake_llm, monkeypatch):
    monkeypatch.setattr(settings, "SESSION_HISTORY_LIMIT", 3)
    chat_id = widget_chat(client, integration["api_key"], message="q1").json()["chat_id"]
    widget_chat(client, integration["api_key"], message="q2", chat_id=chat_id)
    widget_chat(client, integration["api_key"], message="q3", chat_id=chat_id)

    sent = fake_llm.complete.await_args.args[0]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert [m["content"] for m in sent[1:]] == ["q2", "Happy to help!", "q3"]


def test_session_restored_from_transcript(client, integration, fake_llm):
    chat_id = widget_chat(client, integration["api_key"], message="q1").json()["chat_id"]
    asyncio.run(session_store.clear())

    widget_chat(client, integration["api_key"], message="q2", chat_id=chat_id)

    sent = fake_llm.complete.await_args.args[0]
    assert [m["content"] for m in sent[1:]] == ["q1", "Happy to help!", "q2"]


def test_session_of_another_integration_is_not_reused(client, integration, auth_headers):
    other = client.post(
        "/api/integration/",
        json={"name": "Tea Shop", "domain": "tea.com"},
        headers=auth_headers,
    ).json()["integration"]

    chat_id = widget_chat(client, integration["api_key"]).json()["chat_id"]
    response = widget_chat(client, other["api_key"], chat_id=chat_id)

    assert response.status_code == 200
    assert response.json()["chat_id"] != chat_id


def test_owner_quota_applies_to_widget(client, db, integration):
    asyncio.run(db.subscriptions.insert_one({
        "user": ObjectId(integration["user"]),
        "plan": "basic",
        "status": "trial",
        "end_date": datetime.utcnow() + timedelta(days=3),
        "chat_limit": 1,
        "chats_used": 1,
    }))

    response = widget_chat(client, integration["api_key"])
    assert response.status_code == 403
    assert response.json()["error"] == WIDGET_LIMIT_MESSAGE
