"""
helpmate/services/integration_service.py

Purpose: Website integrations and the public widget chat

- Owner-scoped CRUD for integrations
- API key generation and rotation
- Embed snippet for the chat widget
- Knowledge base URL and document management
- External (widget) chat: session handling, context assembly,
  quota, transcript persistence
"""

import json
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from helpmate.core.config import settings
from helpmate.core.exceptions import AuthenticationError, ResourceNotFoundError, ValidationError
from helpmate.core.logging import get_logger, LogContext
from helpmate.db.mongo import get_chats_collection, get_integrations_collection
from helpmate.schemas.integration import (
    ExternalChatRequest,
    IntegrationCreate,
    IntegrationUpdate,
    KnowledgeDocument,
)
from helpmate.services.chat_service import new_chat_document
from helpmate.services.context_service import get_context_builder
from helpmate.services.llm_service import get_llm_service
from helpmate.services.session_store import ChatSession, session_store
from helpmate.services.subscription_service import consume_chat
from utils.constants import WIDGET_CHAT_TITLE, WIDGET_LIMIT_MESSAGE, WIDGET_SCRIPT_ID
from utils.validation_utils import parse_object_id, sanitize_input, validate_http_url

logger = get_logger(__name__)

WIDGET_MAX_TOKENS = 500
WIDGET_TEMPERATURE = 0.7

# Attempts at drawing an unused API key before giving up
API_KEY_ATTEMPTS = 3


def generate_api_key() -> str:
    """32 hex characters."""
    return secrets.token_hex(16)


def _check_urls(urls: List[str]) -> List[str]:
    cleaned = []
    for url in urls:
        url = (url or "").strip()
        if not validate_http_url(url):
            raise ValidationError(f"Invalid knowledge base URL: {url or '(empty)'}")
        if url not in cleaned:
            cleaned.append(url)
    return cleaned


def public_documents(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Knowledge documents without their content."""
    return [{"name": d.get("name"), "url": d.get("url")} for d in documents or []]


# ============================================================
# CRUD
# ============================================================

async def create_integration(user: Dict[str, Any], data: IntegrationCreate) -> Dict[str, Any]:
    knowledge = data.knowledge_base.model_dump()
    knowledge["urls"] = _check_urls(knowledge["urls"])

    doc = {
        "user": user["_id"],
        "name": data.name,
        "domain": data.domain,
        "widget_settings": data.widget_settings.model_dump(),
        "knowledge_base": knowledge,
        "allow_file_attachments": data.allow_file_attachments,
        "active": True,
        "created_at": datetime.utcnow(),
    }

    integrations = get_integrations_collection()
    for attempt in range(API_KEY_ATTEMPTS):
        doc["api_key"] = generate_api_key()
        doc.pop("_id", None)
        try:
            result = await integrations.insert_one(doc)
            break
        except DuplicateKeyError:
            logger.warning(f"API key collision on create (attempt {attempt + 1})")
    else:
        raise ValidationError("Could not generate a unique API key, please retry")

    doc["_id"] = result.inserted_id
    with LogContext(user_id=str(user["_id"]), integration_id=str(result.inserted_id)):
        logger.info(f"Integration created for {data.domain}")
    return doc


async def list_integrations(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    cursor = get_integrations_collection().find({"user": user["_id"]}).sort("created_at", -1)
    return await cursor.to_list(length=None)


async def get_integration(user: Dict[str, Any], integration_id: str) -> Dict[str, Any]:
    """
    Raises:
        ResourceNotFoundError: Unknown, malformed or not owned by the user
    """
    oid = parse_object_id(integration_id)
    if oid is None:
        raise ResourceNotFoundError("Integration not found")
    integration = await get_integrations_collection().find_one({"_id": oid, "user": user["_id"]})
    if not integration:
        raise ResourceNotFoundError("Integration not found")
    return integration


async def _update_owned(user: Dict[str, Any], integration_id: str, update: Dict[str, Any]) -> Dict[str, Any]:
    integration = await get_integration(user, integration_id)
    updated = await get_integrations_collection().find_one_and_update(
        {"_id": integration["_id"]},
        update,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ResourceNotFoundError("Integration not found")
    return updated


async def update_integration(user: Dict[str, Any], integration_id: str, data: IntegrationUpdate) -> Dict[str, Any]:
    """
    Partial update. Widget settings and knowledge base are merged field by
    field rather than replaced.
    """
    fields: Dict[str, Any] = {}

    if data.name is not None:
        name = data.name.strip()
        if not name:
            raise ValidationError("Please provide a name for this integration")
        fields["name"] = name
    if data.domain is not None:
        fields["domain"] = data.domain
    if data.allow_file_attachments is not None:
        fields["allow_file_attachments"] = data.allow_file_attachments
    if data.active is not None:
        fields["active"] = data.active

    if data.widget_settings is not None:
        for key, value in data.widget_settings.model_dump(exclude_none=True).items():
            fields[f"widget_settings.{key}"] = value

    if data.knowledge_base is not None:
        knowledge = data.knowledge_base.model_dump(exclude_none=True)
        if "urls" in knowledge:
            knowledge["urls"] = _check_urls(knowledge["urls"])
        for key, value in knowledge.items():
            fields[f"knowledge_base.{key}"] = value

    if not fields:
        return await get_integration(user, integration_id)

    fields["updated_at"] = datetime.utcnow()
    updated = await _update_owned(user, integration_id, {"$set": fields})
    with LogContext(user_id=str(user["_id"]), integration_id=integration_id):
        logger.info(f"Integration updated: {', '.join(sorted(fields))}")
    return updated


async def delete_integration(user: Dict[str, Any], integration_id: str):
    integration = await get_integration(user, integration_id)
    await get_integrations_collection().delete_one({"_id": integration["_id"]})
    with LogContext(user_id=str(user["_id"]), integration_id=integration_id):
        logger.info("Integration deleted")


async def regenerate_api_key(user: Dict[str, Any], integration_id: str) -> str:
    """
    Rotates the integration's API key. The old key stops working at once.
    """
    integration = await get_integration(user, integration_id)
    integrations = get_integrations_collection()

    for _ in range(API_KEY_ATTEMPTS):
        api_key = generate_api_key()
        try:
            await integrations.update_one({"_id": integration["_id"]}, {"$set": {"api_key": api_key}})
        except DuplicateKeyError:
            continue
        with LogContext(user_id=str(user["_id"]), integration_id=integration_id):
            logger.info("API key rotated")
        return api_key

    raise ValidationError("Could not generate a unique API key, please retry")


# ============================================================
# WIDGET SNIPPET
# ============================================================

def _js_string(value: Any) -> str:
    # JSON string literals are valid JS; "</" is split so a value cannot close the tag
    return json.dumps("" if value is None else str(value)).replace("</", "<\\/")


def build_widget_code(integration: Dict[str, Any], base_url: Optional[str] = None) -> str:
    """
    Builds the HTML snippet a tenant pastes into their site.
    """
    base_url = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")
    widget = integration.get("widget_settings") or {}

    config = [
        ("scriptId", WIDGET_SCRIPT_ID),
        ("apiKey", integration["api_key"]),
        ("position", widget.get("position")),
        ("primaryColor", widget.get("primary_color")),
        ("chatTitle", widget.get("chat_title")),
        ("welcomeMessage", widget.get("welcome_message")),
        ("baseUrl", base_url),
    ]
    config_lines = ",\n".join(f"    {key}: {_js_string(value)}" for key, value in config)

    return (
        "<!-- HelpMate AI Chat Widget -->\n"
        "<script>\n"
        "  window.HelpMateAI = {\n"
        f"{config_lines}\n"
        "  };\n"
        "  (function(d, s, id) {\n"
        "    var js, fjs = d.getElementsByTagName(s)[0];\n"
        "    if (d.getElementById(id)) return;\n"
        "    js = d.createElement(s); js.id = id;\n"
        f"    js.src = {_js_string(base_url + '/widget.js')};\n"
        "    js.async = true;\n"
        "    fjs.parentNode.insertBefore(js, fjs);\n"
        f"  }}(document, 'script', {_js_string(WIDGET_SCRIPT_ID)}));\n"
        "</script>\n"
        "<!-- End HelpMate AI Chat Widget -->"
    )


# ============================================================
# KNOWLEDGE BASE
# ============================================================

async def add_knowledge_url(user: Dict[str, Any], integration_id: str, url: Optional[str]) -> List[str]:
    """
    Adds a URL (no duplicates) and enables the knowledge base.

    Raises:
        ValidationError: URL missing or not http(s)
    """
    url = (url or "").strip()
    if not url:
        raise ValidationError("Please provide a URL")
    if not validate_http_url(url):
        raise ValidationError("Please provide a valid http(s) URL")

    updated = await _update_owned(
        user,
        integration_id,
        {"$addToSet": {"knowledge_base.urls": url}, "$set": {"knowledge_base.enabled": True}},
    )
    return updated["knowledge_base"]["urls"]


async def remove_knowledge_url(user: Dict[str, Any], integration_id: str, url: Optional[str]) -> List[str]:
    url = (url or "").strip()
    if not url:
        raise ValidationError("Please provide a URL")

    updated = await _update_owned(user, integration_id, {"$pull": {"knowledge_base.urls": url}})
    return updated["knowledge_base"].get("urls", [])


async def add_knowledge_document(
    user: Dict[str, Any],
    integration_id: str,
    document: KnowledgeDocument,
) -> List[Dict[str, Any]]:
    """
    Adds a text document, replacing any document with the same name,
    and enables the knowledge base.
    """
    integration = await get_integration(user, integration_id)
    documents = [
        d for d in (integration.get("knowledge_base") or {}).get("documents", [])
        if d.get("name") != document.name
    ]
    documents.append(document.model_dump())

    updated = await _update_owned(
        user,
        integration_id,
        {"$set": {"knowledge_base.documents": documents, "knowledge_base.enabled": True}},
    )
    return public_documents(updated["knowledge_base"]["documents"])


async def remove_knowledge_document(user: Dict[str, Any], integration_id: str, name: Optional[str]) -> List[Dict[str, Any]]:
    if not name:
        raise ValidationError("Please provide a document name")

    updated = await _update_owned(
        user,
        integration_id,
        {"$pull": {"knowledge_base.documents": {"name": name}}},
    )
    return public_documents(updated["knowledge_base"].get("documents", []))


# ============================================================
# EXTERNAL (WIDGET) CHAT
# ============================================================

async def get_integration_by_api_key(api_key: str) -> Optional[Dict[str, Any]]:
    return await get_integrations_collection().find_one({"api_key": api_key, "active": True})


async def _resolve_session(
    integration: Dict[str, Any],
    chat_id: Optional[str],
    visitor_id: Optional[str],
) -> ChatSession:
    """
    Finds or creates the in-memory session for a widget message.

    When the id is not in memory but a transcript was persisted under it
    for this integration, the conversation is restored from that transcript.
    An id persisted for another integration is never reused.
    """
    integration_id = str(integration["_id"])
    persisted = None

    if chat_id and await session_store.get(chat_id) is None:
        persisted = await get_chats_collection().find_one(
            {"session_id": chat_id},
            {"integration": 1, "messages": 1},
        )
        if persisted and persisted.get("integration") != integration["_id"]:
            chat_id = None
            persisted = None

    session, created = await session_store.get_or_create(chat_id, integration_id, visitor_id)

    if created and persisted:
        session.messages = [
            m for m in persisted.get("messages", []) if m.get("role") in ("user", "assistant")
        ]
        logger.info(
            f"Restored {len(session.messages)} messages from stored transcript",
            extra={"session_id": session.session_id}
        )

    return session


async def _save_transcript(integration: Dict[str, Any], session: ChatSession, system_prompt: str):
    """Upserts the session's transcript into chats, keyed by session id."""
    now = datetime.utcnow()
    messages = [{"role": "system", "content": system_prompt, "timestamp": session.created_at}]
    messages.extend(session.messages)

    on_insert = new_chat_document(
        integration["user"],
        messages=[],
        title=WIDGET_CHAT_TITLE.format(domain=integration.get("domain", "")),
        source="widget",
        integration_id=integration["_id"],
        visitor_id=session.visitor_id,
    )
    for key in ("messages", "updated_at"):
        on_insert.pop(key)

    await get_chats_collection().update_one(
        {"session_id": session.session_id},
        {
            "$set": {"messages": messages, "updated_at": now},
            "$setOnInsert": on_insert,
        },
        upsert=True,
    )


async def process_external_chat(data: ExternalChatRequest) -> Dict[str, Any]:
    """
    Answers one message from the embedded widget.

    Returns:
        {"response": reply, "chat_id": session id}

    Raises:
        ValidationError: api_key or message missing
        AuthenticationError: No active integration for the key
        QuotaExceededError: The site owner's chat limit is reached
        ExternalServiceError: Language model failure
    """
    api_key = (data.api_key or "").strip()
    message = sanitize_input(data.message or "")
    if not api_key or not message:
        raise ValidationError("API key and message are required")

    integration = await get_integration_by_api_key(api_key)
    if not integration:
        raise AuthenticationError("Invalid API key")

    with LogContext(integration_id=str(integration["_id"])):
        await consume_chat(integration["user"], WIDGET_LIMIT_MESSAGE)

        metadata = data.metadata.model_dump(exclude_none=True) if data.metadata else None
        assembled = await get_context_builder().build_website_prompt(integration, message, metadata)

        session = await _resolve_session(integration, data.chat_id, data.visitor_id)

        # Room is kept for the new message within the history limit
        limit = settings.SESSION_HISTORY_LIMIT - 1
        history = session.history(limit) if limit > 0 else []
        llm_messages = [{"role": "system", "content": assembled.system_prompt}]
        llm_messages.extend(history)
        llm_messages.append({"role": "user", "content": message})

        reply = await get_llm_service().complete(
            llm_messages,
            max_tokens=WIDGET_MAX_TOKENS,
            temperature=WIDGET_TEMPERATURE,
        )

        session.add_message("user", message)
        session.add_message("assistant", reply)
        await _save_transcript(integration, session, assembled.system_prompt)

        logger.info(
            "Widget message answered",
            extra={
                "session_id": session.session_id,
                "sections": len(assembled.included),
                "dropped_sections": len(assembled.dropped),
            }
        )

    return {"response": reply, "chat_id": session.session_id}
