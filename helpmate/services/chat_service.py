"""
helpmate/services/chat_service.py

Purpose: Dashboard conversations

- Sends a message to the language model and stores the exchange
- Conversation history, feedback, escalation and deletion
- Per-user chat analytics

Guests may chat, but nothing is persisted for them.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from helpmate.core.exceptions import ResourceNotFoundError, ValidationError
from helpmate.core.logging import get_logger, LogContext
from helpmate.db.mongo import get_chats_collection, get_integrations_collection
from helpmate.schemas.chat import ChatMessage, FeedbackRequest, SendMessageRequest
from helpmate.services.context_service import get_context_builder
from helpmate.services.llm_service import get_llm_service
from helpmate.services.subscription_service import consume_chat
from utils.constants import DEFAULT_SYSTEM_PROMPT, DEFAULT_CHAT_TITLE, ESCALATION_MESSAGE
from utils.time_utils import parse_date
from utils.validation_utils import parse_object_id, sanitize_input

logger = get_logger(__name__)

REPLY_MAX_TOKENS = 800
REPLY_TEMPERATURE = 0.7
ANALYTICS_DEFAULT_DAYS = 30


def new_chat_document(
    user_id,
    messages: List[Dict[str, Any]],
    title: str = DEFAULT_CHAT_TITLE,
    source: str = "dashboard",
    integration_id=None,
    visitor_id: Optional[str] = None,
) -> Dict[str, Any]:
    now = datetime.utcnow()
    return {
        "user": user_id,
        "messages": messages,
        "title": title,
        "feedback": {"rating": None, "comment": None},
        "escalated_to_human": False,
        "human_agent": None,
        "source": source,
        "integration": integration_id,
        "visitor_id": visitor_id,
        "created_at": now,
        "updated_at": now,
    }


async def _get_owned_chat(user: Dict[str, Any], chat_id: Optional[str], projection=None) -> Dict[str, Any]:
    oid = parse_object_id(chat_id)
    if oid is None:
        raise ResourceNotFoundError("Chat not found")
    chat = await get_chats_collection().find_one({"_id": oid, "user": user["_id"]}, projection)
    if not chat:
        raise ResourceNotFoundError("Chat not found")
    return chat


async def _system_prompt(integration_id: Optional[str], question: str) -> str:
    if not integration_id:
        return DEFAULT_SYSTEM_PROMPT

    oid = parse_object_id(integration_id)
    integration = await get_integrations_collection().find_one({"_id": oid}) if oid else None
    if not integration:
        raise ResourceNotFoundError("Integration not found")

    assembled = await get_context_builder().build_knowledge_prompt(integration, question)
    return assembled.system_prompt


async def send_message(user: Optional[Dict[str, Any]], data: SendMessageRequest) -> Dict[str, Any]:
    """
    Handles one dashboard chat turn.

    Args:
        user: Authenticated user, or None for a guest
        data: Message payload

    Returns:
        {"response": reply, "chat_id": id or None for guests}

    Raises:
        ValidationError: Empty message
        QuotaExceededError: Subscriber's chat limit reached
        ResourceNotFoundError: Unknown integration or chat
        ExternalServiceError: Language model failure
    """
    message = sanitize_input(data.message)
    if not message:
        raise ValidationError("Please provide a message")

    if user is not None:
        await consume_chat(user["_id"])

    chat: Optional[Dict[str, Any]] = None
    if user is not None and data.chat_id:
        # Continued chats keep the system message they were started with
        chat = await _get_owned_chat(user, data.chat_id)
        messages = chat.get("messages", [])
    else:
        system_prompt = await _system_prompt(data.integration_id, message)
        messages = [ChatMessage(role="system", content=system_prompt).model_dump()]

    messages.append(ChatMessage(role="user", content=message).model_dump())

    llm = get_llm_service()
    reply = await llm.complete(
        [{"role": m["role"], "content": m["content"]} for m in messages],
        max_tokens=REPLY_MAX_TOKENS,
        temperature=REPLY_TEMPERATURE,
    )
    messages.append(ChatMessage(role="assistant", content=reply).model_dump())

    if user is None:
        return {"response": reply, "chat_id": None}

    chats = get_chats_collection()
    if chat is None:
        title = await llm.generate_title(message)
        doc = new_chat_document(
            user["_id"],
            messages,
            title=title,
            integration_id=parse_object_id(data.integration_id),
        )
        result = await chats.insert_one(doc)
        chat_id = result.inserted_id
        with LogContext(user_id=str(user["_id"]), chat_id=str(chat_id)):
            logger.info("New conversation started")
    else:
        chat_id = chat["_id"]
        await chats.update_one(
            {"_id": chat_id},
            {"$set": {"messages": messages, "updated_at": datetime.utcnow()}}
        )

    return {"response": reply, "chat_id": str(chat_id)}


async def get_chat(user: Dict[str, Any], chat_id: str) -> Dict[str, Any]:
    return await _get_owned_chat(user, chat_id)


async def list_chats(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Owned conversations without messages, most recently updated first."""
    cursor = get_chats_collection().find({"user": user["_id"]}, {"messages": 0}).sort("updated_at", -1)
    return await cursor.to_list(length=None)


async def submit_feedback(user: Dict[str, Any], data: FeedbackRequest):
    """
    Raises:
        ValidationError: chat_id or rating missing
        ResourceNotFoundError: Chat not owned
    """
    if not data.chat_id or data.rating is None:
        raise ValidationError("Please provide chat ID and rating")

    chat = await _get_owned_chat(user, data.chat_id, {"_id": 1})
    await get_chats_collection().update_one(
        {"_id": chat["_id"]},
        {"$set": {
            "feedback": {"rating": data.rating, "comment": data.comment or ""},
            "updated_at": datetime.utcnow(),
        }}
    )


async def escalate_chat(user: Dict[str, Any], chat_id: Optional[str]) -> Dict[str, Any]:
    """
    Flags a conversation for a human agent and notes it in the transcript.
    """
    if not chat_id:
        raise ValidationError("Please provide chat ID")

    chat = await _get_owned_chat(user, chat_id, {"_id": 1})
    note = ChatMessage(role="system", content=ESCALATION_MESSAGE).model_dump()
    await get_chats_collection().update_one(
        {"_id": chat["_id"]},
        {
            "$set": {"escalated_to_human": True, "updated_at": datetime.utcnow()},
            "$push": {"messages": note},
        }
    )
    with LogContext(user_id=str(user["_id"]), chat_id=chat_id):
        logger.info("Conversation escalated to a human agent")
    return await get_chats_collection().find_one({"_id": chat["_id"]})


async def delete_chat(user: Dict[str, Any], chat_id: str):
    oid = parse_object_id(chat_id)
    if oid is None:
        raise ResourceNotFoundError("Chat not found")
    result = await get_chats_collection().delete_one({"_id": oid, "user": user["_id"]})
    if result.deleted_count == 0:
        raise ResourceNotFoundError("Chat not found")


def _date_range(start_date: Optional[str], end_date: Optional[str]):
    """
    Resolves the analytics window.

    A date-only end (``2024-05-31``) covers that whole day.
    """
    end = parse_date(end_date)
    if end is None:
        end = datetime.utcnow()
    elif len(end_date.strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)

    start = parse_date(start_date) or (end - timedelta(days=ANALYTICS_DEFAULT_DAYS))
    if start > end:
        raise ValidationError("start_date must be before end_date")
    return start, end


async def get_analytics(
    user: Dict[str, Any],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Summarizes the user's conversations created within a date window
    (default: the last 30 days).
    """
    start, end = _date_range(start_date, end_date)
    cursor = get_chats_collection().find(
        {"user": user["_id"], "created_at": {"$gte": start, "$lte": end}},
        {"messages": 1, "feedback": 1, "escalated_to_human": 1, "created_at": 1},
    )

    total_chats = 0
    escalated = 0
    ratings: List[int] = []
    total_messages = 0
    by_day: Counter = Counter()

    async for chat in cursor:
        total_chats += 1
        if chat.get("escalated_to_human"):
            escalated += 1
        rating = (chat.get("feedback") or {}).get("rating")
        if rating is not None:
            ratings.append(rating)
        total_messages += len(chat.get("messages") or [])
        by_day[chat["created_at"].strftime("%Y-%m-%d")] += 1

    return {
        "start_date": start,
        "end_date": end,
        "total_chats": total_chats,
        "escalated_chats": escalated,
        "escalation_rate": round(escalated / total_chats * 100, 2) if total_chats else 0,
        "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
        "rated_chats": len(ratings),
        "total_messages": total_messages,
        "messages_per_chat": round(total_messages / total_chats, 2) if total_chats else 0,
        "chats_by_day": [{"date": day, "count": by_day[day]} for day in sorted(by_day)],
    }
