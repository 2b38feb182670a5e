"""
helpmate/api/chat.py

Purpose: Dashboard chat endpoints

- Send a message (guests allowed, nothing stored for them)
- History, feedback, escalation, deletion
- Analytics over a date window
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from helpmate.core.logging import get_logger
from helpmate.core.security import get_current_user, get_optional_user
from helpmate.schemas.chat import ChatReply, EscalateRequest, FeedbackRequest, SendMessageRequest
from helpmate.schemas.common import serialize_doc, serialize_many
from helpmate.services import chat_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/send", response_model=ChatReply)
async def send_message(
    data: SendMessageRequest,
    user: Optional[dict] = Depends(get_optional_user),
):
    """
    Sends a message to the assistant.

    Authenticated users get the conversation stored (and metered against
    their subscription); guests get a reply with ``chat_id`` null.
    """
    return await chat_service.send_message(user, data)


@router.get("/history")
async def get_history(
    chat_id: Optional[str] = Query(None, description="Return a single conversation"),
    user: dict = Depends(get_current_user),
):
    if chat_id:
        chat = await chat_service.get_chat(user, chat_id)
        return {"success": True, "chat": serialize_doc(chat)}

    chats = await chat_service.list_chats(user)
    return {"success": True, "chats": serialize_many(chats)}


@router.post("/feedback")
async def submit_feedback(data: FeedbackRequest, user: dict = Depends(get_current_user)):
    await chat_service.submit_feedback(user, data)
    return {"success": True, "message": "Feedback submitted successfully"}


@router.post("/escalate")
async def escalate(data: EscalateRequest, user: dict = Depends(get_current_user)):
    chat = await chat_service.escalate_chat(user, data.chat_id)
    return {
        "success": True,
        "message": "Chat escalated to human agent",
        "chat": serialize_doc(chat),
    }


@router.get("/analytics")
async def get_analytics(
    start_date: Optional[str] = Query(None, description="ISO date, defaults to 30 days before end_date"),
    end_date: Optional[str] = Query(None, description="ISO date, defaults to now"),
    user: dict = Depends(get_current_user),
):
    analytics = await chat_service.get_analytics(user, start_date, end_date)
    return {"success": True, "analytics": serialize_doc(analytics)}


@router.delete("/{chat_id}")
async def delete_chat(chat_id: str, user: dict = Depends(get_current_user)):
    await chat_service.delete_chat(user, chat_id)
    return {"success": True, "message": "Chat deleted successfully"}
