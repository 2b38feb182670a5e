"""
helpmate/schemas/chat.py

Purpose: Dashboard chat payloads

- Message send / reply
- Feedback and escalation requests
"""

from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime


class ChatMessage(BaseModel):
    """A single message in a conversation."""
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    chat_id: Optional[str] = None
    integration_id: Optional[str] = None


class ChatReply(BaseModel):
    response: str
    chat_id: Optional[str] = None


class FeedbackRequest(BaseModel):
    # Presence is checked by the service so a missing field is a 400
    chat_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)


class EscalateRequest(BaseModel):
    chat_id: Optional[str] = None
