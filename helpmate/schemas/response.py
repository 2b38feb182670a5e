"""
helpmate/schemas/response.py

Purpose: Error body shared by every endpoint

- Rendered by the handlers in helpmate.core.errors
- The widget and dashboard read ``error`` for the user-facing message
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Body returned for any failed request.
    """
    error: str = Field(..., description="Human readable message")
    code: str = Field(..., description="Machine readable code, e.g. QUOTA_EXCEEDED")
    details: Optional[Any] = Field(default=None, description="Field errors or extra context")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Chat limit reached. Please upgrade your plan.",
                "code": "QUOTA_EXCEEDED",
                "details": None,
            }
        }
    )
