"""
helpmate/schemas/auth.py

Purpose: Account registration and login payloads
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional

from utils.validation_utils import validate_email, validate_phone


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = None
    business_name: Optional[str] = Field(default=None, max_length=200)

    @field_validator("name", "business_name")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not validate_email(v):
            raise ValueError("Please add a valid email")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v in (None, ""):
            return None
        if not validate_phone(v):
            raise ValueError("Please add a valid 10-digit phone number")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Jane Doe",
                "email": "jane@shop.com",
                "password": "secret123",
                "business_name": "Jane's Shop"
            }
        }


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()
