"""
helpmate/api/auth.py

Purpose: Account endpoints

- Register and login (return a signed access token)
- Current user profile
"""

from fastapi import APIRouter, Depends, status

from helpmate.core.logging import get_logger
from helpmate.core.security import create_access_token, get_current_user
from helpmate.schemas.auth import LoginRequest, RegisterRequest
from helpmate.schemas.common import serialize_doc
from helpmate.services import user_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest):
    """
    Creates an account and signs the user in.
    """
    user = await user_service.create_user(data)
    return {
        "success": True,
        "token": create_access_token(user),
        "user": serialize_doc(user),
    }


@router.post("/login")
async def login(data: LoginRequest):
    user = await user_service.authenticate_user(data.email, data.password)
    return {
        "success": True,
        "token": create_access_token(user),
        "user": serialize_doc(user),
    }


@router.get("/user")
async def get_user(user: dict = Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(user)}
