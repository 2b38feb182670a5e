"""
helpmate/api/admin.py

Purpose: Administrator endpoints (admin accounts only)
"""

from fastapi import APIRouter, Depends, Query

from helpmate.core.security import get_admin_user
from helpmate.schemas.common import serialize_many
from helpmate.services import admin_service, user_service

router = APIRouter(dependencies=[Depends(get_admin_user)])


@router.get("/dashboard")
async def dashboard():
    return {"success": True, "stats": await admin_service.get_dashboard_stats()}


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    result = await user_service.list_users(skip=(page - 1) * limit, limit=limit)
    return {
        "success": True,
        "total": result["total"],
        "page": page,
        "limit": limit,
        "users": serialize_many(result["users"]),
    }


@router.get("/settings")
async def get_settings():
    return {"success": True, "settings": admin_service.get_public_settings()}
