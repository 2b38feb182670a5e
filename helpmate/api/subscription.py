"""
helpmate/api/subscription.py

Purpose: Subscription endpoints

- Plan catalogue (public)
- Create, view and cancel the current subscription
- Free trial
"""

from fastapi import APIRouter, Depends, status

from helpmate.core.exceptions import ResourceNotFoundError
from helpmate.core.logging import get_logger
from helpmate.core.security import get_current_user
from helpmate.schemas.common import serialize_doc
from helpmate.schemas.subscription import SubscriptionCreate
from helpmate.services import subscription_service

logger = get_logger(__name__)
router = APIRouter()


@router.get("/plans")
async def get_plans():
    return {"success": True, "plans": subscription_service.get_plans()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_subscription(data: SubscriptionCreate, user: dict = Depends(get_current_user)):
    subscription = await subscription_service.create_subscription(user, data)
    return {"success": True, "subscription": serialize_doc(subscription)}


@router.get("/")
async def get_subscription(user: dict = Depends(get_current_user)):
    subscription = await subscription_service.get_subscription(user["_id"])
    if not subscription:
        raise ResourceNotFoundError("No subscription found")

    return {
        "success": True,
        "subscription": serialize_doc(subscription),
        "plan_details": subscription_service.get_plan(subscription.get("plan")),
    }


@router.post("/cancel")
async def cancel_subscription(user: dict = Depends(get_current_user)):
    subscription = await subscription_service.cancel_subscription(user)
    return {
        "success": True,
        "message": "Subscription cancelled successfully",
        "subscription": serialize_doc(subscription),
    }


@router.post("/trial", status_code=status.HTTP_201_CREATED)
async def start_trial(user: dict = Depends(get_current_user)):
    subscription = await subscription_service.start_trial(user)
    return {
        "success": True,
        "message": "Free trial started",
        "subscription": serialize_doc(subscription),
    }
