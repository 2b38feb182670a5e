"""
helpmate/services/subscription_service.py

Purpose: Subscription lifecycle and chat quota

- Plan catalogue
- Create / read / cancel subscriptions and start trials
- Lazy expiry when a subscription is read
- Chat allowance accounting (consume_chat)

Payments are collected outside this service; payment and gateway
subscription ids are stored as given.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from helpmate.core.config import settings
from helpmate.core.exceptions import QuotaExceededError, ResourceNotFoundError, ValidationError
from helpmate.core.logging import get_logger, LogContext
from helpmate.db.mongo import get_subscriptions_collection
from helpmate.schemas.subscription import SubscriptionCreate
from helpmate.services.user_service import set_subscription_flags
from utils.constants import PLANS, PAYMENT_CYCLES, TRIAL_PLAN, CHAT_LIMIT_MESSAGE
from utils.time_utils import calculate_end_date, calculate_trial_end, is_expired

logger = get_logger(__name__)

# Statuses that grant access to the service
LIVE_STATUSES = ("active", "trial")


def get_plans() -> Dict[str, Any]:
    return PLANS


def get_plan(plan: Optional[str]) -> Optional[Dict[str, Any]]:
    if not plan:
        return None
    return PLANS.get(plan)


async def get_subscription(user_id) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user's subscription, expiring it first if its period ended.

    Returns:
        Subscription document or None
    """
    subscriptions = get_subscriptions_collection()
    subscription = await subscriptions.find_one({"user": user_id})
    if not subscription:
        return None

    if subscription.get("status") in LIVE_STATUSES and is_expired(subscription.get("end_date")):
        with LogContext(user_id=str(user_id)):
            logger.info(f"Subscription ({subscription.get('status')}) expired")
        await subscriptions.update_one(
            {"_id": subscription["_id"]},
            {"$set": {"status": "expired"}}
        )
        await set_subscription_flags(user_id, False)
        subscription["status"] = "expired"

    return subscription


async def get_live_subscription(user_id) -> Optional[Dict[str, Any]]:
    """Active or trial subscription, or None."""
    subscription = await get_subscription(user_id)
    if subscription and subscription.get("status") in LIVE_STATUSES:
        return subscription
    return None


async def create_subscription(user: Dict[str, Any], data: SubscriptionCreate) -> Dict[str, Any]:
    """
    Starts (or restarts) a paid subscription.

    Raises:
        ValidationError: Unknown plan or cycle, or an active subscription exists
    """
    plan_details = get_plan(data.plan)
    if plan_details is None:
        raise ValidationError("Invalid plan selected")
    if data.payment_cycle not in PAYMENT_CYCLES:
        raise ValidationError("Invalid payment cycle")

    existing = await get_subscription(user["_id"])
    if existing and existing.get("status") == "active":
        raise ValidationError("User already has an active subscription")

    now = datetime.utcnow()
    fields = {
        "plan": data.plan,
        "payment_cycle": data.payment_cycle,
        "plan_details": plan_details,
        "payment_id": data.payment_id,
        "subscription_id": data.subscription_id,
        "status": "active",
        "start_date": now,
        "end_date": calculate_end_date(data.payment_cycle, now),
        "chat_limit": plan_details["chat_limit"],
        "chats_used": 0,
    }

    subscriptions = get_subscriptions_collection()
    subscription = await subscriptions.find_one_and_update(
        {"user": user["_id"]},
        {
            "$set": fields,
            "$setOnInsert": {"user": user["_id"], "had_trial": False, "created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    await set_subscription_flags(user["_id"], True, data.plan)

    with LogContext(user_id=str(user["_id"])):
        logger.info(f"Subscription created: {data.plan} ({data.payment_cycle})")

    return subscription


async def cancel_subscription(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Cancels the current subscription or trial.

    Raises:
        ResourceNotFoundError: No subscription
        ValidationError: Subscription is not active or trial
    """
    subscription = await get_subscription(user["_id"])
    if not subscription:
        raise ResourceNotFoundError("No subscription found")
    if subscription.get("status") not in LIVE_STATUSES:
        raise ValidationError("Subscription is not active")

    subscriptions = get_subscriptions_collection()
    await subscriptions.update_one(
        {"_id": subscription["_id"]},
        {"$set": {"status": "cancelled", "cancelled_at": datetime.utcnow()}}
    )
    await set_subscription_flags(user["_id"], False)
    subscription["status"] = "cancelled"

    with LogContext(user_id=str(user["_id"])):
        logger.info("Subscription cancelled")

    return subscription


async def start_trial(user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Starts the one-off free trial on the trial plan.

    Raises:
        ValidationError: Trial already used or an active subscription exists
    """
    existing = await get_subscription(user["_id"])
    if existing:
        if existing.get("had_trial"):
            raise ValidationError("You have already used your free trial")
        if existing.get("status") in LIVE_STATUSES:
            raise ValidationError("User already has an active subscription")

    plan_details = PLANS[TRIAL_PLAN]
    now = datetime.utcnow()
    subscriptions = get_subscriptions_collection()
    subscription = await subscriptions.find_one_and_update(
        {"user": user["_id"]},
        {
            "$set": {
                "plan": TRIAL_PLAN,
                "payment_cycle": "monthly",
                "plan_details": plan_details,
                "status": "trial",
                "start_date": now,
                "end_date": calculate_trial_end(settings.TRIAL_DAYS, now),
                "chat_limit": plan_details["chat_limit"],
                "chats_used": 0,
                "had_trial": True,
            },
            "$setOnInsert": {
                "user": user["_id"],
                "payment_id": None,
                "subscription_id": None,
                "created_at": now,
            },
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    await set_subscription_flags(user["_id"], True, TRIAL_PLAN)

    with LogContext(user_id=str(user["_id"])):
        logger.info(f"Trial started ({settings.TRIAL_DAYS} days)")

    return subscription


async def consume_chat(user_id, limit_message: str = CHAT_LIMIT_MESSAGE) -> Optional[Dict[str, Any]]:
    """
    Counts one chat against the user's live subscription.

    Users without a live subscription are not metered.

    Args:
        user_id: Owner ObjectId
        limit_message: Error text when the allowance is used up

    Returns:
        The updated subscription, or None when unmetered

    Raises:
        QuotaExceededError: If the chat limit has been reached
    """
    subscription = await get_live_subscription(user_id)
    if subscription is None:
        return None

    subscriptions = get_subscriptions_collection()
    query: Dict[str, Any] = {"_id": subscription["_id"]}
    limit = subscription.get("chat_limit")
    if limit is not None:
        # Conditional increment so concurrent chats cannot overshoot the limit
        query["chats_used"] = {"$lt": limit}

    updated = await subscriptions.find_one_and_update(
        query,
        {"$inc": {"chats_used": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        with LogContext(user_id=str(user_id)):
            logger.info(f"Chat limit reached ({limit})")
        raise QuotaExceededError(limit_message)

    return updated
