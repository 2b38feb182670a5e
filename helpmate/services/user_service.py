"""
helpmate/services/user_service.py

Purpose: User account management

- Registration and credential checks
- User retrieval
- Subscription flags mirrored on the user record
"""

from datetime import datetime
from typing import Optional, Dict, Any

from pymongo.errors import DuplicateKeyError

from helpmate.db.mongo import get_users_collection
from helpmate.core.exceptions import AuthenticationError, ValidationError
from helpmate.core.logging import get_logger, LogContext
from helpmate.core.security import hash_password, verify_password
from helpmate.schemas.auth import RegisterRequest
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)


async def create_user(data: RegisterRequest, is_admin: bool = False) -> Dict[str, Any]:
    """
    Registers a new account.

    Args:
        data: Validated registration payload
        is_admin: Grant admin rights (only used by scripts)

    Returns:
        The inserted user document

    Raises:
        ValidationError: If the email is already registered
    """
    users = get_users_collection()

    if await users.find_one({"email": data.email}):
        raise ValidationError("User already exists")

    user = {
        "name": data.name,
        "email": data.email,
        "password": hash_password(data.password),
        "phone": data.phone,
        "business_name": data.business_name,
        "is_admin": is_admin,
        "subscription_active": False,
        "subscription_plan": None,
        "created_at": datetime.utcnow(),
    }

    try:
        result = await users.insert_one(user)
    except DuplicateKeyError:
        # Lost a race with a concurrent registration
        raise ValidationError("User already exists")

    user["_id"] = result.inserted_id
    with LogContext(user_id=str(result.inserted_id)):
        logger.info("New user registered")

    return user


async def authenticate_user(email: str, password: str) -> Dict[str, Any]:
    """
    Checks credentials.

    Raises:
        AuthenticationError: If the email is unknown or the password wrong
    """
    users = get_users_collection()
    user = await users.find_one({"email": email.strip().lower()})

    if not user or not verify_password(password, user.get("password", "")):
        logger.info("Failed login attempt")
        raise AuthenticationError("Invalid credentials")

    return user


async def get_user_by_id(user_id) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by id (string or ObjectId).

    Returns:
        User document or None if not found
    """
    oid = parse_object_id(str(user_id)) if user_id is not None else None
    if oid is None:
        return None
    users = get_users_collection()
    return await users.find_one({"_id": oid})


async def set_subscription_flags(user_id, active: bool, plan: Optional[str] = None) -> bool:
    """
    Mirrors subscription state onto the user record.

    Args:
        user_id: User ObjectId
        active: Whether the user currently has access
        plan: Plan name; left unchanged when None

    Returns:
        True if the user exists
    """
    users = get_users_collection()
    update: Dict[str, Any] = {"subscription_active": active}
    if plan is not None:
        update["subscription_plan"] = plan

    result = await users.update_one({"_id": user_id}, {"$set": update})
    return result.matched_count > 0


async def list_users(skip: int = 0, limit: int = 50) -> Dict[str, Any]:
    users = get_users_collection()
    total = await users.count_documents({})
    cursor = users.find({}, {"password": 0}).sort("created_at", -1).skip(skip).limit(limit)
    return {"total": total, "users": await cursor.to_list(length=limit)}
