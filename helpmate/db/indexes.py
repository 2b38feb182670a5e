"""
helpmate/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
"""

from pymongo import ASCENDING, DESCENDING

from helpmate.db.mongo import (
    get_users_collection,
    get_chats_collection,
    get_subscriptions_collection,
    get_integrations_collection,
)
from helpmate.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        chats = get_chats_collection()
        subscriptions = get_subscriptions_collection()
        integrations = get_integrations_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS
        # ==============================================

        await users.create_index("email", unique=True, name="email_unique")
        await users.create_index("created_at", name="user_created_idx")
        logger.debug("Created indexes on users")

        # ==============================================
        # CHATS
        # ==============================================

        # Owner's history sorted by recency
        await chats.create_index(
            [("user", ASCENDING), ("updated_at", DESCENDING)],
            name="user_chats_idx"
        )

        # Analytics range queries
        await chats.create_index(
            [("user", ASCENDING), ("created_at", ASCENDING)],
            name="user_chats_created_idx"
        )

        # Widget transcripts are upserted by session id
        await chats.create_index(
            "session_id",
            unique=True,
            sparse=True,
            name="session_id_unique"
        )
        await chats.create_index("integration", name="chat_integration_idx")
        logger.debug("Created indexes on chats")

        # ==============================================
        # SUBSCRIPTIONS
        # ==============================================

        await subscriptions.create_index("user", unique=True, name="subscription_user_unique")
        await subscriptions.create_index("payment_id", name="subscription_payment_idx")
        await subscriptions.create_index("status", name="subscription_status_idx")
        logger.debug("Created indexes on subscriptions")

        # ==============================================
        # INTEGRATIONS
        # ==============================================

        await integrations.create_index("api_key", unique=True, name="api_key_unique")
        await integrations.create_index("user", name="integration_user_idx")
        logger.debug("Created indexes on integrations")

        logger.info("All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Only for maintenance/migration.
    """
    try:
        logger.warning("Dropping all database indexes...")

        for collection in (
            get_users_collection(),
            get_chats_collection(),
            get_subscriptions_collection(),
            get_integrations_collection(),
        ):
            await collection.drop_indexes()

        logger.info("All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise
