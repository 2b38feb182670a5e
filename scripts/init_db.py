"""
Database initialization script for HelpMate AI

Run once to create indexes (and optionally an admin account):
    python scripts/init_db.py
    python scripts/init_db.py --reset
    python scripts/init_db.py --admin-email admin@helpmate.ai --admin-password secret123
"""

import argparse
import asyncio
import sys
from pathlib import Path
import logging

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from motor.motor_asyncio import AsyncIOMotorClient

from helpmate.core.config import settings
from helpmate.core.exceptions import ValidationError
from helpmate.db.indexes import create_indexes, drop_all_indexes
from helpmate.db.mongo import use_database
from helpmate.schemas.auth import RegisterRequest
from helpmate.services.user_service import create_user

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = ["users", "chats", "subscriptions", "integrations"]


async def create_admin(email: str, password: str, name: str):
    """Creates an admin account unless the email is already registered."""
    try:
        data = RegisterRequest(name=name, email=email, password=password)
        user = await create_user(data, is_admin=True)
        logger.info(f"Admin account created: {user['email']}")
    except ValidationError as e:
        logger.info(f"Admin account not created: {e.message}")


async def main(args):
    logger.info("=" * 60)
    logger.info("  HelpMate AI Database Setup")
    logger.info("=" * 60)

    logger.info(f"Connecting to MongoDB: {settings.MONGODB_DB_NAME}")
    client = AsyncIOMotorClient(settings.MONGODB_URL, serverSelectionTimeoutMS=5000)
    db = client[settings.MONGODB_DB_NAME]

    try:
        await client.admin.command('ping')
        logger.info("Connected successfully")
        use_database(db, client)

        if args.reset:
            logger.info("Dropping existing indexes...")
            await drop_all_indexes()

        await create_indexes()

        logger.info("Verifying indexes...")
        for collection_name in COLLECTIONS:
            indexes = await db[collection_name].index_information()
            names = [name for name in indexes if name != "_id_"]
            logger.info(f"  {collection_name}: {', '.join(names) or '(none)'}")

        if args.admin_email and args.admin_password:
            await create_admin(args.admin_email, args.admin_password, args.admin_name)

        logger.info("Current documents:")
        for collection_name in COLLECTIONS:
            count = await db[collection_name].count_documents({})
            logger.info(f"  {collection_name}: {count}")

        logger.info("Database initialization complete!")

    except Exception as e:
        logger.error(f"Error: {e}")
        raise

    finally:
        use_database(None)
        client.close()


def parse_args():
    parser = argparse.ArgumentParser(description="Create HelpMate AI indexes and an optional admin account")
    parser.add_argument("--reset", action="store_true", help="Drop non-default indexes before creating them")
    parser.add_argument("--admin-email", help="Email of an admin account to create")
    parser.add_argument("--admin-password", help="Password for the admin account")
    parser.add_argument("--admin-name", default="Administrator", help="Display name for the admin account")
    return parser.parse_args()


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
