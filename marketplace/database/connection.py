import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from marketplace.core.config import MONGODB_DB, MONGODB_URL

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(url: str = MONGODB_URL, db_name: str = MONGODB_DB) -> AsyncIOMotorDatabase:
    global _client, _database
    if _database is not None:
        return _database
    _client = AsyncIOMotorClient(url, tz_aware=True)
    _database = _client[db_name]
    logger.info("Connected to MongoDB database %s", db_name)
    return _database


async def close_mongo_connection() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    _database = None


def set_database(db: Optional[AsyncIOMotorDatabase]) -> None:
    """Swap the active database, used by tests and scripts."""
    global _database
    _database = db


def get_database() -> AsyncIOMotorDatabase:
    if _database is None:
        raise RuntimeError("MongoDB is not connected; call connect_to_mongo() first")
    return _database


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
