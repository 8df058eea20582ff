# divein/db.py
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection

from divein.config import settings

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_client() -> AsyncIOMotorClient:
    """
    Returns a singleton AsyncIOMotorClient. Creates it if not already created.
    Datetimes come back timezone-aware (UTC).
    """
    global _client
    if _client is None:
        if not settings.mongo_uri:
            raise RuntimeError("MONGO_URI not set in environment")
        _client = AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the configured database object.
    """
    global _db
    if _db is None:
        if not settings.mongo_db_name:
            raise RuntimeError("MONGO_DB_NAME not set in environment")
        _db = get_client()[settings.mongo_db_name]
    return _db


def get_collection(name: str) -> AsyncIOMotorCollection:
    """
    Convenience to get a collection from the configured DB.
    Usage: opportunities = get_collection('opportunities'); await opportunities.find_one({...})
    """
    return get_database()[name]


def close_client() -> None:
    """
    Close the motor client - call this on application shutdown.
    """
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None


async def ping() -> bool:
    result = await get_database().command("ping")
    return bool(result.get("ok"))


async def create_indexes() -> None:
    users = get_collection("users")
    await users.create_index("email", unique=True)

    organizations = get_collection("organizations")
    await organizations.create_index("user_id", unique=True)

    opportunities = get_collection("opportunities")
    await opportunities.create_index("author_id")
    await opportunities.create_index([("status", 1), ("created_at", -1)])

    applications = get_collection("applications")
    await applications.create_index("opportunity_id")
    await applications.create_index("created_at")

    reset_tokens = get_collection("password_reset_tokens")
    await reset_tokens.create_index("token_hash", unique=True)
    await reset_tokens.create_index("user_id")

    revoked_tokens = get_collection("revoked_tokens")
    await revoked_tokens.create_index("jti", unique=True)
