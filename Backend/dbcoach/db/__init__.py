# dbcoach/db/__init__.py
"""
Database module.
"""
from typing import Optional

from dbcoach.core.config import settings
from dbcoach.core.logging import log

# Motor client instance
_client = None
_db = None
_connection_error: Optional[str] = None


async def connect_db() -> bool:
    """
    Connect to MongoDB and initialize Beanie.

    If MongoDB is not available, stores the error for later retrieval.
    Generation keeps working without it; only persistence is disabled.
    """
    global _client, _db, _connection_error
    from motor.motor_asyncio import AsyncIOMotorClient
    from beanie import init_beanie
    from dbcoach.models import GeneratedDesign

    try:
        _client = AsyncIOMotorClient(settings.database.mongodb_url, serverSelectionTimeoutMS=5000)
        _db = _client[settings.database.database_name]

        # Fails fast if MongoDB is not running
        await _client.admin.command("ping")
        log("DB", "✅ Connected to MongoDB")

        await init_beanie(database=_db, document_models=[GeneratedDesign])
        log("DB", "✅ Beanie ODM initialized")
        _connection_error = None
        return True
    except Exception as e:
        _connection_error = str(e)
        log("PERSIST", f"⚠️ MongoDB not available: {_connection_error}")
        log("PERSIST", f"ℹ️ Designs will not be stored. Check {settings.database.mongodb_url}")
        if _client is not None:
            _client.close()
        _client = None
        _db = None
        return False


async def disconnect_db() -> None:
    """Disconnect from MongoDB."""
    global _client, _db
    if _client is not None:
        _client.close()
        log("DB", "Disconnected from MongoDB")
    _client = None
    _db = None


def is_connected() -> bool:
    return _db is not None


def get_connection_error() -> Optional[str]:
    return _connection_error
