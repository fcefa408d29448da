import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import MONGO_URI, MONGO_DB_NAME

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def connect_db() -> AsyncIOMotorDatabase:
    """Open the shared motor client on first use"""
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(MONGO_URI)
        _db = _client[MONGO_DB_NAME]
        logger.info("MongoDB client created for database %s", MONGO_DB_NAME)
    return _db


def use_database(database: AsyncIOMotorDatabase) -> None:
    """Swap the database handle (tests, scripts)"""
    global _db
    _db = database


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None


def get_db_instance() -> AsyncIOMotorDatabase:
    if _db is None:
        return connect_db()
    return _db


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()


# ==================== ID / SERIALIZATION HELPERS ====================

def is_object_id(value) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def to_object_id(value: str, label: str = "") -> ObjectId:
    """Parse a hex id or fail with 400"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        name = f"{label} " if label else ""
        raise HTTPException(status_code=400, detail=f"Invalid {name}ID")


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Copy a mongo document, exposing _id as a string `id`"""
    if doc is None:
        return None
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return data


def serialize_many(docs: list) -> list:
    return [serialize_doc(doc) for doc in docs]


# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create MongoDB indexes used by the API"""
    await db.users.create_index("email", unique=True)
    await db.users.create_index("role")

    await db.courses.create_index([("is_active", 1), ("created_at", -1)])
    await db.courses.create_index("instructor_id")
    await db.courses.create_index("category")

    await db.lessons.create_index("course_id")

    await db.discussions.create_index([("course_id", 1), ("lesson_id", 1)])
    await db.discussions.create_index("created_at")

    await db.comments.create_index([("discussion_id", 1), ("created_at", 1)])
    await db.comments.create_index([("lesson_id", 1), ("created_at", -1)])
    await db.comments.create_index("course_id")

    await db.messages.create_index([("discussion_id", 1), ("created_at", 1)])

    logger.info("Indexes created")
