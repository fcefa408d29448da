import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.chat.manager import broadcaster
from app.database import is_object_id, to_object_id
from app.forum.models import DiscussionCreate, EntityRef, RefKind
from app.forum.presenters import populate_discussion, populate_discussions

logger = logging.getLogger(__name__)


async def resolve_ref(collection, ref: EntityRef, label: str, scope: Optional[dict] = None) -> dict:
    """
    Look up a course or lesson by id or by title

    `scope` narrows a title lookup first (a lesson title inside one course),
    falling back to the first match anywhere.
    """
    doc = None
    if ref.by == RefKind.ID:
        if not is_object_id(ref.value):
            raise HTTPException(status_code=400, detail=f"Invalid {label.lower()} ID")
        doc = await collection.find_one({"_id": to_object_id(ref.value, label.lower())})
    else:
        if scope:
            doc = await collection.find_one({"title": ref.value, **scope})
        if doc is None:
            doc = await collection.find_one({"title": ref.value})

    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


async def get_discussion_or_404(db: AsyncIOMotorDatabase, discussion_id: str) -> dict:
    oid = to_object_id(discussion_id, "discussion")
    discussion = await db.discussions.find_one({"_id": oid})
    if not discussion:
        raise HTTPException(status_code=404, detail="Discussion not found")
    return discussion


async def create_discussion(db: AsyncIOMotorDatabase, data: DiscussionCreate, actor: dict) -> dict:
    course = await resolve_ref(db.courses, data.course, "Course")
    course_id = str(course["_id"])
    lesson = await resolve_ref(db.lessons, data.lesson, "Lesson", scope={"course_id": course_id})

    if lesson.get("course_id") != course_id:
        raise HTTPException(status_code=400, detail="Lesson does not belong to the selected course")

    now = datetime.utcnow()
    doc = {
        "user_id": actor["id"],
        "course_id": course_id,
        "lesson_id": str(lesson["_id"]),
        "title": data.title,
        "content": data.content or "",
        "creator_username": actor.get("name") or "User",
        "is_blocked": False,
        "created_at": now,
        "updated_at": now,
    }
    result = await db.discussions.insert_one(doc)
    doc["_id"] = result.inserted_id

    discussion = await populate_discussion(db, doc, actor)
    logger.info("Discussion %s created by %s", discussion["id"], actor["id"])
    await broadcaster.publish("discussionCreated", discussion, discussion_id=discussion["id"])
    return discussion


async def list_discussions(
    db: AsyncIOMotorDatabase,
    course_id: Optional[str],
    lesson_id: Optional[str],
    skip: int,
    limit: int,
    viewer: Optional[dict]
) -> list:
    query = {}
    if course_id:
        to_object_id(course_id, "course")
        query["course_id"] = course_id
    if lesson_id:
        to_object_id(lesson_id, "lesson")
        query["lesson_id"] = lesson_id

    cursor = db.discussions.find(query, sort=[("created_at", -1), ("_id", -1)], skip=skip, limit=limit)
    discussions = await cursor.to_list(length=limit)
    return await populate_discussions(db, discussions, viewer)


async def get_discussion(db: AsyncIOMotorDatabase, discussion_id: str, viewer: Optional[dict]) -> dict:
    discussion = await get_discussion_or_404(db, discussion_id)
    return await populate_discussion(db, discussion, viewer)


async def block_discussion(db: AsyncIOMotorDatabase, discussion_id: str, blocked: bool, admin: dict) -> dict:
    """Set the blocked flag; the event fires only when the flag changes"""
    discussion = await get_discussion_or_404(db, discussion_id)

    result = await db.discussions.update_one(
        {"_id": discussion["_id"], "is_blocked": {"$ne": blocked}},
        {"$set": {"is_blocked": blocked, "updated_at": datetime.utcnow()}}
    )
    updated = await get_discussion(db, discussion_id, admin)

    if result.modified_count:
        logger.info("Discussion %s blocked=%s by %s", discussion_id, blocked, admin["id"])
        await broadcaster.publish("discussionBlocked", updated, discussion_id=discussion_id)

    return updated
