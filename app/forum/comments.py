import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import is_admin
from app.chat.manager import broadcaster
from app.courses.database import get_lesson
from app.database import to_object_id
from app.forum.discussions import get_discussion_or_404
from app.forum.models import CommentCreate, CommentUpdate
from app.forum.presenters import populate_comments
from app.uploads.storage import save_image

logger = logging.getLogger(__name__)


async def _present(db: AsyncIOMotorDatabase, comment: dict, viewer: Optional[dict]) -> dict:
    return (await populate_comments(db, [comment], viewer))[0]


async def get_comment_or_404(db: AsyncIOMotorDatabase, comment_id: str) -> dict:
    comment = await db.comments.find_one({"_id": to_object_id(comment_id, "comment")})
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


def ensure_can_modify(comment: dict, actor: dict):
    if comment.get("user_id") != actor["id"] and not is_admin(actor):
        raise HTTPException(status_code=403, detail="Not authorized to modify this comment")


async def add_comment(
    db: AsyncIOMotorDatabase,
    discussion_id: str,
    data: CommentCreate,
    actor: dict,
    images: Optional[List[UploadFile]] = None
) -> dict:
    """
    Post a comment under a discussion, or straight onto a lesson

    The discussion is checked before anything is written. A comment aimed
    at a lesson carries no discussion_id and so never shows up in a
    discussion's responses.
    """
    content = (data.content or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content is required")

    discussion = await get_discussion_or_404(db, discussion_id)

    lesson = None
    if data.lesson_id:
        to_object_id(data.lesson_id, "lesson")
        lesson = await get_lesson(db, data.lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")

    paths = [path for path in (save_image(f, "comments") for f in images or []) if path]

    now = datetime.utcnow()
    doc = {
        "user_id": actor["id"],
        "content": content,
        "rating": data.rating,
        "images": paths,
        "discussion_id": None if lesson else discussion_id,
        "lesson_id": str(lesson["_id"]) if lesson else discussion.get("lesson_id"),
        "course_id": lesson.get("course_id") if lesson else discussion.get("course_id"),
        "is_blocked": False,
        "created_at": now,
        "updated_at": now,
    }
    result = await db.comments.insert_one(doc)
    doc["_id"] = result.inserted_id

    comment = await _present(db, doc, actor)
    logger.info("Comment %s added to discussion %s by %s", comment["id"], discussion_id, actor["id"])
    await broadcaster.publish("commentAdded", comment, discussion_id=discussion_id)
    return comment


async def list_course_comments(db: AsyncIOMotorDatabase, course_id: str, viewer: Optional[dict]) -> list:
    to_object_id(course_id, "course")
    cursor = db.comments.find({"course_id": course_id}, sort=[("created_at", -1), ("_id", -1)])
    return await populate_comments(db, await cursor.to_list(length=None), viewer)


async def edit_comment(db: AsyncIOMotorDatabase, comment_id: str, data: CommentUpdate, actor: dict) -> dict:
    comment = await get_comment_or_404(db, comment_id)
    ensure_can_modify(comment, actor)

    changes = {"content": data.content.strip(), "rating": data.rating, "updated_at": datetime.utcnow()}
    await db.comments.update_one({"_id": comment["_id"]}, {"$set": changes})
    comment.update(changes)

    result = await _present(db, comment, actor)
    await broadcaster.publish("commentEdited", result, discussion_id=comment.get("discussion_id"))
    return result


async def delete_comment(db: AsyncIOMotorDatabase, comment_id: str, actor: dict) -> None:
    comment = await get_comment_or_404(db, comment_id)
    ensure_can_modify(comment, actor)

    result = await db.comments.delete_one({"_id": comment["_id"]})
    if not result.deleted_count:
        raise HTTPException(status_code=404, detail="Comment not found")

    logger.info("Comment %s deleted by %s", comment_id, actor["id"])
    await broadcaster.publish(
        "commentDeleted", {"comment_id": comment_id}, discussion_id=comment.get("discussion_id")
    )


async def block_comment(db: AsyncIOMotorDatabase, comment_id: str, blocked: bool, admin: dict) -> dict:
    comment = await get_comment_or_404(db, comment_id)

    result = await db.comments.update_one(
        {"_id": comment["_id"], "is_blocked": {"$ne": blocked}},
        {"$set": {"is_blocked": blocked, "updated_at": datetime.utcnow()}}
    )
    comment["is_blocked"] = blocked

    if result.modified_count:
        logger.info("Comment %s blocked=%s by %s", comment_id, blocked, admin["id"])
        await broadcaster.publish(
            "commentBlocked",
            {"comment_id": comment_id, "blocked": blocked},
            discussion_id=comment.get("discussion_id")
        )

    return await _present(db, comment, admin)
