"""
Repair malformed media URLs
Course images fall back to DEFAULT_COURSE_IMAGE, lesson video and image
URLs are cleared. Run with `python -m app.scripts.cleanup_media_urls`.
"""

import asyncio
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import DEFAULT_COURSE_IMAGE, LOG_LEVEL
from app.courses.database import get_lessons_ordered
from app.courses.models import is_valid_url
from app.database import close_db, connect_db

logger = logging.getLogger(__name__)

LESSON_MEDIA_FIELDS = ("video_url", "image_url")


def _invalid(url) -> bool:
    return bool(url) and not (isinstance(url, str) and is_valid_url(url))


async def cleanup_invalid_media_urls(db: AsyncIOMotorDatabase) -> dict:
    """
    Reset invalid media URLs across all courses and their lessons

    Returns counts of updated courses and lessons.
    """
    updated_courses = 0
    updated_lessons = 0

    for course in await db.courses.find({}).to_list(length=None):
        course_id = course["_id"]

        if _invalid(course.get("image_url")):
            logger.warning("Invalid image_url for course %s: %s", course_id, course["image_url"])
            await db.courses.update_one({"_id": course_id}, {"$set": {"image_url": DEFAULT_COURSE_IMAGE}})
            updated_courses += 1

        for lesson in await get_lessons_ordered(db, course.get("lessons", [])):
            fixes = {}
            for field in LESSON_MEDIA_FIELDS:
                if _invalid(lesson.get(field)):
                    logger.warning(
                        "Invalid %s for lesson %s in course %s: %s",
                        field, lesson["_id"], course_id, lesson[field]
                    )
                    fixes[field] = ""
            if fixes:
                await db.lessons.update_one({"_id": lesson["_id"]}, {"$set": fixes})
                updated_lessons += 1

    logger.info("Cleanup complete. Updated %d courses and %d lessons", updated_courses, updated_lessons)
    return {"courses": updated_courses, "lessons": updated_lessons}


async def main():
    db = connect_db()
    try:
        await cleanup_invalid_media_urls(db)
    finally:
        close_db()


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
