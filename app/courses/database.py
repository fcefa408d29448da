import logging
import re
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import DEFAULT_COURSE_IMAGE
from app.courses.models import CourseCreate, CourseUpdate, LessonCreate
from app.database import is_object_id, serialize_doc

logger = logging.getLogger(__name__)

# ==================== LESSON CRUD ====================

async def create_lessons(db: AsyncIOMotorDatabase, course_id: str, lessons: List[LessonCreate]) -> List[str]:
    """Insert lessons for a course, returning their ids in the given order"""
    if not lessons:
        return []
    now = datetime.utcnow()
    docs = [
        {
            "title": lesson.title,
            "content": lesson.content,
            "video_url": lesson.video_url,
            "image_url": lesson.image_url or "",
            "quiz": [q.model_dump() for q in lesson.quiz],
            "course_id": course_id,
            "created_at": now,
        }
        for lesson in lessons
    ]
    result = await db.lessons.insert_many(docs)
    return [str(_id) for _id in result.inserted_ids]


async def get_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> Optional[dict]:
    if not is_object_id(lesson_id):
        return None
    return await db.lessons.find_one({"_id": ObjectId(lesson_id)})


async def get_lessons_ordered(db: AsyncIOMotorDatabase, lesson_ids: List[str]) -> List[dict]:
    """Fetch lessons keeping the course's lesson order"""
    oids = [ObjectId(lid) for lid in lesson_ids if is_object_id(lid)]
    if not oids:
        return []
    found = await db.lessons.find({"_id": {"$in": oids}}).to_list(length=None)
    by_id = {str(doc["_id"]): doc for doc in found}
    return [by_id[lid] for lid in lesson_ids if lid in by_id]


async def list_course_lessons(db: AsyncIOMotorDatabase, course_id: str) -> List[dict]:
    """Lesson id/title pairs of a course"""
    cursor = db.lessons.find({"course_id": course_id}, {"title": 1}, sort=[("created_at", 1), ("_id", 1)])
    return [serialize_doc(doc) for doc in await cursor.to_list(length=None)]

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, data: CourseCreate, instructor_id: str) -> dict:
    """Create course and its lessons; lessons point back at the course"""
    course_oid = ObjectId()
    lesson_ids = await create_lessons(db, str(course_oid), data.lessons)

    now = datetime.utcnow()
    course = {
        "_id": course_oid,
        "title": data.title,
        "description": data.description,
        "category": data.category,
        "difficulty_level": data.difficulty_level.value,
        "instructor_id": instructor_id,
        "lessons": lesson_ids,
        "image_url": data.image_url or DEFAULT_COURSE_IMAGE,
        "rating": 0,
        "is_active": True,
        "is_blocked": False,
        "created_at": now,
        "updated_at": now,
    }
    await db.courses.insert_one(course)
    logger.info("Course %s created by %s with %d lesson(s)", course_oid, instructor_id, len(lesson_ids))
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    if not is_object_id(course_id):
        return None
    return await db.courses.find_one({"_id": ObjectId(course_id)})


async def populate_course(db: AsyncIOMotorDatabase, course: dict) -> dict:
    data = serialize_doc(course)
    data["lessons"] = [serialize_doc(l) for l in await get_lessons_ordered(db, course.get("lessons", []))]
    return data


async def list_courses(db: AsyncIOMotorDatabase, filters: dict, skip: int = 0, limit: int = 10) -> List[dict]:
    """List active courses with filters"""
    query = {"is_active": True}
    if filters.get("instructor"):
        query["instructor_id"] = filters["instructor"]
    if filters.get("category"):
        query["category"] = filters["category"]
    if filters.get("difficulty_level"):
        query["difficulty_level"] = filters["difficulty_level"]
    if filters.get("search"):
        pattern = re.escape(filters["search"])
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    cursor = db.courses.find(query, sort=[("created_at", -1)], skip=skip, limit=limit)
    return await cursor.to_list(length=limit)


async def list_categories(db: AsyncIOMotorDatabase) -> List[str]:
    docs = await db.courses.find({"is_active": True}, {"category": 1}).to_list(length=None)
    return sorted({doc["category"] for doc in docs if doc.get("category")})


async def update_course(db: AsyncIOMotorDatabase, course: dict, data: CourseUpdate) -> dict:
    """
    Apply a course update. When lessons are supplied the old ones are
    deleted and the new list recreated wholesale.
    """
    updates = {}
    for field in ("title", "description", "category", "image_url"):
        value = getattr(data, field)
        if value is not None:
            updates[field] = value
    if data.difficulty_level is not None:
        updates["difficulty_level"] = data.difficulty_level.value

    course_id = str(course["_id"])
    if data.lessons is not None:
        old_ids = [ObjectId(lid) for lid in course.get("lessons", []) if is_object_id(lid)]
        if old_ids:
            await db.lessons.delete_many({"_id": {"$in": old_ids}})
        updates["lessons"] = await create_lessons(db, course_id, data.lessons)

    updates["updated_at"] = datetime.utcnow()
    await db.courses.update_one({"_id": course["_id"]}, {"$set": updates})
    return await db.courses.find_one({"_id": course["_id"]})


async def deactivate_course(db: AsyncIOMotorDatabase, course_id: str) -> int:
    """Soft delete; returns how many users lost the enrollment"""
    await db.courses.update_one(
        {"_id": ObjectId(course_id)},
        {"$set": {"is_active": False, "updated_at": datetime.utcnow()}}
    )
    result = await db.users.update_many(
        {"enrolled_courses": course_id},
        {"$pull": {"enrolled_courses": course_id}}
    )
    return result.modified_count

# ==================== ENROLLMENT & PROGRESS ====================

async def enroll_user(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> bool:
    """False when already enrolled"""
    result = await db.users.update_one(
        {"_id": ObjectId(user_id), "enrolled_courses": {"$ne": course_id}},
        {"$addToSet": {"enrolled_courses": course_id}}
    )
    return result.modified_count > 0


async def is_enrolled(db: AsyncIOMotorDatabase, course_id: str, user_id: str) -> bool:
    user = await db.users.find_one(
        {"_id": ObjectId(user_id), "enrolled_courses": course_id}, {"_id": 1}
    )
    return user is not None


async def save_lesson_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str, lesson_id: str) -> bool:
    result = await db.users.update_one(
        {"_id": ObjectId(user_id)},
        {"$set": {f"lesson_progress.{course_id}.{lesson_id}": True}}
    )
    return result.matched_count > 0


async def get_course_progress(db: AsyncIOMotorDatabase, user_id: str, course: dict) -> dict:
    user = await db.users.find_one({"_id": ObjectId(user_id)}, {"lesson_progress": 1})
    course_id = str(course["_id"])
    done = ((user or {}).get("lesson_progress") or {}).get(course_id, {})
    lesson_ids = course.get("lessons", [])
    completed = [lid for lid in lesson_ids if done.get(lid)]
    total = len(lesson_ids)
    return {
        "course_id": course_id,
        "completed_lessons": completed,
        "total_lessons": total,
        "percent": round(len(completed) * 100.0 / total, 1) if total else 0.0,
    }


def grade_quiz(lesson: dict, answers: List[int]) -> dict:
    """Score answers against the lesson quiz (one answer per question)"""
    quiz = lesson.get("quiz", [])
    results = [
        {"index": i, "correct": answers[i] == question["correct_answer"]}
        for i, question in enumerate(quiz)
    ]
    return {
        "lesson_id": str(lesson["_id"]),
        "score": sum(1 for r in results if r["correct"]),
        "total": len(quiz),
        "results": results,
    }
