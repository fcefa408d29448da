import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, File, Query, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import get_current_user, is_admin
from app.chat.manager import broadcaster
from app.courses.models import CourseCreate, CourseUpdate, DifficultyLevel
from app.courses.database import (
    create_course, get_course, populate_course, list_courses, list_categories,
    update_course, deactivate_course, list_course_lessons
)
from app.database import get_db, serialize_doc
from app.uploads.storage import save_image, save_video

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Course Management"])


async def get_course_or_404(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def verify_course_owner(course: dict, user: dict, allow_admin: bool = True):
    if course.get("instructor_id") == user["id"]:
        return
    if allow_admin and is_admin(user):
        return
    raise HTTPException(status_code=403, detail="Access denied")

# ==================== PUBLIC ====================

@router.get("")
async def get_courses(
    instructor: Optional[str] = None,
    category: Optional[str] = None,
    difficultyLevel: Optional[DifficultyLevel] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    filters = {
        "instructor": instructor,
        "category": category,
        "difficulty_level": difficultyLevel.value if difficultyLevel else None,
        "search": search,
    }
    courses = await list_courses(db, filters, skip, limit)
    return [await populate_course(db, c) for c in courses]


@router.get("/categories")
async def get_categories(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await list_categories(db)


@router.get("/lessons/{course_id}")
async def get_course_lessons(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await get_course_or_404(db, course_id)
    return await list_course_lessons(db, course_id)

# ==================== UPLOADS ====================

@router.post("/upload-image")
async def upload_image(
    image: UploadFile = File(...),
    user: dict = Depends(get_current_user)
):
    path = save_image(image)
    if not path:
        raise HTTPException(status_code=400, detail="No image file uploaded")
    return {"image_url": path}


@router.post("/upload-video")
async def upload_video(
    video: UploadFile = File(...),
    user: dict = Depends(get_current_user)
):
    return {"video_url": save_video(video)}

# ==================== COURSE CRUD ====================

@router.get("/{course_id}")
async def get_course_detail(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await get_course_or_404(db, course_id)
    return await populate_course(db, course)


@router.post("", status_code=201)
async def create_new_course(
    data: CourseCreate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await create_course(db, data, user["id"])
    result = await populate_course(db, course)
    await broadcaster.publish("courseCreated", result)
    return result


@router.put("/{course_id}")
async def update_existing_course(
    course_id: str,
    data: CourseUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course_or_404(db, course_id)
    verify_course_owner(course, user)

    updated = await update_course(db, course, data)
    result = await populate_course(db, updated)
    await broadcaster.publish("courseUpdated", result)
    return result


@router.put("/{course_id}/deactivate")
async def deactivate(
    course_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Soft delete: flag inactive and drop it from every enrollment list"""
    course = await get_course_or_404(db, course_id)
    verify_course_owner(course, user)

    unenrolled = await deactivate_course(db, course_id)
    logger.info("Course %s deactivated by %s (%d enrollments removed)", course_id, user["id"], unenrolled)
    await broadcaster.publish("courseDeleted", {"course_id": course_id})
    return {
        "message": "Course marked as inactive",
        "course": serialize_doc(await get_course(db, course_id)),
    }
