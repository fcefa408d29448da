"""
Enrollment, lesson progress and quiz grading
File: app/courses/enrollment_router.py
"""

import logging

from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import get_current_user
from app.courses.course_router import get_course_or_404
from app.courses.database import (
    enroll_user, is_enrolled, get_lesson, save_lesson_progress,
    get_course_progress, grade_quiz
)
from app.courses.models import QuizSubmission
from app.database import get_db, to_object_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Enrollments"])


async def get_course_lesson(db: AsyncIOMotorDatabase, course_id: str, lesson_id: str) -> tuple:
    """Course and lesson, with the lesson required to belong to the course"""
    course = await get_course_or_404(db, course_id)
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    if lesson.get("course_id") != course_id:
        raise HTTPException(status_code=400, detail="Lesson does not belong to the selected course")
    return course, lesson


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course_or_404(db, course_id)
    if not course.get("is_active", True):
        raise HTTPException(status_code=404, detail="Course not found")

    if not await db.users.find_one({"_id": to_object_id(user["id"], "user")}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="User not found")

    if not await enroll_user(db, course_id, user["id"]):
        raise HTTPException(status_code=400, detail="Already enrolled in this course")

    logger.info("User %s enrolled in %s", user["id"], course_id)
    return {"message": "Enrolled successfully", "course_id": course_id}


@router.get("/{course_id}/enrollment-status")
async def enrollment_status(
    course_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"enrolled": await is_enrolled(db, course_id, user["id"])}


@router.post("/{course_id}/lessons/{lesson_id}/progress")
async def mark_lesson_complete(
    course_id: str,
    lesson_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await get_course_lesson(db, course_id, lesson_id)
    if not await save_lesson_progress(db, user["id"], course_id, lesson_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Lesson progress saved", "course_id": course_id, "lesson_id": lesson_id}


@router.get("/{course_id}/progress")
async def course_progress(
    course_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await get_course_or_404(db, course_id)
    return await get_course_progress(db, user["id"], course)


@router.post("/{course_id}/lessons/{lesson_id}/quiz")
async def submit_quiz(
    course_id: str,
    lesson_id: str,
    submission: QuizSubmission,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    _, lesson = await get_course_lesson(db, course_id, lesson_id)
    quiz = lesson.get("quiz", [])
    if not quiz:
        raise HTTPException(status_code=404, detail="This lesson has no quiz")
    if len(submission.answers) != len(quiz):
        raise HTTPException(
            status_code=400,
            detail=f"Expected {len(quiz)} answers, got {len(submission.answers)}"
        )
    return grade_quiz(lesson, submission.answers)
