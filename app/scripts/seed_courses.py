"""
Seed sample courses
Replaces every course and lesson with three demo courses owned by a
demo instructor. Run with `python -m app.scripts.seed_courses`.
"""

import asyncio
import logging
from datetime import datetime
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import hash_password
from app.config import LOG_LEVEL
from app.courses.database import create_course
from app.courses.models import CourseCreate
from app.database import close_db, connect_db

logger = logging.getLogger(__name__)

INSTRUCTOR_EMAIL = "instructor@example.com"
INSTRUCTOR_PASSWORD = "password123"
SAMPLE_VIDEO = "https://sample-videos.com/video123/mp4/720/big_buck_bunny_720p_1mb.mp4"

SAMPLE_COURSES = [
    {
        "title": "React Basics",
        "description": "Learn the fundamentals of React, including components, state, and props.",
        "category": "Web Development",
        "difficulty_level": "Beginner",
    },
    {
        "title": "Node.js Fundamentals",
        "description": "Understand the basics of Node.js and build backend applications.",
        "category": "Backend Development",
        "difficulty_level": "Beginner",
    },
    {
        "title": "Advanced JavaScript",
        "description": "Deep dive into advanced JavaScript concepts and patterns.",
        "category": "Programming",
        "difficulty_level": "Advanced",
    },
]


def sample_lessons(course_title: str) -> List[dict]:
    return [
        {
            "title": f"{course_title} - Lesson {n}",
            "content": f"Content for {course_title} lesson {n}.",
            "video_url": SAMPLE_VIDEO,
            "image_url": f"https://via.placeholder.com/600x400.png?text=Lesson+Image+{n}",
            "quiz": [
                {
                    "question": f"Sample question {n}?",
                    "options": ["Option A", "Option B", "Option C", "Option D"],
                    "correct_answer": n - 1,
                }
            ],
        }
        for n in (1, 2)
    ]


async def ensure_instructor(db: AsyncIOMotorDatabase) -> str:
    existing = await db.users.find_one({"email": INSTRUCTOR_EMAIL}, {"_id": 1})
    if existing:
        return str(existing["_id"])

    result = await db.users.insert_one({
        "name": "Instructor Name",
        "email": INSTRUCTOR_EMAIL,
        "password": hash_password(INSTRUCTOR_PASSWORD),
        "role": "user",
        "is_blocked": False,
        "profile_picture": None,
        "enrolled_courses": [],
        "lesson_progress": {},
        "created_at": datetime.utcnow(),
    })
    logger.info("Created instructor %s", INSTRUCTOR_EMAIL)
    return str(result.inserted_id)


async def seed_courses(db: AsyncIOMotorDatabase) -> List[dict]:
    """Wipe courses and lessons, then insert the sample catalogue"""
    instructor_id = await ensure_instructor(db)

    await db.lessons.delete_many({})
    await db.courses.delete_many({})

    created = []
    for course_data in SAMPLE_COURSES:
        data = CourseCreate.model_validate({**course_data, "lessons": sample_lessons(course_data["title"])})
        course = await create_course(db, data, instructor_id)
        logger.info("Inserted course %s with %d lessons", course["title"], len(course["lessons"]))
        created.append(course)

    logger.info("Course and lesson seeding completed")
    return created


async def main():
    db = connect_db()
    try:
        await seed_courses(db)
    finally:
        close_db()


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
