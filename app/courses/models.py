from pydantic import BaseModel, Field, validator
from typing import List, Optional
from enum import Enum
from urllib.parse import urlparse

# ==================== ENUMS ====================

class DifficultyLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


def is_valid_url(url: str) -> bool:
    """Absolute http(s) URL or a path served from our own /uploads mount"""
    if url.startswith("/uploads/"):
        return True
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_url(v):
    if v is not None and not is_valid_url(v):
        raise ValueError(f"Invalid URL format: {v}")
    return v

# ==================== LESSON MODELS ====================

class QuizQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)  # index into options

    @validator('correct_answer')
    def validate_answer_index(cls, v, values):
        options = values.get('options') or []
        if v >= len(options):
            raise ValueError('correct_answer must index one of the options')
        return v


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    video_url: str
    image_url: Optional[str] = None
    quiz: List[QuizQuestion] = []

    @validator('image_url', pre=True)
    def blank_image(cls, v):
        return _blank_to_none(v)

    @validator('video_url', 'image_url')
    def validate_urls(cls, v):
        return _check_url(v)

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    difficulty_level: DifficultyLevel
    image_url: Optional[str] = None
    lessons: List[LessonCreate] = []

    @validator('image_url', pre=True)
    def blank_image(cls, v):
        return _blank_to_none(v)

    @validator('image_url')
    def validate_image(cls, v):
        return _check_url(v)


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None
    image_url: Optional[str] = None
    lessons: Optional[List[LessonCreate]] = None  # replaces all lessons when given

    @validator('title', 'description', 'category', 'image_url', pre=True)
    def blank_fields(cls, v):
        return _blank_to_none(v)

    @validator('image_url')
    def validate_image(cls, v):
        return _check_url(v)

# ==================== QUIZ MODELS ====================

class QuizSubmission(BaseModel):
    answers: List[int]
