from pydantic import BaseModel, Field, StrictBool, StrictInt, validator
from typing import Optional
from enum import Enum

# ==================== ENUMS ====================

class RefKind(str, Enum):
    ID = "id"
    TITLE = "title"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"

# ==================== DISCUSSION MODELS ====================

class EntityRef(BaseModel):
    """Explicit lookup of a course or lesson, by id or by display title"""
    by: RefKind = RefKind.ID
    value: str = Field(..., min_length=1)


class DiscussionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    course: EntityRef
    lesson: EntityRef
    content: Optional[str] = ""

    @validator('course', 'lesson', pre=True)
    def plain_string_is_id(cls, v):
        # {"course": "<id>"} is shorthand for {"course": {"by": "id", "value": "<id>"}}
        if isinstance(v, str):
            return {"by": RefKind.ID.value, "value": v}
        return v

    @validator('title')
    def title_not_blank(cls, v):
        if not v.strip():
            raise ValueError('title is required')
        return v.strip()


class BlockRequest(BaseModel):
    blocked: StrictBool

# ==================== COMMENT MODELS ====================

class CommentCreate(BaseModel):
    content: Optional[str] = None
    rating: StrictInt = Field(..., ge=1, le=5)
    lesson_id: Optional[str] = None


class CommentUpdate(BaseModel):
    content: str
    rating: StrictInt = Field(..., ge=1, le=5)

    @validator('content')
    def content_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Content is required')
        return v

# ==================== CHAT MODELS ====================

class MessageCreate(BaseModel):
    text: Optional[str] = None
    type: MessageType = MessageType.TEXT
