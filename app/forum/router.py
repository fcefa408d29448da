"""
Forum API: discussions, comments and discussion chat
File: app/forum/router.py
"""

import logging
import re
from typing import Optional, Tuple, Type

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from app.auth.auth_utils import get_current_user, get_optional_user, require_admin
from app.courses.course_router import get_course_or_404
from app.courses.database import list_course_lessons
from app.database import get_db
from app.forum import comments, discussions, messages
from app.forum.models import (
    BlockRequest, CommentCreate, CommentUpdate, DiscussionCreate, MessageCreate
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Forum"])

_FORM_INT = re.compile(r"^\s*-?\d+\s*$")
FORM_INT_FIELDS = ("rating",)
FIELD_ALIASES = {"lessonId": "lesson_id"}


async def read_body(request: Request) -> Tuple[dict, list, bool]:
    """
    Fields and uploaded files of a JSON or multipart/urlencoded body

    Returns (fields, files, is_form); JSON bodies never carry files.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Request body must be an object")
        return body, [], False

    form = await request.form()
    fields = {}
    files = []
    for key, value in form.multi_items():
        if isinstance(value, StarletteUploadFile):
            files.append((key, value))
        else:
            fields[key] = value
    return fields, files, True


def parse_fields(model: Type[BaseModel], fields: dict, is_form: bool) -> BaseModel:
    """Validate body fields against `model`; failures surface as 400s"""
    data = {FIELD_ALIASES.get(key, key): value for key, value in fields.items()}
    if is_form:
        # Form values are always text; integer fields arrive as digit strings
        for key in FORM_INT_FIELDS:
            value = data.get(key)
            if isinstance(value, str) and _FORM_INT.match(value):
                data[key] = int(value)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        errors = [{**err, "loc": ("body",) + tuple(err.get("loc", ()))} for err in exc.errors()]
        raise RequestValidationError(errors)


def _files_named(files: list, *names: str) -> list:
    return [f for key, f in files if key in names]

# ==================== DISCUSSIONS ====================

@router.post("/discussions", status_code=201)
async def create_discussion(
    data: DiscussionCreate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    discussion = await discussions.create_discussion(db, data, user)
    return {"message": "Discussion created successfully", "discussion": discussion}


@router.get("/discussions")
async def get_discussions(
    course: Optional[str] = None,
    lesson: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    viewer: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await discussions.list_discussions(db, course, lesson, skip, limit, viewer)


@router.get("/discussions/{discussion_id}")
async def get_discussion(
    discussion_id: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await discussions.get_discussion(db, discussion_id, viewer)


@router.api_route("/discussions/{discussion_id}/block", methods=["PUT", "POST"])
async def block_discussion(
    discussion_id: str,
    data: BlockRequest,
    admin: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    discussion = await discussions.block_discussion(db, discussion_id, data.blocked, admin)
    state = "blocked" if data.blocked else "unblocked"
    return {"message": f"Discussion {state} successfully", "discussion": discussion}

# ==================== COMMENTS ====================

async def _add_comment(discussion_id: str, request: Request, user: dict, db: AsyncIOMotorDatabase) -> dict:
    fields, files, is_form = await read_body(request)
    data = parse_fields(CommentCreate, fields, is_form)
    comment = await comments.add_comment(
        db,
        discussion_id,
        data,
        actor=user,
        images=_files_named(files, "images", "image"),
    )
    return {"message": "Comment added successfully", "comment": comment}


@router.post("/discussions/{discussion_id}/comments", status_code=201)
async def add_discussion_comment(
    discussion_id: str,
    request: Request,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _add_comment(discussion_id, request, user, db)


@router.post("/comments/{discussion_id}", status_code=201)
async def add_comment(
    discussion_id: str,
    request: Request,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _add_comment(discussion_id, request, user, db)


@router.get("/comments")
async def get_course_comments(
    courseId: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await comments.list_course_comments(db, courseId, viewer)


@router.put("/comments/{comment_id}")
async def edit_comment(
    comment_id: str,
    data: CommentUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    comment = await comments.edit_comment(db, comment_id, data, user)
    return {"message": "Comment updated successfully", "comment": comment}


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await comments.delete_comment(db, comment_id, user)
    return {"message": "Comment deleted successfully", "comment_id": comment_id}


@router.post("/comments/{comment_id}/block")
async def block_comment(
    comment_id: str,
    data: BlockRequest,
    admin: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    comment = await comments.block_comment(db, comment_id, data.blocked, admin)
    state = "blocked" if data.blocked else "unblocked"
    return {"message": f"Comment {state} successfully", "comment": comment, "blocked": data.blocked}

# ==================== CHAT ====================

@router.get("/discussions/{discussion_id}/messages")
async def get_messages(
    discussion_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await messages.list_messages(db, discussion_id)


@router.post("/discussions/{discussion_id}/messages", status_code=201)
async def post_message(
    discussion_id: str,
    request: Request,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    fields, files, is_form = await read_body(request)
    data = parse_fields(MessageCreate, fields, is_form)
    images = _files_named(files, "image", "imageFile")
    message = await messages.post_message(
        db,
        discussion_id,
        user,
        data,
        image=images[0] if images else None,
    )
    return {"message": "Message sent", "new_message": message}


@router.get("/discussions/{discussion_id}/users")
async def get_participants(
    discussion_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await messages.list_participants(db, discussion_id)

# ==================== LESSON PICKER ====================

@router.get("/lessons/{course_id}")
async def get_lessons_for_course(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    await get_course_or_404(db, course_id)
    return await list_course_lessons(db, course_id)
