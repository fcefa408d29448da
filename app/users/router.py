from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr, Field
from pymongo import ReturnDocument

from app.auth.auth_utils import get_current_user
from app.database import get_db, to_object_id, serialize_doc
from app.uploads.storage import save_image

router = APIRouter(tags=["Users"])

PRIVATE_FIELDS = ("password",)


def public_user(doc: Optional[dict]) -> Optional[dict]:
    """User document without credentials"""
    data = serialize_doc(doc)
    if data is None:
        return None
    for key in PRIVATE_FIELDS:
        data.pop(key, None)
    return data


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=30)
    email: Optional[EmailStr] = None
    profile_picture: Optional[str] = None


def _ensure_self(user_id: str, user: dict):
    if user_id != user["id"]:
        raise HTTPException(status_code=403, detail="Access denied")


async def store_profile_picture(db: AsyncIOMotorDatabase, user_id: str, file: UploadFile) -> dict:
    path = save_image(file, subdir="profile")
    if not path:
        raise HTTPException(status_code=400, detail="No image selected")

    updated = await db.users.find_one_and_update(
        {"_id": to_object_id(user_id, "user")},
        {"$set": {"profile_picture": path}},
        return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")

    return {"message": "Profile picture updated successfully", "user": public_user(updated)}


@router.get("/me/courses")
async def my_courses(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Courses the current user is enrolled in"""
    record = await db.users.find_one({"_id": to_object_id(user["id"], "user")})
    if not record:
        raise HTTPException(status_code=404, detail="User not found")

    ids = [to_object_id(cid) for cid in record.get("enrolled_courses", [])]
    courses = await db.courses.find({"_id": {"$in": ids}, "is_active": True}).to_list(length=None)
    return [serialize_doc(c) for c in courses]


@router.put("/{user_id}")
async def update_profile(
    user_id: str,
    update: ProfileUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    _ensure_self(user_id, user)

    changes = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        clash = await db.users.find_one(
            {"email": changes["email"], "_id": {"$ne": to_object_id(user_id, "user")}}
        )
        if clash:
            raise HTTPException(status_code=400, detail="Email already registered")

    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    updated = await db.users.find_one_and_update(
        {"_id": to_object_id(user_id, "user")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")

    return {"message": "Profile updated successfully", "user": public_user(updated)}


@router.post("/{user_id}/profile-picture")
async def upload_profile_picture(
    user_id: str,
    profile_picture: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    _ensure_self(user_id, user)
    return await store_profile_picture(db, user_id, profile_picture)
