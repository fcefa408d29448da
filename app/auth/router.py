"""
Auth Router
Registration, login and the current-user profile
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from app.auth.auth_utils import (
    hash_password, verify_password, create_access_token, get_current_user
)
from app.config import ADMIN_CODES
from app.database import get_db, to_object_id
from app.users.router import public_user, store_profile_picture

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])

ADMIN_LOCK_ID = "admin"


# ==================== MODELS ====================

class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = Role.USER
    admin_code: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    admin_code: Optional[str] = None


# ==================== SINGLETON ADMIN ====================

async def claim_admin_slot(db: AsyncIOMotorDatabase, email: str) -> bool:
    """
    Atomically claim the platform's only admin slot.

    The upsert on a fixed _id can insert at most once, so of two concurrent
    admin registrations only one sees `upserted_id`.
    """
    if await db.users.find_one({"role": Role.ADMIN.value}, {"_id": 1}):
        return False
    result = await db.platform_locks.update_one(
        {"_id": ADMIN_LOCK_ID},
        {"$setOnInsert": {"email": email, "claimed_at": datetime.utcnow()}},
        upsert=True,
    )
    return result.upserted_id is not None


async def release_admin_slot(db: AsyncIOMotorDatabase, email: str) -> None:
    await db.platform_locks.delete_one({"_id": ADMIN_LOCK_ID, "email": email})


# ==================== ENDPOINTS ====================

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    email = data.email.lower()

    if data.role == Role.ADMIN and data.admin_code not in ADMIN_CODES:
        raise HTTPException(status_code=403, detail="Invalid admin code")

    if await db.users.find_one({"email": email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Email already registered")

    if data.role == Role.ADMIN and not await claim_admin_slot(db, email):
        raise HTTPException(
            status_code=403,
            detail="An administrator already exists. Another admin cannot be added."
        )

    user_doc = {
        "name": data.name,
        "email": email,
        "password": hash_password(data.password),
        "role": data.role.value,
        "is_blocked": False,
        "profile_picture": None,
        "enrolled_courses": [],
        "lesson_progress": {},
        "created_at": datetime.utcnow(),
    }

    try:
        result = await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        if data.role == Role.ADMIN:
            await release_admin_slot(db, email)
        raise HTTPException(status_code=400, detail="Email already registered")
    except Exception:
        if data.role == Role.ADMIN:
            await release_admin_slot(db, email)
        raise

    logger.info("Registered %s user %s", data.role.value, result.inserted_id)
    return {"message": "User registered successfully", "id": str(result.inserted_id)}


@router.post("/login")
async def login(data: LoginRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await db.users.find_one({"email": data.email.lower()})
    if not user or not verify_password(data.password, user["password"]):
        raise HTTPException(status_code=400, detail="Invalid email or password")

    if user.get("is_blocked"):
        raise HTTPException(
            status_code=403,
            detail="User is blocked. Please contact the administrator."
        )

    if user.get("role") == Role.ADMIN.value and data.admin_code not in ADMIN_CODES:
        raise HTTPException(status_code=403, detail="Invalid admin code")

    token = create_access_token(user)
    return {
        "message": "Login successful",
        "user": {
            "id": str(user["_id"]),
            "name": user["name"],
            "email": user["email"],
            "role": user.get("role", Role.USER.value),
        },
        "token": token,
    }


@router.get("/me")
async def me(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    record = await db.users.find_one({"_id": to_object_id(user["id"], "user")})
    if not record:
        raise HTTPException(status_code=404, detail="User not found")
    return public_user(record)


@router.post("/upload-profile-picture")
async def upload_profile_picture(
    profile_picture: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Profile picture of the current user"""
    return await store_profile_picture(db, user["id"], profile_picture)
