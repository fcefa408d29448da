"""
Admin API Router
User listing and blocking
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, StrictBool

from app.auth.auth_utils import require_admin
from app.database import get_db, to_object_id
from app.users.router import public_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])


class BlockUserRequest(BaseModel):
    blocked: StrictBool


@router.get("/users")
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    admin: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Newest users first, credentials stripped"""
    users = await db.users.find(
        {}, {"password": 0}, sort=[("created_at", -1)], skip=skip, limit=limit
    ).to_list(length=limit)
    return [public_user(u) for u in users]


@router.put("/users/{user_id}/block")
async def block_user(
    user_id: str,
    data: BlockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await db.users.update_one(
        {"_id": to_object_id(user_id, "user")},
        {"$set": {"is_blocked": data.blocked}}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info("Admin %s set blocked=%s on user %s", admin["id"], data.blocked, user_id)
    return {
        "message": f"User {'blocked' if data.blocked else 'unblocked'} successfully",
        "user_id": user_id,
        "blocked": data.blocked,
    }
