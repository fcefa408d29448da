# app/auth/auth_utils.py
import logging
from datetime import datetime, timedelta
from typing import Optional

import jwt
from bson import ObjectId
from fastapi import Depends, Header, HTTPException
from passlib.context import CryptContext

from app.config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRE_HOURS, DEFAULT_JWT_SECRET

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

if JWT_SECRET == DEFAULT_JWT_SECRET:
    logger.warning("JWT_SECRET is not set, using the development default")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(user: dict) -> str:
    """
    Issue a bearer token for a stored user document

    Payload carries id, name, email and role so that handlers can act
    without a user lookup.
    """
    now = datetime.utcnow()
    payload = {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", "user"),
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRE_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Unauthorized: Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid token")


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized: No token provided")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid token format")
    return parts[1]


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_current_user(authorization: str = Header(None)) -> dict:
    """Verified token payload: {id, name, email, role}"""
    payload = decode_token(extract_bearer_token(authorization))
    if not ObjectId.is_valid(str(payload.get("id", ""))):
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid token")
    return payload


async def get_optional_user(authorization: str = Header(None)) -> Optional[dict]:
    """Same as get_current_user but anonymous callers get None"""
    if not authorization:
        return None
    try:
        return await get_current_user(authorization)
    except HTTPException:
        return None


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        logger.info("Admin route denied for user %s", user.get("id"))
        raise HTTPException(status_code=403, detail="Access denied")
    return user


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == "admin"


def verify_token_ws(token: Optional[str]) -> dict:
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized: No token provided")
    return decode_token(token)
