import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.chat.manager import broadcaster
from app.database import serialize_doc
from app.forum.discussions import get_discussion_or_404
from app.forum.models import MessageCreate, MessageType
from app.forum.presenters import users_by_id
from app.uploads.storage import save_image

logger = logging.getLogger(__name__)

SENDER_FIELDS = ("name", "profile_picture")


async def _present_messages(db: AsyncIOMotorDatabase, messages: List[dict]) -> List[dict]:
    senders = await users_by_id(db, [m.get("sender_id") for m in messages], SENDER_FIELDS)
    result = []
    for message in messages:
        data = serialize_doc(message)
        data["sender"] = senders.get(message.get("sender_id"))
        result.append(data)
    return result


async def post_message(
    db: AsyncIOMotorDatabase,
    discussion_id: str,
    sender: dict,
    data: MessageCreate,
    image: Optional[UploadFile] = None
) -> dict:
    # Blocked discussions still accept chat messages
    await get_discussion_or_404(db, discussion_id)

    kind = data.type
    text = (data.text or "").strip()
    has_image = image is not None and bool(image.filename)
    if kind == MessageType.IMAGE and not has_image:
        raise HTTPException(status_code=400, detail="Image messages need an image file")
    if not text and not has_image:
        raise HTTPException(status_code=400, detail="Message text or image is required")

    image_url = save_image(image, "chat") if has_image else None
    if image_url:
        kind = MessageType.IMAGE

    doc = {
        "discussion_id": discussion_id,
        "sender_id": sender["id"],
        "text": text,
        "type": kind.value,
        "image_url": image_url,
        "created_at": datetime.utcnow(),
    }
    result = await db.messages.insert_one(doc)
    doc["_id"] = result.inserted_id

    message = (await _present_messages(db, [doc]))[0]
    logger.debug("Message %s posted in %s", message["id"], discussion_id)
    await broadcaster.publish("messageCreated", message, discussion_id=discussion_id)
    return message


async def list_messages(db: AsyncIOMotorDatabase, discussion_id: str) -> List[dict]:
    await get_discussion_or_404(db, discussion_id)
    cursor = db.messages.find(
        {"discussion_id": discussion_id},
        sort=[("created_at", 1), ("_id", 1)]
    )
    return await _present_messages(db, await cursor.to_list(length=None))


async def list_participants(db: AsyncIOMotorDatabase, discussion_id: str) -> List[dict]:
    """Everyone who posted in the chat, plus the discussion creator"""
    discussion = await get_discussion_or_404(db, discussion_id)

    cursor = db.messages.find(
        {"discussion_id": discussion_id},
        {"sender_id": 1},
        sort=[("created_at", 1), ("_id", 1)]
    )
    ordered = [discussion.get("user_id")]
    ordered += [m.get("sender_id") for m in await cursor.to_list(length=None)]

    user_ids = []
    for user_id in ordered:
        if user_id and user_id not in user_ids:
            user_ids.append(user_id)

    users = await users_by_id(db, user_ids, SENDER_FIELDS)
    return [users[uid] for uid in user_ids if uid in users]
