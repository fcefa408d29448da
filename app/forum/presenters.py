"""
Population of forum records for API responses.

Mongo stores plain id references; these helpers join in the small slices
of user/lesson data the client renders, and apply the blocked-comment
masking for non-admin viewers.
"""

from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import is_admin
from app.database import is_object_id, serialize_doc

BLOCKED_PLACEHOLDER = "blocked"


async def users_by_id(db: AsyncIOMotorDatabase, user_ids: Iterable[str], fields: tuple) -> Dict[str, dict]:
    oids = list({ObjectId(uid) for uid in user_ids if is_object_id(uid)})
    if not oids:
        return {}
    projection = {f: 1 for f in fields}
    docs = await db.users.find({"_id": {"$in": oids}}, projection).to_list(length=None)
    return {
        str(doc["_id"]): {"id": str(doc["_id"]), **{f: doc.get(f) for f in fields}}
        for doc in docs
    }


def present_comment(comment: dict, author: Optional[dict], viewer: Optional[dict]) -> dict:
    data = serialize_doc(comment)
    data["user"] = author
    if data.get("is_blocked"):
        if is_admin(viewer):
            data["can_unblock"] = True
        else:
            data["content"] = BLOCKED_PLACEHOLDER
            data["images"] = []
    return data


async def populate_comments(db: AsyncIOMotorDatabase, comments: List[dict], viewer: Optional[dict]) -> List[dict]:
    authors = await users_by_id(db, [c.get("user_id") for c in comments], ("name",))
    return [present_comment(c, authors.get(c.get("user_id")), viewer) for c in comments]


async def discussion_responses(db: AsyncIOMotorDatabase, discussion_ids: List[str]) -> Dict[str, List[dict]]:
    """Comments grouped by parent discussion, oldest first"""
    grouped = {did: [] for did in discussion_ids}
    if not discussion_ids:
        return grouped
    cursor = db.comments.find(
        {"discussion_id": {"$in": list(discussion_ids)}},
        sort=[("created_at", 1), ("_id", 1)]
    )
    for comment in await cursor.to_list(length=None):
        grouped[comment["discussion_id"]].append(comment)
    return grouped


async def populate_discussions(db: AsyncIOMotorDatabase, discussions: List[dict], viewer: Optional[dict]) -> List[dict]:
    creators = await users_by_id(db, [d.get("user_id") for d in discussions], ("name", "email"))

    lesson_oids = list({ObjectId(d["lesson_id"]) for d in discussions if is_object_id(d.get("lesson_id"))})
    lessons = {}
    if lesson_oids:
        docs = await db.lessons.find({"_id": {"$in": lesson_oids}}, {"title": 1}).to_list(length=None)
        lessons = {str(doc["_id"]): {"id": str(doc["_id"]), "title": doc.get("title")} for doc in docs}

    ids = [str(d["_id"]) for d in discussions]
    grouped = await discussion_responses(db, ids)
    # One author lookup for every response on the page
    presented = await populate_comments(db, [c for did in ids for c in grouped[did]], viewer)
    by_discussion = {did: [] for did in ids}
    for comment in presented:
        by_discussion[comment["discussion_id"]].append(comment)

    result = []
    for discussion in discussions:
        data = serialize_doc(discussion)
        data["user"] = creators.get(discussion.get("user_id"))
        data["lesson"] = lessons.get(discussion.get("lesson_id"))
        data["responses"] = by_discussion[data["id"]]
        result.append(data)
    return result


async def populate_discussion(db: AsyncIOMotorDatabase, discussion: dict, viewer: Optional[dict]) -> dict:
    return (await populate_discussions(db, [discussion], viewer))[0]
