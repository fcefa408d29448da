import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from app.auth.auth_utils import verify_token_ws
from app.database import is_object_id
from .manager import broadcaster, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws")


def extract_ws_token(websocket: WebSocket) -> Optional[str]:
    auth = websocket.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1]
    return websocket.query_params.get("token")


async def _authenticate(websocket: WebSocket) -> Optional[dict]:
    try:
        return verify_token_ws(extract_ws_token(websocket))
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None


async def _forward(websocket: WebSocket, subscription: Subscription):
    while True:
        message = await subscription.queue.get()
        await websocket.send_json(message)


async def _serve(websocket: WebSocket, user: dict, discussion_id: Optional[str] = None):
    subscription = None
    sender = None
    try:
        subscription = broadcaster.subscribe(discussion_id=discussion_id)
        await websocket.accept()
        sender = asyncio.create_task(_forward(websocket, subscription))
        logger.info("User %s subscribed (discussion=%s)", user.get("id"), discussion_id)
        while True:
            # Client messages are ignored, reading only detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if subscription is not None:
            broadcaster.unsubscribe(subscription)
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("Event forwarding to user %s failed", user.get("id"), exc_info=True)
        logger.info("User %s unsubscribed", user.get("id"))


@router.websocket("/events")
async def all_events(websocket: WebSocket):
    user = await _authenticate(websocket)
    if user is None:
        return
    await _serve(websocket, user)


@router.websocket("/discussions/{discussion_id}")
async def discussion_events(websocket: WebSocket, discussion_id: str):
    user = await _authenticate(websocket)
    if user is None:
        return
    if not is_object_id(discussion_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _serve(websocket, user, discussion_id=discussion_id)
