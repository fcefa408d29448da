import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from fastapi.encoders import jsonable_encoder

from app.config import SUBSCRIBER_QUEUE_SIZE

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    sub_id: int
    discussion_id: Optional[str] = None
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE))

    def wants(self, discussion_id: Optional[str]) -> bool:
        return self.discussion_id is None or self.discussion_id == discussion_id


class EventBroadcaster:
    """
    Best-effort fan-out of entity change events to connected listeners.

    Subscribers either receive everything or only events of one discussion.
    A publish never raises: a full queue drops the event for that subscriber.
    """

    def __init__(self):
        self.subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(self, discussion_id: Optional[str] = None) -> Subscription:
        subscription = Subscription(sub_id=next(self._ids), discussion_id=discussion_id)
        self.subscribers[subscription.sub_id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self.subscribers.pop(subscription.sub_id, None)

    async def publish(self, event: str, payload, discussion_id: Optional[str] = None) -> int:
        """Returns the number of subscribers the event was queued for"""
        try:
            message = {
                "event": event,
                "discussion_id": discussion_id,
                "data": jsonable_encoder(payload),
                "ts": datetime.utcnow().isoformat(),
            }
        except Exception:
            logger.exception("Could not encode %s event", event)
            return 0

        delivered = 0
        # Snapshot: subscribers may leave while we iterate
        for subscription in list(self.subscribers.values()):
            if not subscription.wants(discussion_id):
                continue
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Dropping %s event for subscriber %s: queue full",
                    event, subscription.sub_id
                )
        logger.debug("Published %s to %d subscriber(s)", event, delivered)
        return delivered


broadcaster = EventBroadcaster()
