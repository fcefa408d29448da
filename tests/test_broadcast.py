import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from app.chat.manager import EventBroadcaster, broadcaster
from app.chat.router import _serve


def test_publish_fans_out_by_scope():
    broadcaster = EventBroadcaster()
    everything = broadcaster.subscribe()
    scoped = broadcaster.subscribe(discussion_id="d1")
    other = broadcaster.subscribe(discussion_id="d2")

    delivered = asyncio.run(broadcaster.publish("commentAdded", {"id": "c1"}, discussion_id="d1"))

    assert delivered == 2
    assert everything.queue.get_nowait()["event"] == "commentAdded"
    assert scoped.queue.get_nowait()["data"] == {"id": "c1"}
    assert other.queue.empty()


def test_unscoped_events_reach_only_global_subscribers():
    broadcaster = EventBroadcaster()
    everything = broadcaster.subscribe()
    scoped = broadcaster.subscribe(discussion_id="d1")

    asyncio.run(broadcaster.publish("courseCreated", {"id": "c"}))

    assert everything.queue.qsize() == 1
    assert scoped.queue.empty()


def test_full_queue_drops_without_raising():
    broadcaster = EventBroadcaster()
    slow = broadcaster.subscribe()
    fast = broadcaster.subscribe()

    async def flood():
        for i in range(slow.queue.maxsize):
            await broadcaster.publish("messageCreated", {"n": i})
        fast_drained = 0
        while not fast.queue.empty():
            fast.queue.get_nowait()
            fast_drained += 1
        return fast_drained, await broadcaster.publish("messageCreated", {"n": "overflow"})

    drained, delivered = asyncio.run(flood())
    assert drained == slow.queue.maxsize
    assert delivered == 1
    assert slow.queue.full()


def test_unsubscribe_stops_delivery():
    broadcaster = EventBroadcaster()
    subscription = broadcaster.subscribe()
    broadcaster.unsubscribe(subscription)
    broadcaster.unsubscribe(subscription)

    assert asyncio.run(broadcaster.publish("courseDeleted", {"course_id": "x"})) == 0


def test_unencodable_payload_is_swallowed():
    broadcaster = EventBroadcaster()
    broadcaster.subscribe()

    class Opaque:
        __slots__ = ()

    assert asyncio.run(broadcaster.publish("courseUpdated", Opaque())) == 0

# ==================== WEBSOCKET ====================

def test_websocket_requires_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_websocket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/events?token=garbage") as ws:
            ws.receive_json()


def test_discussion_stream_receives_scoped_events(client, user, other_user, discussion, other_course):
    url = f"/ws/discussions/{discussion['id']}?token={user['token']}"
    with client.websocket_connect(url) as ws:
        resp = client.post(
            f"/api/forum/discussions/{discussion['id']}/messages",
            json={"text": "live"},
            headers=other_user["headers"],
        )
        assert resp.status_code == 201

        event = ws.receive_json()
        assert event["event"] == "messageCreated"
        assert event["discussion_id"] == discussion["id"]
        assert event["data"]["text"] == "live"


def test_events_stream_with_header_token(client, user, course):
    with client.websocket_connect("/ws/events", headers={"Authorization": f"Bearer {user['token']}"}) as ws:
        client.put(f"/api/courses/{course['id']}/deactivate", headers=user["headers"])
        event = ws.receive_json()
        assert event["event"] == "courseDeleted"
        assert event["data"] == {"course_id": course["id"]}


class HandshakeFailsSocket:
    async def accept(self):
        raise RuntimeError("handshake failed")


class SendFailsSocket:
    """Accepts, fails every send, and disconnects after one event"""

    def __init__(self, discussion_id):
        self.discussion_id = discussion_id

    async def accept(self):
        pass

    async def send_json(self, message):
        raise RuntimeError("socket gone")

    async def receive_text(self):
        await broadcaster.publish("messageCreated", {"text": "hi"}, discussion_id=self.discussion_id)
        await asyncio.sleep(0.01)
        raise WebSocketDisconnect(1000)


def subscribers_for(discussion_id):
    return [s for s in broadcaster.subscribers.values() if s.discussion_id == discussion_id]


def test_failed_handshake_releases_subscription():
    with pytest.raises(RuntimeError):
        asyncio.run(_serve(HandshakeFailsSocket(), {"id": "u1"}, discussion_id="handshake"))
    assert subscribers_for("handshake") == []


def test_forwarder_failure_is_collected_on_disconnect():
    asyncio.run(_serve(SendFailsSocket("broken"), {"id": "u1"}, discussion_id="broken"))
    assert subscribers_for("broken") == []

