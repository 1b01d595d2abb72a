"""Notification fan-out and WebSocket tests."""

import asyncio
import json
import threading
import time

import pytest
from starlette.websockets import WebSocketDisconnect

from safetrail.core.fanout import NotificationFanout


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(json.loads(text))


def test_publish_without_loop_is_noop():
    hub = NotificationFanout(timeout_seconds=1)
    hub.publish("staff_room", "alert.created", {"alert_id": "ALT-2026-123456"})


def test_publish_swallows_scheduling_errors(monkeypatch):
    hub = NotificationFanout(timeout_seconds=1)

    def boom(*args):
        raise RuntimeError("loop gone")

    monkeypatch.setattr(hub, "_schedule", boom)
    hub.publish("staff_room", "alert.created", {})


def test_send_to_room_drops_dead_connections():
    hub = NotificationFanout(timeout_seconds=1)
    alive, dead = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        await hub.connect(alive, ["staff_room", "tourist_1"])
        await hub.connect(dead, ["staff_room"])
        delivered = await hub.send_to_room("staff_room", "alert.escalated", {"level": 2})
        again = await hub.send_to_room("staff_room", "alert.escalated", {"level": 3})
        return delivered, again

    delivered, again = asyncio.run(scenario())
    assert delivered == 1
    assert again == 1
    assert [m["data"]["level"] for m in alive.sent] == [2, 3]
    assert alive.sent[0]["room"] == "staff_room"
    assert alive.sent[0]["event"] == "alert.escalated"
    assert hub.total_connections == 1

    hub.disconnect(alive, ["staff_room", "tourist_1"])
    assert hub.total_connections == 0


def test_publish_from_thread_reaches_bound_loop():
    hub = NotificationFanout(timeout_seconds=1)
    sock = FakeSocket()
    loop = asyncio.new_event_loop()
    runner = threading.Thread(target=loop.run_forever, daemon=True)
    runner.start()
    try:
        asyncio.run_coroutine_threadsafe(hub.connect(sock, ["tourist_7"]), loop).result(timeout=2)
        hub.bind_loop(loop)
        hub.publish("tourist_7", "device.alert", {"flag": "fallDetected"})
        hub.publish("tourist_8", "device.alert", {"flag": "fallDetected"})

        deadline = time.monotonic() + 2
        while not sock.sent and time.monotonic() < deadline:
            time.sleep(0.01)
        assert sock.sent == [{"event": "device.alert", "room": "tourist_7", "data": {"flag": "fallDetected"}}]
    finally:
        loop.call_soon_threadsafe(loop.stop)
        runner.join(timeout=2)
        loop.close()


def test_ws_requires_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as ws:
            ws.receive_text()
    assert exc.value.code == 4001


def test_ws_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=not-a-jwt") as ws:
            ws.receive_text()
    assert exc.value.code == 4003


def test_ws_tourist_without_profile_rejected(client, make_user):
    headers, _ = make_user("ws_noprofile")
    token = headers["Authorization"].split(" ", 1)[1]
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_text()
    assert exc.value.code == 4004


def test_ws_ping_pong(client, staff):
    s_headers, _ = staff
    token = s_headers["Authorization"].split(" ", 1)[1]
    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}
