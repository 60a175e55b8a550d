import json
from datetime import datetime

import anyio
from starlette.websockets import WebSocketState

from app.models.user.notification_model import NotificationCategory
from app.notifications.websocket_manager import ProgressWebSocketManager


class FakeSocket:
    def __init__(self, state=WebSocketState.CONNECTED, fail=False):
        self.application_state = state
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(text)


def test_encode_handles_enums_and_datetimes():
    text = ProgressWebSocketManager.encode(
        {"category": NotificationCategory.UNLOCK, "at": datetime(2024, 5, 1, 12, 0), "title": "Débloqué"}
    )

    assert json.loads(text) == {"category": "unlock", "at": "2024-05-01T12:00:00", "title": "Débloqué"}


def test_notify_without_sockets_is_a_no_op():
    ProgressWebSocketManager().notify(1, {"type": "content_unlocked"})


def test_send_drops_dead_sockets():
    manager = ProgressWebSocketManager()
    alive, broken, closed = FakeSocket(), FakeSocket(fail=True), FakeSocket(WebSocketState.DISCONNECTED)
    manager.connections[7] = {alive, broken, closed}

    manager.notify(7, {"type": "content_unlocked", "kind": "section"})

    assert [json.loads(text)["kind"] for text in alive.sent] == ["section"]
    assert manager.connections[7] == {alive}


def test_disconnect_forgets_the_user():
    manager = ProgressWebSocketManager()
    socket = FakeSocket()
    manager.connections[3] = {socket}

    manager.disconnect(3, socket)

    assert not manager.is_connected(3)
    anyio.run(manager._send, 3, {"type": "content_unlocked"})
