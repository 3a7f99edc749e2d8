"""Test configuration and fixtures."""
import os
import sys
import threading
from pathlib import Path

import pytest

backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from simple_websocket import ConnectionClosed

from agents.ai_gateway import AIGatewayError
from api.registry import SessionRegistry
from api.server import create_app
from models.domain import AuthUser, ConversationRecord


class FakeWebSocket:
    """Blocking-socket stand-in: serves queued frames, then reports a close."""

    def __init__(self, frames=None, fail_send_after=None):
        self.frames = list(frames or [])
        self.sent = []
        self.closed = False
        self.close_args = None
        self.fail_send_after = fail_send_after
        self.on_receive = None

    def receive(self, timeout=None):
        if self.on_receive:
            self.on_receive()
        if not self.frames:
            raise ConnectionClosed(1000, "bye")
        return self.frames.pop(0)

    def send(self, data):
        if self.fail_send_after is not None and len(self.sent) >= self.fail_send_after:
            raise ConnectionClosed(1006, "gone")
        self.sent.append(data)

    def close(self, reason=None, message=None):
        if self.closed:
            raise ConnectionClosed(1000, "already closed")
        self.closed = True
        self.close_args = (reason, message)


class FakeGateway:
    """Echoing gateway that records calls and how many overlap."""

    def __init__(self, replies=None, fail_on=None, on_call=None):
        self.replies = dict(replies or {})
        self.fail_on = set(fail_on or [])
        self.on_call = on_call
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def complete(self, input_text):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append(input_text)
            if self.on_call:
                self.on_call(input_text)
            if input_text in self.fail_on:
                raise AIGatewayError("AI service error")
            return self.replies.get(input_text, f"echo: {input_text}")
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeStore:
    collection = "conversations"

    def __init__(self, error=None, records=None):
        self.error = error
        self.saved = []
        self.records = list(records or [])

    def save(self, user_id, input_text, response_text):
        if self.error:
            raise self.error
        self.saved.append((user_id, input_text, response_text))
        return ConversationRecord(
            id=f"rec{len(self.saved)}",
            user_id=user_id,
            user_input=input_text,
            ai_response=response_text,
        )

    def list_for_user(self, user_id, limit=50):
        if self.error:
            raise self.error
        return [r for r in self.records if r.user_id == user_id][:limit]


USERS = {
    "good-token": AuthUser(id="user-1", username="alice"),
    "odd-token": {"id": "user-2"},
}


@pytest.fixture
def gateway():
    return FakeGateway(replies={"hello": "hi there"})


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def app(gateway, store, registry):
    app = create_app(
        gateway=gateway,
        store=store,
        registry=registry,
        user_resolver=USERS.get,
        ws_require_auth=False,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer good-token"}

