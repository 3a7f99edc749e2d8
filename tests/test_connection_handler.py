import threading

import pytest

from api.connection import ERROR_MESSAGE, ConnectionHandler
from api.registry import ConnectionState, SessionRegistry
from utils.conversation_store import CollectionNotFoundError, ConversationStoreError
from tests.conftest import FakeGateway, FakeStore, FakeWebSocket


def make_handler(gateway=None, store=None, registry=None):
    if registry is None:
        registry = SessionRegistry()
    if gateway is None:
        gateway = FakeGateway()
    if store is None:
        store = FakeStore()
    return ConnectionHandler(registry, gateway, store), registry, gateway, store


def test_session_registered_while_open_and_removed_after():
    registry = SessionRegistry()
    seen = []
    gateway = FakeGateway(on_call=lambda _: seen.append(registry.size()))
    handler, _, _, _ = make_handler(gateway=gateway, registry=registry)
    ws = FakeWebSocket(frames=["one", "two"])

    session = handler.run(ws)

    assert seen == [1, 1]
    assert registry.size() == 0
    assert session not in registry
    assert session.state is ConnectionState.CLOSED
    assert not session.alive
    assert ws.closed


def test_reply_is_sent_then_persisted_anonymously():
    handler, _, gateway, store = make_handler(gateway=FakeGateway(replies={"hello": "hi there"}))
    ws = FakeWebSocket(frames=["hello"])

    handler.run(ws)

    assert ws.sent == ["hi there"]
    assert store.saved == [(None, "hello", "hi there")]


def test_authenticated_session_attributes_records():
    handler, _, _, store = make_handler()

    handler.run(FakeWebSocket(frames=["hello"]), user_id="user-1")

    assert store.saved == [("user-1", "hello", "echo: hello")]


def test_binary_frames_are_decoded():
    handler, _, gateway, _ = make_handler()

    handler.run(FakeWebSocket(frames=[b"caf\xc3\xa9"]))

    assert gateway.calls == ["café"]


def test_gateway_failure_sends_one_error_frame_and_keeps_reading():
    gateway = FakeGateway(fail_on={"bad"})
    handler, _, _, store = make_handler(gateway=gateway)
    ws = FakeWebSocket(frames=["bad", "good"])

    handler.run(ws)

    assert ws.sent == [ERROR_MESSAGE, "echo: good"]
    assert gateway.calls == ["bad", "good"]
    assert store.saved == [(None, "good", "echo: good")]


def test_persistence_failure_does_not_close_connection():
    store = FakeStore(error=ConversationStoreError("failed to save conversation"))
    handler, _, gateway, _ = make_handler(store=store)
    ws = FakeWebSocket(frames=["a", "b"])

    handler.run(ws)

    assert ws.sent == ["echo: a", "echo: b"]
    assert gateway.calls == ["a", "b"]


def test_missing_collection_is_logged_not_sent():
    store = FakeStore(error=CollectionNotFoundError("conversations collection not found"))
    handler, _, _, _ = make_handler(store=store)
    ws = FakeWebSocket(frames=["a"])

    handler.run(ws)

    assert ws.sent == ["echo: a"]


def test_write_error_closes_and_skips_persistence():
    handler, registry, gateway, store = make_handler()
    ws = FakeWebSocket(frames=["a", "b"], fail_send_after=0)

    handler.run(ws)

    assert gateway.calls == ["a"]
    assert store.saved == []
    assert registry.size() == 0


def test_unexpected_error_still_unregisters():
    def boom():
        raise RuntimeError("socket exploded")

    handler, registry, _, _ = make_handler()
    ws = FakeWebSocket(frames=["a"])
    ws.on_receive = boom

    with pytest.raises(RuntimeError):
        handler.run(ws)

    assert registry.size() == 0
    assert ws.closed


def test_one_gateway_call_in_flight_per_connection():
    gateway = FakeGateway()
    handler, registry, _, _ = make_handler(gateway=gateway)
    handler.run(FakeWebSocket(frames=[f"m{i}" for i in range(5)]))

    assert gateway.max_in_flight == 1
    assert len(gateway.calls) == 5


def test_connections_run_independently():
    release = threading.Event()
    both_inside = threading.Barrier(3, timeout=5)

    def wait_for_peer(_):
        both_inside.wait()
        release.wait(5)

    gateway = FakeGateway(on_call=wait_for_peer)
    handler, registry, _, _ = make_handler(gateway=gateway)
    sockets = [FakeWebSocket(frames=["x"]), FakeWebSocket(frames=["y"])]
    threads = [threading.Thread(target=handler.run, args=(ws,)) for ws in sockets]
    for t in threads:
        t.start()

    both_inside.wait()
    assert registry.size() == 2
    release.set()
    for t in threads:
        t.join(5)

    assert gateway.max_in_flight == 2
    assert registry.size() == 0
    assert sorted(ws.sent[0] for ws in sockets) == ["echo: x", "echo: y"]
