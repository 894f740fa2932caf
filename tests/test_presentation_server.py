"""
Tests for the chat UI server: routes, client message routing, broadcast and
full websocket sessions against a live controller.
"""

import asyncio
import json
import os
import sys
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from code_assistant.chat.blob_store import BlobStore
from code_assistant.chat.controller import ConversationController
from code_assistant.chat.relay_client import RelayError
from code_assistant.chat.schema import UserTurn
from code_assistant.config import ControllerConfig, UIConfig
from code_assistant.presentation.server import ChatUIServer, ClientConnection
from code_assistant.shared.event_bus import EventBus, turn_event
from code_assistant.shared.protocol import ServerMessage


def run(coro):
    """Helper to run a coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class ScriptedRelay:
    """Returns scripted replies in order; an Exception instance is raised."""

    def __init__(self, *replies):
        self.replies = list(replies)

    async def generate(self, prompt):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_server(*replies, interval=0.01):
    bus = EventBus()
    config = ControllerConfig(reveal_interval=interval)
    controller = ConversationController(config, ScriptedRelay(*replies), bus)
    return ChatUIServer(UIConfig(), controller, bus)


def mock_controller():
    controller = MagicMock()
    for name in ("set_prompt", "submit", "reset", "copy", "close"):
        setattr(controller, name, AsyncMock())
    controller.open_external = AsyncMock(return_value="b1")
    controller.blobs = BlobStore()
    return controller


def mock_socket(**kwargs):
    ws = MagicMock()
    ws.send_text = AsyncMock(**kwargs)
    return ws


def receive_until(ws, predicate, limit=50):
    """Collect messages up to and including the first one matching predicate."""
    messages = []
    for _ in range(limit):
        message = ws.receive_json()
        messages.append(message)
        if predicate(message):
            return messages
    raise AssertionError(f"no matching message in {messages}")


class TestRoutes:

    def test_index(self):
        client = TestClient(make_server().app)
        resp = client.get("/")
        assert resp.status_code == 200
        assert "Code Assistant" in resp.text

    def test_health(self):
        client = TestClient(make_server().app)
        assert client.get("/health").json() == {"status": "ok", "connections": 0}

    def test_blob_route(self):
        server = make_server()
        blob_id = server.controller.blobs.put("print('hi')\n")
        client = TestClient(server.app)

        resp = client.get(f"/blobs/{blob_id}")
        assert resp.status_code == 200
        assert resp.text == "print('hi')\n"
        assert resp.headers["content-type"].startswith("text/plain")

        assert client.get("/blobs/unknown").status_code == 404

    def test_websocket_sends_snapshot_on_connect(self):
        client = TestClient(make_server().app)
        with client.websocket_connect("/ws") as ws:
            data = ws.receive_json()
        assert data["type"] == "sync"
        assert data["payload"]["turns"] == []
        assert data["payload"]["in_flight"] is False
        assert data["payload"]["seq"] == 0


class TestClientMessages:

    def setup_method(self):
        self.controller = mock_controller()
        self.server = ChatUIServer(UIConfig(), self.controller, EventBus())

    def test_prompt(self):
        run(self.server._handle_client_message('{"type": "prompt", "payload": {"text": "ab"}}'))
        self.controller.set_prompt.assert_awaited_once_with("ab")

    def test_submit_runs_in_background(self):
        async def _test():
            await self.server._handle_client_message(
                '{"type": "submit", "payload": {"prompt": "reverse a string"}}'
            )
            await asyncio.sleep(0)
            self.controller.set_prompt.assert_awaited_once_with("reverse a string")
            self.controller.submit.assert_awaited_once_with()

        run(_test())

    def test_reset_copy_open(self):
        async def _test():
            await self.server._handle_client_message('{"type": "reset"}')
            await self.server._handle_client_message('{"type": "copy", "payload": {"content": "c"}}')
            await self.server._handle_client_message('{"type": "open", "payload": {"content": "o"}}')
            self.controller.reset.assert_awaited_once()
            self.controller.copy.assert_awaited_once_with("c")
            self.controller.open_external.assert_awaited_once_with("o")

        run(_test())

    def test_open_replies_to_requesting_connection(self):
        async def _test():
            ws = mock_socket()
            await self.server._handle_client_message(
                '{"type": "open", "payload": {"content": "o"}}', ClientConnection(ws)
            )
            sent = json.loads(ws.send_text.await_args.args[0])
            assert sent == {"type": "open", "payload": {"blob_id": "b1", "url": "/blobs/b1"}}

        run(_test())

    def test_malformed_message_is_ignored(self):
        run(self.server._handle_client_message("not json"))
        run(self.server._handle_client_message('{"type": "explode"}'))
        self.controller.submit.assert_not_called()


class TestBroadcast:

    def test_event_reaches_every_client(self):
        server = make_server()
        good = mock_socket()
        broken = mock_socket(side_effect=RuntimeError("gone"))
        server._connections = {good: ClientConnection(good), broken: ClientConnection(broken)}

        run(server._handle_event(turn_event(UserTurn("hi"))))

        sent = json.loads(good.send_text.await_args.args[0])
        assert sent == {"type": "turn", "payload": {"role": "user", "content": "hi"}}
        assert list(server._connections) == [good]

    def test_connection_skips_events_covered_by_snapshot(self):
        async def _test():
            ws = mock_socket()
            connection = ClientConnection(ws, seq=3)
            message = ServerMessage.sync({})

            assert await connection.send(message, 2) is False
            assert await connection.send(message, 3) is False
            assert await connection.send(message, 4) is True
            assert await connection.send(message, 4) is False
            # unnumbered replies always go out
            assert await connection.send(message) is True
            assert ws.send_text.await_count == 2

        run(_test())


class TestWebSocketSession:
    """Whole sessions: one shared bus, started by the app lifespan."""

    def test_submit_streams_turns_and_reveal(self):
        server = make_server("a\nb")
        with TestClient(server.app) as client:
            with client.websocket_connect("/ws") as ws:
                assert ws.receive_json()["type"] == "sync"
                ws.send_json({"type": "submit", "payload": {"prompt": "two lines"}})
                messages = receive_until(
                    ws, lambda m: m["type"] == "reveal" and m["payload"]["done"]
                )

        turns = [m["payload"] for m in messages if m["type"] == "turn"]
        assert turns[0] == {"role": "user", "content": "two lines"}
        assert turns[1]["codeLines"] == [
            {"number": 1, "content": "a"},
            {"number": 2, "content": "b"},
        ]
        reveals = [m["payload"] for m in messages if m["type"] == "reveal"]
        assert [r["visible"] for r in reveals] == [0, 1, 2]
        assert all(r["turn_id"] == turns[1]["id"] for r in reveals)
        statuses = [m["payload"] for m in messages if m["type"] == "status"]
        assert [s["in_flight"] for s in statuses] == [False, True, False]
        assert statuses[-1]["prompt"] == ""

    def test_open_reply_goes_only_to_requesting_socket(self):
        server = make_server()
        with TestClient(server.app) as client:
            with client.websocket_connect("/ws") as asker, client.websocket_connect("/ws") as other:
                assert asker.receive_json()["type"] == "sync"
                assert other.receive_json()["type"] == "sync"

                asker.send_json({"type": "open", "payload": {"content": "print('hi')"}})
                reply = asker.receive_json()
                asker.send_json({"type": "copy", "payload": {"content": "print('hi')"}})

                copied = {"type": "copied", "payload": {"copied": True}}
                assert asker.receive_json() == copied
                # the other tab sees the flag but never the open reply
                assert other.receive_json() == copied

        assert reply["type"] == "open"
        blob_id = reply["payload"]["blob_id"]
        assert reply["payload"]["url"] == f"/blobs/{blob_id}"
        assert server.controller.blobs.get(blob_id) == "print('hi')"

    def test_events_before_connect_are_not_resent(self):
        server = make_server(RelayError("boom"))
        # Four events queue on the bus before it starts.
        run(server.controller.submit("x"))

        with TestClient(server.app) as client:
            with client.websocket_connect("/ws") as ws:
                sync = ws.receive_json()
                ws.send_json({"type": "prompt", "payload": {"text": "next"}})
                follow = ws.receive_json()

        assert sync["type"] == "sync"
        assert sync["payload"]["seq"] == 4
        assert [t["role"] for t in sync["payload"]["turns"]] == ["user", "assistant"]
        assert follow == {"type": "status", "payload": {"in_flight": False, "prompt": "next"}}
