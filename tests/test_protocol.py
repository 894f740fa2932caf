"""
Unit tests for the browser <-> UI server message protocol.
"""

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from code_assistant.chat.schema import AssistantTurn
from code_assistant.shared.event_bus import (
    EventType,
    copied_event,
    reset_event,
    reveal_event,
    turn_event,
)
from code_assistant.shared.protocol import (
    BROADCAST_EVENTS,
    ClientMessage,
    ClientMessageType,
    ServerMessage,
    ServerMessageType,
)


class TestClientMessage:

    def test_from_json(self):
        msg = ClientMessage.from_json('{"type": "submit", "payload": {"prompt": "hi"}}')
        assert msg.type is ClientMessageType.SUBMIT
        assert msg.payload == {"prompt": "hi"}

    def test_missing_payload_defaults_to_empty(self):
        assert ClientMessage.from_json('{"type": "reset"}').payload == {}

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            ClientMessage.from_json('{"type": "explode"}')


class TestServerMessage:

    def test_turn_event(self):
        turn = AssistantTurn.from_code("a\nb")
        msg = ServerMessage.from_event(turn_event(turn))
        assert msg.type is ServerMessageType.TURN
        assert msg.payload == turn.to_dict()

    def test_reveal_events_carry_done_flag(self):
        tick = ServerMessage.from_event(reveal_event("t", 1, 2))
        done = ServerMessage.from_event(reveal_event("t", 2, 2, done=True))
        assert tick.type is done.type is ServerMessageType.REVEAL
        assert tick.payload == {"turn_id": "t", "visible": 1, "total": 2, "done": False}
        assert done.payload["done"] is True

    def test_simple_events(self):
        assert ServerMessage.from_event(copied_event(True)).payload == {"copied": True}
        assert ServerMessage.from_event(reset_event()).type is ServerMessageType.RESET

    def test_every_event_type_is_broadcast(self):
        assert set(BROADCAST_EVENTS) == set(EventType)

    def test_open_reply(self):
        assert json.loads(ServerMessage.open("b1", "/blobs/b1").to_json()) == {
            "type": "open", "payload": {"blob_id": "b1", "url": "/blobs/b1"},
        }

    def test_to_json_keeps_unicode(self):
        text = ServerMessage.sync({"prompt": "π ≈ 3.14"}).to_json()
        assert "π ≈ 3.14" in text
        assert json.loads(text)["type"] == "sync"
