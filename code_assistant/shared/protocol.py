import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict

from .event_bus import Event, EventType


class ClientMessageType(str, Enum):
    PROMPT = "prompt"
    SUBMIT = "submit"
    RESET = "reset"
    COPY = "copy"
    OPEN = "open"


@dataclass
class ClientMessage:
    type: ClientMessageType
    payload: Dict[str, Any]

    @classmethod
    def from_json(cls, data: str) -> "ClientMessage":
        parsed = json.loads(data)
        return cls(type=ClientMessageType(parsed["type"]), payload=parsed.get("payload") or {})


class ServerMessageType(str, Enum):
    SYNC = "sync"
    TURN = "turn"
    REVEAL = "reveal"
    STATUS = "status"
    COPIED = "copied"
    OPEN = "open"
    RESET = "reset"


_EVENT_TO_MESSAGE = {
    EventType.TURN_APPENDED: ServerMessageType.TURN,
    EventType.REVEAL_TICK: ServerMessageType.REVEAL,
    EventType.REVEAL_DONE: ServerMessageType.REVEAL,
    EventType.STATUS_CHANGED: ServerMessageType.STATUS,
    EventType.COPIED_CHANGED: ServerMessageType.COPIED,
    EventType.CONVERSATION_RESET: ServerMessageType.RESET,
}

# Event types a rendering surface mirrors to every browser.
BROADCAST_EVENTS = tuple(_EVENT_TO_MESSAGE)


@dataclass
class ServerMessage:
    type: ServerMessageType
    payload: Dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def sync(cls, snapshot: Dict[str, Any]) -> "ServerMessage":
        return cls(type=ServerMessageType.SYNC, payload=snapshot)

    @classmethod
    def open(cls, blob_id: str, url: str) -> "ServerMessage":
        """Reply to the browser that asked to open a blob; never broadcast."""
        return cls(type=ServerMessageType.OPEN, payload={"blob_id": blob_id, "url": url})

    @classmethod
    def from_event(cls, event: Event) -> "ServerMessage":
        """Translate a bus event into the message browsers understand."""
        payload = dict(event.data)
        if event.type is EventType.TURN_APPENDED:
            payload = payload["turn"].to_dict()
        elif event.type is EventType.REVEAL_DONE:
            payload["done"] = True
        elif event.type is EventType.REVEAL_TICK:
            payload["done"] = False
        return cls(type=_EVENT_TO_MESSAGE[event.type], payload=payload)
