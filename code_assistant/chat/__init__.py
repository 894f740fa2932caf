"""
Conversation state, reveal animation and the relay client.
"""
from .controller import ConversationController
from .relay_client import RelayClient, RelayError
from .schema import AssistantTurn, CodeLine, ErrorTurn, Turn, UserTurn

__all__ = [
    "ConversationController",
    "RelayClient",
    "RelayError",
    "AssistantTurn",
    "CodeLine",
    "ErrorTurn",
    "Turn",
    "UserTurn",
]
