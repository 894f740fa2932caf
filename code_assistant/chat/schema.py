"""
Conversation data model: turns and the code lines of assistant replies.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Tuple, Union

ERROR_PREFIX = "Error generating code. Please try again. "


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class CodeLine:
    """One numbered line of an assistant reply (numbers start at 1)."""
    number: int
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "content": self.content}


def split_code_lines(content: str) -> Tuple[CodeLine, ...]:
    """
    Split text on "\\n" into numbered lines.
    Empty lines are kept, so empty text gives a single empty line.
    """
    return tuple(
        CodeLine(number=i, content=line)
        for i, line in enumerate(content.split("\n"), start=1)
    )


def join_code_lines(lines: Iterable[CodeLine]) -> str:
    """Inverse of split_code_lines."""
    return "\n".join(line.content for line in lines)


def new_turn_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class UserTurn:
    """A prompt typed by the user."""
    content: str

    @property
    def role(self) -> Role:
        return Role.USER

    @property
    def is_error(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class AssistantTurn:
    """Generated code, revealed line by line."""
    id: str
    content: str
    code_lines: Tuple[CodeLine, ...] = field(default=())

    @classmethod
    def from_code(cls, content: str) -> "AssistantTurn":
        return cls(id=new_turn_id(), content=content, code_lines=split_code_lines(content))

    @property
    def role(self) -> Role:
        return Role.ASSISTANT

    @property
    def is_error(self) -> bool:
        return False

    @property
    def total_lines(self) -> int:
        return len(self.code_lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "codeLines": [line.to_dict() for line in self.code_lines],
        }


@dataclass(frozen=True)
class ErrorTurn:
    """An assistant-side failure notice. Rendered as plain text, never animated."""
    id: str
    content: str

    @classmethod
    def from_failure(cls, message: str) -> "ErrorTurn":
        return cls(id=new_turn_id(), content=ERROR_PREFIX + message)

    @property
    def role(self) -> Role:
        return Role.ASSISTANT

    @property
    def is_error(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "isError": True,
        }


Turn = Union[UserTurn, AssistantTurn, ErrorTurn]
