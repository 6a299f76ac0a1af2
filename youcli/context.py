"""In-memory conversation context sent to the LLM on every turn."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union


class Role(str, Enum):
    """Roles a message in the context may carry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class InvalidRole(ValueError):
    """A message was built with a role the context does not support."""

    def __init__(self, role):
        super().__init__(f"Invalid role: {role!r}")
        self.role = role


@dataclass(frozen=True)
class Message:
    """Represents a single conversation message."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        """Convert message to the chat-completion wire format."""
        return {"role": self.role.value, "content": self.content}


def _coerce_role(role: Union[Role, str]) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise InvalidRole(role) from None


class ConversationContext:
    """Ordered, append-only message log opened by a system preamble."""

    def __init__(self, preamble: Optional[str] = None):
        self.preamble = preamble
        self._messages: List[Message] = []
        if preamble is not None:
            self.append(Role.SYSTEM, preamble)

    def append(self, role: Union[Role, str], content: str) -> Message:
        """Add a message to the end of the context."""
        message = Message(role=_coerce_role(role), content=content)
        self._messages.append(message)
        return message

    def snapshot(self) -> List[Message]:
        """Copy of the messages in insertion order."""
        return list(self._messages)

    def reset(self, keep_preamble: bool = False) -> None:
        """Drop every message, optionally restoring the system preamble."""
        self._messages.clear()
        if keep_preamble and self.preamble is not None:
            self.append(Role.SYSTEM, self.preamble)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self.snapshot())
