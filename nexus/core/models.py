"""Conversation data model."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


PLACEHOLDER_TITLE = "New conversation"
GREETING_TEXT = "Nexus Online.\nHow can I help you today?"
TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def generate_id(prefix: str = "") -> str:
    """Generate a unique, time-sortable identifier. Falls back to uuid4 if uuid7 not available."""
    try:
        value = str(uuid.uuid7())  # type: ignore[attr-defined]
    except AttributeError:
        # uuid7 only exists on Python 3.14+
        value = str(uuid.uuid4())
    return f"{prefix}{value}"


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single chat message. Never mutated after it is appended."""

    role: Role
    text: str
    id: str = field(default_factory=lambda: generate_id("msg_"))
    image_url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=Role.USER, text=text)

    @classmethod
    def assistant(cls, text: str, image_url: Optional[str] = None) -> "Message":
        return cls(role=Role.ASSISTANT, text=text, image_url=image_url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for serialization."""
        data: Dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data


def derive_title(text: str) -> str:
    """Shorten a message into a thread title of at most TITLE_MAX_LENGTH characters."""
    if len(text) <= TITLE_MAX_LENGTH:
        return text
    return text[: TITLE_MAX_LENGTH - len(TITLE_ELLIPSIS)] + TITLE_ELLIPSIS


@dataclass
class Conversation:
    """One ordered message history with its own title."""

    id: str = field(default_factory=lambda: generate_id("conv_"))
    title: str = PLACEHOLDER_TITLE
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def with_greeting(cls) -> "Conversation":
        conversation = cls()
        conversation.messages.append(
            Message.assistant(GREETING_TEXT)
        )
        return conversation

    def append(self, message: Message) -> None:
        """Append a message, deriving the title from the first user message."""
        if (
            len(self.messages) == 1
            and message.role is Role.USER
            and self.title == PLACEHOLDER_TITLE
        ):
            self.title = derive_title(message.text)
        self.messages.append(message)
        self.updated_at = datetime.now()

    def history(self) -> List[Message]:
        return list(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        """Convert conversation to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "messages": [message.to_dict() for message in self.messages],
        }


@dataclass(frozen=True)
class SystemConfig:
    """User-visible API key and optional remote endpoint, passed through opaquely."""

    user_api_key: str = ""
    remote_endpoint: str = ""

    def with_key(self, key: str) -> "SystemConfig":
        return replace(self, user_api_key=key)
