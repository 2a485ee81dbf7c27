"""Storage module for persistence.

This module handles all durable client state:
- Conversations, messages and their annotations
- Provider credentials and the active-credential pointer
- Uploaded documents per conversation

Records are frozen dataclasses. Stores replace whole objects on every
write, so a reader never observes a half-applied update.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple, Mapping
from datetime import datetime
import uuid

from ..config.models import ProviderKind


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def new_id() -> str:
    """Generate an opaque record identifier."""
    return str(uuid.uuid4())


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return datetime.now()


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    id: str
    role: str  # "user" or "assistant"
    content: str = ""
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        role: str,
        content: str = "",
        image_url: Optional[str] = None,
    ) -> "Message":
        """Create a new message with generated ID."""
        return cls(id=new_id(), role=role, content=content, image_url=image_url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            role=data["role"],
            content=data.get("content", ""),
            image_url=data.get("image_url"),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class Annotation:
    """A highlighted substring of a message and its explanation."""

    id: str
    text: str
    explanation: str

    @classmethod
    def create(cls, text: str, explanation: str) -> "Annotation":
        """Create a new annotation with generated ID."""
        return cls(id=new_id(), text=text, explanation=explanation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"id": self.id, "text": self.text, "explanation": self.explanation}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            text=data["text"],
            explanation=data.get("explanation", ""),
        )


@dataclass(frozen=True)
class Conversation:
    """A conversation: ordered messages plus per-message annotations."""

    id: str
    title: str = "New chat"
    messages: Tuple[Message, ...] = ()
    annotations: Mapping[str, Tuple[Annotation, ...]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(cls, title: str = "New chat") -> "Conversation":
        """Create a new, empty conversation."""
        now = datetime.now()
        return cls(id=new_id(), title=title, created_at=now, updated_at=now)

    def get_message(self, message_id: str) -> Optional[Message]:
        """Find a message by ID."""
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def annotations_for(self, message_id: str) -> Tuple[Annotation, ...]:
        """Get the annotations attached to a message."""
        return tuple(self.annotations.get(message_id, ()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "annotations": {
                message_id: [a.to_dict() for a in items]
                for message_id, items in self.annotations.items()
            },
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", "New chat"),
            messages=tuple(Message.from_dict(m) for m in data.get("messages", [])),
            annotations={
                message_id: tuple(Annotation.from_dict(a) for a in items)
                for message_id, items in data.get("annotations", {}).items()
            },
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass(frozen=True)
class ProviderCredential:
    """A stored API key for one provider."""

    id: str
    provider: ProviderKind
    api_key: str
    model: str
    label: str
    enabled: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def __repr__(self) -> str:
        # Keep key material out of logs and tracebacks
        return (
            f"ProviderCredential(id={self.id!r}, provider={self.provider.value!r}, "
            f"model={self.model!r}, label={self.label!r}, enabled={self.enabled})"
        )

    @property
    def masked_key(self) -> str:
        """First few characters of the key for display."""
        if not self.api_key:
            return ""
        return self.api_key[:8] + "..."

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "provider": self.provider.value,
            "api_key": self.api_key,
            "model": self.model,
            "label": self.label,
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderCredential":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            provider=ProviderKind(data["provider"]),
            api_key=data.get("api_key", ""),
            model=data.get("model", ""),
            label=data.get("label", ""),
            enabled=bool(data.get("enabled", True)),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class ParsedDocument:
    """Text extracted from an uploaded file."""

    id: str
    name: str
    content: str
    size: int = 0
    type: str = ""
    char_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "size": self.size,
            "type": self.type,
            "char_count": self.char_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedDocument":
        """Create from dictionary."""
        content = data.get("content", "")
        return cls(
            id=data["id"],
            name=data["name"],
            content=content,
            size=data.get("size", 0),
            type=data.get("type", ""),
            char_count=data.get("char_count", len(content)),
        )
