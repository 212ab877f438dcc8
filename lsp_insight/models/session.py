"""
Session Models - Defines structures for facilitation sessions, their
messages and the images attached to them.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator

from .phase import LspPhase, INITIAL_PHASE


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


Role = Literal["user", "model"]


class Message(BaseModel):
    """A single chat message in a session."""
    message_id: str = Field(default_factory=_new_id)
    session_id: str
    role: Role
    content: str
    is_insight: bool = False
    created_at: datetime = Field(default_factory=_now)
    order_index: int


class SessionImage(BaseModel):
    """Metadata of an image uploaded to a session. The payload is stored separately."""
    image_id: str = Field(default_factory=_new_id)
    session_id: str
    message_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    mime_type: str
    size: int = 0
    created_at: datetime = Field(default_factory=_now)


class ImageUpload(BaseModel):
    """An image payload on its way into the store."""
    title: str
    data: bytes
    mime_type: str
    description: Optional[str] = None


class SessionSummary(BaseModel):
    """Session metadata without the message log."""
    session_id: str
    name: str
    current_phase: LspPhase = INITIAL_PHASE
    created_at: datetime
    updated_at: datetime
    message_count: int = 0
    image_count: int = 0


class Session(BaseModel):
    """Full session document: metadata, ordered messages and image metadata."""
    session_id: str = Field(default_factory=_new_id)
    name: str
    current_phase: LspPhase = INITIAL_PHASE
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    messages: List[Message] = Field(default_factory=list)
    images: List[SessionImage] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Session name must not be empty")
        return value

    def next_order_index(self) -> int:
        return self.messages[-1].order_index + 1 if self.messages else 0

    def touch(self) -> None:
        self.updated_at = _now()

    def summary(self) -> SessionSummary:
        return SessionSummary(
            session_id=self.session_id,
            name=self.name,
            current_phase=self.current_phase,
            created_at=self.created_at,
            updated_at=self.updated_at,
            message_count=len(self.messages),
            image_count=len(self.images),
        )


class SessionCreate(BaseModel):
    """Request body for creating a session."""
    name: str = Field(..., min_length=1, max_length=200)


class SessionRename(BaseModel):
    """Request body for renaming a session."""
    name: str = Field(..., min_length=1, max_length=200)


class ChatRequest(BaseModel):
    """Request body for a user turn."""
    content: str = Field(..., min_length=1)
