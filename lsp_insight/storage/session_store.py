"""
Session Store - Persistent storage for facilitation sessions using StorageInterface.

Each session is one JSON document at sessions/<session_id>.json holding the
session metadata, its ordered message log and image metadata. Image payloads
live under sessions/<session_id>/images/. A document write is atomic, so a
turn (user message, model message and phase) is committed all at once.
"""

import asyncio
import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from .interface import StorageInterface
from ..config import settings
from ..core.exceptions import (
    StorageError,
    SessionNotFoundError,
    MessageNotFoundError,
    ImageNotFoundError,
    InvalidImageError,
)
from ..models.phase import LspPhase
from ..models.session import ImageUpload, Message, Session, SessionImage, SessionSummary

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

TRANSCRIPT_SEPARATOR = "\n\n---\n\n"
ROLE_LABELS = {"user": "[Usuario]", "model": "[Facilitador]"}


class SessionStore:
    """
    Manages persistent storage of sessions, messages and images.

    Read-modify-write operations on one session are serialised with a
    per-session lock.
    """

    def __init__(
        self,
        storage: StorageInterface,
        max_image_bytes: Optional[int] = None,
        allowed_image_types: Optional[List[str]] = None,
    ):
        """
        Initialize session storage.

        Args:
            storage: StorageInterface implementation (typically LocalStorage)
            max_image_bytes: Upload size limit, defaults to settings
            allowed_image_types: Accepted mime types, defaults to settings
        """
        self.storage = storage
        self.sessions_dir = "sessions"
        self.max_image_bytes = max_image_bytes or settings.max_image_bytes
        self.allowed_image_types = set(allowed_image_types or settings.allowed_image_types)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _session_dir(self, session_id: str) -> str:
        if not _ID_PATTERN.match(session_id):
            raise SessionNotFoundError(session_id)
        return f"{self.sessions_dir}/{session_id}"

    def _session_path(self, session_id: str) -> str:
        return f"{self._session_dir(session_id)}.json"

    def _image_path(self, session_id: str, image_id: str) -> str:
        if not _ID_PATTERN.match(image_id):
            raise ImageNotFoundError(session_id, image_id)
        return f"{self._session_dir(session_id)}/images/{image_id}"

    async def _load(self, session_id: str) -> Session:
        content = await self.storage.load(self._session_path(session_id))
        if content is None:
            raise SessionNotFoundError(session_id)
        try:
            return Session.model_validate_json(content)
        except ValidationError as e:
            raise StorageError(f"Corrupt session document {session_id}: {e}") from e

    async def _save(self, session: Session) -> None:
        session.touch()
        await self.storage.save(
            self._session_path(session.session_id),
            session.model_dump_json(indent=2),
        )

    async def create_session(self, name: str) -> Session:
        """
        Create an empty session in phase 1.

        Args:
            name: Human-assigned label

        Returns:
            Session: The created session
        """
        session = Session(name=name)
        await self._save(session)
        logger.info(f"Session created: {session.session_id} ({session.name})")
        return session

    async def get_session(self, session_id: str) -> Session:
        """Get a full session document, raising SessionNotFoundError if absent."""
        return await self._load(session_id)

    async def list_sessions(self) -> List[SessionSummary]:
        """List all sessions, newest first."""
        files = await self.storage.list(self.sessions_dir, pattern="*.json")
        summaries = []

        for file_path in files:
            session_id = file_path.rsplit("/", 1)[-1][:-len(".json")]
            try:
                summaries.append((await self._load(session_id)).summary())
            except SessionNotFoundError:
                # Deleted between listing and loading
                continue

        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    async def rename_session(self, session_id: str, name: str) -> Session:
        """Change a session's label."""
        async with self._locks[session_id]:
            session = await self._load(session_id)
            session.name = name.strip()
            if not session.name:
                raise ValueError("Session name must not be empty")
            await self._save(session)
            return session

    async def set_phase(self, session_id: str, phase: LspPhase) -> Session:
        """
        Persist a session's current phase.

        Validation of the transition itself belongs to the phase engine; this
        only checks the value is a phase.
        """
        phase = LspPhase(phase)
        async with self._locks[session_id]:
            session = await self._load(session_id)
            session.current_phase = phase
            await self._save(session)
            return session

    async def delete_session(self, session_id: str) -> bool:
        """
        Delete a session with its messages and images.

        Returns:
            bool: True if the session existed
        """
        async with self._locks[session_id]:
            deleted = await self.storage.delete(self._session_path(session_id))
            await self.storage.delete_tree(self._session_dir(session_id))
        self._locks.pop(session_id, None)
        if deleted:
            logger.info(f"Session deleted: {session_id}")
        return deleted

    async def append_message(self, session_id: str, role: str, content: str) -> Message:
        """Append one message to the session's log."""
        async with self._locks[session_id]:
            session = await self._load(session_id)
            message = Message(
                session_id=session_id,
                role=role,
                content=content,
                order_index=session.next_order_index(),
            )
            session.messages.append(message)
            await self._save(session)
            return message

    async def get_messages(self, session_id: str) -> List[Message]:
        """Messages in persisted order."""
        session = await self._load(session_id)
        return sorted(session.messages, key=lambda m: m.order_index)

    async def commit_turn(
        self,
        session_id: str,
        user_content: str,
        model_content: str,
        phase: LspPhase,
        image: Optional[ImageUpload] = None,
    ) -> Tuple[Message, Message]:
        """
        Persist a completed turn in a single document write.

        Args:
            session_id: Session id
            user_content: The user's message text
            model_content: Cleaned model response
            phase: Session phase after the turn
            image: Optional image sent with the user message

        Returns:
            Tuple of the stored user and model messages
        """
        phase = LspPhase(phase)
        if image is not None:
            self.validate_image(image)

        async with self._locks[session_id]:
            session = await self._load(session_id)
            order_index = session.next_order_index()
            user_message = Message(
                session_id=session_id, role="user", content=user_content, order_index=order_index
            )
            model_message = Message(
                session_id=session_id, role="model", content=model_content, order_index=order_index + 1
            )
            session.messages.extend([user_message, model_message])
            session.current_phase = phase
            if image is not None:
                await self._attach_image(session, image, message_id=user_message.message_id)
            else:
                await self._save(session)
            return user_message, model_message

    async def toggle_insight(self, session_id: str, message_id: str) -> Message:
        """Flip a message's insight flag."""
        async with self._locks[session_id]:
            session = await self._load(session_id)
            for message in session.messages:
                if message.message_id == message_id:
                    message.is_insight = not message.is_insight
                    await self._save(session)
                    return message
            raise MessageNotFoundError(session_id, message_id)

    async def list_insights(self, session_id: str) -> List[Message]:
        """Messages flagged as insights, in order."""
        return [m for m in await self.get_messages(session_id) if m.is_insight]

    def validate_image(self, image: ImageUpload) -> None:
        if image.mime_type not in self.allowed_image_types:
            raise InvalidImageError(f"Unsupported image type: {image.mime_type}")
        if not image.data:
            raise InvalidImageError("Image payload is empty")
        if len(image.data) > self.max_image_bytes:
            raise InvalidImageError(
                f"Image too large: {len(image.data)} bytes (max {self.max_image_bytes})"
            )
        if not image.title.strip():
            raise InvalidImageError("Image title must not be empty")

    async def _attach_image(
        self, session: Session, image: ImageUpload, message_id: Optional[str] = None
    ) -> SessionImage:
        """Write the payload, then the document; the payload is removed if the document write fails."""
        record = SessionImage(
            session_id=session.session_id,
            message_id=message_id,
            title=image.title.strip(),
            description=image.description,
            mime_type=image.mime_type,
            size=len(image.data),
        )
        image_path = self._image_path(session.session_id, record.image_id)
        await self.storage.save(image_path, image.data)
        session.images.append(record)
        try:
            await self._save(session)
        except StorageError:
            await self.storage.delete(image_path)
            raise
        logger.info(
            f"Image {record.image_id} added to session {session.session_id} ({record.size} bytes)"
        )
        return record

    async def add_image(
        self,
        session_id: str,
        image: ImageUpload,
        message_id: Optional[str] = None,
    ) -> SessionImage:
        """
        Attach an image of a built model to a session.

        Raises:
            InvalidImageError: Unsupported type, empty or oversized payload, blank title
            MessageNotFoundError: message_id given but not in the session
        """
        self.validate_image(image)

        async with self._locks[session_id]:
            session = await self._load(session_id)
            if message_id and not any(m.message_id == message_id for m in session.messages):
                raise MessageNotFoundError(session_id, message_id)
            return await self._attach_image(session, image, message_id=message_id)

    async def list_images(self, session_id: str) -> List[SessionImage]:
        """Image metadata for a session, newest first."""
        session = await self._load(session_id)
        return sorted(session.images, key=lambda i: i.created_at, reverse=True)

    async def get_image(self, session_id: str, image_id: str) -> Tuple[SessionImage, bytes]:
        """Image metadata and payload."""
        session = await self._load(session_id)
        for image in session.images:
            if image.image_id == image_id:
                data = await self.storage.load(self._image_path(session_id, image_id))
                if data is None:
                    raise StorageError(f"Image payload missing for {image_id}")
                return image, data
        raise ImageNotFoundError(session_id, image_id)

    async def delete_image(self, session_id: str, image_id: str) -> None:
        """Remove an image and its payload."""
        async with self._locks[session_id]:
            session = await self._load(session_id)
            remaining = [i for i in session.images if i.image_id != image_id]
            if len(remaining) == len(session.images):
                raise ImageNotFoundError(session_id, image_id)
            session.images = remaining
            await self._save(session)
            await self.storage.delete(self._image_path(session_id, image_id))

    async def export_transcript(self, session_id: str) -> str:
        """
        Plain-text transcript of a session for copying or download.

        Returns:
            str: "[Usuario]:" / "[Facilitador]:" blocks separated by "---"
        """
        messages = await self.get_messages(session_id)
        blocks = [f"{ROLE_LABELS[m.role]}:\n{m.content}" for m in messages]
        return TRANSCRIPT_SEPARATOR.join(blocks)


# Global session store instance
_session_store: Optional[SessionStore] = None


def init_session_store(storage: Optional[StorageInterface] = None) -> SessionStore:
    """
    Initialize the global session store instance.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
    """
    global _session_store
    if storage is None:
        from .local_storage import LocalStorage
        storage = LocalStorage(settings.local_storage_path)
    _session_store = SessionStore(storage)
    return _session_store


def get_session_store() -> SessionStore:
    """
    Get the global session store instance.

    Raises:
        RuntimeError: If the store has not been initialized
    """
    if _session_store is None:
        raise RuntimeError("Session store not initialized. Call init_session_store() first.")
    return _session_store
