"""
Exception hierarchy for the LSP Insight backend.

Storage errors are fatal for the turn that hit them and propagate to the API
layer; stream failures are retried by the facilitator before being surfaced
as a synthetic model turn.
"""

from typing import Optional


class LSPInsightError(Exception):
    """Base class for all errors raised by this package."""


class StreamFailure(LSPInsightError):
    """The collaborator's fragment stream raised or ended abnormally."""

    def __init__(self, message: str, attempts: int = 1, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class StorageError(LSPInsightError):
    """A read or write against the session store failed."""


class SessionNotFoundError(StorageError):
    """No session exists with the requested id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class MessageNotFoundError(StorageError):
    """No message with the requested id exists in the session."""

    def __init__(self, session_id: str, message_id: str):
        super().__init__(f"Message {message_id} not found in session {session_id}")
        self.session_id = session_id
        self.message_id = message_id


class ImageNotFoundError(StorageError):
    """No image with the requested id exists in the session."""

    def __init__(self, session_id: str, image_id: str):
        super().__init__(f"Image {image_id} not found in session {session_id}")
        self.session_id = session_id
        self.image_id = image_id


class InvalidImageError(LSPInsightError):
    """Uploaded image has an unsupported type or is too large."""
