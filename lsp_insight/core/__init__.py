"""Core module - exceptions and logging setup."""

from .exceptions import (
    LSPInsightError,
    StreamFailure,
    StorageError,
    SessionNotFoundError,
    MessageNotFoundError,
    ImageNotFoundError,
    InvalidImageError,
)

__all__ = [
    'LSPInsightError',
    'StreamFailure',
    'StorageError',
    'SessionNotFoundError',
    'MessageNotFoundError',
    'ImageNotFoundError',
    'InvalidImageError',
]
