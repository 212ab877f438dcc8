"""Models module."""

from .phase import LspPhase, PHASE_DESCRIPTIONS, INITIAL_PHASE, TERMINAL_PHASE
from .session import (
    Message, SessionImage, ImageUpload, SessionSummary, Session,
    SessionCreate, SessionRename, ChatRequest,
)

__all__ = [
    'LspPhase', 'PHASE_DESCRIPTIONS', 'INITIAL_PHASE', 'TERMINAL_PHASE',
    'Message', 'SessionImage', 'ImageUpload', 'SessionSummary', 'Session',
    'SessionCreate', 'SessionRename', 'ChatRequest',
]
