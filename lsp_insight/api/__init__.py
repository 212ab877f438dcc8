"""API module."""

from .chat import router as chat_router
from .sessions import router as sessions_router
from .images import router as images_router
from .errors import lsp_insight_exception_handler

__all__ = ['chat_router', 'sessions_router', 'images_router', 'lsp_insight_exception_handler']
