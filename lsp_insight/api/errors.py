"""
Exception handlers - Map package errors to HTTP responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    LSPInsightError,
    SessionNotFoundError,
    MessageNotFoundError,
    ImageNotFoundError,
    InvalidImageError,
)

logger = logging.getLogger(__name__)


def status_code_for(exc: LSPInsightError) -> int:
    if isinstance(exc, (SessionNotFoundError, MessageNotFoundError, ImageNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InvalidImageError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def lsp_insight_exception_handler(request: Request, exc: LSPInsightError) -> JSONResponse:
    """
    Global handler for package exceptions.

    Not-found errors are logged at INFO and rejected uploads at WARNING.
    """
    status_code = status_code_for(exc)
    extra = {"extra_fields": {"path": request.url.path, "error": str(exc), "status_code": status_code}}

    if status_code == status.HTTP_404_NOT_FOUND:
        logger.info(f"Not found: {exc}", extra=extra)
    elif status_code == status.HTTP_400_BAD_REQUEST:
        logger.warning(f"Rejected request: {exc}", extra=extra)
    else:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}", exc_info=exc, extra=extra)

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
