"""
Chat API endpoints - Run facilitation turns.
Supports text messages and an optional photo of a built model.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from ..agents.facilitator import FacilitatorAgent, TurnResult, get_facilitator
from ..models import ChatRequest, ImageUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


async def _turn_response(
    facilitator: FacilitatorAgent,
    session_id: str,
    content: str,
    image: Optional[ImageUpload],
    stream: bool,
):
    """Run the turn directly, or hand it to a Server-Sent Events stream."""
    if not content.strip() and image is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message must contain text or an image"
        )

    # Unknown sessions and bad images fail before a stream is opened
    await facilitator.store.get_session(session_id)
    if image is not None:
        facilitator.store.validate_image(image)

    if not stream:
        try:
            return await facilitator.run_turn(session_id, content, image=image)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    async def event_generator():
        try:
            async for event in facilitator.stream_turn(session_id, content, image=image):
                yield _sse(event)
                if event["type"] == "error":
                    return
        except Exception as e:
            logger.error(f"Stream failed for session {session_id}: {e}", exc_info=True)
            yield _sse({"type": "error", "error": str(e)})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/{session_id}/message", response_model=TurnResult)
async def send_message(
    session_id: str,
    message: ChatRequest,
    stream: bool = Query(False, description="Enable streaming output"),
    facilitator: FacilitatorAgent = Depends(get_facilitator)
):
    """
    Send a user message and get the facilitator's response.

    Args:
        session_id: Session to run the turn in
        message: User message
        stream: Enable Server-Sent Events streaming

    Returns:
        TurnResult (stream=false) or StreamingResponse (stream=true)
    """
    return await _turn_response(facilitator, session_id, message.content, None, stream)


@router.post("/{session_id}/message-with-image", response_model=TurnResult)
async def send_message_with_image(
    session_id: str,
    content: str = Form(""),
    image: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    stream: bool = Form(False, description="Enable streaming output"),
    facilitator: FacilitatorAgent = Depends(get_facilitator)
):
    """
    Send a user message together with a photo of a built model.
    The image is analyzed by the multimodal model and stored with the turn.

    Args:
        session_id: Session to run the turn in
        content: Optional text message
        image: Image file
        title: Label for the stored image, defaults to the file name
        description: Optional image description
        stream: Enable Server-Sent Events streaming

    Returns:
        TurnResult (stream=false) or StreamingResponse (stream=true)
    """
    upload = ImageUpload(
        title=title or image.filename or "Modelo",
        data=await image.read(),
        mime_type=image.content_type or "application/octet-stream",
        description=description,
    )
    return await _turn_response(facilitator, session_id, content, upload, stream)
