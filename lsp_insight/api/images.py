"""
Images API endpoints - Upload and manage photos of built models.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response

from ..models import ImageUpload, SessionImage
from ..storage.session_store import SessionStore, get_session_store

router = APIRouter(prefix="/sessions/{session_id}/images", tags=["images"])


@router.post("", response_model=SessionImage, status_code=status.HTTP_201_CREATED)
async def upload_image(
    session_id: str,
    image: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    message_id: Optional[str] = Form(None),
    store: SessionStore = Depends(get_session_store)
):
    """
    Attach an image to a session.

    Args:
        session_id: Target session
        image: Image file (jpeg, png, gif or webp, up to the configured size)
        title: Short label for the model in the picture
        description: Optional longer description
        message_id: Optional message the image belongs to

    Returns:
        SessionImage: Stored image metadata
    """
    upload = ImageUpload(
        title=title,
        data=await image.read(),
        mime_type=image.content_type or "application/octet-stream",
        description=description,
    )
    return await store.add_image(session_id, upload, message_id=message_id)


@router.get("", response_model=List[SessionImage])
async def list_images(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Image metadata, newest first."""
    return await store.list_images(session_id)


@router.get("/{image_id}")
async def get_image(session_id: str, image_id: str, store: SessionStore = Depends(get_session_store)):
    """Raw image bytes with their stored content type."""
    record, data = await store.get_image(session_id, image_id)
    return Response(content=data, media_type=record.mime_type)


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image(session_id: str, image_id: str, store: SessionStore = Depends(get_session_store)):
    await store.delete_image(session_id, image_id)
