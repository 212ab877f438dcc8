"""
Sessions API endpoints - Create, list, rename and delete facilitation
sessions; read their messages, transcript and flagged insights.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from ..models import Message, Session, SessionCreate, SessionRename, SessionSummary
from ..storage.session_store import SessionStore, get_session_store

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=Session, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    store: SessionStore = Depends(get_session_store)
):
    """
    Create a new session in phase 1.

    Args:
        body: Session name

    Returns:
        Session: The created session
    """
    try:
        return await store.create_session(body.name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=List[SessionSummary])
async def list_sessions(store: SessionStore = Depends(get_session_store)):
    """List sessions, newest first."""
    return await store.list_sessions()


@router.get("/{session_id}", response_model=Session)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Full session document with messages and image metadata."""
    return await store.get_session(session_id)


@router.patch("/{session_id}", response_model=Session)
async def rename_session(
    session_id: str,
    body: SessionRename,
    store: SessionStore = Depends(get_session_store)
):
    try:
        return await store.rename_session(session_id, body.name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Delete a session with its messages and images."""
    if not await store.delete_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}"
        )


@router.get("/{session_id}/messages", response_model=List[Message])
async def get_messages(session_id: str, store: SessionStore = Depends(get_session_store)):
    return await store.get_messages(session_id)


@router.get("/{session_id}/transcript", response_class=PlainTextResponse)
async def get_transcript(session_id: str, store: SessionStore = Depends(get_session_store)):
    """
    Plain-text transcript for copying or download.

    Returns:
        text/plain body with one block per message
    """
    return await store.export_transcript(session_id)


@router.post("/{session_id}/messages/{message_id}/insight", response_model=Message)
async def toggle_insight(
    session_id: str,
    message_id: str,
    store: SessionStore = Depends(get_session_store)
):
    """Flag or unflag a message as an insight."""
    return await store.toggle_insight(session_id, message_id)


@router.get("/{session_id}/insights", response_model=List[Message])
async def list_insights(session_id: str, store: SessionStore = Depends(get_session_store)):
    return await store.list_insights(session_id)
