"""
Facilitator Agent - Drives one facilitation turn end to end.

A turn streams the collaborator's response, accumulates it, runs the phase
pipeline exactly once on the complete text and commits the user message,
the cleaned model message and the new phase in one store write. Turns on the
same session never overlap: a second submission waits for the first to be
committed.
"""

import asyncio
import base64
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import settings
from ..core.exceptions import LSPInsightError, StreamFailure
from ..core.logging_config import preview
from ..engine import process_turn
from ..engine.normalizer import clean
from ..llm.base import LLMMessage, LLMProvider
from ..models.phase import LspPhase
from ..models.session import ImageUpload, Message, Session
from ..prompts import SYSTEM_PROMPT, STREAM_ERROR_MESSAGE, LLM_NOT_CONFIGURED_MESSAGE
from ..storage.session_store import SessionStore

logger = logging.getLogger(__name__)

IMAGE_ONLY_PLACEHOLDER = "[Imagen adjunta]"

FragmentCallback = Callable[[str], Awaitable[None]]
RetryCallback = Callable[[int], Awaitable[None]]


class TurnResult(BaseModel):
    """Result of one facilitation turn."""
    session_id: str
    content: str
    phase: LspPhase
    previous_phase: LspPhase
    phase_changed: bool = False
    concluded: bool = False
    is_error: bool = False
    attempts: int = 0
    candidate: Optional[LspPhase] = None
    classification_source: Optional[str] = None
    guard_reason: Optional[str] = None
    user_message: Optional[Message] = None
    model_message: Optional[Message] = None


class FacilitatorAgent:
    """
    Runs facilitation turns against the generative-text collaborator.
    Works without a provider, returning a configuration notice instead.
    """

    def __init__(
        self,
        store: SessionStore,
        llm_provider: Optional[LLMProvider] = None,
        system_prompt: str = SYSTEM_PROMPT,
        retry_attempts: Optional[int] = None,
        retry_min_wait: Optional[float] = None,
        retry_max_wait: Optional[float] = None,
    ):
        """
        Initialize the facilitator.

        Args:
            store: Session store turns are committed to
            llm_provider: Collaborator; None disables generation
            system_prompt: Methodology instructions sent with every turn
            retry_attempts: Stream attempts per turn, defaults to settings
            retry_min_wait: Minimum backoff in seconds, defaults to settings
            retry_max_wait: Maximum backoff in seconds, defaults to settings
        """
        self.store = store
        self.system_prompt = system_prompt
        self.retry_attempts = retry_attempts or settings.llm_retry_attempts
        self.retry_min_wait = settings.llm_retry_min_wait if retry_min_wait is None else retry_min_wait
        self.retry_max_wait = settings.llm_retry_max_wait if retry_max_wait is None else retry_max_wait
        self._llm_provider = llm_provider
        self._turn_locks: Dict[str, asyncio.Lock] = {}
        self._turn_holders: Dict[str, int] = defaultdict(int)

    def set_llm_provider(self, provider: Optional[LLMProvider]) -> None:
        self._llm_provider = provider

    def is_turn_in_progress(self, session_id: str) -> bool:
        lock = self._turn_locks.get(session_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def _turn_lock(self, session_id: str):
        """Hold the session's turn lock; it is dropped once no turn holds or awaits it."""
        lock = self._turn_locks.setdefault(session_id, asyncio.Lock())
        self._turn_holders[session_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._turn_holders[session_id] -= 1
            if not self._turn_holders[session_id]:
                del self._turn_holders[session_id]
                self._turn_locks.pop(session_id, None)

    def build_history(
        self,
        session: Session,
        user_text: str,
        image: Optional[ImageUpload] = None,
    ) -> List[LLMMessage]:
        """
        Assemble the conversation sent to the collaborator.

        Args:
            session: Session with its committed messages
            user_text: The new user message
            image: Optional image for the new user message

        Returns:
            System prompt, prior turns in order, then the new user turn
        """
        messages = [LLMMessage.text("system", self.system_prompt)]
        for message in sorted(session.messages, key=lambda m: m.order_index):
            messages.append(LLMMessage.text(message.role, message.content))

        if image is not None:
            messages.append(LLMMessage.multimodal(
                "user",
                user_text,
                image_base64_list=[{
                    "data": base64.b64encode(image.data).decode("ascii"),
                    "media_type": image.mime_type,
                }],
            ))
        else:
            messages.append(LLMMessage.text("user", user_text))
        return messages

    async def _collect_stream(
        self,
        messages: List[LLMMessage],
        on_fragment: Optional[FragmentCallback] = None,
    ) -> str:
        """Drain one stream into a single string. Partial text never leaves this method."""
        accumulated = ""
        try:
            async for fragment in self._llm_provider.chat_completion_stream(messages):
                accumulated += fragment
                if on_fragment is not None:
                    await on_fragment(clean(accumulated))
        except StreamFailure:
            raise
        except Exception as e:
            raise StreamFailure(f"Stream interrupted: {e}", cause=e) from e

        if not accumulated.strip():
            raise StreamFailure("Stream ended without any text")
        return accumulated

    async def _generate(
        self,
        messages: List[LLMMessage],
        on_fragment: Optional[FragmentCallback] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> Tuple[str, int]:
        """Stream with bounded retries. Returns the raw text and the attempt count."""
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.retry_min_wait, min=self.retry_min_wait, max=self.retry_max_wait
            ),
            retry=retry_if_exception_type(StreamFailure),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1 and on_retry is not None:
                        await on_retry(attempts)
                    raw_text = await self._collect_stream(messages, on_fragment)
        except StreamFailure as e:
            e.attempts = attempts
            raise
        return raw_text, attempts

    async def run_turn(
        self,
        session_id: str,
        text: str,
        image: Optional[ImageUpload] = None,
        on_fragment: Optional[FragmentCallback] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> TurnResult:
        """
        Run one complete turn.

        Args:
            session_id: Session to run the turn in
            text: User message
            image: Optional image of a built model
            on_fragment: Awaited with the cleaned text accumulated so far (display only)
            on_retry: Awaited with the attempt number when a failed stream is retried

        Returns:
            TurnResult; `is_error` is set when the stream failed and nothing was committed

        Raises:
            ValueError: Neither text nor image given
            InvalidImageError: Image rejected before anything is generated
            SessionNotFoundError: Unknown session
            StorageError: The commit failed; nothing was persisted
        """
        text = (text or "").strip()
        if not text and image is None:
            raise ValueError("Message must contain text or an image")
        if image is not None:
            self.store.validate_image(image)

        async with self._turn_lock(session_id):
            session = await self.store.get_session(session_id)
            current_phase = session.current_phase

            logger.info(
                f"Turn started in session {session_id} (phase {int(current_phase)}): {preview(text)}"
            )

            if self._llm_provider is None:
                return TurnResult(
                    session_id=session_id,
                    content=LLM_NOT_CONFIGURED_MESSAGE,
                    phase=current_phase,
                    previous_phase=current_phase,
                    is_error=True,
                )

            messages = self.build_history(session, text, image)

            try:
                raw_text, attempts = await self._generate(messages, on_fragment, on_retry)
            except StreamFailure as e:
                logger.error(
                    f"Turn discarded in session {session_id} after {e.attempts} attempt(s): {e}",
                    exc_info=True,
                    extra={"extra_fields": {"session_id": session_id, "error": str(e)}}
                )
                return TurnResult(
                    session_id=session_id,
                    content=STREAM_ERROR_MESSAGE,
                    phase=current_phase,
                    previous_phase=current_phase,
                    is_error=True,
                    attempts=e.attempts,
                )

            outcome = process_turn(raw_text, current_phase)

            try:
                user_message, model_message = await self.store.commit_turn(
                    session_id,
                    user_content=text or IMAGE_ONLY_PLACEHOLDER,
                    model_content=outcome.content,
                    phase=outcome.phase,
                    image=image,
                )
            except LSPInsightError as e:
                logger.error(
                    f"Turn commit failed in session {session_id}: {e}",
                    exc_info=True,
                    extra={"extra_fields": {"session_id": session_id, "error": str(e)}}
                )
                raise

            logger.info(
                f"Turn committed in session {session_id}: phase {int(outcome.previous_phase)} -> "
                f"{int(outcome.phase)}, response_length={len(outcome.content)} chars"
            )

            return TurnResult(
                session_id=session_id,
                content=outcome.content,
                phase=outcome.phase,
                previous_phase=outcome.previous_phase,
                phase_changed=outcome.phase_changed,
                concluded=outcome.concluded,
                attempts=attempts,
                candidate=outcome.candidate,
                classification_source=outcome.classification.source if outcome.classification else None,
                guard_reason=outcome.decision.reason.value,
                user_message=user_message,
                model_message=model_message,
            )

    async def stream_turn(
        self,
        session_id: str,
        text: str,
        image: Optional[ImageUpload] = None,
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Run a turn and yield progress events.

        Yields:
            Dict[str, Any]: Events with types content, retry, phase, done or error.
            `content` events carry the full cleaned text so far.
        """
        queue: asyncio.Queue = asyncio.Queue()
        finished = object()

        async def on_fragment(display_text: str) -> None:
            await queue.put({"type": "content", "content": display_text})

        async def on_retry(attempt: int) -> None:
            await queue.put({"type": "retry", "attempt": attempt})

        task = asyncio.create_task(self.run_turn(
            session_id, text, image=image, on_fragment=on_fragment, on_retry=on_retry
        ))
        task.add_done_callback(lambda _: queue.put_nowait(finished))

        try:
            while True:
                event = await queue.get()
                if event is finished:
                    break
                yield event

            try:
                result = task.result()
            except (LSPInsightError, ValueError) as e:
                yield {"type": "error", "error": str(e)}
                return

            if result.is_error:
                yield {"type": "error", "error": result.content, "result": result.model_dump(mode="json")}
                return

            if result.phase_changed:
                yield {
                    "type": "phase",
                    "phase": int(result.phase),
                    "previous_phase": int(result.previous_phase),
                    "title": result.phase.title,
                    "concluded": result.concluded,
                }
            yield {"type": "done", "result": result.model_dump(mode="json")}
        finally:
            # Consumer went away mid-turn: abandon the turn
            if not task.done():
                task.cancel()


# Global facilitator instance
_facilitator: Optional[FacilitatorAgent] = None


def init_facilitator(store: SessionStore, llm_provider: Optional[LLMProvider] = None) -> FacilitatorAgent:
    """Initialize the global facilitator instance."""
    global _facilitator
    _facilitator = FacilitatorAgent(store, llm_provider=llm_provider)
    return _facilitator


def get_facilitator() -> FacilitatorAgent:
    """
    Get the global facilitator instance.

    Raises:
        RuntimeError: If the facilitator has not been initialized
    """
    if _facilitator is None:
        raise RuntimeError("Facilitator not initialized. Call init_facilitator() first.")
    return _facilitator
