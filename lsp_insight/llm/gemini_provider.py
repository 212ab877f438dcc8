"""
Google Gemini LLM Provider.
Talks to the Generative Language REST API: generateContent for single
responses and streamGenerateContent (SSE) for streaming.
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator, Tuple

from ..core.exceptions import StreamFailure
from .base import LLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)

# Finish reasons of a response that ran to completion
COMPLETE_FINISH_REASONS = {"STOP", "FINISH_REASON_UNSPECIFIED"}


class GeminiProvider(LLMProvider):
    """
    Provider for Google's Gemini models.
    The system message becomes `systemInstruction`; conversation roles are
    "user" and "model".
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _format_parts(message: LLMMessage) -> List[Dict[str, Any]]:
        if isinstance(message.content, str):
            return [{"text": message.content}]
        parts = []
        for part in message.content:
            if part.get("type") == "image":
                parts.append({"inlineData": {"mimeType": part["media_type"], "data": part["data"]}})
            elif part.get("type") == "text":
                parts.append({"text": part["text"]})
        return parts

    def _build_payload(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        system_texts: List[str] = []
        contents: List[Dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                system_texts.append(msg.plain_text)
                continue
            role = "model" if msg.role in ("model", "assistant") else "user"
            contents.append({"role": role, "parts": self._format_parts(msg)})

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self._resolve_temperature(temperature),
                "maxOutputTokens": max_tokens or self.default_max_tokens,
            },
        }
        if system_texts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_texts)}]}
        return payload

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> Tuple[str, Optional[str]]:
        """Return the text of the first candidate and its finish reason."""
        candidates = data.get("candidates") or []
        if not candidates:
            return "", None
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if not p.get("thought"))
        return text, candidate.get("finishReason")

    @staticmethod
    def _usage(data: Dict[str, Any]) -> Dict[str, int]:
        meta = data.get("usageMetadata") or {}
        return {
            "prompt_tokens": meta.get("promptTokenCount", 0),
            "completion_tokens": meta.get("candidatesTokenCount", 0),
            "total_tokens": meta.get("totalTokenCount", 0),
        }

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send a generateContent request."""
        start_time = time.time()
        model = kwargs.get("model", self.model)
        url = f"{self.base_url}/models/{model}:generateContent"
        payload = self._build_payload(messages, temperature, max_tokens)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=gemini, model={model}, "
                f"{self._log_summary(messages)}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            content, finish_reason = self._extract_text(data)
            usage = self._usage(data)
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": data.get("modelVersion", model),
                    "finish_reason": finish_reason,
                    **usage,
                    "duration_ms": round(duration_ms, 2),
                }}
            )

            return LLMResponse(
                content=content,
                model=data.get("modelVersion", model),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """Stream text fragments from streamGenerateContent."""
        start_time = time.time()
        model = kwargs.get("model", self.model)
        url = f"{self.base_url}/models/{model}:streamGenerateContent"
        payload = self._build_payload(messages, temperature, max_tokens)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API stream starting: provider=gemini, model={model}, "
                f"{self._log_summary(messages)}"
            )

        content_length = 0
        usage_data: Dict[str, int] = {}
        finish_reason: Optional[str] = None

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    'POST', url, params={"alt": "sse"}, json=payload, headers=self._get_headers()
                ) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line or not line.startswith("data:"):
                            continue

                        try:
                            chunk = json.loads(line[5:].strip())
                        except json.JSONDecodeError:
                            logger.debug(f"Skipping malformed stream chunk: {line[:200]}")
                            continue

                        text, reason = self._extract_text(chunk)
                        block_reason = (chunk.get("promptFeedback") or {}).get("blockReason")
                        finish_reason = reason or block_reason or finish_reason
                        if chunk.get("usageMetadata"):
                            usage_data = self._usage(chunk)
                        if text:
                            content_length += len(text)
                            yield text

            # A blocked or truncated response must not pass as a complete turn
            if finish_reason is not None and finish_reason not in COMPLETE_FINISH_REASONS:
                raise StreamFailure(f"Gemini stream ended with finish reason {finish_reason}")

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "LLM API stream completed",
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model,
                    "finish_reason": finish_reason,
                    **usage_data,
                    "duration_ms": round(duration_ms, 2),
                    "content_length": content_length,
                }}
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API stream failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
