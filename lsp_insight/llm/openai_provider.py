"""
OpenAI-compatible LLM Provider.
Works with any endpoint that speaks the chat/completions format
(OpenAI, Azure-style gateways, local servers).
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator

from .base import LLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Provider for the OpenAI chat/completions API and compatible servers."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to chat/completions format."""
        formatted = []
        for msg in messages:
            role = "assistant" if msg.role == "model" else msg.role
            if isinstance(msg.content, str):
                formatted.append({"role": role, "content": msg.content})
                continue
            parts = []
            for part in msg.content:
                if part.get("type") == "image":
                    parts.append({
                        "type": "image_url",
                        "image_url": {"url": f"data:{part['media_type']};base64,{part['data']}"},
                    })
                elif part.get("type") == "text":
                    parts.append({"type": "text", "text": part["text"]})
            formatted.append({"role": role, "content": parts})
        return formatted

    def _build_payload(self, messages, temperature, max_tokens, model, stream=False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._format_messages(messages),
            "temperature": self._resolve_temperature(temperature),
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, temperature, max_tokens, kwargs.get("model", self.model))

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=openai, model={payload['model']}, "
                f"temperature={payload['temperature']}, {self._log_summary(messages)}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            choice = data["choices"][0]
            usage = data.get("usage", {})
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "openai",
                    "model": data.get("model", self.model),
                    "prompt_tokens": usage.get("prompt_tokens", 0),
                    "completion_tokens": usage.get("completion_tokens", 0),
                    "total_tokens": usage.get("total_tokens", 0),
                    "duration_ms": round(duration_ms, 2),
                }}
            )

            return LLMResponse(
                content=choice["message"]["content"] or "",
                model=data.get("model", self.model),
                usage=usage,
                raw=data,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "openai",
                    "model": payload.get("model"),
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
        """Stream content deltas from the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(
            messages, temperature, max_tokens, kwargs.get("model", self.model), stream=True
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API stream starting: provider=openai, model={payload['model']}, "
                f"temperature={payload['temperature']}, {self._log_summary(messages)}"
            )

        content_length = 0
        usage_data = {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream('POST', url, json=payload, headers=self._get_headers()) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        # SSE format: "data: {json}" or "data: [DONE]"
                        if not line or not line.startswith("data: "):
                            continue

                        data_str = line[6:].strip()
                        if data_str == "[DONE]":
                            break

                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue

                        if chunk.get("choices"):
                            content = chunk["choices"][0].get("delta", {}).get("content")
                            if content:
                                content_length += len(content)
                                yield content

                        if chunk.get("usage"):
                            usage_data = chunk["usage"]

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "LLM API stream completed",
                extra={"extra_fields": {
                    "provider": "openai",
                    "model": payload.get("model", self.model),
                    "prompt_tokens": usage_data.get("prompt_tokens", 0),
                    "completion_tokens": usage_data.get("completion_tokens", 0),
                    "total_tokens": usage_data.get("total_tokens", 0),
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
                    "provider": "openai",
                    "model": payload.get("model"),
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
