"""
LLM Provider Base - Abstract base for the generative-text collaborator.
Supports multimodal messages (text + images).
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Union, AsyncGenerator
from dataclasses import dataclass, field


@dataclass
class LLMMessage:
    """
    Represents a message in a conversation.

    Content is either plain text or a list of neutral content parts:
    {"type": "text", "text": ...} and
    {"type": "image", "media_type": ..., "data": <base64>}.
    Providers translate these into their own wire format.
    """
    role: str  # "system", "user", "model"
    content: Union[str, List[Dict[str, Any]]]

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def multimodal(role: str, text: str,
                   image_base64_list: Optional[List[Dict[str, str]]] = None) -> "LLMMessage":
        """
        Create a multimodal message with text and images.

        Args:
            role: Message role
            text: Text content
            image_base64_list: List of dicts with 'data' (base64 string) and 'media_type'
        """
        content_parts: List[Dict[str, Any]] = []

        # Images first, as the model sees them before the question
        for img in image_base64_list or []:
            content_parts.append({
                "type": "image",
                "media_type": img["media_type"],
                "data": img["data"],
            })

        if text:
            content_parts.append({"type": "text", "text": text})

        return LLMMessage(role=role, content=content_parts)

    @property
    def plain_text(self) -> str:
        """Text parts joined, without images."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p["text"] for p in self.content if p.get("type") == "text")


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement chat_completion and chat_completion_stream.
    """

    name: str = "base"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2048,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.timeout = timeout

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation, optionally starting with a system message
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with the generated content
        """
        pass

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """
        Stream chat completion text fragments.

        Args:
            messages: Conversation, optionally starting with a system message
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            **kwargs: Additional provider-specific parameters

        Yields:
            str: Text fragments in arrival order
        """
        pass

    def _resolve_temperature(self, temperature: Optional[float]) -> float:
        return temperature if temperature is not None else self.default_temperature

    @staticmethod
    def _log_summary(messages: List[LLMMessage]) -> str:
        summary = f"{len(messages)} messages"
        if messages:
            summary += f", last: {messages[-1].plain_text[:200]}"
        return summary
