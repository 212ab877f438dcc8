"""LLM module - provides unified interface for the generative-text collaborator."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from .factory import create_llm_provider, provider_from_settings

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'GeminiProvider',
    'OpenAIProvider',
    'create_llm_provider',
    'provider_from_settings',
]
