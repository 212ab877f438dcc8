"""
Shared test fixtures and configuration.
"""

import asyncio
import os

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/lsp_insight_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")
os.environ["LLM_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""

from lsp_insight.agents.facilitator import FacilitatorAgent  # noqa: E402
from lsp_insight.llm.base import LLMProvider, LLMResponse  # noqa: E402
from lsp_insight.storage import LocalStorage, SessionStore  # noqa: E402


class ScriptedProvider(LLMProvider):
    """
    Collaborator double that replays one script per stream call.

    A script is a list of text fragments; an exception in the list is raised
    at that point and an asyncio.Event is waited on before continuing.
    """

    name = "scripted"

    def __init__(self, scripts):
        super().__init__(api_key="test-key", model="scripted-model")
        self.scripts = list(scripts)
        self.calls = []

    async def chat_completion(self, messages, temperature=None, max_tokens=None, **kwargs):
        self.calls.append(messages)
        return LLMResponse(content="".join(f for f in self.scripts.pop(0) if isinstance(f, str)))

    async def chat_completion_stream(self, messages, temperature=None, max_tokens=None, **kwargs):
        self.calls.append(messages)
        for item in self.scripts.pop(0):
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            yield item


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(tmp_path):
    return SessionStore(LocalStorage(str(tmp_path)), max_image_bytes=1024)


@pytest.fixture
def make_facilitator(store):
    def _make(scripts=None, **kwargs):
        provider = ScriptedProvider(scripts) if scripts is not None else None
        kwargs.setdefault("retry_attempts", 3)
        kwargs.setdefault("retry_min_wait", 0)
        kwargs.setdefault("retry_max_wait", 0)
        return FacilitatorAgent(store, llm_provider=provider, **kwargs)
    return _make
