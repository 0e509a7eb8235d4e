"""LLM provider adapters built on litellm.

Every provider exposes the same contract: ``generate(prompt)`` issues a
streamed, JSON-mode chat completion and returns an iterator over the text
fragments of the reply.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator

import httpx
from litellm import completion
from openai import OpenAIError

from mcp_testgen.config import Settings
from mcp_testgen.errors import ProviderError, UnsupportedProviderError

JSON_MODE = {"type": "json_object"}


class LlmProvider(ABC):
    """A language-model backend that streams text fragments for a prompt."""

    name: str

    @abstractmethod
    def generate(self, prompt: str) -> Iterator[str]:
        """Send the prompt and return a finite, non-restartable fragment iterator.

        Transport and auth failures raise ProviderError, either from this call
        (request could not be opened) or while iterating (stream broke).
        """


class LiteLLMProvider(LlmProvider):
    """Shared streaming logic for providers reached through litellm."""

    def __init__(self, name: str, model: str, api_key: str | None = None, api_base: str | None = None):
        self.name = name
        self.model = model
        self.api_key = api_key or None
        self.api_base = api_base or None

    def _route(self) -> str:
        """The litellm model string this provider sends requests to."""
        return self.model

    def generate(self, prompt: str) -> Iterator[str]:
        kwargs = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            stream = completion(
                model=self._route(),
                messages=[{"role": "user", "content": prompt}],
                response_format=JSON_MODE,
                stream=True,
                **kwargs,
            )
        except (OpenAIError, httpx.HTTPError) as e:
            raise ProviderError(f"{self.name}: {e}") from e

        return self._fragments(stream)

    def _fragments(self, stream) -> Iterator[str]:
        try:
            for chunk in stream:
                text = _delta_text(chunk)
                if text:
                    yield text
        except (OpenAIError, httpx.HTTPError) as e:
            raise ProviderError(f"{self.name}: {e}") from e


class OpenAICompatibleProvider(LiteLLMProvider):
    """Any backend speaking the OpenAI chat completions protocol (OpenAI, Groq)."""

    def _route(self) -> str:
        return f"openai/{self.model}"


class GeminiProvider(LiteLLMProvider):
    """Google Gemini, through litellm's native Gemini route."""

    def __init__(self, model: str, api_key: str | None = None):
        super().__init__("gemini", model, api_key=api_key)

    def _route(self) -> str:
        return f"gemini/{self.model}"


def build_provider(settings: Settings) -> LlmProvider:
    """Create the provider named by ``settings.AI_PROVIDER``."""
    name = settings.AI_PROVIDER.lower()
    if name == "openai":
        return OpenAICompatibleProvider(
            "openai",
            settings.OPENAI_MODEL,
            api_key=settings.OPENAI_API_KEY,
            api_base=settings.OPENAI_BASE_URL,
        )
    if name == "groq":
        return OpenAICompatibleProvider(
            "groq",
            settings.GROQ_MODEL,
            api_key=settings.GROQ_API_KEY,
            api_base=settings.GROQ_BASE_URL,
        )
    if name == "gemini":
        return GeminiProvider(settings.GEMINI_MODEL, api_key=settings.GEMINI_API_KEY)
    raise UnsupportedProviderError(f"Unsupported AI provider: {settings.AI_PROVIDER}")


def _delta_text(chunk) -> str:
    """Text carried by one streamed chunk, or '' when it has none."""
    choices = getattr(chunk, "choices", None)
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None) or ""
