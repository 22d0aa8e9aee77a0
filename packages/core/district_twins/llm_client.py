"""
LLM clients for persona authoring, policy summaries and persona chat.

Supports:
- Anthropic Messages API (Claude)
- Groq via its OpenAI-compatible endpoint
- Mock mode for testing
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import anthropic
import openai

from .exceptions import LLMGenerationError


logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a careful assistant helping legislative staff understand the "
    "people in a congressional district. Be concrete, neutral and realistic."
)
DEFAULT_ANTHROPIC_MODEL = "claude-3-haiku-20240307"
DEFAULT_GROQ_MODEL = "llama-3.1-8b-instant"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
RATE_LIMIT_STATUS = 429


def with_retry(max_retries: int = 3, backoff_factor: float = 2.0):
    """Decorator that adds retry logic with exponential backoff."""
    def decorator(func):
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except LLMGenerationError as e:
                    if not e.retryable or attempt == max_retries - 1:
                        raise
                    wait_time = backoff_factor ** attempt
                    logger.warning(
                        f"LLM call failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    time.sleep(wait_time)
            return None  # Should never reach here
        return wrapper
    return decorator


@dataclass
class GenerationConfig:
    """Configuration for text generation."""
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 0.9
    timeout: float = 60.0


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider = "base"

    @abstractmethod
    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Generate text from a single prompt."""
        pass


class AnthropicClient(LLMClient):
    """Client for the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None):
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("Anthropic API key required. Set ANTHROPIC_API_KEY env var.")

        self.model = model or DEFAULT_ANTHROPIC_MODEL
        self.client = anthropic.Anthropic(api_key=api_key)

    @with_retry(max_retries=3, backoff_factor=2.0)
    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        config = config or GenerationConfig()

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=config.max_tokens,
                temperature=config.temperature,
                system=system_prompt or DEFAULT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
                timeout=config.timeout,
            )
        except anthropic.RateLimitError as e:
            logger.warning(f"Anthropic rate limit hit: {e}")
            raise LLMGenerationError(
                f"Rate limit exceeded: {e}",
                provider=self.provider,
                retryable=True,
                status_code=RATE_LIMIT_STATUS,
            ) from e
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error: {e}")
            raise LLMGenerationError(
                f"Anthropic API error: {e}",
                provider=self.provider,
                retryable=False,
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            # Connection failures and timeouts
            logger.error(f"Anthropic request failed: {e}")
            raise LLMGenerationError(
                f"Anthropic request failed: {e}",
                provider=self.provider,
                retryable=False,
            ) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise LLMGenerationError("Empty content from Anthropic", provider=self.provider)
        return text.strip()


class GroqClient(LLMClient):
    """Client for Groq's OpenAI-compatible chat completions endpoint."""

    provider = "groq"

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        api_key = api_key or os.getenv("GROQ_API_KEY")
        if not api_key:
            raise ValueError("Groq API key required. Set GROQ_API_KEY env var.")

        self.model = model or os.getenv("GROQ_MODEL", DEFAULT_GROQ_MODEL)
        self.client = openai.OpenAI(api_key=api_key, base_url=base_url or GROQ_BASE_URL)

    @with_retry(max_retries=3, backoff_factor=2.0)
    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        config = config or GenerationConfig()

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                top_p=config.top_p,
                timeout=config.timeout,
            )
        except openai.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise LLMGenerationError(
                f"Rate limit exceeded: {e}",
                provider=self.provider,
                retryable=True,
                status_code=RATE_LIMIT_STATUS,
            ) from e
        except openai.APIStatusError as e:
            logger.error(f"Groq API error: {e}")
            raise LLMGenerationError(
                f"Groq API error: {e}",
                provider=self.provider,
                retryable=False,
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            logger.error(f"Groq request failed: {e}")
            raise LLMGenerationError(
                f"Groq request failed: {e}",
                provider=self.provider,
                retryable=False,
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMGenerationError("Empty content from Groq", provider=self.provider)
        return content.strip()


class MockLLMClient(LLMClient):
    """
    Mock client for testing without API calls.

    Returns ``response`` (empty by default) or, when ``responses`` is
    given, pops them in order. Every prompt is recorded in ``calls``.
    An empty reply makes the orchestrator fall back to local sampling.
    """

    provider = "mock"

    def __init__(self, response: str = "", responses: Optional[List[str]] = None, delay: float = 0.0):
        self.response = response
        self.responses = list(responses) if responses else []
        self.delay = delay
        self.calls: List[dict] = []
        self._warned = False

    def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        if not self._warned and not self.response and not self.responses:
            logger.warning(
                "MOCK MODE ACTIVE: LLM is not configured. "
                "Personas will come from the local sampler."
            )
            self._warned = True
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "config": config})
        if self.delay > 0:
            time.sleep(self.delay)
        if self.responses:
            return self.responses.pop(0)
        return self.response


def create_llm_client(provider: str = "mock", **kwargs) -> LLMClient:
    """
    Factory function to create appropriate LLM client.

    Args:
        provider: One of "anthropic", "groq", "mock"
        **kwargs: Provider-specific arguments

    Returns:
        LLMClient instance

    Examples:
        # Claude via Anthropic
        client = create_llm_client("anthropic", model="claude-3-haiku-20240307")

        # Llama via Groq
        client = create_llm_client("groq", model="llama-3.1-8b-instant")
    """
    if provider == "anthropic":
        return AnthropicClient(**kwargs)
    elif provider == "groq":
        return GroqClient(**kwargs)
    elif provider == "mock":
        return MockLLMClient(**kwargs)
    else:
        raise ValueError(f"Unknown provider: {provider}")


def create_client_from_settings(settings) -> LLMClient:
    """Build the configured client; falls back to mock when the key is missing."""
    if settings.llm_provider == "mock":
        return MockLLMClient()
    api_key = settings.llm_api_key()
    if not api_key:
        logger.warning(
            f"No API key configured for provider '{settings.llm_provider}'; using mock client"
        )
        return MockLLMClient()
    return create_llm_client(settings.llm_provider, model=settings.llm_model, api_key=api_key)
