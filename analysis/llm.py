"""
Generative text client. Every prompt in the pipeline goes through a
TextGenerator; ClaudeGenerator is the production implementation.
"""

import logging
import os
import time
from typing import Optional, Protocol

import anthropic

from errors import ConfigurationError

logger = logging.getLogger(__name__)

MODEL = "claude-sonnet-4-6"
REQUEST_TIMEOUT = 300.0

# Retry up to 4 times: 4s, 8s, 16s, then give up
MAX_RETRIES = 4
BASE_DELAY = 4
MAX_DELAY = 120
_RETRYABLE_STATUS = {429, 500, 502, 503, 529}


class TextGenerator(Protocol):
    def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        ...


def _is_placeholder(key: Optional[str]) -> bool:
    return not key or not key.strip() or key.strip().lower().startswith("your_")


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, anthropic.APIConnectionError):
        return True
    if isinstance(exc, anthropic.APIStatusError):
        return exc.status_code in _RETRYABLE_STATUS
    return False


class ClaudeGenerator:
    """
    Lazily builds one Anthropic client and reuses it for every call.
    A missing or placeholder API key raises ConfigurationError on first use.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = MODEL,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        sleep=time.sleep,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("ANTHROPIC_API_KEY")
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._sleep = sleep
        self._client: Optional[anthropic.Anthropic] = None

    def check_credentials(self) -> None:
        if _is_placeholder(self.api_key):
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")

    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            self.check_credentials()
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def _create_with_retry(self, **kwargs):
        client = self.client()
        for attempt in range(self.max_retries):
            try:
                return client.messages.create(**kwargs)
            except Exception as exc:
                if not _is_retryable(exc) or attempt == self.max_retries - 1:
                    raise
                delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY)
                logger.warning(
                    "Claude API %s, retrying in %ds (attempt %d/%d)",
                    type(exc).__name__, delay, attempt + 1, self.max_retries,
                )
                self._sleep(delay)
        raise RuntimeError("retry loop exited without return or raise")

    def generate(self, prompt: str, *, temperature: float = 0.3, max_tokens: int = 2000) -> str:
        message = self._create_with_retry(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if getattr(message, "stop_reason", None) == "max_tokens":
            logger.warning("Claude hit max tokens (%d) — output may be truncated", max_tokens)
        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        ).strip()
