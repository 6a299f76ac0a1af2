"""LLM gateway: one blocking chat-completion call that yields a JSON payload."""

import asyncio
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .config import LLMProvider, YouConfig
from .context import Message
from .logging import get_logger

logger = get_logger(__name__)


class LLMErrorKind(str, Enum):
    TRANSPORT_FAILURE = "transport-failure"
    EMPTY_RESPONSE = "empty-response"
    NO_JSON_FOUND = "no-json-found"


class LLMError(Exception):
    """The LLM call failed or returned nothing usable."""

    def __init__(self, kind: LLMErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class LLMResponse:
    """Represents a response from an LLM provider."""

    def __init__(
        self,
        content: Optional[str],
        model: Optional[str] = None,
        usage: Optional[Dict[str, Any]] = None,
    ):
        self.content = content
        self.model = model
        self.usage = usage

    def is_empty(self) -> bool:
        return not self.content or not self.content.strip()


def extract_json(text: str) -> Optional[str]:
    """Return the first well-formed JSON object embedded in ``text``."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != "{":
            continue
        try:
            value, end = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return text[index:end]
    return None


class LLMHandler:
    """Turns a context snapshot into one JSON reply from the model service.

    Providers are async; each request runs to completion on its own event
    loop, so callers see a plain blocking call and requests never overlap.
    """

    def __init__(self, config: YouConfig, provider=None):
        self.config = config
        self.provider = provider or self._get_provider()

    def _get_provider(self):
        """Get the appropriate LLM provider based on configuration."""
        from .providers import AnthropicProvider, OpenAIProvider

        if self.config.llm_provider == LLMProvider.OPENAI:
            return OpenAIProvider(self.config)
        elif self.config.llm_provider == LLMProvider.ANTHROPIC:
            return AnthropicProvider(self.config)
        else:
            raise ValueError(f"Unknown provider: {self.config.llm_provider}")

    async def complete(self, messages: Sequence[Message]) -> LLMResponse:
        """Send the messages and await the raw reply."""
        payload: List[Dict[str, str]] = [message.to_dict() for message in messages]
        timeout = self.config.llm_timeout or None

        logger.debug(
            "Requesting completion from %s with %d messages",
            self.provider.get_model_name(),
            len(payload),
        )
        try:
            return await asyncio.wait_for(
                self.provider.generate_response(payload), timeout
            )
        except asyncio.TimeoutError:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE,
                f"LLM request timed out after {timeout:g} seconds",
            ) from None

    def generate_text(self, messages: Sequence[Message]) -> str:
        """Blocking call returning the full reply text."""
        if not messages:
            raise ValueError("At least one message is required")

        response = asyncio.run(self.complete(messages))
        if response.is_empty():
            raise LLMError(
                LLMErrorKind.EMPTY_RESPONSE, "No response is retrieved from the LLM"
            )
        if response.usage:
            logger.debug("Token usage: %s", response.usage)
        return response.content

    def generate_json(self, messages: Sequence[Message]) -> str:
        """Blocking call returning the first JSON object in the reply."""
        content = self.generate_text(messages)
        extracted = extract_json(content)
        if extracted is None:
            logger.debug("No JSON object in reply: %r", content)
            raise LLMError(
                LLMErrorKind.NO_JSON_FOUND, "The LLM reply contains no JSON object"
            )
        return extracted
