"""OpenAI-compatible provider implementation for You CLI."""

from typing import Dict, List

import openai
from openai import AsyncOpenAI

from ..config import YouConfig
from ..llm_handler import LLMError, LLMErrorKind, LLMResponse
from .base import LLMProvider


class OpenAIProvider(LLMProvider):
    """Provider for any endpoint speaking the OpenAI chat-completion API."""

    def __init__(self, config: YouConfig):
        super().__init__(config)
        self.api_key = config.api_key
        self.base_url = config.api_base

    def _client(self) -> AsyncOpenAI:
        # One client per request: each call runs on a fresh event loop.
        return AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    async def generate_response(self, messages: List[Dict[str, str]]) -> LLMResponse:
        """Generate response using the chat-completion API."""
        try:
            async with self._client() as client:
                response = await client.chat.completions.create(
                    model=self.model,
                    messages=self._format_messages_for_provider(messages),
                )
        except openai.AuthenticationError as e:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE,
                f"Authentication failed. Please check your API key: {e}",
            ) from e
        except openai.RateLimitError as e:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE,
                f"Rate limit exceeded. Please try again in a moment: {e}",
            ) from e
        except openai.APIError as e:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE, f"Failed to execute function: {e}"
            ) from e

        if not response.choices:
            return LLMResponse(content=None, model=self.model)

        usage = (
            {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
            if response.usage
            else None
        )

        return LLMResponse(
            content=response.choices[0].message.content, model=self.model, usage=usage
        )
