"""Anthropic provider implementation for You CLI."""

from typing import Any, Dict, List

import anthropic
from anthropic import AsyncAnthropic

from ..config import YouConfig
from ..llm_handler import LLMError, LLMErrorKind, LLMResponse
from .base import LLMProvider


class AnthropicProvider(LLMProvider):
    """Anthropic provider implementation using Claude models."""

    max_tokens = 2000

    def __init__(self, config: YouConfig):
        super().__init__(config)
        self.api_key = config.api_key
        self.base_url = config.api_base

    def _client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self.api_key, base_url=self.base_url)

    async def generate_response(self, messages: List[Dict[str, str]]) -> LLMResponse:
        """Generate response using Anthropic API."""
        anthropic_messages = self._format_messages_for_provider(messages)

        request_params = {
            "model": self.model,
            "messages": anthropic_messages["messages"],
            "max_tokens": self.max_tokens,
        }
        if anthropic_messages["system"]:
            request_params["system"] = anthropic_messages["system"]

        try:
            async with self._client() as client:
                response = await client.messages.create(**request_params)
        except anthropic.AuthenticationError as e:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE,
                f"Authentication failed. Please check your API key: {e}",
            ) from e
        except anthropic.APIError as e:
            raise LLMError(
                LLMErrorKind.TRANSPORT_FAILURE, f"Anthropic API error: {e}"
            ) from e

        content = "".join(
            block.text for block in response.content if block.type == "text"
        )

        usage = (
            {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens
                + response.usage.output_tokens,
            }
            if response.usage
            else None
        )

        return LLMResponse(content=content, model=self.model, usage=usage)

    def _format_messages_for_provider(
        self, messages: List[Dict[str, str]]
    ) -> Dict[str, Any]:
        """Convert OpenAI format messages to Anthropic format.

        Only the leading system message becomes the system prompt; later
        system messages (command output, errors) are passed as user turns.
        """
        system_message = None
        anthropic_messages = []

        for index, message in enumerate(messages):
            role = message["role"]
            content = message["content"]

            if role == "system" and index == 0:
                system_message = content
            elif role == "system":
                anthropic_messages.append(
                    {"role": "user", "content": f"System note: {content}"}
                )
            elif role in ["user", "assistant"]:
                anthropic_messages.append({"role": role, "content": content})

        return {"system": system_message, "messages": anthropic_messages}
