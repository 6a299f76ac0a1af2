"""Common interface of the chat-completion transports."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..config import YouConfig
from ..llm_handler import LLMResponse


class LLMProvider(ABC):
    """One chat-completion API flavour behind the LLM gateway."""

    def __init__(self, config: YouConfig):
        self.config = config
        self.model = config.model

    @abstractmethod
    async def generate_response(self, messages: List[Dict[str, str]]) -> LLMResponse:
        """Send the conversation and return the model's reply.

        Args:
            messages: Conversation as ``{"role", "content"}`` dicts, oldest first

        Returns:
            LLMResponse whose content may be empty

        Raises:
            LLMError: on any transport or API failure
        """

    def get_model_name(self) -> str:
        return self.model

    def _format_messages_for_provider(self, messages: List[Dict[str, str]]) -> Any:
        """Convert the conversation to the provider's wire shape."""
        return messages
