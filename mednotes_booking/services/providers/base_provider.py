"""Base LLM provider abstract class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional, Union


class ProviderType(Enum):
    """Supported LLM provider types."""
    GEMINI = "gemini"
    GROQ = "groq"


class ProviderError(Exception):
    """A provider request failed or its stream broke."""

    def __init__(self, provider: ProviderType, message: str):
        super().__init__(f"{provider.value}: {message}")
        self.provider = provider


@dataclass
class ToolCall:
    """Represents a tool/function call from the LLM."""
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class TextDelta:
    """A fragment of streamed assistant text."""
    text: str


@dataclass
class ToolCallEvent:
    """A complete tool call emitted by the model."""
    tool_call: ToolCall


@dataclass
class StreamErrorEvent:
    """An error the provider reported inside an otherwise open stream."""
    message: str


@dataclass
class StreamFinish:
    """End of one model step."""
    stop_reason: str = "end_turn"


StreamEvent = Union[TextDelta, ToolCallEvent, StreamErrorEvent, StreamFinish]


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    provider_type: ProviderType
    model: str

    @abstractmethod
    def stream_response(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str,
        tools: Optional[list[dict[str, Any]]] = None,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream one model step.

        Implementations are async generators. Closing the generator must close
        the underlying network stream.

        Args:
            messages: Conversation history in standard format
            system_prompt: System instructions
            tools: Optional list of tools in Anthropic format
            max_tokens: Maximum tokens in response

        Yields:
            TextDelta and ToolCallEvent items, then a StreamFinish

        Raises:
            ProviderError: the request failed
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is available.

        Returns:
            True if provider is healthy, False otherwise
        """
        pass
