"""LLM Provider implementations."""

from .base_provider import (
    BaseLLMProvider,
    ProviderError,
    ProviderType,
    StreamErrorEvent,
    StreamEvent,
    StreamFinish,
    TextDelta,
    ToolCall,
    ToolCallEvent,
)
from .gemini_provider import GeminiProvider
from .groq_provider import GroqProvider

__all__ = [
    "BaseLLMProvider",
    "ProviderError",
    "ProviderType",
    "StreamErrorEvent",
    "StreamEvent",
    "StreamFinish",
    "TextDelta",
    "ToolCall",
    "ToolCallEvent",
    "GeminiProvider",
    "GroqProvider",
]
