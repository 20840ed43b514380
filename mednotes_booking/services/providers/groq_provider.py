"""Groq LLM provider implementation."""

import json
import logging
from typing import Any, AsyncIterator, Optional

from groq import AsyncGroq

from .base_provider import (
    BaseLLMProvider,
    ProviderError,
    ProviderType,
    StreamEvent,
    StreamFinish,
    TextDelta,
    ToolCall,
    ToolCallEvent,
)
from ..tool_converter import anthropic_to_groq, convert_messages_to_groq

logger = logging.getLogger(__name__)


class GroqProvider(BaseLLMProvider):
    """Groq LLM provider (OpenAI-compatible API)."""

    provider_type = ProviderType.GROQ

    def __init__(self, api_key: str, model: str = "llama-3.3-70b-versatile"):
        """
        Initialize Groq provider.

        Args:
            api_key: Groq API key
            model: Model name (default: llama-3.3-70b-versatile)
        """
        self.api_key = api_key
        self.model = model
        self.client = AsyncGroq(api_key=api_key, max_retries=0)

    async def stream_response(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str,
        tools: Optional[list[dict[str, Any]]] = None,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one step from Groq."""
        # Build request parameters
        params = {
            "model": self.model,
            "messages": convert_messages_to_groq(messages, system_prompt),
            "max_tokens": max_tokens,
            "temperature": 0.7,
            "stream": True,
        }

        # Add tools if provided
        if tools:
            params["tools"] = anthropic_to_groq(tools)
            params["tool_choice"] = "auto"

        try:
            stream = await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"Groq API error: {e}")
            raise ProviderError(ProviderType.GROQ, str(e)) from e

        # Tool-call fragments arrive spread over chunks, keyed by index
        pending: dict[int, dict[str, str]] = {}
        stop_reason = "end_turn"
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta and delta.content:
                    yield TextDelta(delta.content)

                for tc in (delta.tool_calls if delta else None) or []:
                    entry = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function:
                        entry["name"] += tc.function.name or ""
                        entry["arguments"] += tc.function.arguments or ""

                if choice.finish_reason == "length":
                    stop_reason = "max_tokens"
        except Exception as e:
            logger.error(f"Groq stream error: {e}")
            raise ProviderError(ProviderType.GROQ, str(e)) from e
        finally:
            await stream.close()

        for index in sorted(pending):
            entry = pending[index]
            try:
                args = json.loads(entry["arguments"] or "{}")
            except json.JSONDecodeError:
                args = {}
            yield ToolCallEvent(ToolCall(
                id=entry["id"] or f"call_{entry['name']}_{index}",
                name=entry["name"],
                arguments=args,
            ))

        if pending:
            stop_reason = "tool_use"
        yield StreamFinish(stop_reason)

    async def health_check(self) -> bool:
        """Check if Groq API is available."""
        try:
            # Simple test request
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=10,
            )
            return response is not None
        except Exception as e:
            logger.warning(f"Groq health check failed: {e}")
            return False
