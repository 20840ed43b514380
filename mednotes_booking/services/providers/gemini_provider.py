"""Google Gemini LLM provider implementation."""

import logging
from typing import Any, AsyncIterator, Optional

from google import genai
from google.genai import types

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
from ..tool_converter import anthropic_to_gemini, convert_messages_to_gemini

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    """Google Gemini LLM provider."""

    provider_type = ProviderType.GEMINI

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash"):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google AI API key
            model: Model name (default: gemini-2.5-flash)
        """
        self.api_key = api_key
        self.model = model
        self.client = genai.Client(api_key=api_key)

    def _build_config(
        self,
        system_instruction: str,
        tools: Optional[list[dict[str, Any]]],
        max_tokens: int,
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            max_output_tokens=max_tokens,
            temperature=0.7,
        )

        if tools:
            gemini_tools = anthropic_to_gemini(tools)
            config.tools = [types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=t["name"],
                    description=t["description"],
                    parameters=t.get("parameters"),
                )
                for t in gemini_tools
            ])]
            # Allow both text and function calls
            config.tool_config = types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(
                    mode="AUTO"
                )
            )
        return config

    async def stream_response(
        self,
        messages: list[dict[str, Any]],
        system_prompt: str,
        tools: Optional[list[dict[str, Any]]] = None,
        max_tokens: int = 1024,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one step from Gemini."""
        system_instruction, gemini_messages = convert_messages_to_gemini(
            messages, system_prompt
        )
        config = self._build_config(system_instruction, tools, max_tokens)

        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.model,
                contents=gemini_messages,
                config=config,
            )
        except Exception as e:
            logger.error(f"Gemini API error: {e}")
            raise ProviderError(ProviderType.GEMINI, str(e)) from e

        stop_reason = "end_turn"
        call_count = 0
        try:
            async for chunk in stream:
                feedback = getattr(chunk, "prompt_feedback", None)
                if feedback and feedback.block_reason:
                    yield StreamErrorEvent(f"Prompt blocked: {feedback.block_reason}")
                    return

                if not chunk.candidates:
                    continue
                candidate = chunk.candidates[0]

                if candidate.content and candidate.content.parts:
                    for part in candidate.content.parts:
                        if part.text and not part.thought:
                            yield TextDelta(part.text)

                        if part.function_call:
                            fc = part.function_call
                            yield ToolCallEvent(ToolCall(
                                id=fc.id or f"call_{fc.name}_{call_count}",
                                name=fc.name,
                                arguments=dict(fc.args or {}),
                            ))
                            call_count += 1

                if candidate.finish_reason:
                    stop_reason = self._map_finish_reason(str(candidate.finish_reason))
        except Exception as e:
            logger.error(f"Gemini stream error: {e}")
            raise ProviderError(ProviderType.GEMINI, str(e)) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose:
                await aclose()

        if call_count:
            stop_reason = "tool_use"
        yield StreamFinish(stop_reason)

    @staticmethod
    def _map_finish_reason(finish_reason: str) -> str:
        if "MAX_TOKENS" in finish_reason:
            return "max_tokens"
        if "SAFETY" in finish_reason:
            return "safety"
        return "end_turn"

    async def health_check(self) -> bool:
        """Check if Gemini API is available."""
        try:
            # Simple test request
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[{"role": "user", "parts": [{"text": "Hi"}]}],
                config=types.GenerateContentConfig(max_output_tokens=10),
            )
            return response is not None
        except Exception as e:
            logger.warning(f"Gemini health check failed: {e}")
            return False
