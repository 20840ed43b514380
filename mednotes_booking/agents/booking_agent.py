"""
Booking chat agent.
Runs the tool-calling conversation against the primary model, switches to the
fallback model on failure, relays everything as one UI message stream and
persists the turn.
"""

import json
import logging
import re
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from ..models import AssistantChatMessage, UserChatMessage
from ..services import stream_protocol
from ..services.llm_service import LLMService, get_system_prompt
from ..services.providers import (
    BaseLLMProvider,
    ProviderError,
    ProviderType,
    StreamErrorEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
)
from ..services.supabase_service import StoreError, SupabaseService
from ..services.tool_converter import convert_ui_messages, extract_last_user_text
from ..tools import BookingContext, BookingTools

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MARKERS = [
    r'"type"\s*:\s*"error"',
    r'"error"\s*:',
    r"RESOURCE_EXHAUSTED",
    r"\bquota\b",
    r"\b429\b",
    r"rate[ _-]?limit",
    r"AI_APICallError",
]


class AllProvidersFailedError(Exception):
    """Neither model produced any output for the turn."""


class StreamErrorDetector:
    """
    Spots provider failures that arrive as ordinary streamed text.

    Some providers report quota and rate-limit errors inside a stream that
    otherwise looks successful. A short tail of earlier text is kept so a
    marker split across two chunks is still found.
    """

    def __init__(self, markers: list[str], tail_size: int = 64):
        self._patterns = [re.compile(marker, re.IGNORECASE) for marker in markers]
        self._tail = ""
        self._tail_size = tail_size

    def scan(self, text: str) -> Optional[str]:
        """Return the matched marker text, or None."""
        window = self._tail + text
        self._tail = window[-self._tail_size:]
        for pattern in self._patterns:
            match = pattern.search(window)
            if match:
                return match.group(0)
        return None


@dataclass
class BookingTurn:
    """State of one request: what goes in, and what the models produced."""
    context: BookingContext
    messages: list[dict[str, Any]]
    system_prompt: str
    message_id: str = field(default_factory=lambda: f"msg-{uuid.uuid4().hex}")
    text_parts: list[str] = field(default_factory=list)
    tool_exchanges: list[dict[str, Any]] = field(default_factory=list)
    appointment_id: Optional[str] = None
    provider: Optional[ProviderType] = None
    finalized: bool = False

    @property
    def response_text(self) -> str:
        return "".join(self.text_parts)


class BookingAgent:
    """
    Orchestrates one booking chat turn:
    - persists the patient message
    - streams the primary model with the booking tools
    - falls back to the secondary model on any failure
    - persists exactly one assistant message
    """

    def __init__(
        self,
        supabase_service: SupabaseService,
        llm_service: LLMService,
        booking_tools: BookingTools,
        max_steps: int = 10,
        max_tokens: int = 1024,
        doctor_prompt_limit: int = 5,
        error_markers: Optional[list[str]] = None,
    ):
        """
        Initialize the booking agent.

        Args:
            supabase_service: Database service
            llm_service: Primary and fallback providers
            booking_tools: Tool implementations
            max_steps: Upper bound on model steps per turn
            max_tokens: Output token limit per step
            doctor_prompt_limit: Doctors listed in the system prompt
            error_markers: Regexes that flag an error inside the primary stream
        """
        self.db = supabase_service
        self.llm = llm_service
        self.tools = booking_tools
        self.max_steps = max_steps
        self.max_tokens = max_tokens
        self.doctor_prompt_limit = doctor_prompt_limit
        self.error_markers = error_markers if error_markers is not None else DEFAULT_ERROR_MARKERS

    async def start_turn(
        self,
        patient_id: str,
        chat_id: str,
        ui_messages: list[dict[str, Any]],
    ) -> BookingTurn:
        """Save the patient's message and build the prompt for this turn."""
        user_text = extract_last_user_text(ui_messages)
        await self.db.save_chat_message(UserChatMessage(
            chat_id=chat_id,
            patient_id=patient_id,
            message=user_text,
        ))

        profile = await self.db.get_patient_profile(patient_id)
        try:
            doctors = await self.db.list_doctors(limit=self.doctor_prompt_limit)
        except StoreError:
            doctors = []

        return BookingTurn(
            context=BookingContext(patient_id=patient_id, chat_id=chat_id),
            messages=convert_ui_messages(ui_messages),
            system_prompt=get_system_prompt(
                patient_name=profile.first_name if profile else None,
                doctors=doctors,
            ),
        )

    async def stream_turn(self, turn: BookingTurn) -> AsyncIterator[bytes]:
        """
        Relay the turn as UI message stream frames.

        The first frame is only yielded once a provider has produced output, so
        a caller can still answer with an error status when every provider
        fails up front.

        Raises:
            AllProvidersFailedError: no provider produced any output
        """
        started = False
        last_error: Optional[Exception] = None

        for index, provider in enumerate(self.llm.providers):
            detector = StreamErrorDetector(self.error_markers) if index == 0 else None
            produced = False
            try:
                async with aclosing(self._run_provider(provider, turn, detector)) as frames:
                    async for frame in frames:
                        if not started:
                            started = True
                            yield stream_protocol.start(turn.message_id)
                        produced = True
                        yield frame
                if not produced:
                    raise ProviderError(provider.provider_type, "stream ended before any output")
                turn.provider = provider.provider_type
                break
            except Exception as e:
                last_error = e
                logger.warning(f"{provider.provider_type.value} failed for chat {turn.context.chat_id}: {e}")
        else:
            if not started:
                raise AllProvidersFailedError(str(last_error))
            yield stream_protocol.error("The assistant is temporarily unavailable. Please try again.")

        await self.finalize(turn)
        yield stream_protocol.finish()
        yield stream_protocol.done()

    async def _run_provider(
        self,
        provider: BaseLLMProvider,
        turn: BookingTurn,
        detector: Optional[StreamErrorDetector],
    ) -> AsyncIterator[bytes]:
        """Tool loop against one provider."""
        # Tool exchanges finished by an earlier provider are replayed, never redone
        messages = turn.messages + turn.tool_exchanges

        for step in range(self.max_steps):
            text_id = f"txt-{uuid.uuid4().hex[:12]}"
            step_open = False
            text_open = False
            step_text: list[str] = []
            tool_calls: list[ToolCall] = []

            try:
                async with aclosing(provider.stream_response(
                    messages, turn.system_prompt, self.llm.get_tools(), self.max_tokens
                )) as events:
                    async for event in events:
                        if isinstance(event, StreamErrorEvent):
                            raise ProviderError(provider.provider_type, event.message)

                        if isinstance(event, TextDelta):
                            if detector:
                                marker = detector.scan(event.text)
                                if marker:
                                    raise ProviderError(
                                        provider.provider_type, f"error marker {marker!r} in stream"
                                    )
                            if not step_open:
                                step_open = True
                                yield stream_protocol.start_step()
                            if not text_open:
                                text_open = True
                                yield stream_protocol.text_start(text_id)
                            step_text.append(event.text)
                            turn.text_parts.append(event.text)
                            yield stream_protocol.text_delta(text_id, event.text)

                        elif isinstance(event, ToolCallEvent):
                            tool_calls.append(event.tool_call)
            except Exception:
                if text_open:
                    yield stream_protocol.text_end(text_id)
                if step_open:
                    yield stream_protocol.finish_step()
                raise

            if text_open:
                yield stream_protocol.text_end(text_id)

            if not tool_calls:
                if step_open:
                    yield stream_protocol.finish_step()
                return

            if not step_open:
                yield stream_protocol.start_step()

            assistant_blocks: list[dict[str, Any]] = []
            if step_text:
                assistant_blocks.append({"type": "text", "text": "".join(step_text)})
            result_blocks: list[dict[str, Any]] = []

            for call in tool_calls:
                yield stream_protocol.tool_input_available(call.id, call.name, call.arguments)
                result = await self.tools.execute_tool(call.name, call.arguments, turn.context)
                logger.info(
                    f"Tool {call.name} on {provider.provider_type.value} step {step}: "
                    f"success={result.success} code={result.error_code}"
                )
                if result.appointment_id:
                    turn.appointment_id = result.appointment_id
                yield stream_protocol.tool_output_available(call.id, result.output)

                assistant_blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": call.arguments,
                })
                result_blocks.append({
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "name": call.name,
                    "content": json.dumps(result.output),
                })

            exchange = [
                {"role": "assistant", "content": assistant_blocks},
                {"role": "user", "content": result_blocks},
            ]
            turn.tool_exchanges.extend(exchange)
            messages = messages + exchange
            yield stream_protocol.finish_step()

        logger.warning(f"Chat {turn.context.chat_id} hit the {self.max_steps}-step limit")

    async def finalize(self, turn: BookingTurn) -> bool:
        """
        Persist the assistant message for the turn, once.

        Returns:
            True if this call wrote the row, False if the turn was already finalized
        """
        if turn.finalized:
            logger.debug(f"Turn {turn.message_id} already finalized, skipping")
            return False
        turn.finalized = True

        await self.db.save_chat_message(AssistantChatMessage(
            chat_id=turn.context.chat_id,
            patient_id=turn.context.patient_id,
            response=turn.response_text,
            appointment_id=turn.appointment_id,
        ))
        provider = turn.provider.value if turn.provider else "none"
        logger.info(
            f"Saved assistant message for chat {turn.context.chat_id} "
            f"(provider={provider}, appointment={turn.appointment_id})"
        )
        return True
