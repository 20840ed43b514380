"""
UI message stream encoding.

Frames are server-sent events carrying one JSON object each, the format the
chat front-end's streaming transport reads:

    data: {"type":"text-delta","id":"txt-0","delta":"Hello"}

and the stream ends with `data: [DONE]`.
"""

import json
from typing import Any

UI_MESSAGE_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
    "x-accel-buffering": "no",
}

CHAT_ID_HEADER = "x-chat-id"


def encode_frame(payload: dict[str, Any]) -> bytes:
    """Encode one event as an SSE data line."""
    return f"data: {json.dumps(payload, separators=(',', ':'), default=str)}\n\n".encode("utf-8")


def start(message_id: str) -> bytes:
    return encode_frame({"type": "start", "messageId": message_id})


def start_step() -> bytes:
    return encode_frame({"type": "start-step"})


def finish_step() -> bytes:
    return encode_frame({"type": "finish-step"})


def text_start(part_id: str) -> bytes:
    return encode_frame({"type": "text-start", "id": part_id})


def text_delta(part_id: str, delta: str) -> bytes:
    return encode_frame({"type": "text-delta", "id": part_id, "delta": delta})


def text_end(part_id: str) -> bytes:
    return encode_frame({"type": "text-end", "id": part_id})


def tool_input_available(tool_call_id: str, tool_name: str, tool_input: dict[str, Any]) -> bytes:
    return encode_frame({
        "type": "tool-input-available",
        "toolCallId": tool_call_id,
        "toolName": tool_name,
        "input": tool_input,
    })


def tool_output_available(tool_call_id: str, output: dict[str, Any]) -> bytes:
    return encode_frame({
        "type": "tool-output-available",
        "toolCallId": tool_call_id,
        "output": output,
    })


def error(error_text: str) -> bytes:
    return encode_frame({"type": "error", "errorText": error_text})


def finish() -> bytes:
    return encode_frame({"type": "finish"})


def done() -> bytes:
    return b"data: [DONE]\n\n"
