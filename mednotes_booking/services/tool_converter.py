"""
Message and tool-schema converters.

Conversation history is kept in one standard (Anthropic-style) shape:

    {"role": "user", "content": "text"}
    {"role": "assistant", "content": [{"type": "text", ...}, {"type": "tool_use", ...}]}
    {"role": "user", "content": [{"type": "tool_result", "tool_use_id": ..., "name": ..., "content": "json"}]}

The browser sends UI messages, and each provider SDK wants its own format;
the functions below translate between them.
"""

import json
from typing import Any, Optional

EMPTY_PARAMETERS = {"type": "object", "properties": {}}


def _parameters(tool: dict[str, Any]) -> dict[str, Any]:
    return tool.get("input_schema") or EMPTY_PARAMETERS


def anthropic_to_gemini(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Tool definitions as Gemini function declarations (`parameters` instead of `input_schema`)."""
    return [
        {"name": tool["name"], "description": tool.get("description", ""), "parameters": _parameters(tool)}
        for tool in tools
    ]


def anthropic_to_groq(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Tool definitions in the OpenAI-compatible `{"type": "function", "function": ...}` wrapper Groq uses."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": _parameters(tool),
            },
        }
        for tool in tools
    ]


# ==================== UI messages ====================

def _tool_part_name(part: dict[str, Any]) -> str:
    if part.get("type") == "dynamic-tool":
        return part.get("toolName", "")
    return part.get("type", "")[len("tool-"):]


def convert_ui_messages(ui_messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Convert chat UI messages to the standard format.

    UI format (one message per turn, tool activity inlined as parts):
    [
        {"role": "user", "parts": [{"type": "text", "text": "..."}]},
        {"role": "assistant", "parts": [
            {"type": "text", "text": "..."},
            {"type": "tool-bookAppointment", "toolCallId": "...",
             "state": "output-available", "input": {...}, "output": {...}},
            {"type": "text", "text": "..."}
        ]}
    ]

    An assistant turn that used tools becomes an assistant message with
    tool_use blocks, a user message with the matching tool_result blocks, and
    another assistant message for any text that followed.
    """
    messages: list[dict[str, Any]] = []

    for msg in ui_messages:
        role = msg.get("role", "user")
        if role == "system":
            continue

        parts = msg.get("parts")
        if parts is None:
            content = msg.get("content", "")
            if content:
                messages.append({"role": role, "content": content})
            continue

        if role == "user":
            text = "".join(p.get("text", "") for p in parts if p.get("type") == "text")
            if text:
                messages.append({"role": "user", "content": text})
            continue

        blocks: list[dict[str, Any]] = []
        results: list[dict[str, Any]] = []
        for part in parts:
            part_type = part.get("type", "")
            if part_type == "text":
                if results:
                    messages.append({"role": "assistant", "content": blocks})
                    messages.append({"role": "user", "content": results})
                    blocks, results = [], []
                if part.get("text"):
                    blocks.append({"type": "text", "text": part["text"]})
            elif part_type.startswith("tool-") or part_type == "dynamic-tool":
                state = part.get("state")
                if state not in ("output-available", "output-error"):
                    continue
                name = _tool_part_name(part)
                output = part.get("output") if state == "output-available" else {"error": part.get("errorText", "")}
                blocks.append({
                    "type": "tool_use",
                    "id": part.get("toolCallId", ""),
                    "name": name,
                    "input": part.get("input") or {},
                })
                results.append({
                    "type": "tool_result",
                    "tool_use_id": part.get("toolCallId", ""),
                    "name": name,
                    "content": json.dumps(output),
                })

        if blocks:
            messages.append({"role": "assistant", "content": blocks})
        if results:
            messages.append({"role": "user", "content": results})

    return messages


def extract_last_user_text(ui_messages: list[dict[str, Any]]) -> str:
    """Text of the newest message, as typed by the patient."""
    if not ui_messages:
        return ""
    last = ui_messages[-1]
    parts = last.get("parts")
    if parts is None:
        content = last.get("content", "")
        return content if isinstance(content, str) else ""
    for part in parts:
        if part.get("type") == "text" and part.get("text"):
            return part["text"]
    return ""


# ==================== Provider formats ====================

def _blocks(content: Any) -> list[dict[str, Any]]:
    """Content as a list of typed blocks; plain strings become one text block."""
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if isinstance(content, list):
        return [b if isinstance(b, dict) else {"type": "text", "text": str(b)} for b in content]
    return [{"type": "text", "text": str(content)}]


def _result_text(block: dict[str, Any]) -> str:
    content = block.get("content", "")
    return content if isinstance(content, str) else json.dumps(content)


def _gemini_part(block: dict[str, Any]) -> Optional[dict[str, Any]]:
    block_type = block.get("type")
    if block_type == "text":
        return {"text": block.get("text", "")}
    if block_type == "tool_use":
        return {"functionCall": {"name": block.get("name", ""), "args": block.get("input", {})}}
    if block_type == "tool_result":
        # Gemini pairs responses with calls by function name
        name = block.get("name") or block.get("tool_use_id", "unknown")
        return {"functionResponse": {"name": name, "response": {"result": _result_text(block)}}}
    return None


def convert_messages_to_gemini(
    messages: list[dict[str, Any]],
    system_prompt: str,
) -> tuple[str, list[dict[str, Any]]]:
    """
    Convert standard messages to Gemini contents.

    Assistant turns use the "model" role; tool calls and results become
    functionCall and functionResponse parts.

    Returns:
        Tuple of (system_instruction, contents)
    """
    contents = []
    for msg in messages:
        parts = [p for p in map(_gemini_part, _blocks(msg.get("content", ""))) if p is not None]
        contents.append({
            "role": "model" if msg.get("role") == "assistant" else "user",
            "parts": parts or [{"text": ""}],
        })
    return system_prompt, contents


def convert_messages_to_groq(
    messages: list[dict[str, Any]],
    system_prompt: str,
) -> list[dict[str, Any]]:
    """
    Convert standard messages to Groq (OpenAI chat) messages.

    The system prompt leads; assistant tool_use blocks become `tool_calls` and
    each tool_result becomes its own `tool` message.
    """
    groq_messages: list[dict[str, Any]] = []
    if system_prompt:
        groq_messages.append({"role": "system", "content": system_prompt})

    for msg in messages:
        role = msg.get("role", "user")
        content = msg.get("content", "")
        if isinstance(content, str):
            groq_messages.append({"role": role, "content": content})
            continue

        blocks = _blocks(content)
        text = " ".join(b.get("text", "") for b in blocks if b.get("type") == "text")

        if role == "assistant":
            assistant: dict[str, Any] = {"role": "assistant", "content": text or None}
            tool_calls = [
                {
                    "id": b.get("id", ""),
                    "type": "function",
                    "function": {"name": b.get("name", ""), "arguments": json.dumps(b.get("input", {}))},
                }
                for b in blocks if b.get("type") == "tool_use"
            ]
            if tool_calls:
                assistant["tool_calls"] = tool_calls
            groq_messages.append(assistant)
            continue

        results = [b for b in blocks if b.get("type") == "tool_result"]
        for block in results:
            groq_messages.append({
                "role": "tool",
                "tool_call_id": block.get("tool_use_id", ""),
                "content": _result_text(block),
            })
        if text and not results:
            groq_messages.append({"role": "user", "content": text})

    return groq_messages
