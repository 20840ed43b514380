"""HTTP tests for the booking chat API."""

import json
import uuid
from unittest.mock import AsyncMock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from conftest import VALID_TOKEN, FakeStore, ScriptedProvider
from mednotes_booking.agents.booking_agent import BookingAgent
from mednotes_booking.api.routes import SafeStreamWriter, create_app
from mednotes_booking.services.llm_service import LLMService
from mednotes_booking.services.providers import ProviderError, ProviderType, StreamFinish, TextDelta

AUTH = {"Authorization": f"Bearer {VALID_TOKEN}"}
BODY = {"messages": [{"id": "m1", "role": "user", "parts": [{"type": "text", "text": "Hi"}]}]}


def build_app(store, booking_tools, primary_steps, fallback_steps=None):
    llm = LLMService(
        ScriptedProvider(ProviderType.GEMINI, primary_steps),
        ScriptedProvider(ProviderType.GROQ, fallback_steps or []),
    )
    agent = BookingAgent(store, llm, booking_tools)
    return create_app(supabase_service=store, booking_agent=agent, llm_service=llm)


def data_events(body: str) -> list[str]:
    return [line[len("data: "):] for line in body.split("\n") if line.startswith("data: ")]


@pytest.mark.asyncio
async def test_health(store, booking_tools):
    app = build_app(store, booking_tools, [])

    async with TestClient(TestServer(app)) as client:
        resp = await client.get("/health")
        assert resp.status == 200
        assert (await resp.json())["status"] == "healthy"


@pytest.mark.asyncio
async def test_missing_token_is_401(store, booking_tools):
    app = build_app(store, booking_tools, [])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json=BODY)
        assert resp.status == 401
        assert (await resp.json())["error"] == "Unauthorized"

        resp = await client.post("/api/chat/booking", json=BODY, headers={"Authorization": "Bearer wrong"})
        assert resp.status == 401

    assert store.chat_rows == []


@pytest.mark.asyncio
async def test_empty_messages_is_400(store, booking_tools):
    app = build_app(store, booking_tools, [])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json={"messages": []}, headers=AUTH)
        assert resp.status == 400
        assert (await resp.json())["error"] == "Messages are required"

        resp = await client.post("/api/chat/booking", data="not json", headers=AUTH)
        assert resp.status == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"messages": ["hello"]},
        {"messages": "hello"},
        {"messages": [{"role": "user", "parts": ["hello"]}]},
        {"messages": [{"role": "user", "parts": [{"type": "text", "text": 5}]}]},
        ["hello"],
    ],
)
async def test_malformed_messages_are_400(store, booking_tools, body):
    app = build_app(store, booking_tools, [[TextDelta("unused"), StreamFinish()]])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json=body, headers=AUTH)
        assert resp.status == 400
        assert "error" in await resp.json()

    assert store.chat_rows == []


@pytest.mark.asyncio
async def test_non_string_chat_id_is_400(store, booking_tools):
    app = build_app(store, booking_tools, [[TextDelta("unused"), StreamFinish()]])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json={**BODY, "chatId": 42}, headers=AUTH)
        assert resp.status == 400
        assert (await resp.json())["error"] == "Invalid chatId"
        assert "x-chat-id" not in resp.headers

    assert store.chat_rows == []


@pytest.mark.asyncio
async def test_streams_reply_with_chat_id_header(store, booking_tools):
    app = build_app(store, booking_tools, [[TextDelta("Hello "), TextDelta("Asha"), StreamFinish()]])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json={**BODY, "chatId": "chat-42"}, headers=AUTH)
        assert resp.status == 200
        assert resp.headers["x-chat-id"] == "chat-42"
        assert resp.headers["Content-Type"].startswith("text/event-stream")
        assert resp.headers["x-vercel-ai-ui-message-stream"] == "v1"
        body = await resp.text()

    events = data_events(body)
    assert events[-1] == "[DONE]"
    deltas = [json.loads(e)["delta"] for e in events[:-1] if json.loads(e)["type"] == "text-delta"]
    assert "".join(deltas) == "Hello Asha"
    assert {r["chat_id"] for r in store.chat_rows} == {"chat-42"}
    assert len(store.rows_with_role("assistant")) == 1


@pytest.mark.asyncio
async def test_new_session_gets_generated_chat_id(store, booking_tools):
    app = build_app(store, booking_tools, [[TextDelta("Hi"), StreamFinish()]])

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json=BODY, headers=AUTH)
        await resp.text()

    chat_id = resp.headers["x-chat-id"]
    assert str(uuid.UUID(chat_id)) == chat_id
    assert store.rows_with_role("user")[0]["chat_id"] == chat_id


@pytest.mark.asyncio
async def test_all_providers_failing_is_500(store, booking_tools):
    app = build_app(
        store, booking_tools,
        [[ProviderError(ProviderType.GEMINI, "quota")]],
        [[ProviderError(ProviderType.GROQ, "down")]],
    )

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json=BODY, headers=AUTH)
        assert resp.status == 500
        assert (await resp.json())["error"] == "Internal server error"


@pytest.mark.asyncio
async def test_history_is_scoped_to_caller(booking_tools):
    store = FakeStore()
    app = build_app(store, booking_tools, [[TextDelta("Hello"), StreamFinish()]])
    store.chat_rows.append({
        "id": "x", "chat_id": "chat-7", "patient_id": "someone-else", "role": "user", "message": "secret",
    })

    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/api/chat/booking", json={**BODY, "chatId": "chat-7"}, headers=AUTH)
        await resp.text()

        resp = await client.get("/api/chat/booking/history", params={"chatId": "chat-7"}, headers=AUTH)
        assert resp.status == 200
        messages = (await resp.json())["messages"]

        unauth = await client.get("/api/chat/booking/history", params={"chatId": "chat-7"})
        assert unauth.status == 401

    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert [m["text"] for m in messages] == ["Hi", "Hello"]


@pytest.mark.asyncio
async def test_safe_writer_drops_writes_after_disconnect():
    response = AsyncMock()
    response.write.side_effect = [None, ConnectionResetError("gone")]
    writer = SafeStreamWriter(response)

    assert await writer.write(b"a") is True
    assert await writer.write(b"b") is False
    assert await writer.write(b"c") is False
    assert writer.closed is True
    assert response.write.await_count == 2
