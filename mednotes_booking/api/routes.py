"""
API routes for the booking chat backend.
Provides endpoints for:
- Health checks
- Streaming booking chat
- Booking chat history
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web
from pydantic import ValidationError

from ..agents.booking_agent import AllProvidersFailedError
from ..models.conversation import BookingChatRequest, to_display_dict
from ..services.stream_protocol import CHAT_ID_HEADER, UI_MESSAGE_STREAM_HEADERS

logger = logging.getLogger(__name__)


def create_app(supabase_service, booking_agent, llm_service=None) -> web.Application:
    """
    Create the aiohttp application with routes.

    Args:
        supabase_service: SupabaseService instance
        booking_agent: BookingAgent instance
        llm_service: Optional LLMService, reported by the health check

    Returns:
        Configured aiohttp Application
    """
    app = web.Application(middlewares=[cors_middleware])

    # Store services in app
    app["supabase"] = supabase_service
    app["booking_agent"] = booking_agent
    app["llm"] = llm_service

    # Add routes
    app.router.add_get("/health", health_check)
    app.router.add_post("/api/chat/booking", booking_chat)
    app.router.add_get("/api/chat/booking/history", get_booking_history)

    return app


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Handle CORS for frontend requests."""
    # Handle preflight
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            response = e

    # Streamed responses already sent their headers
    if response.prepared:
        return response

    origin = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Expose-Headers"] = CHAT_ID_HEADER
    response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


def _cors_headers(request: web.Request) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": request.headers.get("Origin", "*"),
        "Access-Control-Expose-Headers": CHAT_ID_HEADER,
        "Access-Control-Allow-Credentials": "true",
    }


async def _get_current_user_id(request: web.Request) -> Optional[str]:
    """Resolve the caller from the bearer token."""
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return await request.app["supabase"].get_user_id_from_token(token.strip())


class SafeStreamWriter:
    """
    Writes frames to a streamed response until the client goes away.

    After the first failed write every later write is a no-op returning False.
    """

    def __init__(self, response: web.StreamResponse):
        self.response = response
        self.closed = False

    async def write(self, frame: bytes) -> bool:
        if self.closed:
            return False
        try:
            await self.response.write(frame)
            return True
        except ConnectionError as e:
            logger.info(f"Client disconnected mid-stream: {e}")
            self.closed = True
            return False


async def health_check(request: web.Request) -> web.Response:
    """Health check endpoint."""
    body = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "mednotes-booking-agent",
    }
    llm = request.app["llm"]
    if llm is not None and request.query.get("providers"):
        body["providers"] = await llm.health_check()
    return web.json_response(body)


async def booking_chat(request: web.Request) -> web.StreamResponse:
    """
    Stream one booking chat turn.

    Request body:
    {
        "messages": [{"id": "...", "role": "user", "parts": [{"type": "text", "text": "..."}]}],
        "chatId": "optional-session-id"
    }
    """
    patient_id = await _get_current_user_id(request)
    if not patient_id:
        return web.json_response({"error": "Unauthorized"}, status=401)

    try:
        data = await request.json()
    except ValueError:
        return web.json_response({"error": "Messages are required"}, status=400)

    try:
        chat_request = BookingChatRequest.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected booking chat body: {e.error_count()} validation error(s)")
        return web.json_response({"error": _request_error(e)}, status=400)

    messages = chat_request.ui_messages()
    chat_id = chat_request.chat_id or str(uuid.uuid4())
    agent = request.app["booking_agent"]

    try:
        turn = await agent.start_turn(patient_id, chat_id, messages)
        stream = agent.stream_turn(turn)
        # Nothing is sent until a provider has produced output
        first_frame = await anext(stream)
    except AllProvidersFailedError as e:
        logger.error(f"Booking chat {chat_id} failed on every provider: {e}")
        return web.json_response({"error": "Internal server error"}, status=500)
    except Exception as e:
        logger.error(f"Booking chat {chat_id} failed: {e}", exc_info=True)
        return web.json_response({"error": "Internal server error"}, status=500)

    response = web.StreamResponse(
        status=200,
        headers={**UI_MESSAGE_STREAM_HEADERS, **_cors_headers(request), CHAT_ID_HEADER: chat_id},
    )
    await response.prepare(request)
    writer = SafeStreamWriter(response)

    try:
        if await writer.write(first_frame):
            async for frame in stream:
                if not await writer.write(frame):
                    break
    finally:
        # Closes the provider stream when the client left early
        await stream.aclose()
        await agent.finalize(turn)

    if not writer.closed:
        await response.write_eof()
    return response


def _request_error(error: ValidationError) -> str:
    """Client-facing message for a rejected chat body."""
    for err in error.errors():
        loc = err["loc"]
        if not loc or (loc == ("messages",) and err["type"] in ("missing", "too_short", "list_type")):
            return "Messages are required"
        if loc[0] == "chatId":
            return "Invalid chatId"
    return "Invalid messages"


async def get_booking_history(request: web.Request) -> web.Response:
    """
    Get the caller's booking chat messages.

    Query params:
    - chatId: Session id
    - appointmentId: Appointment the session produced
    """
    patient_id = await _get_current_user_id(request)
    if not patient_id:
        return web.json_response({"error": "Unauthorized"}, status=401)

    chat_id = request.query.get("chatId")
    appointment_id = request.query.get("appointmentId")
    if not chat_id and not appointment_id:
        return web.json_response({"error": "chatId or appointmentId required"}, status=400)

    db = request.app["supabase"]
    records = await db.get_chat_history(patient_id, chat_id=chat_id, appointment_id=appointment_id)
    return web.json_response({
        "chatId": chat_id,
        "appointmentId": appointment_id,
        "messages": [to_display_dict(r) for r in records],
    })
