"""
Main entry point for the MedNotes booking agent.
Builds the services and starts the HTTP API server.
"""

import logging

from aiohttp import web
from dotenv import load_dotenv

from config.settings import Settings, get_settings
from .agents.booking_agent import BookingAgent
from .api.routes import create_app
from .services.llm_service import LLMService
from .services.supabase_service import SupabaseService
from .tools.appointment_tools import BookingTools

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def build_app(settings: Settings) -> web.Application:
    """Initialize services and create the aiohttp app."""
    supabase = await SupabaseService.connect(
        url=settings.supabase_url,
        key=settings.supabase_service_role_key,
    )

    llm = LLMService.from_keys(
        gemini_api_key=settings.gemini_api_key,
        groq_api_key=settings.groq_api_key,
        gemini_model=settings.gemini_model,
        groq_model=settings.groq_model,
    )

    tools = BookingTools(
        supabase_service=supabase,
        timezone=settings.clinic_timezone,
        slot_duration_minutes=settings.slot_duration_minutes,
    )

    agent = BookingAgent(
        supabase_service=supabase,
        llm_service=llm,
        booking_tools=tools,
        max_steps=settings.max_tool_steps,
        max_tokens=settings.max_output_tokens,
        doctor_prompt_limit=settings.doctor_prompt_limit,
        error_markers=settings.stream_error_markers,
    )

    logger.info(f"Booking agent initialized ({settings.environment})")
    return create_app(supabase_service=supabase, booking_agent=agent, llm_service=llm)


def main():
    """Main entry point."""
    # override=True ensures .env values take precedence
    load_dotenv(override=True)
    settings = get_settings()

    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("Starting API server")
    web.run_app(build_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
