"""LLM Service with Gemini (primary) and Groq (fallback) support."""

import logging
from typing import Optional

from .providers import BaseLLMProvider, GeminiProvider, GroqProvider
from ..models import Doctor

logger = logging.getLogger(__name__)


# Tool definitions for appointment booking
BOOKING_TOOLS = [
    {
        "name": "checkAvailability",
        "description": "Check if a doctor is available at a specific date and time. Use this to verify availability before booking. Accepts dates and times in any format.",
        "input_schema": {
            "type": "object",
            "properties": {
                "doctorName": {
                    "type": "string",
                    "description": "The full name of the doctor (e.g., \"John Smith\", \"Dr. John Smith\", or just \"John\")"
                },
                "appointmentDate": {
                    "type": "string",
                    "description": "The appointment date in any format (e.g., \"2024-12-25\", \"tomorrow\", \"25/12/2024\")"
                },
                "appointmentTime": {
                    "type": "string",
                    "description": "The appointment time in any format (e.g., \"2pm\", \"14:30\", \"2:00 PM\")"
                }
            },
            "required": ["doctorName", "appointmentDate", "appointmentTime"]
        }
    },
    {
        "name": "bookAppointment",
        "description": "REQUIRED: Use this tool to actually book an appointment. This is the ONLY way to create an appointment - you MUST call this tool when the patient provides doctor name, date, and time. Do NOT just say you are booking - you must call this tool. The tool checks availability before booking. Accepts dates and times in any format.",
        "input_schema": {
            "type": "object",
            "properties": {
                "doctorName": {
                    "type": "string",
                    "description": "The full name of the doctor (e.g., \"John Smith\", \"Dr. John Smith\", or just \"John\")"
                },
                "appointmentDate": {
                    "type": "string",
                    "description": "The appointment date in any format (e.g., \"2024-12-25\", \"tomorrow\", \"15 december 2025\")"
                },
                "appointmentTime": {
                    "type": "string",
                    "description": "The appointment time in any format (e.g., \"2pm\", \"14:30\", \"2:00 PM\", \"12 pm\")"
                },
                "notes": {
                    "type": "string",
                    "description": "Any additional notes or reason for the appointment"
                }
            },
            "required": ["doctorName", "appointmentDate", "appointmentTime"]
        }
    },
]


def get_system_prompt(
    patient_name: Optional[str] = None,
    doctors: Optional[list[Doctor]] = None,
) -> str:
    """Generate the system prompt for the booking conversation."""

    doctors_list = "\n".join(d.to_prompt_line() for d in doctors or []) or "No doctors available"

    return f"""You are a friendly and helpful AI assistant helping {patient_name or "the patient"} book a medical appointment.

Available doctors:
{doctors_list}

## Initial Conversation
- Start by asking how the patient is feeling and what symptoms or problem they are experiencing.
- Keep questions short, empathetic, and patient-friendly.
- Do NOT diagnose. Only collect information.

## Tool Usage
- Use checkAvailability to verify a doctor's slot when the patient is unsure about a time
- Use bookAppointment as soon as you have the doctor name, the date and the time

## Important Rules
- Text responses do NOT create appointments. Only the bookAppointment tool does.
- NEVER say "I'll book that for you", "Let me book your appointment" or "Your appointment has been booked" unless bookAppointment already returned success=true
- After bookAppointment succeeds, confirm with the exact details from the tool's message
- If it fails, explain the error and help resolve it: ask again for an invalid date, offer the listed doctors when a name is not found, suggest another time when the slot is taken
- Accept any date and time format ("15 december 2025, 12 pm", "tomorrow at 2pm", "2025-12-15 at 14:00", "next Monday 3:00 PM"); the tools handle parsing"""


class LLMService:
    """LLM Service with Gemini (primary) and Groq (fallback)."""

    def __init__(self, primary: BaseLLMProvider, fallback: BaseLLMProvider):
        """
        Initialize LLM service with both providers.

        Args:
            primary: Provider tried first on every turn
            fallback: Provider used when the primary fails
        """
        self.primary = primary
        self.fallback = fallback
        self.tools = BOOKING_TOOLS

        logger.info(
            f"LLM service initialized: {primary.provider_type.value} ({primary.model}) + "
            f"{fallback.provider_type.value} ({fallback.model})"
        )

    @classmethod
    def from_keys(
        cls,
        gemini_api_key: str,
        groq_api_key: str,
        gemini_model: str = "gemini-2.5-flash",
        groq_model: str = "llama-3.3-70b-versatile",
    ) -> "LLMService":
        """Build the Gemini-first, Groq-second service."""
        return cls(
            primary=GeminiProvider(gemini_api_key, gemini_model),
            fallback=GroqProvider(groq_api_key, groq_model),
        )

    @property
    def providers(self) -> list[BaseLLMProvider]:
        """Providers in the order they are tried."""
        return [self.primary, self.fallback]

    def get_tools(self) -> list[dict]:
        """Get tool definitions."""
        return self.tools

    async def health_check(self) -> dict[str, bool]:
        """Check health of both providers."""
        return {
            self.primary.provider_type.value: await self.primary.health_check(),
            self.fallback.provider_type.value: await self.fallback.health_check(),
        }
