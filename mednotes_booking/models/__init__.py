"""Data models package."""

from .appointment import Appointment, AppointmentStatus, AvailabilityResult
from .doctor import Doctor, PatientProfile
from .conversation import (
    AssistantChatMessage,
    BookingChatRequest,
    ChatMessageRecord,
    UIMessage,
    UserChatMessage,
    parse_chat_message,
)

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityResult",
    "Doctor",
    "PatientProfile",
    "AssistantChatMessage",
    "BookingChatRequest",
    "ChatMessageRecord",
    "UIMessage",
    "UserChatMessage",
    "parse_chat_message",
]
