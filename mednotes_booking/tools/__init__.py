"""Tools package."""

from .appointment_tools import (
    BookAppointmentInput,
    BookingContext,
    BookingErrorCode,
    BookingTools,
    CheckAvailabilityInput,
    ToolName,
    ToolResult,
)

__all__ = [
    "BookAppointmentInput",
    "BookingContext",
    "BookingErrorCode",
    "BookingTools",
    "CheckAvailabilityInput",
    "ToolName",
    "ToolResult",
]
