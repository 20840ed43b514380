"""Appointment tools the booking model may call."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, ValidationError

from ..models import Appointment, AppointmentStatus
from ..services.supabase_service import SlotConflictError, StoreError, SupabaseService
from ..utils import (
    format_appointment_datetime,
    format_doctor_names,
    match_doctor,
    parse_datetime_in_timezone,
)

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """The closed set of tools offered to the model."""
    CHECK_AVAILABILITY = "checkAvailability"
    BOOK_APPOINTMENT = "bookAppointment"


class BookingErrorCode(str, Enum):
    """Why a tool call did not succeed, so the conversation can react to it."""
    INVALID_INPUT = "invalid_input"
    INVALID_DATETIME = "invalid_datetime"
    DOCTOR_NOT_FOUND = "doctor_not_found"
    UNAVAILABLE = "unavailable"
    STORE_ERROR = "store_error"
    PERSISTENCE_ERROR = "persistence_error"
    INTERNAL_ERROR = "internal_error"


class CheckAvailabilityInput(BaseModel):
    """Arguments of checkAvailability."""
    doctor_name: str = Field(..., alias="doctorName", min_length=1)
    appointment_date: str = Field(..., alias="appointmentDate", min_length=1)
    appointment_time: str = Field(..., alias="appointmentTime", min_length=1)

    model_config = {"populate_by_name": True}


class BookAppointmentInput(CheckAvailabilityInput):
    """Arguments of bookAppointment."""
    notes: Optional[str] = Field(default=None)


@dataclass
class BookingContext:
    """Who is booking, and from which chat session."""
    patient_id: str
    chat_id: str


@dataclass
class ToolResult:
    """Result from a tool execution."""
    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_code: Optional[BookingErrorCode] = None
    appointment_id: Optional[str] = None


def _availability_failure(code: BookingErrorCode, reason: str) -> ToolResult:
    return ToolResult(
        success=False,
        output={"available": False, "reason": reason, "errorCode": code.value},
        error=reason,
        error_code=code,
    )


def _booking_failure(code: BookingErrorCode, error: str) -> ToolResult:
    return ToolResult(
        success=False,
        output={"success": False, "error": error, "errorCode": code.value},
        error=error,
        error_code=code,
    )


class BookingTools:
    """
    Tool implementations for appointment booking.

    One instance serves every chat session; per-session data arrives through
    BookingContext. Availability check and insert for a doctor run under that
    doctor's lock, so concurrent bookings in this process cannot both pass the
    check for the same slot.
    """

    def __init__(
        self,
        supabase_service: SupabaseService,
        timezone: str = "Asia/Kolkata",
        slot_duration_minutes: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize booking tools.

        Args:
            supabase_service: Database service
            timezone: Clinic timezone all dates and times are read in
            slot_duration_minutes: Length of one appointment
            clock: Returns "now"; defaults to the current time in the clinic timezone
        """
        self.db = supabase_service
        self.timezone = timezone
        self.slot_duration_minutes = slot_duration_minutes
        self._clock = clock or (lambda: datetime.now(ZoneInfo(timezone)))
        self._slot_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def now(self) -> datetime:
        return self._clock()

    def _resolve_datetime(self, appointment_date: str, appointment_time: str) -> Optional[datetime]:
        """Parse the slot; past instants count as invalid."""
        now = self.now()
        resolved = parse_datetime_in_timezone(
            appointment_date, appointment_time, timezone=self.timezone, now=now
        )
        if resolved is None or resolved <= now:
            return None
        return resolved

    async def check_availability(
        self,
        doctor_name: str,
        appointment_date: str,
        appointment_time: str,
    ) -> ToolResult:
        """
        Check whether a doctor is free at a date and time.

        Returns:
            ToolResult whose output holds available, reason and suggestedAction
        """
        appointment_at = self._resolve_datetime(appointment_date, appointment_time)
        if appointment_at is None:
            return _availability_failure(
                BookingErrorCode.INVALID_DATETIME,
                "Invalid date or time format. Please provide a valid future date and time.",
            )

        try:
            doctors = await self.db.list_doctors()
        except StoreError:
            return _availability_failure(
                BookingErrorCode.STORE_ERROR,
                "Unable to fetch doctor information. Please try again.",
            )

        doctor = match_doctor(doctor_name, doctors)
        if not doctor:
            return _availability_failure(
                BookingErrorCode.DOCTOR_NOT_FOUND,
                f'Doctor "{doctor_name}" not found. Available doctors: {format_doctor_names(doctors)}.',
            )

        try:
            availability = await self.db.check_doctor_availability(
                doctor.id, appointment_at, self.slot_duration_minutes
            )
        except StoreError:
            return _availability_failure(
                BookingErrorCode.STORE_ERROR,
                "Unable to check availability. Please try again.",
            )

        if availability.available:
            suggested = "This time slot is available. You can proceed with booking."
        else:
            suggested = "Please suggest an alternative time slot to the patient."

        return ToolResult(
            success=True,
            output={
                "available": availability.available,
                "reason": availability.reason,
                "suggestedAction": suggested,
            },
            error_code=None if availability.available else BookingErrorCode.UNAVAILABLE,
        )

    async def book_appointment(
        self,
        context: BookingContext,
        doctor_name: str,
        appointment_date: str,
        appointment_time: str,
        notes: Optional[str] = None,
    ) -> ToolResult:
        """
        Book an appointment. The only path that creates one.

        Returns:
            ToolResult with the appointment id on success, or an error code
        """
        logger.info(
            f"bookAppointment called: doctor={doctor_name!r} date={appointment_date!r} "
            f"time={appointment_time!r} chat={context.chat_id}"
        )

        appointment_at = self._resolve_datetime(appointment_date, appointment_time)
        if appointment_at is None:
            return _booking_failure(
                BookingErrorCode.INVALID_DATETIME,
                "Invalid date or time format. Please provide a valid future date and time.",
            )

        try:
            doctors = await self.db.list_doctors()
        except StoreError:
            return _booking_failure(
                BookingErrorCode.STORE_ERROR,
                "Unable to fetch doctor information. Please try again.",
            )

        doctor = match_doctor(doctor_name, doctors)
        if not doctor:
            return _booking_failure(
                BookingErrorCode.DOCTOR_NOT_FOUND,
                f'Doctor "{doctor_name}" not found. Available doctors: {format_doctor_names(doctors)}. '
                "Please try again with one of these names.",
            )

        async with self._slot_locks[doctor.id]:
            try:
                availability = await self.db.check_doctor_availability(
                    doctor.id, appointment_at, self.slot_duration_minutes
                )
            except StoreError:
                return _booking_failure(
                    BookingErrorCode.STORE_ERROR,
                    "Unable to verify doctor availability. Please try again.",
                )

            if not availability.available:
                logger.info(f"Doctor {doctor.id} not available: {availability.reason}")
                return _booking_failure(
                    BookingErrorCode.UNAVAILABLE,
                    availability.reason
                    or "Doctor is not available at this time. Please choose a different time slot.",
                )

            appointment = Appointment(
                patient_id=context.patient_id,
                doctor_id=doctor.id,
                appointment_date=appointment_at,
                status=AppointmentStatus.SCHEDULED,
                notes=notes or None,
                booking_chat_id=context.chat_id,
            )
            try:
                created = await self.db.create_appointment(appointment)
            except SlotConflictError:
                return _booking_failure(
                    BookingErrorCode.UNAVAILABLE,
                    "Doctor is not available at this time. Please choose a different time slot.",
                )
            except StoreError as e:
                return _booking_failure(
                    BookingErrorCode.PERSISTENCE_ERROR,
                    f"{e}. Please try again or contact support.",
                )

        # Best effort: a failed link never undoes the booking
        await self.db.link_chat_to_appointment(context.patient_id, context.chat_id, created.id)

        friendly_date, friendly_time = format_appointment_datetime(appointment_at)
        message = (
            f"Appointment successfully booked! You have an appointment with {doctor.display_name} "
            f"on {friendly_date} at {friendly_time}. Your appointment ID is {created.id}."
        )
        return ToolResult(
            success=True,
            output={"success": True, "appointmentId": created.id, "message": message},
            appointment_id=created.id,
        )

    async def execute_tool(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        context: BookingContext,
    ) -> ToolResult:
        """
        Execute a tool by name.

        Args:
            tool_name: Tag of the tool the model called
            tool_input: Raw arguments from the model
            context: Current patient and chat session

        Returns:
            ToolResult from the tool execution
        """
        try:
            tool = ToolName(tool_name)
        except ValueError:
            return _booking_failure(BookingErrorCode.INVALID_INPUT, f"Unknown tool: {tool_name}")

        try:
            if tool is ToolName.CHECK_AVAILABILITY:
                check = CheckAvailabilityInput.model_validate(tool_input)
            else:
                booking = BookAppointmentInput.model_validate(tool_input)
        except ValidationError as e:
            logger.error(f"Tool parameter error for {tool_name}: {e}")
            fail = _availability_failure if tool is ToolName.CHECK_AVAILABILITY else _booking_failure
            return fail(
                BookingErrorCode.INVALID_INPUT,
                "Doctor name, appointment date and appointment time are all required.",
            )

        try:
            if tool is ToolName.CHECK_AVAILABILITY:
                return await self.check_availability(
                    check.doctor_name, check.appointment_date, check.appointment_time
                )
            return await self.book_appointment(
                context,
                booking.doctor_name,
                booking.appointment_date,
                booking.appointment_time,
                booking.notes,
            )
        except Exception as e:
            logger.error(f"Error in {tool_name} tool: {e}")
            if tool is ToolName.CHECK_AVAILABILITY:
                return _availability_failure(
                    BookingErrorCode.INTERNAL_ERROR,
                    "An error occurred while checking availability.",
                )
            return _booking_failure(
                BookingErrorCode.INTERNAL_ERROR,
                "An error occurred while booking the appointment. Please try again.",
            )
