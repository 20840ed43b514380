"""Shared test fixtures for the booking agent tests."""

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from mednotes_booking.models import (
    Appointment,
    AppointmentStatus,
    AvailabilityResult,
    Doctor,
    PatientProfile,
    parse_chat_message,
)
from mednotes_booking.services.providers import BaseLLMProvider, ProviderType, StreamFinish
from mednotes_booking.services.supabase_service import SlotConflictError, StoreError
from mednotes_booking.tools import BookingTools

IST = ZoneInfo("Asia/Kolkata")

# Sunday 14 December 2025, 10:00 in the clinic
FIXED_NOW = datetime(2025, 12, 14, 10, 0, tzinfo=IST)

VALID_TOKEN = "valid-token"
PATIENT_ID = "patient-1"


class FakeStore:
    """In-memory stand-in for SupabaseService."""

    def __init__(self, doctors: Optional[list[Doctor]] = None):
        self.doctors = doctors if doctors is not None else [
            Doctor(id="doc-1", first_name="Shekhar", last_name="Maurya", specialization="Cardiology"),
            Doctor(id="doc-2", first_name="Priya", last_name="Sharma", specialization=None),
        ]
        self.appointments: list[Appointment] = []
        self.chat_rows: list[dict] = []
        self.fail_list_doctors = False
        self.fail_availability = False
        self.fail_insert = False
        # Availability says free, the insert hits a constraint
        self.conflict_on_insert = False

    async def get_user_id_from_token(self, access_token: str) -> Optional[str]:
        return PATIENT_ID if access_token == VALID_TOKEN else None

    async def get_patient_profile(self, patient_id: str) -> Optional[PatientProfile]:
        return PatientProfile(id=patient_id, first_name="Asha", last_name="Rao")

    async def list_doctors(self, limit: Optional[int] = None) -> list[Doctor]:
        if self.fail_list_doctors:
            raise StoreError("Unable to fetch doctor information")
        return self.doctors[:limit] if limit else list(self.doctors)

    async def check_doctor_availability(
        self, doctor_id: str, appointment_date: datetime, duration_minutes: int = 30
    ) -> AvailabilityResult:
        # Yield so concurrent bookings interleave
        await asyncio.sleep(0)
        if self.fail_availability:
            raise StoreError("Unable to check availability")
        end = appointment_date + timedelta(minutes=duration_minutes)
        for apt in self.appointments:
            if apt.doctor_id != doctor_id or apt.status == AppointmentStatus.CANCELLED:
                continue
            apt_end = apt.appointment_date + timedelta(minutes=duration_minutes)
            if apt.appointment_date < end and appointment_date < apt_end:
                return AvailabilityResult(available=False, reason="Doctor has a conflicting appointment")
        return AvailabilityResult(available=True, reason="Doctor is available")

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        await asyncio.sleep(0)
        if self.conflict_on_insert:
            raise SlotConflictError("Doctor is already booked for this time slot")
        if self.fail_insert:
            raise StoreError("Unable to create appointment: insert failed")
        created = appointment.model_copy(update={"id": f"apt-{len(self.appointments) + 1}"})
        self.appointments.append(created)
        return created

    async def save_chat_message(self, record) -> Optional[str]:
        row = record.to_insert_row()
        row["id"] = str(uuid.uuid4())
        row["created_at"] = datetime.now(IST).isoformat()
        self.chat_rows.append(row)
        return row["id"]

    async def link_chat_to_appointment(self, patient_id: str, chat_id: str, appointment_id: str) -> int:
        linked = 0
        for row in self.chat_rows:
            if row["patient_id"] == patient_id and row["chat_id"] == chat_id:
                row["appointment_id"] = appointment_id
                linked += 1
        return linked

    async def get_chat_history(self, patient_id: str, chat_id=None, appointment_id=None):
        rows = [r for r in self.chat_rows if r["patient_id"] == patient_id]
        if chat_id:
            rows = [r for r in rows if r["chat_id"] == chat_id]
        if appointment_id:
            rows = [r for r in rows if r.get("appointment_id") == appointment_id]
        return [parse_chat_message(r) for r in rows]

    def rows_with_role(self, role: str) -> list[dict]:
        return [r for r in self.chat_rows if r["role"] == role]


class ScriptedProvider(BaseLLMProvider):
    """
    Provider that replays one scripted list of events per model step.

    An Exception instance in a script is raised at that point. `closed` counts
    streams that were shut from the consumer side before they finished.
    """

    def __init__(self, provider_type: ProviderType, steps: list[list], model: str = "scripted"):
        self.provider_type = provider_type
        self.model = model
        self.steps = list(steps)
        self.calls: list[list[dict]] = []
        self.closed = 0

    async def stream_response(self, messages, system_prompt, tools=None, max_tokens=1024):
        self.calls.append(list(messages))
        script = self.steps.pop(0) if self.steps else [StreamFinish()]
        try:
            for item in script:
                if isinstance(item, Exception):
                    raise item
                yield item
        except GeneratorExit:
            self.closed += 1
            raise

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def booking_tools(store):
    return BookingTools(store, clock=lambda: FIXED_NOW)
