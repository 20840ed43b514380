"""Supabase service for database operations."""

import logging
from datetime import datetime
from typing import Optional, List, Union
from supabase import acreate_client, AsyncClient

from ..models import (
    Appointment,
    AssistantChatMessage,
    AvailabilityResult,
    Doctor,
    PatientProfile,
    UserChatMessage,
    parse_chat_message,
)

logger = logging.getLogger(__name__)

# PostgreSQL unique_violation / exclusion_violation
CONFLICT_ERROR_CODES = {"23505", "23P01"}


class StoreError(Exception):
    """The data store could not complete a request."""


class SlotConflictError(StoreError):
    """An insert was rejected because the doctor's slot is already taken."""


class SupabaseService:
    """Service for all Supabase database operations."""

    def __init__(self, client: AsyncClient):
        """Wrap an initialized async Supabase client."""
        self.client = client

    @classmethod
    async def connect(cls, url: str, key: str) -> "SupabaseService":
        """Create the async client and the service around it."""
        client = await acreate_client(url, key)
        logger.info("Supabase client initialized")
        return cls(client)

    # ==================== Identity Operations ====================

    async def get_user_id_from_token(self, access_token: str) -> Optional[str]:
        """Resolve the caller's user id from a Supabase access token."""
        if not access_token:
            return None
        try:
            response = await self.client.auth.get_user(access_token)
            if response and response.user:
                return response.user.id
            return None
        except Exception as e:
            logger.warning(f"Error resolving user from token: {e}")
            return None

    async def get_patient_profile(self, patient_id: str) -> Optional[PatientProfile]:
        """Get the patient's profile."""
        try:
            response = await (
                self.client.table("profiles")
                .select("id, first_name, last_name, email")
                .eq("id", patient_id)
                .single()
                .execute()
            )
            if response.data:
                return PatientProfile(**response.data)
            return None
        except Exception as e:
            logger.error(f"Error fetching patient profile: {e}")
            return None

    # ==================== Doctor Operations ====================

    async def list_doctors(self, limit: Optional[int] = None) -> List[Doctor]:
        """List registered doctors. Raises StoreError when the query fails."""
        try:
            query = (
                self.client.table("profiles")
                .select("id, first_name, last_name, specialization")
                .eq("role", "doctor")
            )
            if limit:
                query = query.limit(limit)
            response = await query.execute()
            return [Doctor(**row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching doctors: {e}")
            raise StoreError("Unable to fetch doctor information") from e

    # ==================== Appointment Operations ====================

    async def check_doctor_availability(
        self,
        doctor_id: str,
        appointment_date: datetime,
        duration_minutes: int = 30,
    ) -> AvailabilityResult:
        """
        Ask the database whether a doctor's slot is free.

        Delegates to the `check_doctor_availability` procedure, which treats any
        non-cancelled appointment overlapping the interval as a conflict.
        """
        try:
            response = await self.client.rpc(
                "check_doctor_availability",
                {
                    "p_doctor_id": doctor_id,
                    "p_appointment_date": appointment_date.isoformat(),
                    "p_appointment_duration_minutes": duration_minutes,
                },
            ).execute()
        except Exception as e:
            logger.error(f"Error checking doctor availability: {e}")
            raise StoreError("Unable to check availability") from e

        data = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            return AvailabilityResult(available=False, reason="Availability check returned no result")
        return AvailabilityResult(
            available=bool(data.get("available")),
            reason=data.get("reason") or "Availability check completed",
        )

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """
        Insert a new appointment.

        Raises:
            SlotConflictError: a uniqueness/exclusion constraint rejected the slot
            StoreError: any other insert failure
        """
        try:
            response = await (
                self.client.table("appointments")
                .insert(appointment.to_insert_row())
                .execute()
            )
        except Exception as e:
            code = str(getattr(e, "code", "") or "")
            if code in CONFLICT_ERROR_CODES:
                logger.warning(f"Slot conflict creating appointment for doctor {appointment.doctor_id}: {e}")
                raise SlotConflictError("Doctor is already booked for this time slot") from e
            logger.error(f"Error creating appointment: {e}")
            raise StoreError(f"Unable to create appointment: {getattr(e, 'message', None) or e}") from e

        if not response.data:
            raise StoreError("Appointment creation returned no data")

        created = Appointment(**response.data[0])
        logger.info(f"Created appointment {created.id} for patient {appointment.patient_id}")
        return created

    # ==================== Chat Operations ====================

    async def save_chat_message(
        self,
        record: Union[UserChatMessage, AssistantChatMessage],
    ) -> Optional[str]:
        """Insert one booking_chat row. Failures are logged, not raised."""
        try:
            response = await self.client.table("booking_chat").insert(record.to_insert_row()).execute()
            if response.data:
                return response.data[0].get("id")
            return None
        except Exception as e:
            logger.error(f"Error saving booking_chat {record.role} row: {e}")
            return None

    async def link_chat_to_appointment(
        self,
        patient_id: str,
        chat_id: str,
        appointment_id: str,
    ) -> int:
        """Stamp every message row of a session with the appointment id."""
        try:
            response = await (
                self.client.table("booking_chat")
                .update({"appointment_id": appointment_id})
                .eq("patient_id", patient_id)
                .eq("chat_id", chat_id)
                .execute()
            )
            linked = len(response.data or [])
            logger.info(f"Linked {linked} booking_chat rows of {chat_id} to appointment {appointment_id}")
            return linked
        except Exception as e:
            logger.error(f"Error linking chat to appointment: {e}")
            return 0

    async def get_chat_history(
        self,
        patient_id: str,
        chat_id: Optional[str] = None,
        appointment_id: Optional[str] = None,
    ) -> List[Union[UserChatMessage, AssistantChatMessage]]:
        """Get a patient's booking chat, by session or by resulting appointment."""
        try:
            query = self.client.table("booking_chat").select("*").eq("patient_id", patient_id)
            if chat_id:
                query = query.eq("chat_id", chat_id)
            if appointment_id:
                query = query.eq("appointment_id", appointment_id)
            response = await query.order("created_at", desc=False).execute()
            return [parse_chat_message(row) for row in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching chat history: {e}")
            return []
