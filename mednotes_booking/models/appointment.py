"""Appointment data models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Possible appointment statuses."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AvailabilityResult(BaseModel):
    """Outcome of the store's availability procedure for one slot."""
    available: bool = Field(default=False)
    reason: str = Field(default="Availability check completed")


class Appointment(BaseModel):
    """Represents a booked appointment."""
    id: Optional[str] = Field(default=None, description="Unique appointment ID")
    patient_id: str = Field(..., description="Patient profile ID")
    doctor_id: str = Field(..., description="Doctor profile ID")
    appointment_date: datetime = Field(..., description="Absolute appointment timestamp")
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    notes: Optional[str] = Field(default=None, description="Reason or additional notes")
    booking_chat_id: Optional[str] = Field(default=None, description="Session that booked it")
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    def to_insert_row(self) -> dict:
        """Row payload for the appointments table."""
        return {
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "appointment_date": self.appointment_date.isoformat(),
            "status": AppointmentStatus(self.status).value,
            "notes": self.notes,
            "booking_chat_id": self.booking_chat_id,
        }
