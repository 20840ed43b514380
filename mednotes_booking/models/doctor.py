"""Profile data models."""

from typing import Optional
from pydantic import BaseModel, Field


class Doctor(BaseModel):
    """A provider row from the shared profiles table (role = doctor)."""
    id: str = Field(..., description="Profile ID")
    first_name: Optional[str] = Field(default=None)
    last_name: Optional[str] = Field(default=None)
    specialization: Optional[str] = Field(default=None)

    @property
    def full_name(self) -> str:
        """Given and family name joined, without title."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        """Name as shown to patients."""
        return f"Dr. {self.full_name}"

    def to_prompt_line(self) -> str:
        """One line of the doctor list in the system prompt."""
        specialization = self.specialization or "General Practitioner"
        return f"- {self.display_name} | Specialization: {specialization}"


class PatientProfile(BaseModel):
    """The subset of a patient's profile the booking chat needs."""
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
