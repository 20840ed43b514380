"""Booking chat message models."""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter


class UserChatMessage(BaseModel):
    """A patient turn. Only the message text is stored."""
    role: Literal["user"] = "user"
    id: Optional[str] = Field(default=None)
    chat_id: str = Field(..., description="Session identifier")
    patient_id: str = Field(..., description="Patient profile ID")
    message: str = Field(..., description="Patient message text")
    appointment_id: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)

    def to_insert_row(self) -> dict:
        return {
            "chat_id": self.chat_id,
            "patient_id": self.patient_id,
            "role": self.role,
            "message": self.message,
        }


class AssistantChatMessage(BaseModel):
    """An assistant turn. Only the model response is stored."""
    role: Literal["assistant"] = "assistant"
    id: Optional[str] = Field(default=None)
    chat_id: str = Field(..., description="Session identifier")
    patient_id: str = Field(..., description="Patient profile ID")
    response: str = Field(..., alias="ai_response", description="Model response text")
    appointment_id: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)

    model_config = {"populate_by_name": True}

    def to_insert_row(self) -> dict:
        row = {
            "chat_id": self.chat_id,
            "patient_id": self.patient_id,
            "role": self.role,
            "ai_response": self.response,
        }
        if self.appointment_id:
            row["appointment_id"] = self.appointment_id
        return row


ChatMessageRecord = Annotated[
    Union[UserChatMessage, AssistantChatMessage],
    Field(discriminator="role"),
]

_record_adapter = TypeAdapter(ChatMessageRecord)


def parse_chat_message(row: dict) -> Union[UserChatMessage, AssistantChatMessage]:
    """Build the typed record from a booking_chat row.

    Rows written before the schema dropped placeholders carry an empty string
    in the unused column; those keys are removed before validation.
    """
    cleaned = {key: value for key, value in row.items() if value is not None}
    if cleaned.get("role") == "user":
        cleaned.pop("ai_response", None)
    elif cleaned.get("role") == "assistant":
        cleaned.pop("message", None)
    return _record_adapter.validate_python(cleaned)


def to_display_dict(record: Union[UserChatMessage, AssistantChatMessage]) -> dict:
    """Convert to format for frontend display."""
    text = record.message if isinstance(record, UserChatMessage) else record.response
    return {
        "id": record.id,
        "chatId": record.chat_id,
        "role": record.role,
        "text": text,
        "appointmentId": record.appointment_id,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
    }


# ==================== Chat request ====================

class UIMessagePart(BaseModel):
    """One part of a UI message; tool parts carry extra keys that pass through."""
    type: str
    text: Optional[str] = None

    model_config = {"extra": "allow"}


class UIMessage(BaseModel):
    """A chat message as the browser sends it."""
    id: Optional[str] = Field(default=None)
    role: Literal["user", "assistant", "system"] = "user"
    parts: Optional[list[UIMessagePart]] = Field(default=None)
    content: Optional[str] = Field(default=None, description="Legacy plain-text body")

    model_config = {"extra": "allow"}


class BookingChatRequest(BaseModel):
    """Body of POST /api/chat/booking."""
    messages: list[UIMessage] = Field(..., min_length=1)
    chat_id: Optional[str] = Field(default=None, alias="chatId", description="Existing session id")

    model_config = {"populate_by_name": True}

    def ui_messages(self) -> list[dict]:
        return [message.model_dump(exclude_none=True) for message in self.messages]
