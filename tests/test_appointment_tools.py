"""Unit tests for the booking tools (mednotes_booking/tools/appointment_tools.py)."""

import asyncio
from datetime import datetime

import pytest

from conftest import IST, PATIENT_ID
from mednotes_booking.models import UserChatMessage
from mednotes_booking.tools import BookingContext, BookingErrorCode

CONTEXT = BookingContext(patient_id=PATIENT_ID, chat_id="chat-1")


@pytest.mark.asyncio
async def test_book_appointment_happy_path(store, booking_tools):
    """A booking stores one scheduled appointment in clinic time and confirms it."""
    result = await booking_tools.book_appointment(CONTEXT, "Dr. Shekhar Maurya", "tomorrow", "3pm", "chest pain")

    assert result.success is True
    assert result.appointment_id == "apt-1"
    assert result.output["success"] is True
    assert result.output["appointmentId"] == "apt-1"
    assert "Dr. Shekhar Maurya" in result.output["message"]
    assert "Monday, December 15th, 2025 at 3:00 PM" in result.output["message"]

    assert len(store.appointments) == 1
    apt = store.appointments[0]
    assert apt.doctor_id == "doc-1"
    assert apt.patient_id == PATIENT_ID
    assert apt.appointment_date == datetime(2025, 12, 15, 15, 0, tzinfo=IST)
    assert apt.booking_chat_id == "chat-1"
    assert apt.notes == "chest pain"
    assert apt.to_insert_row()["appointment_date"] == "2025-12-15T15:00:00+05:30"


@pytest.mark.asyncio
async def test_booking_links_session_messages(store, booking_tools):
    """Every message row of the session gets the new appointment id."""
    await store.save_chat_message(UserChatMessage(chat_id="chat-1", patient_id=PATIENT_ID, message="hi"))
    await store.save_chat_message(UserChatMessage(chat_id="other", patient_id=PATIENT_ID, message="hi"))

    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")

    linked = [r for r in store.chat_rows if r.get("appointment_id") == result.appointment_id]
    assert [r["chat_id"] for r in linked] == ["chat-1"]


@pytest.mark.asyncio
async def test_second_booking_for_same_slot_is_unavailable(store, booking_tools):
    first = await booking_tools.book_appointment(CONTEXT, "Shekhar Maurya", "2025-12-15", "15:00")
    second = await booking_tools.book_appointment(CONTEXT, "Maurya", "15 december 2025", "3:15 pm")

    assert first.success is True
    assert second.success is False
    assert second.error_code == BookingErrorCode.UNAVAILABLE
    assert second.output["errorCode"] == "unavailable"
    assert len(store.appointments) == 1


@pytest.mark.asyncio
async def test_concurrent_bookings_create_exactly_one_appointment(store, booking_tools):
    """Two sessions racing for one slot: one wins, the other is told it is unavailable."""
    results = await asyncio.gather(
        booking_tools.book_appointment(BookingContext(PATIENT_ID, "chat-a"), "Shekhar", "tomorrow", "3pm"),
        booking_tools.book_appointment(BookingContext("patient-2", "chat-b"), "Shekhar", "tomorrow", "3pm"),
    )

    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.error_code == BookingErrorCode.UNAVAILABLE
    assert len(store.appointments) == 1


@pytest.mark.asyncio
async def test_constraint_conflict_on_insert_reports_unavailable(store, booking_tools):
    """A slot taken by another process between check and insert is not a second appointment."""
    store.conflict_on_insert = True

    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")

    assert result.success is False
    assert result.error_code == BookingErrorCode.UNAVAILABLE
    assert store.appointments == []


@pytest.mark.asyncio
async def test_different_doctors_same_slot_both_book(store, booking_tools):
    a = await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")
    b = await booking_tools.book_appointment(CONTEXT, "Priya", "tomorrow", "3pm")

    assert a.success and b.success
    assert len(store.appointments) == 2


@pytest.mark.asyncio
async def test_unknown_doctor_lists_available_doctors(store, booking_tools):
    result = await booking_tools.book_appointment(CONTEXT, "Dr. Patel", "tomorrow", "3pm")

    assert result.success is False
    assert result.error_code == BookingErrorCode.DOCTOR_NOT_FOUND
    assert "Dr. Shekhar Maurya" in result.error
    assert "Dr. Priya Sharma" in result.error
    assert store.appointments == []


@pytest.mark.asyncio
async def test_invalid_datetime(store, booking_tools):
    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "someday", "whenever")

    assert result.error_code == BookingErrorCode.INVALID_DATETIME
    assert store.appointments == []


@pytest.mark.asyncio
async def test_past_datetime_is_invalid(store, booking_tools):
    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "2025-12-01", "10:00")

    assert result.error_code == BookingErrorCode.INVALID_DATETIME


@pytest.mark.asyncio
async def test_doctor_lookup_failure_is_store_error(store, booking_tools):
    store.fail_list_doctors = True

    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")

    assert result.error_code == BookingErrorCode.STORE_ERROR


@pytest.mark.asyncio
async def test_insert_failure_is_persistence_error(store, booking_tools):
    store.fail_insert = True

    result = await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")

    assert result.success is False
    assert result.error_code == BookingErrorCode.PERSISTENCE_ERROR
    assert result.appointment_id is None


@pytest.mark.asyncio
async def test_check_availability_free_slot(booking_tools):
    result = await booking_tools.check_availability("Shekhar", "tomorrow", "3pm")

    assert result.output["available"] is True
    assert "proceed with booking" in result.output["suggestedAction"]


@pytest.mark.asyncio
async def test_check_availability_taken_slot(booking_tools):
    await booking_tools.book_appointment(CONTEXT, "Shekhar", "tomorrow", "3pm")

    result = await booking_tools.check_availability("Shekhar", "tomorrow", "3:15pm")

    assert result.output["available"] is False
    assert result.error_code == BookingErrorCode.UNAVAILABLE
    assert "alternative" in result.output["suggestedAction"]


@pytest.mark.asyncio
async def test_check_availability_store_error_is_distinct_from_unavailable(store, booking_tools):
    store.fail_availability = True

    result = await booking_tools.check_availability("Shekhar", "tomorrow", "3pm")

    assert result.output["available"] is False
    assert result.output["errorCode"] == "store_error"
    assert result.output["reason"] == "Unable to check availability. Please try again."


@pytest.mark.asyncio
async def test_execute_tool_dispatches_by_name(store, booking_tools):
    result = await booking_tools.execute_tool(
        "bookAppointment",
        {"doctorName": "Shekhar", "appointmentDate": "tomorrow", "appointmentTime": "3pm"},
        CONTEXT,
    )

    assert result.success is True
    assert len(store.appointments) == 1


@pytest.mark.asyncio
async def test_execute_tool_unknown_name(booking_tools):
    result = await booking_tools.execute_tool("cancelAppointment", {}, CONTEXT)

    assert result.success is False
    assert result.error_code == BookingErrorCode.INVALID_INPUT


@pytest.mark.asyncio
async def test_execute_tool_missing_arguments(store, booking_tools):
    result = await booking_tools.execute_tool("bookAppointment", {"doctorName": "Shekhar"}, CONTEXT)

    assert result.error_code == BookingErrorCode.INVALID_INPUT
    assert store.appointments == []


@pytest.mark.asyncio
async def test_execute_tool_unexpected_exception_is_internal_error(booking_tools, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(booking_tools, "check_availability", boom)

    result = await booking_tools.execute_tool(
        "checkAvailability",
        {"doctorName": "Shekhar", "appointmentDate": "tomorrow", "appointmentTime": "3pm"},
        CONTEXT,
    )

    assert result.error_code == BookingErrorCode.INTERNAL_ERROR
    assert result.output["available"] is False
