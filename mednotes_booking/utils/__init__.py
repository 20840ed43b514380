"""Utility functions package."""

from .datetime_parser import format_appointment_datetime, parse_datetime_in_timezone
from .doctor_matcher import format_doctor_names, match_doctor

__all__ = [
    "format_appointment_datetime",
    "parse_datetime_in_timezone",
    "format_doctor_names",
    "match_doctor",
]
