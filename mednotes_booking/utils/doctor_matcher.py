"""Tolerant doctor-name matching."""

import re
from typing import Iterable, Optional

from ..models import Doctor

_TITLE_PATTERN = re.compile(r"^dr\b\.?\s*", re.IGNORECASE)


def clean_doctor_name(name: str) -> str:
    """Strip a leading "Dr"/"Dr." title and lower-case the rest."""
    return _TITLE_PATTERN.sub("", name.strip()).strip().lower()


def _matches(doctor: Doctor, query: str) -> bool:
    full_name = doctor.full_name.lower()
    first_name = (doctor.first_name or "").strip().lower()
    last_name = (doctor.last_name or "").strip().lower()
    name_parts = query.split()

    # Exact match
    if full_name == query:
        return True
    # Contains match, either direction
    if full_name and (query in full_name or full_name in query):
        return True
    # Both given and family name present somewhere in the query
    if first_name and last_name and first_name in query and last_name in query:
        return True
    # Single word matching given or family name
    if len(name_parts) == 1 and name_parts[0] in (first_name, last_name):
        return True
    # Every word of the query found in the full name
    return bool(name_parts) and all(part in full_name for part in name_parts)


def match_doctor(name: str, doctors: Iterable[Doctor]) -> Optional[Doctor]:
    """
    Find the doctor a free-form name refers to.

    Doctors are checked in iteration order and the first one satisfying any
    strategy wins; there is no ranking between strategies.

    Args:
        name: Name fragment, optionally prefixed with "Dr."
        doctors: Registered doctors

    Returns:
        The matching Doctor, or None
    """
    query = clean_doctor_name(name)
    if not query:
        return None

    for doctor in doctors:
        if _matches(doctor, query):
            return doctor
    return None


def format_doctor_names(doctors: Iterable[Doctor]) -> str:
    """Comma-separated display names, used to suggest valid choices."""
    names = [doctor.display_name for doctor in doctors]
    return ", ".join(names) if names else "none"
