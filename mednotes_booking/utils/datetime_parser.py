"""Natural-language date/time parsing pinned to the clinic timezone."""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

DEFAULT_TIMEZONE = "Asia/Kolkata"

# Order matters: DD/MM/YYYY is tried before MM/DD/YYYY, so "03/04/2025" is 3 April.
DATE_FORMATS = [
    "%Y-%m-%d",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
]

TIME_FORMATS = [
    "%I:%M %p",
    "%H:%M",
    "%I %p",
]

DATETIME_FORMATS = [f"{d} {t}" for d in DATE_FORMATS for t in TIME_FORMATS]

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_TIME_PATTERN = re.compile(r"(\d{1,2})[:.]?(\d{2})?\s*(am|pm)?", re.IGNORECASE)
_MERIDIEM_PATTERN = re.compile(r"\b[ap]m\b", re.IGNORECASE)
_WEEKDAY_PATTERN = re.compile(r"^(?:next\s+|this\s+|on\s+)?(" + "|".join(WEEKDAYS) + r")$")


def _normalize(text: str) -> str:
    """Lower-case, drop commas and ordinals, and space out am/pm suffixes."""
    text = text.strip().lower()
    text = text.replace(",", " ")
    text = re.sub(r"^(?:on|at)\s+", "", text)
    text = re.sub(r"\bnoon\b", "12 pm", text)
    text = re.sub(r"\bmidnight\b", "12 am", text)
    text = re.sub(r"(\d+)(st|nd|rd|th)\b", r"\1", text)
    text = re.sub(r"(\d)\s*([ap])\.?m\.?(?=\s|$)", r"\1 \2m", text)
    return re.sub(r"\s+", " ", text).strip()


def _normalize_time(text: str) -> str:
    """Normalize a time phrase; "3.30 pm" reads as "3:30 pm"."""
    return re.sub(r"\b(\d{1,2})\.(\d{2})\b", r"\1:\2", _normalize(text))


def resolve_relative_date(date_text: str, today: date) -> str:
    """
    Replace relative day words with an ISO date.

    Args:
        date_text: Normalized date phrase
        today: Current calendar date in the clinic timezone

    Returns:
        YYYY-MM-DD for recognised phrases, otherwise the input unchanged
    """
    if date_text == "today":
        return today.isoformat()
    if date_text == "tomorrow":
        return (today + timedelta(days=1)).isoformat()
    if date_text in ("day after tomorrow", "after tomorrow"):
        return (today + timedelta(days=2)).isoformat()

    match = _WEEKDAY_PATTERN.match(date_text)
    if match:
        target = WEEKDAYS.index(match.group(1))
        days_ahead = (target - today.weekday()) % 7 or 7
        return (today + timedelta(days=days_ahead)).isoformat()

    return date_text


def _strptime_first(text: str, formats: list[str]) -> Optional[datetime]:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_time_parts(time_text: str) -> Optional[Tuple[int, int]]:
    """Pull hour and minute out of a loose time phrase ("3", "3:30pm", "1530")."""
    match = _TIME_PATTERN.search(time_text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    period = (match.group(3) or "").lower()

    # An am/pm the match did not pick up would otherwise silently become AM
    if not period and _MERIDIEM_PATTERN.search(time_text):
        return None

    if period == "pm" and hour != 12:
        hour += 12
    if period == "am" and hour == 12:
        hour = 0

    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_datetime_in_timezone(
    date_text: str,
    time_text: str,
    timezone: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Parse a free-form date and time as wall-clock time in a fixed timezone.

    The result carries the clinic tzinfo; the input is never read as UTC and
    converted.

    Args:
        date_text: Date phrase (e.g. "tomorrow", "15 december 2025", "15/12/2025")
        time_text: Time phrase (e.g. "3pm", "14:30", "3:00 PM")
        timezone: IANA timezone name of the clinic
        now: Reference instant for relative dates (defaults to the current time)

    Returns:
        Timezone-aware datetime, or None when the input cannot be understood
    """
    tz = ZoneInfo(timezone)
    now = now.astimezone(tz) if now else datetime.now(tz)

    raw_combined = f"{date_text.strip()} {time_text.strip()}"
    processed_date = resolve_relative_date(_normalize(date_text), now.date())
    processed_time = _normalize_time(time_text)
    combined = f"{processed_date} {processed_time}".strip()

    parsed = _strptime_first(combined, DATETIME_FORMATS)
    if parsed:
        return parsed.replace(tzinfo=tz)

    date_only = _strptime_first(processed_date, DATE_FORMATS)
    if date_only:
        time_parts = _parse_time_parts(processed_time)
        if time_parts:
            hour, minute = time_parts
            return date_only.replace(hour=hour, minute=minute, second=0, microsecond=0, tzinfo=tz)

    for candidate in (combined, raw_combined):
        parsed = _parse_unstructured(candidate, now)
        if parsed:
            return parsed
    return None


def _parse_unstructured(text: str, now: datetime) -> Optional[datetime]:
    """Last resort: let dateutil read the whole phrase."""
    default = now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    try:
        parsed = date_parser.parse(text, default=default, dayfirst=True)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=now.tzinfo)
    return parsed.astimezone(now.tzinfo)


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_appointment_datetime(dt: datetime) -> Tuple[str, str]:
    """
    Format an appointment timestamp for confirmations.

    Returns:
        ("Monday, December 15th, 2025", "3:00 PM")
    """
    friendly_date = f"{dt.strftime('%A, %B')} {_ordinal(dt.day)}, {dt.year}"
    friendly_time = dt.strftime("%I:%M %p").lstrip("0")
    return friendly_date, friendly_time
