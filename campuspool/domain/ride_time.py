"""
Ride time parsing.

Rides store a calendar date plus a human time string such as ``"10:00 AM"``.
Bookings snapshot the combined instant so later edits to the ride do not
rewrite history.

Rules
-----
* AM/PM marker is optional and case-insensitive.
* An explicit ``H:MM`` pair is required; hour 1-12, minute 0-59.
* ``12 AM`` -> hour 0; any PM hour other than 12 -> hour + 12.
* Anything else raises ``InvalidRideTime``; nothing is defaulted.

The instant is built from the date's calendar components, so no timezone
conversion can shift the day.  It is naive local wall time.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from .errors import InvalidRideTime

_MERIDIEM = re.compile(r"\s*([ap])\.?m\.?\s*$", re.IGNORECASE)
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_ride_time(raw: str | None) -> tuple[int, int]:
    """Return ``(hour, minute)`` on a 24-hour clock."""
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise InvalidRideTime("Ride time is required")

    meridiem = None
    marker = _MERIDIEM.search(text)
    if marker:
        meridiem = marker.group(1).upper()
        text = text[: marker.start()].strip()

    clock = _CLOCK.match(text)
    if not clock:
        raise InvalidRideTime(f"Invalid time format {raw!r}. Use HH:MM AM/PM")

    hours, minutes = int(clock.group(1)), int(clock.group(2))
    if not 1 <= hours <= 12 or not 0 <= minutes <= 59:
        raise InvalidRideTime(
            "Invalid time values. Hours must be 1-12, minutes 0-59"
        )

    if meridiem == "P" and hours != 12:
        hours += 12
    elif meridiem == "A" and hours == 12:
        hours = 0
    return hours, minutes


def combine_ride_datetime(ride_date: date, raw_time: str | None) -> datetime:
    """Combine a ride's date with its time string into a single instant."""
    if isinstance(ride_date, datetime):
        ride_date = ride_date.date()
    hour, minute = parse_ride_time(raw_time)
    return datetime(ride_date.year, ride_date.month, ride_date.day, hour, minute)
