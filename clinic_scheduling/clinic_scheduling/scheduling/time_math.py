"""
Time Math

Pure helpers for wall-clock and calendar arithmetic:
- "HH:MM" strings <-> minutes since midnight
- date parsing
- calendar month arithmetic with an explicit month-end policy
- "today" in the canonical scheduling timezone
"""

import calendar
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

import pytz

from .config import MONTH_END_CLAMP, MONTH_END_SKIP
from .exceptions import InvalidTimeFormat, ValidationError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")


def to_minutes(value: str) -> int:
	"""
	Convert an "HH:MM" string to minutes since midnight.

	Args:
		value: wall-clock time, e.g. "09:30" or "9:30"

	Returns:
		int: minutes since midnight (0..1439)

	Raises:
		InvalidTimeFormat: if the value is not HH:MM, minutes >= 60 or hours >= 24
	"""
	if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
		raise InvalidTimeFormat(
			f"Invalid time '{value}'. Use HH:MM format (e.g. 09:00)",
			{"value": value}
		)

	hours, minutes = (int(part) for part in value.strip().split(":"))

	if minutes >= 60 or hours >= 24:
		raise InvalidTimeFormat(
			f"Invalid time '{value}'. Hours must be 0-23 and minutes 0-59",
			{"value": value}
		)

	return hours * 60 + minutes


def from_minutes(minutes: int) -> str:
	"""
	Convert minutes since midnight to a zero-padded "HH:MM" string.

	Raises:
		InvalidTimeFormat: if minutes is outside [0, 1440)
	"""
	if not isinstance(minutes, int) or minutes < 0 or minutes >= MINUTES_PER_DAY:
		raise InvalidTimeFormat(
			f"Minute offset {minutes} is outside a single day",
			{"value": minutes}
		)

	return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: Union[str, time, timedelta]) -> str:
	"""
	Normalize time values coming from storage to "HH:MM".

	Database drivers hand Time columns back as timedelta (since midnight),
	datetime.time or "HH:MM:SS" strings.
	"""
	if isinstance(value, timedelta):
		total_minutes = int(value.total_seconds()) // 60
		return from_minutes(total_minutes)
	if isinstance(value, time):
		return f"{value.hour:02d}:{value.minute:02d}"
	if isinstance(value, str) and value.count(":") == 2:
		# "09:00:00" -> "09:00"
		value = value.rsplit(":", 1)[0]
	# round-trip so malformed strings fail here, not deep inside a comparison
	return from_minutes(to_minutes(value))


def parse_date(value: Union[str, date, datetime], field_name: str = "date") -> date:
	"""
	Parse a calendar date.

	Args:
		value: date, datetime or ISO string (YYYY-MM-DD)
		field_name: field name used in error messages

	Raises:
		ValidationError: if the value cannot be parsed
	"""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	if isinstance(value, str):
		try:
			return date.fromisoformat(value.strip()[:10])
		except ValueError:
			pass

	raise ValidationError(
		f"Invalid {field_name} '{value}'. Use YYYY-MM-DD",
		{"field": field_name, "value": str(value)}
	)


def add_months(start: date, months: int, policy: str = MONTH_END_CLAMP) -> Optional[date]:
	"""
	Add calendar months to a date.

	When the day does not exist in the target month (e.g. Jan 31 + 1 month):
	- "clamp": roll back to the last valid day of that month (Feb 28/29)
	- "skip": return None, the caller skips that month

	Args:
		start: anchor date
		months: number of months to add (may be a multiple of 12 for years)
		policy: MONTH_END_CLAMP or MONTH_END_SKIP
	"""
	month_index = start.month - 1 + months
	year = start.year + month_index // 12
	month = month_index % 12 + 1
	last_day = calendar.monthrange(year, month)[1]

	if start.day <= last_day:
		return date(year, month, start.day)

	if policy == MONTH_END_SKIP:
		return None

	return date(year, month, last_day)


def last_valid_day(start: date, months: int) -> date:
	"""Clamped result of add_months, used to compare skipped months against a bound."""
	return add_months(start, months, MONTH_END_CLAMP)


def today(tz_name: Optional[str] = None) -> date:
	"""
	Current date in the canonical scheduling timezone.

	Falls back to UTC when the zone name is unknown.
	"""
	tz_name = tz_name or "UTC"

	try:
		tz = pytz.timezone(tz_name)
	except pytz.UnknownTimeZoneError:
		logger.warning("Invalid timezone '%s', using UTC", tz_name)
		tz = pytz.UTC

	return datetime.now(tz).date()
