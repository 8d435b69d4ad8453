"""
Schedule Validation

Normalizes raw input (API payloads, DocType rows) into typed values and
checks Schedule invariants before anything is written.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .exceptions import ValidationError
from .models import (
	PRIORITIES,
	RESOURCE_DIMENSIONS,
	RESOURCE_FIELDS,
	WEEKDAYS,
	ApprovalStatus,
	RecurrenceType,
	Schedule,
	ScheduleStatus,
	ScheduleType,
)
from .time_math import normalize_time, parse_date, to_minutes

DATE_FIELDS = ("start_date", "end_date", "recurrence_end_date")
TIME_FIELDS = ("start_time", "end_time")
INT_FIELDS = (
	"slot_duration",
	"break_duration",
	"max_capacity",
	"recurrence_interval",
	"max_occurrences",
	"occurrence_index",
)
BOOL_FIELDS = (
	"is_recurring",
	"is_available",
	"is_blocked",
	"allow_overlap",
	"requires_approval",
	"is_active",
)
ENUM_FIELDS: Dict[str, Type[Enum]] = {
	"schedule_type": ScheduleType,
	"recurrence_type": RecurrenceType,
	"status": ScheduleStatus,
	"approval_status": ApprovalStatus,
}
REQUIRED_FIELDS = ("schedule_type", "title", "start_date", "end_date", "start_time", "end_time")
RECURRENCE_FIELDS = (
	"recurrence_type",
	"recurrence_interval",
	"recurrence_days",
	"recurrence_end_date",
	"max_occurrences",
)

# Range limits (inclusive) for numeric fields when they are set
LIMITS = {
	"slot_duration": (5, 480),
	"break_duration": (0, 60),
	"max_capacity": (1, 1000),
	"recurrence_interval": (1, 365),
	"max_occurrences": (1, 1000),
}


def _is_blank(value: Any) -> bool:
	return value is None or (isinstance(value, str) and not value.strip())


def _to_enum(enum_cls: Type[Enum], value: Any, field_name: str) -> Optional[Enum]:
	if _is_blank(value):
		return None
	if isinstance(value, enum_cls):
		return value
	try:
		return enum_cls(str(value).strip().lower())
	except ValueError:
		allowed = ", ".join(member.value for member in enum_cls)
		raise ValidationError(
			f"Invalid {field_name} '{value}'. Allowed: {allowed}",
			{"field": field_name, "value": value}
		)


def _to_int(value: Any, field_name: str) -> Optional[int]:
	if _is_blank(value):
		return None
	if isinstance(value, bool):
		raise ValidationError(f"{field_name} must be a number", {"field": field_name})
	try:
		number = float(value)
	except (TypeError, ValueError):
		raise ValidationError(f"{field_name} must be a number", {"field": field_name, "value": value})
	if not number.is_integer():
		raise ValidationError(f"{field_name} must be a whole number", {"field": field_name, "value": value})
	return int(number)


def _to_bool(value: Any) -> bool:
	if isinstance(value, str):
		return value.strip().lower() in ("1", "true", "yes", "on")
	return bool(value)


def _to_list(value: Any) -> List[str]:
	if _is_blank(value):
		return []
	if isinstance(value, str):
		value = value.split(",")
	return [str(item).strip() for item in value if str(item).strip()]


def _to_metadata(value: Any) -> Dict[str, str]:
	"""String-to-string map; accepts a dict or its JSON encoding."""
	if _is_blank(value):
		return {}
	if isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError:
			raise ValidationError("metadata must be a JSON object", {"field": "metadata", "value": value})
	if not isinstance(value, dict):
		raise ValidationError("metadata must be an object", {"field": "metadata"})
	return {str(k): str(v) for k, v in value.items()}


def normalize_fields(data: Dict[str, Any]) -> Dict[str, Any]:
	"""
	Coerce raw values into the types Schedule expects.

	Only keys present in `data` are returned, so this also works for patches.

	Raises:
		ValidationError: unknown fields or values that cannot be coerced
	"""
	known = set(Schedule.field_names())
	unknown = sorted(set(data) - known)
	if unknown:
		raise ValidationError(
			f"Unknown schedule field(s): {', '.join(unknown)}",
			{"fields": unknown}
		)

	normalized: Dict[str, Any] = {}

	for key, value in data.items():
		if key in ENUM_FIELDS:
			normalized[key] = _to_enum(ENUM_FIELDS[key], value, key)
		elif key in DATE_FIELDS:
			normalized[key] = None if _is_blank(value) else parse_date(value, key)
		elif key in TIME_FIELDS:
			normalized[key] = None if _is_blank(value) else normalize_time(value)
		elif key in INT_FIELDS:
			normalized[key] = _to_int(value, key)
		elif key in BOOL_FIELDS:
			normalized[key] = _to_bool(value)
		elif key == "recurrence_days":
			normalized[key] = [day.lower() for day in _to_list(value)]
		elif key == "tags":
			normalized[key] = _to_list(value)
		elif key == "metadata":
			normalized[key] = _to_metadata(value)
		elif isinstance(value, str):
			normalized[key] = value.strip() or None
		else:
			normalized[key] = value

	# Ints that default to 0 on the record
	for key in ("slot_duration", "break_duration"):
		if key in normalized and normalized[key] is None:
			normalized[key] = 0

	return normalized


def build_schedule(data: Dict[str, Any], created_by: Optional[str] = None) -> Schedule:
	"""
	Build and validate a new Schedule from raw input.

	Applies creation defaults:
	- status "active", approval "pending" when requires_approval else "auto_approved"
	- recurrence fields cleared for non-recurring schedules

	Raises:
		ValidationError: on any invalid field or broken invariant
	"""
	values = normalize_fields(dict(data or {}))

	missing = [key for key in REQUIRED_FIELDS if values.get(key) in (None, "")]
	if missing:
		raise ValidationError(
			f"Missing required field(s): {', '.join(missing)}",
			{"fields": missing}
		)

	for key in ("slot_duration", "break_duration"):
		values.setdefault(key, 0)

	# A blocking entry is unavailable unless the caller says otherwise
	if values.get("is_available") is None:
		values["is_available"] = not values.get("is_blocked", False)

	values["status"] = values.get("status") or ScheduleStatus.ACTIVE
	values["approval_status"] = (
		ApprovalStatus.PENDING if values.get("requires_approval") else ApprovalStatus.AUTO_APPROVED
	)
	values["is_active"] = True
	values["deleted_at"] = None
	if created_by:
		values["created_by"] = created_by

	if not values.get("is_recurring"):
		for key in RECURRENCE_FIELDS:
			values.pop(key, None)

	values = {key: value for key, value in values.items() if value is not None}
	schedule = Schedule(**values)
	validate_schedule(schedule)
	return schedule


def validate_schedule(schedule: Schedule) -> None:
	"""
	Check Schedule invariants.

	Raises:
		ValidationError: first broken invariant, with structured details
	"""
	_validate_title(schedule)
	validate_window(schedule)
	_validate_durations(schedule)
	_validate_resource(schedule)
	_validate_flags(schedule)
	_validate_recurrence(schedule)


def _validate_title(schedule: Schedule) -> None:
	title = (schedule.title or "").strip()
	if not 2 <= len(title) <= 200:
		raise ValidationError("Title must be between 2 and 200 characters", {"field": "title"})


def validate_window(schedule: Schedule) -> None:
	"""start_date <= end_date and start_time < end_time."""
	if schedule.start_date > schedule.end_date:
		raise ValidationError(
			f"End date ({schedule.end_date}) must not be before start date ({schedule.start_date})",
			{"start_date": str(schedule.start_date), "end_date": str(schedule.end_date)}
		)

	if to_minutes(schedule.start_time) >= to_minutes(schedule.end_time):
		raise ValidationError(
			f"End time ({schedule.end_time}) must be after start time ({schedule.start_time})",
			{"start_time": schedule.start_time, "end_time": schedule.end_time}
		)


def _validate_durations(schedule: Schedule) -> None:
	for key, (low, high) in LIMITS.items():
		value = getattr(schedule, key)
		# 0 means "not configured" for slot_duration
		if value is None or (key == "slot_duration" and value == 0):
			continue
		if not low <= value <= high:
			raise ValidationError(
				f"{key} must be between {low} and {high}",
				{"field": key, "value": value}
			)


def _validate_resource(schedule: Schedule) -> None:
	"""Each schedule type binds exactly one resource field from its variant."""
	allowed = RESOURCE_FIELDS[schedule.schedule_type]
	present = [name for name in RESOURCE_DIMENSIONS if getattr(schedule, name)]

	invalid = [name for name in present if name not in allowed]
	if invalid:
		raise ValidationError(
			f"{schedule.schedule_type.value} schedules cannot reference {', '.join(invalid)}",
			{"schedule_type": schedule.schedule_type.value, "fields": invalid, "allowed": list(allowed)}
		)

	if len(present) != 1:
		raise ValidationError(
			f"{schedule.schedule_type.value} schedules need exactly one of: {', '.join(allowed)}",
			{"schedule_type": schedule.schedule_type.value, "allowed": list(allowed), "present": present}
		)


def _validate_flags(schedule: Schedule) -> None:
	if schedule.is_available and schedule.is_blocked:
		raise ValidationError(
			"A schedule cannot be both available and blocked",
			{"is_available": True, "is_blocked": True}
		)

	if schedule.priority not in PRIORITIES:
		raise ValidationError(
			f"Invalid priority '{schedule.priority}'. Allowed: {', '.join(PRIORITIES)}",
			{"field": "priority", "value": schedule.priority}
		)


def _validate_recurrence(schedule: Schedule) -> None:
	if not schedule.is_recurring:
		return

	if not schedule.recurrence_type:
		raise ValidationError(
			"Recurrence type is required for recurring schedules",
			{"field": "recurrence_type"}
		)

	if schedule.recurrence_type == RecurrenceType.CUSTOM and not schedule.recurrence_interval:
		raise ValidationError(
			"Recurrence interval is required for custom recurrence",
			{"field": "recurrence_interval"}
		)

	if schedule.recurrence_end_date and schedule.max_occurrences:
		raise ValidationError(
			"Cannot specify both recurrence end date and max occurrences",
			{"fields": ["recurrence_end_date", "max_occurrences"]}
		)

	if schedule.recurrence_end_date and schedule.recurrence_end_date < schedule.start_date:
		raise ValidationError(
			"Recurrence end date must not be before the start date",
			{"recurrence_end_date": str(schedule.recurrence_end_date)}
		)

	invalid_days = [day for day in schedule.recurrence_days if day not in WEEKDAYS]
	if invalid_days:
		raise ValidationError(
			f"Invalid recurrence day(s): {', '.join(invalid_days)}",
			{"field": "recurrence_days", "invalid": invalid_days}
		)

