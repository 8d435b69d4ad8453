"""
Slot Generation Service

Cuts a working window into discrete bookable slots for UI display.
Slots never overlap, never run past the window end and come out in
ascending time order.
"""

from typing import Any, Dict, Iterator

from .exceptions import ValidationError
from .time_math import from_minutes, to_minutes


def generate_slots(
	start_time: str,
	end_time: str,
	slot_duration: int,
	break_duration: int = 0
) -> Iterator[Dict[str, Any]]:
	"""
	Generates slots inside a working window.

	Args:
		start_time: window start "HH:MM"
		end_time: window end "HH:MM"
		slot_duration: minutes per slot (> 0)
		break_duration: minutes between consecutive slots (>= 0)

	Returns:
		Iterator of dicts: [
			{"start_time": "09:00", "end_time": "09:30", "duration": 30},
			...
		]

	Algorithm:
		1. Start at start_time
		2. Emit a slot while current + slot_duration <= end_time
		3. Advance by slot_duration + break_duration

	Every call returns a fresh generator, so the sequence can be restarted.

	Raises:
		ValidationError: slot_duration <= 0 or break_duration < 0
	"""
	if slot_duration is None or slot_duration <= 0:
		raise ValidationError(
			"Slot duration must be a positive number of minutes",
			{"slot_duration": slot_duration}
		)
	if break_duration is None or break_duration < 0:
		raise ValidationError(
			"Break duration must not be negative",
			{"break_duration": break_duration}
		)

	# Parse eagerly so bad input fails at the call site, not on first next()
	start = to_minutes(start_time)
	end = to_minutes(end_time)

	return _iter_slots(start, end, slot_duration, break_duration)


def _iter_slots(start: int, end: int, slot_duration: int, break_duration: int) -> Iterator[Dict[str, Any]]:
	current = start

	while current + slot_duration <= end:
		slot_end = current + slot_duration
		yield {
			"start_time": from_minutes(current),
			"end_time": from_minutes(slot_end),
			"duration": slot_duration,
		}
		current = slot_end + break_duration
