"""
Overlap Detection Service

Detects scheduling conflicts between a candidate schedule and existing
schedules of the same resource, considering:
- schedule type (a room booking never conflicts with doctor availability)
- resource dimension (user / room / equipment, optionally scoped by clinic)
- closed date-range overlap, then half-open time-of-day overlap
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import RESOURCE_DIMENSIONS, Schedule
from .store import ScheduleStore
from .time_math import to_minutes


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
	"""
	Half-open overlap test for [start_a, end_a) and [start_b, end_b).

	Touching intervals (one ends where the other starts) do not overlap.
	"""
	return not (end_a <= start_b or start_a >= end_b)


def dates_overlap(range_a: Tuple[date, date], range_b: Tuple[date, date]) -> bool:
	"""Closed-interval overlap of two inclusive date ranges."""
	return range_a[0] <= range_b[1] and range_a[1] >= range_b[0]


def time_window(schedule: Schedule) -> Tuple[int, int]:
	"""Minute interval [start, end) of a schedule's daily window."""
	return to_minutes(schedule.start_time), to_minutes(schedule.end_time)


def check_conflicts(
	store: ScheduleStore,
	candidate: Schedule,
	exclude_id: Optional[str] = None,
	statuses: Sequence[str] = ("active", "draft")
) -> Dict[str, Any]:
	"""
	Finds existing schedules that collide with a candidate.

	Args:
		store: ScheduleStore to query
		candidate: schedule to check (does not need to be persisted)
		exclude_id: schedule id to ignore (the candidate itself, on updates)
		statuses: statuses that reserve time

	Returns:
		dict: {
			"has_conflicts": bool,
			"conflicts": [Schedule, ...]
		}

	Algorithm:
		1. Build the resource filter from the candidate's present fields
		2. No resource dimension at all -> nothing can conflict
		3. Query the store for same-type records with overlapping date ranges
		4. Drop exclude_id
		5. Keep records whose daily time windows overlap (half-open)
	"""
	resource_filter = candidate.resource_filter()

	# Ambiguous candidates never conflict
	if not any(key in resource_filter for key in RESOURCE_DIMENSIONS):
		return {"has_conflicts": False, "conflicts": []}

	existing = store.find_overlapping_candidates(
		candidate.schedule_type,
		resource_filter,
		(candidate.start_date, candidate.end_date),
		statuses
	)

	start, end = time_window(candidate)
	conflicts: List[Schedule] = []

	for schedule in existing:
		if exclude_id and schedule.id == exclude_id:
			continue

		# Stores only promise a coarse date filter
		if not dates_overlap(
			(schedule.start_date, schedule.end_date),
			(candidate.start_date, candidate.end_date)
		):
			continue

		if intervals_overlap(start, end, *time_window(schedule)):
			conflicts.append(schedule)

	return {
		"has_conflicts": bool(conflicts),
		"conflicts": conflicts
	}


def describe_conflicts(candidate: Schedule, conflicts: List[Schedule]) -> Dict[str, Any]:
	"""Structured detail for ConflictError: which resource, which window, which schedules."""
	return {
		"schedule_type": candidate.schedule_type.value,
		"resource": candidate.resource_filter(),
		"window": {
			"start_date": candidate.start_date.isoformat(),
			"end_date": candidate.end_date.isoformat(),
			"start_time": candidate.start_time,
			"end_time": candidate.end_time,
		},
		"conflicting_schedules": [
			{
				"id": schedule.id,
				"title": schedule.title,
				"start_date": schedule.start_date.isoformat(),
				"end_date": schedule.end_date.isoformat(),
				"start_time": schedule.start_time,
				"end_time": schedule.end_time,
			}
			for schedule in conflicts
		],
	}
