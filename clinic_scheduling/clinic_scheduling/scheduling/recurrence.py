"""
Recurrence Expansion

Materializes the concrete occurrences of a recurring master schedule.
The master itself stays the first bookable instance; expansion only
produces the additional, later occurrences. Nothing here persists.
"""

import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional

from .config import DEFAULT_CONFIG, SchedulingConfig
from .models import WEEKDAYS, RecurrenceType, Schedule, new_schedule_id
from .time_math import add_months, last_valid_day, today as current_date

logger = logging.getLogger(__name__)


def _next_weekday(current: date, recurrence_days: List[str]) -> date:
	"""
	Next date after `current` whose weekday is in `recurrence_days`.

	Wraps to the first listed weekday of the following week when none
	remain in the current week.
	"""
	day_numbers = sorted({WEEKDAYS.index(day) for day in recurrence_days})
	weekday = current.weekday()

	for number in day_numbers:
		if number > weekday:
			return current + timedelta(days=number - weekday)

	return current + timedelta(days=7 - weekday + day_numbers[0])


def next_occurrence_date(
	master: Schedule,
	current: date,
	step: int,
	policy: str = DEFAULT_CONFIG.month_end_policy
) -> Optional[date]:
	"""
	Date of the next occurrence.

	Args:
		master: recurring master schedule
		current: date of the previous occurrence (the master for step 1)
		step: 1-based number of the step being computed
		policy: month-end policy for monthly/yearly recurrence

	Returns:
		date, or None when the month-end policy skips this step

	Monthly and yearly dates are computed from the master's anchor date so
	a clamped short month does not drag later occurrences (Jan 31 -> Feb 28
	-> Mar 31, not Mar 28).
	"""
	interval = master.recurrence_interval or 1
	recurrence_type = master.recurrence_type

	if recurrence_type == RecurrenceType.WEEKLY:
		if master.recurrence_days:
			return _next_weekday(current, master.recurrence_days)
		return current + timedelta(days=7 * interval)

	if recurrence_type == RecurrenceType.MONTHLY:
		return add_months(master.start_date, step * interval, policy)

	if recurrence_type == RecurrenceType.YEARLY:
		return add_months(master.start_date, step * interval * 12, policy)

	# daily, custom and anything unknown step by days
	return current + timedelta(days=interval)


def _skipped_step_date(master: Schedule, step: int) -> date:
	"""Where a skipped monthly/yearly step would have landed, for bound checks."""
	months = (master.recurrence_interval or 1) * step
	if master.recurrence_type == RecurrenceType.YEARLY:
		months *= 12
	return last_valid_day(master.start_date, months)


def termination_date(
	master: Schedule,
	today: Optional[date] = None,
	config: SchedulingConfig = DEFAULT_CONFIG
) -> date:
	"""recurrence_end_date, or the safety horizon (one year from today by default)."""
	if master.recurrence_end_date:
		return master.recurrence_end_date

	today = today or current_date(config.timezone)
	return add_months(today, 12 * config.recurrence_horizon_years)


def build_occurrence(master: Schedule, occurrence_date: date, index: int) -> Schedule:
	"""
	Copy of the master shifted to `occurrence_date`.

	Keeps the master's date span, clears recurrence settings and links the
	copy back to its master.
	"""
	span = master.end_date - master.start_date

	return replace(
		master,
		id=new_schedule_id(),
		start_date=occurrence_date,
		end_date=occurrence_date + span,
		is_recurring=False,
		recurrence_type=None,
		recurrence_interval=None,
		recurrence_days=[],
		recurrence_end_date=None,
		max_occurrences=None,
		parent_schedule_id=master.id,
		occurrence_index=index,
		tags=list(master.tags),
		metadata=dict(master.metadata),
	)


def expand_occurrences(
	master: Schedule,
	today: Optional[date] = None,
	config: SchedulingConfig = DEFAULT_CONFIG
) -> List[Schedule]:
	"""
	Expands a recurring master into its future occurrences.

	Args:
		master: persisted recurring schedule (its id becomes parent_schedule_id)
		today: reference date for the default horizon (defaults to today in config.timezone)
		config: ceilings and month-end policy

	Returns:
		list[Schedule]: occurrences in ascending date order, occurrence_index 1..N

	Algorithm:
		1. Bound by recurrence_end_date or the one-year horizon
		2. Bound by max_occurrences or the configured ceiling (365)
		3. Step per recurrence type until a bound is reached

	Both bounds are always finite, so expansion always terminates.
	Degenerate configurations simply yield few or no occurrences.
	"""
	if not master.is_recurring or not master.recurrence_type:
		return []

	bound = termination_date(master, today, config)
	limit = master.max_occurrences or config.max_occurrences
	policy = config.month_end_policy

	occurrences: List[Schedule] = []
	current = master.start_date
	step = 0

	while len(occurrences) < limit:
		step += 1
		next_date = next_occurrence_date(master, current, step, policy)

		if next_date is None:
			# Month without the anchor day under the "skip" policy
			if _skipped_step_date(master, step) > bound:
				break
			continue

		if next_date > bound:
			break

		occurrences.append(build_occurrence(master, next_date, len(occurrences) + 1))
		current = next_date

	logger.debug(
		"Expanded schedule %s (%s) into %d occurrence(s)",
		master.id, master.recurrence_type.value, len(occurrences)
	)

	return occurrences
