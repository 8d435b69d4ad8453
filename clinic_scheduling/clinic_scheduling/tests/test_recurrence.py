"""
Tests for scheduling/recurrence.py

Tests occurrence expansion for every recurrence type, the month-end
policies and the termination bounds.
"""

import unittest
from datetime import date, timedelta

from clinic_scheduling.clinic_scheduling.scheduling.config import SchedulingConfig
from clinic_scheduling.clinic_scheduling.scheduling.models import RecurrenceType, Schedule, ScheduleType
from clinic_scheduling.clinic_scheduling.scheduling.recurrence import (
	expand_occurrences,
	next_occurrence_date,
	termination_date,
)

TODAY = date(2026, 3, 1)


def make_master(**overrides) -> Schedule:
	# 2026-03-02 is a Monday
	values = {
		"id": "master-1",
		"schedule_type": ScheduleType.DOCTOR_AVAILABILITY,
		"title": "Weekday clinic",
		"user_id": "dr-house",
		"start_date": date(2026, 3, 2),
		"end_date": date(2026, 3, 2),
		"start_time": "09:00",
		"end_time": "12:00",
		"is_recurring": True,
		"recurrence_type": RecurrenceType.DAILY,
	}
	values.update(overrides)
	return Schedule(**values)


def dates_of(occurrences):
	return [occurrence.start_date for occurrence in occurrences]


class TestRecurrenceTypes(unittest.TestCase):
	"""Tests for date stepping per recurrence type."""

	def test_weekly_span_is_shifted_by_a_week(self):
		"""Mon-Fri master repeated weekly keeps its Mon-Fri span."""
		master = make_master(
			end_date=date(2026, 3, 6),
			recurrence_type=RecurrenceType.WEEKLY,
			max_occurrences=4
		)

		occurrences = expand_occurrences(master, today=TODAY)

		self.assertEqual(
			dates_of(occurrences),
			[date(2026, 3, 9), date(2026, 3, 16), date(2026, 3, 23), date(2026, 3, 30)]
		)
		for occurrence in occurrences:
			self.assertEqual(occurrence.end_date - occurrence.start_date, timedelta(days=4))
			self.assertEqual(occurrence.start_date.weekday(), 0)

	def test_weekly_interval_without_days(self):
		master = make_master(recurrence_type=RecurrenceType.WEEKLY, recurrence_interval=2, max_occurrences=2)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 3, 16), date(2026, 3, 30)]
		)

	def test_weekly_with_days(self):
		master = make_master(
			recurrence_type=RecurrenceType.WEEKLY,
			recurrence_days=["monday", "wednesday"],
			max_occurrences=3
		)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 3, 4), date(2026, 3, 9), date(2026, 3, 11)]
		)

	def test_weekly_days_wrap_across_sunday(self):
		"""Friday master with Friday+Monday days continues on the next Monday."""
		master = make_master(
			start_date=date(2026, 3, 6),
			end_date=date(2026, 3, 6),
			recurrence_type=RecurrenceType.WEEKLY,
			recurrence_days=["friday", "monday"],
			max_occurrences=3
		)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 3, 9), date(2026, 3, 13), date(2026, 3, 16)]
		)

	def test_daily_until_end_date_is_inclusive(self):
		master = make_master(recurrence_interval=2, recurrence_end_date=date(2026, 3, 10))

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 3, 4), date(2026, 3, 6), date(2026, 3, 8), date(2026, 3, 10)]
		)

	def test_custom_steps_by_interval_days(self):
		master = make_master(recurrence_type=RecurrenceType.CUSTOM, recurrence_interval=3, max_occurrences=2)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 3, 5), date(2026, 3, 8)]
		)

	def test_monthly_clamps_month_end_without_drift(self):
		"""Jan 31 -> Feb 28 -> Mar 31 -> Apr 30 -> May 31."""
		master = make_master(
			start_date=date(2026, 1, 31),
			end_date=date(2026, 1, 31),
			recurrence_type=RecurrenceType.MONTHLY,
			max_occurrences=4
		)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY)),
			[date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30), date(2026, 5, 31)]
		)

	def test_monthly_skip_policy(self):
		master = make_master(
			start_date=date(2026, 1, 31),
			end_date=date(2026, 1, 31),
			recurrence_type=RecurrenceType.MONTHLY,
			max_occurrences=4
		)
		config = SchedulingConfig(month_end_policy="skip")

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY, config=config)),
			[date(2026, 3, 31), date(2026, 5, 31), date(2026, 7, 31), date(2026, 8, 31)]
		)

	def test_yearly_leap_day(self):
		master = make_master(
			start_date=date(2028, 2, 29),
			end_date=date(2028, 2, 29),
			recurrence_type=RecurrenceType.YEARLY,
			max_occurrences=2
		)
		config = SchedulingConfig(recurrence_horizon_years=5)

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY, config=config)),
			[date(2029, 2, 28), date(2030, 2, 28)]
		)

	def test_yearly_leap_day_skip_stops_at_end_date(self):
		master = make_master(
			start_date=date(2028, 2, 29),
			end_date=date(2028, 2, 29),
			recurrence_type=RecurrenceType.YEARLY,
			recurrence_end_date=date(2033, 1, 1)
		)
		config = SchedulingConfig(month_end_policy="skip")

		self.assertEqual(
			dates_of(expand_occurrences(master, today=TODAY, config=config)),
			[date(2032, 2, 29)]
		)

	def test_next_occurrence_date_unknown_type_steps_daily(self):
		master = make_master(recurrence_type=None)
		self.assertEqual(next_occurrence_date(master, date(2026, 3, 2), 1), date(2026, 3, 3))


class TestTermination(unittest.TestCase):
	"""Tests for the expansion bounds."""

	def test_default_horizon_is_one_year(self):
		master = make_master()

		occurrences = expand_occurrences(master, today=TODAY)

		self.assertEqual(termination_date(master, TODAY), date(2027, 3, 1))
		self.assertEqual(len(occurrences), 364)
		self.assertEqual(occurrences[-1].start_date, date(2027, 3, 1))

	def test_configured_ceiling_caps_count(self):
		master = make_master(recurrence_end_date=date(2030, 1, 1))
		config = SchedulingConfig(max_occurrences=10)

		self.assertEqual(len(expand_occurrences(master, today=TODAY, config=config)), 10)

	def test_max_occurrences_wins_over_horizon(self):
		master = make_master(max_occurrences=5)
		self.assertEqual(len(expand_occurrences(master, today=TODAY)), 5)

	def test_end_date_before_first_step_yields_nothing(self):
		master = make_master(recurrence_end_date=date(2026, 3, 2))
		self.assertEqual(expand_occurrences(master, today=TODAY), [])

	def test_non_recurring_master_yields_nothing(self):
		master = make_master(is_recurring=False, recurrence_type=None)
		self.assertEqual(expand_occurrences(master, today=TODAY), [])


class TestOccurrenceRecords(unittest.TestCase):
	"""Tests for the fields of generated occurrences."""

	def test_occurrence_fields(self):
		master = make_master(
			recurrence_type=RecurrenceType.WEEKLY,
			recurrence_days=["tuesday"],
			max_occurrences=3,
			tags=["cardiology"],
			metadata={"source": "import"}
		)

		occurrences = expand_occurrences(master, today=TODAY)

		self.assertEqual([o.occurrence_index for o in occurrences], [1, 2, 3])
		self.assertEqual(len({o.id for o in occurrences} | {master.id}), 4)
		for occurrence in occurrences:
			self.assertEqual(occurrence.parent_schedule_id, "master-1")
			self.assertTrue(occurrence.is_occurrence)
			self.assertFalse(occurrence.is_recurring)
			self.assertIsNone(occurrence.recurrence_type)
			self.assertEqual(occurrence.recurrence_days, [])
			self.assertIsNone(occurrence.max_occurrences)
			self.assertEqual((occurrence.start_time, occurrence.end_time), ("09:00", "12:00"))
			self.assertEqual(occurrence.user_id, "dr-house")
			self.assertEqual(occurrence.tags, ["cardiology"])

		# Copies, not shared references
		occurrences[0].tags.append("changed")
		self.assertEqual(master.tags, ["cardiology"])


if __name__ == "__main__":
	unittest.main()
