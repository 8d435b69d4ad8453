"""
Tests for scheduling/time_math.py

Tests wall-clock conversion, date parsing and month arithmetic.
"""

import unittest
from datetime import date, datetime, time, timedelta

from clinic_scheduling.clinic_scheduling.scheduling.config import MONTH_END_CLAMP, MONTH_END_SKIP
from clinic_scheduling.clinic_scheduling.scheduling.exceptions import (
	InvalidTimeFormat,
	ValidationError,
)
from clinic_scheduling.clinic_scheduling.scheduling.time_math import (
	add_months,
	from_minutes,
	normalize_time,
	parse_date,
	to_minutes,
	today,
)


class TestTimeConversion(unittest.TestCase):
	"""Tests for to_minutes / from_minutes."""

	def test_to_minutes(self):
		self.assertEqual(to_minutes("00:00"), 0)
		self.assertEqual(to_minutes("09:30"), 570)
		self.assertEqual(to_minutes("9:05"), 545)
		self.assertEqual(to_minutes("23:59"), 1439)

	def test_from_minutes_is_zero_padded(self):
		self.assertEqual(from_minutes(0), "00:00")
		self.assertEqual(from_minutes(545), "09:05")
		self.assertEqual(from_minutes(1439), "23:59")

	def test_round_trip_across_the_day(self):
		"""Every minute of the day survives from_minutes -> to_minutes."""
		for minutes in range(0, 1440, 7):
			self.assertEqual(to_minutes(from_minutes(minutes)), minutes)

	def test_rejects_malformed_strings(self):
		for value in ("", "9", "09-30", "09:3", "0930", "ab:cd", "09:30:00", "109:00"):
			with self.assertRaises(InvalidTimeFormat, msg=value):
				to_minutes(value)

	def test_rejects_out_of_range_components(self):
		with self.assertRaises(InvalidTimeFormat):
			to_minutes("10:60")
		with self.assertRaises(InvalidTimeFormat):
			to_minutes("24:00")

	def test_invalid_time_is_a_validation_error(self):
		"""Callers catching ValidationError also catch bad times."""
		with self.assertRaises(ValidationError):
			to_minutes("25:00")

	def test_from_minutes_rejects_values_outside_a_day(self):
		with self.assertRaises(InvalidTimeFormat):
			from_minutes(-1)
		with self.assertRaises(InvalidTimeFormat):
			from_minutes(1440)

	def test_normalize_time_from_storage_types(self):
		self.assertEqual(normalize_time(timedelta(hours=9, minutes=15)), "09:15")
		self.assertEqual(normalize_time(time(14, 5)), "14:05")
		self.assertEqual(normalize_time("08:45:00"), "08:45")
		self.assertEqual(normalize_time("8:45"), "08:45")


class TestDates(unittest.TestCase):
	"""Tests for parse_date, add_months and today."""

	def test_parse_date(self):
		self.assertEqual(parse_date("2026-03-02"), date(2026, 3, 2))
		self.assertEqual(parse_date(date(2026, 3, 2)), date(2026, 3, 2))
		self.assertEqual(parse_date(datetime(2026, 3, 2, 10, 30)), date(2026, 3, 2))

	def test_parse_date_rejects_garbage(self):
		with self.assertRaises(ValidationError) as ctx:
			parse_date("02/03/2026", "start_date")
		self.assertEqual(ctx.exception.details["field"], "start_date")

	def test_add_months_regular(self):
		self.assertEqual(add_months(date(2026, 1, 15), 1), date(2026, 2, 15))
		self.assertEqual(add_months(date(2026, 11, 15), 3), date(2027, 2, 15))
		self.assertEqual(add_months(date(2026, 3, 15), -3), date(2025, 12, 15))

	def test_add_months_clamps_month_end(self):
		self.assertEqual(add_months(date(2026, 1, 31), 1, MONTH_END_CLAMP), date(2026, 2, 28))
		self.assertEqual(add_months(date(2028, 1, 31), 1, MONTH_END_CLAMP), date(2028, 2, 29))
		self.assertEqual(add_months(date(2026, 1, 31), 3, MONTH_END_CLAMP), date(2026, 4, 30))

	def test_add_months_skip_returns_none(self):
		self.assertIsNone(add_months(date(2026, 1, 31), 1, MONTH_END_SKIP))
		self.assertEqual(add_months(date(2026, 1, 31), 2, MONTH_END_SKIP), date(2026, 3, 31))

	def test_today_falls_back_to_utc_for_unknown_zone(self):
		self.assertIsInstance(today("Not/AZone"), date)
		self.assertIsInstance(today("America/Bogota"), date)


if __name__ == "__main__":
	unittest.main()
