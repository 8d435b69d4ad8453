"""
Tests for scheduling/slots.py

Tests discrete slot generation inside a working window.
"""

import unittest

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import ValidationError
from clinic_scheduling.clinic_scheduling.scheduling.slots import generate_slots
from clinic_scheduling.clinic_scheduling.scheduling.time_math import to_minutes


class TestSlots(unittest.TestCase):
	"""Tests for generate_slots."""

	def test_contiguous_slots(self):
		"""Test that a zero break packs slots back to back."""
		slots = list(generate_slots("09:00", "11:00", 30))

		self.assertEqual(
			[(slot["start_time"], slot["end_time"]) for slot in slots],
			[("09:00", "09:30"), ("09:30", "10:00"), ("10:00", "10:30"), ("10:30", "11:00")]
		)
		self.assertTrue(all(slot["duration"] == 30 for slot in slots))

	def test_slots_with_break(self):
		"""Test that the break is inserted between slots."""
		slots = list(generate_slots("09:00", "10:00", 20, 10))

		self.assertEqual(
			[(slot["start_time"], slot["end_time"]) for slot in slots],
			[("09:00", "09:20"), ("09:30", "09:50")]
		)

	def test_last_partial_slot_is_dropped(self):
		"""Test that no slot runs past the window end."""
		slots = list(generate_slots("09:00", "10:10", 30))

		self.assertEqual(len(slots), 2)
		self.assertEqual(slots[-1]["end_time"], "10:00")

	def test_window_shorter_than_slot(self):
		self.assertEqual(list(generate_slots("09:00", "09:20", 30)), [])

	def test_packing_properties(self):
		"""Slots are ordered, non-overlapping and inside the window."""
		for duration, gap in ((15, 0), (25, 5), (45, 15), (60, 0)):
			slots = list(generate_slots("08:10", "17:35", duration, gap))
			bounds = [(to_minutes(s["start_time"]), to_minutes(s["end_time"])) for s in slots]

			self.assertGreater(len(bounds), 0)
			self.assertEqual(bounds[0][0], to_minutes("08:10"))
			for (start, end), (next_start, _next_end) in zip(bounds, bounds[1:]):
				self.assertEqual(end - start, duration)
				self.assertEqual(next_start - end, gap)
			self.assertLessEqual(bounds[-1][1], to_minutes("17:35"))
			# one more slot would not have fit
			self.assertGreater(bounds[-1][1] + gap + duration, to_minutes("17:35"))

	def test_restartable(self):
		"""Test that each call yields the same sequence from the start."""
		first = list(generate_slots("09:00", "12:00", 45, 5))
		second = list(generate_slots("09:00", "12:00", 45, 5))

		self.assertEqual(first, second)

	def test_rejects_non_positive_duration(self):
		with self.assertRaises(ValidationError):
			generate_slots("09:00", "10:00", 0)
		with self.assertRaises(ValidationError):
			generate_slots("09:00", "10:00", -15)

	def test_rejects_negative_break(self):
		with self.assertRaises(ValidationError):
			generate_slots("09:00", "10:00", 30, -5)

	def test_rejects_invalid_times(self):
		with self.assertRaises(ValidationError):
			generate_slots("9am", "10:00", 30)


if __name__ == "__main__":
	unittest.main()
