"""
Tests for scheduling/availability.py

Tests slot availability: availability window minus busy appointments.
"""

import unittest
from datetime import date, datetime

from clinic_scheduling.clinic_scheduling.scheduling.availability import (
	appointment_interval,
	get_available_slots,
)
from clinic_scheduling.clinic_scheduling.scheduling.config import SchedulingConfig
from clinic_scheduling.clinic_scheduling.scheduling.models import (
	Appointment,
	Schedule,
	ScheduleStatus,
	ScheduleType,
)
from clinic_scheduling.clinic_scheduling.scheduling.store import (
	InMemoryAppointmentStore,
	InMemoryScheduleStore,
)

DAY = date(2026, 3, 2)


def make_window(**overrides) -> Schedule:
	values = {
		"schedule_type": ScheduleType.DOCTOR_AVAILABILITY,
		"title": "Morning clinic",
		"user_id": "dr-house",
		"clinic_id": "clinic-1",
		"start_date": date(2026, 3, 1),
		"end_date": date(2026, 3, 31),
		"start_time": "09:00",
		"end_time": "12:00",
		"slot_duration": 30,
	}
	values.update(overrides)
	return Schedule(**values)


def make_appointment(time_str, duration=30, **overrides) -> Appointment:
	values = {
		"doctor_id": "dr-house",
		"clinic_id": "clinic-1",
		"appointment_date": DAY,
		"appointment_time": time_str,
		"duration_minutes": duration,
		"status": "scheduled",
	}
	values.update(overrides)
	return Appointment(**values)


def availability_map(report):
	return {slot["start_time"]: slot["is_available"] for slot in report["available_slots"]}


class TestAvailability(unittest.TestCase):
	"""Tests for get_available_slots."""

	def setUp(self):
		self.schedules = InMemoryScheduleStore([make_window()])
		self.appointments = InMemoryAppointmentStore()

	def resolve(self, **kwargs):
		params = {
			"resource_id": "dr-house",
			"clinic_id": "clinic-1",
			"target_date": DAY,
		}
		params.update(kwargs)
		return get_available_slots(self.schedules, self.appointments, **params)

	def test_all_slots_free(self):
		report = self.resolve()

		self.assertEqual(report["date"], "2026-03-02")
		self.assertEqual(report["total_slots"], 6)
		self.assertEqual(report["available_count"], 6)
		self.assertEqual(report["available_slots"][0], {
			"start_time": "09:00",
			"end_time": "09:30",
			"duration": 30,
			"is_available": True,
		})

	def test_busy_appointments_are_subtracted(self):
		"""A 30 min appointment blocks one slot; a misaligned one blocks two."""
		self.appointments.add(make_appointment("09:30", 30))
		self.appointments.add(make_appointment("10:15", None, status="confirmed"))

		report = self.resolve()

		self.assertEqual(availability_map(report), {
			"09:00": True,
			"09:30": False,
			"10:00": False,
			"10:30": False,
			"11:00": True,
			"11:30": True,
		})
		self.assertEqual(report["total_slots"], 6)
		self.assertEqual(report["available_count"], 3)

	def test_touching_appointment_does_not_block_next_slot(self):
		self.appointments.add(make_appointment("09:00", 30))

		slots = availability_map(self.resolve())

		self.assertFalse(slots["09:00"])
		self.assertTrue(slots["09:30"])

	def test_non_busy_and_deleted_appointments_are_ignored(self):
		self.appointments.add(make_appointment("09:00", status="cancelled"))
		self.appointments.add(make_appointment("09:30", deleted_at=datetime(2026, 3, 1, 8, 0)))
		self.appointments.add(make_appointment("10:00", doctor_id="dr-wilson"))
		self.appointments.add(make_appointment("10:30", appointment_date=date(2026, 3, 3)))

		self.assertEqual(self.resolve()["available_count"], 6)

	def test_missing_window_returns_empty_report(self):
		report = self.resolve(target_date="2026-04-15")

		self.assertEqual(report, {
			"date": "2026-04-15",
			"available_slots": [],
			"total_slots": 0,
			"available_count": 0,
		})

	def test_other_clinic_has_no_window(self):
		self.assertEqual(self.resolve(clinic_id="clinic-2")["total_slots"], 0)

	def test_any_clinic_when_clinic_not_given(self):
		self.assertEqual(self.resolve(clinic_id=None)["total_slots"], 6)

	def test_inactive_or_blocked_windows_are_ignored(self):
		window = self.schedules.find_availability_window("dr-house", "clinic-1", DAY)

		self.schedules.update(window.id, {"status": ScheduleStatus.CANCELLED})
		self.assertEqual(self.resolve()["total_slots"], 0)

		self.schedules.update(window.id, {"status": ScheduleStatus.ACTIVE, "is_available": False})
		self.assertEqual(self.resolve()["total_slots"], 0)

	def test_caller_overrides_slot_duration(self):
		report = self.resolve(slot_duration=60)

		self.assertEqual(report["total_slots"], 3)
		self.assertEqual(report["available_slots"][1]["start_time"], "10:00")

	def test_window_break_duration_is_used(self):
		self.schedules = InMemoryScheduleStore([make_window(slot_duration=20, break_duration=10)])

		report = self.resolve()

		self.assertEqual(report["total_slots"], 6)
		self.assertEqual(report["available_slots"][1]["start_time"], "09:30")
		self.assertEqual(report["available_slots"][1]["end_time"], "09:50")

	def test_window_without_slot_duration_uses_config_default(self):
		self.schedules = InMemoryScheduleStore([make_window(slot_duration=0)])

		report = self.resolve(config=SchedulingConfig(default_slot_duration=45))

		self.assertEqual(report["total_slots"], 4)

	def test_default_appointment_duration(self):
		appointment = make_appointment("10:00", None)

		self.assertEqual(appointment_interval(appointment), (600, 630))
		self.assertEqual(appointment_interval(appointment, 50), (600, 650))


if __name__ == "__main__":
	unittest.main()
