"""
Availability Service

Slot-level availability for a doctor on one date, computed as:
- the doctor's active availability window covering the date
- cut into slots (slots.py)
- minus busy appointments (half-open overlap, as in overlap.py)

This is a read-time view for booking UIs. A doctor without a configured
window simply has no slots; that is not an error.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, SchedulingConfig
from .models import Appointment
from .overlap import intervals_overlap
from .slots import generate_slots
from .store import AppointmentStore, ScheduleStore
from .time_math import parse_date, to_minutes

logger = logging.getLogger(__name__)


def _empty_report(target_date: date) -> Dict[str, Any]:
	return {
		"date": target_date.isoformat(),
		"available_slots": [],
		"total_slots": 0,
		"available_count": 0,
	}


def appointment_interval(
	appointment: Appointment,
	default_duration: int = DEFAULT_CONFIG.default_appointment_duration
) -> Tuple[int, int]:
	"""Minute interval [start, start + duration) occupied by an appointment."""
	start = to_minutes(appointment.appointment_time)
	return start, start + (appointment.duration_minutes or default_duration)


def get_available_slots(
	schedule_store: ScheduleStore,
	appointment_store: AppointmentStore,
	resource_id: str,
	clinic_id: Optional[str],
	target_date: Union[date, str],
	slot_duration: Optional[int] = None,
	config: SchedulingConfig = DEFAULT_CONFIG
) -> Dict[str, Any]:
	"""
	Available slots for a doctor on a date.

	Args:
		schedule_store: where the availability window lives
		appointment_store: source of busy appointments
		resource_id: doctor (user) id
		clinic_id: clinic id, or None for any clinic
		target_date: date object or "YYYY-MM-DD"
		slot_duration: overrides the window's own slot duration

	Returns:
		dict: {
			"date": "2026-01-15",
			"available_slots": [
				{"start_time": "09:00", "end_time": "09:30", "duration": 30, "is_available": True},
				...
			],
			"total_slots": int,
			"available_count": int
		}

	Algorithm:
		1. Find the active doctor_availability window covering the date
		2. Generate slots with the window's slot/break duration
		3. Load busy appointments for the doctor on that date
		4. A slot is unavailable iff it overlaps any appointment
	"""
	target_date = parse_date(target_date, "date")

	# Both reads are independent; they run one after the other because
	# database connections are request-local in the Frappe binding.
	window = schedule_store.find_availability_window(resource_id, clinic_id, target_date)
	if window is None:
		logger.debug("No availability window for %s on %s", resource_id, target_date)
		return _empty_report(target_date)

	appointments = appointment_store.find_busy_appointments(resource_id, clinic_id, target_date)

	duration = slot_duration or window.slot_duration or config.default_slot_duration
	busy = [
		appointment_interval(appointment, config.default_appointment_duration)
		for appointment in appointments
	]

	slots: List[Dict[str, Any]] = []
	for slot in generate_slots(window.start_time, window.end_time, duration, window.break_duration or 0):
		start, end = to_minutes(slot["start_time"]), to_minutes(slot["end_time"])
		slot["is_available"] = not any(
			intervals_overlap(start, end, busy_start, busy_end)
			for busy_start, busy_end in busy
		)
		slots.append(slot)

	return {
		"date": target_date.isoformat(),
		"available_slots": slots,
		"total_slots": len(slots),
		"available_count": sum(1 for slot in slots if slot["is_available"]),
	}
