"""
Storage Contracts

Interfaces the scheduling engine consumes from its persistence collaborators,
plus in-memory implementations used by tests and by callers that keep
schedules outside a database.

Every store returns only non-deleted records. Stores raise StoreError for
their own failures; the engine never retries.
"""

import copy
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .models import Appointment, Schedule, ScheduleStatus, ScheduleType, new_schedule_id

DateRange = Tuple[date, date]


@dataclass
class ScheduleQuery:
	"""
	Filters for listing schedules. Empty/None filters are not applied.

	List filters match any of the given values.
	"""

	schedule_types: Sequence[ScheduleType] = ()
	user_ids: Sequence[str] = ()
	clinic_ids: Sequence[str] = ()
	complex_ids: Sequence[str] = ()
	organization_ids: Sequence[str] = ()
	room_ids: Sequence[str] = ()
	equipment_ids: Sequence[str] = ()
	statuses: Sequence[ScheduleStatus] = ()
	priorities: Sequence[str] = ()
	tags: Sequence[str] = ()
	start_date: Optional[date] = None
	end_date: Optional[date] = None
	is_recurring: Optional[bool] = None
	is_available: Optional[bool] = None
	is_blocked: Optional[bool] = None
	parent_schedule_id: Optional[str] = None
	search: Optional[str] = None

	def matches(self, schedule: Schedule) -> bool:
		"""Reference predicate; database stores translate the same rules into queries."""
		pairs = (
			(self.schedule_types, schedule.schedule_type),
			(self.user_ids, schedule.user_id),
			(self.clinic_ids, schedule.clinic_id),
			(self.complex_ids, schedule.complex_id),
			(self.organization_ids, schedule.organization_id),
			(self.room_ids, schedule.room_id),
			(self.equipment_ids, schedule.equipment_id),
			(self.statuses, schedule.status),
			(self.priorities, schedule.priority),
		)
		for allowed, value in pairs:
			if allowed and value not in allowed:
				return False

		if self.tags and not set(self.tags) & set(schedule.tags):
			return False

		# Closed-interval date overlap with the requested range
		if self.start_date and schedule.end_date < self.start_date:
			return False
		if self.end_date and schedule.start_date > self.end_date:
			return False

		for attr in ("is_recurring", "is_available", "is_blocked"):
			expected = getattr(self, attr)
			if expected is not None and getattr(schedule, attr) != expected:
				return False

		if self.parent_schedule_id and schedule.parent_schedule_id != self.parent_schedule_id:
			return False

		if self.search:
			needle = self.search.lower()
			haystack = [schedule.title or "", schedule.description or ""] + list(schedule.tags)
			if not any(needle in text.lower() for text in haystack):
				return False

		return True


class ScheduleStore(ABC):
	"""
	Persistence of schedule records.

	Implementations must uphold the check-then-insert contract: code running
	inside `atomic(key)` for the same key must not interleave.
	"""

	@abstractmethod
	def find_overlapping_candidates(
		self,
		schedule_type: ScheduleType,
		resource_filter: Dict[str, str],
		date_range: DateRange,
		statuses: Sequence[str] = ("active", "draft")
	) -> List[Schedule]:
		"""
		Coarse conflict query.

		Returns active (is_active) records of `schedule_type` whose status is in
		`statuses`, that match every key of `resource_filter`, and whose closed
		[start_date, end_date] range overlaps `date_range`.
		"""

	@abstractmethod
	def insert(self, schedule: Schedule) -> Schedule:
		"""Persist a new schedule and return it with its id assigned."""

	@abstractmethod
	def insert_many(self, schedules: List[Schedule]) -> None:
		"""Persist generated occurrences."""

	@abstractmethod
	def find_by_id(self, schedule_id: str) -> Optional[Schedule]:
		"""Return the schedule or None when missing or soft-deleted."""

	@abstractmethod
	def find_availability_window(
		self,
		resource_id: str,
		clinic_id: Optional[str],
		target_date: date
	) -> Optional[Schedule]:
		"""
		Active, available doctor_availability schedule covering `target_date`
		for the doctor (and clinic when given), or None.
		"""

	@abstractmethod
	def update(self, schedule_id: str, patch: Dict[str, object]) -> Optional[Schedule]:
		"""Apply `patch` and return the updated schedule, or None when not found."""

	@abstractmethod
	def soft_delete(self, schedule_id: str) -> bool:
		"""Set deleted_at and clear is_active. Returns False when not found."""

	@abstractmethod
	def find_schedules(self, query: ScheduleQuery) -> List[Schedule]:
		"""Active, non-deleted schedules matching `query`, ordered by start date then start time."""

	@contextmanager
	def atomic(self, key: str) -> Iterator[None]:
		"""Serialize check-then-insert for one resource. No-op by default."""
		yield


class AppointmentStore(ABC):
	"""Read-only access to booked appointments."""

	@abstractmethod
	def find_busy_appointments(
		self,
		resource_id: str,
		clinic_id: Optional[str],
		target_date: date
	) -> List[Appointment]:
		"""Non-deleted appointments of the doctor on that date whose status is busy."""


class ResourceDirectory(ABC):
	"""Existence checks for the users/clinics/complexes/organizations a schedule references."""

	@abstractmethod
	def exists(self, kind: str, resource_id: str) -> bool:
		"""True when the resource exists and is active."""


# ===== IN-MEMORY IMPLEMENTATIONS =====


def _sort_key(schedule: Schedule):
	return (schedule.start_date, schedule.start_time, schedule.id or "")


class InMemoryScheduleStore(ScheduleStore):
	"""Dict-backed ScheduleStore. Records are copied in and out so callers cannot mutate state."""

	def __init__(self, schedules: Optional[List[Schedule]] = None):
		self._records: Dict[str, Schedule] = {}
		self._lock = threading.RLock()
		for schedule in schedules or []:
			self.insert(schedule)

	def _live(self) -> List[Schedule]:
		return [record for record in self._records.values() if record.deleted_at is None]

	def find_overlapping_candidates(self, schedule_type, resource_filter, date_range, statuses=("active", "draft")):
		start, end = date_range
		with self._lock:
			found = [
				copy.deepcopy(record)
				for record in self._live()
				if record.is_active
				and record.schedule_type == schedule_type
				and record.status.value in statuses
				and all(getattr(record, key) == value for key, value in resource_filter.items())
				and record.start_date <= end
				and record.end_date >= start
			]
		return sorted(found, key=_sort_key)

	def insert(self, schedule: Schedule) -> Schedule:
		with self._lock:
			stored = replace(copy.deepcopy(schedule), id=schedule.id or new_schedule_id())
			self._records[stored.id] = stored
			return copy.deepcopy(stored)

	def insert_many(self, schedules: List[Schedule]) -> None:
		with self._lock:
			for schedule in schedules:
				self.insert(schedule)

	def find_by_id(self, schedule_id: str) -> Optional[Schedule]:
		with self._lock:
			record = self._records.get(schedule_id)
			if record is None or record.deleted_at is not None:
				return None
			return copy.deepcopy(record)

	def find_availability_window(self, resource_id, clinic_id, target_date):
		with self._lock:
			windows = [
				record
				for record in self._live()
				if record.is_active
				and record.schedule_type == ScheduleType.DOCTOR_AVAILABILITY
				and record.user_id == resource_id
				and (clinic_id is None or record.clinic_id == clinic_id)
				and record.status == ScheduleStatus.ACTIVE
				and record.is_available
				and not record.is_blocked
				and record.covers(target_date)
			]
			if not windows:
				return None
			return copy.deepcopy(sorted(windows, key=_sort_key)[0])

	def update(self, schedule_id: str, patch: Dict[str, object]) -> Optional[Schedule]:
		with self._lock:
			record = self._records.get(schedule_id)
			if record is None or record.deleted_at is not None:
				return None
			updated = replace(record, **patch)
			self._records[schedule_id] = updated
			return copy.deepcopy(updated)

	def soft_delete(self, schedule_id: str) -> bool:
		with self._lock:
			record = self._records.get(schedule_id)
			if record is None or record.deleted_at is not None:
				return False
			self._records[schedule_id] = replace(record, deleted_at=datetime.now(), is_active=False)
			return True

	def find_schedules(self, query: ScheduleQuery) -> List[Schedule]:
		with self._lock:
			found = [
				copy.deepcopy(record)
				for record in self._live()
				if record.is_active and query.matches(record)
			]
		return sorted(found, key=_sort_key)

	@contextmanager
	def atomic(self, key: str) -> Iterator[None]:
		with self._lock:
			yield


class InMemoryAppointmentStore(AppointmentStore):
	"""List-backed AppointmentStore that applies the busy-status filter itself."""

	def __init__(
		self,
		appointments: Optional[List[Appointment]] = None,
		busy_statuses: Sequence[str] = ("scheduled", "confirmed", "in_progress")
	):
		self.appointments = list(appointments or [])
		self.busy_statuses = set(busy_statuses)

	def add(self, appointment: Appointment) -> None:
		self.appointments.append(appointment)

	def find_busy_appointments(self, resource_id, clinic_id, target_date):
		return [
			appointment
			for appointment in self.appointments
			if appointment.doctor_id == resource_id
			and (clinic_id is None or appointment.clinic_id == clinic_id)
			and appointment.appointment_date == target_date
			and appointment.status in self.busy_statuses
			and appointment.deleted_at is None
		]


class InMemoryResourceDirectory(ResourceDirectory):
	"""
	Known resources keyed by kind ("user", "clinic", "complex", "organization").

	Kinds without an entry are not checked.
	"""

	def __init__(self, resources: Optional[Dict[str, Set[str]]] = None):
		self.resources = {kind: set(ids) for kind, ids in (resources or {}).items()}

	def exists(self, kind: str, resource_id: str) -> bool:
		if kind not in self.resources:
			return True
		return resource_id in self.resources[kind]
