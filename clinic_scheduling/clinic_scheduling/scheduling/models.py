"""
Scheduling Records

Schedule and Appointment as the engine sees them. Storage layers convert
their rows into these records (see store.py / frappe_store.py).
"""

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ScheduleType(str, Enum):
	DOCTOR_AVAILABILITY = "doctor_availability"
	ROOM_BOOKING = "room_booking"
	EQUIPMENT_SCHEDULE = "equipment_schedule"
	BLOCK_TIME = "block_time"


class RecurrenceType(str, Enum):
	DAILY = "daily"
	WEEKLY = "weekly"
	MONTHLY = "monthly"
	YEARLY = "yearly"
	CUSTOM = "custom"


class ScheduleStatus(str, Enum):
	DRAFT = "draft"
	ACTIVE = "active"
	CANCELLED = "cancelled"
	INACTIVE = "inactive"


class ApprovalStatus(str, Enum):
	PENDING = "pending"
	APPROVED = "approved"
	REJECTED = "rejected"
	AUTO_APPROVED = "auto_approved"


PRIORITIES = ("low", "medium", "high", "urgent")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Fields that identify the resource a schedule reserves
RESOURCE_DIMENSIONS = ("user_id", "room_id", "equipment_id")

# Fields used as conflict filter keys when present on a candidate
CONFLICT_FILTER_FIELDS = ("user_id", "clinic_id", "room_id", "equipment_id")

# Resource field(s) each schedule type may bind to. block_time binds to exactly one of them.
RESOURCE_FIELDS: Dict[ScheduleType, Tuple[str, ...]] = {
	ScheduleType.DOCTOR_AVAILABILITY: ("user_id",),
	ScheduleType.ROOM_BOOKING: ("room_id",),
	ScheduleType.EQUIPMENT_SCHEDULE: ("equipment_id",),
	ScheduleType.BLOCK_TIME: ("user_id", "room_id", "equipment_id"),
}


def new_schedule_id() -> str:
	"""Generate an opaque schedule id."""
	return uuid.uuid4().hex[:16]


@dataclass
class Schedule:
	"""
	A block of bookable (or blocked) time for one resource.

	Occurrences of a recurring master are plain Schedules with
	`parent_schedule_id` and `occurrence_index` set.
	"""

	schedule_type: ScheduleType
	title: str
	start_date: date
	end_date: date
	start_time: str
	end_time: str
	id: Optional[str] = None
	description: Optional[str] = None

	# Resource reference and location scope
	user_id: Optional[str] = None
	room_id: Optional[str] = None
	equipment_id: Optional[str] = None
	clinic_id: Optional[str] = None
	complex_id: Optional[str] = None
	organization_id: Optional[str] = None

	slot_duration: int = 0
	break_duration: int = 0
	max_capacity: Optional[int] = None

	# Recurrence
	is_recurring: bool = False
	recurrence_type: Optional[RecurrenceType] = None
	recurrence_interval: Optional[int] = None
	recurrence_days: List[str] = field(default_factory=list)
	recurrence_end_date: Optional[date] = None
	max_occurrences: Optional[int] = None

	# Occurrence linkage
	parent_schedule_id: Optional[str] = None
	occurrence_index: Optional[int] = None

	is_available: bool = True
	is_blocked: bool = False
	allow_overlap: bool = False
	priority: str = "medium"
	status: ScheduleStatus = ScheduleStatus.ACTIVE

	requires_approval: bool = False
	approval_status: ApprovalStatus = ApprovalStatus.AUTO_APPROVED
	approved_by: Optional[str] = None
	approved_at: Optional[datetime] = None
	rejection_reason: Optional[str] = None

	tags: List[str] = field(default_factory=list)
	color: Optional[str] = None
	metadata: Dict[str, str] = field(default_factory=dict)

	created_by: Optional[str] = None
	updated_by: Optional[str] = None
	is_active: bool = True
	deleted_at: Optional[datetime] = None

	@property
	def is_occurrence(self) -> bool:
		return self.parent_schedule_id is not None

	@property
	def is_deleted(self) -> bool:
		return self.deleted_at is not None

	def resource_dimension(self) -> Optional[Tuple[str, str]]:
		"""Return (field, value) of the resource this schedule reserves, or None."""
		for name in RESOURCE_DIMENSIONS:
			value = getattr(self, name)
			if value:
				return name, value
		return None

	def resource_filter(self) -> Dict[str, str]:
		"""Conflict filter keys: only fields present on this record."""
		return {
			name: getattr(self, name)
			for name in CONFLICT_FILTER_FIELDS
			if getattr(self, name)
		}

	def covers(self, target_date: date) -> bool:
		return self.start_date <= target_date <= self.end_date

	def to_dict(self) -> Dict[str, Any]:
		"""Plain dict with enum values unwrapped (dates are kept as date objects)."""
		data = asdict(self)
		for key, value in data.items():
			if isinstance(value, Enum):
				data[key] = value.value
		return data

	@classmethod
	def field_names(cls) -> Tuple[str, ...]:
		return tuple(f.name for f in fields(cls))


@dataclass
class Appointment:
	"""Read-only view of a booked appointment."""

	doctor_id: str
	clinic_id: Optional[str]
	appointment_date: date
	appointment_time: str
	duration_minutes: Optional[int] = None
	status: str = "scheduled"
	id: Optional[str] = None
	deleted_at: Optional[datetime] = None
