"""
Schedule Service

Entry point for callers (API endpoints, DocType controllers, other apps).
Wires validation, conflict detection, recurrence expansion and availability
on top of the store contracts in store.py.
"""

import calendar
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .availability import get_available_slots
from .config import DEFAULT_CONFIG, SchedulingConfig
from .exceptions import ConflictError, NotFoundError, SchedulingError, ValidationError
from .models import ApprovalStatus, Schedule, ScheduleStatus, ScheduleType
from .overlap import check_conflicts, describe_conflicts
from .recurrence import expand_occurrences
from .store import AppointmentStore, ResourceDirectory, ScheduleQuery, ScheduleStore
from .time_math import add_months, parse_date, today as current_date
from .validation import (
	REQUIRED_FIELDS,
	build_schedule,
	normalize_fields,
	validate_schedule,
	validate_window,
)

logger = logging.getLogger(__name__)

BULK_ACTIONS = ("activate", "deactivate", "cancel", "approve", "reject")
VIEW_TYPES = ("day", "week", "month", "agenda")

# Referenced records that must exist before a schedule is written
REFERENCE_FIELDS = (
	("user", "user_id"),
	("clinic", "clinic_id"),
	("complex", "complex_id"),
	("organization", "organization_id"),
)

# Changing any of these can move a schedule onto someone else's time
CONFLICT_RELEVANT_FIELDS = (
	"schedule_type",
	"start_date",
	"end_date",
	"start_time",
	"end_time",
	"user_id",
	"room_id",
	"equipment_id",
	"clinic_id",
	"allow_overlap",
	"is_active",
)

IMMUTABLE_FIELDS = ("id", "created_by", "deleted_at", "parent_schedule_id", "occurrence_index")
NON_NULLABLE_FIELDS = REQUIRED_FIELDS + ("status", "approval_status", "priority")

MAX_PAGE_SIZE = 100
UPCOMING_DAYS = 7
UPCOMING_LIMIT = 10
TREND_MONTHS = 6


class ScheduleService:
	"""
	Scheduling operations over a ScheduleStore.

	Args:
		store: schedule persistence
		appointment_store: busy appointments, for slot availability
		directory: optional existence checks for referenced users/clinics/...
		config: SchedulingConfig
		clock: callable returning today's date (defaults to today in config.timezone)
	"""

	def __init__(
		self,
		store: ScheduleStore,
		appointment_store: AppointmentStore,
		directory: Optional[ResourceDirectory] = None,
		config: SchedulingConfig = DEFAULT_CONFIG,
		clock: Optional[Callable[[], date]] = None
	):
		self.store = store
		self.appointment_store = appointment_store
		self.directory = directory
		self.config = config
		self.clock = clock or (lambda: current_date(config.timezone))

	# ===== CREATE =====

	def create_schedule(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Schedule:
		"""
		Validates, conflict-checks and persists a schedule.

		Args:
			data: raw schedule fields
			created_by: user creating the schedule

		Returns:
			Schedule: the persisted master (occurrences are stored alongside)

		Algorithm:
			1. Normalize and validate input
			2. Check referenced user/clinic/complex/organization exist
			3. Inside the store's lock for the resource:
				a. Expand occurrences when recurring
				b. Reject overlaps of the schedule or any occurrence unless allow_overlap
				c. Insert the schedule, then its occurrences

		Raises:
			ValidationError: invalid input
			NotFoundError: a referenced resource does not exist
			ConflictError: the window overlaps an existing schedule
		"""
		schedule = build_schedule(data, created_by)
		self._check_references(schedule)

		occurrences: List[Schedule] = []
		with self.store.atomic(self._lock_key(schedule)):
			if schedule.is_recurring:
				occurrences = expand_occurrences(schedule, today=self.clock(), config=self.config)

			if not schedule.allow_overlap:
				self._ensure_no_conflicts(schedule)
				# Each occurrence reserves its own date
				for occurrence in occurrences:
					self._ensure_no_conflicts(occurrence)

			saved = self.store.insert(schedule)

			if occurrences:
				occurrences = [replace(o, parent_schedule_id=saved.id) for o in occurrences]
				self.store.insert_many(occurrences)

		logger.info(
			"Created %s schedule %s (%s %s-%s) with %d occurrence(s)",
			saved.schedule_type.value, saved.id, saved.start_date,
			saved.start_time, saved.end_time, len(occurrences)
		)
		return saved

	def create_doctor_availability(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Schedule:
		"""
		Shortcut for doctor working hours.

		Accepts `doctor_id` for user_id and `specialties` for tags.
		Slot duration defaults to the configured default (30 minutes).
		"""
		payload = dict(data)
		if "doctor_id" in payload:
			payload["user_id"] = payload.pop("doctor_id")
		if "specialties" in payload:
			payload["tags"] = payload.pop("specialties")

		payload["schedule_type"] = ScheduleType.DOCTOR_AVAILABILITY
		payload["slot_duration"] = payload.get("slot_duration") or self.config.default_slot_duration
		payload["break_duration"] = payload.get("break_duration") or 0
		payload["is_available"] = True
		payload["status"] = ScheduleStatus.ACTIVE

		return self.create_schedule(payload, created_by)

	def create_room_booking(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Schedule:
		"""Shortcut for room bookings. `expected_attendees` maps to max_capacity, `purpose` to a tag."""
		payload = dict(data)
		if "expected_attendees" in payload:
			payload["max_capacity"] = payload.pop("expected_attendees")
		purpose = payload.pop("purpose", None)
		if purpose:
			payload["tags"] = [purpose]

		payload["schedule_type"] = ScheduleType.ROOM_BOOKING
		payload["priority"] = payload.get("priority") or "medium"
		payload["status"] = ScheduleStatus.ACTIVE

		return self.create_schedule(payload, created_by)

	def create_equipment_schedule(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Schedule:
		"""
		Shortcut for equipment usage/maintenance.

		`activity` (e.g. "maintenance") becomes a tag. The assigned technician is
		kept in metadata because an equipment schedule reserves the equipment,
		not the person.
		"""
		payload = dict(data)
		activity = payload.pop("activity", None)
		if activity:
			payload["tags"] = [activity]

		technician = payload.pop("assigned_technician_id", None)
		if technician:
			payload["metadata"] = dict(payload.get("metadata") or {}, assigned_technician_id=technician)

		payload["schedule_type"] = ScheduleType.EQUIPMENT_SCHEDULE
		payload["status"] = ScheduleStatus.ACTIVE

		return self.create_schedule(payload, created_by)

	# ===== CONFLICTS & AVAILABILITY =====

	def check_conflicts(
		self,
		candidate: Union[Schedule, Dict[str, Any]],
		exclude_id: Optional[str] = None
	) -> Dict[str, Any]:
		"""
		Conflict report for a candidate window.

		`candidate` may be a Schedule or raw fields (schedule_type, resource ids,
		dates and times; title is not needed).
		"""
		if not isinstance(candidate, Schedule):
			candidate = self._candidate_from(candidate)

		return check_conflicts(self.store, candidate, exclude_id, self.config.conflict_statuses)

	def get_available_slots(
		self,
		resource_id: str,
		clinic_id: Optional[str],
		target_date: Union[date, str],
		slot_duration: Optional[int] = None
	) -> Dict[str, Any]:
		"""See availability.get_available_slots."""
		if slot_duration is not None and slot_duration <= 0:
			raise ValidationError("Slot duration must be positive", {"slot_duration": slot_duration})

		return get_available_slots(
			self.store,
			self.appointment_store,
			resource_id,
			clinic_id,
			target_date,
			slot_duration=slot_duration,
			config=self.config
		)

	# ===== READ =====

	def get_schedule(self, schedule_id: str) -> Schedule:
		schedule = self.store.find_by_id(schedule_id)
		if schedule is None:
			raise NotFoundError(f"Schedule {schedule_id} not found", {"schedule_id": schedule_id})
		return schedule

	def list_schedules(
		self,
		query: Optional[ScheduleQuery] = None,
		page: int = 1,
		page_size: int = 10
	) -> Dict[str, Any]:
		"""
		Paginated schedules matching `query`, ordered by start date then start time.

		Returns:
			dict: {"schedules": [Schedule], "total": int, "page": int, "page_size": int, "total_pages": int}
		"""
		if page < 1:
			raise ValidationError("Page must be 1 or greater", {"page": page})
		if not 1 <= page_size <= MAX_PAGE_SIZE:
			raise ValidationError(
				f"Page size must be between 1 and {MAX_PAGE_SIZE}",
				{"page_size": page_size}
			)

		schedules = self.store.find_schedules(query or ScheduleQuery())
		total = len(schedules)
		offset = (page - 1) * page_size

		return {
			"schedules": schedules[offset:offset + page_size],
			"total": total,
			"page": page,
			"page_size": page_size,
			"total_pages": (total + page_size - 1) // page_size,
		}

	def get_calendar_view(
		self,
		filters: Optional[Dict[str, Any]],
		start_date: Union[date, str],
		end_date: Union[date, str],
		view_type: str = "month"
	) -> Dict[str, Any]:
		"""
		Schedules overlapping a date range, grouped into a summary.

		Args:
			filters: ScheduleQuery fields (schedule_types, user_ids, clinic_ids, room_ids, ...)
			start_date: range start (inclusive)
			end_date: range end (inclusive)
			view_type: "day", "week", "month" or "agenda" (echoed back for the UI)

		Returns:
			dict: {
				"view_type": "month",
				"start_date": "2026-01-01",
				"end_date": "2026-01-31",
				"schedules": [{...}, ...],
				"summary": {"total_schedules": int, "schedules_by_type": {"room_booking": 2, ...}}
			}
		"""
		if view_type not in VIEW_TYPES:
			raise ValidationError(
				f"Invalid view_type '{view_type}'. Allowed: {', '.join(VIEW_TYPES)}",
				{"view_type": view_type}
			)

		start_date = parse_date(start_date, "start_date")
		end_date = parse_date(end_date, "end_date")
		if start_date > end_date:
			raise ValidationError(
				"End date must not be before start date",
				{"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
			)

		query = self.build_query(filters)
		query.start_date = start_date
		query.end_date = end_date

		schedules = self.store.find_schedules(query)

		by_type: Dict[str, int] = {}
		for schedule in schedules:
			key = schedule.schedule_type.value
			by_type[key] = by_type.get(key, 0) + 1

		return {
			"view_type": view_type,
			"start_date": start_date.isoformat(),
			"end_date": end_date.isoformat(),
			"schedules": [_calendar_entry(schedule) for schedule in schedules],
			"summary": {
				"total_schedules": len(schedules),
				"schedules_by_type": by_type,
			},
		}

	def get_schedule_stats(self) -> Dict[str, Any]:
		"""
		Dashboard counters.

		Weeks start on Monday. "This week" and "this month" count schedules
		starting within the current week/month.
		"""
		today = self.clock()
		week_start = today - timedelta(days=today.weekday())
		month_start = today.replace(day=1)
		upcoming_end = today + timedelta(days=UPCOMING_DAYS)

		schedules = self.store.find_schedules(ScheduleQuery())
		total = len(schedules)

		by_type: Dict[str, int] = {}
		for schedule in schedules:
			key = schedule.schedule_type.value
			by_type[key] = by_type.get(key, 0) + 1

		slot_durations = [s.slot_duration for s in schedules if s.slot_duration]
		recurring = sum(1 for s in schedules if s.is_recurring)

		upcoming = [
			s for s in schedules
			if s.status == ScheduleStatus.ACTIVE and today <= s.start_date <= upcoming_end
		][:UPCOMING_LIMIT]

		return {
			"total_schedules": total,
			"active_schedules": sum(1 for s in schedules if s.status == ScheduleStatus.ACTIVE),
			"schedules_today": sum(1 for s in schedules if s.covers(today)),
			"schedules_this_week": sum(
				1 for s in schedules if week_start <= s.start_date < week_start + timedelta(days=7)
			),
			"schedules_this_month": sum(
				1 for s in schedules if (s.start_date.year, s.start_date.month) == (today.year, today.month)
			),
			"schedules_by_type": [
				{
					"type": key,
					"count": count,
					"percentage": round(count * 100 / total) if total else 0,
				}
				for key, count in sorted(by_type.items(), key=lambda item: (-item[1], item[0]))
			],
			"recurring_schedules": recurring,
			"one_time_schedules": sum(1 for s in schedules if not s.is_recurring and not s.is_occurrence),
			"pending_approvals": sum(1 for s in schedules if s.approval_status == ApprovalStatus.PENDING),
			"average_slot_duration": (
				round(sum(slot_durations) / len(slot_durations))
				if slot_durations else self.config.default_slot_duration
			),
			"upcoming_schedules": [
				{
					"schedule_id": s.id,
					"title": s.title,
					"start_date": s.start_date.isoformat(),
					"start_time": s.start_time,
					"schedule_type": s.schedule_type.value,
				}
				for s in upcoming
			],
			"monthly_trend": _monthly_trend(schedules, month_start),
		}

	# ===== UPDATE / DELETE =====

	def update_schedule(
		self,
		schedule_id: str,
		patch: Dict[str, Any],
		updated_by: Optional[str] = None
	) -> Schedule:
		"""
		Applies a partial update.

		The merged record is re-validated. It is conflict-checked against other
		schedules when it reserves time (active/draft, no allow_overlap) and
		either its window/resource changed or its status moved into a reserving
		status. Occurrences of a recurring master are left untouched.

		Raises:
			NotFoundError: unknown or deleted schedule
			ValidationError: invalid patch or merged record
			ConflictError: the new window overlaps another schedule
		"""
		existing = self.get_schedule(schedule_id)

		blocked = sorted(set(patch) & set(IMMUTABLE_FIELDS))
		if blocked:
			raise ValidationError(
				f"Field(s) cannot be updated: {', '.join(blocked)}",
				{"fields": blocked}
			)

		values = normalize_fields(patch)
		cleared = [key for key in NON_NULLABLE_FIELDS if key in values and values[key] in (None, "")]
		if cleared:
			raise ValidationError(
				f"Field(s) cannot be empty: {', '.join(cleared)}",
				{"fields": cleared}
			)

		if updated_by:
			values["updated_by"] = updated_by

		merged = replace(existing, **values)
		validate_schedule(merged)

		statuses = self.config.conflict_statuses
		moved = any(
			key in values and values[key] != getattr(existing, key)
			for key in CONFLICT_RELEVANT_FIELDS
		)
		reserving = existing.status.value not in statuses and merged.status.value in statuses
		needs_check = (
			not merged.allow_overlap
			and merged.is_active
			and merged.status.value in statuses
			and (moved or reserving)
		)

		with self.store.atomic(self._lock_key(merged)):
			if needs_check:
				self._ensure_no_conflicts(merged, exclude_id=schedule_id)

			updated = self.store.update(schedule_id, values)

		if updated is None:
			raise NotFoundError(f"Schedule {schedule_id} not found", {"schedule_id": schedule_id})

		logger.info("Updated schedule %s (%s)", schedule_id, ", ".join(sorted(values)))
		return updated

	def delete_schedule(self, schedule_id: str) -> None:
		"""Soft-deletes a schedule. Its occurrences are independent records and stay."""
		if not self.store.soft_delete(schedule_id):
			raise NotFoundError(f"Schedule {schedule_id} not found", {"schedule_id": schedule_id})

		logger.info("Deleted schedule %s", schedule_id)

	def bulk_action(
		self,
		schedule_ids: Sequence[str],
		action: str,
		reason: Optional[str] = None,
		actor: Optional[str] = None
	) -> Dict[str, Any]:
		"""
		Applies one action to many schedules.

		Each schedule is processed independently; a failure is recorded and
		the loop continues.

		Args:
			schedule_ids: schedules to act on
			action: activate, deactivate, cancel, approve or reject
			reason: rejection reason (reject only)
			actor: user performing the action

		Returns:
			dict: {"success": int, "failed": int, "errors": ["Schedule <id>: <message>", ...]}
		"""
		if action not in BULK_ACTIONS:
			raise ValidationError(
				f"Invalid action '{action}'. Allowed: {', '.join(BULK_ACTIONS)}",
				{"action": action}
			)

		success = 0
		errors: List[str] = []

		for schedule_id in schedule_ids:
			try:
				self.update_schedule(schedule_id, self._action_patch(action, reason, actor), actor)
				success += 1
			except SchedulingError as e:
				errors.append(f"Schedule {schedule_id}: {e.message}")

		logger.info(
			"Bulk %s: %d succeeded, %d failed", action, success, len(errors)
		)

		return {"success": success, "failed": len(errors), "errors": errors}

	# ===== HELPERS =====

	def _action_patch(self, action: str, reason: Optional[str], actor: Optional[str]) -> Dict[str, Any]:
		if action == "activate":
			return {"status": ScheduleStatus.ACTIVE}
		if action == "deactivate":
			return {"status": ScheduleStatus.INACTIVE}
		if action == "cancel":
			return {"status": ScheduleStatus.CANCELLED}
		if action == "approve":
			return {
				"approval_status": ApprovalStatus.APPROVED,
				"approved_by": actor,
				"approved_at": datetime.now(),
				"status": ScheduleStatus.ACTIVE,
			}
		# reject
		return {
			"approval_status": ApprovalStatus.REJECTED,
			"rejection_reason": reason or "No reason provided",
			"approved_by": actor,
			"approved_at": datetime.now(),
			"status": ScheduleStatus.CANCELLED,
		}

	def _check_references(self, schedule: Schedule) -> None:
		if self.directory is None:
			return

		for kind, field_name in REFERENCE_FIELDS:
			value = getattr(schedule, field_name)
			if value and not self.directory.exists(kind, value):
				raise NotFoundError(
					f"{kind.capitalize()} {value} not found",
					{"kind": kind, "id": value}
				)

	def _ensure_no_conflicts(self, schedule: Schedule, exclude_id: Optional[str] = None) -> None:
		report = check_conflicts(self.store, schedule, exclude_id, self.config.conflict_statuses)
		if not report["has_conflicts"]:
			return

		conflicts = report["conflicts"]
		logger.warning(
			"Rejected %s schedule for %s: overlaps %s",
			schedule.schedule_type.value,
			schedule.resource_filter(),
			", ".join(c.id for c in conflicts)
		)
		raise ConflictError(
			f"Schedule conflicts with {len(conflicts)} existing schedule(s)",
			conflicts,
			describe_conflicts(schedule, conflicts)
		)

	def _lock_key(self, schedule: Schedule) -> str:
		dimension = schedule.resource_dimension()
		if dimension is None:
			return f"schedule:{schedule.schedule_type.value}"
		return f"schedule:{schedule.schedule_type.value}:{dimension[0]}:{dimension[1]}"

	def _candidate_from(self, data: Dict[str, Any]) -> Schedule:
		values = normalize_fields(dict(data))
		values.setdefault("title", "Conflict check")

		missing = [key for key in REQUIRED_FIELDS if values.get(key) in (None, "")]
		if missing:
			raise ValidationError(
				f"Missing required field(s): {', '.join(missing)}",
				{"fields": missing}
			)

		candidate = Schedule(**{key: value for key, value in values.items() if value is not None})
		validate_window(candidate)
		return candidate

	def build_query(self, filters: Optional[Dict[str, Any]]) -> ScheduleQuery:
		"""ScheduleQuery from raw filters: enum values and ISO dates are converted."""
		filters = dict(filters or {})
		known = set(ScheduleQuery.__dataclass_fields__)
		unknown = sorted(set(filters) - known)
		if unknown:
			raise ValidationError(f"Unknown filter(s): {', '.join(unknown)}", {"filters": unknown})

		if filters.get("schedule_types"):
			try:
				filters["schedule_types"] = [ScheduleType(value) for value in filters["schedule_types"]]
			except ValueError as e:
				raise ValidationError(str(e), {"filter": "schedule_types"})
		if filters.get("statuses"):
			try:
				filters["statuses"] = [ScheduleStatus(value) for value in filters["statuses"]]
			except ValueError as e:
				raise ValidationError(str(e), {"filter": "statuses"})

		for key in ("start_date", "end_date"):
			if filters.get(key):
				filters[key] = parse_date(filters[key], key)

		return ScheduleQuery(**filters)


def _calendar_entry(schedule: Schedule) -> Dict[str, Any]:
	return {
		"id": schedule.id,
		"title": schedule.title,
		"schedule_type": schedule.schedule_type.value,
		"start_date": schedule.start_date.isoformat(),
		"end_date": schedule.end_date.isoformat(),
		"start_time": schedule.start_time,
		"end_time": schedule.end_time,
		"status": schedule.status.value,
		"priority": schedule.priority,
		"color": schedule.color,
		"user_id": schedule.user_id,
		"clinic_id": schedule.clinic_id,
		"room_id": schedule.room_id,
		"equipment_id": schedule.equipment_id,
		"is_recurring": schedule.is_recurring,
		"is_available": schedule.is_available,
		"is_blocked": schedule.is_blocked,
		"parent_schedule_id": schedule.parent_schedule_id,
		"tags": list(schedule.tags),
	}


def _monthly_trend(schedules: List[Schedule], month_start: date) -> List[Dict[str, Any]]:
	"""Schedules starting in each of the last TREND_MONTHS months, oldest first."""
	trend = []
	for offset in range(TREND_MONTHS - 1, -1, -1):
		month = add_months(month_start, -offset)
		count = sum(
			1 for s in schedules
			if (s.start_date.year, s.start_date.month) == (month.year, month.month)
		)
		trend.append({"month": f"{calendar.month_abbr[month.month]} {month.year}", "count": count})
	return trend
