"""
Frappe Bindings

Store implementations backed by Frappe DocTypes:
- FrappeScheduleStore: "Clinic Schedule" rows
- FrappeAppointmentStore: the appointment DocType named in config
- FrappeResourceDirectory: existence checks against User/Clinic/... DocTypes

Plus load_config() and get_schedule_service(), the factory used by the API
and the DocType controller.
"""

import hashlib
import json
from contextlib import contextmanager
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

import frappe
from frappe.utils import get_system_timezone, now_datetime

from .config import SchedulingConfig
from .exceptions import SchedulingError, StoreError
from .models import Appointment, Schedule, ScheduleStatus, ScheduleType
from .service import ScheduleService
from .store import AppointmentStore, ResourceDirectory, ScheduleQuery, ScheduleStore
from .time_math import normalize_time, parse_date
from .validation import normalize_fields

SCHEDULE_DOCTYPE = "Clinic Schedule"

# Every Schedule field is a column, except `id` which is the document name
SCHEDULE_COLUMNS = tuple(name for name in Schedule.field_names() if name != "id")
SCHEDULE_FIELDS = ["name"] + list(SCHEDULE_COLUMNS)

# Resource kind -> DocType. Override with "resource_doctypes" in site config.
RESOURCE_DOCTYPES = {
	"user": "User",
	"clinic": "Clinic",
	"complex": "Clinic Complex",
	"organization": "Organization",
}

OPTIONAL_INT_COLUMNS = ("max_capacity", "recurrence_interval", "max_occurrences", "occurrence_index")

# Seconds to wait for a MariaDB named lock
LOCK_TIMEOUT = 10

ORDER_BY = "start_date asc, start_time asc, name asc"


def get_logger():
	return frappe.logger("clinic_scheduling")


class ScheduleConflictError(frappe.ValidationError):
	"""Raised when a schedule overlaps another schedule of the same resource."""
	http_status_code = 409


# ===== CONFIG & FACTORY =====


def load_config() -> SchedulingConfig:
	"""
	SchedulingConfig for the current site.

	Reads the `clinic_scheduling` key of site_config.json, e.g.:
		"clinic_scheduling": {"month_end_policy": "skip", "max_occurrences": 100}

	The timezone defaults to the system timezone.
	"""
	settings = dict(frappe.conf.get("clinic_scheduling") or {})
	settings.setdefault("timezone", get_system_timezone() or "UTC")
	return SchedulingConfig.from_dict(settings)


def get_schedule_service(config: Optional[SchedulingConfig] = None) -> ScheduleService:
	"""ScheduleService wired to the Frappe stores."""
	config = config or load_config()
	return ScheduleService(
		FrappeScheduleStore(),
		FrappeAppointmentStore(config),
		FrappeResourceDirectory(config),
		config
	)


# ===== ROW CONVERSION =====


def schedule_from_row(row: Dict[str, Any]) -> Schedule:
	"""
	Convert a "Clinic Schedule" row (frappe.get_all dict or doc.as_dict()) into a Schedule.

	Times may come back from the database as timedelta; lists are stored as
	comma-separated text and metadata as JSON.
	"""
	data = {key: row.get(key) for key in SCHEDULE_COLUMNS if key in row}
	data["id"] = row.get("name")

	# Int columns read back as 0 when unset
	for key in OPTIONAL_INT_COLUMNS:
		if not data.get(key):
			data[key] = None

	metadata = data.get("metadata")
	if isinstance(metadata, str):
		data["metadata"] = json.loads(metadata) if metadata.strip() else {}

	values = normalize_fields(data)
	return Schedule(**{key: value for key, value in values.items() if value is not None})


def to_db_values(values: Dict[str, Any]) -> Dict[str, Any]:
	"""Convert Schedule values into column values."""
	row = {}
	for key, value in values.items():
		if key == "id":
			continue
		if isinstance(value, Enum):
			value = value.value
		elif key in ("recurrence_days", "tags"):
			value = ",".join(value or [])
		elif key == "metadata":
			value = json.dumps(value or {})
		elif isinstance(value, bool):
			value = int(value)
		row[key] = value
	return row


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
	"""Log unexpected database failures and re-raise them as StoreError."""
	try:
		yield
	except SchedulingError:
		raise
	except Exception as e:
		frappe.log_error(f"Error during {action}: {str(e)}", "Clinic Scheduling Store")
		raise StoreError(f"Could not {action}", {"action": action}) from e


def _not_deleted() -> List[Any]:
	return ["is", "not set"]


# ===== STORES =====


class FrappeScheduleStore(ScheduleStore):
	"""ScheduleStore over the "Clinic Schedule" DocType."""

	def __init__(self, doctype: str = SCHEDULE_DOCTYPE):
		self.doctype = doctype

	def _get_all(self, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Schedule]:
		filters = dict(filters, deleted_at=_not_deleted())
		rows = frappe.get_all(
			self.doctype,
			filters=filters,
			fields=SCHEDULE_FIELDS,
			order_by=ORDER_BY,
			limit_page_length=limit or 0
		)
		return [schedule_from_row(row) for row in rows]

	def find_overlapping_candidates(self, schedule_type, resource_filter, date_range, statuses=("active", "draft")):
		start, end = date_range
		filters = {
			"schedule_type": schedule_type.value,
			"is_active": 1,
			"status": ["in", list(statuses)],
			"start_date": ["<=", end],
			"end_date": [">=", start],
		}
		filters.update(resource_filter)

		with _store_errors("load conflict candidates"):
			return self._get_all(filters)

	def insert(self, schedule: Schedule) -> Schedule:
		with _store_errors("insert schedule"):
			doc = self._new_doc(schedule)
			doc.insert(ignore_permissions=True)
			return schedule_from_row(doc.as_dict())

	def insert_many(self, schedules: List[Schedule]) -> None:
		with _store_errors("insert occurrences"):
			for schedule in schedules:
				self._new_doc(schedule).insert(ignore_permissions=True)

	def _new_doc(self, schedule: Schedule):
		doc = frappe.get_doc({"doctype": self.doctype, **to_db_values(schedule.to_dict())})
		# The service already validated, conflict-checked and expanded
		doc.flags.schedule_id = schedule.id
		doc.flags.skip_conflict_check = True
		doc.flags.occurrences_generated = True
		return doc

	def find_by_id(self, schedule_id: str) -> Optional[Schedule]:
		with _store_errors("load schedule"):
			found = self._get_all({"name": schedule_id}, limit=1)
		return found[0] if found else None

	def find_availability_window(self, resource_id, clinic_id, target_date):
		filters = {
			"schedule_type": ScheduleType.DOCTOR_AVAILABILITY.value,
			"user_id": resource_id,
			"status": ScheduleStatus.ACTIVE.value,
			"is_available": 1,
			"is_blocked": 0,
			"is_active": 1,
			"start_date": ["<=", target_date],
			"end_date": [">=", target_date],
		}
		if clinic_id:
			filters["clinic_id"] = clinic_id

		with _store_errors("load availability window"):
			found = self._get_all(filters, limit=1)
		return found[0] if found else None

	def update(self, schedule_id: str, patch: Dict[str, object]) -> Optional[Schedule]:
		with _store_errors("update schedule"):
			if not frappe.db.exists(self.doctype, {"name": schedule_id, "deleted_at": _not_deleted()}):
				return None

			doc = frappe.get_doc(self.doctype, schedule_id)
			doc.update(to_db_values(dict(patch)))
			doc.flags.skip_conflict_check = True
			doc.save(ignore_permissions=True)
			return schedule_from_row(doc.as_dict())

	def soft_delete(self, schedule_id: str) -> bool:
		with _store_errors("delete schedule"):
			if not frappe.db.exists(self.doctype, {"name": schedule_id, "deleted_at": _not_deleted()}):
				return False

			frappe.db.set_value(
				self.doctype,
				schedule_id,
				{"deleted_at": now_datetime(), "is_active": 0}
			)
			return True

	def find_schedules(self, query: ScheduleQuery) -> List[Schedule]:
		"""
		Narrows in SQL on the indexed columns, then applies
		ScheduleQuery.matches for tags and free-text search.
		"""
		filters: Dict[str, Any] = {"is_active": 1}

		list_filters = (
			("schedule_type", query.schedule_types),
			("user_id", query.user_ids),
			("clinic_id", query.clinic_ids),
			("complex_id", query.complex_ids),
			("organization_id", query.organization_ids),
			("room_id", query.room_ids),
			("equipment_id", query.equipment_ids),
			("status", query.statuses),
			("priority", query.priorities),
		)
		for column, allowed in list_filters:
			if allowed:
				filters[column] = ["in", [getattr(value, "value", value) for value in allowed]]

		if query.start_date:
			filters["end_date"] = [">=", query.start_date]
		if query.end_date:
			filters["start_date"] = ["<=", query.end_date]

		for attr in ("is_recurring", "is_available", "is_blocked"):
			expected = getattr(query, attr)
			if expected is not None:
				filters[attr] = int(expected)

		if query.parent_schedule_id:
			filters["parent_schedule_id"] = query.parent_schedule_id

		with _store_errors("list schedules"):
			schedules = self._get_all(filters)

		return [schedule for schedule in schedules if query.matches(schedule)]

	@contextmanager
	def atomic(self, key: str) -> Iterator[None]:
		"""
		Database named lock around check-then-insert.

		Postgres takes a transaction-scoped advisory lock (released on commit).
		MariaDB takes GET_LOCK, released when the block exits.
		"""
		# MariaDB lock names are limited to 64 characters
		lock_name = "clinic_schedule:" + hashlib.sha1(key.encode()).hexdigest()

		if frappe.db.db_type == "postgres":
			frappe.db.sql("SELECT pg_advisory_xact_lock(hashtext(%s))", (lock_name,))
			yield
			return

		acquired = frappe.db.sql("SELECT GET_LOCK(%s, %s)", (lock_name, LOCK_TIMEOUT))
		if not acquired or not acquired[0][0]:
			get_logger().warning(f"Timed out waiting for schedule lock {key}")
			raise StoreError("Another schedule for this resource is being saved. Please retry.", {"key": key})

		try:
			yield
		finally:
			frappe.db.sql("SELECT RELEASE_LOCK(%s)", (lock_name,))


class FrappeAppointmentStore(AppointmentStore):
	"""
	Reads busy appointments from the configured appointment DocType.

	Expected fields: doctor, clinic, appointment_date, appointment_time,
	duration_minutes, status, deleted_at.
	"""

	def __init__(self, config: SchedulingConfig):
		self.doctype = config.appointment_doctype
		self.busy_statuses = list(config.busy_appointment_statuses)

	def find_busy_appointments(self, resource_id: str, clinic_id: Optional[str], target_date: date) -> List[Appointment]:
		filters = {
			"doctor": resource_id,
			"appointment_date": target_date,
			"status": ["in", self.busy_statuses],
			"deleted_at": _not_deleted(),
		}
		if clinic_id:
			filters["clinic"] = clinic_id

		with _store_errors("load appointments"):
			rows = frappe.get_all(
				self.doctype,
				filters=filters,
				fields=["name", "doctor", "clinic", "appointment_date", "appointment_time", "duration_minutes", "status"],
				order_by="appointment_time asc"
			)

		return [
			Appointment(
				id=row.get("name"),
				doctor_id=row.get("doctor"),
				clinic_id=row.get("clinic"),
				appointment_date=parse_date(row.get("appointment_date"), "appointment_date"),
				appointment_time=normalize_time(row.get("appointment_time")),
				duration_minutes=row.get("duration_minutes") or None,
				status=row.get("status"),
			)
			for row in rows
		]


class FrappeResourceDirectory(ResourceDirectory):
	"""
	Existence checks against site DocTypes.

	Kinds whose DocType is not installed on the site are not checked.
	Users must also be enabled.
	"""

	def __init__(self, config: SchedulingConfig):
		self.doctypes = dict(RESOURCE_DOCTYPES, **(config.extra.get("resource_doctypes") or {}))

	def exists(self, kind: str, resource_id: str) -> bool:
		doctype = self.doctypes.get(kind)
		if not doctype or not frappe.db.exists("DocType", doctype):
			return True

		if doctype == "User":
			return bool(frappe.db.exists("User", {"name": resource_id, "enabled": 1}))

		return bool(frappe.db.exists(doctype, resource_id))
