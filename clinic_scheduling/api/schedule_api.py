"""
Schedule API Endpoints

Whitelisted functions for desk, portal and external callers. Each endpoint
validates its arguments, calls ScheduleService and translates scheduling
errors into Frappe exceptions:
- ValidationError -> frappe.ValidationError
- NotFoundError -> frappe.DoesNotExistError
- ConflictError -> ScheduleConflictError (HTTP 409)
- StoreError -> logged with frappe.log_error, generic error to the caller
"""

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

import frappe
from frappe import _
from frappe.utils import cint

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import (
	ConflictError,
	NotFoundError,
	SchedulingError,
	StoreError,
)
from clinic_scheduling.clinic_scheduling.scheduling.frappe_store import (
	ScheduleConflictError,
	get_schedule_service,
)
from clinic_scheduling.clinic_scheduling.scheduling.models import Schedule
from clinic_scheduling.api.shared import (
	check_rate_limit,
	parse_list_arg,
	validate_date_string,
	validate_docname,
	validate_time_string,
)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
	"""Turn scheduling errors into the matching Frappe exception."""
	try:
		yield
	except ConflictError as e:
		conflicting = ", ".join(conflict.id for conflict in e.conflicts if conflict.id)
		frappe.throw(
			_(f"{e.message}: {conflicting}") if conflicting else _(e.message),
			ScheduleConflictError
		)
	except NotFoundError as e:
		frappe.throw(_(e.message), frappe.DoesNotExistError)
	except StoreError as e:
		frappe.log_error(f"Error in {action}: {e.message}", "Clinic Scheduling API")
		frappe.throw(_(f"Could not {action}. Please try again."))
	except SchedulingError as e:
		frappe.throw(_(e.message), frappe.ValidationError)


def _parse_data(data: Any) -> Dict[str, Any]:
	if isinstance(data, str):
		data = frappe.parse_json(data)
	if not isinstance(data, dict):
		frappe.throw(_("data must be an object"), frappe.ValidationError)
	return dict(data)


def _serialize(schedule: Schedule) -> Dict[str, Any]:
	"""Schedule as a JSON-ready dict."""
	data = schedule.to_dict()
	for key, value in data.items():
		if isinstance(value, (date, datetime)):
			data[key] = value.isoformat()
	return data


def _session_user() -> Optional[str]:
	user = frappe.session.user
	return None if user == "Guest" else user


@frappe.whitelist(methods=["POST"])
def create_schedule(data: Any) -> Dict[str, Any]:
	"""
	Creates a schedule (and its occurrences when recurring).

	Args:
		data: schedule fields, as a dict or JSON string, e.g.
			{
				"schedule_type": "doctor_availability",
				"title": "Morning clinic",
				"user_id": "doctor@example.com",
				"clinic_id": "CLINIC-001",
				"start_date": "2026-03-02",
				"end_date": "2026-03-06",
				"start_time": "09:00",
				"end_time": "12:00",
				"slot_duration": 30,
				"is_recurring": 1,
				"recurrence_type": "weekly",
				"max_occurrences": 4
			}

	Returns:
		dict: the persisted master schedule

	Raises:
		ScheduleConflictError: the window overlaps an existing schedule (409)
	"""
	data = _parse_data(data)

	with _translate_errors("create schedule"):
		schedule = get_schedule_service().create_schedule(data, created_by=_session_user())

	return _serialize(schedule)


@frappe.whitelist(methods=["GET", "POST"])
def check_schedule_conflicts(
	schedule_type: str,
	start_date: str,
	end_date: str,
	start_time: str,
	end_time: str,
	user_id: Optional[str] = None,
	clinic_id: Optional[str] = None,
	room_id: Optional[str] = None,
	equipment_id: Optional[str] = None,
	exclude_schedule_id: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Reports schedules that would collide with a candidate window.

	Returns:
		dict: {"has_conflicts": bool, "conflicts": [schedule dicts]}
	"""
	candidate = {
		"schedule_type": schedule_type,
		"start_date": validate_date_string(start_date, "start_date"),
		"end_date": validate_date_string(end_date, "end_date"),
		"start_time": validate_time_string(start_time, "start_time"),
		"end_time": validate_time_string(end_time, "end_time"),
		"user_id": user_id,
		"clinic_id": clinic_id,
		"room_id": room_id,
		"equipment_id": equipment_id,
	}
	if exclude_schedule_id:
		exclude_schedule_id = validate_docname(exclude_schedule_id, "exclude_schedule_id")

	with _translate_errors("check schedule conflicts"):
		report = get_schedule_service().check_conflicts(candidate, exclude_id=exclude_schedule_id)

	return {
		"has_conflicts": report["has_conflicts"],
		"conflicts": [_serialize(conflict) for conflict in report["conflicts"]],
	}


@frappe.whitelist(allow_guest=True, methods=["GET"])
def get_available_slots(
	doctor: str,
	date: str,
	clinic: Optional[str] = None,
	slot_duration: Optional[int] = None
) -> Dict[str, Any]:
	"""
	Bookable slots of a doctor on one date.

	Rate limited: 30 requests per minute per IP.

	Returns:
		dict: {
			"date": "2026-03-02",
			"available_slots": [
				{"start_time": "09:00", "end_time": "09:30", "duration": 30, "is_available": True},
				...
			],
			"total_slots": 6,
			"available_count": 5
		}

	Example:
		```javascript
		frappe.call({
			method: "clinic_scheduling.api.schedule_api.get_available_slots",
			args: {doctor: "doctor@example.com", clinic: "CLINIC-001", date: "2026-03-02"},
			callback: function(r) {
				console.log(r.message.available_slots);
			}
		});
		```
	"""
	check_rate_limit("get_available_slots", limit=30, seconds=60)

	doctor = validate_docname(doctor, "doctor")
	target_date = validate_date_string(date, "date")
	if clinic:
		clinic = validate_docname(clinic, "clinic")

	with _translate_errors("get available slots"):
		return get_schedule_service().get_available_slots(
			doctor,
			clinic,
			target_date,
			slot_duration=cint(slot_duration) or None
		)


@frappe.whitelist(methods=["GET"])
def get_calendar_view(
	start_date: str,
	end_date: str,
	view_type: str = "month",
	schedule_types: Any = None,
	user_ids: Any = None,
	clinic_ids: Any = None,
	room_ids: Any = None
) -> Dict[str, Any]:
	"""
	Schedules overlapping a date range with a per-type summary.

	List filters accept a list, a JSON array or a comma separated string.
	"""
	filters = {
		"schedule_types": parse_list_arg(schedule_types, "schedule_types"),
		"user_ids": parse_list_arg(user_ids, "user_ids"),
		"clinic_ids": parse_list_arg(clinic_ids, "clinic_ids"),
		"room_ids": parse_list_arg(room_ids, "room_ids"),
	}
	filters = {key: value for key, value in filters.items() if value}

	with _translate_errors("load calendar"):
		return get_schedule_service().get_calendar_view(
			filters,
			validate_date_string(start_date, "start_date"),
			validate_date_string(end_date, "end_date"),
			view_type=view_type
		)


@frappe.whitelist(methods=["GET"])
def list_schedules(
	page: int = 1,
	page_size: int = 10,
	search: Optional[str] = None,
	schedule_types: Any = None,
	user_ids: Any = None,
	clinic_ids: Any = None,
	statuses: Any = None,
	start_date: Optional[str] = None,
	end_date: Optional[str] = None
) -> Dict[str, Any]:
	"""Paginated schedule list. Returns {"schedules", "total", "page", "page_size", "total_pages"}."""
	filters = {
		"schedule_types": parse_list_arg(schedule_types, "schedule_types"),
		"user_ids": parse_list_arg(user_ids, "user_ids"),
		"clinic_ids": parse_list_arg(clinic_ids, "clinic_ids"),
		"statuses": parse_list_arg(statuses, "statuses"),
		"search": (search or "").strip() or None,
		"start_date": validate_date_string(start_date, "start_date") if start_date else None,
		"end_date": validate_date_string(end_date, "end_date") if end_date else None,
	}
	filters = {key: value for key, value in filters.items() if value}

	with _translate_errors("list schedules"):
		service = get_schedule_service()
		result = service.list_schedules(service.build_query(filters), page=cint(page), page_size=cint(page_size))

	result["schedules"] = [_serialize(schedule) for schedule in result["schedules"]]
	return result


@frappe.whitelist(methods=["POST"])
def bulk_schedule_action(schedule_ids: Any, action: str, reason: Optional[str] = None) -> Dict[str, Any]:
	"""
	Applies activate/deactivate/cancel/approve/reject to many schedules.

	Returns:
		dict: {"success": int, "failed": int, "errors": [str]}
	"""
	ids: List[str] = [
		validate_docname(schedule_id, "schedule_id")
		for schedule_id in parse_list_arg(schedule_ids, "schedule_ids") or []
	]
	if not ids:
		frappe.throw(_("schedule_ids is required"), frappe.ValidationError)

	with _translate_errors("apply bulk action"):
		return get_schedule_service().bulk_action(ids, action, reason=reason, actor=_session_user())


@frappe.whitelist(methods=["GET"])
def get_schedule(schedule_id: str) -> Dict[str, Any]:
	schedule_id = validate_docname(schedule_id, "schedule_id")

	with _translate_errors("load schedule"):
		return _serialize(get_schedule_service().get_schedule(schedule_id))


@frappe.whitelist(methods=["POST", "PUT"])
def update_schedule(schedule_id: str, data: Any) -> Dict[str, Any]:
	"""Partial update. Returns the updated schedule."""
	schedule_id = validate_docname(schedule_id, "schedule_id")
	data = _parse_data(data)

	with _translate_errors("update schedule"):
		schedule = get_schedule_service().update_schedule(schedule_id, data, updated_by=_session_user())

	return _serialize(schedule)


@frappe.whitelist(methods=["POST", "DELETE"])
def delete_schedule(schedule_id: str) -> Dict[str, Any]:
	"""Soft-deletes a schedule."""
	schedule_id = validate_docname(schedule_id, "schedule_id")

	with _translate_errors("delete schedule"):
		get_schedule_service().delete_schedule(schedule_id)

	return {"success": True, "schedule_id": schedule_id}


@frappe.whitelist(methods=["GET"])
def get_schedule_stats() -> Dict[str, Any]:
	"""Dashboard counters (totals, today, this week/month, by type, upcoming, monthly trend)."""
	with _translate_errors("load schedule stats"):
		return get_schedule_service().get_schedule_stats()
