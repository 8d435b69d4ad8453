# Copyright (c) 2026, Clinic Scheduling Contributors and contributors
# For license information, please see license.txt

"""
Clinic Schedule DocType

A block of bookable or blocked time for one doctor, room or equipment.
Records created through ScheduleService arrive already validated and
conflict-checked; records created from the desk are checked here.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from clinic_scheduling.clinic_scheduling.scheduling.exceptions import SchedulingError
from clinic_scheduling.clinic_scheduling.scheduling.frappe_store import (
	FrappeScheduleStore,
	ScheduleConflictError,
	get_logger,
	load_config,
	schedule_from_row,
	SCHEDULE_COLUMNS,
)
from clinic_scheduling.clinic_scheduling.scheduling.overlap import check_conflicts
from clinic_scheduling.clinic_scheduling.scheduling.recurrence import expand_occurrences
from clinic_scheduling.clinic_scheduling.scheduling.validation import validate_schedule


class ClinicSchedule(Document):
	"""
	Clinic Schedule with engine validations.

	Validations:
	- schedule invariants (window, durations, resource, recurrence)
	- no overlap with schedules of the same resource, unless allow_overlap

	Flags set by FrappeScheduleStore:
	- schedule_id: id chosen by the engine
	- skip_conflict_check: the service already checked under a lock
	- occurrences_generated: the service already expanded the recurrence
	"""

	def autoname(self) -> None:
		self.name = self.flags.get("schedule_id") or frappe.generate_hash(length=12)

	def validate(self) -> None:
		"""
		Validation before save.

		Runs:
		1. Schedule invariants
		2. Conflicts with other schedules of the same resource
		"""
		schedule = self._as_schedule()

		if not self.flags.skip_conflict_check:
			self._validate_no_conflicts(schedule)

	def after_insert(self) -> None:
		"""Materializes occurrences for recurring schedules created from the desk."""
		if not self.is_recurring or self.flags.occurrences_generated:
			return

		schedule = self._as_schedule()
		occurrences = expand_occurrences(schedule, config=load_config())

		# A conflicting occurrence aborts the request, rolling back the master too
		for occurrence in occurrences:
			self._validate_no_conflicts(occurrence)

		if occurrences:
			FrappeScheduleStore(self.doctype).insert_many(occurrences)

		get_logger().info(
			f"Clinic Schedule {self.name}: generated {len(occurrences)} occurrence(s)"
		)

	def _as_schedule(self):
		"""Engine view of this document; raises frappe.ValidationError on broken invariants."""
		row = {key: self.get(key) for key in SCHEDULE_COLUMNS}
		row["name"] = self.name

		try:
			schedule = schedule_from_row(row)
			validate_schedule(schedule)
		except SchedulingError as e:
			frappe.throw(_(e.message), frappe.ValidationError)
		except TypeError:
			# Missing mandatory values; the DocType's own mandatory check reports them
			frappe.throw(_("Schedule type, title, dates and times are required"), frappe.ValidationError)

		return schedule

	def _validate_no_conflicts(self, schedule) -> None:
		if schedule.allow_overlap or not schedule.is_active:
			return

		config = load_config()
		if schedule.status.value not in config.conflict_statuses:
			return

		report = check_conflicts(
			FrappeScheduleStore(self.doctype),
			schedule,
			exclude_id=self.name,
			statuses=config.conflict_statuses
		)

		if report["has_conflicts"]:
			names = ", ".join(conflict.id for conflict in report["conflicts"])
			frappe.throw(
				_(f"Schedule on {schedule.start_date} overlaps existing schedule(s): {names}"),
				ScheduleConflictError
			)


def on_doctype_update():
	"""Composite indexes for the conflict and availability lookups."""
	frappe.db.add_index("Clinic Schedule", ["schedule_type", "user_id", "start_date"])
	frappe.db.add_index("Clinic Schedule", ["schedule_type", "room_id", "start_date"])
	frappe.db.add_index("Clinic Schedule", ["schedule_type", "equipment_id", "start_date"])
	frappe.db.add_index("Clinic Schedule", ["parent_schedule_id"])
