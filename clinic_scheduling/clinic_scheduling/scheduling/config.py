"""
Scheduling Configuration

Engine-wide defaults. Inside a Frappe site these are overridden from the
`clinic_scheduling` key of site_config.json (see frappe_store.load_config).
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

MONTH_END_CLAMP = "clamp"
MONTH_END_SKIP = "skip"


@dataclass(frozen=True)
class SchedulingConfig:
	"""Tunables for slot generation, recurrence expansion and conflict checks."""

	# Canonical zone; only used to decide what "today" is
	timezone: str = "UTC"
	default_slot_duration: int = 30
	default_appointment_duration: int = 30
	# Hard ceilings for recurrence expansion
	max_occurrences: int = 365
	recurrence_horizon_years: int = 1
	month_end_policy: str = MONTH_END_CLAMP
	busy_appointment_statuses: Tuple[str, ...] = ("scheduled", "confirmed", "in_progress")
	conflict_statuses: Tuple[str, ...] = ("active", "draft")
	appointment_doctype: str = "Clinic Appointment"
	extra: Dict[str, Any] = field(default_factory=dict)

	@classmethod
	def from_dict(cls, values: Optional[Dict[str, Any]]) -> "SchedulingConfig":
		"""
		Build a config from a plain dict.

		Unknown keys end up in `extra` so site specific settings are not lost.
		"""
		values = dict(values or {})
		known = {f.name for f in fields(cls)} - {"extra"}
		kwargs = {key: values.pop(key) for key in list(values) if key in known}

		for key in ("busy_appointment_statuses", "conflict_statuses"):
			if key in kwargs:
				kwargs[key] = tuple(kwargs[key])

		if kwargs.get("month_end_policy", MONTH_END_CLAMP) not in (MONTH_END_CLAMP, MONTH_END_SKIP):
			raise ValueError(f"Unsupported month_end_policy: {kwargs['month_end_policy']}")

		return cls(extra=values, **kwargs)


DEFAULT_CONFIG = SchedulingConfig()
