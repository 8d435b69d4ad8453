"""
Scheduling Errors

Error taxonomy shared by every scheduling service. The Frappe layer
(api/schedule_api.py) translates these into frappe exceptions.
"""

from typing import Any, Dict, List, Optional


class SchedulingError(Exception):
	"""
	Base error for the scheduling engine.

	Carries a human readable message plus a structured `details` dict so
	callers can resolve the problem without re-querying.
	"""

	def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
		super().__init__(message)
		self.message = message
		self.details = details or {}


class ValidationError(SchedulingError):
	"""Malformed input: bad times/dates, inverted ranges, bad recurrence config."""
	pass


class InvalidTimeFormat(ValidationError):
	"""A wall-clock value is not a valid "HH:MM" string."""
	pass


class NotFoundError(SchedulingError):
	"""Referenced schedule or resource does not exist (or is inactive)."""
	pass


class ConflictError(SchedulingError):
	"""
	A schedule overlaps existing schedules of the same resource dimension.

	`conflicts` holds the colliding Schedule records.
	"""

	def __init__(
		self,
		message: str,
		conflicts: Optional[List[Any]] = None,
		details: Optional[Dict[str, Any]] = None
	):
		super().__init__(message, details)
		self.conflicts = conflicts or []


class StoreError(SchedulingError):
	"""Failure raised by a persistence collaborator. The original error is kept as __cause__."""
	pass
