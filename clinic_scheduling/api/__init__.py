"""
Clinic Scheduling API

Structure:
    api/
    ├── __init__.py          # This file
    ├── schedule_api.py      # Whitelisted schedule endpoints
    └── shared/              # Validators and rate limiting

Usage:
    frappe.call("clinic_scheduling.api.schedule_api.get_available_slots", ...)
"""

from . import shared

__all__ = [
    "shared",
]
