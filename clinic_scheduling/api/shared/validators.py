"""
Scheduling Validators

Input checks for whitelisted endpoints. Each validator returns the cleaned
value or raises frappe.ValidationError.
"""

import json
import re
from datetime import date
from typing import Any, List, Optional

import frappe
from frappe import _


def validate_date_string(date_str: str, field_name: str = "date") -> str:
    """
    Validate date string format (YYYY-MM-DD).

    Args:
        date_str: Date string to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated date string

    Raises:
        frappe.ValidationError: If date format is invalid
    """
    if not date_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    date_str = str(date_str).strip()

    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use YYYY-MM-DD"), frappe.ValidationError
        )

    # Well formed but not on the calendar, e.g. 2026-02-30
    try:
        date.fromisoformat(date_str)
    except ValueError:
        frappe.throw(_(f"Invalid {field_name}: {date_str}"), frappe.ValidationError)

    return date_str


def validate_time_string(time_str: str, field_name: str = "time") -> str:
    """
    Validate wall-clock time format (HH:MM).

    Range checks (hours < 24, minutes < 60) are left to the engine, which
    reports them with the offending value.

    Raises:
        frappe.ValidationError: If time format is invalid
    """
    if not time_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    time_str = str(time_str).strip()

    if not re.match(r"^\d{1,2}:\d{2}$", time_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use HH:MM"), frappe.ValidationError
        )

    return time_str


def validate_docname(name: str, field_name: str = "name") -> str:
    """
    Validate a document name (ID).

    Ensures the name is not too long and doesn't contain injection patterns.

    Raises:
        frappe.ValidationError: If name is invalid
    """
    if not name:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    name = str(name).strip()

    if len(name) > 140:
        frappe.throw(_(f"{field_name} is too long"), frappe.ValidationError)

    dangerous_patterns = [
        r"<script",
        r"javascript:",
        r"SELECT\s+",
        r"UNION\s+",
        r"DROP\s+",
        r"--",
        r";",
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, name, re.IGNORECASE):
            frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    return name


def parse_list_arg(value: Any, field_name: str = "value") -> Optional[List[str]]:
    """
    Normalize a list argument from a request.

    Accepts a list, a JSON array string ('["a", "b"]') or a comma separated
    string ("a,b"). Returns None for empty input.

    Raises:
        frappe.ValidationError: If a JSON value is not a list
    """
    if value in (None, "", []):
        return None

    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                frappe.throw(_(f"Invalid {field_name}. Expected a JSON list"), frappe.ValidationError)
        else:
            value = text.split(",")

    if not isinstance(value, (list, tuple)):
        frappe.throw(_(f"Invalid {field_name}. Expected a list"), frappe.ValidationError)

    items = [str(item).strip() for item in value if str(item).strip()]
    return items or None
