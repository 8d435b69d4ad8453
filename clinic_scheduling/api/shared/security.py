"""
Rate Limiting for Public Endpoints

Per-IP request counters kept in Frappe's cache (Redis).

Limits can be tuned per site in site_config.json:
    "clinic_scheduling": {"rate_limits": {"get_available_slots": 60}}
"""

import frappe
from frappe import _
from frappe.utils import cint


def get_rate_limit(action: str, default: int) -> int:
    """Requests allowed per window for `action`, honouring site overrides."""
    settings = frappe.conf.get("clinic_scheduling") or {}
    return cint((settings.get("rate_limits") or {}).get(action)) or default


def check_rate_limit(action: str, limit: int = 10, seconds: int = 60) -> None:
    """
    Count a request from the current client against `action`.

    Args:
        action: endpoint being limited
        limit: default number of requests allowed per window
        seconds: window length

    Raises:
        frappe.TooManyRequestsError: once the client used up the window
    """
    ip = get_client_ip()
    limit = get_rate_limit(action, limit)
    cache_key = f"rate_limit:clinic_scheduling:{action}:{ip}"

    hits = cint(frappe.cache.get_value(cache_key) or 0)

    if hits >= limit:
        frappe.log_error(
            title=_("Rate Limit Exceeded"),
            message=f"IP: {ip}, Action: {action}, Limit: {limit}/{seconds}s"
        )
        frappe.throw(
            _("Too many requests. Please wait a moment and try again."),
            frappe.TooManyRequestsError
        )

    frappe.cache.set_value(cache_key, hits + 1, expires_in_sec=seconds)


def get_client_ip() -> str:
    """Client IP address behind proxies; "local" outside a request (console, tests)."""
    request = getattr(frappe.local, "request", None)
    if request is None:
        return "local"

    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or "unknown"
