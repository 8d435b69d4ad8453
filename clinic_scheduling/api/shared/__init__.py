"""
Shared utilities for the Clinic Scheduling API.
"""

from .security import check_rate_limit, get_client_ip, get_rate_limit
from .validators import (
    parse_list_arg,
    validate_date_string,
    validate_docname,
    validate_time_string,
)

__all__ = [
    "check_rate_limit",
    "get_client_ip",
    "get_rate_limit",
    "parse_list_arg",
    "validate_date_string",
    "validate_docname",
    "validate_time_string",
]
