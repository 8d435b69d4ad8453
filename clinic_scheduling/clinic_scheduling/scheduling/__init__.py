"""
Scheduling Services Module

This module provides the core business logic for clinic scheduling:
- Schedule creation and lifecycle (service.py)
- Input validation (validation.py)
- Conflict detection (overlap.py)
- Recurrence expansion (recurrence.py)
- Slot generation and availability (slots.py, availability.py)
- Store contracts and in-memory stores (store.py)
- Frappe DocType bindings (frappe_store.py)

Everything except frappe_store.py is framework independent.
"""
