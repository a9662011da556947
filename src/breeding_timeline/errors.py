from __future__ import annotations


class PlanValidationError(Exception):
    """Raised when plan, preference or forecast input is malformed."""


class PlanStoreError(Exception):
    """Raised by a plan store when a read or write is rejected."""


class LockError(Exception):
    """Raised when a lock transition is requested with unusable input (e.g. no candidate date)."""
