"""
Pure domain layer: the clock abstraction, Decimal money helpers, and the
caller authorization context.  No ORM, no database, no I/O.
"""

from billing_kernel.domain.auth import DEFAULT_STAFF_ROLES, AuthContext
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.money import ZERO, format_money, round_money, to_decimal

__all__ = [
    "AuthContext",
    "DEFAULT_STAFF_ROLES",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ZERO",
    "format_money",
    "round_money",
    "to_decimal",
]
