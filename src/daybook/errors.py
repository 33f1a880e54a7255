"""Error taxonomy for the reminder engine.

Everything except EnumerationError is caught at the per-user unit of work
inside a dispatch tick. EnumerationError aborts the tick.
"""

from __future__ import annotations


class ReminderEngineError(Exception):
    """Base class for reminder engine failures."""


class ConfigurationError(ReminderEngineError):
    """A stored timezone or time-of-day, or a service setting, cannot be interpreted."""


class DeliveryError(ReminderEngineError):
    """A delivery transport rejected or failed to accept a message."""


class DataAccessError(ReminderEngineError):
    """Ledger, settings, goal or log store unreachable for one user."""


class EnumerationError(ReminderEngineError):
    """The set of eligible users could not be listed at all."""
