"""Daybook reminder scheduling and activity-streak engine."""

__version__ = "0.1.0"
