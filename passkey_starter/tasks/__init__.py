"""
Background tasks module for housekeeping.

Periodically evicts expired ceremony challenges and sessions.
"""

from .scheduler import HousekeepingScheduler, ScheduledTask

__all__ = [
    "HousekeepingScheduler",
    "ScheduledTask",
]
