"""Exception types raised by porter-sim.

Dispatch problems (unknown location codes, missing routes, full queues) are
not exceptions: they are recorded as assignment outcomes in the EventLog.
"""


class PorterSimError(Exception):
    """Base class for all porter-sim errors."""


class ScheduleLoadError(PorterSimError):
    """Schedule source missing, unreadable, or holding no valid rows."""


class ScheduleParseError(PorterSimError, ValueError):
    """A single schedule row or time string could not be parsed."""


class ClockStateError(PorterSimError):
    """Clock operation attempted in the wrong lifecycle state."""


class QueueCapacityError(PorterSimError):
    """A task queue operation would exceed its fixed capacity."""
