"""Simulation event logging and the dispatch audit trail.

Worker lifecycle events are recorded to an EventLog as SimEvents, and
every fired schedule event leaves exactly one AssignmentRecord. Both can
be queried for KPI calculation and exported for analysis.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import pandas as pd

from porter_sim.models.enums import AssignmentOutcome, EventType


@dataclass(frozen=True)
class ScheduledEvent:
    """A transport request loaded from the schedule.

    Immutable once loaded. Ids are dense and follow ascending firing time.
    """

    id: str
    """Sequential id (id_000, id_001, ...) in sorted order"""

    firing_time_s: float
    """Sim seconds after begin() when the event fires"""

    origin_code: str
    """Location code of the pickup"""

    destination_code: str
    """Location code of the drop-off"""

    priority_tag: str
    """Free-text priority tag from the schedule (e.g. 'STAT', 'Routine-ICU')"""

    line_number: int = 0
    """1-based line in the source the row came from"""

    time_of_day_s: Optional[int] = None
    """Absolute seconds-of-day for time-of-day schedules"""


@dataclass
class SimEvent:
    """A single simulation event.

    Events are the atomic units of simulation output. Each event
    records what happened, when, where, and to whom.
    """

    time_s: float
    """Simulation time when event occurred (seconds from start)"""

    event_type: EventType
    """Category of event"""

    entity_id: str
    """ID of primary entity involved (worker, task)"""

    location: Optional[str] = None
    """Location code where event occurred (if applicable)"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional event-specific data"""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialisation."""
        return {
            "time_s": self.time_s,
            "event_type": self.event_type.value,
            "entity_id": self.entity_id,
            "location": self.location,
            **self.details,
        }


@dataclass
class AssignmentRecord:
    """Audit entry for one fired schedule event."""

    task_id: str
    time_s: float
    outcome: AssignmentOutcome
    chosen_worker_id: Optional[str] = None
    raw_eta_s: Optional[float] = None
    """Chosen worker's unbiased planning ETA"""
    selection_score: Optional[float] = None
    """ETA after the human penalty, used only for comparison"""
    origin_code: str = ""
    destination_code: str = ""
    priority_tag: str = ""
    robot_allowed: Optional[bool] = None
    timing_tag: str = ""

    @property
    def is_assigned(self) -> bool:
        return self.outcome == AssignmentOutcome.ASSIGNED

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data


class EventLog:
    """Collects simulation events and the assignment audit trail.

    The EventLog is the primary output of a simulation run.
    """

    def __init__(self):
        self._events: list[SimEvent] = []
        self._assignments: list[AssignmentRecord] = []

    def log(self, event: SimEvent) -> None:
        """Record an event."""
        self._events.append(event)

    def log_event(
        self,
        time_s: float,
        event_type: EventType,
        entity_id: str,
        location: Optional[str] = None,
        **details: Any,
    ) -> SimEvent:
        """Convenience method to create and log an event."""
        event = SimEvent(
            time_s=time_s,
            event_type=event_type,
            entity_id=entity_id,
            location=location,
            details=details,
        )
        self.log(event)
        return event

    # === Audit Trail ===

    def record_assignment(self, record: AssignmentRecord) -> None:
        """Append an assignment record (append-only, firing order)."""
        self._assignments.append(record)

    @property
    def assignments(self) -> list[AssignmentRecord]:
        """All assignment records in firing order."""
        return list(self._assignments)

    def get_assignment(self, task_id: str) -> Optional[AssignmentRecord]:
        for record in self._assignments:
            if record.task_id == task_id:
                return record
        return None

    def filter_by_outcome(self, outcome: AssignmentOutcome) -> list[AssignmentRecord]:
        return [r for r in self._assignments if r.outcome == outcome]

    # === Event Queries ===

    @property
    def events(self) -> list[SimEvent]:
        """All events in chronological order."""
        return sorted(self._events, key=lambda e: e.time_s)

    def filter_by_type(self, event_type: EventType) -> list[SimEvent]:
        """Get events of a specific type."""
        return [e for e in self._events if e.event_type == event_type]

    def filter_by_entity(self, entity_id: str) -> list[SimEvent]:
        """Get events for a specific entity."""
        return [e for e in self._events if e.entity_id == entity_id]

    def filter_by_time(
        self,
        start_s: float = 0,
        end_s: Optional[float] = None,
    ) -> list[SimEvent]:
        """Get events within a time range."""
        events = [e for e in self._events if e.time_s >= start_s]
        if end_s is not None:
            events = [e for e in events if e.time_s <= end_s]
        return events

    # === Export ===

    def to_list(self) -> list[dict[str, Any]]:
        """Export all events as list of dicts."""
        return [e.to_dict() for e in self.events]

    def to_dataframe(self) -> pd.DataFrame:
        """Export events to pandas DataFrame."""
        return pd.DataFrame(self.to_list())

    def assignments_to_dataframe(self) -> pd.DataFrame:
        """Export the audit trail to a DataFrame, one row per fired event."""
        columns = [
            "task_id", "time_s", "outcome", "chosen_worker_id", "raw_eta_s",
            "selection_score", "origin_code", "destination_code",
            "priority_tag", "robot_allowed", "timing_tag",
        ]
        return pd.DataFrame([r.to_dict() for r in self._assignments], columns=columns)

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return (
            f"EventLog({len(self._events)} events, "
            f"{len(self._assignments)} assignments)"
        )
