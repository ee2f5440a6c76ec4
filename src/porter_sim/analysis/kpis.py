"""KPI calculations for simulation results.

This module computes Key Performance Indicators from a run's event log:
dispatch outcomes from the assignment audit trail, and per-worker
throughput from the lifecycle events.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from porter_sim.models.enums import AssignmentOutcome, EventType
from porter_sim.simulation.events import EventLog


def _to_python(value: Any) -> Any:
    """Convert numpy/pandas types to native Python types for JSON serialization."""
    if value is None:
        return None
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, pd.Series):
        return value.tolist()
    if isinstance(value, dict):
        return {k: _to_python(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_python(v) for v in value]
    return value


@dataclass
class DispatchKPIs:
    """Key Performance Indicators for task assignment and completion."""

    # Counts
    total_tasks: int = 0
    assigned: int = 0
    by_outcome: dict[str, int] = field(default_factory=dict)
    completed_tasks: int = 0

    # Rates (0-1)
    assignment_rate: Optional[float] = None
    robotic_share: Optional[float] = None

    # Planning ETA of the chosen worker (seconds)
    mean_eta: Optional[float] = None
    median_eta: Optional[float] = None
    p90_eta: Optional[float] = None
    max_eta: Optional[float] = None

    # Fired -> completed (seconds)
    mean_turnaround: Optional[float] = None
    p90_turnaround: Optional[float] = None

    # Per worker
    by_worker: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialisation."""
        return _to_python({
            "total_tasks": self.total_tasks,
            "assigned": self.assigned,
            "by_outcome": self.by_outcome,
            "completed_tasks": self.completed_tasks,
            "assignment_rate": self.assignment_rate,
            "robotic_share": self.robotic_share,
            "mean_eta_s": self.mean_eta,
            "median_eta_s": self.median_eta,
            "p90_eta_s": self.p90_eta,
            "max_eta_s": self.max_eta,
            "mean_turnaround_s": self.mean_turnaround,
            "p90_turnaround_s": self.p90_turnaround,
            "by_worker": self.by_worker,
        })

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "=== Dispatch KPIs ===",
            "",
            "Task Counts:",
            f"  Total:     {self.total_tasks}",
            f"  Assigned:  {self.assigned}",
            f"  Completed: {self.completed_tasks}",
        ]
        for outcome, count in self.by_outcome.items():
            if outcome != AssignmentOutcome.ASSIGNED.value and count:
                lines.append(f"  {outcome}: {count}")

        lines.extend([
            "",
            f"Assignment rate: {self._pct(self.assignment_rate)}",
            f"Robotic share:   {self._pct(self.robotic_share)}",
            "",
            "Planning ETA (chosen worker):",
            f"  Mean:   {self._fmt(self.mean_eta)} s",
            f"  Median: {self._fmt(self.median_eta)} s",
            f"  P90:    {self._fmt(self.p90_eta)} s",
            "",
            "Turnaround (fired → completed):",
            f"  Mean:   {self._fmt(self.mean_turnaround)} s",
            f"  P90:    {self._fmt(self.p90_turnaround)} s",
        ])

        if self.by_worker:
            lines.extend(["", "By Worker:"])
            for worker_id, stats in self.by_worker.items():
                lines.append(
                    f"  {worker_id} ({stats['role']}): {stats['assigned']} assigned, "
                    f"{stats['completed']} completed"
                )

        return "\n".join(lines)

    @staticmethod
    def _fmt(value: Optional[float]) -> str:
        return f"{value:.1f}" if value is not None else "N/A"

    @staticmethod
    def _pct(value: Optional[float]) -> str:
        return f"{value * 100:.1f}%" if value is not None else "N/A"


def compute_dispatch_kpis(
    event_log: EventLog,
    worker_roles: Optional[dict[str, str]] = None,
) -> DispatchKPIs:
    """Compute dispatch KPIs from simulation event log.

    Args:
        event_log: Completed simulation event log
        worker_roles: Worker id -> role value, for robotic share and the
            per-worker breakdown (workers with no assignments still listed)

    Returns:
        DispatchKPIs with all computed metrics
    """
    kpis = DispatchKPIs()
    worker_roles = worker_roles or {}

    kpis.by_outcome = {o.value: 0 for o in AssignmentOutcome}
    for worker_id, role in worker_roles.items():
        kpis.by_worker[worker_id] = {"role": role, "assigned": 0, "completed": 0}

    df = event_log.assignments_to_dataframe()
    kpis.total_tasks = int(len(df))

    completed = event_log.filter_by_type(EventType.TASK_COMPLETED)
    kpis.completed_tasks = len(completed)
    for event in completed:
        stats = kpis.by_worker.setdefault(
            event.entity_id, {"role": worker_roles.get(event.entity_id, "unknown"), "assigned": 0, "completed": 0}
        )
        stats["completed"] += 1

    if df.empty:
        return kpis

    for outcome, count in df["outcome"].value_counts().items():
        kpis.by_outcome[outcome] = int(count)

    assigned = df[df["outcome"] == AssignmentOutcome.ASSIGNED.value]
    kpis.assigned = int(len(assigned))
    kpis.assignment_rate = kpis.assigned / kpis.total_tasks

    if len(assigned) > 0:
        roles = assigned["chosen_worker_id"].map(lambda w: worker_roles.get(w))
        kpis.robotic_share = float((roles == "robotic").mean())

        etas = assigned["raw_eta_s"].dropna().astype(float)
        if len(etas) > 0:
            kpis.mean_eta = float(etas.mean())
            kpis.median_eta = float(etas.median())
            kpis.p90_eta = float(np.percentile(etas, 90))
            kpis.max_eta = float(etas.max())

        for worker_id, count in assigned["chosen_worker_id"].value_counts().items():
            stats = kpis.by_worker.setdefault(
                worker_id, {"role": worker_roles.get(worker_id, "unknown"), "assigned": 0, "completed": 0}
            )
            stats["assigned"] = int(count)

    # Turnaround: fired time from the audit trail, completion from events
    if completed:
        fired = df.set_index("task_id")["time_s"]
        turnaround = pd.Series(
            [e.time_s - fired[e.details["task_id"]] for e in completed if e.details.get("task_id") in fired.index],
            dtype=float,
        )
        if len(turnaround) > 0:
            kpis.mean_turnaround = float(turnaround.mean())
            kpis.p90_turnaround = float(turnaround.quantile(0.9))

    return kpis


def compute_all_kpis(event_log: EventLog, worker_roles: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Compute all KPIs from event log.

    Returns dict with keys: dispatch, events
    All values are JSON-serializable (native Python types).
    """
    by_type = {t.value: 0 for t in EventType}
    for event in event_log.events:
        by_type[event.event_type.value] += 1

    return {
        "dispatch": compute_dispatch_kpis(event_log, worker_roles).to_dict(),
        "events": _to_python(by_type),
    }
