"""Assigns fired schedule events to workers.

For each event the dispatcher resolves both endpoints, decides whether
robots may take it, asks every candidate for a planning ETA, biases the
comparison against humans when a robot is in the pool, and offers the
task to the lowest-scoring worker. Every event leaves exactly one
AssignmentRecord in the event log, whatever the outcome.
"""

import logging
import math
from typing import Callable, Optional

from porter_sim.models.dispatch import DispatchPolicy, TimingRule
from porter_sim.models.enums import AssignmentOutcome, EventType
from porter_sim.simulation.events import AssignmentRecord, EventLog, ScheduledEvent
from porter_sim.simulation.routing import LocationRegistry, PathPlanner, RouteConstraints
from porter_sim.simulation.task_queue import Task
from porter_sim.simulation.worker import Worker

logger = logging.getLogger(__name__)


class Dispatcher:
    """Chooses a worker for each fired event."""

    def __init__(
        self,
        registry: LocationRegistry,
        planner: PathPlanner,
        policy: Optional[DispatchPolicy] = None,
        event_log: Optional[EventLog] = None,
        time_source: Optional[Callable[[], float]] = None,
        route_constraints: Optional[RouteConstraints] = None,
    ):
        self.registry = registry
        self.planner = planner
        self.policy = policy or DispatchPolicy()
        self.event_log = event_log if event_log is not None else EventLog()
        self.route_constraints = route_constraints
        self._time_source = time_source

        self._workers: list[Worker] = []

    # === Worker registry ===

    def register_worker(self, worker: Worker) -> bool:
        """Add a worker to the pool. Returns False for duplicates."""
        if any(w is worker or w.id == worker.id for w in self._workers):
            logger.warning("Worker '%s' already registered; ignoring.", worker.id)
            return False
        self._workers.append(worker)
        return True

    @property
    def workers(self) -> list[Worker]:
        return list(self._workers)

    @property
    def robotic_workers(self) -> list[Worker]:
        return [w for w in self._workers if w.is_robotic]

    @property
    def human_workers(self) -> list[Worker]:
        return [w for w in self._workers if not w.is_robotic]

    # === Policy lookups ===

    def is_robot_allowed(self, priority_tag: str) -> bool:
        """Robots may take a tag unless it is on either disallow list."""
        if not self.policy.use_robot_filter:
            return True

        tag = priority_tag or ""
        if tag in self.policy.robot_disallowed_priorities:
            return False

        lowered = tag.lower()
        for needle in self.policy.robot_disallowed_tags:
            if needle and needle.lower() in lowered:
                return False
        return True

    def timing_rule_for(self, priority_tag: str) -> Optional[TimingRule]:
        """First timing rule whose tag appears in priority_tag, if any."""
        lowered = (priority_tag or "").lower()
        for rule in self.policy.timing_rules:
            if rule.contains_tag and rule.contains_tag.lower() in lowered:
                return rule
        return None

    def priority_value_for(self, priority_tag: str) -> int:
        tag = (priority_tag or "").strip()
        try:
            return int(tag)
        except ValueError:
            pass

        lowered = tag.lower()
        for key, value in self.policy.priority_values.items():
            if key.lower() == lowered:
                return value
        for key, value in self.policy.priority_values.items():
            if key and key.lower() in lowered:
                return value
        return self.policy.default_priority_value

    # === Dispatch ===

    def on_event(self, event: ScheduledEvent) -> AssignmentRecord:
        """Clock subscriber: plan and offer one task."""
        now = self._now(event)
        self.event_log.log_event(
            time_s=now,
            event_type=EventType.TASK_FIRED,
            entity_id=event.id,
            location=event.origin_code,
            destination=event.destination_code,
            priority=event.priority_tag,
        )

        record = self._dispatch(event, now)
        self.event_log.record_assignment(record)

        if record.is_assigned:
            self.event_log.log_event(
                time_s=now,
                event_type=EventType.TASK_ASSIGNED,
                entity_id=event.id,
                location=event.origin_code,
                worker=record.chosen_worker_id,
                raw_eta_s=record.raw_eta_s,
            )
        else:
            self.event_log.log_event(
                time_s=now,
                event_type=EventType.TASK_UNASSIGNED,
                entity_id=event.id,
                location=event.origin_code,
                outcome=record.outcome.value,
            )
        return record

    def _dispatch(self, event: ScheduledEvent, now: float) -> AssignmentRecord:
        record = AssignmentRecord(
            task_id=event.id,
            time_s=now,
            outcome=AssignmentOutcome.NO_ELIGIBLE_WORKER,
            origin_code=event.origin_code,
            destination_code=event.destination_code,
            priority_tag=event.priority_tag,
        )

        origin = self.registry.resolve(event.origin_code)
        destination = self.registry.resolve(event.destination_code)
        if origin is None or destination is None:
            logger.warning(
                "Could not resolve From/To for %s: '%s' -> '%s'",
                event.id, event.origin_code, event.destination_code,
            )
            record.outcome = AssignmentOutcome.UNRESOLVED_LOCATION
            return record

        route = self.planner.route(origin, destination, self.route_constraints)
        if route is None:
            logger.warning(
                "No route for %s: '%s' -> '%s'",
                event.id, event.origin_code, event.destination_code,
            )
            record.outcome = AssignmentOutcome.NO_ROUTE
            return record

        robot_allowed = self.is_robot_allowed(event.priority_tag)
        timing = self.timing_rule_for(event.priority_tag)
        record.robot_allowed = robot_allowed
        record.timing_tag = timing.contains_tag if timing else ""

        candidates = self.robotic_workers if robot_allowed else []
        candidates += self.human_workers
        has_robot = any(w.is_robotic for w in candidates)

        best: Optional[Worker] = None
        best_raw = math.inf
        best_score = math.inf

        for worker in candidates:
            raw = worker.calculate_eta(origin, destination, timing)
            if not math.isfinite(raw):
                logger.debug("[Dispatcher] Option %s skipped: no finite ETA", worker.id)
                continue

            score = raw
            if not worker.is_robotic and has_robot:
                score *= self.policy.human_penalty_factor

            logger.debug(
                "[Dispatcher] Option %s (%s) raw=%.1fs score=%.1fs",
                worker.id, worker.role.value, raw, score,
            )
            if score < best_score:
                best = worker
                best_raw = raw
                best_score = score

        if best is None:
            logger.warning(
                "No eligible worker for %s (%s -> %s, %s).",
                event.id, event.origin_code, event.destination_code, event.priority_tag,
            )
            return record

        task = Task(
            task_id=event.id,
            origin_code=event.origin_code,
            destination_code=event.destination_code,
            origin=origin,
            destination=destination,
            priority_tag=event.priority_tag,
            priority_value=self.priority_value_for(event.priority_tag),
            route=route,
            planned_eta_s=best_raw,
            timing=timing,
        )

        record.chosen_worker_id = best.id
        record.raw_eta_s = best_raw
        record.selection_score = best_score

        if not best.try_accept(task):
            logger.warning("Worker %s rejected %s.", best.id, event.id)
            record.outcome = AssignmentOutcome.REJECTED_BY_WORKER
            return record

        logger.info(
            "[Dispatcher] Assigned %s -> %s (%s) ETA=%.1fs",
            event.id, best.id, best.role.value, best_raw,
        )
        record.outcome = AssignmentOutcome.ASSIGNED
        return record

    def _now(self, event: ScheduledEvent) -> float:
        if self._time_source is not None:
            return self._time_source()
        return event.firing_time_s
