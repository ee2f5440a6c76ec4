"""Mobile worker: bounded task queue and movement/phase state machine.

    IDLE -> MOVING_TO_TASK -> IN_TASK{MOUNTING -> TRAVELING -> UNMOUNTING}
         -> IDLE | MOVING_TO_TASK

An empty-queued worker roams between idle zones (MOVING_TO_IDLE); a
CHARGING worker rejects every task and does not move.

Two speeds are in play. Planning ETAs (used by the dispatcher) always
use the nominal speed so estimates are stable. Execution uses the
congestion-adjusted effective speed.
"""

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

from porter_sim.models.dispatch import TimingRule
from porter_sim.models.enums import EventType, TaskPhase, WorkerRole, WorkerState
from porter_sim.models.workers import CongestionProfile, IdleRoamConfig, WorkerSpec
from porter_sim.simulation.congestion import CongestionSensor, NoCongestion
from porter_sim.simulation.events import EventLog
from porter_sim.simulation.routing import PathPlanner, Point, Route, RouteConstraints
from porter_sim.simulation.task_queue import Task, TaskQueue

logger = logging.getLogger(__name__)

ARRIVE_TOLERANCE_M = 0.05
_MIN_SPEED = 0.0001


@dataclass
class Status:
    """Current state and best-effort sim seconds left in it."""

    state: WorkerState
    time_remaining_s: float = 0.0


@dataclass
class _Leg:
    """Progress along a route's waypoints."""

    route: Route
    index: int = 0

    def __post_init__(self):
        self.index = 1 if len(self.route.waypoints) >= 2 else 0

    @property
    def done(self) -> bool:
        return self.index >= len(self.route.waypoints)


class Worker:
    """A robotic or human transporter driven one tick at a time.

    The dispatcher interacts with a worker only through calculate_eta()
    and try_accept(); the engine calls advance() once per tick.
    """

    def __init__(
        self,
        spec: WorkerSpec,
        planner: PathPlanner,
        position: Point,
        congestion: Optional[CongestionProfile] = None,
        sensor: Optional[CongestionSensor] = None,
        idle_roam: Optional[IdleRoamConfig] = None,
        idle_zones: tuple[Point, ...] = (),
        rng: Optional[random.Random] = None,
        event_log: Optional[EventLog] = None,
        time_source: Optional[Callable[[], float]] = None,
        route_constraints: Optional[RouteConstraints] = None,
    ):
        self.spec = spec
        self.planner = planner
        self.congestion = congestion or CongestionProfile()
        self.sensor: CongestionSensor = sensor or NoCongestion()
        self.idle_roam = idle_roam or IdleRoamConfig()
        self.idle_zones = tuple(Point(*z) for z in idle_zones)
        self.rng = rng or random.Random(0)
        self.event_log = event_log
        self.route_constraints = route_constraints

        self._time_source = time_source
        self._elapsed_s = 0.0

        self._position = Point(*position)
        self._queue = TaskQueue()
        self._status = Status(spec.initial_state)
        self._phase = TaskPhase.NONE
        self._phase_timer_s = 0.0

        # Movement runtime
        self._reposition_leg: Optional[_Leg] = None
        self._task_leg: Optional[_Leg] = None
        self._roam_leg: Optional[_Leg] = None
        self._idle_wait_s = 0.0
        self._unroutable_task_id: Optional[str] = None

        self._queue_eta_s = 0.0
        self.completed_task_ids: list[str] = []

    # === Properties ===

    @property
    def id(self) -> str:
        return self.spec.id

    @property
    def role(self) -> WorkerRole:
        return self.spec.role

    @property
    def is_robotic(self) -> bool:
        return self.spec.role == WorkerRole.ROBOTIC

    @property
    def nominal_speed(self) -> float:
        return self.spec.nominal_speed

    @property
    def mount_seconds(self) -> float:
        return max(0.0, self.spec.mount_seconds)

    @property
    def unmount_seconds(self) -> float:
        return max(0.0, self.spec.unmount_seconds)

    @property
    def state(self) -> WorkerState:
        return self._status.state

    @property
    def phase(self) -> TaskPhase:
        return self._phase

    @property
    def phase_timer_s(self) -> float:
        return self._phase_timer_s

    @property
    def status(self) -> Status:
        return Status(self._status.state, self._status.time_remaining_s)

    @property
    def position(self) -> Point:
        return self._position

    @property
    def queue(self) -> tuple[Task, ...]:
        """Queued tasks, head first (read-only view)."""
        return tuple(self._queue)

    @property
    def task_count(self) -> int:
        return len(self._queue)

    @property
    def current_task(self) -> Optional[Task]:
        return self._queue.head

    @property
    def queue_eta_s(self) -> float:
        """Planning estimate (sim seconds) to finish every queued task."""
        return self._queue_eta_s

    @property
    def current_target(self) -> Optional[Point]:
        """Where the worker is heading right now, if moving."""
        if self.state == WorkerState.MOVING_TO_TASK and self._reposition_leg:
            return self._reposition_leg.route.end
        if self.state == WorkerState.IN_TASK and self._queue.head is not None:
            return self._queue.head.destination
        if self.state == WorkerState.MOVING_TO_IDLE and self._roam_leg:
            return self._roam_leg.route.end
        return None

    @property
    def now(self) -> float:
        if self._time_source is not None:
            return self._time_source()
        return self._elapsed_s

    def queue_final_position(self) -> Point:
        """Destination of the last queued task, or the current position."""
        last = self._queue.last
        return last.destination if last is not None else self._position

    def effective_speed(self) -> float:
        """Nominal speed reduced by current congestion."""
        count = self.sensor.count_nearby(self)
        return max(0.0, self.nominal_speed) * self.congestion.speed_multiplier(count)

    # === Planning ===

    def calculate_eta(
        self,
        origin: Point,
        destination: Point,
        timing: Optional[TimingRule] = None,
    ) -> float:
        """Sim seconds to finish the current queue and then origin -> destination.

        Uses the nominal speed, never the congestion-adjusted one. Returns
        math.inf if any leg cannot be routed.
        """
        if self.nominal_speed <= 0:
            return math.inf
        speed = max(_MIN_SPEED, self.nominal_speed)

        total = 0.0
        pos = self._position

        for task in self._queue:
            reposition = self._route(pos, task.origin)
            if reposition is None:
                return math.inf
            total += reposition.length / speed + self._planned_task_seconds(task)
            pos = task.destination

        reposition = self._route(pos, origin)
        if reposition is None:
            return math.inf
        total += reposition.length / speed

        leg = self._route(origin, destination)
        if leg is None:
            return math.inf

        extra_mount = timing.extra_mount_seconds if timing else 0.0
        extra_unmount = timing.extra_unmount_seconds if timing else 0.0
        multiplier = timing.travel_multiplier if timing else 1.0

        total += (
            self.mount_seconds + extra_mount
            + leg.length * multiplier / speed
            + self.unmount_seconds + extra_unmount
        )
        return total

    def _planned_task_seconds(self, task: Task) -> float:
        speed = max(_MIN_SPEED, self.nominal_speed)
        return (
            self.mount_seconds + task.extra_mount_s
            + task.route.length * task.travel_multiplier / speed
            + self.unmount_seconds + task.extra_unmount_s
        )

    def _recompute_queue_eta(self) -> None:
        if self._queue.is_empty or self.nominal_speed <= 0:
            self._queue_eta_s = 0.0
            return

        speed = max(_MIN_SPEED, self.nominal_speed)
        total = 0.0
        pos = self._position
        for task in self._queue:
            reposition = self._route(pos, task.origin)
            if reposition is None:
                self._queue_eta_s = math.inf
                return
            total += reposition.length / speed + self._planned_task_seconds(task)
            pos = task.destination

        self._queue_eta_s = total

    # === Task intake ===

    def try_accept(self, task: Task) -> bool:
        """Offer a task to this worker.

        Returns:
            True if the task was queued (possibly preempting the head)
        """
        if self.state == WorkerState.CHARGING:
            return self._reject(task, "charging")
        if self.nominal_speed <= 0:
            return self._reject(task, "immobile")

        if self._route(self.queue_final_position(), task.origin) is None:
            return self._reject(task, "unreachable")

        # A real task always beats idle roaming
        self._cancel_idle_roam()

        if self._queue.is_empty:
            self._queue.append(task)
            self._log(EventType.TASK_ACCEPTED, task_id=task.task_id, slot=0, priority=task.priority_value)
            self._begin_reposition()
            self._recompute_queue_eta()
            return True

        head = self._queue.head
        if task.priority_value > head.priority_value:
            if self._queue.is_full:
                return self._reject(task, "no room to preempt")

            self._queue.push_head(task)
            self._log(
                EventType.TASK_PREEMPTED,
                task_id=task.task_id,
                displaced_task_id=head.task_id,
                priority=task.priority_value,
            )
            self._begin_reposition()
            self._recompute_queue_eta()
            return True

        if self._queue.is_full:
            return self._reject(task, "queue full")

        self._queue.append(task)
        self._log(EventType.TASK_ACCEPTED, task_id=task.task_id, slot=1, priority=task.priority_value)
        if self.state == WorkerState.IDLE:
            self._begin_reposition()
        self._recompute_queue_eta()
        return True

    def _reject(self, task: Task, reason: str) -> bool:
        logger.debug("Worker %s rejected %s: %s", self.id, task.task_id, reason)
        self._log(EventType.TASK_REJECTED, task_id=task.task_id, reason=reason)
        return False

    # === Charging ===

    def begin_charging(self) -> None:
        """Go on charge: no movement, every offered task is rejected."""
        if self.state == WorkerState.CHARGING:
            return
        self._cancel_idle_roam()
        self._status = Status(WorkerState.CHARGING)
        self._log(EventType.CHARGING_STARTED)

    def end_charging(self) -> None:
        """Come off charge; queued tasks resume on the next tick."""
        if self.state != WorkerState.CHARGING:
            return
        self._status = Status(WorkerState.IDLE)
        self._phase = TaskPhase.NONE
        self._phase_timer_s = 0.0
        self._log(EventType.CHARGING_ENDED)

    # === Execution (tick-driven) ===

    def advance(self, dt: float) -> None:
        """Advance movement and phase timers by dt sim seconds."""
        dt = max(0.0, dt)
        self._elapsed_s += dt

        if self.state != WorkerState.IDLE:
            self._status.time_remaining_s = max(0.0, self._status.time_remaining_s - dt)

        if self.state == WorkerState.CHARGING:
            return

        effective = self.effective_speed()

        # Tasks take priority over idle roam
        if not self._queue.is_empty:
            if self.state == WorkerState.MOVING_TO_IDLE:
                self._cancel_idle_roam()
            self._tick_tasks(dt, effective)
            return

        self._tick_idle_roam(dt, effective)

    def _tick_tasks(self, dt: float, effective: float) -> None:
        if self.state in (WorkerState.IDLE, WorkerState.MOVING_TO_IDLE):
            self._begin_reposition()

        if self.state == WorkerState.MOVING_TO_TASK:
            if self._follow(self._reposition_leg, dt, effective):
                self._on_arrived_at_origin()
            return

        if self.state == WorkerState.IN_TASK:
            self._tick_in_task(dt, effective)

    def _begin_reposition(self) -> None:
        head = self._queue.head
        if head is None:
            self._status = Status(WorkerState.IDLE)
            return

        route = self._route(self._position, head.origin)
        if route is None:
            if head.task_id != self._unroutable_task_id:
                logger.warning("No reposition path for '%s' -> %s start.", self.id, head.task_id)
                self._unroutable_task_id = head.task_id
            else:
                logger.debug("Still no reposition path for '%s' -> %s.", self.id, head.task_id)
            self._status = Status(WorkerState.IDLE)
            return

        self._unroutable_task_id = None
        self._reposition_leg = _Leg(route)
        self._task_leg = None
        self._phase = TaskPhase.NONE
        self._phase_timer_s = 0.0

        # momentary estimate; congestion can change it later
        eta = route.length / max(_MIN_SPEED, self.effective_speed())
        self._status = Status(WorkerState.MOVING_TO_TASK, eta)
        logger.debug(
            "Worker %s moving to %s origin. waypoints=%d dist=%.1fm",
            self.id, head.task_id, len(route.waypoints), route.length,
        )
        self._log(
            EventType.MOVING_TO_TASK,
            location=head.origin_code,
            task_id=head.task_id,
            distance_m=route.length,
        )

    def _on_arrived_at_origin(self) -> None:
        head = self._queue.head
        self._reposition_leg = None
        self._task_leg = _Leg(head.route)

        self._phase = TaskPhase.MOUNTING
        self._phase_timer_s = self.mount_seconds + head.extra_mount_s
        self._status = Status(WorkerState.IN_TASK, self._planned_task_seconds(head))

        logger.debug("Worker %s arrived at start. Mounting %.2fs(sim)", self.id, self._phase_timer_s)
        self._log(EventType.MOUNTING_STARTED, location=head.origin_code, task_id=head.task_id)

    def _tick_in_task(self, dt: float, effective: float) -> None:
        head = self._queue.head

        if self._phase == TaskPhase.MOUNTING:
            self._phase_timer_s -= dt
            if self._phase_timer_s <= 0:
                self._phase = TaskPhase.TRAVELING
                self._phase_timer_s = 0.0
                self._log(EventType.TRAVELING_STARTED, location=head.origin_code, task_id=head.task_id)
            return

        if self._phase == TaskPhase.TRAVELING:
            leg = self._task_leg
            if leg is None or len(leg.route.waypoints) < 2:
                self._position = head.destination
                self._begin_unmounting(head)
                return

            if self._follow(leg, dt, effective / max(0.01, head.travel_multiplier)):
                self._begin_unmounting(head)
            return

        if self._phase == TaskPhase.UNMOUNTING:
            self._phase_timer_s -= dt
            if self._phase_timer_s <= 0:
                self._complete_head()

    def _begin_unmounting(self, head: Task) -> None:
        self._task_leg = None
        self._phase = TaskPhase.UNMOUNTING
        self._phase_timer_s = self.unmount_seconds + head.extra_unmount_s
        logger.debug("Worker %s reached destination. Unmounting %.2fs(sim)", self.id, self._phase_timer_s)
        self._log(EventType.UNMOUNTING_STARTED, location=head.destination_code, task_id=head.task_id)

    def _complete_head(self) -> None:
        done = self._queue.pop_head()
        self.completed_task_ids.append(done.task_id)

        self._reposition_leg = None
        self._task_leg = None
        self._phase = TaskPhase.NONE
        self._phase_timer_s = 0.0

        self._log(EventType.TASK_COMPLETED, location=done.destination_code, task_id=done.task_id)
        self._recompute_queue_eta()

        if not self._queue.is_empty:
            self._begin_reposition()
        else:
            self._status = Status(WorkerState.IDLE)
            self._idle_wait_s = 0.0
            self._log(EventType.WORKER_IDLE)

    # === Idle roaming ===

    def _tick_idle_roam(self, dt: float, effective: float) -> None:
        if not self.idle_zones or effective <= 0:
            self._status = Status(WorkerState.IDLE)
            self._idle_wait_s = 0.0
            self._roam_leg = None
            return

        if self.state == WorkerState.MOVING_TO_IDLE:
            if self._follow(self._roam_leg, dt, effective):
                self._on_arrived_at_roam_destination()
            return

        self._status.state = WorkerState.IDLE

        if self._idle_wait_s > 0:
            self._idle_wait_s = max(0.0, self._idle_wait_s - dt)
            self._status.time_remaining_s = self._idle_wait_s
            return

        self._begin_idle_roam(effective)

    def _begin_idle_roam(self, effective: float) -> None:
        picked = self._pick_idle_roam_route()
        if picked is None:
            self._status = Status(WorkerState.IDLE)
            return

        self._roam_leg = _Leg(picked)
        self._status = Status(WorkerState.MOVING_TO_IDLE, picked.length / max(_MIN_SPEED, effective))
        self._log(EventType.IDLE_ROAM_STARTED, distance_m=picked.length)

    def _pick_idle_roam_route(self) -> Optional[Route]:
        radius = max(0.1, self.idle_roam.pick_radius_m)
        for _ in range(self.idle_roam.max_pick_attempts):
            center = self.rng.choice(self.idle_zones)
            angle = self.rng.uniform(0.0, 2 * math.pi)
            distance = radius * math.sqrt(self.rng.random())
            candidate = Point(
                center.x + distance * math.cos(angle),
                center.y + distance * math.sin(angle),
            )
            route = self._route(self._position, candidate)
            if route is not None:
                return route
        return None

    def _on_arrived_at_roam_destination(self) -> None:
        self._roam_leg = None
        self._idle_wait_s = max(0.0, self.idle_roam.wait_seconds)
        self._status = Status(WorkerState.IDLE, self._idle_wait_s)

    def _cancel_idle_roam(self) -> None:
        self._roam_leg = None
        self._idle_wait_s = 0.0
        if self.state == WorkerState.MOVING_TO_IDLE:
            self._status = Status(WorkerState.IDLE)

    # === Movement helpers ===

    def _follow(self, leg: Optional[_Leg], dt: float, speed: float) -> bool:
        """Move along a leg for dt seconds. Returns True on arrival."""
        if leg is None or leg.done:
            return True

        remaining = max(0.0, speed) * dt
        waypoints = leg.route.waypoints

        while remaining > 0 and not leg.done:
            target = waypoints[leg.index]
            dist = self._position.distance_to(target)

            if dist <= ARRIVE_TOLERANCE_M:
                leg.index += 1
                continue

            step = min(remaining, dist)
            if step >= dist - 0.0001:
                self._position = target
                leg.index += 1
            else:
                ratio = step / dist
                self._position = Point(
                    self._position.x + (target.x - self._position.x) * ratio,
                    self._position.y + (target.y - self._position.y) * ratio,
                )
            remaining -= step

        return leg.done

    def _route(self, a: Point, b: Point) -> Optional[Route]:
        return self.planner.route(a, b, self.route_constraints)

    def _log(self, event_type: EventType, location: Optional[str] = None, **details) -> None:
        if self.event_log is None:
            return
        self.event_log.log_event(
            time_s=self.now,
            event_type=event_type,
            entity_id=self.id,
            location=location,
            **details,
        )

    def __repr__(self) -> str:
        return (
            f"Worker({self.id}, {self.role.value}, {self.state.value}/{self._phase.value}, "
            f"queue={[t.task_id for t in self._queue]})"
        )
