"""Enumeration types for porter-sim schema"""

from enum import Enum


class ClockMode(str, Enum):
    """How the time column of a schedule file is interpreted"""

    ELAPSED = "elapsed"
    """MM:SS offset from sequence start"""

    TIME_OF_DAY = "time_of_day"
    """HH:MM or HH:MM:SS wall-clock reading, anchored to the earliest row"""


class WorkerRole(str, Enum):
    """Kind of mobile worker, used for eligibility and selection bias"""

    ROBOTIC = "robotic"
    """Autonomous transport robot"""

    HUMAN = "human"
    """Human porter"""


class WorkerState(str, Enum):
    """Top-level operational state of a worker"""

    IDLE = "idle"
    """No movement; waiting for a task or between idle roams"""

    MOVING_TO_TASK = "moving_to_task"
    """Repositioning to the origin of the head task"""

    IN_TASK = "in_task"
    """Executing the head task (see TaskPhase)"""

    MOVING_TO_IDLE = "moving_to_idle"
    """Roaming towards a point near an idle zone"""

    CHARGING = "charging"
    """Unavailable; every task is rejected"""


class TaskPhase(str, Enum):
    """Sub-phase of a worker that is IN_TASK"""

    NONE = "none"
    MOUNTING = "mounting"
    TRAVELING = "traveling"
    UNMOUNTING = "unmounting"


class AssignmentOutcome(str, Enum):
    """Result of dispatching one fired schedule event"""

    ASSIGNED = "assigned"
    UNRESOLVED_LOCATION = "unresolved-location"
    NO_ROUTE = "no-route"
    NO_ELIGIBLE_WORKER = "no-eligible-worker"
    REJECTED_BY_WORKER = "rejected-by-worker"


class EventType(str, Enum):
    """Categories of simulation events for logging and analysis"""

    # System events
    SIMULATION_STARTED = "simulation_started"
    SIMULATION_ENDED = "simulation_ended"

    # Schedule / dispatch
    TASK_FIRED = "task_fired"
    TASK_ASSIGNED = "task_assigned"
    TASK_UNASSIGNED = "task_unassigned"

    # Worker queue
    TASK_ACCEPTED = "task_accepted"
    TASK_REJECTED = "task_rejected"
    TASK_PREEMPTED = "task_preempted"

    # Worker movement / phases
    MOVING_TO_TASK = "moving_to_task"
    MOUNTING_STARTED = "mounting_started"
    TRAVELING_STARTED = "traveling_started"
    UNMOUNTING_STARTED = "unmounting_started"
    TASK_COMPLETED = "task_completed"
    IDLE_ROAM_STARTED = "idle_roam_started"
    WORKER_IDLE = "worker_idle"
    CHARGING_STARTED = "charging_started"
    CHARGING_ENDED = "charging_ended"
