"""Tick-driven transport simulation for porter-sim."""

from porter_sim.simulation.clock import SimulationClock
from porter_sim.simulation.dispatcher import Dispatcher
from porter_sim.simulation.engine import SimulationEngine, run_simulation
from porter_sim.simulation.events import AssignmentRecord, EventLog, ScheduledEvent, SimEvent
from porter_sim.simulation.routing import (
    DirectPathPlanner,
    GraphPathPlanner,
    LocationRegistry,
    Point,
    Route,
    RouteConstraints,
)
from porter_sim.simulation.task_queue import Task, TaskQueue
from porter_sim.simulation.worker import Worker

__all__ = [
    "SimulationEngine",
    "run_simulation",
    "SimulationClock",
    "Dispatcher",
    "Worker",
    "Task",
    "TaskQueue",
    "ScheduledEvent",
    "SimEvent",
    "AssignmentRecord",
    "EventLog",
    "Point",
    "Route",
    "RouteConstraints",
    "DirectPathPlanner",
    "GraphPathPlanner",
    "LocationRegistry",
]
