"""Shared fixtures for porter-sim tests."""

from pathlib import Path
from typing import Optional

import pytest

from porter_sim.models.enums import WorkerRole, WorkerState
from porter_sim.models.workers import WorkerSpec
from porter_sim.simulation.events import EventLog
from porter_sim.simulation.routing import DirectPathPlanner, Point, Route
from porter_sim.simulation.task_queue import Task
from porter_sim.simulation.worker import Worker

ROOT = Path(__file__).parent.parent


class SwitchablePlanner(DirectPathPlanner):
    """Straight-line planner that can be told to fail every query."""

    def __init__(self):
        self.blocked = False
        self.calls = 0

    def route(self, a, b, constraints=None) -> Optional[Route]:
        self.calls += 1
        if self.blocked:
            return None
        return super().route(a, b, constraints)


class FixedCountSensor:
    """Congestion sensor reporting a constant crowd size."""

    def __init__(self, count: int):
        self.count = count

    def count_nearby(self, worker) -> int:
        return self.count


@pytest.fixture
def example_scenario_path() -> Path:
    path = ROOT / "scenarios" / "example_ward.json"
    if not path.exists():
        pytest.skip("Example scenario not found")
    return path


@pytest.fixture
def example_schedule_path() -> Path:
    path = ROOT / "sequences" / "example_ward.csv"
    if not path.exists():
        pytest.skip("Example schedule not found")
    return path


@pytest.fixture
def make_worker():
    """Factory for workers on an open floor (straight-line routing)."""

    def _make(
        worker_id: str = "w1",
        role: WorkerRole = WorkerRole.ROBOTIC,
        position=(0.0, 0.0),
        speed: float = 1.0,
        mount: float = 0.0,
        unmount: float = 0.0,
        initial_state: WorkerState = WorkerState.IDLE,
        planner=None,
        **kwargs,
    ) -> Worker:
        spec = WorkerSpec(
            id=worker_id,
            role=role,
            nominal_speed=speed,
            mount_seconds=mount,
            unmount_seconds=unmount,
            start_location="A",
            initial_state=initial_state,
        )
        kwargs.setdefault("event_log", EventLog())
        return Worker(
            spec,
            planner=planner or DirectPathPlanner(),
            position=Point(*position),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_task():
    """Factory for tasks with a straight origin -> destination route."""

    def _make(
        task_id: str = "t1",
        origin=(0.0, 0.0),
        destination=(0.0, 10.0),
        priority_value: int = 1,
        priority_tag: str = "Routine",
        timing=None,
    ) -> Task:
        origin, destination = Point(*origin), Point(*destination)
        return Task(
            task_id=task_id,
            origin_code=f"{task_id}-from",
            destination_code=f"{task_id}-to",
            origin=origin,
            destination=destination,
            priority_tag=priority_tag,
            priority_value=priority_value,
            route=Route.from_points([origin, destination]),
            timing=timing,
        )

    return _make
