"""Transport tasks and the fixed two-slot worker queue."""

from dataclasses import dataclass
from typing import Iterator, Optional

from porter_sim.errors import QueueCapacityError
from porter_sim.models.dispatch import TimingRule
from porter_sim.simulation.routing import Point, Route


@dataclass
class Task:
    """A transport request bound to resolved endpoints.

    Created by the dispatcher from a fired schedule event; owned by a
    worker once accepted and dropped when the worker completes it.
    """

    task_id: str
    origin_code: str
    destination_code: str
    origin: Point
    destination: Point
    priority_tag: str
    priority_value: int
    route: Route
    """Planned origin -> destination route"""
    planned_eta_s: float = 0.0
    """Raw ETA of the worker the task was offered to"""
    timing: Optional[TimingRule] = None

    @property
    def extra_mount_s(self) -> float:
        return self.timing.extra_mount_seconds if self.timing else 0.0

    @property
    def extra_unmount_s(self) -> float:
        return self.timing.extra_unmount_seconds if self.timing else 0.0

    @property
    def travel_multiplier(self) -> float:
        return self.timing.travel_multiplier if self.timing else 1.0


class TaskQueue:
    """Ordered task queue with a hard capacity of two.

    Slot 0 (head) is the task being executed, slot 1 (tail) is next.
    """

    CAPACITY = 2

    def __init__(self):
        self._slots: list[Task] = []

    @property
    def head(self) -> Optional[Task]:
        return self._slots[0] if self._slots else None

    @property
    def tail(self) -> Optional[Task]:
        return self._slots[1] if len(self._slots) > 1 else None

    @property
    def last(self) -> Optional[Task]:
        """Task executed last (tail if present, else head)."""
        return self._slots[-1] if self._slots else None

    @property
    def is_empty(self) -> bool:
        return not self._slots

    @property
    def is_full(self) -> bool:
        return len(self._slots) >= self.CAPACITY

    def append(self, task: Task) -> None:
        """Add a task after the current ones."""
        if self.is_full:
            raise QueueCapacityError(f"Queue full; cannot append {task.task_id}")
        self._slots.append(task)

    def push_head(self, task: Task) -> None:
        """Install a task at the head, shifting the current head to the tail."""
        if self.is_full:
            raise QueueCapacityError(f"Tail occupied; cannot push {task.task_id} to head")
        self._slots.insert(0, task)

    def pop_head(self) -> Task:
        """Remove and return the head; the tail (if any) becomes the head."""
        if not self._slots:
            raise IndexError("pop_head from empty TaskQueue")
        return self._slots.pop(0)

    def clear(self) -> None:
        self._slots.clear()

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._slots))

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"TaskQueue({[t.task_id for t in self._slots]})"
