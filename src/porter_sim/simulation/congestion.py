"""Congestion sensing for execution-time speed reduction."""

from typing import Callable, Iterable, Protocol, TYPE_CHECKING

from porter_sim.simulation.routing import Point

if TYPE_CHECKING:
    from porter_sim.simulation.worker import Worker


class CongestionSensor(Protocol):
    """Counts mobile entities near a worker."""

    def count_nearby(self, worker: "Worker") -> int:
        ...


class NoCongestion:
    """Sensor for uncrowded floors: nothing is ever nearby."""

    def count_nearby(self, worker: "Worker") -> int:
        return 0


class ProximitySensor:
    """Counts other workers and static crowd points within a radius.

    `population` is called on every query so positions are always current.
    """

    def __init__(
        self,
        radius: float,
        population: Callable[[], Iterable["Worker"]],
        crowd_points: Iterable[Point] = (),
    ):
        self.radius = radius
        self._population = population
        self.crowd_points = [Point(*p) for p in crowd_points]

    def count_nearby(self, worker: "Worker") -> int:
        here = worker.position
        count = 0
        for other in self._population():
            if other is worker:
                continue
            if other.position.distance_to(here) <= self.radius:
                count += 1
        for point in self.crowd_points:
            if point.distance_to(here) <= self.radius:
                count += 1
        return count
