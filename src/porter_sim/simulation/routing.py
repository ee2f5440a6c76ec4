"""Path planning and location lookup.

The simulation only depends on two narrow interfaces here:

- PathPlanner.route(a, b, constraints) -> Route | None
- LocationRegistry.resolve(code) -> Point | None

GraphPathPlanner routes over a NetworkX waypoint graph built from the
scenario; DirectPathPlanner is used for open floors without one.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional, Protocol

import networkx as nx

from porter_sim.models.network import NavigationGraph

logger = logging.getLogger(__name__)


class Point(NamedTuple):
    """Floor position in metres."""

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class RouteConstraints:
    """Per-query routing limits."""

    snap_radius: Optional[float] = None
    """Max distance from an endpoint to the graph (None = unlimited)"""


@dataclass(frozen=True)
class Route:
    """A planned polyline and its length in metres."""

    waypoints: tuple[Point, ...]
    length: float

    @property
    def start(self) -> Point:
        return self.waypoints[0]

    @property
    def end(self) -> Point:
        return self.waypoints[-1]

    @classmethod
    def from_points(cls, points: Iterable[Point]) -> "Route":
        """Build a route, dropping consecutive duplicate points."""
        cleaned: list[Point] = []
        for p in points:
            if not cleaned or cleaned[-1] != p:
                cleaned.append(p)
        return cls(waypoints=tuple(cleaned), length=polyline_length(cleaned))


def polyline_length(points: list[Point] | tuple[Point, ...]) -> float:
    """Total length of a polyline."""
    return sum(points[i - 1].distance_to(points[i]) for i in range(1, len(points)))


class PathPlanner(Protocol):
    """Point-to-point route and distance oracle."""

    def route(
        self,
        a: Point,
        b: Point,
        constraints: Optional[RouteConstraints] = None,
    ) -> Optional[Route]:
        ...


class DirectPathPlanner:
    """Open-floor planner: every route is a straight segment."""

    def route(
        self,
        a: Point,
        b: Point,
        constraints: Optional[RouteConstraints] = None,
    ) -> Optional[Route]:
        return Route.from_points([Point(*a), Point(*b)])


class GraphPathPlanner:
    """Shortest-path planner over a waypoint graph.

    Endpoints are snapped to their nearest graph node; a route is the
    endpoint, the node path, and the other endpoint. Fails (returns None)
    when an endpoint is out of snap range or the nodes are disconnected.
    """

    def __init__(self, graph: nx.Graph, snap_radius: Optional[float] = None):
        self.graph = graph
        self.snap_radius = snap_radius
        self._positions: dict[str, Point] = {
            node: Point(data["x"], data["y"]) for node, data in graph.nodes(data=True)
        }

    @classmethod
    def from_navigation(cls, navigation: NavigationGraph) -> "GraphPathPlanner":
        """Build NetworkX graph from a scenario navigation graph."""
        graph = nx.Graph()

        for node in navigation.nodes:
            graph.add_node(node.id, x=node.coordinates.x, y=node.coordinates.y)

        positions = {n.id: n.coordinates for n in navigation.nodes}
        for edge in navigation.edges:
            if not edge.is_operational:
                continue
            length = edge.length_m
            if length is None:
                length = positions[edge.from_node].distance_to(positions[edge.to_node])
            graph.add_edge(edge.from_node, edge.to_node, length=length)

        return cls(graph, snap_radius=navigation.snap_radius_m)

    def nearest_node(self, point: Point, radius: Optional[float] = None) -> Optional[str]:
        """Closest graph node to a point (ties broken by node insertion order)."""
        best_node = None
        best_dist = math.inf
        for node, pos in self._positions.items():
            d = pos.distance_to(point)
            if d < best_dist:
                best_dist = d
                best_node = node
        if best_node is None:
            return None
        if radius is not None and best_dist > radius:
            return None
        return best_node

    def route(
        self,
        a: Point,
        b: Point,
        constraints: Optional[RouteConstraints] = None,
    ) -> Optional[Route]:
        a, b = Point(*a), Point(*b)
        radius = self.snap_radius
        if constraints is not None and constraints.snap_radius is not None:
            radius = constraints.snap_radius

        start_node = self.nearest_node(a, radius)
        end_node = self.nearest_node(b, radius)
        if start_node is None or end_node is None:
            return None

        try:
            nodes = nx.astar_path(
                self.graph,
                start_node,
                end_node,
                heuristic=self._heuristic,
                weight="length",
            )
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

        return Route.from_points([a, *(self._positions[n] for n in nodes), b])

    def _heuristic(self, u: str, v: str) -> float:
        return self._positions[u].distance_to(self._positions[v])


class LocationRegistry:
    """Maps location codes to navigable target points.

    The first registration of a code wins; later ones are logged and
    ignored.
    """

    def __init__(self):
        self._points: dict[str, Point] = {}

    def register(self, code: str, point: Point) -> bool:
        """Register a code. Returns False if it was blank or already taken."""
        code = (code or "").strip()
        if not code:
            logger.warning("Location has empty code; ignoring.")
            return False

        existing = self._points.get(code)
        if existing is not None:
            logger.warning(
                "Duplicate location code '%s'. Keeping %s, ignoring %s.",
                code, tuple(existing), tuple(point),
            )
            return False

        self._points[code] = Point(*point)
        return True

    def resolve(self, code: str) -> Optional[Point]:
        return self._points.get(code)

    @property
    def codes(self) -> list[str]:
        return list(self._points)

    def __contains__(self, code: str) -> bool:
        return code in self._points

    def __len__(self) -> int:
        return len(self._points)
