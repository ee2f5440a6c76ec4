"""Tests for path planning, location lookup and congestion sensing."""

import logging

import pytest

from porter_sim.models.network import NavigationGraph
from porter_sim.simulation.congestion import NoCongestion, ProximitySensor
from porter_sim.simulation.routing import (
    DirectPathPlanner,
    GraphPathPlanner,
    LocationRegistry,
    Point,
    Route,
    RouteConstraints,
)


@pytest.fixture
def corridor() -> GraphPathPlanner:
    """L-shaped corridor with a closed shortcut."""
    navigation = NavigationGraph.model_validate({
        "nodes": [
            {"id": "a", "coordinates": {"x": 0, "y": 0}},
            {"id": "b", "coordinates": {"x": 10, "y": 0}},
            {"id": "c", "coordinates": {"x": 10, "y": 10}},
            {"id": "island", "coordinates": {"x": 50, "y": 50}},
        ],
        "edges": [
            {"from": "a", "to": "b"},
            {"from": "b", "to": "c"},
            {"from": "a", "to": "c", "is_operational": False},
        ],
        "snap_radius_m": 3.0,
    })
    return GraphPathPlanner.from_navigation(navigation)


class TestRoute:
    def test_from_points_drops_duplicates(self):
        route = Route.from_points([Point(0, 0), Point(0, 0), Point(3, 4), Point(3, 4)])
        assert route.waypoints == (Point(0, 0), Point(3, 4))
        assert route.length == pytest.approx(5.0)
        assert route.start == Point(0, 0)
        assert route.end == Point(3, 4)


class TestDirectPathPlanner:
    def test_straight_segment(self):
        route = DirectPathPlanner().route(Point(0, 0), Point(6, 8))
        assert route.length == pytest.approx(10.0)
        assert len(route.waypoints) == 2


class TestGraphPathPlanner:
    def test_routes_around_closed_edge(self, corridor):
        route = corridor.route(Point(0, 0), Point(10, 10))
        assert route.waypoints == (Point(0, 0), Point(10, 0), Point(10, 10))
        assert route.length == pytest.approx(20.0)

    def test_endpoints_kept_off_graph(self, corridor):
        route = corridor.route(Point(0, 1), Point(10, 11))
        assert route.start == Point(0, 1)
        assert route.end == Point(10, 11)
        assert route.length == pytest.approx(22.0)

    def test_out_of_snap_range(self, corridor):
        assert corridor.route(Point(0, 0), Point(30, 30)) is None

    def test_constraints_override_snap_radius(self, corridor):
        assert corridor.route(Point(0, 0), Point(10, 15)) is None
        route = corridor.route(Point(0, 0), Point(10, 15), RouteConstraints(snap_radius=6.0))
        assert route is not None

    def test_disconnected(self, corridor):
        assert corridor.route(Point(0, 0), Point(50, 50)) is None

    def test_nearest_node(self, corridor):
        assert corridor.nearest_node(Point(9, 1)) == "b"
        assert corridor.nearest_node(Point(30, 30), radius=1.0) is None


class TestLocationRegistry:
    def test_register_and_resolve(self):
        registry = LocationRegistry()
        assert registry.register("C-33", Point(1, 2))
        assert registry.resolve("C-33") == Point(1, 2)
        assert registry.resolve("CT") is None
        assert "C-33" in registry
        assert len(registry) == 1

    def test_first_registration_wins(self, caplog):
        registry = LocationRegistry()
        registry.register("CT", Point(1, 1))
        with caplog.at_level(logging.WARNING, logger="porter_sim.simulation.routing"):
            assert not registry.register("CT", Point(9, 9))

        assert registry.resolve("CT") == Point(1, 1)
        assert any("Duplicate location code 'CT'" in r.message for r in caplog.records)

    def test_codes_are_stripped_and_case_sensitive(self):
        registry = LocationRegistry()
        registry.register("  ICU ", Point(0, 0))
        assert registry.resolve("ICU") == Point(0, 0)
        assert registry.resolve("icu") is None

    def test_blank_code_ignored(self):
        registry = LocationRegistry()
        assert not registry.register("  ", Point(0, 0))
        assert registry.codes == []


class _Body:
    def __init__(self, x, y):
        self.position = Point(x, y)


class TestCongestionSensors:
    def test_no_congestion(self):
        assert NoCongestion().count_nearby(_Body(0, 0)) == 0

    def test_counts_others_and_crowd_points(self):
        me = _Body(0, 0)
        population = [me, _Body(1, 0), _Body(0, 2), _Body(10, 0)]
        sensor = ProximitySensor(2.5, lambda: population, crowd_points=[Point(0, -1), Point(5, 5)])

        assert sensor.count_nearby(me) == 3

    def test_population_is_live(self):
        me = _Body(0, 0)
        other = _Body(10, 0)
        sensor = ProximitySensor(2.5, lambda: [me, other])

        assert sensor.count_nearby(me) == 0
        other.position = Point(1, 1)
        assert sensor.count_nearby(me) == 1
