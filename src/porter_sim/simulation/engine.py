"""SimPy-driven tick engine.

This module contains the SimulationEngine class that:
1. Registers scenario locations and builds the path planner
2. Creates workers with their congestion sensor and idle zones
3. Loads the schedule into the clock and subscribes the dispatcher
4. Ticks clock and workers from a SimPy process and collects events
"""

import logging
import random
from pathlib import Path
from typing import Generator, Iterable, Optional, Union

import simpy

from porter_sim.models import Scenario
from porter_sim.models.enums import EventType
from porter_sim.simulation.clock import SimulationClock
from porter_sim.simulation.congestion import ProximitySensor
from porter_sim.simulation.dispatcher import Dispatcher
from porter_sim.simulation.events import EventLog
from porter_sim.simulation.routing import (
    DirectPathPlanner,
    GraphPathPlanner,
    LocationRegistry,
    PathPlanner,
    Point,
)
from porter_sim.simulation.worker import Worker

logger = logging.getLogger(__name__)

ScheduleInput = Union[str, Path, Iterable[str]]


class SimulationEngine:
    """Main simulation engine wiring clock, dispatcher and workers.

    Usage:
        scenario = load_scenario("scenarios/example_ward.json")
        engine = SimulationEngine(scenario, schedule="sequences/example_ward.csv")
        event_log = engine.run()

    For manual stepping (tests, interactive use) call setup() once and
    then step() per tick.
    """

    def __init__(self, scenario: Scenario, schedule: Optional[ScheduleInput] = None):
        self.scenario = scenario
        self.schedule = schedule
        self.event_log = EventLog()

        # SimPy environment (only used by run())
        self.env: Optional[simpy.Environment] = None

        self.registry: LocationRegistry = None
        self.planner: PathPlanner = None
        self.clock: SimulationClock = None
        self.dispatcher: Dispatcher = None
        self.workers: list[Worker] = []

        self._rng: random.Random = None
        self._ticks = 0
        self._is_setup = False

    # === Properties ===

    @property
    def sim_time_s(self) -> float:
        """Engine time: ticks taken so far × seconds_per_tick."""
        if self.env is not None:
            return self.env.now
        if self.clock is None:
            return 0.0
        return self._ticks * self.clock.seconds_per_tick

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def is_drained(self) -> bool:
        """Nothing left to fire and every worker queue is empty."""
        schedule_done = not self.clock.is_loaded or self.clock.is_finished
        return schedule_done and all(w.task_count == 0 for w in self.workers)

    def get_worker(self, worker_id: str) -> Optional[Worker]:
        for worker in self.workers:
            if worker.id == worker_id:
                return worker
        return None

    # === Setup ===

    def setup(self) -> None:
        """Initialise all simulation components."""
        self._rng = random.Random(self.scenario.config.random_seed)
        self._ticks = 0

        self._build_registry()
        self._build_planner()
        self._init_workers()
        self._init_clock()
        self._init_dispatcher()

        self._is_setup = True

    def _build_registry(self) -> None:
        self.registry = LocationRegistry()
        for loc in self.scenario.locations:
            self.registry.register(loc.code, Point(*loc.coordinates.as_tuple()))

    def _build_planner(self) -> None:
        if self.scenario.navigation is not None:
            self.planner = GraphPathPlanner.from_navigation(self.scenario.navigation)
        else:
            self.planner = DirectPathPlanner()

    def _init_workers(self) -> None:
        sensor = ProximitySensor(
            radius=self.scenario.congestion.radius_m,
            population=lambda: self.workers,
            crowd_points=[Point(*c.as_tuple()) for c in self.scenario.crowd_points],
        )

        zones = []
        for code in self.scenario.idle_roam.zones:
            point = self.registry.resolve(code)
            if point is not None:
                zones.append(point)

        self.workers = []
        for spec in self.scenario.workers:
            worker = Worker(
                spec,
                planner=self.planner,
                position=self.registry.resolve(spec.start_location),
                congestion=self.scenario.congestion,
                sensor=sensor,
                idle_roam=self.scenario.idle_roam,
                idle_zones=tuple(zones),
                rng=self._rng,
                event_log=self.event_log,
                time_source=lambda: self.sim_time_s,
            )
            self.workers.append(worker)

    def _init_clock(self) -> None:
        self.clock = SimulationClock(self.scenario.clock)
        if self.schedule is None:
            logger.warning("No schedule given; workers will only roam.")
            return

        self.clock.load(self.schedule)
        self.clock.begin()

    def _init_dispatcher(self) -> None:
        self.dispatcher = Dispatcher(
            registry=self.registry,
            planner=self.planner,
            policy=self.scenario.dispatch,
            event_log=self.event_log,
            time_source=lambda: self.sim_time_s,
        )
        for worker in self.workers:
            self.dispatcher.register_worker(worker)
        self.clock.subscribe(self.dispatcher.on_event)

    # === Stepping ===

    def step(self) -> int:
        """One tick: fire due events, then advance every worker.

        Returns:
            Number of clock micro-steps executed
        """
        if not self._is_setup:
            self.setup()

        steps = self.clock.tick()
        dt = self.clock.seconds_per_tick
        for worker in self.workers:
            worker.advance(dt)
        self._ticks += 1
        return steps

    def run(self) -> EventLog:
        """Execute the simulation and return event log."""
        self.setup()
        self.env = simpy.Environment()

        self.event_log.log_event(
            time_s=0,
            event_type=EventType.SIMULATION_STARTED,
            entity_id="SYSTEM",
            duration_s=self.scenario.config.duration_s,
            seed=self.scenario.config.random_seed,
            scheduled_tasks=len(self.clock.events),
        )

        ticker = self.env.process(self._ticker())
        self.env.run(until=ticker)

        self.event_log.log_event(
            time_s=self.env.now,
            event_type=EventType.SIMULATION_ENDED,
            entity_id="SYSTEM",
            ticks=self._ticks,
            total_events=len(self.event_log),
            total_assignments=len(self.event_log.assignments),
        )
        logger.info(
            "Simulation '%s' finished at %.1fs after %d ticks.",
            self.scenario.name, self.env.now, self._ticks,
        )
        return self.event_log

    def _ticker(self) -> Generator:
        """SimPy process: one engine step per seconds_per_tick."""
        dt = self.clock.seconds_per_tick
        duration = self.scenario.config.duration_s
        stop_when_drained = self.scenario.config.stop_when_drained

        while self.env.now < duration:
            self.step()
            yield self.env.timeout(dt)

            if stop_when_drained and self.is_drained:
                logger.info("All tasks fired and completed at %.1fs.", self.env.now)
                break


def run_simulation(scenario: Scenario, schedule: Optional[ScheduleInput] = None) -> EventLog:
    """Convenience function to run a simulation.

    Args:
        scenario: Validated scenario
        schedule: Schedule CSV path or lines (optional)

    Returns:
        EventLog with all simulation events
    """
    engine = SimulationEngine(scenario, schedule)
    return engine.run()
