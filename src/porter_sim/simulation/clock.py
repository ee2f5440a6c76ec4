"""Deterministic, tick-driven simulation clock.

The clock never reads wall-clock time. Each external tick adds
`seconds_per_tick` simulated seconds to a budget, which is consumed in
fixed micro-steps. After every micro-step, all schedule events whose
firing time has been reached are delivered to subscribers, in id order.

    1 tick  = seconds_per_tick sim seconds
    1 step  = micro_step_s sim seconds
    steps per tick <= max_steps_per_tick (excess budget carries over)
"""

import logging
import math
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from porter_sim.errors import ClockStateError, ScheduleLoadError
from porter_sim.models.enums import ClockMode
from porter_sim.models.scenario import ClockConfig
from porter_sim.simulation.events import ScheduledEvent
from porter_sim.simulation.schedule import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    load_schedule,
    read_schedule,
)

logger = logging.getLogger(__name__)

# Fired-task lines go to their own logger so the message text is exact
sequencer_logger = logging.getLogger("porter_sim.sequencer")

ScheduleSource = Union[str, Path, Iterable[str]]
EventSubscriber = Callable[[ScheduledEvent], None]

# Tolerance for float comparisons of budget and firing times
_EPSILON = 1e-9
_MIN_STEP = 0.000001


class SimulationClock:
    """Loads a schedule and fires its events from simulated time.

    Usage:
        clock = SimulationClock(ClockConfig(mode=ClockMode.ELAPSED))
        clock.subscribe(dispatcher.on_event)
        clock.load("sequences/ward.csv")
        clock.begin()
        while clock.is_running:
            clock.tick()
    """

    def __init__(self, config: Optional[ClockConfig] = None):
        self.config = config or ClockConfig()

        self._source: Optional[ScheduleSource] = None
        self._events: list[ScheduledEvent] = []
        self._anchor_tod_s: Optional[int] = None
        self._loaded = False

        self._running = False
        self._cursor = 0
        self._total_steps = 0
        self._sim_time_s = 0.0
        self._budget_s = 0.0
        self._start_delay_s = 0.0

        self._subscribers: list[EventSubscriber] = []

    # === Properties ===

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_finished(self) -> bool:
        """Loaded and every event has fired."""
        return self._loaded and self._cursor >= len(self._events)

    @property
    def sim_time_s(self) -> float:
        """Current simulation time in seconds since begin()."""
        return self._sim_time_s

    @property
    def budget_s(self) -> float:
        """Unconsumed sim seconds carried to the next tick."""
        return self._budget_s

    @property
    def start_delay_remaining_s(self) -> float:
        return self._start_delay_s

    @property
    def seconds_per_tick(self) -> float:
        """Sim seconds per tick; workers advance by this much each tick."""
        return self.config.seconds_per_tick

    @property
    def micro_step_s(self) -> float:
        return max(_MIN_STEP, self.config.micro_step_s)

    @property
    def events(self) -> tuple[ScheduledEvent, ...]:
        return tuple(self._events)

    @property
    def cursor(self) -> int:
        """Index of the next event to fire."""
        return self._cursor

    @property
    def pending_count(self) -> int:
        return len(self._events) - self._cursor

    @property
    def anchor_tod_s(self) -> Optional[int]:
        """Earliest time of day in the schedule (time-of-day mode only)."""
        return self._anchor_tod_s

    # === Subscribers ===

    def subscribe(self, callback: EventSubscriber) -> None:
        """Register a callback for fired events. Callbacks run in registration order."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EventSubscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # === Lifecycle ===

    def load(self, source: ScheduleSource) -> int:
        """Load a schedule from a file path or from an iterable of lines.

        Returns:
            Number of events loaded

        Raises:
            ScheduleLoadError: If the source is missing/unreadable or holds
                no valid rows; the clock is left unloaded
        """
        if not isinstance(source, (str, Path)):
            source = list(source)

        self._source = source
        self._running = False
        self._events = []
        self._anchor_tod_s = None
        self._loaded = False
        self._cursor = 0

        try:
            if isinstance(source, (str, Path)):
                events, anchor = read_schedule(source, self.config.mode)
            else:
                events, anchor = load_schedule(source, self.config.mode)
        except ScheduleLoadError as e:
            logger.error("Schedule load failed: %s", e)
            raise

        self._events = events
        self._anchor_tod_s = anchor
        self._loaded = True
        return len(events)

    def begin(self) -> None:
        """Start (or restart) playback from sim time zero.

        Raises:
            ClockStateError: If no schedule is loaded
        """
        if not self._loaded:
            raise ClockStateError("Cannot begin(): sequence not loaded.")

        self._running = True
        self._cursor = 0
        self._total_steps = 0
        self._sim_time_s = 0.0
        self._budget_s = 0.0
        self._start_delay_s = max(0.0, self.config.start_offset_s)

    def stop(self) -> None:
        self._running = False

    def reload(self, restart_if_running: bool = True) -> int:
        """Clear state and load the same source again.

        Raises:
            ClockStateError: If load() was never called
            ScheduleLoadError: If the source no longer loads
        """
        if self._source is None:
            raise ClockStateError("Cannot reload(): no schedule source was ever loaded.")

        was_running = self._running
        count = self.load(self._source)

        if restart_if_running and was_running:
            self.begin()
        return count

    # === Main loop ===

    def tick(self, seconds: Optional[float] = None) -> int:
        """Advance the clock by one external tick.

        Args:
            seconds: Sim seconds for this tick (default: seconds_per_tick)

        Returns:
            Number of micro-steps executed
        """
        if not self._running:
            return 0
        if self._cursor >= len(self._events):
            self._running = False
            return 0

        dt = self.config.seconds_per_tick if seconds is None else seconds
        dt = max(0.0, dt)

        if self._start_delay_s > 0.0:
            self._start_delay_s -= dt
            if self._start_delay_s > 0.0:
                return 0
            # overshoot of the delay becomes budget
            dt = -self._start_delay_s
            self._start_delay_s = 0.0

        self._budget_s += dt

        step = self.micro_step_s
        cap = self.config.max_steps_per_tick
        steps = 0

        while self._budget_s + _EPSILON >= step and steps < cap:
            self._budget_s -= step
            self._total_steps += 1
            self._sim_time_s = self._total_steps * step
            steps += 1

            self._fire_due_events()

        if steps >= cap and self._budget_s + _EPSILON >= step:
            logger.warning(
                "Hit max_steps_per_tick=%d. Sim is falling behind (%.3fs deferred).",
                cap, self._budget_s,
            )

        if self._cursor >= len(self._events):
            self._running = False

        return steps

    def _fire_due_events(self) -> None:
        while (
            self._cursor < len(self._events)
            and self._events[self._cursor].firing_time_s <= self._sim_time_s + _EPSILON
        ):
            event = self._events[self._cursor]
            self._cursor += 1

            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Task subscriber %r threw on %s", callback, event.id)

            sequencer_logger.info(
                "[Sequencer] New Task, %s, %s, %s, %s",
                event.id, event.origin_code, event.destination_code, event.priority_tag,
            )

    # === Clock display ===

    def current_time_string(self) -> str:
        """MM:SS in elapsed mode, HH:MM of day in time-of-day mode."""
        whole = int(math.floor(max(0.0, self._sim_time_s)))

        if self.config.mode == ClockMode.ELAPSED:
            return f"{whole // SECONDS_PER_MINUTE:02d}:{whole % SECONDS_PER_MINUTE:02d}"

        tod = self._time_of_day(whole)
        return f"{tod // SECONDS_PER_HOUR:02d}:{(tod % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE:02d}"

    def clock_text(self) -> str:
        """Readable clock, e.g. '01:30 (30.000s)' or 'Day 1 08:15 (12.500s)'."""
        seconds = max(0.0, self._sim_time_s)
        whole = int(math.floor(seconds))
        frac = seconds - whole

        if self.config.mode == ClockMode.ELAPSED:
            mm, ss = divmod(whole, SECONDS_PER_MINUTE)
            return f"{mm:02d}:{ss:02d} ({ss + frac:.3f}s)"

        day = whole // SECONDS_PER_DAY + 1
        tod = self._time_of_day(whole)
        hh = tod // SECONDS_PER_HOUR
        mm = (tod % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
        ss = tod % SECONDS_PER_MINUTE
        return f"Day {day} {hh:02d}:{mm:02d} ({ss + frac:.3f}s)"

    def _time_of_day(self, whole_seconds: int) -> int:
        into_day = whole_seconds % SECONDS_PER_DAY
        if self.config.anchor_display_to_first_row and self._anchor_tod_s is not None:
            return (self._anchor_tod_s + into_day) % SECONDS_PER_DAY
        return into_day

    def __repr__(self) -> str:
        return (
            f"SimulationClock(t={self._sim_time_s:.3f}s, "
            f"fired={self._cursor}/{len(self._events)}, running={self._running})"
        )
