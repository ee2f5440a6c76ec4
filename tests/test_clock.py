"""Tests for the deterministic simulation clock."""

import logging

import pytest

from porter_sim.errors import ClockStateError, ScheduleLoadError
from porter_sim.models.enums import ClockMode
from porter_sim.models.scenario import ClockConfig
from porter_sim.simulation.clock import SimulationClock

ROWS = [
    "00:05,A,B,Routine",
    "00:10,B,C,Urgent",
    "00:02,C,A,STAT",
]


def _clock(**overrides) -> SimulationClock:
    config = {"mode": ClockMode.ELAPSED, "seconds_per_tick": 1.0, "micro_step_s": 1.0}
    config.update(overrides)
    return SimulationClock(ClockConfig(**config))


class Recorder:
    """Subscriber that remembers what fired and when."""

    def __init__(self, clock: SimulationClock):
        self.clock = clock
        self.fired = []

    def __call__(self, event):
        self.fired.append((event.id, self.clock.sim_time_s))


class TestLifecycle:
    def test_begin_requires_load(self):
        clock = _clock()
        with pytest.raises(ClockStateError):
            clock.begin()

    def test_tick_before_begin_does_nothing(self):
        clock = _clock()
        clock.load(ROWS)
        assert clock.tick() == 0
        assert clock.sim_time_s == 0.0

    def test_load_returns_count(self):
        clock = _clock()
        assert clock.load(ROWS) == 3
        assert clock.is_loaded
        assert clock.pending_count == 3

    def test_malformed_row_does_not_abort_load(self):
        clock = _clock()
        assert clock.load(["00:05,A,B,Routine", "00:--3,A,B,Routine"]) == 1
        assert clock.events[0].firing_time_s == 5.0

    def test_failed_load_leaves_clock_unloaded(self, caplog):
        clock = _clock()
        with caplog.at_level(logging.ERROR, logger="porter_sim.simulation.clock"):
            with pytest.raises(ScheduleLoadError):
                clock.load(["# nothing here"])

        assert not clock.is_loaded
        assert any("Schedule load failed" in r.message for r in caplog.records)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "seq.csv"
        path.write_text("\n".join(ROWS))
        clock = _clock()
        assert clock.load(path) == 3

    def test_reload_reproduces_events(self):
        clock = _clock()
        clock.load(ROWS)
        before = clock.events

        clock.begin()
        clock.tick()
        clock.tick()
        clock.tick()
        assert clock.cursor == 1

        clock.reload()
        assert clock.events == before
        assert clock.cursor == 0
        assert clock.is_running
        assert clock.sim_time_s == 0.0

    def test_reload_without_restart(self):
        clock = _clock()
        clock.load(ROWS)
        clock.begin()
        clock.reload(restart_if_running=False)
        assert not clock.is_running

    def test_reload_never_loaded(self):
        with pytest.raises(ClockStateError):
            _clock().reload()

    def test_stop(self):
        clock = _clock()
        clock.load(ROWS)
        clock.begin()
        clock.stop()
        assert clock.tick() == 0


class TestFiring:
    def test_events_fire_in_id_order(self):
        clock = _clock()
        recorder = Recorder(clock)
        clock.subscribe(recorder)
        clock.load(ROWS)
        clock.begin()

        for _ in range(10):
            clock.tick()

        assert recorder.fired == [("id_000", 2.0), ("id_001", 5.0), ("id_002", 10.0)]

    def test_stops_when_all_fired(self):
        clock = _clock()
        clock.load(ROWS)
        clock.begin()

        for _ in range(10):
            clock.tick()

        assert clock.is_finished
        assert not clock.is_running
        assert clock.tick() == 0
        assert clock.sim_time_s == 10.0

    def test_one_tick_fires_several_events(self):
        clock = _clock(seconds_per_tick=60.0)
        recorder = Recorder(clock)
        clock.subscribe(recorder)
        clock.load(ROWS)
        clock.begin()

        steps = clock.tick()

        assert steps == 60
        assert [fired_id for fired_id, _ in recorder.fired] == ["id_000", "id_001", "id_002"]

    def test_fractional_steps_accumulate(self):
        clock = _clock(seconds_per_tick=0.25, micro_step_s=0.5)
        clock.load(["00:01,A,B,Routine"])
        clock.begin()

        assert clock.tick() == 0
        assert clock.tick() == 1
        assert clock.sim_time_s == 0.5
        assert clock.budget_s == pytest.approx(0.0)

    def test_subscriber_fault_is_isolated(self, caplog):
        clock = _clock()
        recorder = Recorder(clock)

        def broken(event):
            raise RuntimeError("boom")

        clock.subscribe(broken)
        clock.subscribe(recorder)
        clock.load(ROWS)
        clock.begin()

        with caplog.at_level(logging.ERROR, logger="porter_sim.simulation.clock"):
            for _ in range(10):
                clock.tick()

        assert len(recorder.fired) == 3
        assert sum("threw on" in r.message for r in caplog.records) == 3

    def test_unsubscribe(self):
        clock = _clock()
        recorder = Recorder(clock)
        clock.subscribe(recorder)
        clock.unsubscribe(recorder)
        clock.load(ROWS)
        clock.begin()
        clock.tick(seconds=10.0)
        assert recorder.fired == []

    def test_sequencer_log_line(self, caplog):
        clock = _clock()
        clock.load(["00:01,WARD-A,RAD,Routine-ICU"])
        clock.begin()

        with caplog.at_level(logging.INFO, logger="porter_sim.sequencer"):
            clock.tick()

        messages = [r.getMessage() for r in caplog.records if r.name == "porter_sim.sequencer"]
        assert messages == ["[Sequencer] New Task, id_000, WARD-A, RAD, Routine-ICU"]


class TestStepCap:
    def test_cap_hit_carries_remainder_and_warns_once(self, caplog):
        clock = _clock(max_steps_per_tick=3)
        clock.load(["00:30,A,B,Routine"])
        clock.begin()

        with caplog.at_level(logging.WARNING, logger="porter_sim.simulation.clock"):
            steps = clock.tick(seconds=4.0)

        assert steps == 3
        assert clock.budget_s == pytest.approx(1.0)
        assert clock.sim_time_s == 3.0
        warnings = [r for r in caplog.records if "Hit max_steps_per_tick=3" in r.message]
        assert len(warnings) == 1

    def test_cap_exactly_met_does_not_warn(self, caplog):
        clock = _clock(max_steps_per_tick=3)
        clock.load(["00:30,A,B,Routine"])
        clock.begin()

        with caplog.at_level(logging.WARNING, logger="porter_sim.simulation.clock"):
            steps = clock.tick(seconds=3.0)

        assert steps == 3
        assert not [r for r in caplog.records if "max_steps_per_tick" in r.message]

    def test_zero_tick_consumes_carried_budget(self):
        clock = _clock(max_steps_per_tick=2)
        clock.load(["00:30,A,B,Routine"])
        clock.begin()

        assert clock.tick(seconds=3.0) == 2
        assert clock.tick(seconds=0.0) == 1
        assert clock.budget_s == pytest.approx(0.0)


class TestStartOffset:
    def test_delay_consumed_before_steps(self):
        clock = _clock(start_offset_s=2.5)
        clock.load(["00:30,A,B,Routine"])
        clock.begin()

        assert clock.tick() == 0
        assert clock.start_delay_remaining_s == pytest.approx(1.5)
        assert clock.tick() == 0
        # 0.5 of this tick overshoots the delay and becomes budget
        assert clock.tick() == 0
        assert clock.budget_s == pytest.approx(0.5)
        assert clock.tick() == 1
        assert clock.sim_time_s == 1.0
        assert clock.budget_s == pytest.approx(0.5)


class TestDisplay:
    def test_elapsed_display(self):
        clock = _clock()
        clock.load(["05:00,A,B,Routine"])
        clock.begin()
        clock.tick(seconds=90.0)

        assert clock.current_time_string() == "01:30"
        assert clock.clock_text() == "01:30 (30.000s)"

    def test_time_of_day_display_anchored(self):
        clock = _clock(mode=ClockMode.TIME_OF_DAY)
        clock.load(["08:15,A,B,Routine", "08:20,A,B,Routine"])
        clock.begin()
        clock.tick(seconds=60.0)

        assert clock.anchor_tod_s == 8 * 3600 + 15 * 60
        assert clock.current_time_string() == "08:16"
        assert clock.clock_text() == "Day 1 08:16 (0.000s)"

    def test_time_of_day_display_unanchored(self):
        clock = _clock(mode=ClockMode.TIME_OF_DAY, anchor_display_to_first_row=False)
        clock.load(["08:15,A,B,Routine", "08:20,A,B,Routine"])
        clock.begin()
        clock.tick(seconds=60.0)

        assert clock.current_time_string() == "00:01"
