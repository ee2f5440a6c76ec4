"""Tests for schedule parsing."""

import logging

import pytest

from porter_sim.errors import ScheduleLoadError, ScheduleParseError
from porter_sim.models.enums import ClockMode
from porter_sim.simulation.schedule import (
    format_hhmm,
    load_schedule,
    parse_elapsed,
    parse_time_of_day,
    read_schedule,
)


class TestParseElapsed:
    def test_minutes_and_seconds(self):
        assert parse_elapsed("01:30") == 90

    def test_minutes_over_an_hour(self):
        assert parse_elapsed("75:00") == 4500

    def test_whitespace_tolerated(self):
        assert parse_elapsed(" 00:05 ") == 5

    @pytest.mark.parametrize("text", ["", "1:60", "ab:10", "1:2:3", "90", "-1:00", "+1:00", "--5:00", "00:--3", "-:00"])
    def test_invalid(self, text):
        with pytest.raises(ScheduleParseError):
            parse_elapsed(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_elapsed("nope")


class TestParseTimeOfDay:
    def test_hours_minutes(self):
        assert parse_time_of_day("08:15") == 8 * 3600 + 15 * 60

    def test_with_seconds(self):
        assert parse_time_of_day("08:15:30") == 8 * 3600 + 15 * 60 + 30

    @pytest.mark.parametrize("text", ["24:00", "12:60", "12:00:60", "12", "noon", "--8:00", "08:--15"])
    def test_invalid(self, text):
        with pytest.raises(ScheduleParseError):
            parse_time_of_day(text)

    def test_format_hhmm(self):
        assert format_hhmm(8 * 3600 + 15 * 60 + 59) == "08:15"
        assert format_hhmm(86400 + 60) == "00:01"


class TestLoadScheduleElapsed:
    def test_sorted_with_dense_ids(self):
        lines = [
            "00:05,A,B,Routine",
            "00:10,B,C,Urgent",
            "00:02,C,A,STAT",
        ]
        events, anchor = load_schedule(lines, ClockMode.ELAPSED)

        assert anchor is None
        assert [e.firing_time_s for e in events] == [2.0, 5.0, 10.0]
        assert [e.id for e in events] == ["id_000", "id_001", "id_002"]
        assert events[0].priority_tag == "STAT"
        assert events[0].line_number == 3

    def test_equal_times_keep_file_order(self):
        lines = [
            "00:05,A,B,first",
            "00:05,A,B,second",
            "00:01,A,B,earliest",
        ]
        events, _ = load_schedule(lines, ClockMode.ELAPSED)
        assert [e.priority_tag for e in events] == ["earliest", "first", "second"]

    def test_skips_comments_blank_and_short_rows(self):
        lines = [
            "# time,from,to,priority",
            "",
            "   ",
            "00:05,A,B",
            "00:07, A , B , Routine ",
        ]
        events, _ = load_schedule(lines, ClockMode.ELAPSED)

        assert len(events) == 1
        assert events[0].origin_code == "A"
        assert events[0].destination_code == "B"
        assert events[0].priority_tag == "Routine"

    def test_bad_time_skipped_with_warning(self, caplog):
        lines = [
            "xx:05,A,B,Routine",
            "00:06,A,B,Routine",
        ]
        with caplog.at_level(logging.WARNING, logger="porter_sim.simulation.schedule"):
            events, _ = load_schedule(lines, ClockMode.ELAPSED)

        assert len(events) == 1
        assert any("Skipping bad time 'xx:05' on line 1" in r.message for r in caplog.records)

    def test_repeated_minus_skipped(self, caplog):
        lines = [
            "00:05,A,B,Routine",
            "--5:00,A,B,Routine",
            "00:--3,B,A,Routine",
            "00:02,B,A,STAT",
        ]
        with caplog.at_level(logging.WARNING, logger="porter_sim.simulation.schedule"):
            events, _ = load_schedule(lines, ClockMode.ELAPSED)

        assert [e.firing_time_s for e in events] == [2.0, 5.0]
        assert [e.id for e in events] == ["id_000", "id_001"]
        skipped = [r.message for r in caplog.records if "Skipping bad time" in r.message]
        assert len(skipped) == 2

    def test_extra_columns_ignored(self):
        events, _ = load_schedule(["00:05,A,B,Routine,bed 4,notes"], ClockMode.ELAPSED)
        assert events[0].priority_tag == "Routine"

    def test_no_valid_rows(self):
        with pytest.raises(ScheduleLoadError):
            load_schedule(["# only a comment", "bad,row"], ClockMode.ELAPSED)


class TestLoadScheduleTimeOfDay:
    def test_anchor_is_earliest_row(self):
        lines = [
            "23:50,A,B,Routine",
            "00:10,B,A,Routine",
        ]
        events, anchor = load_schedule(lines, ClockMode.TIME_OF_DAY)

        assert anchor == 600
        assert [e.id for e in events] == ["id_000", "id_001"]
        assert events[0].time_of_day_s == 600
        assert events[0].firing_time_s == 0.0
        # sorted ascending, so no row is smaller than its predecessor
        assert events[1].time_of_day_s == 23 * 3600 + 50 * 60
        assert events[1].firing_time_s == float(23 * 3600 + 50 * 60 - 600)

    def test_relative_offsets(self):
        lines = [
            "08:30,A,B,Routine",
            "08:15,A,B,Urgent",
            "08:15:30,A,B,STAT",
        ]
        events, anchor = load_schedule(lines, ClockMode.TIME_OF_DAY)

        assert anchor == 8 * 3600 + 15 * 60
        assert [e.firing_time_s for e in events] == [0.0, 30.0, 900.0]
        assert [e.priority_tag for e in events] == ["Urgent", "STAT", "Routine"]

    def test_elapsed_format_rejected_in_time_of_day_mode(self, caplog):
        lines = ["08:15,A,B,Routine", "99:99,A,B,Routine"]
        with caplog.at_level(logging.WARNING):
            events, _ = load_schedule(lines, ClockMode.TIME_OF_DAY)
        assert len(events) == 1
        assert any("time_of_day" in r.message for r in caplog.records)


class TestReadSchedule:
    def test_read_file(self, tmp_path):
        path = tmp_path / "ward.csv"
        path.write_text("00:05,A,B,Routine\n00:01,B,A,STAT\n")

        events, _ = read_schedule(path, ClockMode.ELAPSED)
        assert [e.priority_tag for e in events] == ["STAT", "Routine"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ScheduleLoadError):
            read_schedule(tmp_path / "missing.csv", ClockMode.ELAPSED)

    def test_example_schedule(self, example_schedule_path):
        events, _ = read_schedule(example_schedule_path, ClockMode.ELAPSED)
        assert len(events) == 10
        assert events[0].firing_time_s == 5.0
