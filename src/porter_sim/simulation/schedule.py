"""Schedule file parsing.

A schedule is a CSV-like text table of transport requests:

    time,originCode,destinationCode,priorityTag

Blank lines and lines starting with '#' are ignored, as are rows with
fewer than four fields. The time column format depends on the clock mode:

- elapsed:      MM:SS, seconds since sequence start
- time_of_day:  HH:MM or HH:MM:SS, scheduled relative to the earliest row
                (with midnight rollover)

Rows with malformed times are skipped with a warning. Valid rows are
sorted by resolved time and given ids id_000, id_001, ... in that order.
"""

import logging
from pathlib import Path
from typing import Iterable, NamedTuple, Optional

from porter_sim.errors import ScheduleLoadError, ScheduleParseError
from porter_sim.models.enums import ClockMode
from porter_sim.simulation.events import ScheduledEvent

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


class ScheduleRow(NamedTuple):
    seconds: int
    origin_code: str
    destination_code: str
    priority_tag: str
    line_number: int


def _parse_int(token: str, text: str) -> int:
    token = token.strip()
    # int() accepts '+5', ' 5' and '1_0'; schedule times are plain digits
    digits = token[1:] if token.startswith("-") else token
    if not digits.isdecimal():
        raise ScheduleParseError(f"Invalid number '{token}' in time '{text}'")
    return int(token)


def parse_elapsed(text: str) -> int:
    """Parse an elapsed MM:SS string into seconds.

    Minutes may exceed 59 ('75:00' is 4500 s); seconds must be 0-59.

    Raises:
        ScheduleParseError: If the string is not a valid MM:SS value
    """
    if text is None or not text.strip():
        raise ScheduleParseError("Empty elapsed time")

    tokens = text.strip().split(":")
    if len(tokens) != 2:
        raise ScheduleParseError(f"Expected MM:SS, got '{text}'")

    mm = _parse_int(tokens[0], text)
    ss = _parse_int(tokens[1], text)

    if mm < 0:
        raise ScheduleParseError(f"Negative minutes in '{text}'")
    if not 0 <= ss <= 59:
        raise ScheduleParseError(f"Seconds out of range in '{text}'")

    return mm * SECONDS_PER_MINUTE + ss


def parse_time_of_day(text: str) -> int:
    """Parse an HH:MM or HH:MM:SS time-of-day string into seconds of day.

    Raises:
        ScheduleParseError: If the string is not a valid time of day
    """
    if text is None or not text.strip():
        raise ScheduleParseError("Empty time of day")

    tokens = text.strip().split(":")
    if len(tokens) not in (2, 3):
        raise ScheduleParseError(f"Expected HH:MM or HH:MM:SS, got '{text}'")

    hh = _parse_int(tokens[0], text)
    mm = _parse_int(tokens[1], text)
    ss = _parse_int(tokens[2], text) if len(tokens) == 3 else 0

    if not 0 <= hh <= 23:
        raise ScheduleParseError(f"Hour out of range in '{text}'")
    if not 0 <= mm <= 59:
        raise ScheduleParseError(f"Minute out of range in '{text}'")
    if not 0 <= ss <= 59:
        raise ScheduleParseError(f"Second out of range in '{text}'")

    return hh * SECONDS_PER_HOUR + mm * SECONDS_PER_MINUTE + ss


def format_hhmm(tod_seconds: int) -> str:
    """Render seconds-of-day as HH:MM (wrapping into 0..24h)."""
    tod_seconds %= SECONDS_PER_DAY
    hh = tod_seconds // SECONDS_PER_HOUR
    mm = (tod_seconds % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE
    return f"{hh:02d}:{mm:02d}"


def parse_rows(lines: Iterable[str], mode: ClockMode) -> list[ScheduleRow]:
    """Parse raw schedule lines, skipping anything that is not a valid row."""
    parse_time = parse_elapsed if mode == ClockMode.ELAPSED else parse_time_of_day
    expected = "MM:SS" if mode == ClockMode.ELAPSED else "HH:MM or HH:MM:SS"

    rows: list[ScheduleRow] = []
    for line_number, raw in enumerate(lines, start=1):
        if raw is None:
            continue
        raw = raw.strip()
        if not raw or raw.startswith("#"):
            continue

        parts = raw.split(",")
        if len(parts) < 4:
            continue

        time_text = parts[0].strip()
        origin = parts[1].strip()
        destination = parts[2].strip()
        priority = parts[3].strip()

        try:
            seconds = parse_time(time_text)
        except ScheduleParseError:
            logger.warning(
                "(%s) Skipping bad time '%s' on line %d (expected %s).",
                mode.value, time_text, line_number, expected,
            )
            continue

        rows.append(ScheduleRow(seconds, origin, destination, priority, line_number))

    return rows


def build_events(rows: list[ScheduleRow], mode: ClockMode) -> tuple[list[ScheduledEvent], Optional[int]]:
    """Sort parsed rows and turn them into ScheduledEvents.

    Returns:
        (events, anchor) where anchor is the earliest seconds-of-day in
        time-of-day mode and None in elapsed mode
    """
    if not rows:
        return [], None

    # sorted() is stable, so equal times keep file order
    ordered = sorted(rows, key=lambda r: r.seconds)

    if mode == ClockMode.ELAPSED:
        events = [
            ScheduledEvent(
                id=f"id_{i:03d}",
                firing_time_s=float(row.seconds),
                origin_code=row.origin_code,
                destination_code=row.destination_code,
                priority_tag=row.priority_tag,
                line_number=row.line_number,
            )
            for i, row in enumerate(ordered)
        ]
        return events, None

    anchor = ordered[0].seconds
    previous = anchor
    day_offset = 0
    events = []

    for i, row in enumerate(ordered):
        if i > 0 and row.seconds < previous:
            day_offset += SECONDS_PER_DAY

        events.append(
            ScheduledEvent(
                id=f"id_{i:03d}",
                firing_time_s=float(row.seconds - anchor + day_offset),
                origin_code=row.origin_code,
                destination_code=row.destination_code,
                priority_tag=row.priority_tag,
                line_number=row.line_number,
                time_of_day_s=row.seconds,
            )
        )
        previous = row.seconds

    return events, anchor


def load_schedule(lines: Iterable[str], mode: ClockMode) -> tuple[list[ScheduledEvent], Optional[int]]:
    """Parse schedule lines into sorted ScheduledEvents.

    Raises:
        ScheduleLoadError: If no valid rows remain
    """
    events, anchor = build_events(parse_rows(lines, mode), mode)
    if not events:
        raise ScheduleLoadError("No valid rows found.")

    if anchor is None:
        logger.info(
            "Loaded %d events (elapsed MM:SS). MaxT=%gs",
            len(events), events[-1].firing_time_s,
        )
    else:
        logger.info("Loaded %d events. Anchor TOD=%s", len(events), format_hhmm(anchor))

    return events, anchor


def read_schedule(path: str | Path, mode: ClockMode) -> tuple[list[ScheduledEvent], Optional[int]]:
    """Read and parse a schedule file.

    Raises:
        ScheduleLoadError: If the file is missing, unreadable or empty of valid rows
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ScheduleLoadError(f"Sequence file not found: {file_path}")

    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ScheduleLoadError(f"Failed to read {file_path}: {e}") from e

    return load_schedule(lines, mode)
