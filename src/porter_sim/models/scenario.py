"""Top-level scenario model combining all components.

A Scenario is the complete input specification for a porter-sim run.
It includes the facility locations, optional navigation graph, worker
fleet, dispatch policy, clock configuration and simulation parameters.
The transport request schedule itself lives in a separate CSV file.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from porter_sim.models.dispatch import DispatchPolicy
from porter_sim.models.enums import ClockMode, WorkerRole
from porter_sim.models.network import Coordinates, LocationSpec, NavigationGraph
from porter_sim.models.workers import CongestionProfile, IdleRoamConfig, WorkerSpec


class ClockConfig(BaseModel):
    """Deterministic simulation clock parameters.

    Simulated time is advanced only by ticks: each tick adds
    `seconds_per_tick` to a budget that is consumed in fixed
    `micro_step_s` increments.
    """

    mode: ClockMode = Field(
        ClockMode.TIME_OF_DAY,
        description="How schedule time strings are parsed"
    )
    seconds_per_tick: float = Field(
        1.0,
        gt=0,
        description="Sim seconds that pass per external tick"
    )
    micro_step_s: float = Field(
        0.1,
        gt=0,
        description="Internal simulation step (sim seconds)"
    )
    max_steps_per_tick: int = Field(
        20000,
        ge=1,
        description="Safety cap on micro-steps processed in one tick"
    )
    start_offset_s: float = Field(
        0.0,
        ge=0,
        description="Delay in sim seconds before the first micro-step"
    )
    anchor_display_to_first_row: bool = Field(
        True,
        description="Time-of-day display starts at the first row's time"
    )

    model_config = {"extra": "forbid"}


class SimulationConfig(BaseModel):
    """Global simulation control parameters."""

    duration_s: float = Field(
        3600.0,
        gt=0,
        le=7 * 86400,  # Up to 1 week
        description="Maximum simulated duration (seconds)"
    )
    random_seed: int = Field(
        42,
        description="RNG seed for idle roam destinations"
    )
    stop_when_drained: bool = Field(
        True,
        description="End early once every event fired and every queue is empty"
    )

    # Output control
    log_level: str = Field(
        "INFO",
        description="Logging verbosity (DEBUG, INFO, WARNING)"
    )

    model_config = {"extra": "forbid"}


class Scenario(BaseModel):
    """Complete porter-sim scenario definition.

    Validation ensures all cross-references are valid (workers start at
    known locations, idle zones exist, worker ids are unique). Duplicate
    location codes are allowed here; the location registry keeps the first
    and ignores the rest.
    """

    # Metadata
    name: str = Field(
        ...,
        min_length=1,
        description="Scenario name"
    )
    description: Optional[str] = Field(
        None,
        description="Scenario description and notes"
    )
    version: str = Field(
        "1.0.0",
        description="Schema version for compatibility checking"
    )

    # Facility
    locations: list[LocationSpec] = Field(
        ...,
        min_length=1,
        description="Coded locations referenced by the schedule"
    )
    navigation: Optional[NavigationGraph] = Field(
        None,
        description="Waypoint graph (None = open floor, straight-line routing)"
    )
    crowd_points: list[Coordinates] = Field(
        default_factory=list,
        description="Static crowd positions counted by the congestion sensor"
    )

    # Fleet
    workers: list[WorkerSpec] = Field(
        ...,
        min_length=1,
        description="Worker instances in the scenario"
    )

    # Behaviour
    dispatch: DispatchPolicy = Field(default_factory=DispatchPolicy)
    clock: ClockConfig = Field(default_factory=ClockConfig)
    congestion: CongestionProfile = Field(default_factory=CongestionProfile)
    idle_roam: IdleRoamConfig = Field(default_factory=IdleRoamConfig)

    schedule_file: Optional[str] = Field(
        None,
        description="Schedule CSV, relative to the scenario file"
    )

    config: SimulationConfig = Field(
        default_factory=SimulationConfig,
        description="Simulation control parameters"
    )

    @model_validator(mode="after")
    def validate_all_references(self) -> "Scenario":
        """Ensure all cross-references between components are valid."""
        errors = []

        location_codes = {loc.code for loc in self.locations}

        seen_workers: set[str] = set()
        for worker in self.workers:
            if worker.id in seen_workers:
                errors.append(f"Duplicate worker id: '{worker.id}'")
            seen_workers.add(worker.id)
            if worker.start_location not in location_codes:
                errors.append(
                    f"Worker '{worker.id}' starts at unknown location: '{worker.start_location}'"
                )

        for code in self.idle_roam.zones:
            if code not in location_codes:
                errors.append(f"Idle zone references unknown location: '{code}'")

        if errors:
            raise ValueError(
                f"Scenario validation failed with {len(errors)} error(s):\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

        return self

    def get_location(self, code: str) -> LocationSpec | None:
        """Look up the first location registered under a code."""
        for loc in self.locations:
            if loc.code == code:
                return loc
        return None

    def get_workers_by_role(self, role: WorkerRole) -> list[WorkerSpec]:
        """Get all workers with a given role, in declaration order."""
        return [w for w in self.workers if w.role == role]

    def summary(self) -> str:
        """Generate human-readable scenario summary."""
        robots = len(self.get_workers_by_role(WorkerRole.ROBOTIC))
        humans = len(self.get_workers_by_role(WorkerRole.HUMAN))
        lines = [
            f"Scenario: {self.name}",
            f"  Max duration: {self.config.duration_s:g} s",
            f"  Locations: {len(self.locations)}",
            f"  Navigation: "
            + (
                f"{len(self.navigation.nodes)} waypoints, {len(self.navigation.edges)} edges"
                if self.navigation else "open floor"
            ),
            f"  Workers: {len(self.workers)} ({robots} robotic, {humans} human)",
            f"  Clock mode: {self.clock.mode.value}",
            f"  Seconds per tick: {self.clock.seconds_per_tick:g}",
        ]
        if self.schedule_file:
            lines.append(f"  Schedule: {self.schedule_file}")
        return "\n".join(lines)

    model_config = {"extra": "forbid"}


def load_scenario(path: str) -> Scenario:
    """Load and validate a scenario from JSON file.

    Args:
        path: Path to scenario JSON file

    Returns:
        Validated Scenario instance

    Raises:
        FileNotFoundError: If file doesn't exist
        ValidationError: If JSON doesn't match schema
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")

    with open(file_path) as f:
        data = json.load(f)

    return Scenario.model_validate(data)


def save_scenario(scenario: Scenario, path: str, indent: int = 2) -> None:
    """Save a scenario to JSON file.

    Args:
        scenario: Scenario to save
        path: Output file path
        indent: JSON indentation (default 2)
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, "w") as f:
        f.write(scenario.model_dump_json(indent=indent, by_alias=True))


def resolve_schedule_path(scenario_path: str, scenario: Scenario) -> Optional[Path]:
    """Schedule file location, relative to the scenario file's directory."""
    if not scenario.schedule_file:
        return None
    schedule = Path(scenario.schedule_file)
    if schedule.is_absolute():
        return schedule
    return Path(scenario_path).parent / schedule
