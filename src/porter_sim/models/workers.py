"""Worker fleet definitions and movement tuning models."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from porter_sim.models.enums import WorkerRole, WorkerState


class WorkerSpec(BaseModel):
    """Individual worker instance in the simulation.

    Speeds are metres per simulated second; mount/unmount durations are
    simulated seconds spent at the task origin/destination.
    """

    id: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Unique identifier for this worker"
    )
    role: WorkerRole = Field(
        ...,
        description="Robotic or human; drives eligibility and selection bias"
    )
    nominal_speed: float = Field(
        1.5,
        gt=0,
        le=10,
        description="Planning/base movement speed (m per sim second)"
    )
    mount_seconds: float = Field(
        5.0,
        ge=0,
        description="Time to mount/load at the task origin"
    )
    unmount_seconds: float = Field(
        5.0,
        ge=0,
        description="Time to unmount/unload at the task destination"
    )
    start_location: str = Field(
        ...,
        description="Location code for the initial position"
    )
    initial_state: WorkerState = Field(
        WorkerState.IDLE,
        description="State at simulation start (idle or charging)"
    )

    @model_validator(mode="after")
    def valid_initial_state(self) -> "WorkerSpec":
        """Workers start either idle or on charge."""
        if self.initial_state not in (WorkerState.IDLE, WorkerState.CHARGING):
            raise ValueError(
                f"Worker '{self.id}' initial_state must be idle or charging, "
                f"got '{self.initial_state.value}'"
            )
        return self

    model_config = {"extra": "forbid"}


class CongestionProfile(BaseModel):
    """Speed reduction from nearby mobile entities (execution only).

    The multiplier is 1.0 up to `no_effect_count` nearby entities, then the
    stacked slowdown (count x slowdown_per_entity) ramps in linearly until
    `full_effect_count`, capped at `max_slowdown`.
    """

    radius_m: float = Field(
        2.5,
        gt=0,
        description="Detection radius around the worker"
    )
    no_effect_count: int = Field(
        2,
        ge=0,
        description="Counts at or below this have no effect"
    )
    full_effect_count: int = Field(
        6,
        ge=1,
        description="Count at which the ramp reaches full strength"
    )
    slowdown_per_entity: float = Field(
        0.08,
        ge=0,
        description="Stacking slowdown weight per nearby entity"
    )
    max_slowdown: float = Field(
        0.6,
        ge=0,
        le=0.95,
        description="Cap on total slowdown fraction"
    )

    @model_validator(mode="after")
    def ramp_is_ordered(self) -> "CongestionProfile":
        if self.full_effect_count <= self.no_effect_count:
            raise ValueError(
                f"full_effect_count ({self.full_effect_count}) must exceed "
                f"no_effect_count ({self.no_effect_count})"
            )
        return self

    def speed_multiplier(self, nearby_count: int) -> float:
        """Return the execution speed multiplier for a nearby-entity count."""
        if nearby_count <= self.no_effect_count:
            return 1.0

        span = self.full_effect_count - self.no_effect_count
        t = min(1.0, max(0.0, (nearby_count - self.no_effect_count) / span))

        stacked = nearby_count * self.slowdown_per_entity
        slowdown = min(stacked * t, self.max_slowdown)

        return min(1.0, max(0.0, 1.0 - slowdown))

    model_config = {"extra": "forbid"}


class IdleRoamConfig(BaseModel):
    """Where idle workers wander while their queue is empty."""

    zones: list[str] = Field(
        default_factory=list,
        description="Location codes of idle zones (empty = no roaming)"
    )
    pick_radius_m: float = Field(
        4.0,
        gt=0,
        description="Radius around a zone to pick a random destination"
    )
    wait_seconds: float = Field(
        3.0,
        ge=0,
        description="Sim seconds to wait at a roam destination before moving on"
    )
    max_pick_attempts: int = Field(10, ge=1)

    model_config = {"extra": "forbid"}


# === Pre-built worker templates ===

WORKER_TEMPLATES: dict[str, dict] = {
    "rovi": {
        "role": "robotic",
        "nominal_speed": 1.2,
        "mount_seconds": 5,
        "unmount_seconds": 5,
    },
    "porter": {
        "role": "human",
        "nominal_speed": 1.4,
        "mount_seconds": 3,
        "unmount_seconds": 3,
    },
}


def worker_from_template(
    template: str,
    worker_id: str,
    start_location: str,
    initial_state: Optional[WorkerState] = None,
) -> WorkerSpec:
    """Build a WorkerSpec from one of the WORKER_TEMPLATES.

    Raises:
        KeyError: If template is not a known template name
    """
    if template not in WORKER_TEMPLATES:
        raise KeyError(
            f"Unknown worker template '{template}'. "
            f"Available: {list(WORKER_TEMPLATES.keys())}"
        )
    data = {**WORKER_TEMPLATES[template], "id": worker_id, "start_location": start_location}
    if initial_state is not None:
        data["initial_state"] = initial_state
    return WorkerSpec.model_validate(data)
