"""Dispatch policy: robot eligibility, selection bias and timing rules."""

from pydantic import BaseModel, Field


class TimingRule(BaseModel):
    """Per-tag ETA adjustment, matched by case-insensitive substring.

    Applied on top of the chosen worker's own mount/unmount durations.
    """

    contains_tag: str = Field(
        ...,
        min_length=1,
        description="Substring looked for in the priority tag (case-insensitive)"
    )
    extra_mount_seconds: float = Field(0.0, ge=0)
    extra_unmount_seconds: float = Field(0.0, ge=0)
    travel_multiplier: float = Field(
        1.0,
        ge=0.01,
        description="Multiplier on travel time (1.25 = 25% slower)"
    )

    model_config = {"extra": "forbid"}


class DispatchPolicy(BaseModel):
    """How the dispatcher scores and selects workers."""

    use_robot_filter: bool = Field(
        True,
        description="Apply robot disallow rules at all"
    )
    robot_disallowed_priorities: list[str] = Field(
        default_factory=lambda: ["Critical", "STAT"],
        description="Priority tags (exact, case-sensitive) that robots may not take"
    )
    robot_disallowed_tags: list[str] = Field(
        default_factory=list,
        description="Substrings (case-insensitive) that make a tag robot-ineligible"
    )
    human_penalty_factor: float = Field(
        1.25,
        ge=1.0,
        description="Human ETA multiplier used for comparison when robots are eligible"
    )
    timing_rules: list[TimingRule] = Field(
        default_factory=list,
        description="Ordered timing rules; first match wins"
    )
    priority_values: dict[str, int] = Field(
        default_factory=lambda: {"STAT": 3, "Critical": 3, "Urgent": 2, "Routine": 1},
        description="Priority tag -> integer priority (higher preempts lower)"
    )
    default_priority_value: int = Field(
        1,
        description="Priority value for tags matching nothing"
    )

    model_config = {"extra": "forbid"}


# Rules the original ward deployment was tuned with
DEFAULT_TIMING_RULES: list[dict] = [
    {"contains_tag": "ICU", "extra_mount_seconds": 10, "extra_unmount_seconds": 10, "travel_multiplier": 1.15},
    {"contains_tag": "BARI", "extra_mount_seconds": 15, "extra_unmount_seconds": 15, "travel_multiplier": 1.25},
    {"contains_tag": "ISO", "extra_mount_seconds": 8, "extra_unmount_seconds": 8, "travel_multiplier": 1.10},
    {"contains_tag": "WHEEL", "extra_mount_seconds": 5, "extra_unmount_seconds": 5, "travel_multiplier": 1.05},
]
