"""Facility topology models: named locations and the navigation graph"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Coordinates(BaseModel):
    """Planar floor position in metres."""

    x: float = Field(..., description="X coordinate (metres)")
    y: float = Field(..., description="Y coordinate (metres)")

    def distance_to(self, other: "Coordinates") -> float:
        """Euclidean distance to another coordinate point."""
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)

    model_config = {"extra": "forbid"}


class LocationSpec(BaseModel):
    """A coded place in the facility that tasks start or end at.

    Schedule rows reference locations by `code` (e.g. 'C-33', 'CT').
    The coordinates are the navigable target point workers drive to.
    """

    code: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Location code used in schedule files"
    )
    name: Optional[str] = Field(
        None,
        description="Human-readable display name"
    )
    coordinates: Coordinates = Field(
        ...,
        description="Navigable target point"
    )
    floor: int = Field(
        0,
        description="Floor index (informational)"
    )

    @field_validator("code")
    @classmethod
    def clean_code(cls, v: str) -> str:
        """Location codes are compared after stripping whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Location code cannot be blank")
        return v

    model_config = {"extra": "forbid"}


class NavNode(BaseModel):
    """A waypoint in the navigation graph (corridor junction, doorway, lift)."""

    id: str = Field(..., min_length=1, max_length=50)
    coordinates: Coordinates

    model_config = {"extra": "forbid"}


class NavEdge(BaseModel):
    """A traversable corridor segment between two waypoints.

    Length defaults to the straight-line distance between the endpoints;
    `length_m` overrides it (e.g. for lifts or ramps).
    """

    from_node: str = Field(
        ...,
        alias="from",
        description="Source waypoint ID"
    )
    to_node: str = Field(
        ...,
        alias="to",
        description="Destination waypoint ID"
    )
    length_m: Optional[float] = Field(
        None,
        gt=0,
        description="Explicit traversal length in metres"
    )
    is_operational: bool = Field(
        True,
        description="Corridor currently usable (can be closed for scenarios)"
    )

    model_config = {
        "extra": "forbid",
        "populate_by_name": True,  # Allow both 'from' and 'from_node'
    }


class NavigationGraph(BaseModel):
    """Waypoint graph used by the path planner.

    When a scenario has no navigation graph, workers move in straight
    lines across an open floor.
    """

    nodes: list[NavNode] = Field(..., min_length=1)
    edges: list[NavEdge] = Field(default_factory=list)
    snap_radius_m: Optional[float] = Field(
        None,
        gt=0,
        description="Max distance from a point to its nearest waypoint (None = unlimited)"
    )

    @model_validator(mode="after")
    def validate_edge_references(self) -> "NavigationGraph":
        """Edges must connect known, distinct waypoints."""
        node_ids = {n.id for n in self.nodes}
        errors = []
        for i, edge in enumerate(self.edges):
            if edge.from_node not in node_ids:
                errors.append(f"Edge[{i}] references unknown waypoint: '{edge.from_node}'")
            if edge.to_node not in node_ids:
                errors.append(f"Edge[{i}] references unknown waypoint: '{edge.to_node}'")
            if edge.from_node == edge.to_node:
                errors.append(f"Edge[{i}] is a self-loop (from=to='{edge.from_node}')")
        if errors:
            raise ValueError(
                f"Navigation graph invalid with {len(errors)} error(s):\n"
                + "\n".join(f"  - {e}" for e in errors)
            )
        return self

    model_config = {"extra": "forbid"}
