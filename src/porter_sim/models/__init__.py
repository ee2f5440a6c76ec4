"""Pydantic schema models for porter-sim scenarios"""

from porter_sim.models.enums import (
    AssignmentOutcome,
    ClockMode,
    EventType,
    TaskPhase,
    WorkerRole,
    WorkerState,
)
from porter_sim.models.network import Coordinates, LocationSpec, NavEdge, NavigationGraph, NavNode
from porter_sim.models.workers import CongestionProfile, IdleRoamConfig, WorkerSpec
from porter_sim.models.dispatch import DispatchPolicy, TimingRule
from porter_sim.models.scenario import ClockConfig, Scenario, SimulationConfig

__all__ = [
    # Enums
    "AssignmentOutcome",
    "ClockMode",
    "EventType",
    "TaskPhase",
    "WorkerRole",
    "WorkerState",
    # Facility
    "Coordinates",
    "LocationSpec",
    "NavEdge",
    "NavigationGraph",
    "NavNode",
    # Workers
    "CongestionProfile",
    "IdleRoamConfig",
    "WorkerSpec",
    # Dispatch
    "DispatchPolicy",
    "TimingRule",
    # Scenario
    "ClockConfig",
    "Scenario",
    "SimulationConfig",
]
