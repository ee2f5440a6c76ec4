"""porter-sim: tick-driven dispatch simulation for hospital transport."""

__version__ = "0.1.0"
