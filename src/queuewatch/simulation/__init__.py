"""Simulation module: synthetic queue of last resort."""

from queuewatch.simulation.feed import SimulatedFeed


__all__ = [
    "SimulatedFeed",
]
