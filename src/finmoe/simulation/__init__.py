"""Synthetic traffic for demos and load testing."""

from finmoe.simulation.generator import SyntheticRequestGenerator

__all__ = ["SyntheticRequestGenerator"]
