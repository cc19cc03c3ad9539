"""Arbor: a hierarchical tree editor engine."""

__version__ = "0.1.0"
