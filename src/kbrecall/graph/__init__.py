"""Relationship graph over knowledge entries."""

from .builder import GraphStore, build_graph

__all__ = ["GraphStore", "build_graph"]
