"""Exception types raised by the layout engine."""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for all layout engine errors."""


class InvalidReferenceError(LayoutError, KeyError):
    """A root or context canvas id has no Position in the cluster graph.

    This means the caller's view of the clusters is out of sync with the
    engine, so it is always propagated to the caller.
    """

    def __init__(self, canvas_id: int, message: str = ""):
        self.canvas_id = canvas_id
        super().__init__(message or f"No cluster is rooted at canvas {canvas_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class LayoutDataError(LayoutError, ValueError):
    """Persisted layout data is malformed. The whole load is aborted."""


class ArrowGraphError(LayoutError):
    """The arrow graph is not a forest (a cycle, or two incoming arrows)."""
