"""
Data models for canvas-layout: the layout vocabulary.

The layout engine positions *canvases* (opaque integer ids) that are joined
by directed *arrows*.  Every canvas has at most one incoming arrow, so the
arrows form a forest and each tree is laid out as one *cluster*:

    ClusterGraph    the grid on which whole clusters are packed
    └── Cluster         one rooted tree, drawn as concentric rings
        └── Slice           one branch of the root, a wedge across all rings
            └── Arc             the part of one ring owned by a slice
                └── Group           siblings sharing a parent canvas

The models here are the values that leave the engine: pixel geometry
(``Point``, ``Size``, ``Box``), the absolute position of one canvas
(``CanvasPosition``), the per-cluster topology summary
(``ClusterTopology``) and the result of one layout pass (``LayoutResult``).

All pixel coordinates are integers.  A canvas position always refers to the
top-left corner of the canvas thumbnail, never to its center.
"""

from __future__ import annotations
from typing import Any
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class Point(BaseModel):
    """An integer pixel coordinate."""
    x: int = 0
    y: int = 0

    def translated(self, dx: int, dy: int) -> Point:
        return Point(x=self.x + dx, y=self.y + dy)


class Size(BaseModel):
    """An integer pixel extent."""
    width: int = 0
    height: int = 0


class Box(BaseModel):
    """An axis-aligned pixel rectangle.

    ``x`` and ``y`` are the top-left corner.  Boxes are half-open, so two
    boxes that only share an edge do not intersect.
    """
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersects(self, other: Box) -> bool:
        """Return True if the two boxes share any interior area."""
        if self.is_empty() or other.is_empty():
            return False
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def contains_box(self, other: Box) -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )


# ---------------------------------------------------------------------------
# Layout output
# ---------------------------------------------------------------------------

class CanvasPosition(BaseModel):
    """The position assigned to one canvas during a layout pass.

    Positions are global to the layout plane once the owning cluster has
    been centered in its grid cell; before that they are relative to the
    cluster center.
    """
    canvas_id: int
    location: Point

    def translate_by(self, dx: int, dy: int):
        self.location = self.location.translated(dx, dy)


class ClusterTopology(BaseModel):
    """Render-agnostic summary of one laid-out cluster.

    Attributes:
        root_canvas_id: Identifies the cluster.
        center:         Pixel center of the cluster (the root canvas center).
        radii:          Radius of each ring around the root, innermost first.
        bounding_box:   Box that tightly contains every canvas of the cluster.
    """
    root_canvas_id: int
    center: Point = Field(default_factory=Point)
    radii: list[int] = Field(default_factory=list)
    bounding_box: Box = Field(default_factory=Box)


class LayoutResult(BaseModel):
    """Everything produced by one ``layout_graph()`` pass.

    ``moved`` holds only the canvases whose location differs from the
    previous pass (including canvases that had no location before), so the
    caller can notify consumers of actual changes only.
    """
    model_config = {"arbitrary_types_allowed": True}

    cluster_layouts: list[Any] = Field(default_factory=list)
    positions: dict[int, Point] = Field(default_factory=dict)
    moved: dict[int, Point] = Field(default_factory=dict)
    topology: list[ClusterTopology] = Field(default_factory=list)

    def to_summary(self) -> dict:
        """Plain-data view of the result, suitable for JSON."""
        return {
            "positions": {
                str(canvas_id): [point.x, point.y]
                for canvas_id, point in self.positions.items()
            },
            "moved": {
                str(canvas_id): [point.x, point.y]
                for canvas_id, point in self.moved.items()
            },
            "topology": [cluster.model_dump() for cluster in self.topology],
        }
