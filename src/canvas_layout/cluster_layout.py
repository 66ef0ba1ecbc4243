"""Container for the canvas positions of one laid-out cluster."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .config import DEFAULT_CONFIG, LayoutConfig
from .models import Box, CanvasPosition, Point, Size

if TYPE_CHECKING:
    from .cluster import Cluster


class ClusterLayout:
    """Canvas positions for one cluster, for one layout pass.

    The cluster computes the positions around its own center; the cluster
    graph then centers the whole layout inside the grid cell it assigned
    and translates every canvas there.

    ``bounding_box()`` and ``center_within_bounds()`` share a cached
    calculation.  The cache is never invalidated automatically: call
    ``reset()`` before reusing a layout whose canvases have changed.
    """

    def __init__(self, cluster: Cluster, config: LayoutConfig = DEFAULT_CONFIG):
        self.cluster = cluster
        self.config = config
        self.canvas_positions: list[CanvasPosition] = []

        self._is_calculated = False
        self._root_offset = Point()
        self._bounding_box = Size()

    @property
    def root_canvas_id(self) -> int:
        return self.cluster.root_canvas_id

    def reset(self):
        self._is_calculated = False
        self._root_offset = Point()
        self._bounding_box = Size()

    def add_canvas(self, canvas_id: int, location: Point):
        self.canvas_positions.append(CanvasPosition(canvas_id=canvas_id, location=location))

    def position_of(self, canvas_id: int) -> Optional[Point]:
        for position in self.canvas_positions:
            if position.canvas_id == canvas_id:
                return position.location
        return None

    def canvas_ids(self) -> list[int]:
        return [position.canvas_id for position in self.canvas_positions]

    def translate_by(self, dx: int, dy: int):
        for position in self.canvas_positions:
            position.translate_by(dx, dy)

    def bounding_box(self) -> Size:
        """Size of the box that tightly fits every canvas, plus the buffer."""
        if not self._is_calculated:
            self._calculate()
        return self._bounding_box

    def extent(self) -> Box:
        """Absolute box around every canvas thumbnail (no buffer)."""
        if not self.canvas_positions:
            return Box()
        x_min = min(p.location.x for p in self.canvas_positions)
        y_min = min(p.location.y for p in self.canvas_positions)
        x_max = max(p.location.x + self.config.cell_width for p in self.canvas_positions)
        y_max = max(p.location.y + self.config.cell_height for p in self.canvas_positions)
        return Box(x=x_min, y=y_min, width=x_max - x_min, height=y_max - y_min)

    def center_within_bounds(self, bounds: Size) -> Point:
        """Where the root canvas center goes so the layout is centered in ``bounds``.

        The result is relative to the top-left corner of ``bounds``.
        """
        if not self._is_calculated:
            self._calculate()

        x_inset = (bounds.width - self._bounding_box.width) // 2
        y_inset = (bounds.height - self._bounding_box.height) // 2
        return Point(
            x=self._root_offset.x + x_inset + self.config.cell_width // 2,
            y=self._root_offset.y + y_inset + self.config.cell_height // 2,
        )

    def _calculate(self):
        buffer = self.config.layout_buffer
        root = None
        for position in self.canvas_positions:
            if position.canvas_id == self.cluster.root_canvas_id:
                root = position
                break

        extent = self.extent()
        if root is None or extent.is_empty():
            # nothing to place
            self._root_offset = Point()
            self._bounding_box = Size()
        else:
            self._root_offset = Point(
                x=root.location.x - (extent.x - buffer),
                y=root.location.y - (extent.y - buffer),
            )
            self._bounding_box = Size(
                width=extent.width + 2 * buffer,
                height=extent.height + 2 * buffer,
            )
        self._is_calculated = True
