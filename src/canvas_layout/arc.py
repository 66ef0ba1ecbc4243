"""Ring arc transform.

Slices lay out each ring as a straight line of pixels (an "arc
coordinate").  ``RingArcTransformer`` bends that line around the ring.
Arc coordinate 0 is the seam where the two ends of the line meet; the
transformer rotates the seam so the first slice's arc is centered at 7/8
of a turn instead of being cut in half at 3 o'clock.
"""

from __future__ import annotations

import math

from .config import DEFAULT_CONFIG, LayoutConfig
from .models import Point


def center_canvas_at(x: int, y: int, config: LayoutConfig = DEFAULT_CONFIG) -> Point:
    """Return the top-left corner of a canvas whose center is at (x, y)."""
    return Point(x=x - config.cell_width // 2, y=y - config.cell_height // 2)


class RingArcTransformer:
    """Maps arc coordinates on one ring to canvas locations.

    One instance serves exactly one ring for one layout pass.
    """

    def __init__(
        self,
        center: Point,
        radius: float,
        ring_span: int,
        first_arc_span: int,
        config: LayoutConfig = DEFAULT_CONFIG,
    ):
        self.center = center
        self.radius = radius
        self.ring_span = ring_span
        self.config = config
        self.offset = (7 * ring_span) / 8.0 - first_arc_span / 2.0

    def point_at(self, x_arc: int) -> Point:
        """Location of a canvas centered ``x_arc`` pixels along the ring."""
        shifted = int((x_arc + self.offset) % self.ring_span) if self.ring_span > 0 else 0
        theta = shifted / self.radius if self.radius > 0 else 0.0
        x = self.center.x + int(self.radius * math.cos(theta))
        y = self.center.y + int(self.radius * math.sin(theta))
        return center_canvas_at(x, y, self.config)

    def ideal_position_for(self, parent_arc_position: float, parent_ring_radius: float) -> float:
        """Arc coordinate directly outward from a parent on the next ring in.

        The parent's coordinate is scaled by the ratio of the two radii, so
        a group placed here appears radially in front of its parent.
        """
        return (self.radius / parent_ring_radius) * parent_arc_position
