"""
Cluster: one rooted tree of the arrow forest, laid out as concentric rings.

The root canvas sits at the center.  Ring *k* (counting from 1) holds the
canvases at arrow distance *k* from the root.  Each child of the root starts
a slice that spans every ring (see ``slice.py``).

Weighing
--------
Each slice gets one weight: the share of every ring it may occupy.

  1. The arc weight of a slice on ring *i* is the fraction of that ring's
     canvases that belong to the slice.
  2. A slice's raw weight is its heaviest arc weight.  Heavier and deeper
     branches therefore get more room, in proportion to their most crowded
     ring.
  3. Raw weights are normalized to sum to 1.

Radius feedback
---------------
Once weights are known, each arc projects the ring length it needs to fit
its canvases inside its weighted share.  Ring *i* gets the larger of
``previous radius + ring_separation`` and ``max projection / 2π``, so a
cramped arc grows its ring instead of overlapping its neighbours.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .arc import RingArcTransformer, center_canvas_at
from .cluster_layout import ClusterLayout
from .config import DEFAULT_CONFIG, LayoutConfig
from .errors import ArrowGraphError
from .links import LinkOracle
from .models import Point
from .slice import Slice

logger = logging.getLogger(__name__)


class Ring:
    """The canvases at one arrow distance from the cluster root."""

    def __init__(self, index: int):
        self.index = index
        self.canvas_ids: list[int] = []

    def add_canvas(self, canvas_id: int):
        self.canvas_ids.append(canvas_id)

    def size(self) -> int:
        return len(self.canvas_ids)


class Cluster:
    """One tree of the arrow forest, identified by its root canvas.

    The ring and slice structure is rebuilt from the arrow graph on every
    layout pass; between passes only the root id and the location assigned
    by the cluster graph are meaningful.
    """

    def __init__(self, root_canvas_id: int, links: LinkOracle, config: LayoutConfig = DEFAULT_CONFIG):
        self.root_canvas_id = root_canvas_id
        self.links = links
        self.config = config
        self.location = Point()

        self.rings: list[Ring] = []
        self.slices: dict[int, Slice] = {}
        self.ring_radii: list[float] = []
        self._is_populated = False

    def __repr__(self) -> str:
        return f"Cluster(root={self.root_canvas_id})"

    def reset(self):
        self.rings = []
        self.slices = {}
        self.ring_radii = []
        self._is_populated = False

    def canvas_ids(self) -> list[int]:
        """Every canvas in the cluster, root first."""
        self.populate()
        ids = [self.root_canvas_id]
        for ring in self.rings:
            ids.extend(ring.canvas_ids)
        return ids

    def size(self) -> int:
        return len(self.canvas_ids())

    # -----------------------------------------------------------------------
    # Structure
    # -----------------------------------------------------------------------

    def _get_ring(self, ring_index: int) -> Ring:
        for i in range(len(self.rings), ring_index + 1):
            self.rings.append(Ring(i))
        return self.rings[ring_index]

    def _children(self, canvas_id: int) -> list[int]:
        children = []
        for link_id in self.links.get_link_ids_for_canvas(canvas_id):
            link = self.links.get_link(link_id)
            if link.source_canvas_id == canvas_id:
                children.append(link.dest_canvas_id)
        return children

    def populate(self):
        """Walk the arrow graph from the root and build rings and slices."""
        if self._is_populated:
            return

        visited = {self.root_canvas_id}
        for child_id in self._children(self.root_canvas_id):
            slice_ = Slice(child_id, self.config)
            self.slices[child_id] = slice_

            # depth-first, children in arrow order
            stack = [(self.root_canvas_id, child_id, 0)]
            while stack:
                parent_id, canvas_id, ring_index = stack.pop()
                if canvas_id in visited:
                    raise ArrowGraphError(
                        f"Canvas {canvas_id} is reached twice from cluster root {self.root_canvas_id}"
                    )
                visited.add(canvas_id)
                self._get_ring(ring_index).add_canvas(canvas_id)
                slice_.add_canvas(parent_id, canvas_id, ring_index)
                for grandchild_id in reversed(self._children(canvas_id)):
                    stack.append((canvas_id, grandchild_id, ring_index + 1))

        self._is_populated = True

    # -----------------------------------------------------------------------
    # Geometry
    # -----------------------------------------------------------------------

    def _weigh_slices(self):
        for ring in self.rings:
            for slice_ in self.slices.values():
                slice_.set_arc_weight(ring.index, slice_.arc_size(ring.index) / ring.size())

        total_weight = 0.0
        for slice_ in self.slices.values():
            slice_.calculate_max_arc_weight()
            total_weight += slice_.max_arc_weight

        for slice_ in self.slices.values():
            if total_weight > 0:
                slice_.set_weight(slice_.max_arc_weight / total_weight)
            else:
                slice_.set_weight(0.0)

    def _calculate_ring_radii(self):
        self.ring_radii = []
        previous_radius = 0.0
        for ring in self.rings:
            max_projected_span = max(
                (slice_.max_projected_span(ring.index) for slice_ in self.slices.values()),
                default=0,
            )
            radius = max(previous_radius + self.config.ring_separation, max_projected_span / (2 * math.pi))
            self.ring_radii.append(radius)
            previous_radius = radius

    def ring_span(self, ring_index: int) -> int:
        """Pixel circumference of one ring."""
        return int(2 * math.pi * self.ring_radii[ring_index])

    def layout_cluster_as_circles(self, center: Optional[Point] = None) -> ClusterLayout:
        """Lay out the cluster around ``center`` as if nothing else existed."""
        center = center or Point()
        self.reset()
        self.populate()
        self._weigh_slices()
        self._calculate_ring_radii()

        layout = ClusterLayout(self, self.config)
        layout.add_canvas(self.root_canvas_id, center_canvas_at(center.x, center.y, self.config))

        slices = list(self.slices.values())
        for ring in self.rings:
            radius = self.ring_radii[ring.index]
            ring_span = self.ring_span(ring.index)
            parent_radius = self.ring_radii[ring.index - 1] if ring.index > 0 else None
            transformer = RingArcTransformer(
                center, radius, ring_span, slices[0].calculate_layout_span(ring_span), self.config
            )

            arc_start = 0
            for slice_ in slices:
                slice_.layout_arc(transformer, ring.index, ring_span, arc_start, layout, parent_radius)
                arc_start += slice_.layout_span

        logger.debug(
            f"Cluster {self.root_canvas_id}: {len(layout.canvas_positions)} canvases "
            f"on {len(self.rings)} rings"
        )
        return layout
