"""
Slice layout: one branch of a cluster, laid out ring by ring.

A slice is defined by one child of the cluster root and contains every
canvas reachable from that child.  On each ring the slice owns a contiguous
segment called an *arc*.  Within an arc, canvases sharing a parent form a
*group*, and groups are kept in parent order.

Placement works on a 1-dimensional arc coordinate (see ``arc.py``):

  1. Each group's ideal center is its parent's arc position scaled out to
     the current ring, so the group sits directly in front of its parent.
  2. Groups are swept left to right.  A group whose ideal start falls
     before the previous group's right edge is displaced right by exactly
     the overlap.  The displacement carries forward to following groups
     until one no longer collides; that run is a *collision chain*.
  3. If an arc ends up with more than one independent chain, or the groups
     run past the end of the arc, ideal placement is dropped for that arc
     and all groups are crowded together in the middle of the arc.

Canvases within a group are always packed at ``cell_diameter`` spacing.

A slice lives for one layout pass only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .arc import RingArcTransformer
from .cluster_layout import ClusterLayout
from .config import DEFAULT_CONFIG, LayoutConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Collision resolution (pure)
# ---------------------------------------------------------------------------

@dataclass
class Displacement:
    """One group pushed right by ``span`` arc pixels."""
    group_index: int
    span: float


@dataclass
class GroupCollision:
    """A chain of consecutive displaced groups.

    ``ideally_placed_index`` is the last group placed at its ideal position
    before the chain started.
    """
    ideally_placed_index: int
    displacements: list[Displacement] = field(default_factory=list)

    @property
    def total_span(self) -> float:
        return sum(d.span for d in self.displacements)


@dataclass
class CollisionReport:
    """Result of ``resolve_collisions``."""
    starts: list[float]
    collisions: list[GroupCollision]

    def is_crowded(self) -> bool:
        """True when the collisions are too tangled for ideal placement."""
        return len(self.collisions) > 1


def resolve_collisions(
    ideal_starts: list[float],
    spans: list[float],
    arc_start: float,
) -> CollisionReport:
    """Sweep groups left to right and push colliding groups right.

    Args:
        ideal_starts: Ideal left edge of each group, in group order.
        spans:        Arc length of each group.
        arc_start:    Leftmost coordinate any group may occupy.

    Returns the final left edge of each group and every collision chain.
    A group that only crosses ``arc_start`` is clamped, not displaced.
    """
    starts: list[float] = []
    collisions: list[GroupCollision] = []
    chain: Optional[GroupCollision] = None
    left_boundary = float(arc_start)

    for index, (ideal_start, span) in enumerate(zip(ideal_starts, spans)):
        start = ideal_start
        if start < left_boundary:
            if index > 0:
                if chain is None:
                    chain = GroupCollision(ideally_placed_index=index - 1)
                    collisions.append(chain)
                chain.displacements.append(Displacement(index, left_boundary - ideal_start))
            start = left_boundary
        else:
            chain = None

        starts.append(start)
        left_boundary = start + span

    return CollisionReport(starts=starts, collisions=collisions)


# ---------------------------------------------------------------------------
# Slice structure
# ---------------------------------------------------------------------------

@dataclass
class CanvasGroup:
    """Canvases sharing one parent, placed contiguously on an arc."""
    parent_canvas_id: int
    canvas_ids: list[int] = field(default_factory=list)

    def span(self, cell_diameter: int) -> int:
        return len(self.canvas_ids) * cell_diameter


@dataclass
class Arc:
    """The part of one ring owned by a slice.

    ``weight`` is this arc's share of its ring, assigned by the cluster.
    ``span_projection`` is the ring span at which the arc exactly fits the
    share of the ring given by the slice weight.  For example, three
    canvases of diameter 80 need 240 pixels; with a slice weight of 0.25
    the ring must be at least 960 pixels long.
    """
    ring_index: int
    groups: dict[int, CanvasGroup] = field(default_factory=dict)
    canvas_count: int = 0
    weight: float = 0.0
    span_projection: int = 0

    def add_canvas(self, parent_canvas_id: int, canvas_id: int):
        self.canvas_count += 1
        group = self.groups.get(parent_canvas_id)
        if group is None:
            group = CanvasGroup(parent_canvas_id)
            self.groups[parent_canvas_id] = group
        group.canvas_ids.append(canvas_id)

    def is_empty(self) -> bool:
        return not self.groups

    def calculate_span_projection(self, slice_weight: float, cell_diameter: int):
        if slice_weight <= 0 or self.canvas_count == 0:
            self.span_projection = 0
        else:
            self.span_projection = int((self.canvas_count * cell_diameter) * (1.0 / slice_weight))


class Slice:
    """Layout state for one branch of a cluster.

    Usage per pass: ``add_canvas`` for every canvas, then the cluster
    assigns ``set_arc_weight`` per ring, ``calculate_max_arc_weight`` and
    ``set_weight``, then ``layout_arc`` once per ring in increasing order.
    """

    def __init__(self, root_canvas_id: int, config: LayoutConfig = DEFAULT_CONFIG):
        self.root_canvas_id = root_canvas_id
        self.config = config
        self.canvas_ids: list[int] = []
        self.arcs: list[Arc] = []
        # arc coordinate of each placed canvas center
        self.arc_positions: dict[int, int] = {}
        self.max_arc_weight = 0.0
        self.weight = 0.0
        self.layout_span = 0

    def __repr__(self) -> str:
        return f"Slice(root={self.root_canvas_id}, canvases={len(self.canvas_ids)}, weight={self.weight:.2f})"

    def _get_arc(self, ring_index: int) -> Arc:
        for i in range(len(self.arcs), ring_index + 1):
            self.arcs.append(Arc(i))
        return self.arcs[ring_index]

    def add_canvas(self, parent_canvas_id: int, canvas_id: int, ring_index: int):
        self.canvas_ids.append(canvas_id)
        self._get_arc(ring_index).add_canvas(parent_canvas_id, canvas_id)

    def size(self) -> int:
        return len(self.canvas_ids)

    def arc_size(self, ring_index: int) -> int:
        return self._get_arc(ring_index).canvas_count

    def set_arc_weight(self, ring_index: int, weight: float):
        self._get_arc(ring_index).weight = weight

    def calculate_max_arc_weight(self):
        self.max_arc_weight = max((arc.weight for arc in self.arcs), default=0.0)

    def set_weight(self, weight: float):
        """Assign this slice's share of every ring, ``0 <= weight <= 1``."""
        self.weight = weight
        logger.debug(
            f"Slice for canvas {self.root_canvas_id} has {self.size()} canvases, "
            f"max arc weight {self.max_arc_weight:.2f}, weight {int(weight * 100)}%"
        )
        for arc in self.arcs:
            arc.calculate_span_projection(weight, self.config.diameter)
            logger.debug(
                f"Slice for canvas {self.root_canvas_id} projects span {arc.span_projection} "
                f"for ring {arc.ring_index}"
            )

    def max_projected_span(self, ring_index: int) -> int:
        return self._get_arc(ring_index).span_projection

    def calculate_layout_span(self, ring_span: int) -> int:
        """Pixels this slice occupies on a ring of length ``ring_span``."""
        return int(ring_span * self.weight)

    def layout_arc(
        self,
        transformer: RingArcTransformer,
        ring_index: int,
        ring_span: int,
        arc_start: int,
        layout: ClusterLayout,
        parent_ring_radius: Optional[float] = None,
    ):
        """Place every canvas of this slice on ring ``ring_index``.

        ``parent_ring_radius`` is the radius of the next ring in, or None for
        the innermost ring (whose groups all share the cluster root as their
        parent and are simply centered in the arc).
        """
        slice_width = self.calculate_layout_span(ring_span)
        self.layout_span = slice_width

        if ring_index >= len(self.arcs):
            return
        arc = self.arcs[ring_index]
        if arc.is_empty():
            return

        diameter = self.config.diameter
        groups = list(arc.groups.values())
        starts = None

        if parent_ring_radius:
            ideal_starts = []
            spans = []
            for group in groups:
                ideal_center = transformer.ideal_position_for(
                    self.arc_positions[group.parent_canvas_id], parent_ring_radius
                )
                span = group.span(diameter)
                ideal_starts.append(ideal_center - span / 2.0)
                spans.append(span)
                logger.debug(
                    f"Ideal position for group of ring {ring_index} in slice {self.root_canvas_id}: "
                    f"{ideal_center:.1f} in ({arc_start} - {arc_start + slice_width})"
                )

            report = resolve_collisions(ideal_starts, spans, arc_start)
            for collision in report.collisions:
                logger.debug(
                    f"Collision after group with parent "
                    f"{groups[collision.ideally_placed_index].parent_canvas_id}: "
                    f"{len(collision.displacements)} displacements totaling "
                    f"{int(collision.total_span)} arc pixels"
                )

            overflow = report.starts[-1] + spans[-1] > arc_start + slice_width
            if report.is_crowded() or overflow:
                logger.debug(f"Crowding ring {ring_index} of slice {self.root_canvas_id}")
            else:
                starts = report.starts

        if starts is None:
            occupancy = (arc.canvas_count - 1) * diameter
            x_arc = arc_start + (slice_width - occupancy) // 2
            for group in groups:
                for canvas_id in group.canvas_ids:
                    self._place(canvas_id, x_arc, transformer, layout)
                    x_arc += diameter
        else:
            for group, start in zip(groups, starts):
                x_arc = int(start + diameter / 2.0)
                for canvas_id in group.canvas_ids:
                    self._place(canvas_id, x_arc, transformer, layout)
                    x_arc += diameter

    def _place(self, canvas_id: int, x_arc: int, transformer: RingArcTransformer, layout: ClusterLayout):
        layout.add_canvas(canvas_id, transformer.point_at(x_arc))
        self.arc_positions[canvas_id] = x_arc
