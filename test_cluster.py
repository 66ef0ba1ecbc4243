"""Tests for ring layout of a single cluster."""

import math

import pytest

from canvas_layout.cluster import Cluster
from canvas_layout.errors import ArrowGraphError
from canvas_layout.links import ArrowGraph, Link
from canvas_layout.models import Point


def _arrows(*edges) -> ArrowGraph:
    arrows = ArrowGraph()
    for link_id, (source, dest) in enumerate(edges, start=1):
        arrows.add_link(link_id, source, dest)
    return arrows


class CyclicLinks:
    """Link oracle for a broken arrow graph: 1 -> 2 -> 3 -> 2."""

    _links = {
        1: Link(link_id=1, source_canvas_id=1, dest_canvas_id=2),
        2: Link(link_id=2, source_canvas_id=2, dest_canvas_id=3),
        3: Link(link_id=3, source_canvas_id=3, dest_canvas_id=2),
    }

    def get_incoming_link(self, canvas_id):
        return {2: 1, 3: 2}.get(canvas_id)

    def get_link(self, link_id):
        return self._links[link_id]

    def get_link_ids_for_canvas(self, canvas_id):
        return [
            link_id for link_id, link in self._links.items()
            if canvas_id in (link.source_canvas_id, link.dest_canvas_id)
        ]


def _arc_canvas_ids(slice_, ring_index):
    if ring_index >= len(slice_.arcs):
        return []
    return [
        canvas_id
        for group in slice_.arcs[ring_index].groups.values()
        for canvas_id in group.canvas_ids
    ]


@pytest.fixture
def two_level():
    # 1 -> {2, 3}, 2 -> {4, 5}
    return Cluster(1, _arrows((1, 2), (1, 3), (2, 4), (2, 5)))


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def test_rings_follow_arrow_distance(two_level):
    two_level.populate()
    assert [ring.canvas_ids for ring in two_level.rings] == [[2, 3], [4, 5]]
    assert list(two_level.slices) == [2, 3]
    assert two_level.slices[2].canvas_ids == [2, 4, 5]
    assert two_level.slices[3].canvas_ids == [3]


def test_canvas_ids_root_first(two_level):
    assert two_level.canvas_ids() == [1, 2, 3, 4, 5]
    assert two_level.size() == 5


def test_lone_root_has_no_rings():
    cluster = Cluster(7, ArrowGraph())
    layout = cluster.layout_cluster_as_circles()
    assert cluster.rings == []
    assert layout.canvas_ids() == [7]
    assert layout.position_of(7) == Point(x=-100, y=-65)


def test_cycle_is_fatal():
    cluster = Cluster(1, CyclicLinks())
    with pytest.raises(ArrowGraphError):
        cluster.populate()


# ---------------------------------------------------------------------------
# Weights and radii
# ---------------------------------------------------------------------------

def test_heavier_branch_gets_more_weight(two_level):
    two_level.layout_cluster_as_circles()
    assert two_level.slices[2].weight == pytest.approx(2 / 3)
    assert two_level.slices[3].weight == pytest.approx(1 / 3)
    weights = sum(slice_.weight for slice_ in two_level.slices.values())
    assert weights == pytest.approx(1.0)


def test_ring_radii_are_separated(two_level):
    two_level.layout_cluster_as_circles()
    assert two_level.ring_radii == [258, 516]
    assert two_level.ring_span(0) == 1621
    assert two_level.ring_span(1) == 3242


def test_crowded_ring_grows_its_radius():
    # ten siblings need 2380px at a tenth of the ring each
    arrows = _arrows(*[(1, child) for child in range(2, 12)])
    cluster = Cluster(1, arrows)
    cluster.layout_cluster_as_circles()
    assert cluster.ring_radii[0] == pytest.approx(2380 / (2 * math.pi), abs=1)
    assert cluster.ring_radii[0] > 258


def test_radii_strictly_increase():
    arrows = _arrows((1, 2), (2, 3), (3, 4), (1, 5), (5, 6))
    cluster = Cluster(1, arrows)
    cluster.layout_cluster_as_circles()
    radii = cluster.ring_radii
    for inner, outer in zip(radii, radii[1:]):
        assert outer - inner >= 258


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

def test_children_sit_in_front_of_their_parent(two_level):
    two_level.layout_cluster_as_circles()
    slice_ = two_level.slices[2]
    assert slice_.arc_positions[2] == 540
    assert two_level.slices[3].arc_positions[3] == 1350
    # group ideal start is 1080 - 238, packed at one diameter
    assert slice_.arc_positions[4] == 961
    assert slice_.arc_positions[5] == 1199


def test_every_canvas_is_placed_once(two_level):
    layout = two_level.layout_cluster_as_circles(Point(x=500, y=400))
    assert sorted(layout.canvas_ids()) == [1, 2, 3, 4, 5]
    assert layout.position_of(1) == Point(x=400, y=335)


def test_canvases_lie_on_their_ring(two_level):
    center = Point(x=500, y=400)
    layout = two_level.layout_cluster_as_circles(center)
    for ring in two_level.rings:
        radius = two_level.ring_radii[ring.index]
        for canvas_id in ring.canvas_ids:
            location = layout.position_of(canvas_id)
            cx = location.x + 100 - center.x
            cy = location.y + 65 - center.y
            assert math.hypot(cx, cy) == pytest.approx(radius, abs=2)


def test_canvases_stay_inside_their_slice_arc():
    arrows = _arrows(
        (1, 2), (1, 3), (1, 4),
        (2, 5), (2, 6), (2, 7), (3, 8),
        (5, 9), (5, 10), (8, 11),
    )
    cluster = Cluster(1, arrows)
    cluster.layout_cluster_as_circles()
    slices = list(cluster.slices.values())
    for ring in cluster.rings:
        ring_span = cluster.ring_span(ring.index)
        arc_start = 0
        for slice_ in slices:
            arc_end = arc_start + slice_.calculate_layout_span(ring_span)
            for canvas_id in _arc_canvas_ids(slice_, ring.index):
                assert arc_start <= slice_.arc_positions[canvas_id] <= arc_end
            arc_start = arc_end


def test_layout_is_deterministic():
    edges = [(1, 2), (1, 3), (3, 4), (3, 5), (3, 6), (2, 7)]
    first = Cluster(1, _arrows(*edges)).layout_cluster_as_circles()
    second = Cluster(1, _arrows(*edges)).layout_cluster_as_circles()
    assert first.canvas_positions == second.canvas_positions
