"""Tests for the workspace event layer."""

import pytest

from canvas_layout.errors import ArrowGraphError, InvalidReferenceError, LayoutDataError, LayoutError
from canvas_layout.models import Point
from canvas_layout.workspace import Workspace


@pytest.fixture
def workspace():
    return Workspace()


def _build(workspace, canvases, links):
    for canvas_id in canvases:
        workspace.create_canvas(canvas_id)
    for link_id, (source, dest) in enumerate(links, start=1):
        workspace.create_link(link_id, source, dest)
    return workspace


def _assert_forest(workspace):
    """Every canvas sits in exactly one cluster, one cluster per root."""
    membership = workspace.cluster_membership()
    assert set(membership) == set(workspace.canvases)
    assert set(membership.values()) == workspace.coordinator.graph.root_canvas_ids()
    positions = workspace.layout().positions
    assert set(positions) == set(workspace.canvases)


# ---------------------------------------------------------------------------
# Canvases
# ---------------------------------------------------------------------------

def test_create_canvas_starts_a_cluster(workspace):
    result = workspace.create_canvas(1)
    assert result.positions == {1: Point(x=10, y=10)}
    assert workspace.coordinator.graph.root_canvas_ids() == {1}


def test_create_canvas_next_to_originating_canvas(workspace):
    _build(workspace, [1, 2], [])
    workspace.create_canvas(3, originating_canvas_id=1)
    position = workspace.coordinator.graph.position_of(3)
    assert (position.row_index, position.column_index) == (1, 1)


@pytest.mark.parametrize("canvas_id", [0, -4])
def test_canvas_ids_must_be_positive(workspace, canvas_id):
    with pytest.raises(LayoutError):
        workspace.create_canvas(canvas_id)


def test_duplicate_canvas_is_rejected(workspace):
    workspace.create_canvas(1)
    with pytest.raises(LayoutError):
        workspace.create_canvas(1)


def test_unknown_originating_canvas(workspace):
    with pytest.raises(InvalidReferenceError):
        workspace.create_canvas(1, originating_canvas_id=2)
    assert workspace.canvases == {}


# ---------------------------------------------------------------------------
# Arrows
# ---------------------------------------------------------------------------

def test_link_merges_destination_cluster(workspace):
    _build(workspace, [1, 2], [])
    result = workspace.create_link(10, 1, 2)
    assert workspace.coordinator.graph.root_canvas_ids() == {1}
    assert set(result.positions) == {1, 2}
    _assert_forest(workspace)


def test_link_steals_destination_from_previous_parent(workspace):
    _build(workspace, [1, 2, 3], [(1, 3)])
    workspace.create_link(2, 2, 3)
    assert workspace.arrows.get_link_ids_for_canvas(3) == [2]
    assert workspace.cluster_membership()[3] == 2
    assert workspace.coordinator.graph.root_canvas_ids() == {1, 2}
    _assert_forest(workspace)


def test_link_that_closes_a_cycle_is_rejected(workspace):
    _build(workspace, [1, 2, 3], [(1, 2), (2, 3)])
    before = workspace.snapshot()
    with pytest.raises(ArrowGraphError):
        workspace.create_link(3, 3, 1)
    assert workspace.snapshot() == before


def test_link_to_unknown_canvas(workspace):
    workspace.create_canvas(1)
    with pytest.raises(InvalidReferenceError):
        workspace.create_link(1, 1, 2)


def test_duplicate_link_id(workspace):
    _build(workspace, [1, 2, 3], [(1, 2)])
    with pytest.raises(LayoutError):
        workspace.create_link(1, 1, 3)


def test_unlink_splits_the_subtree_off(workspace):
    _build(workspace, [1, 2, 3], [(1, 2), (2, 3)])
    workspace.delete_link(1)
    assert workspace.coordinator.graph.root_canvas_ids() == {1, 2}
    assert workspace.cluster_membership() == {1: 1, 2: 2, 3: 2}
    _assert_forest(workspace)


def test_unlink_unknown_link(workspace):
    with pytest.raises(InvalidReferenceError):
        workspace.delete_link(7)


# ---------------------------------------------------------------------------
# Canvas deletion
# ---------------------------------------------------------------------------

def test_delete_unlinked_canvas(workspace):
    _build(workspace, [1, 2], [])
    result = workspace.delete_canvas(1)
    assert set(result.positions) == {2}
    assert workspace.coordinator.graph.root_canvas_ids() == {2}


def test_delete_root_promotes_first_child(workspace):
    _build(workspace, [1, 2, 3, 4], [(1, 2), (1, 3), (2, 4)])
    workspace.delete_canvas(1)
    graph = workspace.coordinator.graph
    assert graph.root_canvas_ids() == {2, 3}
    successor = graph.position_of(2)
    assert (successor.row_index, successor.column_index) == (0, 0)
    assert workspace.cluster_membership()[4] == 2
    _assert_forest(workspace)


def test_delete_inner_canvas_frees_its_children(workspace):
    _build(workspace, [1, 2, 3, 4], [(1, 2), (2, 3), (2, 4)])
    workspace.delete_canvas(2)
    assert workspace.coordinator.graph.root_canvas_ids() == {1, 3, 4}
    assert len(workspace.arrows) == 0
    _assert_forest(workspace)


def test_delete_unknown_canvas(workspace):
    with pytest.raises(InvalidReferenceError):
        workspace.delete_canvas(3)


# ---------------------------------------------------------------------------
# Invariants across many edits
# ---------------------------------------------------------------------------

def test_clusters_never_overlap_after_edits(workspace):
    _build(
        workspace,
        range(1, 13),
        [(1, 2), (1, 3), (2, 4), (2, 5), (6, 7), (6, 8), (8, 9), (10, 11)],
    )
    workspace.delete_link(4)
    workspace.create_canvas(13, originating_canvas_id=6)
    workspace.delete_canvas(6)
    workspace.create_link(20, 12, 13)

    result = workspace.layout()
    boxes = list(workspace.coordinator.graph.pixel_boxes().values())
    for i, box_a in enumerate(boxes):
        for box_b in boxes[i + 1:]:
            assert not box_a.intersects(box_b)
    for cluster_layout in result.cluster_layouts:
        box = workspace.coordinator.graph.position_of(cluster_layout.root_canvas_id).pixel_box()
        assert box.contains_box(cluster_layout.extent())
    _assert_forest(workspace)


def test_same_history_gives_same_layout():
    history = [(1, 2), (1, 3), (3, 4), (5, 6)]
    first = _build(Workspace(), range(1, 8), history)
    second = _build(Workspace(), range(1, 8), history)
    assert first.snapshot() == second.snapshot()
    assert first.coordinator.serialize_topology() == second.coordinator.serialize_topology()
    assert first.layout().positions == second.layout().positions


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def test_snapshot_and_load_round_trip(workspace):
    _build(workspace, [1, 2, 3, 4], [(1, 2), (3, 4)])
    snapshot = workspace.snapshot()
    expected = workspace.layout().positions

    restored = Workspace()
    result = restored.load(snapshot["canvases"], snapshot["links"], snapshot["graph"])
    assert result.positions == expected
    assert restored.snapshot() == snapshot

    restored.create_canvas(5, originating_canvas_id=4)
    _assert_forest(restored)


def test_load_rejects_graph_that_does_not_match_roots(workspace):
    workspace.create_canvas(9)
    before = workspace.snapshot()
    with pytest.raises(LayoutDataError):
        workspace.load([1, 2], [{"link_id": 1, "source_canvas_id": 1, "dest_canvas_id": 2}],
                       "{[0,0,1,1,0,0,2]}")
    assert workspace.snapshot() == before


def test_load_rejects_links_that_are_not_a_forest(workspace):
    links = [
        {"link_id": 1, "source_canvas_id": 1, "dest_canvas_id": 2},
        {"link_id": 2, "source_canvas_id": 3, "dest_canvas_id": 2},
    ]
    with pytest.raises(LayoutDataError):
        workspace.load([1, 2, 3], links, "{[0,0,1,1,0,0,1][1,0,1,1,0,1,3]}")


def test_load_rejects_link_to_unknown_canvas(workspace):
    with pytest.raises(LayoutDataError):
        workspace.load([1], [{"link_id": 1, "source_canvas_id": 1, "dest_canvas_id": 2}],
                       "{[0,0,1,1,0,0,1]}")
