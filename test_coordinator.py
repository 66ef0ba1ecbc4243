"""Tests for the layout coordinator."""

import threading

import pytest

from canvas_layout.config import LayoutConfig
from canvas_layout.coordinator import LayoutCoordinator
from canvas_layout.errors import ArrowGraphError, InvalidReferenceError, LayoutDataError
from canvas_layout.links import ArrowGraph, Link
from canvas_layout.models import Point


class CyclicLinks:
    """Link oracle whose arrows loop: 1 -> 2 -> 1."""

    def get_incoming_link(self, canvas_id):
        return {1: 2, 2: 1}.get(canvas_id)

    def get_link(self, link_id):
        if link_id == 1:
            return Link(link_id=1, source_canvas_id=1, dest_canvas_id=2)
        return Link(link_id=2, source_canvas_id=2, dest_canvas_id=1)

    def get_link_ids_for_canvas(self, canvas_id):
        return [1, 2]


@pytest.fixture
def arrows():
    return ArrowGraph()


@pytest.fixture
def coordinator(arrows):
    return LayoutCoordinator(arrows)


def test_root_of_unlinked_canvas_is_itself(coordinator):
    assert coordinator.get_root_canvas_id(5) == 5


def test_root_follows_incoming_arrows(arrows, coordinator):
    arrows.add_link(1, 1, 2)
    arrows.add_link(2, 2, 3)
    assert coordinator.get_root_canvas_id(3) == 1


def test_cycle_in_link_oracle_is_fatal():
    coordinator = LayoutCoordinator(CyclicLinks())
    with pytest.raises(ArrowGraphError):
        coordinator.get_root_canvas_id(1)


def test_layout_reports_positions_and_topology(coordinator):
    coordinator.insert_cluster(1)
    coordinator.insert_cluster(2)
    result = coordinator.layout_graph()

    assert result.positions == {1: Point(x=10, y=10), 2: Point(x=230, y=10)}
    assert result.moved == result.positions
    assert [cluster.root_canvas_id for cluster in result.topology] == [1, 2]
    assert coordinator.get_canvas_position(2) == Point(x=230, y=10)
    assert coordinator.serialize_topology() == "C1[110,75,0,0,220,150:]C2[330,75,220,0,220,150:]"


def test_second_pass_reports_only_moved_canvases(arrows, coordinator):
    coordinator.insert_cluster(1)
    coordinator.insert_cluster(2)
    coordinator.layout_graph()

    assert coordinator.layout_graph().moved == {}

    coordinator.insert_cluster(3)
    result = coordinator.layout_graph()
    assert set(result.moved) == {3}


def test_insert_with_context_places_cluster_next_to_context_root(arrows, coordinator):
    arrows.add_link(1, 1, 2)
    coordinator.insert_cluster(1)
    coordinator.insert_cluster(3, context_canvas_id=2)
    position = coordinator.graph.position_of(3)
    assert (position.row_index, position.column_index) == (0, 1)


def test_insert_with_unknown_context_raises(coordinator):
    coordinator.insert_cluster(1)
    with pytest.raises(InvalidReferenceError):
        coordinator.insert_cluster(2, context_canvas_id=9)


def test_remove_cluster_if_any(coordinator):
    coordinator.insert_cluster(1)
    assert coordinator.remove_cluster_if_any(1) is True
    assert coordinator.remove_cluster_if_any(1) is False
    assert coordinator.layout_graph().positions == {}


def test_replace_cluster_keeps_grid_cell(coordinator):
    coordinator.insert_cluster(1)
    coordinator.insert_cluster(2)
    coordinator.replace_cluster(1, 4)
    result = coordinator.layout_graph()
    assert result.positions[4] == Point(x=10, y=10)
    assert 1 not in result.positions


def test_cluster_layouts_from_last_pass(coordinator):
    assert coordinator.get_cluster_layouts() == []
    coordinator.insert_cluster(1)
    coordinator.layout_graph()
    assert [layout.root_canvas_id for layout in coordinator.get_cluster_layouts()] == [1]
    assert coordinator.get_topology()[0].root_canvas_id == 1


def test_load_graph_round_trip(arrows):
    first = LayoutCoordinator(arrows)
    first.insert_cluster(1)
    first.insert_cluster(2)
    first.insert_cluster(3)
    text = first.serialize_graph()

    second = LayoutCoordinator(arrows)
    second.load_graph(text)
    assert second.serialize_graph() == text
    assert second.layout_graph().positions == first.layout_graph().positions


def test_load_graph_rejects_malformed_data(coordinator):
    coordinator.insert_cluster(1)
    before = coordinator.serialize_graph()
    with pytest.raises(LayoutDataError):
        coordinator.load_graph("{[0,0,1,1,0,0,1]}{")
    assert coordinator.serialize_graph() == before


def test_config_scales_the_layout(arrows):
    coordinator = LayoutCoordinator(arrows, LayoutConfig(cell_width=100, cell_height=60))
    coordinator.insert_cluster(1)
    result = coordinator.layout_graph()
    assert result.positions[1] == Point(x=10, y=10)
    assert coordinator.serialize_topology() == "C1[60,40,0,0,120,80:]"


class FlakyArrows(ArrowGraph):
    """Arrow graph that can be made to fail when a cluster is walked."""

    def __init__(self):
        super().__init__()
        self.broken_canvas_id = None

    def get_link_ids_for_canvas(self, canvas_id):
        if canvas_id == self.broken_canvas_id:
            raise ArrowGraphError(f"Links of canvas {canvas_id} are unreadable")
        return super().get_link_ids_for_canvas(canvas_id)


def test_failed_pass_keeps_last_topology():
    arrows = FlakyArrows()
    arrows.add_link(1, 1, 2)
    coordinator = LayoutCoordinator(arrows)
    coordinator.insert_cluster(1)
    coordinator.insert_cluster(5)
    coordinator.layout_graph()
    topology = coordinator.get_topology()
    serialized = coordinator.serialize_topology()
    position = coordinator.get_canvas_position(2)

    arrows.broken_canvas_id = 5
    with pytest.raises(ArrowGraphError):
        coordinator.layout_graph()

    assert coordinator.get_topology() == topology
    assert len(topology) == 2
    assert coordinator.serialize_topology() == serialized
    assert coordinator.get_canvas_position(2) == position


def test_load_graph_drops_previous_pass(arrows):
    coordinator = LayoutCoordinator(arrows)
    coordinator.insert_cluster(1)
    coordinator.layout_graph()

    coordinator.load_graph("{[0,0,1,1,0,0,7]}")
    assert coordinator.get_canvas_position(1) is None
    assert coordinator.get_cluster_layouts() == []
    assert coordinator.get_topology() == []

    result = coordinator.layout_graph()
    assert result.positions == {7: Point(x=10, y=10)}


def test_root_lookup_waits_for_the_lock(arrows, coordinator):
    arrows.add_link(1, 1, 2)
    found = []
    worker = threading.Thread(target=lambda: found.append(coordinator.get_root_canvas_id(2)))

    with coordinator._lock:
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert found == []

    worker.join(timeout=5)
    assert found == [1]
