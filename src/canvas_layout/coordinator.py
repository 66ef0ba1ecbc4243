"""Layout coordinator: the single entry point to the layout engine.

Nothing is calculated here.  The coordinator turns requests from outside
(usually reactions to canvases and arrows being created or deleted) into
edits of the cluster graph, runs full layout passes, and keeps the last
completed result for read-only queries.

Every public method holds one re-entrant lock, so an edit is never observed
half-applied.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .cluster_layout import ClusterLayout
from .cluster_graph import ClusterGraph
from .config import LayoutConfig
from .errors import ArrowGraphError
from .links import LinkOracle
from .models import ClusterTopology, LayoutResult, Point
from .topology import Topology

logger = logging.getLogger(__name__)


class LayoutCoordinator:
    """Owns the cluster graph and topology for one workspace.

    Args:
        links:        Read-only view of the arrow forest.
        config:       Pixel constants; defaults to ``LayoutConfig()``.
        canvas_index: Optional lookup of a human-friendly canvas number,
                      used only to label log messages.
    """

    def __init__(
        self,
        links: LinkOracle,
        config: Optional[LayoutConfig] = None,
        canvas_index: Optional[Callable[[int], int]] = None,
    ):
        self.links = links
        self.config = config or LayoutConfig()
        self.canvas_index = canvas_index
        self.graph = ClusterGraph(links, self.config)
        self.topology = Topology()

        self._lock = threading.RLock()
        self._positions: dict[int, Point] = {}
        self._last_result: Optional[LayoutResult] = None

    def _label(self, canvas_id: int) -> str:
        if self.canvas_index is None:
            return str(canvas_id)
        try:
            return f"#{self.canvas_index(canvas_id)}"
        except KeyError:
            return str(canvas_id)

    # -----------------------------------------------------------------------
    # Arrow forest
    # -----------------------------------------------------------------------

    def get_root_canvas_id(self, canvas_id: int) -> int:
        """Follow incoming arrows from ``canvas_id`` up to its cluster root."""
        with self._lock:
            visited = {canvas_id}
            while True:
                link_id = self.links.get_incoming_link(canvas_id)
                if link_id is None:
                    return canvas_id
                canvas_id = self.links.get_link(link_id).source_canvas_id
                if canvas_id in visited:
                    raise ArrowGraphError(f"Arrow cycle through canvas {canvas_id}")
                visited.add(canvas_id)

    # -----------------------------------------------------------------------
    # Cluster edits
    # -----------------------------------------------------------------------

    def insert_cluster(self, root_canvas_id: int, context_canvas_id: Optional[int] = None):
        """Add a cluster rooted at ``root_canvas_id``.

        With ``context_canvas_id``, the new cluster is placed next to the
        cluster containing that canvas.
        """
        with self._lock:
            cluster = self.graph.new_cluster(root_canvas_id)
            if context_canvas_id is None:
                self.graph.insert(cluster)
            else:
                context_root = self.get_root_canvas_id(context_canvas_id)
                logger.debug(
                    f"Cluster {self._label(root_canvas_id)} anchored to cluster {self._label(context_root)}"
                )
                self.graph.insert_near(context_root, cluster)

    def remove_cluster_if_any(self, root_canvas_id: int) -> bool:
        with self._lock:
            return self.graph.remove(root_canvas_id)

    def replace_cluster(self, original_root_canvas_id: int, new_root_canvas_id: int):
        """Let ``new_root_canvas_id`` take over the grid cell of a deleted root."""
        with self._lock:
            self.graph.replace(original_root_canvas_id, self.graph.new_cluster(new_root_canvas_id))

    # -----------------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------------

    def layout_graph(self) -> LayoutResult:
        """Recompute every cluster and refresh the topology.

        Returns all cluster layouts, the full position map, the positions
        that changed since the previous pass, and the new topology.
        """
        with self._lock:
            cluster_layouts = self.graph.layout_all()
            topology = Topology()
            for cluster_layout in cluster_layouts:
                topology.add_cluster(cluster_layout)

            positions: dict[int, Point] = {}
            for cluster_layout in cluster_layouts:
                for canvas in cluster_layout.canvas_positions:
                    positions[canvas.canvas_id] = canvas.location

            moved = {
                canvas_id: location
                for canvas_id, location in positions.items()
                if self._positions.get(canvas_id) != location
            }
            if moved:
                logger.debug(f"Layout pass moved {len(moved)} of {len(positions)} canvases")

            self.topology = topology
            self._positions = positions
            self._last_result = LayoutResult(
                cluster_layouts=cluster_layouts,
                positions=dict(positions),
                moved=moved,
                topology=list(topology.clusters),
            )
            return self._last_result

    def get_canvas_position(self, canvas_id: int) -> Optional[Point]:
        """Position of a canvas from the last completed layout pass."""
        with self._lock:
            return self._positions.get(canvas_id)

    def get_cluster_layouts(self) -> list[ClusterLayout]:
        with self._lock:
            return list(self._last_result.cluster_layouts) if self._last_result else []

    def get_topology(self) -> list[ClusterTopology]:
        with self._lock:
            return list(self.topology.clusters)

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def serialize_graph(self) -> str:
        with self._lock:
            return self.graph.serialize()

    def serialize_topology(self) -> str:
        with self._lock:
            return self.topology.serialize()

    def load_graph(self, text: str):
        """Replace the cluster graph with persisted data.

        Raises LayoutDataError without changing anything if ``text`` is
        malformed.  Otherwise the results of the previous layout pass are
        dropped; run ``layout_graph()`` to get positions for the new grid.
        """
        with self._lock:
            self.graph.load(text)
            self.topology = Topology()
            self._positions = {}
            self._last_result = None
