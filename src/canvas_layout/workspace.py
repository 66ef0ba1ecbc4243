"""
Workspace: keeps the cluster graph in step with canvas and arrow events.

The layout engine only knows about clusters.  The workspace owns the
canvases and arrows, and translates each event into the cluster edits that
preserve the forest invariant (every canvas belongs to exactly one
cluster, identified by the canvas at its root):

    canvas created      → new cluster, next to the originating canvas if any
    arrow created       → the destination's cluster is absorbed (or, if the
                          destination already had a parent, the old arrow
                          is replaced)
    arrow deleted       → the destination's subtree becomes a new cluster
    canvas deleted      → its children become roots; a deleted root hands
                          its grid cell to its first child

Every event finishes with a full layout pass, whose result is returned.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from .config import LayoutConfig
from .coordinator import LayoutCoordinator
from .errors import ArrowGraphError, InvalidReferenceError, LayoutDataError, LayoutError
from .links import ArrowGraph, Link
from .models import LayoutResult

logger = logging.getLogger(__name__)


class Workspace:
    """Canvases, arrows and their layout."""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self.arrows = ArrowGraph()
        # canvas id -> sequential index, for readable log labels
        self.canvases: dict[int, int] = {}
        self._next_index = 1
        self.coordinator = LayoutCoordinator(self.arrows, self.config, canvas_index=self.canvas_index)
        self._lock = threading.RLock()

    def canvas_index(self, canvas_id: int) -> int:
        return self.canvases[canvas_id]

    def _register(self, canvas_id: int):
        self.canvases[canvas_id] = self._next_index
        self._next_index += 1

    def _require_canvas(self, canvas_id: int):
        if canvas_id not in self.canvases:
            raise InvalidReferenceError(canvas_id, f"Unknown canvas {canvas_id}")

    def _is_ancestor(self, ancestor_id: int, canvas_id: int) -> bool:
        current = canvas_id
        visited = set()
        while current not in visited:
            if current == ancestor_id:
                return True
            visited.add(current)
            link_id = self.arrows.get_incoming_link(current)
            if link_id is None:
                return False
            current = self.arrows.get_link(link_id).source_canvas_id
        raise ArrowGraphError(f"Arrow cycle through canvas {current}")

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------

    def create_canvas(self, canvas_id: int, originating_canvas_id: Optional[int] = None) -> LayoutResult:
        """Register a new canvas as its own cluster."""
        with self._lock:
            if canvas_id <= 0:
                raise LayoutError(f"Canvas ids must be positive, got {canvas_id}")
            if canvas_id in self.canvases:
                raise LayoutError(f"Canvas {canvas_id} already exists")
            if originating_canvas_id is not None:
                self._require_canvas(originating_canvas_id)

            self._register(canvas_id)
            self.coordinator.insert_cluster(canvas_id, context_canvas_id=originating_canvas_id)
            return self.coordinator.layout_graph()

    def create_link(self, link_id: int, source_canvas_id: int, dest_canvas_id: int) -> LayoutResult:
        """Draw an arrow; the destination joins the source's cluster."""
        with self._lock:
            self._require_canvas(source_canvas_id)
            self._require_canvas(dest_canvas_id)
            if link_id in self.arrows:
                raise LayoutError(f"Link {link_id} already exists")
            if self._is_ancestor(dest_canvas_id, source_canvas_id):
                raise ArrowGraphError(
                    f"Link {source_canvas_id} -> {dest_canvas_id} would create a cycle"
                )

            incoming_link_id = self.arrows.get_incoming_link(dest_canvas_id)
            if incoming_link_id is None:
                # the destination was a root, so its whole cluster is absorbed
                self.coordinator.remove_cluster_if_any(dest_canvas_id)
            else:
                # steal the destination from its current parent
                self.arrows.remove_link(incoming_link_id)

            self.arrows.add_link(link_id, source_canvas_id, dest_canvas_id)
            return self.coordinator.layout_graph()

    def delete_link(self, link_id: int) -> LayoutResult:
        """Erase an arrow; the destination's subtree becomes its own cluster."""
        with self._lock:
            if link_id not in self.arrows:
                raise InvalidReferenceError(link_id, f"Unknown link {link_id}")
            link = self.arrows.remove_link(link_id)
            self.coordinator.insert_cluster(link.dest_canvas_id, context_canvas_id=link.source_canvas_id)
            return self.coordinator.layout_graph()

    def delete_canvas(self, canvas_id: int) -> LayoutResult:
        """Remove a canvas and every arrow touching it."""
        with self._lock:
            self._require_canvas(canvas_id)
            root_canvas_id = self.coordinator.get_root_canvas_id(canvas_id)
            link_ids = self.arrows.get_link_ids_for_canvas(canvas_id)

            if not link_ids:
                self.coordinator.remove_cluster_if_any(canvas_id)
            elif canvas_id == root_canvas_id:
                # the first child takes over the deleted root's grid cell
                first = self.arrows.remove_link(link_ids[0])
                successor_id = first.dest_canvas_id
                self.coordinator.replace_cluster(canvas_id, successor_id)
                for link_id in link_ids[1:]:
                    link = self.arrows.remove_link(link_id)
                    self.coordinator.insert_cluster(link.dest_canvas_id, context_canvas_id=successor_id)
            else:
                incoming_link_id = self.arrows.get_incoming_link(canvas_id)
                self.arrows.remove_link(incoming_link_id)
                for link_id in link_ids:
                    if link_id == incoming_link_id:
                        continue
                    link = self.arrows.remove_link(link_id)
                    self.coordinator.insert_cluster(link.dest_canvas_id, context_canvas_id=root_canvas_id)

            del self.canvases[canvas_id]
            logger.info(f"Deleted canvas {canvas_id}")
            return self.coordinator.layout_graph()

    # -----------------------------------------------------------------------
    # Inspection and persistence
    # -----------------------------------------------------------------------

    def cluster_membership(self) -> dict[int, int]:
        """Map every canvas to the root of its cluster."""
        with self._lock:
            return {
                canvas_id: self.coordinator.get_root_canvas_id(canvas_id)
                for canvas_id in self.canvases
            }

    def layout(self) -> LayoutResult:
        with self._lock:
            return self.coordinator.layout_graph()

    def snapshot(self) -> dict:
        """Plain-data copy of the workspace, enough to ``load`` it again."""
        with self._lock:
            return {
                "canvases": list(self.canvases),
                "links": [link.model_dump() for link in self.arrows.links()],
                "graph": self.coordinator.serialize_graph(),
            }

    def load(self, canvas_ids: Iterable[int], links: Iterable[Link | dict], graph_text: str) -> LayoutResult:
        """Replace the whole workspace.

        The arrows must form a forest and the persisted graph must hold
        exactly one cluster per root canvas; otherwise LayoutDataError is
        raised and the current workspace is kept.
        """
        with self._lock:
            arrows = ArrowGraph()
            canvases: dict[int, int] = {}
            for index, canvas_id in enumerate(canvas_ids, start=1):
                canvases[canvas_id] = index

            try:
                for link in links:
                    link = link if isinstance(link, Link) else Link(**link)
                    if link.source_canvas_id not in canvases or link.dest_canvas_id not in canvases:
                        raise LayoutDataError(f"Link {link.link_id} refers to an unknown canvas")
                    arrows.add_link(link.link_id, link.source_canvas_id, link.dest_canvas_id)
            except ArrowGraphError as e:
                raise LayoutDataError(f"Persisted links are not a forest: {e}") from e

            coordinator = LayoutCoordinator(arrows, self.config, canvas_index=canvases.__getitem__)
            coordinator.load_graph(graph_text)

            roots = {coordinator.get_root_canvas_id(canvas_id) for canvas_id in canvases}
            clustered = coordinator.graph.root_canvas_ids()
            if roots != clustered:
                raise LayoutDataError(
                    f"Persisted graph clusters {sorted(clustered)} do not match canvas roots {sorted(roots)}"
                )

            self.arrows = arrows
            self.canvases = canvases
            self._next_index = len(canvases) + 1
            self.coordinator = coordinator
            self.coordinator.canvas_index = self.canvas_index
            return self.coordinator.layout_graph()
