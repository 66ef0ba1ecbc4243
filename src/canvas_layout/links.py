"""Arrow graph access.

The layout engine never owns arrows.  It reads them through ``LinkOracle``,
the interface offered by whatever subsystem manages links.  ``ArrowGraph``
is a small in-memory implementation of that interface, used by the
workspace, the MCP server and the tests.
"""

from __future__ import annotations
from typing import Optional, Protocol

from pydantic import BaseModel

from .errors import ArrowGraphError


class Link(BaseModel):
    """A directed arrow from ``source_canvas_id`` to ``dest_canvas_id``."""
    link_id: int
    source_canvas_id: int
    dest_canvas_id: int


class LinkOracle(Protocol):
    """Read-only view of the arrow forest."""

    def get_incoming_link(self, canvas_id: int) -> Optional[int]:
        """Return the id of the arrow pointing at ``canvas_id``, if any."""
        ...

    def get_link(self, link_id: int) -> Link:
        ...

    def get_link_ids_for_canvas(self, canvas_id: int) -> list[int]:
        """Return the ids of every arrow touching ``canvas_id``, oldest first."""
        ...


class ArrowGraph:
    """In-memory arrow store that enforces the one-incoming-arrow rule.

    Link ids are returned in insertion order, which keeps the child order of
    every cluster (and so the layout) deterministic.
    """

    def __init__(self):
        self._links: dict[int, Link] = {}
        self._link_ids_by_canvas: dict[int, list[int]] = {}
        self._incoming: dict[int, int] = {}

    def __contains__(self, link_id: int) -> bool:
        return link_id in self._links

    def __len__(self) -> int:
        return len(self._links)

    def links(self) -> list[Link]:
        return list(self._links.values())

    def clear(self):
        self._links.clear()
        self._link_ids_by_canvas.clear()
        self._incoming.clear()

    def get_incoming_link(self, canvas_id: int) -> Optional[int]:
        return self._incoming.get(canvas_id)

    def get_link(self, link_id: int) -> Link:
        link = self._links.get(link_id)
        if link is None:
            raise KeyError(f"Unknown link {link_id}")
        return link

    def get_link_ids_for_canvas(self, canvas_id: int) -> list[int]:
        return list(self._link_ids_by_canvas.get(canvas_id, []))

    def get_outgoing_canvas_ids(self, canvas_id: int) -> list[int]:
        """Return the destinations of arrows leaving ``canvas_id``."""
        children = []
        for link_id in self._link_ids_by_canvas.get(canvas_id, []):
            link = self._links[link_id]
            if link.source_canvas_id == canvas_id:
                children.append(link.dest_canvas_id)
        return children

    def add_link(self, link_id: int, source_canvas_id: int, dest_canvas_id: int) -> Link:
        """Add an arrow.

        Raises ArrowGraphError if the destination already has an incoming
        arrow, or if the arrow would close a cycle.
        """
        if link_id in self._links:
            raise ArrowGraphError(f"Link {link_id} already exists")
        if source_canvas_id == dest_canvas_id:
            raise ArrowGraphError(f"Canvas {source_canvas_id} cannot link to itself")
        if dest_canvas_id in self._incoming:
            raise ArrowGraphError(
                f"Canvas {dest_canvas_id} already has incoming link {self._incoming[dest_canvas_id]}"
            )

        # Walk up from the source; reaching the destination means a cycle
        seen = {source_canvas_id}
        current = source_canvas_id
        while current in self._incoming:
            current = self._links[self._incoming[current]].source_canvas_id
            if current == dest_canvas_id:
                raise ArrowGraphError(
                    f"Link {source_canvas_id} -> {dest_canvas_id} would create a cycle"
                )
            if current in seen:
                raise ArrowGraphError(f"Arrow graph already contains a cycle at canvas {current}")
            seen.add(current)

        link = Link(link_id=link_id, source_canvas_id=source_canvas_id, dest_canvas_id=dest_canvas_id)
        self._links[link_id] = link
        self._incoming[dest_canvas_id] = link_id
        self._link_ids_by_canvas.setdefault(source_canvas_id, []).append(link_id)
        self._link_ids_by_canvas.setdefault(dest_canvas_id, []).append(link_id)
        return link

    def remove_link(self, link_id: int) -> Link:
        link = self._links.pop(link_id, None)
        if link is None:
            raise KeyError(f"Unknown link {link_id}")
        if self._incoming.get(link.dest_canvas_id) == link_id:
            del self._incoming[link.dest_canvas_id]
        for canvas_id in (link.source_canvas_id, link.dest_canvas_id):
            link_ids = self._link_ids_by_canvas.get(canvas_id)
            if link_ids and link_id in link_ids:
                link_ids.remove(link_id)
                if not link_ids:
                    del self._link_ids_by_canvas[canvas_id]
        return link
