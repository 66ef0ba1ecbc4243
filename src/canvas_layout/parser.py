"""Token-stream parser for persisted layout data.

Supports two plain-text formats:

1. The cluster grid, one ``{...}`` group per row, one bracketed record per
   Position:

       {[0,0,3,2,0,0,17][3,0,0,0,0,1,0]}{[0,2,2,2,1,0,42][3,0,0,0,1,1,0]}

   Record fields are ``x_unit, y_unit, x_unit_span, y_unit_span,
   row_index, column_index, root_canvas_id``, with root 0 for an empty
   Position.

2. The topology broadcast, one record per cluster:

       C17[310,195,0,0,620,390:258,516]

   Fields are ``center_x, center_y, box_x, box_y, box_width, box_height``,
   then after the colon the ring radii, innermost first (possibly none).

Text is parsed into typed records first and validated as a whole, so a
caller never sees a partially parsed result.  Any defect raises
``LayoutDataError``.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from .errors import LayoutDataError
from .models import Box, ClusterTopology, Point

POSITION_FIELDS = (
    "x_unit",
    "y_unit",
    "x_unit_span",
    "y_unit_span",
    "row_index",
    "column_index",
    "root_canvas_id",
)

_ROW_PATTERN = re.compile(r"\{([^{}]*)\}")
_RECORD_PATTERN = re.compile(r"\[([^\[\]]*)\]")
_CLUSTER_PATTERN = re.compile(r"C(\d+)\[([^\[\]]*)\]")
_INT_PATTERN = re.compile(r"-?\d+")


class PositionRecord(BaseModel):
    """One persisted grid Position."""
    x_unit: int
    y_unit: int
    x_unit_span: int
    y_unit_span: int
    row_index: int
    column_index: int
    root_canvas_id: int = 0

    def is_empty(self) -> bool:
        return self.root_canvas_id == 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _split_exact(pattern: re.Pattern, text: str, what: str) -> list[str]:
    """Return the group contents of consecutive ``pattern`` matches.

    The matches must cover ``text`` completely; stray characters between or
    around them are an error.
    """
    contents = []
    cursor = 0
    for match in pattern.finditer(text):
        if match.start() != cursor:
            raise LayoutDataError(f"Unexpected text {text[cursor:match.start()]!r} in {what}")
        contents.append(match.group(1))
        cursor = match.end()
    if cursor != len(text):
        raise LayoutDataError(f"Unexpected text {text[cursor:]!r} in {what}")
    return contents


def _parse_ints(fields: list[str], what: str) -> list[int]:
    values = []
    for value in fields:
        value = value.strip()
        if not _INT_PATTERN.fullmatch(value):
            raise LayoutDataError(f"Expected an integer in {what}, got {value!r}")
        values.append(int(value))
    return values


# ---------------------------------------------------------------------------
# Cluster grid
# ---------------------------------------------------------------------------

def parse_position(data: str) -> PositionRecord:
    """Parse the inside of one ``[...]`` Position record."""
    fields = data.split(",")
    if len(fields) != len(POSITION_FIELDS):
        raise LayoutDataError(
            f"Position record [{data}] has {len(fields)} fields, expected {len(POSITION_FIELDS)}"
        )
    values = _parse_ints(fields, f"position record [{data}]")
    record = PositionRecord(**dict(zip(POSITION_FIELDS, values)))
    if record.root_canvas_id < 0:
        raise LayoutDataError(f"Negative root canvas id in position record [{data}]")
    return record


def parse_graph(text: str) -> list[list[PositionRecord]]:
    """Parse and validate a serialized cluster grid.

    Checks that the grid is non-empty and rectangular, that every record's
    row and column index matches its place in the stream, and that no root
    canvas id appears twice.
    """
    text = text.strip()
    if not text:
        raise LayoutDataError("Empty cluster graph data")

    rows: list[list[PositionRecord]] = []
    for row_data in _split_exact(_ROW_PATTERN, text, "cluster graph"):
        row = [parse_position(data) for data in _split_exact(_RECORD_PATTERN, row_data, "cluster graph row")]
        if not row:
            raise LayoutDataError(f"Row {len(rows)} of the cluster graph is empty")
        rows.append(row)

    column_count = len(rows[0])
    seen_roots: set[int] = set()
    for row_index, row in enumerate(rows):
        if len(row) != column_count:
            raise LayoutDataError(
                f"Row {row_index} has {len(row)} positions, expected {column_count}"
            )
        for column_index, record in enumerate(row):
            if record.row_index != row_index or record.column_index != column_index:
                raise LayoutDataError(
                    f"Position ({record.row_index}, {record.column_index}) found at "
                    f"({row_index}, {column_index})"
                )
            if record.is_empty():
                continue
            if record.root_canvas_id in seen_roots:
                raise LayoutDataError(f"Cluster root {record.root_canvas_id} appears more than once")
            seen_roots.add(record.root_canvas_id)

    return rows


def graph_to_string(rows: list[list[PositionRecord]]) -> str:
    """Serialize grid records back to the token stream."""
    parts = []
    for row in rows:
        parts.append("{")
        for record in row:
            parts.append("[" + ",".join(str(getattr(record, name)) for name in POSITION_FIELDS) + "]")
        parts.append("}")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------

def topology_to_string(clusters: list[ClusterTopology]) -> str:
    parts = []
    for cluster in clusters:
        box = cluster.bounding_box
        head = ",".join(str(v) for v in (
            cluster.center.x, cluster.center.y, box.x, box.y, box.width, box.height,
        ))
        radii = ",".join(str(r) for r in cluster.radii)
        parts.append(f"C{cluster.root_canvas_id}[{head}:{radii}]")
    return "".join(parts)


def parse_topology(text: str) -> list[ClusterTopology]:
    """Parse a topology broadcast payload back into ``ClusterTopology`` records."""
    text = text.strip()
    if not text:
        return []

    clusters = []
    cursor = 0
    for match in _CLUSTER_PATTERN.finditer(text):
        if match.start() != cursor:
            raise LayoutDataError(f"Unexpected text {text[cursor:match.start()]!r} in topology")
        cursor = match.end()

        root_canvas_id = int(match.group(1))
        if root_canvas_id == 0:
            raise LayoutDataError("Topology record has root canvas id 0")
        body = match.group(2)
        if body.count(":") != 1:
            raise LayoutDataError(f"Topology record for cluster {root_canvas_id} lacks the radius separator")
        head, tail = body.split(":")
        fields = head.split(",")
        if len(fields) != 6:
            raise LayoutDataError(
                f"Topology record for cluster {root_canvas_id} has {len(fields)} fields, expected 6"
            )
        cx, cy, bx, by, bw, bh = _parse_ints(fields, f"topology record for cluster {root_canvas_id}")
        radii = _parse_ints(tail.split(","), f"radii of cluster {root_canvas_id}") if tail else []

        clusters.append(ClusterTopology(
            root_canvas_id=root_canvas_id,
            center=Point(x=cx, y=cy),
            radii=radii,
            bounding_box=Box(x=bx, y=by, width=bw, height=bh),
        ))

    if cursor != len(text):
        raise LayoutDataError(f"Unexpected text {text[cursor:]!r} in topology")
    return clusters
