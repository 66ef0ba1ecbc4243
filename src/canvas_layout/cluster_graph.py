"""
Cluster graph: packs independent clusters onto the layout plane.

Two grids are involved:

  * The **cluster grid** is a dense, sizeless grid of ``Position`` cells
    addressed by ``(row_index, column_index)``.  It records which cluster
    sits next to which, and is edited incrementally: clusters are inserted
    first-fit or next to a related cluster, replaced in place, or removed,
    after which fully empty rows and columns collapse.

  * The **unit grid** is imaginary graph paper whose cells are one canvas
    thumbnail (plus padding) in size.  Before each layout pass every
    Position is measured in unit cells (``x_unit_span``/``y_unit_span``) and
    given unit coordinates (``x_unit``/``y_unit``).  Columns of the cluster
    grid are packed left to right; within a column, Positions stack
    downward, and each one is pushed right until it clears everything
    already placed in the unit rows it covers.  Packed Positions never
    overlap.

Empty Positions measure zero units, so they take no room on the plane and
stay available for the next insert.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Iterator, Optional

from .cluster import Cluster
from .cluster_layout import ClusterLayout
from .config import DEFAULT_CONFIG, LayoutConfig
from .errors import InvalidReferenceError, LayoutError
from .links import LinkOracle
from .models import Box, Point, Size
from .parser import PositionRecord, graph_to_string, parse_graph

logger = logging.getLogger(__name__)


class Position:
    """One cell of the cluster grid and its placement on the unit grid."""

    def __init__(self, row_index: int, column_index: int):
        # measured by UnitGraph; zero until the next calculation
        self.x_unit = 0
        self.y_unit = 0
        self.x_unit_span = 0
        self.y_unit_span = 0
        self.row_index = row_index
        self.column_index = column_index
        self.cluster: Optional[Cluster] = None
        self.cluster_layout: Optional[ClusterLayout] = None

    def __repr__(self) -> str:
        root = self.cluster.root_canvas_id if self.cluster else 0
        return f"Position(row={self.row_index}, column={self.column_index}, root={root})"

    @classmethod
    def from_record(cls, record: PositionRecord, cluster: Optional[Cluster]) -> Position:
        position = cls(record.row_index, record.column_index)
        position.x_unit = record.x_unit
        position.y_unit = record.y_unit
        position.x_unit_span = record.x_unit_span
        position.y_unit_span = record.y_unit_span
        position.cluster = cluster
        return position

    def to_record(self) -> PositionRecord:
        return PositionRecord(
            x_unit=self.x_unit,
            y_unit=self.y_unit,
            x_unit_span=self.x_unit_span,
            y_unit_span=self.y_unit_span,
            row_index=self.row_index,
            column_index=self.column_index,
            root_canvas_id=self.cluster.root_canvas_id if self.cluster else 0,
        )

    def reset(self):
        if self.cluster is not None:
            self.cluster.reset()
        self.cluster_layout = None

    def is_empty(self) -> bool:
        return self.cluster is None

    @property
    def right_extent(self) -> int:
        return self.x_unit + self.x_unit_span

    @property
    def down_extent(self) -> int:
        return self.y_unit + self.y_unit_span

    def pixel_box(self, config: LayoutConfig = DEFAULT_CONFIG) -> Box:
        """Pixel footprint of this Position on the layout plane."""
        return Box(
            x=self.x_unit * config.unit_width,
            y=self.y_unit * config.unit_height,
            width=max(0, self.x_unit_span) * config.unit_width,
            height=max(0, self.y_unit_span) * config.unit_height,
        )

    def layout_in_empty_space(self):
        """Lay out this Position's cluster around the origin."""
        self.cluster_layout = self.cluster.layout_cluster_as_circles(Point())

    def center_layout_in_unit_bounds(self, config: LayoutConfig = DEFAULT_CONFIG):
        """Move the laid-out cluster to the middle of its unit-grid footprint."""
        bounds = Size(
            width=self.x_unit_span * config.unit_width,
            height=self.y_unit_span * config.unit_height,
        )
        root_position = self.cluster_layout.center_within_bounds(bounds)
        center = Point(
            x=self.x_unit * config.unit_width + root_position.x,
            y=self.y_unit * config.unit_height + root_position.y,
        )
        self.cluster_layout.translate_by(center.x, center.y)
        self.cluster.location = center


class UnitGraph:
    """Column-by-column packer for the unit grid.

    ``boundary[y]`` is the first free x unit in unit row ``y``.
    """

    def __init__(self, config: LayoutConfig = DEFAULT_CONFIG):
        self.config = config
        self.boundary: list[int] = []
        self.y_unit = 0

    def clear(self):
        self.boundary = []
        self.y_unit = 0

    def next_column(self):
        self.y_unit = 0

    def _get_boundary(self, y_unit: int) -> int:
        for _ in range(len(self.boundary), y_unit + 1):
            self.boundary.append(0)
        return self.boundary[y_unit]

    def _get_max_boundary(self, position: Position) -> int:
        x_max = self._get_boundary(position.y_unit)
        for y in range(1, position.y_unit_span):
            x_max = max(x_max, self._get_boundary(position.y_unit + y))
        return x_max

    def layout(self, position: Position):
        if position.is_empty():
            position.x_unit_span = position.y_unit_span = 0
        else:
            position.layout_in_empty_space()
            box = position.cluster_layout.bounding_box()
            position.x_unit_span = max(1, math.ceil(box.width / self.config.unit_width))
            position.y_unit_span = max(1, math.ceil(box.height / self.config.unit_height))

        position.y_unit = self.y_unit
        position.x_unit = self._get_max_boundary(position)

        for y in range(position.y_unit, position.y_unit + position.y_unit_span):
            self._get_boundary(y)
            self.boundary[y] = position.x_unit + position.x_unit_span

        self.y_unit += position.y_unit_span


class Direction(Enum):
    DOWN = "down"
    RIGHT = "right"


class ClusterGraph:
    """The grid of cluster Positions.

    Unit coordinates are calculated lazily, once per edit; every mutating
    operation resets them.  ``layout_all()`` always performs a full pass.
    """

    def __init__(self, links: LinkOracle, config: LayoutConfig = DEFAULT_CONFIG):
        self.links = links
        self.config = config
        self.graph: list[list[Position]] = [[]]
        self.column_count = 0
        self.positions_by_root_canvas_id: dict[int, Position] = {}
        self._is_calculated = False
        self._unit_graph = UnitGraph(config)
        self._add_column()

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @property
    def row_count(self) -> int:
        return len(self.graph)

    def positions(self) -> Iterator[Position]:
        """Every Position in row-major order."""
        for row in self.graph:
            yield from row

    def position_of(self, root_canvas_id: int) -> Position:
        position = self.positions_by_root_canvas_id.get(root_canvas_id)
        if position is None:
            raise InvalidReferenceError(root_canvas_id)
        return position

    def root_canvas_ids(self) -> set[int]:
        return set(self.positions_by_root_canvas_id)

    def __contains__(self, root_canvas_id: int) -> bool:
        return root_canvas_id in self.positions_by_root_canvas_id

    def new_cluster(self, root_canvas_id: int) -> Cluster:
        return Cluster(root_canvas_id, self.links, self.config)

    # -----------------------------------------------------------------------
    # Lazy unit-grid calculation
    # -----------------------------------------------------------------------

    def reset(self):
        self._unit_graph.clear()
        self._is_calculated = False
        for position in self.positions():
            position.reset()

    def _calculate(self):
        if self._is_calculated:
            return
        self._unit_graph.clear()
        for column in range(self.column_count):
            for row in self.graph:
                self._unit_graph.layout(row[column])
            self._unit_graph.next_column()
        self._is_calculated = True

    # -----------------------------------------------------------------------
    # Grid shape
    # -----------------------------------------------------------------------

    def _get_row(self, row_index: int) -> list[Position]:
        for i in range(len(self.graph), row_index + 1):
            self.graph.append([Position(i, j) for j in range(self.column_count)])
        return self.graph[row_index]

    def _add_column(self):
        for i, row in enumerate(self.graph):
            row.append(Position(i, self.column_count))
        self.column_count += 1

    def _get_position(self, row_index: int, column_index: int) -> Position:
        row = self._get_row(row_index)
        for _ in range(self.column_count, column_index + 1):
            self._add_column()
        return row[column_index]

    def _insert_zone(self, anchor: Position) -> list[Position]:
        """Neighbours preferred for a cluster related to ``anchor``, in order."""
        zone = []
        if anchor.row_index > 0:
            zone.append(self._get_position(anchor.row_index - 1, anchor.column_index + 1))
        zone.append(self._get_position(anchor.row_index, anchor.column_index + 1))
        zone.append(self._get_position(anchor.row_index + 1, anchor.column_index + 1))
        zone.append(self._get_position(anchor.row_index + 1, anchor.column_index))
        if anchor.column_index > 0:
            zone.append(self._get_position(anchor.row_index + 1, anchor.column_index - 1))
        return zone

    def _shallowest_direction(self) -> Direction:
        """Grow along the smaller extent; ties grow to the right."""
        max_right_extent = max((row[-1].right_extent for row in self.graph), default=0)
        max_down_extent = max((position.down_extent for position in self.graph[-1]), default=0)
        return Direction.DOWN if max_right_extent > max_down_extent else Direction.RIGHT

    def _find_empty_position(self) -> Position:
        for position in self.positions():
            if position.is_empty():
                return position

        direction = self._shallowest_direction()
        logger.debug(f"Cluster graph full at {self.row_count}x{self.column_count}, growing {direction.value}")
        if direction is Direction.RIGHT:
            self._add_column()
            return self._get_position(0, self.column_count - 1)
        return self._get_row(len(self.graph))[0]

    def _find_empty_position_in_insert_zone(self, anchor: Position) -> Optional[Position]:
        for position in self._insert_zone(anchor):
            if position.is_empty():
                return position
        return None

    def _shift_columns_over_from(self, column_index: int):
        for row_index, row in enumerate(self.graph):
            row.insert(column_index, Position(row_index, column_index))
            for i in range(column_index + 1, len(row)):
                row[i].column_index = i
        self.column_count += 1

    def _shift_rows_down_from(self, row_index: int):
        self.graph.insert(row_index, [Position(row_index, j) for j in range(self.column_count)])
        for i in range(row_index + 1, len(self.graph)):
            for position in self.graph[i]:
                position.row_index = i

    def _contract_column_if_empty(self, column_index: int):
        if self.column_count <= 1:
            return
        if any(not row[column_index].is_empty() for row in self.graph):
            return

        for row in self.graph:
            del row[column_index]
            for i in range(column_index, len(row)):
                row[i].column_index = i
        self.column_count -= 1
        logger.debug(f"Contracted empty column {column_index}")

    def _contract_row_if_empty(self, row_index: int):
        if len(self.graph) <= 1:
            return
        if any(not position.is_empty() for position in self.graph[row_index]):
            return

        del self.graph[row_index]
        for i in range(row_index, len(self.graph)):
            for position in self.graph[i]:
                position.row_index = i
        logger.debug(f"Contracted empty row {row_index}")

    # -----------------------------------------------------------------------
    # Edits
    # -----------------------------------------------------------------------

    def _check_not_present(self, cluster: Cluster):
        if cluster.root_canvas_id in self.positions_by_root_canvas_id:
            raise LayoutError(f"A cluster rooted at canvas {cluster.root_canvas_id} is already in the graph")

    def _occupy(self, position: Position, cluster: Cluster):
        position.cluster = cluster
        self.positions_by_root_canvas_id[cluster.root_canvas_id] = position

    def insert(self, cluster: Cluster) -> Position:
        """Place ``cluster`` in the first empty Position, growing the grid if needed."""
        self._check_not_present(cluster)
        self._calculate()

        position = self._find_empty_position()
        self._occupy(position, cluster)
        logger.info(
            f"Inserted cluster {cluster.root_canvas_id} at ({position.row_index}, {position.column_index})"
        )

        self.reset()
        return position

    def insert_near(self, context_root_canvas_id: int, cluster: Cluster) -> Position:
        """Place ``cluster`` next to the cluster rooted at ``context_root_canvas_id``."""
        self._check_not_present(cluster)
        anchor = self.position_of(context_root_canvas_id)
        self._calculate()

        if self._find_empty_position_in_insert_zone(anchor) is None:
            direction = self._shallowest_direction()
            logger.debug(f"No room next to cluster {context_root_canvas_id}, opening a {direction.value} gap")
            if direction is Direction.RIGHT:
                self._shift_columns_over_from(anchor.column_index + 1)
            else:
                self._shift_rows_down_from(anchor.row_index + 1)

        position = self._find_empty_position_in_insert_zone(anchor)
        self._occupy(position, cluster)
        logger.info(
            f"Inserted cluster {cluster.root_canvas_id} near {context_root_canvas_id} "
            f"at ({position.row_index}, {position.column_index})"
        )

        self.reset()
        return position

    def remove(self, root_canvas_id: int) -> bool:
        """Clear the cluster's Position, collapsing its row/column if now empty.

        Returns False (and does nothing) if no cluster has that root.
        """
        position = self.positions_by_root_canvas_id.pop(root_canvas_id, None)
        if position is None:
            return False

        position.cluster = None
        position.cluster_layout = None
        self._contract_row_if_empty(position.row_index)
        self._contract_column_if_empty(position.column_index)
        logger.info(f"Removed cluster {root_canvas_id}")

        self.reset()
        return True

    def replace(self, original_root_canvas_id: int, cluster: Cluster) -> Position:
        """Give the Position of one cluster to another, without repacking."""
        position = self.position_of(original_root_canvas_id)
        if cluster.root_canvas_id != original_root_canvas_id:
            self._check_not_present(cluster)

        del self.positions_by_root_canvas_id[original_root_canvas_id]
        self._occupy(position, cluster)
        logger.info(f"Replaced cluster {original_root_canvas_id} with {cluster.root_canvas_id}")

        self.reset()
        return position

    # -----------------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------------

    def layout_all(self) -> list[ClusterLayout]:
        """Lay out every cluster and center each in its unit-grid footprint."""
        self.reset()
        self._calculate()

        cluster_layouts = []
        for position in self.positions():
            if not position.is_empty():
                position.center_layout_in_unit_bounds(self.config)
                cluster_layouts.append(position.cluster_layout)
        return cluster_layouts

    def pixel_boxes(self) -> dict[int, Box]:
        """Pixel footprint of each occupied Position, keyed by root canvas id."""
        self._calculate()
        return {
            root_canvas_id: position.pixel_box(self.config)
            for root_canvas_id, position in self.positions_by_root_canvas_id.items()
        }

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def to_records(self) -> list[list[PositionRecord]]:
        self._calculate()
        return [[position.to_record() for position in row] for row in self.graph]

    def serialize(self) -> str:
        return graph_to_string(self.to_records())

    def load(self, text: str):
        """Replace the whole grid with persisted data.

        The text is fully parsed and validated before anything is changed,
        so a LayoutDataError leaves the current grid intact.  The persisted
        unit coordinates stay in effect until the next edit.
        """
        rows = parse_graph(text)

        graph = []
        positions_by_root_canvas_id = {}
        for record_row in rows:
            row = []
            for record in record_row:
                cluster = None if record.is_empty() else self.new_cluster(record.root_canvas_id)
                position = Position.from_record(record, cluster)
                row.append(position)
                if cluster is not None:
                    positions_by_root_canvas_id[cluster.root_canvas_id] = position
            graph.append(row)

        self.graph = graph
        self.column_count = len(graph[0])
        self.positions_by_root_canvas_id = positions_by_root_canvas_id
        self._unit_graph.clear()
        self._is_calculated = True
        logger.info(
            f"Loaded cluster graph: {self.row_count}x{self.column_count}, "
            f"{len(positions_by_root_canvas_id)} clusters"
        )
