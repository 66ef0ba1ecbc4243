"""Cluster topology: the geometric outline of every cluster.

Consumers that draw ring guides or cluster outlines do not need every
canvas position.  ``Topology`` keeps a small summary per cluster (center,
ring radii, bounding box) and is rebuilt in full after every layout pass.
"""

from __future__ import annotations

from .cluster_layout import ClusterLayout
from .models import Box, ClusterTopology
from .parser import topology_to_string


def summarize(cluster_layout: ClusterLayout) -> ClusterTopology:
    """Capture the topology of one centered cluster layout."""
    cluster = cluster_layout.cluster
    center = cluster.location
    size = cluster_layout.bounding_box()
    layout_center = cluster_layout.center_within_bounds(size)

    return ClusterTopology(
        root_canvas_id=cluster.root_canvas_id,
        center=center,
        radii=[int(radius) for radius in cluster.ring_radii],
        bounding_box=Box(
            x=center.x - layout_center.x,
            y=center.y - layout_center.y,
            width=size.width,
            height=size.height,
        ),
    )


class Topology:
    """Topology summaries for all clusters from the last layout pass."""

    def __init__(self):
        self.clusters: list[ClusterTopology] = []

    def clear(self):
        self.clusters = []

    def add_cluster(self, cluster_layout: ClusterLayout):
        self.clusters.append(summarize(cluster_layout))

    def get(self, root_canvas_id: int) -> ClusterTopology | None:
        for cluster in self.clusters:
            if cluster.root_canvas_id == root_canvas_id:
                return cluster
        return None

    def serialize(self) -> str:
        return topology_to_string(self.clusters)
