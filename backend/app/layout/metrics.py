"""
Helper functions for computing layout metrics.
"""
from typing import List, Dict
import numpy as np
from .impl.models import Node, Edge, LayoutConfig
from .impl.overlap_detector import detect_overlaps
from ..utils import geometry_utils as gu


def _segments(nodes: List[Node], edges: List[Edge]):
    by_id = {n.id: n for n in nodes}
    segs = []
    for e in edges:
        a, b = by_id.get(e.source), by_id.get(e.target)
        if a is not None and b is not None:
            segs.append((e.source, e.target, a.center, b.center))
    return segs


def count_edge_crossings(nodes: List[Node], edges: List[Edge]) -> int:
    """Count proper crossings between edges that share no endpoint."""
    segs = _segments(nodes, edges)
    crossings = 0
    for i in range(len(segs)):
        s1, t1, p1, p2 = segs[i]
        for j in range(i + 1, len(segs)):
            s2, t2, p3, p4 = segs[j]
            if {s1, t1} & {s2, t2}:
                continue
            if gu.segments_intersect(p1, p2, p3, p4):
                crossings += 1
    return crossings


def total_edge_length(nodes: List[Node], edges: List[Edge]) -> float:
    return float(sum(gu.distance(p, q) for _, _, p, q in _segments(nodes, edges)))


def min_node_spacing(nodes: List[Node]) -> float:
    """Smallest center-to-center distance (inf for fewer than two nodes)."""
    dists = gu.pairwise_distances([n.center for n in nodes])
    return float(dists.min()) if dists.size else float("inf")


def layout_balance(nodes: List[Node], config: LayoutConfig) -> float:
    """1.0 when the bounding box is centered on the canvas, falling to 0.0 at the edges."""
    if not nodes:
        return 1.0
    min_x, min_y, max_x, max_y = gu.layout_bounds(
        [gu.node_bounds(n.x, n.y, n.width, n.height) for n in nodes])
    half_w = config.canvas_width / 2.0
    half_h = config.canvas_height / 2.0
    bx = 1.0 - min(abs((min_x + max_x) / 2.0 - half_w) / half_w, 1.0)
    by = 1.0 - min(abs((min_y + max_y) / 2.0 - half_h) / half_h, 1.0)
    return (bx + by) / 2.0


def canvas_utilization(nodes: List[Node], config: LayoutConfig) -> float:
    """Bounding box area as a fraction of the canvas area."""
    if not nodes:
        return 0.0
    min_x, min_y, max_x, max_y = gu.layout_bounds(
        [gu.node_bounds(n.x, n.y, n.width, n.height) for n in nodes])
    return (max_x - min_x) * (max_y - min_y) / (config.canvas_width * config.canvas_height)


def compute_layout_metrics(nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> Dict[str, float]:
    """Collect the standard metrics for a placed layout."""
    overlaps = detect_overlaps(nodes, config.separation_distance)
    return {
        "overlap_count": len(overlaps),
        "overlap_area": float(np.sum([o.area for o in overlaps])) if overlaps else 0.0,
        "edge_crossings": count_edge_crossings(nodes, edges),
        "total_edge_length": total_edge_length(nodes, edges),
        "node_spacing": min_node_spacing(nodes),
        "layout_balance": layout_balance(nodes, config),
        "canvas_utilization": canvas_utilization(nodes, config),
        "total_area": float(sum(n.area for n in nodes)),
    }
