"""
Pairwise overlap detection with a separation margin.
"""
from typing import List, Optional, Iterable, Tuple
import logging
from .models import Node, OverlapRecord, LayoutConfig, DetectionMode
from .spatial_index import SpatialIndex
from ...utils import geometry_utils as gu

logger = logging.getLogger(__name__)


def pair_overlap(a: Node, b: Node, separation: float) -> float:
    return gu.separation_overlap(a.x, a.y, a.width, a.height,
                                 b.x, b.y, b.width, b.height, separation)


def _candidate_pairs(nodes: List[Node], separation: float, use_spatial_index: bool) -> Iterable[Tuple[int, int]]:
    n = len(nodes)
    if not use_spatial_index:
        return ((i, j) for i in range(n) for j in range(i + 1, n))
    index = SpatialIndex(nodes, inflate=separation / 2.0)
    # Sorted so records come out in the same order as the exhaustive scan
    return sorted(index.candidate_pairs())


def detect_overlaps(nodes: List[Node], separation: float,
                    use_spatial_index: bool = False) -> List[OverlapRecord]:
    """Find every overlapping node pair, worst first.

    Two nodes overlap when their centers are closer than half their summed
    sizes plus `separation` on both axes. Records are sorted by area,
    descending; equal areas keep pair order (i < j in input order).
    """
    unplaced = [n.id for n in nodes if not n.is_placed]
    if unplaced:
        raise ValueError(f"Cannot detect overlaps for unplaced nodes: {unplaced}")

    records = []
    for i, j in _candidate_pairs(nodes, separation, use_spatial_index):
        area = pair_overlap(nodes[i], nodes[j], separation)
        if area > 0:
            records.append(OverlapRecord(nodes[i].id, nodes[j].id, area))

    records.sort(key=lambda r: r.area, reverse=True)
    return records


def should_use_index(node_count: int, config: LayoutConfig) -> bool:
    if config.detection_mode == DetectionMode.STRICT:
        return False
    if config.detection_mode == DetectionMode.PERFORMANCE:
        return True
    return node_count > config.spatial_index_threshold


class OverlapDetector:
    """Overlap detection bound to a layout configuration."""

    def __init__(self, config: LayoutConfig):
        self.config = config

    def detect(self, nodes: List[Node]) -> List[OverlapRecord]:
        use_index = should_use_index(len(nodes), self.config)
        records = detect_overlaps(nodes, self.config.separation_distance, use_spatial_index=use_index)
        logger.debug(f"Detected {len(records)} overlaps among {len(nodes)} nodes (index={use_index})")
        return records

    def count(self, nodes: List[Node]) -> int:
        return len(self.detect(nodes))

    def collides(self, node: Node, others: List[Node], x: Optional[float] = None, y: Optional[float] = None) -> bool:
        """True if `node`, optionally moved to (x, y), overlaps any other node."""
        px = node.x if x is None else x
        py = node.y if y is None else y
        sep = self.config.separation_distance
        for other in others:
            if other.id == node.id or not other.is_placed:
                continue
            if gu.separation_overlap(px, py, node.width, node.height,
                                     other.x, other.y, other.width, other.height, sep) > 0:
                return True
        return False

    def overlap_free_percent(self, nodes: List[Node], overlap_count: Optional[int] = None) -> float:
        """Share of node pairs that do not overlap, in percent."""
        n = len(nodes)
        if n < 2:
            return 100.0
        total_pairs = n * (n - 1) / 2
        if overlap_count is None:
            overlap_count = self.count(nodes)
        return (total_pairs - overlap_count) / total_pairs * 100.0
