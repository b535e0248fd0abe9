"""
Uniform grid spatial index over node boxes.
"""
from typing import List, Dict, Tuple, Set, Any, Optional
import logging
import math
from shapely.geometry import Polygon
from ...utils import geometry_utils as gu

logger = logging.getLogger(__name__)


class SpatialIndex:
    """Grid-based spatial index of node boxes.

    Each node is stored as a shapely box inflated by `inflate` on every side and
    registered in every grid cell its bounds touch. Candidate pairs share a
    cell; callers decide what counts as an overlap.
    """
    def __init__(self, nodes: List[Any], cell_size: Optional[float] = None, inflate: float = 0.0):
        self.nodes = nodes
        self.inflate = inflate
        if cell_size is None:
            largest = max((max(n.width, n.height) for n in nodes), default=1.0)
            cell_size = largest + 2.0 * inflate
        self.cell_size = max(float(cell_size), 1e-6)
        self.boxes: List[Polygon] = []
        self.grid: Dict[Tuple[int, int], List[int]] = {}

        for i, node in enumerate(nodes):
            poly = gu.node_box(node.x, node.y, node.width, node.height, inflate=inflate)
            self.boxes.append(poly)
            for cell in self._cells(poly.bounds):
                self.grid.setdefault(cell, []).append(i)

        logger.debug(f"Spatial index built: {len(nodes)} nodes, {len(self.grid)} cells, cell size {self.cell_size:.1f}")

    def _cells(self, bounds: Tuple[float, float, float, float]):
        min_x = math.floor(bounds[0] / self.cell_size)
        min_y = math.floor(bounds[1] / self.cell_size)
        max_x = math.floor(bounds[2] / self.cell_size)
        max_y = math.floor(bounds[3] / self.cell_size)
        for x in range(min_x, max_x + 1):
            for y in range(min_y, max_y + 1):
                yield (x, y)

    def candidate_pairs(self) -> Set[Tuple[int, int]]:
        """Every pair (i, j), i < j, whose boxes share at least one grid cell."""
        pairs = set()
        for members in self.grid.values():
            if len(members) < 2:
                continue
            for a in range(len(members)):
                for b in range(a + 1, len(members)):
                    i, j = members[a], members[b]
                    pairs.add((i, j) if i < j else (j, i))
        return pairs
