"""
Collision resolution strategies: force-directed repulsion, grid snapping,
spiral search and whole-layout annealing.
"""
from typing import List, Dict, Tuple, Optional, Callable, Set
from dataclasses import dataclass
import numpy as np
import logging
import math
from .models import Node, Edge, OverlapRecord, LayoutConfig, ResolverStrategy
from .overlap_detector import OverlapDetector
from .sa_optimizer_impl import run_sa
from ...utils import geometry_utils as gu

logger = logging.getLogger(__name__)

GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))

Cell = Tuple[int, int]


@dataclass
class ResolutionStats:
    moved: int = 0
    fallbacks: int = 0


def clamp_nodes(nodes: List[Node], config: LayoutConfig) -> None:
    """Pull every placed node fully inside the canvas."""
    for node in nodes:
        if not node.is_placed:
            continue
        node.x, node.y = gu.clamp_center(node.x, node.y, node.width, node.height,
                                         config.canvas_width, config.canvas_height)


def inside_canvas(node: Node, x: float, y: float, config: LayoutConfig) -> bool:
    min_x, min_y, max_x, max_y = gu.node_bounds(x, y, node.width, node.height)
    return min_x >= 0 and min_y >= 0 and max_x <= config.canvas_width and max_y <= config.canvas_height


def severity_order(overlaps: List[OverlapRecord]) -> List[str]:
    """Node ids from the overlap list, worst overlap first, each id once."""
    order = []
    seen: Set[str] = set()
    for rec in overlaps:
        for nid in (rec.node_a, rec.node_b):
            if nid not in seen:
                seen.add(nid)
                order.append(nid)
    return order

# ============================================================================
# FORCE-DIRECTED
# ============================================================================

# Extra push beyond the exact exit distance so a cleared pair ends strictly apart
EXIT_MARGIN = 1e-3


def resolve_force_directed(nodes: List[Node], overlaps: List[OverlapRecord],
                           config: LayoutConfig) -> ResolutionStats:
    """Push every overlapping pair apart along the line between their centers.

    Force magnitude grows with overlap area, bounded so that after damping
    each node of the pair moves at least the pair's exit distance along the
    push direction and at most twice that, so a node pinned against the canvas
    border leaves its partner enough push to clear the overlap alone. Net
    forces are applied once with damping.
    """
    by_id = {n.id: n for n in nodes}
    forces: Dict[str, np.ndarray] = {n.id: np.zeros(2) for n in nodes}
    sep = config.separation_distance

    for k, rec in enumerate(overlaps):
        a, b = by_id[rec.node_a], by_id[rec.node_b]
        direction = np.array([b.x - a.x, b.y - a.y])
        dist = float(np.hypot(direction[0], direction[1]))
        if dist < 1e-9:
            # Coincident centers: spread pairs deterministically around the circle
            angle = k * GOLDEN_ANGLE
            direction = np.array([math.cos(angle), math.sin(angle)])
            dist = 1.0
        unit = direction / dist
        clear = gu.exit_distance(a.x, a.y, a.width, a.height,
                                 b.x, b.y, b.width, b.height, sep, unit[0], unit[1])
        reach = (clear + EXIT_MARGIN) / config.force_damping
        magnitude = min(max(config.repulsion_strength * rec.area, reach), 2.0 * reach)
        f = unit * magnitude
        forces[a.id] -= f
        forces[b.id] += f

    stats = ResolutionStats()
    for node in nodes:
        f = forces[node.id]
        if np.any(f):
            node.move_to(node.x + f[0] * config.force_damping, node.y + f[1] * config.force_damping)
            stats.moved += 1

    clamp_nodes(nodes, config)
    return stats

# ============================================================================
# SPIRAL PLACEMENT
# ============================================================================

def find_spiral_position(node: Node, nodes: List[Node], config: LayoutConfig,
                         detector: OverlapDetector) -> Tuple[float, float, bool]:
    """First collision-free in-canvas point on rings around the node.

    Returns (x, y, found). When nothing is free, the fixed fallback offset
    from the current position is returned with found=False.
    """
    offsets = gu.spiral_offsets(config.spiral_step, config.spiral_max_radius, config.spiral_angle_step)
    for dx, dy in offsets:
        x, y = node.x + dx, node.y + dy
        if not inside_canvas(node, x, y, config):
            continue
        if not detector.collides(node, nodes, x, y):
            return x, y, True
    off = config.spiral_fallback_offset
    return node.x + off, node.y + off, False


def resolve_spiral(nodes: List[Node], overlaps: List[OverlapRecord], config: LayoutConfig,
                   detector: OverlapDetector) -> ResolutionStats:
    by_id = {n.id: n for n in nodes}
    stats = ResolutionStats()
    for nid in severity_order(overlaps):
        node = by_id[nid]
        if not detector.collides(node, nodes):
            continue
        x, y, found = find_spiral_position(node, nodes, config, detector)
        if not found:
            stats.fallbacks += 1
            logger.debug(f"Spiral search found no free spot for {nid}, using fallback offset")
        node.move_to(x, y)
        stats.moved += 1
    clamp_nodes(nodes, config)
    return stats

# ============================================================================
# GRID SNAP
# ============================================================================

class OccupancyGrid:
    """Occupied grid cells, keyed by the footprint of each placed node."""

    def __init__(self, cell_size: float, margin: float):
        self.cell_size = cell_size
        self.margin = margin
        self.occupied: Set[Cell] = set()

    def cell_of(self, x: float, y: float) -> Cell:
        return (math.floor(x / self.cell_size), math.floor(y / self.cell_size))

    def cell_center(self, cell: Cell) -> Tuple[float, float]:
        return ((cell[0] + 0.5) * self.cell_size, (cell[1] + 0.5) * self.cell_size)

    def footprint(self, node: Node, x: float, y: float) -> List[Cell]:
        min_x, min_y, max_x, max_y = gu.node_bounds(x, y, node.width, node.height)
        min_x -= self.margin
        min_y -= self.margin
        max_x += self.margin
        max_y += self.margin
        c = self.cell_size
        # Cells merely touched along a shared border are not part of the footprint
        x0, y0 = math.floor(min_x / c), math.floor(min_y / c)
        x1 = max(x0, math.ceil(max_x / c) - 1)
        y1 = max(y0, math.ceil(max_y / c) - 1)
        return [(gx, gy) for gx in range(x0, x1 + 1) for gy in range(y0, y1 + 1)]

    def is_free(self, node: Node, x: float, y: float) -> bool:
        return not any(cell in self.occupied for cell in self.footprint(node, x, y))

    def mark(self, node: Node) -> None:
        self.occupied.update(self.footprint(node, node.x, node.y))


def ring_cells(origin: Cell, radius: int) -> List[Cell]:
    """Cells at Chebyshev distance `radius` from origin."""
    if radius == 0:
        return [origin]
    ox, oy = origin
    cells = []
    for dx in range(-radius, radius + 1):
        for dy in range(-radius, radius + 1):
            if max(abs(dx), abs(dy)) == radius:
                cells.append((ox + dx, oy + dy))
    return cells


def find_free_cell(node: Node, grid: OccupancyGrid, config: LayoutConfig) -> Optional[Tuple[float, float]]:
    """Breadth-first ring search for the nearest free cell center."""
    origin = grid.cell_of(node.x, node.y)
    for radius in range(0, config.grid_search_radius + 1):
        ring = ring_cells(origin, radius)
        ring.sort(key=lambda c: (gu.distance(grid.cell_center(c), node.center), c[1], c[0]))
        for cell in ring:
            x, y = grid.cell_center(cell)
            if inside_canvas(node, x, y, config) and grid.is_free(node, x, y):
                return x, y
    return None


def resolve_grid_snap(nodes: List[Node], overlaps: List[OverlapRecord], config: LayoutConfig,
                      detector: OverlapDetector) -> ResolutionStats:
    """Move overlapping nodes to the nearest free grid cell.

    Nodes outside the overlap list occupy their footprints up front; resolved
    nodes occupy theirs as they are placed. A node with no free cell within
    the search radius falls back to spiral search.
    """
    by_id = {n.id: n for n in nodes}
    involved = severity_order(overlaps)
    involved_ids = set(involved)
    grid = OccupancyGrid(config.grid_cell_size, config.separation_distance / 2.0)
    for node in nodes:
        if node.id not in involved_ids:
            grid.mark(node)

    stats = ResolutionStats()
    for nid in involved:
        node = by_id[nid]
        if not detector.collides(node, nodes):
            grid.mark(node)
            continue
        pos = find_free_cell(node, grid, config)
        if pos is None:
            x, y, found = find_spiral_position(node, nodes, config, detector)
            if not found:
                stats.fallbacks += 1
            logger.debug(f"No free grid cell for {nid} within {config.grid_search_radius} rings, "
                         f"escalated to spiral search (found={found})")
            pos = (x, y)
        node.move_to(*pos)
        grid.mark(node)
        stats.moved += 1

    clamp_nodes(nodes, config)
    return stats

# ============================================================================
# RESOLVER
# ============================================================================

class CollisionResolver:
    """Applies one resolution pass with the configured strategy."""

    def __init__(self, config: LayoutConfig, detector: Optional[OverlapDetector] = None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config
        self.detector = detector or OverlapDetector(config)
        self.rng = rng if rng is not None else np.random.default_rng()

    def resolve(self, nodes: List[Node], edges: List[Edge], overlaps: List[OverlapRecord],
                should_stop: Optional[Callable[[], bool]] = None) -> ResolutionStats:
        strategy = self.config.resolver
        if not overlaps:
            return ResolutionStats()
        if strategy == ResolverStrategy.FORCE_DIRECTED:
            return resolve_force_directed(nodes, overlaps, self.config)
        if strategy == ResolverStrategy.GRID_SNAP:
            return resolve_grid_snap(nodes, overlaps, self.config, self.detector)
        if strategy == ResolverStrategy.SPIRAL_PLACEMENT:
            return resolve_spiral(nodes, overlaps, self.config, self.detector)
        if strategy == ResolverStrategy.ANNEALING:
            return self._resolve_annealing(nodes, edges, should_stop)
        raise ValueError(f"Unknown resolver strategy: {strategy}")

    def _resolve_annealing(self, nodes: List[Node], edges: List[Edge],
                           should_stop: Optional[Callable[[], bool]]) -> ResolutionStats:
        before = {n.id: n.center for n in nodes}
        result = run_sa(nodes, edges, self.config.canvas_width, self.config.canvas_height,
                        params=self.config.annealing_params(),
                        separation=self.config.separation_distance,
                        rng=self.rng, should_stop=should_stop)
        result.apply_to(nodes)
        clamp_nodes(nodes, self.config)
        moved = sum(1 for n in nodes if n.center != before[n.id])
        return ResolutionStats(moved=moved)
