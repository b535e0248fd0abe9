"""
Base layout strategies: produce an initial placement for a graph.
"""
from typing import List, Dict, Tuple, Optional, Any, Type
from abc import ABC, abstractmethod
from dataclasses import replace
import networkx as nx
import numpy as np
import logging
import math
from .models import (Node, Edge, DiagramLayout, LayoutConfig, RankDirection,
                     StrategyError, LayoutValidationError)
from .overlap_detector import OverlapDetector
from .collision_resolver import resolve_grid_snap, resolve_spiral, clamp_nodes, GOLDEN_ANGLE
from .sa_optimizer_impl import run_sa

logger = logging.getLogger(__name__)

# ============================================================================
# BASE CLASS
# ============================================================================

class LayoutStrategy(ABC):
    """Produces a placement for every node of a graph.

    Strategies place nodes in place on the request-owned node list and return
    the same node and edge identities wrapped in a DiagramLayout with routed
    edges.
    """
    name = "base"

    def perform_layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig,
                       seed_layout: Optional[DiagramLayout] = None) -> DiagramLayout:
        apply_seed(nodes, seed_layout)
        self._layout(nodes, edges, config)
        for node in nodes:
            if not node.is_placed or not (math.isfinite(node.x) and math.isfinite(node.y)):
                raise StrategyError(f"{self.name} produced no finite position for node {node.id!r}")
        return DiagramLayout(nodes=nodes, edges=edges).route_edges()

    @abstractmethod
    def _layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> None:
        ...

    def estimate_complexity(self, node_count: int, edge_count: int) -> float:
        """Relative cost unit, used for logging only."""
        return float(node_count * node_count + edge_count * 2)


def apply_seed(nodes: List[Node], seed_layout: Optional[DiagramLayout]) -> int:
    """Copy placed seed positions onto matching nodes. Returns how many were seeded."""
    if not seed_layout:
        return 0
    seeded = 0
    positions = seed_layout.positions()
    for node in nodes:
        if node.id in positions:
            node.move_to(*positions[node.id])
            seeded += 1
    return seeded

# ============================================================================
# HIERARCHICAL
# ============================================================================

def assign_layers(nodes: List[Node], edges: List[Edge]) -> Dict[str, int]:
    """Layer index per node: breadth-first depth from the roots.

    Roots are nodes without incoming edges, in input order. Nodes not reached
    from any root (cycles) start a new search from the first such node in
    input order.
    """
    G = nx.DiGraph()
    G.add_nodes_from(n.id for n in nodes)
    for e in edges:
        if e.source in G and e.target in G and e.source != e.target:
            G.add_edge(e.source, e.target)

    depth: Dict[str, int] = {}
    sources = [n.id for n in nodes if G.in_degree(n.id) == 0]
    while len(depth) < G.number_of_nodes():
        if not sources:
            sources = [next(n.id for n in nodes if n.id not in depth)]
        for level, layer in enumerate(nx.bfs_layers(G, sources)):
            for nid in layer:
                if nid not in depth:
                    depth[nid] = level
        sources = []
    return depth


class HierarchicalStrategy(LayoutStrategy):
    """Layered layout, top-to-bottom or left-to-right.

    Layers are centered on the canvas; within a layer nodes keep input order.
    Already placed nodes (from the seed or the caller) keep their positions.
    """
    name = "hierarchical"

    def __init__(self, direction: Optional[RankDirection] = None):
        self.default_direction = RankDirection(direction) if direction else RankDirection.TB

    def direction_for(self, config: LayoutConfig) -> RankDirection:
        return config.rank_direction or self.default_direction

    def _layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> None:
        if not nodes:
            return
        depth = assign_layers(nodes, edges)
        order = {n.id: i for i, n in enumerate(nodes)}
        n_layers = max(depth.values()) + 1
        layers: List[List[Node]] = [[] for _ in range(n_layers)]
        for node in sorted(nodes, key=lambda n: (depth[n.id], order[n.id])):
            layers[depth[node.id]].append(node)

        horizontal = self.direction_for(config) == RankDirection.LR
        positions = self._layer_positions(layers, config, horizontal)
        for node in nodes:
            if not node.is_placed:
                node.move_to(*positions[node.id])

        logger.debug(f"Hierarchical layout: {len(nodes)} nodes in {n_layers} layers "
                     f"({'LR' if horizontal else 'TB'})")

    def _layer_positions(self, layers: List[List[Node]], config: LayoutConfig,
                         horizontal: bool) -> Dict[str, Tuple[float, float]]:
        # "along" runs across layers, "across" runs within a layer
        def along_size(n: Node) -> float:
            return n.width if horizontal else n.height

        def across_size(n: Node) -> float:
            return n.height if horizontal else n.width

        canvas_along = config.canvas_width if horizontal else config.canvas_height
        canvas_across = config.canvas_height if horizontal else config.canvas_width

        thickness = [max(along_size(n) for n in layer) for layer in layers]
        total_along = sum(thickness) + config.rank_separation * (len(layers) - 1)
        cursor = canvas_along / 2.0 - total_along / 2.0

        positions = {}
        for layer, thick in zip(layers, thickness):
            center_along = cursor + thick / 2.0
            span = sum(across_size(n) for n in layer) + config.node_separation * (len(layer) - 1)
            offset = canvas_across / 2.0 - span / 2.0
            for node in layer:
                center_across = offset + across_size(node) / 2.0
                offset += across_size(node) + config.node_separation
                if horizontal:
                    positions[node.id] = (center_along, center_across)
                else:
                    positions[node.id] = (center_across, center_along)
            cursor += thick + config.rank_separation
        return positions

    def estimate_complexity(self, node_count: int, edge_count: int) -> float:
        return float(node_count + edge_count)

# ============================================================================
# FORCE-DIRECTED
# ============================================================================

def _spread_coincident(pos: np.ndarray) -> None:
    """Nudge nodes that share a center onto distinct points."""
    seen: Dict[Tuple[float, float], int] = {}
    for k in range(len(pos)):
        key = (round(float(pos[k, 0]), 6), round(float(pos[k, 1]), 6))
        count = seen.get(key, 0)
        if count:
            angle = count * GOLDEN_ANGLE
            pos[k] += np.array([math.cos(angle), math.sin(angle)]) * count
        seen[key] = count + 1


class ForceDirectedStrategy(LayoutStrategy):
    """Fruchterman-Reingold style spring embedder.

    - Connected nodes attract towards the target edge length
    - All node pairs repel
    - A weak pull keeps the drawing centered on the canvas
    Unplaced nodes start on a circle around the canvas center.
    """
    name = "force_directed"

    def __init__(self, gravity: float = 0.05, cooling: float = 0.97, tolerance: float = 0.5):
        self.gravity = gravity
        self.cooling = cooling
        self.tolerance = tolerance

    def _initial_positions(self, nodes: List[Node], config: LayoutConfig) -> np.ndarray:
        cx, cy = config.canvas_width / 2.0, config.canvas_height / 2.0
        radius = min(config.canvas_width, config.canvas_height) * 0.35
        n = len(nodes)
        pos = np.zeros((n, 2))
        for i, node in enumerate(nodes):
            if node.is_placed:
                pos[i] = node.center
            else:
                angle = 2.0 * math.pi * i / n
                pos[i] = (cx + radius * math.cos(angle), cy + radius * math.sin(angle))
        return pos

    def _layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> None:
        n = len(nodes)
        if n == 0:
            return
        pos = self._initial_positions(nodes, config)
        _spread_coincident(pos)

        index = {node.id: i for i, node in enumerate(nodes)}
        links = np.array([(index[e.source], index[e.target]) for e in edges
                          if e.source in index and e.target in index and e.source != e.target],
                         dtype=int).reshape(-1, 2)
        k = config.target_edge_length
        center = np.array([config.canvas_width / 2.0, config.canvas_height / 2.0])
        temperature = min(config.canvas_width, config.canvas_height) * 0.1
        sizes = np.array([[node.width, node.height] for node in nodes])

        iteration = 0
        for iteration in range(config.force_iterations):
            delta = pos[:, None, :] - pos[None, :, :]
            dist = np.hypot(delta[:, :, 0], delta[:, :, 1])
            np.fill_diagonal(dist, 1.0)
            dist = np.maximum(dist, 0.01)
            repulse = (k * k) / (dist * dist)
            np.fill_diagonal(repulse, 0.0)
            disp = np.sum(delta * repulse[:, :, None], axis=1)

            if len(links):
                d = pos[links[:, 1]] - pos[links[:, 0]]
                pull = d * (np.hypot(d[:, 0], d[:, 1]) / k)[:, None]
                np.add.at(disp, links[:, 0], pull)
                np.add.at(disp, links[:, 1], -pull)

            disp += self.gravity * (center - pos)

            length = np.hypot(disp[:, 0], disp[:, 1])
            scale = np.where(length > 0, np.minimum(length, temperature) / np.where(length > 0, length, 1.0), 0.0)
            step = disp * scale[:, None]
            pos += step

            half = sizes / 2.0
            pos[:, 0] = np.clip(pos[:, 0], half[:, 0], np.maximum(half[:, 0], config.canvas_width - half[:, 0]))
            pos[:, 1] = np.clip(pos[:, 1], half[:, 1], np.maximum(half[:, 1], config.canvas_height - half[:, 1]))

            if not np.all(np.isfinite(pos)):
                raise StrategyError(f"Force-directed layout diverged at iteration {iteration}")

            temperature *= self.cooling
            if float(np.max(np.hypot(step[:, 0], step[:, 1]))) < self.tolerance:
                break

        for node, p in zip(nodes, pos):
            node.move_to(p[0], p[1])
        clamp_nodes(nodes, config)
        logger.debug(f"Force-directed layout finished after {iteration + 1} iterations")

    def estimate_complexity(self, node_count: int, edge_count: int) -> float:
        return float(node_count * node_count + edge_count) * 10.0

# ============================================================================
# SIMULATED ANNEALING
# ============================================================================

class SimulatedAnnealingStrategy(LayoutStrategy):
    """Hierarchical placement refined by simulated annealing."""
    name = "simulated_annealing"

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng

    def _layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> None:
        if not nodes:
            return
        HierarchicalStrategy()._layout(nodes, edges, config)
        clamp_nodes(nodes, config)
        result = run_sa(nodes, edges, config.canvas_width, config.canvas_height,
                        params=config.annealing_params(), separation=config.separation_distance,
                        rng=self.rng)
        result.apply_to(nodes)
        logger.debug(f"Annealing strategy: energy {result.initial_energy:.2f} -> {result.best_energy:.2f} "
                     f"in {result.steps} steps")

    def estimate_complexity(self, node_count: int, edge_count: int) -> float:
        p = LayoutConfig().annealing
        return p.max_steps * p.moves_per_temperature * (node_count + edge_count) * 0.5

# ============================================================================
# LOCAL RESOLVERS
# ============================================================================

class _LocalResolverStrategy(LayoutStrategy):
    """Resolves overlaps around the given positions instead of laying out from scratch.

    Unplaced nodes start at the canvas center.
    """

    def _layout(self, nodes: List[Node], edges: List[Edge], config: LayoutConfig) -> None:
        for node in nodes:
            if not node.is_placed:
                node.move_to(config.canvas_width / 2.0, config.canvas_height / 2.0)
        clamp_nodes(nodes, config)
        detector = OverlapDetector(config)
        overlaps = detector.detect(nodes)
        if overlaps:
            self._resolve(nodes, overlaps, config, detector)

    def _resolve(self, nodes, overlaps, config, detector) -> None:
        raise NotImplementedError


class GridSnapStrategy(_LocalResolverStrategy):
    name = "grid_snap"

    def _resolve(self, nodes, overlaps, config, detector) -> None:
        resolve_grid_snap(nodes, overlaps, config, detector)


class SpiralPlacementStrategy(_LocalResolverStrategy):
    name = "spiral_placement"

    def _resolve(self, nodes, overlaps, config, detector) -> None:
        resolve_spiral(nodes, overlaps, config, detector)

# ============================================================================
# REGISTRY & DIAGRAM TYPES
# ============================================================================

STRATEGIES: Dict[str, Type[LayoutStrategy]] = {
    HierarchicalStrategy.name: HierarchicalStrategy,
    ForceDirectedStrategy.name: ForceDirectedStrategy,
    SimulatedAnnealingStrategy.name: SimulatedAnnealingStrategy,
    GridSnapStrategy.name: GridSnapStrategy,
    SpiralPlacementStrategy.name: SpiralPlacementStrategy,
}

# diagram type -> (strategy name, default rank direction)
DIAGRAM_TYPE_STRATEGIES: Dict[str, Tuple[str, Optional[RankDirection]]] = {
    "flow": ("hierarchical", RankDirection.LR),
    "flowchart": ("hierarchical", RankDirection.LR),
    "process": ("hierarchical", RankDirection.LR),
    "timeline": ("hierarchical", RankDirection.LR),
    "sequence": ("hierarchical", RankDirection.LR),
    "tree": ("hierarchical", RankDirection.TB),
    "hierarchy": ("hierarchical", RankDirection.TB),
    "org": ("hierarchical", RankDirection.TB),
    "cycle": ("force_directed", None),
    "network": ("force_directed", None),
    "concept": ("force_directed", None),
    "mindmap": ("force_directed", None),
    "matrix": ("grid_snap", None),
    "comparison": ("grid_snap", None),
}

# Spacing presets per diagram type
DIAGRAM_TYPE_PRESETS: Dict[str, Dict[str, Any]] = {
    "flow": {"rank_direction": RankDirection.LR, "node_separation": 40.0, "rank_separation": 80.0},
    "tree": {"rank_direction": RankDirection.TB, "node_separation": 30.0, "rank_separation": 100.0},
    "timeline": {"rank_direction": RankDirection.LR, "node_separation": 20.0, "rank_separation": 120.0},
    "matrix": {"rank_direction": RankDirection.LR, "node_separation": 100.0, "rank_separation": 100.0},
    "cycle": {"rank_direction": RankDirection.LR, "node_separation": 40.0, "rank_separation": 40.0},
}


def normalize_diagram_type(diagram_type: Optional[str]) -> str:
    return (diagram_type or "").strip().lower().replace("-", "_")


def config_for_diagram_type(diagram_type: Optional[str], base: Optional[LayoutConfig] = None) -> LayoutConfig:
    """Default config for a diagram type: `base` (or defaults) with the type's spacing preset."""
    base = base or LayoutConfig()
    preset = DIAGRAM_TYPE_PRESETS.get(normalize_diagram_type(diagram_type))
    if not preset:
        return base
    return replace(base, **preset)


def get_strategy(name: str, rng: Optional[np.random.Generator] = None, **kwargs: Any) -> LayoutStrategy:
    key = normalize_diagram_type(name)
    if key not in STRATEGIES:
        raise LayoutValidationError(f"Unknown layout strategy: {name!r} (expected one of: {', '.join(STRATEGIES)})")
    cls = STRATEGIES[key]
    if cls is SimulatedAnnealingStrategy:
        return cls(rng=rng, **kwargs)
    return cls(**kwargs)


def strategy_for_diagram_type(diagram_type: Optional[str],
                              rng: Optional[np.random.Generator] = None) -> LayoutStrategy:
    """Base strategy for a diagram type tag; unknown tags get a top-to-bottom hierarchy."""
    key = normalize_diagram_type(diagram_type)
    if key not in DIAGRAM_TYPE_STRATEGIES:
        logger.info(f"Unrecognized diagram type {diagram_type!r}, using hierarchical layout")
        return HierarchicalStrategy()
    name, direction = DIAGRAM_TYPE_STRATEGIES[key]
    if name == HierarchicalStrategy.name:
        return HierarchicalStrategy(direction=direction)
    return get_strategy(name, rng=rng)
