# Zero-overlap layout engine
# Seeds a base layout, then alternates overlap detection and resolution until
# the layout is overlap-free or the iteration/time budget runs out.

from typing import List, Dict, Any, Optional, Tuple, Iterable, Union, Generator
import numpy as np
import asyncio
import logging
import math
import time

from .impl.models import (Node, Edge, DiagramLayout, LayoutConfig, LayoutResult, IterationResult,
                          OverlapRecord, EngineState, LayoutOutcome, LayoutValidationError,
                          coerce_nodes, coerce_edges, validate_nodes)
from .impl.overlap_detector import OverlapDetector
from .impl.collision_resolver import CollisionResolver, clamp_nodes
from .impl.quality import QualityAssessor
from .impl.strategies import (LayoutStrategy, HierarchicalStrategy, apply_seed, get_strategy,
                              strategy_for_diagram_type, config_for_diagram_type)
from .metrics import compute_layout_metrics

logger = logging.getLogger(__name__)

NodeInput = Union[Node, Dict[str, Any]]
EdgeInput = Union[Edge, Dict[str, Any]]

# ============================================================================
# HELPERS
# ============================================================================

def iteration_action(before: int, after: int) -> str:
    resolved = before - after
    if resolved > 0:
        return f"Resolved {resolved} overlaps"
    if resolved == 0:
        return "No improvement"
    return "Overlap increased - adjusting strategy"


def _snapshot(nodes: List[Node]) -> List[Tuple[float, float]]:
    return [(n.x, n.y) for n in nodes]


def _restore(nodes: List[Node], snapshot: List[Tuple[float, float]]) -> None:
    for node, (x, y) in zip(nodes, snapshot):
        node.x, node.y = x, y


def coerce_seed_layout(seed_layout: Any, config: LayoutConfig) -> Optional[DiagramLayout]:
    """Accept a DiagramLayout or a {"nodes": [...], "edges": [...]} mapping."""
    if seed_layout is None:
        return None
    if isinstance(seed_layout, DiagramLayout):
        seed = seed_layout
    elif isinstance(seed_layout, dict):
        seed = DiagramLayout(nodes=coerce_nodes(seed_layout.get("nodes") or [], config),
                             edges=coerce_edges(seed_layout.get("edges") or []))
    else:
        raise LayoutValidationError(f"Unsupported seed layout: {type(seed_layout).__name__}")
    for node in seed.nodes:
        for coord in (node.x, node.y):
            if coord is not None and not math.isfinite(float(coord)):
                raise LayoutValidationError(f"Seed layout has non-finite position for node {node.id!r}")
    return seed


def increase_node_separation(nodes: List[Node], config: LayoutConfig) -> None:
    """Push apart node pairs whose centers are closer than their sizes plus extra spacing."""
    min_sep = config.separation_distance + 10.0
    for i in range(len(nodes)):
        for j in range(i + 1, len(nodes)):
            a, b = nodes[i], nodes[j]
            dx, dy = b.x - a.x, b.y - a.y
            dist = math.hypot(dx, dy)
            required = (a.width + b.width) / 2.0 + min_sep
            if 0 < dist < required:
                push = (required - dist) / 2.0
                ux, uy = dx / dist, dy / dist
                a.move_to(a.x - ux * push, a.y - uy * push)
                b.move_to(b.x + ux * push, b.y + uy * push)
    clamp_nodes(nodes, config)


def improve_visual_distribution(nodes: List[Node], config: LayoutConfig, rate: float = 0.3) -> None:
    """Shift every node part of the way so the centroid moves towards the canvas center."""
    if not nodes:
        return
    centroid = np.mean([n.center for n in nodes], axis=0)
    shift = (np.array([config.canvas_width / 2.0, config.canvas_height / 2.0]) - centroid) * rate
    for node in nodes:
        node.move_to(node.x + shift[0], node.y + shift[1])
    clamp_nodes(nodes, config)

# ============================================================================
# ENGINE
# ============================================================================

class ZeroOverlapEngine:
    """
    Iterative zero-overlap layout engine.

    States: seeding -> detecting -> resolving -> ... -> assessing, ending as
    converged (no overlaps), threshold_met (quality reached the configured
    threshold) or budget_exhausted (iteration cap or time budget used up).
    The best layout seen (fewest overlaps) is returned in every case.
    """

    def __init__(self, config: Optional[LayoutConfig] = None,
                 rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        self.config = (config or LayoutConfig()).validate()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.detector = OverlapDetector(self.config)
        self.resolver = CollisionResolver(self.config, self.detector, self.rng)
        self.assessor = QualityAssessor(self.config, self.detector)

    def run(self, nodes: Iterable[NodeInput], edges: Iterable[EdgeInput],
            diagram_type: Optional[str] = None, seed_layout: Any = None,
            strategy: Optional[str] = None) -> LayoutResult:
        steps = self._execute(nodes, edges, diagram_type, seed_layout, strategy)
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value

    async def run_async(self, nodes: Iterable[NodeInput], edges: Iterable[EdgeInput],
                        diagram_type: Optional[str] = None, seed_layout: Any = None,
                        strategy: Optional[str] = None) -> LayoutResult:
        """Same as run(), yielding to the event loop every `yield_every` iterations."""
        steps = self._execute(nodes, edges, diagram_type, seed_layout, strategy)
        while True:
            try:
                iteration = next(steps)
            except StopIteration as done:
                return done.value
            if iteration % self.config.yield_every == 0:
                await asyncio.sleep(0)

    # ========================================================================
    # PHASES
    # ========================================================================

    def _select_strategy(self, diagram_type: Optional[str], strategy: Optional[str]) -> LayoutStrategy:
        if strategy:
            return get_strategy(strategy, rng=self.rng)
        return strategy_for_diagram_type(diagram_type, rng=self.rng)

    def _seed(self, nodes: List[Node], edges: List[Edge], seed: Optional[DiagramLayout],
              base: LayoutStrategy, warnings: List[str]) -> str:
        apply_seed(nodes, seed)
        if all(n.is_placed for n in nodes):
            logger.debug("All nodes already positioned, reusing the given placement")
            return "seed"

        before = _snapshot(nodes)
        logger.debug(f"Seeding with {base.name} (complexity {base.estimate_complexity(len(nodes), len(edges)):.0f})")
        try:
            base.perform_layout(nodes, edges, self.config)
            used = base.name
        except Exception as e:
            if isinstance(base, HierarchicalStrategy):
                raise
            logger.warning(f"{base.name} layout failed ({e}), falling back to hierarchical", exc_info=True)
            warnings.append(f"{base.name} layout failed, used hierarchical layout instead")
            _restore(nodes, before)
            HierarchicalStrategy().perform_layout(nodes, edges, self.config)
            used = HierarchicalStrategy.name
        clamp_nodes(nodes, self.config)
        return used

    def _final_enhancements(self, nodes: List[Node], overlap_count: int) -> int:
        before = _snapshot(nodes)
        quality = self.assessor.assess(nodes, overlap_count)
        if "Increase node separation" in quality.improvements:
            increase_node_separation(nodes, self.config)
        if "Better visual distribution" in quality.improvements:
            improve_visual_distribution(nodes, self.config)
        after = self.detector.count(nodes)
        if after > overlap_count:
            logger.debug("Final enhancements introduced overlaps, discarded")
            _restore(nodes, before)
            return overlap_count
        return after

    def _warnings(self, overlap_count: int, metrics: Dict[str, float], readability: float) -> List[str]:
        warnings = []
        if overlap_count > 0:
            warnings.append(f"{overlap_count} overlaps detected (target: 0)")
        if metrics.get("canvas_utilization", 0.0) > 0.9:
            warnings.append("High canvas utilization may affect readability")
        if readability < 70:
            warnings.append("Some text may be difficult to read")
        return warnings

    def _execute(self, nodes: Iterable[NodeInput], edges: Iterable[EdgeInput],
                 diagram_type: Optional[str], seed_layout: Any,
                 strategy: Optional[str]) -> Generator[int, None, LayoutResult]:
        config = self.config
        start_time = time.time()
        deadline = start_time + config.time_budget if config.time_budget else None

        def out_of_time() -> bool:
            return deadline is not None and time.time() >= deadline

        # Validate everything before touching positions
        node_list = coerce_nodes(nodes, config)
        validate_nodes(node_list)
        edge_list = coerce_edges(edges)
        seed = coerce_seed_layout(seed_layout, config)
        base = self._select_strategy(diagram_type, strategy)

        logger.info(f"Zero-overlap layout: {len(node_list)} nodes, {len(edge_list)} edges, "
                    f"type={diagram_type}, resolver={config.resolver.value}")

        warnings: List[str] = []
        states = [EngineState.SEEDING]
        used = self._seed(node_list, edge_list, seed, base, warnings)

        overlaps: List[OverlapRecord] = self.detector.detect(node_list)
        best_positions = _snapshot(node_list)
        best_count = len(overlaps)
        iterations: List[IterationResult] = []
        iteration = 0
        fallback_count = 0

        while True:
            states.append(EngineState.DETECTING)
            if not overlaps:
                outcome = LayoutOutcome.CONVERGED
                break
            if iteration >= config.max_iterations or out_of_time():
                outcome = LayoutOutcome.BUDGET_EXHAUSTED
                break

            iteration += 1
            states.append(EngineState.RESOLVING)
            t0 = time.time()
            before = len(overlaps)
            stats = self.resolver.resolve(node_list, edge_list, overlaps, should_stop=out_of_time)
            fallback_count += stats.fallbacks
            overlaps = self.detector.detect(node_list)
            after = len(overlaps)
            quality = self.detector.overlap_free_percent(node_list, after)

            result = IterationResult(
                iteration=iteration,
                overlaps_before=before,
                overlaps_after=after,
                quality=quality,
                elapsed=time.time() - t0,
                action=iteration_action(before, after),
            )
            iterations.append(result)
            logger.debug(f"Iteration {iteration}/{config.max_iterations}: {result.action}, "
                         f"quality {quality:.1f}%")

            if after < best_count:
                best_count = after
                best_positions = _snapshot(node_list)

            yield iteration

            if after > 0 and quality >= config.quality_threshold:
                logger.debug(f"Quality threshold reached: {quality:.1f}%")
                outcome = LayoutOutcome.THRESHOLD_MET
                break

        if len(overlaps) > best_count:
            _restore(node_list, best_positions)
            overlaps = self.detector.detect(node_list)

        overlap_count = len(overlaps)
        if config.apply_final_enhancements:
            overlap_count = self._final_enhancements(node_list, overlap_count)

        states.append(EngineState.ASSESSING)
        layout = DiagramLayout(nodes=node_list, edges=edge_list).route_edges()
        quality = self.assessor.assess(node_list, overlap_count)
        metrics = compute_layout_metrics(node_list, edge_list, config)
        warnings.extend(self._warnings(overlap_count, metrics, quality.readability))
        if fallback_count:
            warnings.append(f"{fallback_count} nodes placed at best-effort fallback offset")

        processing_time = time.time() - start_time
        if overlap_count:
            logger.warning(f"Layout finished with {overlap_count} overlaps after {iteration} iterations "
                           f"({outcome.value})")
        logger.info(f"Zero-overlap layout complete: {processing_time:.2f}s, {outcome.value}, "
                    f"score={quality.overall_score:.1f}")

        return LayoutResult(
            layout=layout,
            quality=quality,
            iterations=iterations,
            outcome=outcome,
            strategy=used,
            processing_time=processing_time,
            success=True,
            overlap_free=overlap_count == 0,
            remaining_overlaps=overlap_count,
            fallback_placements=fallback_count,
            warnings=warnings,
            metrics=metrics,
            state_trace=states,
        )

# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def generate_layout(nodes: Iterable[NodeInput], edges: Iterable[EdgeInput],
                    diagram_type: Optional[str] = None,
                    config: Optional[LayoutConfig] = None,
                    seed_layout: Any = None,
                    rng: Optional[np.random.Generator] = None,
                    seed: Optional[int] = None,
                    strategy: Optional[str] = None) -> LayoutResult:
    """
    Entry point for the zero-overlap engine.
    Without an explicit config the diagram type's spacing preset is used.
    """
    config = config or config_for_diagram_type(diagram_type)
    engine = ZeroOverlapEngine(config=config, rng=rng, seed=seed)
    return engine.run(nodes, edges, diagram_type=diagram_type, seed_layout=seed_layout, strategy=strategy)
