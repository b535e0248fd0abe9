"""
Benchmark harness for evaluating and comparing collision resolvers.
Collects metrics on layout quality, runtime and convergence.
"""
from typing import Dict, List, Optional, Any
import time
import logging
from dataclasses import dataclass
from ..impl.models import LayoutConfig
from ..impl.strategies import config_for_diagram_type
from ..zero_overlap_engine import ZeroOverlapEngine
from .cases import BenchmarkCase, BENCHMARK_CASES

logger = logging.getLogger(__name__)

DEFAULT_RESOLVER_CONFIGS = [
    {'name': 'force_directed', 'overrides': {'resolver': 'force_directed'}},
    {'name': 'grid_snap', 'overrides': {'resolver': 'grid_snap'}},
    {'name': 'spiral_placement', 'overrides': {'resolver': 'spiral_placement'}},
    {'name': 'annealing', 'overrides': {'resolver': 'annealing', 'max_iterations': 3}},
]


@dataclass
class BenchmarkResult:
    """Results from a single engine run."""
    case_name: str
    resolver_name: str
    runtime_seconds: float
    iterations: int
    outcome: str
    remaining_overlaps: int
    overlap_free_percent: float
    overall_score: float
    edge_crossings: int
    total_edge_length: float
    metrics: Dict[str, Any]


class BenchmarkRunner:
    def __init__(self, cases: List[BenchmarkCase] = None):
        """Initialize with optional specific cases."""
        self.cases = cases or BENCHMARK_CASES

    def run_benchmark(self,
                      resolver_configs: List[Dict] = None,
                      runs_per_case: int = 3,
                      time_budget: Optional[float] = None,
                      seed: int = 0) -> List[BenchmarkResult]:
        """Run full benchmark suite.

        Args:
            resolver_configs: List of {'name', 'overrides'} dicts applied to each case's config
            runs_per_case: Number of runs per case (different seeds)
            time_budget: Optional wall-clock budget per run in seconds
            seed: Base random seed; run k uses seed + k

        Returns:
            List of BenchmarkResults for all runs
        """
        results = []
        resolver_configs = resolver_configs or DEFAULT_RESOLVER_CONFIGS

        for case in self.cases:
            logger.info(f"Running benchmark case: {case.name}")

            for config in resolver_configs:
                logger.info(f"Testing resolver: {config['name']}")

                for run in range(runs_per_case):
                    try:
                        results.append(self._run_single_case(case, config, time_budget, seed + run))
                    except Exception:
                        # Log full traceback to help diagnose failures during benchmarks
                        logger.exception(f"Error in {case.name} with {config['name']}")
                        continue

        return results

    def _case_config(self, case: BenchmarkCase, resolver_config: Dict,
                     time_budget: Optional[float]) -> LayoutConfig:
        base = config_for_diagram_type(case.diagram_type)
        overrides = dict(resolver_config.get('overrides', {}))
        overrides.setdefault('canvas_width', case.canvas[0])
        overrides.setdefault('canvas_height', case.canvas[1])
        overrides.setdefault('time_budget', time_budget)
        return base.with_overrides(**overrides)

    def _run_single_case(self,
                         case: BenchmarkCase,
                         resolver_config: Dict,
                         time_budget: Optional[float],
                         seed: int) -> BenchmarkResult:
        """Run single benchmark case with given resolver config."""
        config = self._case_config(case, resolver_config, time_budget)
        engine = ZeroOverlapEngine(config=config, seed=seed)
        data = case.get_layout_input()

        start_time = time.time()
        result = engine.run(data['nodes'], data['edges'], diagram_type=data['diagram_type'])
        runtime = time.time() - start_time

        return BenchmarkResult(
            case_name=case.name,
            resolver_name=resolver_config['name'],
            runtime_seconds=runtime,
            iterations=len(result.iterations),
            outcome=result.outcome.value,
            remaining_overlaps=result.remaining_overlaps,
            overlap_free_percent=result.quality.overlap_free_percent,
            overall_score=result.quality.overall_score,
            edge_crossings=int(result.metrics.get('edge_crossings', 0)),
            total_edge_length=float(result.metrics.get('total_edge_length', 0.0)),
            metrics=dict(result.metrics)
        )
