"""
Tests for the zero-overlap engine orchestration.
"""
import asyncio
import pytest
from backend.app.layout import ZeroOverlapEngine, generate_layout, LayoutConfig
from backend.app.layout.impl.models import (
    Node, Edge, EngineState, LayoutOutcome, LayoutValidationError, ResolverStrategy
)
from backend.app.layout.impl.overlap_detector import OverlapDetector
from backend.app.layout.impl.strategies import ForceDirectedStrategy
from backend.app.layout.zero_overlap_engine import iteration_action


@pytest.fixture
def config():
    return LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10, max_iterations=50)


@pytest.fixture
def three_nodes():
    nodes = [
        Node(id="A", label="A", width=50, height=50, x=400, y=300),
        Node(id="B", label="B", width=50, height=50, x=410, y=305),
        Node(id="C", label="C", width=50, height=50, x=600, y=300),
    ]
    edges = [Edge("A", "B"), Edge("B", "C")]
    return nodes, edges


def _in_canvas(node, config):
    return (node.x - node.width / 2 >= 0 and node.x + node.width / 2 <= config.canvas_width and
            node.y - node.height / 2 >= 0 and node.y + node.height / 2 <= config.canvas_height)


def test_resolves_overlapping_pair(config, three_nodes):
    nodes, edges = three_nodes
    result = ZeroOverlapEngine(config, seed=0).run(nodes, edges)

    assert result.success
    assert result.overlap_free
    assert result.outcome == LayoutOutcome.CONVERGED
    assert result.remaining_overlaps == 0
    assert result.quality.overlap_free_percent == 100.0
    assert result.strategy == "seed"
    assert len(result.iterations) >= 1
    assert result.iterations[0].overlaps_before == 1
    assert result.iterations[0].action == "Resolved 1 overlaps"
    assert OverlapDetector(config).detect(result.nodes) == []

    by_id = result.layout.node_map()
    # C never overlapped and is left where it was
    assert by_id["C"].center == (600.0, 300.0)
    assert result.edges[0].points == [by_id["A"].center, by_id["B"].center]
    assert result.metrics["overlap_count"] == 0
    assert not any("overlaps detected" in w for w in result.warnings)


def test_state_trace(config, three_nodes):
    nodes, edges = three_nodes
    result = ZeroOverlapEngine(config).run(nodes, edges)
    trace = result.state_trace
    assert trace[0] == EngineState.SEEDING
    assert trace[-1] == EngineState.ASSESSING
    assert trace[-2] == EngineState.DETECTING
    assert trace.count(EngineState.RESOLVING) == len(result.iterations)


def test_caller_nodes_are_not_mutated(config, three_nodes):
    nodes, edges = three_nodes
    ZeroOverlapEngine(config).run(nodes, edges)
    assert [n.center for n in nodes] == [(400.0, 300.0), (410.0, 305.0), (600.0, 300.0)]
    assert edges[0].points == []


def test_dangling_edge_is_kept_unrouted(config, three_nodes):
    nodes, edges = three_nodes
    result = ZeroOverlapEngine(config).run(nodes, edges + [Edge("C", "Z")])
    assert result.overlap_free
    assert len(result.edges) == 3
    assert result.edges[-1].points == []


def test_rerun_on_resolved_layout_is_idempotent(config, three_nodes):
    nodes, edges = three_nodes
    first = ZeroOverlapEngine(config).run(nodes, edges)
    second = ZeroOverlapEngine(config).run(first.nodes, first.edges)

    assert second.iterations == []
    assert second.outcome == LayoutOutcome.CONVERGED
    for a, b in zip(first.nodes, second.nodes):
        assert b.x == pytest.approx(a.x)
        assert b.y == pytest.approx(a.y)


def test_grid_snap_with_generous_budget():
    config = LayoutConfig(resolver=ResolverStrategy.GRID_SNAP, max_iterations=60)
    nodes = [Node(id=f"n{i}", label="", width=120, height=60, x=960, y=540) for i in range(6)]
    result = ZeroOverlapEngine(config).run(nodes, [])
    assert result.overlap_free
    assert result.quality.overlap_free_percent == 100.0


@pytest.mark.parametrize("resolver", list(ResolverStrategy))
def test_every_resolver_keeps_nodes_on_canvas(resolver):
    config = LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10,
                          resolver=resolver, max_iterations=20)
    # Packed into the top-left corner so every pass pushes against the border
    nodes = [Node(id=f"n{i}", label="", width=60, height=40, x=30 + 5 * i, y=20 + 3 * i) for i in range(5)]
    result = ZeroOverlapEngine(config, seed=1).run(nodes, [])
    assert result.iterations
    for node in result.nodes:
        assert _in_canvas(node, config)


def test_budget_exhausted_without_iterations(three_nodes):
    nodes, edges = three_nodes
    config = LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10, max_iterations=0)
    result = ZeroOverlapEngine(config).run(nodes, edges)

    assert result.outcome == LayoutOutcome.BUDGET_EXHAUSTED
    assert result.success
    assert not result.overlap_free
    assert result.iterations == []
    assert result.remaining_overlaps == 1
    assert "1 overlaps detected (target: 0)" in result.warnings
    assert "Eliminate remaining overlaps" in result.quality.improvements


def test_time_budget_stops_the_run(three_nodes):
    nodes, edges = three_nodes
    config = LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10, time_budget=1e-9)
    result = ZeroOverlapEngine(config).run(nodes, edges)
    assert result.outcome == LayoutOutcome.BUDGET_EXHAUSTED
    assert result.iterations == []


def test_quality_threshold_stops_unresolvable_layout():
    config = LayoutConfig(canvas_width=100, canvas_height=100, separation_distance=10,
                          quality_threshold=0, max_iterations=50)
    nodes = [Node(id=i, label=i, width=100, height=100, x=50, y=50) for i in "AB"]
    result = ZeroOverlapEngine(config).run(nodes, [])

    assert result.outcome == LayoutOutcome.THRESHOLD_MET
    assert len(result.iterations) == 1
    assert result.remaining_overlaps == 1
    assert "High canvas utilization may affect readability" in result.warnings


def test_unresolvable_layout_exhausts_budget():
    config = LayoutConfig(canvas_width=100, canvas_height=100, separation_distance=10, max_iterations=5)
    nodes = [Node(id=i, label=i, width=100, height=100, x=50, y=50) for i in "AB"]
    result = ZeroOverlapEngine(config).run(nodes, [])
    assert result.outcome == LayoutOutcome.BUDGET_EXHAUSTED
    assert len(result.iterations) == 5
    assert all(it.action == "No improvement" for it in result.iterations)
    assert all(_in_canvas(n, config) for n in result.nodes)


def test_corner_pinned_pair_converges():
    config = LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10, max_iterations=5)
    nodes = [
        Node(id="A", label="A", width=50, height=50, x=25, y=25),
        Node(id="B", label="B", width=50, height=50, x=30, y=30),
    ]
    result = ZeroOverlapEngine(config).run(nodes, [])

    assert result.outcome == LayoutOutcome.CONVERGED
    assert result.overlap_free
    assert result.quality.overlap_free_percent == 100.0
    assert result.layout.node_map()["A"].center == (25.0, 25.0)


def test_fallback_placements_are_reported():
    config = LayoutConfig(canvas_width=100, canvas_height=100, separation_distance=10,
                          resolver=ResolverStrategy.GRID_SNAP, max_iterations=1)
    nodes = [Node(id=i, label=i, width=100, height=100, x=50, y=50) for i in "AB"]
    result = ZeroOverlapEngine(config).run(nodes, [])

    assert result.fallback_placements == 2
    assert "2 nodes placed at best-effort fallback offset" in result.warnings
    assert all(_in_canvas(n, config) for n in result.nodes)


def test_fallback_placements_zero_when_resolved(config, three_nodes):
    nodes, edges = three_nodes
    result = ZeroOverlapEngine(config, seed=0).run(nodes, edges)
    assert result.fallback_placements == 0
    assert not any("fallback" in w for w in result.warnings)


def test_validation_errors_raised_before_layout(config):
    engine = ZeroOverlapEngine(config)
    dup = [Node(id="A", label="A", width=10, height=10), Node(id="A", label="A", width=10, height=10)]
    with pytest.raises(LayoutValidationError):
        engine.run(dup, [])
    with pytest.raises(LayoutValidationError):
        engine.run([Node(id="A", label="A", width=-5, height=10)], [])
    with pytest.raises(LayoutValidationError):
        engine.run([Node(id="A", label="A", width=10, height=10, x=float("nan"), y=0)], [])
    with pytest.raises(LayoutValidationError):
        engine.run([Node(id="A", label="A", width=10, height=10)], [], strategy="radial")
    with pytest.raises(LayoutValidationError):
        engine.run([{"label": "no id"}], [])


def test_invalid_config_rejected():
    with pytest.raises(LayoutValidationError):
        ZeroOverlapEngine(LayoutConfig(canvas_width=0))
    with pytest.raises(LayoutValidationError):
        ZeroOverlapEngine(LayoutConfig(quality_threshold=120))
    with pytest.raises(LayoutValidationError):
        LayoutConfig(resolver="teleport")
    with pytest.raises(LayoutValidationError):
        LayoutConfig().with_overrides(warp_speed=9)


def test_annealing_params_follow_config_edge_length():
    config = LayoutConfig(target_edge_length=300)
    params = config.annealing_params()
    assert params.target_edge_length == 300
    assert params.T0 == config.annealing.T0
    assert config.annealing.target_edge_length == 150.0


def test_empty_input():
    result = ZeroOverlapEngine().run([], [])
    assert result.overlap_free
    assert result.outcome == LayoutOutcome.CONVERGED
    assert result.quality.overall_score == 100.0


def test_dict_descriptors_with_size_hints():
    nodes = [
        {"id": "A", "label": "Start", "sizeHint": {"width": 80, "height": 40}},
        {"id": "B"},
        {"id": "C", "size_hint": {"width": 200, "height": 100}},
    ]
    edges = [{"source": "A", "target": "B"}, {"source": "B", "target": "C"}]
    result = generate_layout(nodes, edges, diagram_type="flow", seed=0)
    by_id = result.layout.node_map()

    assert (by_id["A"].width, by_id["A"].height) == (80, 40)
    assert (by_id["B"].width, by_id["B"].height) == (120, 60)
    assert by_id["C"].width == 200
    assert by_id["A"].label == "Start"
    assert by_id["B"].label == "B"
    assert result.overlap_free
    assert by_id["A"].x < by_id["B"].x < by_id["C"].x


def test_partial_seed_position_is_kept():
    nodes = [
        Node(id="A", label="A", width=120, height=60, x=100, y=100),
        Node(id="B", label="B", width=120, height=60),
        Node(id="C", label="C", width=120, height=60),
    ]
    edges = [Edge("A", "B"), Edge("B", "C")]
    result = generate_layout(nodes, edges, diagram_type="flow")
    by_id = result.layout.node_map()
    assert by_id["A"].center == (100.0, 100.0)
    assert result.strategy == "hierarchical"
    assert result.overlap_free


def test_seed_layout_mapping(config):
    nodes = [Node(id=i, label=i, width=50, height=50) for i in "AB"]
    seed = {"nodes": [{"id": "A", "x": 200, "y": 200, "width": 50, "height": 50},
                      {"id": "B", "x": 500, "y": 200, "width": 50, "height": 50}]}
    result = ZeroOverlapEngine(config).run(nodes, [], seed_layout=seed)
    assert result.strategy == "seed"
    assert result.layout.positions() == {"A": (200.0, 200.0), "B": (500.0, 200.0)}


def test_failed_strategy_falls_back_to_hierarchical(monkeypatch):
    def explode(self, nodes, edges, config):
        raise RuntimeError("boom")

    monkeypatch.setattr(ForceDirectedStrategy, "_layout", explode)
    nodes = [Node(id=i, label=i, width=120, height=60) for i in "ABC"]
    edges = [Edge("A", "B"), Edge("B", "C"), Edge("C", "A")]
    result = generate_layout(nodes, edges, diagram_type="cycle")

    assert result.strategy == "hierarchical"
    assert any("failed" in w for w in result.warnings)
    assert all(n.is_placed for n in result.nodes)
    assert result.overlap_free


def test_explicit_strategy_overrides_diagram_type():
    nodes = [Node(id=i, label=i, width=60, height=40) for i in "ABCD"]
    result = generate_layout(nodes, [], diagram_type="flow", strategy="grid_snap")
    assert result.strategy == "grid_snap"
    assert result.overlap_free


def test_run_async_matches_run(config, three_nodes):
    nodes, edges = three_nodes
    sync_result = ZeroOverlapEngine(config, seed=3).run(nodes, edges)
    async_result = asyncio.run(ZeroOverlapEngine(config, seed=3).run_async(nodes, edges))
    assert async_result.layout.positions() == sync_result.layout.positions()
    assert async_result.outcome == sync_result.outcome
    assert len(async_result.iterations) == len(sync_result.iterations)


def test_final_enhancements_never_add_overlaps(config, three_nodes):
    nodes, edges = three_nodes
    enhanced = LayoutConfig(canvas_width=800, canvas_height=600, separation_distance=10,
                            max_iterations=50, apply_final_enhancements=True)
    result = ZeroOverlapEngine(enhanced, seed=0).run(nodes, edges)
    assert result.overlap_free
    assert all(_in_canvas(n, enhanced) for n in result.nodes)


def test_iteration_action():
    assert iteration_action(3, 1) == "Resolved 2 overlaps"
    assert iteration_action(2, 2) == "No improvement"
    assert iteration_action(1, 2) == "Overlap increased - adjusting strategy"
