"""
Tests for the collision resolution strategies.
"""
import numpy as np
import pytest
from backend.app.layout.impl.models import Node, Edge, LayoutConfig, OverlapRecord, ResolverStrategy
from backend.app.layout.impl.overlap_detector import OverlapDetector
from backend.app.layout.impl.collision_resolver import (
    CollisionResolver, resolve_force_directed, resolve_grid_snap, resolve_spiral,
    find_spiral_position, severity_order, ring_cells, OccupancyGrid
)
from backend.app.layout.impl.sa_optimizer_impl import compute_energy


def _node(nid, x, y, w=50, h=50):
    return Node(id=nid, label=nid, width=w, height=h, x=x, y=y)


def _config(**kw):
    base = dict(canvas_width=800, canvas_height=600, separation_distance=10)
    base.update(kw)
    return LayoutConfig(**base)


def test_force_directed_separates_pair_in_one_pass():
    config = _config()
    detector = OverlapDetector(config)
    nodes = [_node("A", 400, 300), _node("B", 410, 305)]
    overlaps = detector.detect(nodes)
    assert len(overlaps) == 1

    stats = resolve_force_directed(nodes, overlaps, config)

    assert stats.moved == 2
    assert detector.detect(nodes) == []
    a, b = nodes
    # Pushed apart along the line between centers
    assert a.x < 400 and a.y < 300
    assert b.x > 410 and b.y > 305


def test_force_directed_splits_coincident_centers():
    config = _config()
    detector = OverlapDetector(config)
    nodes = [_node("A", 400, 300), _node("B", 400, 300)]
    resolve_force_directed(nodes, detector.detect(nodes), config)
    assert nodes[0].center != nodes[1].center


def test_force_directed_clamps_to_canvas():
    config = _config()
    detector = OverlapDetector(config)
    nodes = [_node("A", 25, 25), _node("B", 30, 30)]
    resolve_force_directed(nodes, detector.detect(nodes), config)
    for n in nodes:
        assert 25 <= n.x <= 775
        assert 25 <= n.y <= 575


def test_force_directed_clears_corner_pinned_pair_in_one_pass():
    config = _config()
    detector = OverlapDetector(config)
    nodes = [_node("A", 25, 25), _node("B", 30, 30)]
    stats = resolve_force_directed(nodes, detector.detect(nodes), config)

    assert stats.moved == 2
    assert detector.detect(nodes) == []
    # A cannot move further into the corner, B carries the whole separation
    assert nodes[0].center == (25.0, 25.0)


def test_severity_order_lists_each_node_once():
    config = _config()
    nodes = [_node("A", 100, 100), _node("B", 120, 100), _node("C", 100, 150)]
    order = severity_order(OverlapDetector(config).detect(nodes))
    assert order == ["A", "B", "C"]


def test_severity_order_keeps_first_appearance():
    overlaps = [OverlapRecord("C", "A", 900.0), OverlapRecord("A", "B", 400.0),
                OverlapRecord("B", "C", 100.0), OverlapRecord("D", "A", 50.0)]
    assert severity_order(overlaps) == ["C", "A", "B", "D"]


def test_ring_cells():
    assert ring_cells((0, 0), 0) == [(0, 0)]
    assert len(ring_cells((3, 3), 1)) == 8
    assert len(ring_cells((3, 3), 2)) == 16


def test_occupancy_footprint_ignores_touching_borders():
    grid = OccupancyGrid(cell_size=50, margin=5)
    node = _node("A", 425, 325, w=40, h=40)
    # 405..445 inflated by 5 is exactly cell (8, 6)
    assert grid.footprint(node, 425, 325) == [(8, 6)]


def test_grid_snap_stacked_nodes():
    config = _config(resolver=ResolverStrategy.GRID_SNAP)
    detector = OverlapDetector(config)
    nodes = [_node(n, 400, 300, w=40, h=40) for n in "ABC"]
    overlaps = detector.detect(nodes)
    assert len(overlaps) == 3

    stats = resolve_grid_snap(nodes, overlaps, config, detector)

    assert stats.fallbacks == 0
    assert detector.detect(nodes) == []
    for n in nodes:
        assert n.x % 50 == 25
        assert n.y % 50 == 25
    assert nodes[0].center == (425.0, 325.0)


def test_grid_snap_leaves_uninvolved_nodes_alone():
    config = _config()
    detector = OverlapDetector(config)
    far = _node("F", 700, 500, w=40, h=40)
    nodes = [_node("A", 400, 300, w=40, h=40), _node("B", 410, 300, w=40, h=40), far]
    resolve_grid_snap(nodes, detector.detect(nodes), config, detector)
    assert far.center == (700.0, 500.0)
    assert detector.detect(nodes) == []


def test_grid_snap_escalates_when_no_cell_fits():
    config = _config(canvas_width=100, canvas_height=100)
    detector = OverlapDetector(config)
    nodes = [_node("A", 50, 50, w=100, h=100), _node("B", 50, 50, w=100, h=100)]
    stats = resolve_grid_snap(nodes, detector.detect(nodes), config, detector)
    assert stats.fallbacks == 2
    assert [n.center for n in nodes] == [(50.0, 50.0), (50.0, 50.0)]


def test_spiral_moves_worst_node_to_first_free_point():
    config = _config()
    detector = OverlapDetector(config)
    nodes = [_node("A", 400, 300), _node("B", 420, 300)]
    stats = resolve_spiral(nodes, detector.detect(nodes), config, detector)

    assert stats.moved == 1
    assert stats.fallbacks == 0
    a, b = nodes
    assert b.center == (420.0, 300.0)
    assert a.x == pytest.approx(400.0, abs=1e-6)
    assert a.y == pytest.approx(360.0)


def test_spiral_fallback_offset_when_boxed_in():
    config = _config(canvas_width=200, canvas_height=200, separation_distance=0)
    detector = OverlapDetector(config)
    nodes = [_node("A", 100, 100, w=100, h=100), _node("B", 100, 100, w=100, h=100)]

    x, y, found = find_spiral_position(nodes[0], nodes, config, detector)
    assert not found
    assert (x, y) == (200.0, 200.0)

    stats = resolve_spiral(nodes, detector.detect(nodes), config, detector)
    assert stats.fallbacks >= 1
    for n in nodes:
        assert 50 <= n.x <= 150
        assert 50 <= n.y <= 150


def test_annealing_resolver_does_not_raise_energy():
    config = _config(resolver=ResolverStrategy.ANNEALING)
    nodes = [_node("A", 400, 300), _node("B", 410, 305), _node("C", 600, 300)]
    edges = [Edge("A", "B"), Edge("B", "C")]
    before = compute_energy(nodes, edges, 800, 600, config.annealing_params(), separation=10)

    resolver = CollisionResolver(config, rng=np.random.default_rng(3))
    overlaps = resolver.detector.detect(nodes)
    resolver.resolve(nodes, edges, overlaps)

    after = compute_energy(nodes, edges, 800, 600, config.annealing_params(), separation=10)
    assert after <= before


def test_resolver_noop_without_overlaps():
    config = _config()
    nodes = [_node("A", 100, 100), _node("B", 300, 100)]
    stats = CollisionResolver(config).resolve(nodes, [], [])
    assert stats.moved == 0
    assert [n.center for n in nodes] == [(100.0, 100.0), (300.0, 100.0)]
