"""
Tests for pairwise overlap detection.
"""
import numpy as np
import pytest
from backend.app.layout.impl.models import Node, LayoutConfig, DetectionMode
from backend.app.layout.impl.overlap_detector import OverlapDetector, detect_overlaps


def _square(nid, x, y, size=50):
    return Node(id=nid, label=nid, width=size, height=size, x=x, y=y)


def test_single_overlap_area():
    nodes = [_square("A", 0, 0), _square("B", 40, 0), _square("C", 500, 500)]
    records = detect_overlaps(nodes, separation=10)
    assert len(records) == 1
    rec = records[0]
    assert (rec.node_a, rec.node_b) == ("A", "B")
    assert pytest.approx(rec.area) == 20 * 60


def test_sorted_by_severity():
    nodes = [_square("A", 100, 100), _square("B", 120, 100), _square("C", 100, 150)]
    records = detect_overlaps(nodes, separation=10)
    assert [(r.node_a, r.node_b) for r in records] == [("A", "B"), ("A", "C"), ("B", "C")]
    assert [r.area for r in records] == pytest.approx([2400, 600, 400])


def test_gap_equal_to_separation_is_not_overlap():
    # 50 + 10 = 60px between centers on x
    nodes = [_square("A", 0, 0), _square("B", 60, 0)]
    assert detect_overlaps(nodes, separation=10) == []
    assert len(detect_overlaps(nodes, separation=10.5)) == 1


def test_unplaced_nodes_rejected():
    nodes = [_square("A", 0, 0), Node(id="B", label="B", width=10, height=10)]
    with pytest.raises(ValueError):
        detect_overlaps(nodes, separation=0)


def test_spatial_index_matches_exhaustive_scan():
    rng = np.random.default_rng(7)
    nodes = [
        Node(id=f"n{i}", label="", width=float(rng.uniform(20, 120)), height=float(rng.uniform(20, 80)),
             x=float(rng.uniform(-200, 800)), y=float(rng.uniform(-100, 600)))
        for i in range(120)
    ]
    exhaustive = detect_overlaps(nodes, separation=15)
    indexed = detect_overlaps(nodes, separation=15, use_spatial_index=True)
    assert len(exhaustive) > 0
    assert indexed == exhaustive


def test_detection_modes_agree():
    nodes = [_square(f"n{i}", (i % 5) * 45, (i // 5) * 45) for i in range(20)]
    results = []
    for mode in DetectionMode:
        detector = OverlapDetector(LayoutConfig(separation_distance=5, detection_mode=mode))
        results.append(detector.detect(nodes))
    assert results[0] == results[1] == results[2]


def test_overlap_free_percent():
    detector = OverlapDetector(LayoutConfig(separation_distance=10))
    nodes = [_square("A", 0, 0), _square("B", 40, 0), _square("C", 500, 500)]
    assert pytest.approx(detector.overlap_free_percent(nodes)) == 2 / 3 * 100
    assert detector.overlap_free_percent(nodes[:1]) == 100.0
    assert detector.overlap_free_percent([]) == 100.0


def test_collides_with_candidate_position():
    detector = OverlapDetector(LayoutConfig(separation_distance=10))
    a, b = _square("A", 0, 0), _square("B", 100, 0)
    assert detector.collides(a, [a, b]) is False
    assert detector.collides(a, [a, b], x=50, y=0) is True
