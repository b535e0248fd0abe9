"""
Layout quality assessment.
"""
from typing import List, Optional
import logging
import math
from .models import Node, LayoutConfig, QualityAssessment
from .overlap_detector import OverlapDetector
from ...utils import geometry_utils as gu

logger = logging.getLogger(__name__)

# Sub-score weights, overlap freedom dominates
W_OVERLAP = 0.5
W_EFFICIENCY = 0.2
W_BALANCE = 0.15
W_READABILITY = 0.15

SUGGESTION_THRESHOLDS = [
    ("overlap_free_percent", 100.0, "Eliminate remaining overlaps"),
    ("layout_efficiency", 70.0, "Improve space utilization"),
    ("visual_balance", 80.0, "Better visual distribution"),
    ("readability", 85.0, "Increase node separation"),
]


def layout_efficiency(nodes: List[Node]) -> float:
    """Node area relative to the bounding box area, scaled x2 and capped at 100."""
    if not nodes:
        return 100.0
    min_x, min_y, max_x, max_y = gu.layout_bounds(
        [gu.node_bounds(n.x, n.y, n.width, n.height) for n in nodes])
    bbox_area = (max_x - min_x) * (max_y - min_y)
    if bbox_area <= 0:
        return 100.0
    total = sum(n.area for n in nodes)
    return min(100.0, total / bbox_area * 100.0 * 2.0)


def visual_balance(nodes: List[Node], config: LayoutConfig) -> float:
    """100 minus the centroid's distance from the canvas center, as a share of the half-diagonal."""
    if not nodes:
        return 100.0
    cx, cy = gu.calculate_centroid([n.center for n in nodes])
    center = (config.canvas_width / 2.0, config.canvas_height / 2.0)
    max_dev = math.hypot(center[0], center[1])
    return max(0.0, 100.0 - gu.distance((cx, cy), center) / max_dev * 100.0)


def readability(nodes: List[Node], config: LayoutConfig) -> float:
    """Average pairwise center distance relative to the ideal spacing, capped at 100."""
    if len(nodes) < 2:
        return 100.0
    avg = gu.mean_pairwise_distance([n.center for n in nodes])
    return min(100.0, avg / config.ideal_spacing * 100.0)


class QualityAssessor:
    """Scores a finished layout and suggests improvements."""

    def __init__(self, config: LayoutConfig, detector: Optional[OverlapDetector] = None):
        self.config = config
        self.detector = detector or OverlapDetector(config)

    def assess(self, nodes: List[Node], overlap_count: Optional[int] = None) -> QualityAssessment:
        overlap_free = self.detector.overlap_free_percent(nodes, overlap_count)
        efficiency = layout_efficiency(nodes)
        balance = visual_balance(nodes, self.config)
        read = readability(nodes, self.config)
        overall = (W_OVERLAP * overlap_free + W_EFFICIENCY * efficiency +
                   W_BALANCE * balance + W_READABILITY * read)

        scores = {
            "overlap_free_percent": overlap_free,
            "layout_efficiency": efficiency,
            "visual_balance": balance,
            "readability": read,
        }
        improvements = [text for key, threshold, text in SUGGESTION_THRESHOLDS if scores[key] < threshold]

        logger.debug(f"Quality: overlap-free={overlap_free:.1f}% efficiency={efficiency:.1f} "
                     f"balance={balance:.1f} readability={read:.1f} overall={overall:.1f}")
        return QualityAssessment(
            overlap_free_percent=overlap_free,
            layout_efficiency=efficiency,
            visual_balance=balance,
            readability=read,
            overall_score=overall,
            improvements=improvements,
        )
