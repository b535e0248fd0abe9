"""
Layout engine implementation package.
"""
from .models import (Node, Edge, DiagramLayout, LayoutConfig, LayoutResult, IterationResult,
                     OverlapRecord, QualityAssessment, ResolverStrategy, DetectionMode,
                     RankDirection, EngineState, LayoutOutcome, LayoutError,
                     LayoutValidationError, StrategyError)
from .sa_optimizer_impl import SAParams, run_sa
from .overlap_detector import OverlapDetector, detect_overlaps
from .collision_resolver import CollisionResolver
from .quality import QualityAssessor
from .strategies import (LayoutStrategy, HierarchicalStrategy, ForceDirectedStrategy,
                         SimulatedAnnealingStrategy, GridSnapStrategy, SpiralPlacementStrategy,
                         STRATEGIES, get_strategy, strategy_for_diagram_type)

__all__ = [
    'Node',
    'Edge',
    'DiagramLayout',
    'LayoutConfig',
    'LayoutResult',
    'IterationResult',
    'OverlapRecord',
    'QualityAssessment',
    'ResolverStrategy',
    'DetectionMode',
    'RankDirection',
    'EngineState',
    'LayoutOutcome',
    'LayoutError',
    'LayoutValidationError',
    'StrategyError',
    'SAParams',
    'run_sa',
    'OverlapDetector',
    'detect_overlaps',
    'CollisionResolver',
    'QualityAssessor',
    'LayoutStrategy',
    'HierarchicalStrategy',
    'ForceDirectedStrategy',
    'SimulatedAnnealingStrategy',
    'GridSnapStrategy',
    'SpiralPlacementStrategy',
    'STRATEGIES',
    'get_strategy',
    'strategy_for_diagram_type'
]
