"""
Zero-overlap diagram layout package.
"""
from .impl import (Node, Edge, DiagramLayout, LayoutConfig, LayoutResult, SAParams,
                   ResolverStrategy, LayoutValidationError)
from .zero_overlap_engine import ZeroOverlapEngine, generate_layout
from .benchmark import BenchmarkRunner, BenchmarkCase, BENCHMARK_CASES

__all__ = [
    'Node',
    'Edge',
    'DiagramLayout',
    'LayoutConfig',
    'LayoutResult',
    'SAParams',
    'ResolverStrategy',
    'LayoutValidationError',
    'ZeroOverlapEngine',
    'generate_layout',
    'BenchmarkRunner',
    'BenchmarkCase',
    'BENCHMARK_CASES'
]
