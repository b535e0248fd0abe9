"""
Standard cases for benchmarking the layout engine.
Each case provides a graph, a diagram type and a canvas size.
"""
from typing import Dict, List, Tuple, Optional
import math


class BenchmarkCase:
    def __init__(self,
                 name: str,
                 nodes: List[Dict],
                 edges: List[Dict],
                 diagram_type: str = "flow",
                 canvas: Tuple[float, float] = (1920.0, 1080.0)):
        self.name = name
        self.nodes = nodes
        self.edges = edges
        self.diagram_type = diagram_type
        self.canvas = canvas

    def get_layout_input(self) -> Dict:
        """Convert to engine input format."""
        return {
            'nodes': [dict(n) for n in self.nodes],
            'edges': [dict(e) for e in self.edges],
            'diagram_type': self.diagram_type
        }


def _node(nid: str, width: float = 120, height: float = 60,
          x: Optional[float] = None, y: Optional[float] = None) -> Dict:
    node = {'id': nid, 'label': nid.replace('_', ' ').title(), 'width': width, 'height': height}
    if x is not None:
        node['x'] = x
        node['y'] = y
    return node


def create_chain_case() -> BenchmarkCase:
    """Linear process with 8 steps."""
    ids = [f'step_{i}' for i in range(8)]
    nodes = [_node(i) for i in ids]
    edges = [{'source': a, 'target': b} for a, b in zip(ids, ids[1:])]
    return BenchmarkCase('chain_8', nodes, edges, 'flow')


def create_tree_case() -> BenchmarkCase:
    """Binary tree with 15 nodes."""
    nodes = [_node(f'n{i}', width=100, height=50) for i in range(15)]
    edges = [{'source': f'n{(i - 1) // 2}', 'target': f'n{i}'} for i in range(1, 15)]
    return BenchmarkCase('tree_15', nodes, edges, 'tree')


def create_dense_cluster_case() -> BenchmarkCase:
    """12 nodes dropped almost on top of each other in the canvas center."""
    nodes = []
    for i in range(12):
        angle = i * 2 * math.pi / 12
        nodes.append(_node(f'c{i}', width=90 + (i % 3) * 20, height=50,
                           x=960 + 15 * math.cos(angle), y=540 + 15 * math.sin(angle)))
    edges = [{'source': f'c{i}', 'target': f'c{(i + 5) % 12}'} for i in range(12)]
    return BenchmarkCase('dense_cluster_12', nodes, edges, 'concept')


def create_cycle_case() -> BenchmarkCase:
    """Closed cycle of 10 stages."""
    nodes = [_node(f'stage_{i}', width=110, height=55) for i in range(10)]
    edges = [{'source': f'stage_{i}', 'target': f'stage_{(i + 1) % 10}'} for i in range(10)]
    return BenchmarkCase('cycle_10', nodes, edges, 'cycle')


def create_matrix_case() -> BenchmarkCase:
    """4x4 comparison grid on a small canvas."""
    nodes = [_node(f'cell_{r}_{c}', width=80, height=40) for r in range(4) for c in range(4)]
    edges = []
    return BenchmarkCase('matrix_16', nodes, edges, 'matrix', canvas=(1280.0, 720.0))


BENCHMARK_CASES = [
    create_chain_case(),
    create_tree_case(),
    create_dense_cluster_case(),
    create_cycle_case(),
    create_matrix_case()
]
