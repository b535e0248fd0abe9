"""
Core data model for the zero-overlap layout engine.

Nodes and edges are plain dataclasses owned by a single layout request. The
engine copies caller input into these objects, mutates node positions in place
and hands the copies back in the result.
"""
from typing import List, Dict, Tuple, Optional, Any, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
import logging
import math

from .sa_optimizer_impl import SAParams

logger = logging.getLogger(__name__)

# ============================================================================
# ENUMS
# ============================================================================

class ResolverStrategy(str, Enum):
    """Collision resolution strategies"""
    FORCE_DIRECTED = "force_directed"
    GRID_SNAP = "grid_snap"
    SPIRAL_PLACEMENT = "spiral_placement"
    ANNEALING = "annealing"


class DetectionMode(str, Enum):
    """Overlap detection modes.

    STRICT always checks every pair, PERFORMANCE always goes through the
    spatial index, BALANCED switches to the index above a node count.
    """
    STRICT = "strict"
    BALANCED = "balanced"
    PERFORMANCE = "performance"


class RankDirection(str, Enum):
    TB = "TB"
    LR = "LR"


class EngineState(str, Enum):
    """Orchestrator states"""
    SEEDING = "seeding"
    DETECTING = "detecting"
    RESOLVING = "resolving"
    ASSESSING = "assessing"


class LayoutOutcome(str, Enum):
    """Terminal states of a layout run"""
    CONVERGED = "converged"
    THRESHOLD_MET = "threshold_met"
    BUDGET_EXHAUSTED = "budget_exhausted"

# ============================================================================
# ERRORS
# ============================================================================

class LayoutError(Exception):
    """Base class for layout engine errors."""


class LayoutValidationError(LayoutError, ValueError):
    """Invalid nodes, edges or configuration. Raised before any mutation."""


class StrategyError(LayoutError, RuntimeError):
    """A layout strategy could not produce a usable layout."""

# ============================================================================
# GRAPH ELEMENTS
# ============================================================================

@dataclass
class Node:
    id: str
    label: str
    width: float
    height: float
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def is_placed(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def center(self) -> Tuple[float, float]:
        return (float(self.x), float(self.y))

    @property
    def area(self) -> float:
        return self.width * self.height

    def move_to(self, x: float, y: float) -> 'Node':
        self.x = float(x)
        self.y = float(y)
        return self

    def copy(self) -> 'Node':
        return Node(id=self.id, label=self.label, width=self.width,
                    height=self.height, x=self.x, y=self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class Edge:
    source: str
    target: str
    label: Optional[str] = None
    points: List[Tuple[float, float]] = field(default_factory=list)

    def copy(self) -> 'Edge':
        return Edge(source=self.source, target=self.target, label=self.label,
                    points=list(self.points))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "points": [list(p) for p in self.points],
        }


@dataclass
class DiagramLayout:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def node_map(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def copy(self) -> 'DiagramLayout':
        return DiagramLayout(nodes=[n.copy() for n in self.nodes],
                             edges=[e.copy() for e in self.edges])

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.nodes if n.is_placed}

    def route_edges(self) -> 'DiagramLayout':
        """Recompute every edge polyline as a straight source-to-target segment.

        Edges whose endpoints are missing or unplaced get an empty polyline.
        """
        by_id = self.node_map()
        for edge in self.edges:
            src = by_id.get(edge.source)
            dst = by_id.get(edge.target)
            if src is None or dst is None or not src.is_placed or not dst.is_placed:
                logger.debug(f"Edge {edge.source}->{edge.target} references a missing node, leaving it unrouted")
                edge.points = []
                continue
            edge.points = [src.center, dst.center]
        return self

# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class LayoutConfig:
    """Per-request layout configuration. Immutable for the duration of a run."""
    canvas_width: float = 1920.0
    canvas_height: float = 1080.0
    node_width: float = 120.0
    node_height: float = 60.0
    separation_distance: float = 20.0
    max_iterations: int = 10
    resolver: ResolverStrategy = ResolverStrategy.FORCE_DIRECTED
    quality_threshold: float = 100.0
    time_budget: Optional[float] = None  # seconds of wall clock
    detection_mode: DetectionMode = DetectionMode.BALANCED
    spatial_index_threshold: int = 64
    # Force-directed resolution
    repulsion_strength: float = 0.1
    force_damping: float = 0.8
    # Grid snap
    grid_cell_size: float = 50.0
    grid_search_radius: int = 10
    # Spiral placement
    spiral_step: float = 30.0
    spiral_max_radius: float = 200.0
    spiral_angle_step: float = math.pi / 8
    spiral_fallback_offset: float = 100.0
    # Base strategies
    rank_direction: Optional[RankDirection] = None
    rank_separation: float = 50.0
    node_separation: float = 50.0
    target_edge_length: float = 150.0
    force_iterations: int = 300
    # Quality
    ideal_spacing: float = 150.0
    apply_final_enhancements: bool = False
    yield_every: int = 10
    annealing: SAParams = field(default_factory=SAParams)

    def __post_init__(self):
        # Accept plain strings for the enum fields
        if not isinstance(self.resolver, ResolverStrategy):
            object.__setattr__(self, "resolver", _coerce_enum(ResolverStrategy, self.resolver, "resolver"))
        if not isinstance(self.detection_mode, DetectionMode):
            object.__setattr__(self, "detection_mode", _coerce_enum(DetectionMode, self.detection_mode, "detection_mode"))
        if self.rank_direction is not None and not isinstance(self.rank_direction, RankDirection):
            object.__setattr__(self, "rank_direction", _coerce_enum(RankDirection, self.rank_direction, "rank_direction"))

    def validate(self) -> 'LayoutConfig':
        positive = {
            "canvas_width": self.canvas_width,
            "canvas_height": self.canvas_height,
            "node_width": self.node_width,
            "node_height": self.node_height,
            "grid_cell_size": self.grid_cell_size,
            "spiral_step": self.spiral_step,
            "spiral_angle_step": self.spiral_angle_step,
            "target_edge_length": self.target_edge_length,
            "ideal_spacing": self.ideal_spacing,
        }
        for name, value in positive.items():
            if not _is_finite(value) or value <= 0:
                raise LayoutValidationError(f"{name} must be a finite number > 0, got {value!r}")
        non_negative = {
            "separation_distance": self.separation_distance,
            "repulsion_strength": self.repulsion_strength,
            "spiral_max_radius": self.spiral_max_radius,
            "spiral_fallback_offset": self.spiral_fallback_offset,
            "rank_separation": self.rank_separation,
            "node_separation": self.node_separation,
        }
        for name, value in non_negative.items():
            if not _is_finite(value) or value < 0:
                raise LayoutValidationError(f"{name} must be a finite number >= 0, got {value!r}")
        if self.max_iterations < 0:
            raise LayoutValidationError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.grid_search_radius < 1:
            raise LayoutValidationError(f"grid_search_radius must be >= 1, got {self.grid_search_radius}")
        if self.yield_every < 1:
            raise LayoutValidationError(f"yield_every must be >= 1, got {self.yield_every}")
        if not 0.0 < self.force_damping <= 1.0:
            raise LayoutValidationError(f"force_damping must be in (0, 1], got {self.force_damping}")
        if not _is_finite(self.quality_threshold) or not 0.0 <= self.quality_threshold <= 100.0:
            raise LayoutValidationError(f"quality_threshold must be in [0, 100], got {self.quality_threshold}")
        if self.time_budget is not None and (not _is_finite(self.time_budget) or self.time_budget <= 0):
            raise LayoutValidationError(f"time_budget must be > 0 seconds, got {self.time_budget}")
        try:
            self.annealing.validate()
        except ValueError as e:
            raise LayoutValidationError(f"annealing: {e}") from e
        return self

    def annealing_params(self) -> SAParams:
        """Annealing parameters with the edge length target taken from this config."""
        return replace(self.annealing, target_edge_length=self.target_edge_length)

    def with_overrides(self, **overrides: Any) -> 'LayoutConfig':
        """Return a validated copy with the given fields replaced (None values ignored)."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise LayoutValidationError(f"Unknown config fields: {sorted(unknown)}")
        try:
            return replace(self, **overrides).validate()
        except ValueError as e:
            if isinstance(e, LayoutValidationError):
                raise
            raise LayoutValidationError(str(e)) from e

# ============================================================================
# RESULTS
# ============================================================================

@dataclass
class OverlapRecord:
    node_a: str
    node_b: str
    area: float


@dataclass
class IterationResult:
    iteration: int
    overlaps_before: int
    overlaps_after: int
    quality: float
    elapsed: float
    action: str

    @property
    def overlaps_resolved(self) -> int:
        return self.overlaps_before - self.overlaps_after


@dataclass
class QualityAssessment:
    overlap_free_percent: float
    layout_efficiency: float
    visual_balance: float
    readability: float
    overall_score: float
    improvements: List[str] = field(default_factory=list)


@dataclass
class LayoutResult:
    layout: DiagramLayout
    quality: QualityAssessment
    iterations: List[IterationResult]
    outcome: LayoutOutcome
    strategy: str
    processing_time: float
    success: bool = True
    overlap_free: bool = False
    remaining_overlaps: int = 0
    fallback_placements: int = 0
    warnings: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    state_trace: List[EngineState] = field(default_factory=list)

    @property
    def nodes(self) -> List[Node]:
        return self.layout.nodes

    @property
    def edges(self) -> List[Edge]:
        return self.layout.edges

# ============================================================================
# INPUT COERCION & VALIDATION
# ============================================================================

def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _coerce_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise LayoutValidationError(f"Unknown {name} {value!r} (expected one of: {allowed})")


def _node_from_dict(data: Dict[str, Any], config: LayoutConfig) -> Node:
    if "id" not in data:
        raise LayoutValidationError(f"Node descriptor without id: {data!r}")
    size_hint = data.get("size_hint") or data.get("sizeHint") or {}
    width = data.get("width", size_hint.get("width"))
    height = data.get("height", size_hint.get("height"))
    return Node(
        id=str(data["id"]),
        label=str(data.get("label", data["id"])),
        width=config.node_width if width is None else width,
        height=config.node_height if height is None else height,
        x=data.get("x"),
        y=data.get("y"),
    )


def _edge_from_dict(data: Dict[str, Any]) -> Edge:
    try:
        return Edge(source=str(data["source"]), target=str(data["target"]), label=data.get("label"))
    except KeyError as e:
        raise LayoutValidationError(f"Edge descriptor missing {e.args[0]!r}: {data!r}")


def coerce_nodes(nodes: Iterable[Any], config: LayoutConfig) -> List[Node]:
    """Copy caller nodes (Node objects or dicts) into request-owned Node objects."""
    result = []
    for node in nodes:
        if isinstance(node, Node):
            result.append(node.copy())
        elif isinstance(node, dict):
            result.append(_node_from_dict(node, config))
        else:
            raise LayoutValidationError(f"Unsupported node descriptor: {node!r}")
    return result


def coerce_edges(edges: Iterable[Any]) -> List[Edge]:
    result = []
    for edge in edges:
        if isinstance(edge, Edge):
            result.append(edge.copy())
        elif isinstance(edge, dict):
            result.append(_edge_from_dict(edge))
        else:
            raise LayoutValidationError(f"Unsupported edge descriptor: {edge!r}")
    return result


def validate_nodes(nodes: List[Node]) -> None:
    """Raise LayoutValidationError for bad sizes, positions or duplicate ids."""
    seen = set()
    for node in nodes:
        if node.id in seen:
            raise LayoutValidationError(f"Duplicate node id: {node.id!r}")
        seen.add(node.id)
        for dim in ("width", "height"):
            value = getattr(node, dim)
            if isinstance(value, bool) or not _is_finite(value) or float(value) <= 0:
                raise LayoutValidationError(f"Node {node.id!r} has invalid {dim}: {value!r}")
        for coord in ("x", "y"):
            value = getattr(node, coord)
            if value is not None and not _is_finite(value):
                raise LayoutValidationError(f"Node {node.id!r} has non-finite {coord}: {value!r}")
        node.width = float(node.width)
        node.height = float(node.height)
        if node.x is not None:
            node.x = float(node.x)
        if node.y is not None:
            node.y = float(node.y)
