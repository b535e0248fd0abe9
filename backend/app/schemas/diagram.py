from typing import List, Dict, Optional, Any
from pydantic import BaseModel, Field, field_validator


class SizeHint(BaseModel):
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)


class NodeDescriptor(BaseModel):
    """Node as delivered by the content analysis step"""
    id: str
    label: str = ""
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    sizeHint: Optional[SizeHint] = None
    x: Optional[float] = None
    y: Optional[float] = None

    def to_engine(self) -> Dict[str, Any]:
        hint = self.sizeHint or SizeHint()
        return {
            "id": self.id,
            "label": self.label or self.id,
            "width": self.width if self.width is not None else hint.width,
            "height": self.height if self.height is not None else hint.height,
            "x": self.x,
            "y": self.y,
        }


class EdgeDescriptor(BaseModel):
    source: str
    target: str
    label: Optional[str] = None


class SeedLayout(BaseModel):
    nodes: List[NodeDescriptor] = []
    edges: List[EdgeDescriptor] = []


class LayoutOverrides(BaseModel):
    """Optional LayoutConfig overrides; unset fields keep the diagram type defaults"""
    canvasWidth: Optional[float] = Field(None, gt=0)
    canvasHeight: Optional[float] = Field(None, gt=0)
    nodeWidth: Optional[float] = Field(None, gt=0)
    nodeHeight: Optional[float] = Field(None, gt=0)
    separationDistance: Optional[float] = Field(None, ge=0)
    maxIterations: Optional[int] = Field(None, ge=0)
    qualityThreshold: Optional[float] = Field(None, ge=0, le=100)
    timeBudget: Optional[float] = Field(None, gt=0)
    detectionMode: Optional[str] = None
    rankDirection: Optional[str] = None

    def to_config_kwargs(self) -> Dict[str, Any]:
        return {
            "canvas_width": self.canvasWidth,
            "canvas_height": self.canvasHeight,
            "node_width": self.nodeWidth,
            "node_height": self.nodeHeight,
            "separation_distance": self.separationDistance,
            "max_iterations": self.maxIterations,
            "quality_threshold": self.qualityThreshold,
            "time_budget": self.timeBudget,
            "detection_mode": self.detectionMode,
            "rank_direction": self.rankDirection,
        }


class LayoutRequest(BaseModel):
    """Layout request"""
    nodes: List[NodeDescriptor]
    edges: List[EdgeDescriptor] = []
    diagramType: str = "flow"
    resolver: str = "force_directed"
    strategy: Optional[str] = None
    config: Optional[LayoutOverrides] = None
    seedLayout: Optional[SeedLayout] = None
    seed: Optional[int] = None

    @field_validator('diagramType')
    @classmethod
    def normalize_diagram_type(cls, v: str) -> str:
        return v.lower().strip().replace('-', '_') if isinstance(v, str) else v

    @field_validator('resolver')
    @classmethod
    def normalize_resolver(cls, v: str) -> str:
        return v.lower().strip().replace('-', '_') if isinstance(v, str) else v


class PositionedNode(BaseModel):
    id: str
    label: str
    x: float
    y: float
    width: float
    height: float


class RoutedEdge(BaseModel):
    source: str
    target: str
    label: Optional[str] = None
    points: List[List[float]] = []


class IterationRecord(BaseModel):
    iteration: int
    overlapsBefore: int
    overlapsAfter: int
    quality: float
    elapsed: float
    action: str


class QualityReport(BaseModel):
    overlapFreePercent: float
    layoutEfficiency: float
    visualBalance: float
    readability: float
    overallScore: float = Field(..., ge=0, le=100)
    improvements: List[str] = []


class LayoutResponse(BaseModel):
    """Layout response"""
    nodes: List[PositionedNode]
    edges: List[RoutedEdge]
    quality: QualityReport
    iterations: List[IterationRecord]
    outcome: str
    strategy: str
    success: bool
    overlapFree: bool
    remainingOverlaps: int = 0
    fallbackPlacements: int = 0
    processingTime: float = 0.0
    metrics: Dict[str, Optional[float]] = {}
    warnings: List[str] = []
