from fastapi import APIRouter, HTTPException
import logging
import math
import time

# Absolute package imports keep the package context intact when uvicorn
# loads this module via the package path.
from backend.app.schemas.diagram import (LayoutRequest, LayoutResponse, PositionedNode, RoutedEdge,
                                         IterationRecord, QualityReport)
from backend.app.layout.impl.models import LayoutResult, LayoutValidationError
from backend.app.layout.impl.strategies import config_for_diagram_type
from backend.app.layout.zero_overlap_engine import ZeroOverlapEngine

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_response(result: LayoutResult) -> LayoutResponse:
    q = result.quality
    return LayoutResponse(
        nodes=[
            PositionedNode(id=n.id, label=n.label, x=round(n.x, 2), y=round(n.y, 2),
                           width=n.width, height=n.height)
            for n in result.nodes
        ],
        edges=[
            RoutedEdge(source=e.source, target=e.target, label=e.label,
                       points=[[round(px, 2), round(py, 2)] for px, py in e.points])
            for e in result.edges
        ],
        quality=QualityReport(
            overlapFreePercent=round(q.overlap_free_percent, 2),
            layoutEfficiency=round(q.layout_efficiency, 2),
            visualBalance=round(q.visual_balance, 2),
            readability=round(q.readability, 2),
            overallScore=round(q.overall_score, 2),
            improvements=q.improvements,
        ),
        iterations=[
            IterationRecord(iteration=it.iteration, overlapsBefore=it.overlaps_before,
                            overlapsAfter=it.overlaps_after, quality=round(it.quality, 2),
                            elapsed=round(it.elapsed, 4), action=it.action)
            for it in result.iterations
        ],
        outcome=result.outcome.value,
        strategy=result.strategy,
        success=result.success,
        overlapFree=result.overlap_free,
        remainingOverlaps=result.remaining_overlaps,
        fallbackPlacements=result.fallback_placements,
        processingTime=round(result.processing_time, 3),
        # JSON has no infinity
        metrics={k: (float(v) if math.isfinite(v) else None) for k, v in result.metrics.items()},
        warnings=result.warnings,
    )


@router.post("/generate", response_model=LayoutResponse)
async def generate_diagram_layout(request: LayoutRequest):
    """Generate an overlap-free layout for a diagram."""
    try:
        t0 = time.time()
        logger.info(
            "[layout] request received: nodes=%d, edges=%d, type=%s, resolver=%s",
            len(request.nodes), len(request.edges), request.diagramType, request.resolver
        )
        if request.config:
            logger.debug("[layout] config overrides: %s", request.config.model_dump(exclude_none=True))

        overrides = request.config.to_config_kwargs() if request.config else {}
        config = config_for_diagram_type(request.diagramType).with_overrides(
            resolver=request.resolver, **overrides)
        seed_layout = None
        if request.seedLayout:
            seed_layout = {
                "nodes": [n.to_engine() for n in request.seedLayout.nodes],
                "edges": [e.model_dump() for e in request.seedLayout.edges],
            }

        engine = ZeroOverlapEngine(config=config, seed=request.seed)
        result = await engine.run_async(
            [n.to_engine() for n in request.nodes],
            [e.model_dump() for e in request.edges],
            diagram_type=request.diagramType,
            seed_layout=seed_layout,
            strategy=request.strategy,
        )

        resp = _to_response(result)
        logger.info(
            "[layout] success: nodes=%d, time=%.2fs, outcome=%s, score=%.1f",
            len(resp.nodes), time.time() - t0, resp.outcome, resp.quality.overallScore
        )
        return resp
    except LayoutValidationError as e:
        logger.info("[layout] rejected: %s", str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("[layout] error: %s", str(e))
        raise HTTPException(status_code=500, detail=f"Layout error: {str(e)}")
