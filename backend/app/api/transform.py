"""
API endpoints for running the layer pipeline.

Thin wrappers: requests are turned into TransformOptions and handed to the
shared pipeline. Pipeline failures are data (``success=false`` with an
``error``), so they are returned with status 200.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter

from ..models.analysis import PerformanceAnalysis
from ..models.transform import PerformanceRequest, PipelineResult, TransformRequest
from ..services.layers import LayerRegistry
from ..services.pipeline_service import get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/transform", response_model=PipelineResult)
def transform(request: TransformRequest):
    """
    Run the selected layers over one file.

    Args:
        request: Code, filename and run options

    Returns:
        PipelineResult with the transformed text and the issue/fix ledger
    """
    logger.info(f"Transform request for {request.filename} (dry_run={request.dry_run}, tier={request.user_tier.value})")
    return get_pipeline().run(request.code, request.filename, options=request.to_options())


@router.post("/performance", response_model=PerformanceAnalysis)
def analyze_performance(request: PerformanceRequest):
    """Static performance report (no rewrite). Unsupported file types return an empty report."""
    return get_pipeline().performance_engine().analyze_performance(request.code, request.filename)


@router.get("/layers")
async def list_layers() -> List[Dict[str, Any]]:
    """List registered layers in execution order."""
    return LayerRegistry.describe()
