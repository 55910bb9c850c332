"""Data models for the layerfix engine."""

from .transform import (
    Fix,
    Issue,
    LayerResult,
    PerformanceRequest,
    PipelineMetadata,
    PipelineResult,
    Recommendation,
    Severity,
    TransformOptions,
    TransformRequest,
    UserTier,
)
from .analysis import (
    AstValidationReport,
    PerformanceAnalysis,
    PerformanceBottleneck,
    PerformanceMetrics,
    PerformanceOptimization,
)

__all__ = [
    "AstValidationReport",
    "Fix",
    "Issue",
    "LayerResult",
    "PerformanceAnalysis",
    "PerformanceBottleneck",
    "PerformanceMetrics",
    "PerformanceOptimization",
    "PerformanceRequest",
    "PipelineMetadata",
    "PipelineResult",
    "Recommendation",
    "Severity",
    "TransformOptions",
    "TransformRequest",
    "UserTier",
]
