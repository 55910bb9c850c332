"""Services for the layerfix engine."""

from .ast_cache import AstCache
from .ast_engine import EnhancedAstEngine
from .corruption_validator import CorruptionValidator
from .performance_optimizer import PerformanceOptimizer
from .pipeline_service import TransformPipeline, get_pipeline, run

__all__ = [
    "AstCache",
    "CorruptionValidator",
    "EnhancedAstEngine",
    "PerformanceOptimizer",
    "TransformPipeline",
    "get_pipeline",
    "run",
]
