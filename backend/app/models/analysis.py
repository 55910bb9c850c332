"""
Analysis models for the reporting-only engines.

- Performance analysis (static complexity metrics, bottlenecks, optimizations)
- Enhanced AST validation report consumed by the validation layer
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .transform import Issue, Recommendation


class BottleneckType(str, Enum):
    EXPENSIVE_RENDER = "expensive-render"
    LARGE_BUNDLE = "large-bundle"
    MEMORY_LEAK = "memory-leak"
    UNNECESSARY_RE_RENDERS = "unnecessary-re-renders"


class OptimizationType(str, Enum):
    MEMOIZATION = "memoization"
    LAZY_LOADING = "lazy-loading"
    CODE_SPLITTING = "code-splitting"
    VIRTUALIZATION = "virtualization"
    DEBOUNCING = "debouncing"


class PerformanceMetrics(BaseModel):
    """Static estimates derived from the syntax tree (not measurements)."""

    render_time: float = Field(default=0.0, description="Estimated render cost in ms")
    bundle_size: float = Field(default=0.0, description="Estimated bundle contribution in KB")
    memory_usage: float = Field(default=0.0, description="Estimated memory footprint in KB")
    re_render_count: int = Field(default=0, description="Number of state hooks that may trigger re-renders")


class PerformanceBottleneck(BaseModel):
    type: BottleneckType
    component: str
    severity: str
    description: str
    impact: float


class PerformanceOptimization(BaseModel):
    type: OptimizationType
    component: str
    description: str
    benefit: float
    effort: str
    code_example: Optional[str] = None


class PerformanceAnalysis(BaseModel):
    """Full report returned by the performance optimizer."""

    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    bottlenecks: List[PerformanceBottleneck] = Field(default_factory=list)
    optimizations: List[PerformanceOptimization] = Field(default_factory=list)
    heavy_imports: List[str] = Field(default_factory=list)


class AstValidationReport(BaseModel):
    """Result of the enhanced (tree-sitter) validation pass."""

    language: str
    quality_score: float = 100.0
    syntax_error_lines: List[int] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    performance: Optional[PerformanceAnalysis] = None
