"""
Transformation models (layer issues, fixes and pipeline results).

These models are the API surface between the engine and its callers
(HTTP routes, history persistence, webhook notifiers). They are created fresh
for every pipeline run and never mutated once handed back to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    """Severity level for detected issues."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UserTier(str, Enum):
    """Caller-supplied capability level."""

    FREE = "free"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class Issue(BaseModel):
    """A single problem detected by a layer."""

    type: str
    severity: Severity
    description: str
    layer: int

    # Optional detail for rules that match a named pattern / several sites
    pattern: Optional[str] = None
    count: Optional[int] = None


class Fix(BaseModel):
    """A committed, validated edit."""

    type: str
    description: str
    layer: int


class Recommendation(BaseModel):
    """Advice surfaced to the caller but never applied automatically."""

    type: str
    description: str
    priority: str = "medium"


LayerSelection = Union[List[int], str, None]


def check_layer_selection(value: LayerSelection) -> LayerSelection:
    if isinstance(value, str) and value not in ("auto", "all"):
        raise ValueError(f"layer_ids must be a list of ints, 'auto' or 'all' (got {value!r})")
    return value


class TransformOptions(BaseModel):
    """
    Options for one pipeline run.

    Frozen: the same instance is handed to every layer of a run.
    """

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    layer_ids: LayerSelection = None
    user_tier: UserTier = UserTier.FREE
    verbose: bool = False
    request_id: Optional[str] = None

    @field_validator("layer_ids")
    @classmethod
    def _check_layer_selection(cls, value: LayerSelection) -> LayerSelection:
        return check_layer_selection(value)

    @property
    def is_paid_tier(self) -> bool:
        return self.user_tier in (UserTier.PROFESSIONAL, UserTier.ENTERPRISE)

    def resolve_layer_ids(self, available: Sequence[int]) -> List[int]:
        """Resolve the selection against registered ids: ascending, unique, known ids only."""
        if self.layer_ids is None or isinstance(self.layer_ids, str):
            return sorted(set(available))
        known = set(available)
        return sorted({layer_id for layer_id in self.layer_ids if layer_id in known})


class LayerResult(BaseModel):
    """Outcome of one layer invocation. Owned by the layer that produced it."""

    layer_id: int
    success: bool = True
    transformed: str
    detected_issues: List[Issue] = Field(default_factory=list)
    applied_fixes: List[Fix] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    error: Optional[str] = None

    # Only set by the validation layer when the enhanced engine produced a score
    quality_score: Optional[float] = None


class PipelineMetadata(BaseModel):
    filename: str
    processing_time_ms: float = 0.0
    request_id: Optional[str] = None
    user_tier: UserTier = UserTier.FREE


class PipelineResult(BaseModel):
    """Aggregated result returned to the caller of the pipeline."""

    success: bool = True
    original: str
    transformed: str
    detected_issues: List[Issue] = Field(default_factory=list)
    applied_fixes: List[Fix] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    layers: List[LayerResult] = Field(default_factory=list)
    metadata: PipelineMetadata
    error: Optional[str] = None

    def issue_count(self) -> int:
        return len(self.detected_issues)

    def critical_issue_count(self) -> int:
        return sum(1 for issue in self.detected_issues if issue.severity == Severity.CRITICAL)

    def summary(self) -> str:
        """Get a human-readable summary of the run."""
        status = "✅ success" if self.success else f"❌ failed ({self.error})"
        return (
            f"{status}: {len(self.layers)} layer(s), {self.issue_count()} issue(s), "
            f"{len(self.applied_fixes)} fix(es) for {self.metadata.filename}"
        )


class TransformRequest(BaseModel):
    """Request body for POST /api/transform."""

    code: str
    filename: str
    dry_run: bool = False
    layer_ids: LayerSelection = None
    user_tier: UserTier = UserTier.FREE
    verbose: bool = False
    request_id: Optional[str] = None

    @field_validator("layer_ids")
    @classmethod
    def _check_layer_selection(cls, value: LayerSelection) -> LayerSelection:
        return check_layer_selection(value)

    def to_options(self) -> TransformOptions:
        return TransformOptions(
            dry_run=self.dry_run,
            layer_ids=self.layer_ids,
            user_tier=self.user_tier,
            verbose=self.verbose,
            request_id=self.request_id,
        )


class PerformanceRequest(BaseModel):
    """Request body for POST /api/performance."""

    code: str
    filename: str
