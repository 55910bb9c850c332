"""
Pipeline Service - runs the numbered layers over one file.

Layers execute in ascending id order, each receiving the previous layer's
output. The first failing layer stops the run; results from the layers that
already succeeded are kept. Nothing here performs I/O: persisting results is
up to the caller.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Dict, List, Optional

from ..models.transform import (
    Fix,
    Issue,
    LayerResult,
    LayerSelection,
    PipelineMetadata,
    PipelineResult,
    Recommendation,
    TransformOptions,
)
from .ast_cache import AstCache
from .ast_engine import EnhancedAstEngine
from .layers import BaseLayer, LayerRegistry, ValidationLayer

logger = logging.getLogger(__name__)


class TransformPipeline:
    """
    Orchestrates one or more layer runs.

    Args:
        layers: ``{layer_id: layer}`` map (default: every registered layer)
        cache: Optional AstCache handed to the validation layer's engine
    """

    def __init__(self, layers: Optional[Dict[int, BaseLayer]] = None, cache: Optional[AstCache] = None):
        self.cache = cache
        self.engine = EnhancedAstEngine(cache=cache)
        if layers is None:
            layers = LayerRegistry.build()
            if ValidationLayer.layer_id in layers:
                layers[ValidationLayer.layer_id] = ValidationLayer(engine=self.engine)
        self.layers = layers

    def available_ids(self) -> List[int]:
        return sorted(self.layers)

    def performance_engine(self) -> EnhancedAstEngine:
        return self.engine

    def run(
        self,
        code: str,
        filename: str,
        layer_ids: LayerSelection = None,
        options: Optional[TransformOptions] = None,
    ) -> PipelineResult:
        """
        Run the selected layers over ``code``.

        Args:
            code: Source text
            filename: File name; its extension decides which rules may fire
            layer_ids: Overrides ``options.layer_ids`` when given
            options: Run options (default: TransformOptions())

        Returns:
            PipelineResult; errors are reported in ``error``, never raised
        """
        start_time = time.time()
        options = options or TransformOptions()
        updates = {}
        if layer_ids is not None:
            updates["layer_ids"] = layer_ids
        if options.request_id is None:
            updates["request_id"] = uuid.uuid4().hex
        if updates:
            options = options.model_copy(update=updates)

        layers: List[LayerResult] = []
        issues: List[Issue] = []
        fixes: List[Fix] = []
        recommendations: List[Recommendation] = []
        current = code
        success = True
        error: Optional[str] = None

        if filename.lower().endswith(".json"):
            try:
                json.loads(code)
            except ValueError as e:
                success = False
                error = f"JSON parsing error: {e}"
                logger.warning(f"[{options.request_id}] {filename}: {error}")

        if success:
            for layer_id in options.resolve_layer_ids(self.available_ids()):
                result = self._run_layer(layer_id, current, filename, options)
                layers.append(result)

                if not result.success:
                    success = False
                    error = result.error
                    logger.warning(f"[{options.request_id}] Layer {layer_id} failed on {filename}: {error}")
                    break

                current = result.transformed
                issues.extend(result.detected_issues)
                fixes.extend(result.applied_fixes)
                recommendations.extend(result.recommendations)
                logger.debug(
                    f"[{options.request_id}] Layer {layer_id}: "
                    f"{len(result.detected_issues)} issue(s), {len(result.applied_fixes)} fix(es)"
                )

        processing_time_ms = (time.time() - start_time) * 1000
        result = PipelineResult(
            success=success,
            original=code,
            transformed=code if options.dry_run else current,
            detected_issues=issues,
            applied_fixes=fixes,
            recommendations=recommendations,
            layers=layers,
            metadata=PipelineMetadata(
                filename=filename,
                processing_time_ms=processing_time_ms,
                request_id=options.request_id,
                user_tier=options.user_tier,
            ),
            error=error,
        )
        logger.info(f"[{options.request_id}] {result.summary()} in {processing_time_ms:.1f}ms")
        return result

    def _run_layer(self, layer_id: int, code: str, filename: str, options: TransformOptions) -> LayerResult:
        layer = self.layers[layer_id]
        try:
            return layer.apply(code, filename, options)
        except Exception as e:
            logger.exception(f"Unexpected error in layer {layer_id} ({layer.name})")
            return LayerResult(
                layer_id=layer_id,
                success=False,
                transformed=code,
                error=f"Layer {layer_id} failed: {e}",
            )


_default_pipeline: Optional[TransformPipeline] = None


def get_pipeline() -> TransformPipeline:
    """Process-wide pipeline over the registered layers."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = TransformPipeline(cache=AstCache())
    return _default_pipeline


def run(
    code: str,
    filename: str,
    dry_run: bool = False,
    layer_ids: LayerSelection = None,
    options: Optional[TransformOptions] = None,
) -> PipelineResult:
    """Convenience entry point: ``run(code, filename, dry_run, layer_ids, options)``."""
    options = options or TransformOptions()
    if dry_run and not options.dry_run:
        options = options.model_copy(update={"dry_run": True})
    return get_pipeline().run(code, filename, layer_ids=layer_ids, options=options)
