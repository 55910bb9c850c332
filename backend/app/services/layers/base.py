"""
Layer framework for the transformation pipeline.

Provides the base class and registry for the numbered layers. Each layer
is a pure function of ``(code, filename, options) -> LayerResult``: it may
detect issues, and (outside of dry runs) rewrite the text it was handed.

Layers are registered via decorator:

    @LayerRegistry.register
    class MyLayer(BaseLayer):
        layer_id = 7
        ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from ...models.transform import (
    Fix,
    Issue,
    LayerResult,
    Recommendation,
    Severity,
    TransformOptions,
)
from ..corruption_validator import CorruptionValidator

logger = logging.getLogger(__name__)


class LayerRun:
    """
    Mutable scratchpad for one layer invocation.

    Collects issues/fixes/recommendations and owns the current text. Edits are
    ignored in dry-run mode and a Fix is only recorded when the text changed.
    """

    def __init__(self, layer_id: int, code: str, options: TransformOptions):
        self.layer_id = layer_id
        self.original = code
        self.code = code
        self.options = options
        self.issues: List[Issue] = []
        self.fixes: List[Fix] = []
        self.recommendations: List[Recommendation] = []

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    def issue(
        self,
        issue_type: str,
        severity: Severity,
        description: str,
        pattern: Optional[str] = None,
        count: Optional[int] = None,
    ) -> None:
        self.issues.append(
            Issue(
                type=issue_type,
                severity=severity,
                description=description,
                layer=self.layer_id,
                pattern=pattern,
                count=count,
            )
        )

    def recommend(self, rec_type: str, description: str, priority: str = "medium") -> None:
        self.recommendations.append(Recommendation(type=rec_type, description=description, priority=priority))

    def apply(self, fix_type: str, description: str, edit: Callable[[str], str]) -> bool:
        """Apply ``edit`` to the current text; record a Fix if it changed anything."""
        if self.dry_run:
            return False
        updated = edit(self.code)
        if updated == self.code:
            return False
        self.code = updated
        self.fixes.append(Fix(type=fix_type, description=description, layer=self.layer_id))
        return True

    def apply_validated(
        self,
        fix_type: str,
        description: str,
        edit: Callable[[str], str],
        validator: CorruptionValidator,
    ) -> bool:
        """Like :meth:`apply` but the candidate must pass the corruption validator."""
        if self.dry_run:
            return False
        updated, accepted = validator.attempt(self.code, edit, label=fix_type)
        if not accepted:
            return False
        self.code = updated
        self.fixes.append(Fix(type=fix_type, description=description, layer=self.layer_id))
        return True

    def record_fix(self, fix_type: str, description: str) -> None:
        """Record a Fix for an edit already committed to ``self.code``."""
        self.fixes.append(Fix(type=fix_type, description=description, layer=self.layer_id))

    def result(self, success: bool = True, error: Optional[str] = None, **extra) -> LayerResult:
        return LayerResult(
            layer_id=self.layer_id,
            success=success,
            transformed=self.original if self.dry_run else self.code,
            detected_issues=self.issues,
            applied_fixes=self.fixes,
            recommendations=self.recommendations,
            error=error,
            **extra,
        )


class BaseLayer(ABC):
    """
    Base class for all layers.

    Subclasses must implement apply() and set the metadata attributes.
    """

    # Metadata - override in subclasses
    layer_id: int = 0
    name: str = "base_layer"
    description: str = "Base layer (override in subclass)"

    @abstractmethod
    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        """
        Run the layer against ``code``.

        Args:
            code: Current text (output of the previous successful layer)
            filename: Name of the file being processed (dispatch key)
            options: Immutable options for the whole pipeline run

        Returns:
            LayerResult; ``transformed`` equals ``code`` in dry-run mode
        """

    def start(self, code: str, options: TransformOptions) -> LayerRun:
        return LayerRun(self.layer_id, code, options)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(layer_id={self.layer_id}, name={self.name})>"


class LayerRegistry:
    """
    Registry mapping layer ids to layer classes.

    The pipeline resolves ids through :meth:`build`, which returns a plain
    ``{layer_id: layer}`` mapping; callers may also hand the pipeline their own
    mapping (e.g. in tests).
    """

    # Class-level storage for registered layers
    _layers: Dict[int, type[BaseLayer]] = {}

    @classmethod
    def register(cls, layer_class: type[BaseLayer]) -> type[BaseLayer]:
        """
        Decorator to register a layer class.

        Args:
            layer_class: The layer class to register

        Returns:
            The same layer class (for decorator chaining)
        """
        if not issubclass(layer_class, BaseLayer):
            raise TypeError(f"{layer_class} must inherit from BaseLayer")

        layer_id = layer_class.layer_id
        existing = cls._layers.get(layer_id)
        if existing is not None and existing is not layer_class:
            logger.warning(f"Layer {layer_id} re-registered: {existing.__name__} -> {layer_class.__name__}")

        cls._layers[layer_id] = layer_class
        logger.debug(f"Registered layer {layer_id}: {layer_class.__name__}")
        return layer_class

    @classmethod
    def available_ids(cls) -> List[int]:
        return sorted(cls._layers)

    @classmethod
    def get_layer(cls, layer_id: int) -> Optional[BaseLayer]:
        layer_class = cls._layers.get(layer_id)
        return layer_class() if layer_class else None

    @classmethod
    def build(cls) -> Dict[int, BaseLayer]:
        """Instantiate every registered layer."""
        return {layer_id: layer_class() for layer_id, layer_class in sorted(cls._layers.items())}

    @classmethod
    def describe(cls) -> List[Dict[str, object]]:
        return [
            {"layer_id": layer_id, "name": layer_class.name, "description": layer_class.description}
            for layer_id, layer_class in sorted(cls._layers.items())
        ]
