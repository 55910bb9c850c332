"""
Tests for the layer pipeline (orchestration, dry run, failure handling).

Tests:
- End-to-end scenarios (console, entities, 'use client', keys, JSON fail-fast)
- Dry-run identity
- Layer ordering and stop-on-failure with partial progress
- Unexpected layer exceptions converted to data
"""

import pytest

from backend.app.models.transform import LayerResult, TransformOptions, UserTier
from backend.app.services.layers import BaseLayer
from backend.app.services.layers.app_router_layer import AppRouterLayer
from backend.app.services.layers.component_layer import ComponentLayer
from backend.app.services.layers.pattern_layer import PatternLayer
from backend.app.services.pipeline_service import TransformPipeline, run


class AppendLayer(BaseLayer):
    """Test layer that appends a marker to the text."""

    def __init__(self, layer_id: int, marker: str):
        self.layer_id = layer_id
        self.name = f"append_{layer_id}"
        self.marker = marker

    def apply(self, code, filename, options):
        transformed = code if options.dry_run else code + self.marker
        return LayerResult(layer_id=self.layer_id, transformed=transformed)


class FailingLayer(BaseLayer):
    layer_id = 3
    name = "failing"

    def apply(self, code, filename, options):
        return LayerResult(layer_id=self.layer_id, success=False, transformed=code, error="boom")


class ExplodingLayer(BaseLayer):
    layer_id = 2
    name = "exploding"

    def apply(self, code, filename, options):
        raise RuntimeError("unexpected state")


@pytest.fixture
def marker_pipeline():
    return TransformPipeline(layers={
        1: AppendLayer(1, "[1]"),
        2: AppendLayer(2, "[2]"),
        4: AppendLayer(4, "[4]"),
    })


class TestEndToEndScenarios:
    """Whole-pipeline behaviour on small representative files."""

    def test_console_log_becomes_console_debug(self):
        pipeline = TransformPipeline(layers={2: PatternLayer()})
        result = pipeline.run("console.log('hi')", "app.js")

        assert result.success is True
        assert result.transformed == "console.debug('hi')"
        assert [fix.type for fix in result.applied_fixes] == ["console-transform"]

    def test_quote_entities_are_unescaped(self):
        pipeline = TransformPipeline(layers={2: PatternLayer()})
        result = pipeline.run("const greeting = &quot;Hello&quot;;", "greeting.js")

        assert '"Hello"' in result.transformed
        entity_issues = [i for i in result.detected_issues if i.description == "HTML quote entities found"]
        assert len(entity_issues) == 1
        assert entity_issues[0].severity.value == "medium"

    def test_use_client_is_prepended(self):
        pipeline = TransformPipeline(layers={5: AppRouterLayer()})
        result = pipeline.run("function Foo(){ useState(1); return <div/>; }", "Foo.jsx")

        assert result.transformed.startswith("'use client';\n\n")

    def test_map_element_gets_item_id_key(self):
        pipeline = TransformPipeline(layers={3: ComponentLayer()})
        result = pipeline.run("items.map(item => <li>{item.name}</li>)", "List.jsx")

        assert result.transformed == "items.map(item => <li key={item.id}>{item.name}</li>)"

    def test_invalid_json_fails_before_any_layer(self, marker_pipeline):
        result = marker_pipeline.run("{bad json", "data.json")

        assert result.success is False
        assert result.error.startswith("JSON parsing error: ")
        assert result.layers == []
        assert result.transformed == "{bad json"

    def test_valid_json_runs_layers(self, marker_pipeline):
        result = marker_pipeline.run('{"a": 1}', "data.json")

        assert result.success is True
        assert len(result.layers) == 3


class TestOrchestration:
    """Ordering, selection and partial progress."""

    def test_layers_run_in_ascending_order(self, marker_pipeline):
        result = marker_pipeline.run("x", "a.js", layer_ids=[4, 1, 2])

        assert result.transformed == "x[1][2][4]"
        assert [layer.layer_id for layer in result.layers] == [1, 2, 4]

    def test_unknown_layer_ids_are_skipped(self, marker_pipeline):
        result = marker_pipeline.run("x", "a.js", layer_ids=[2, 9])

        assert [layer.layer_id for layer in result.layers] == [2]
        assert result.transformed == "x[2]"

    @pytest.mark.parametrize("selection", [None, "auto", "all"])
    def test_auto_selection_runs_every_layer(self, marker_pipeline, selection):
        result = marker_pipeline.run("x", "a.js", layer_ids=selection)

        assert result.transformed == "x[1][2][4]"

    def test_failure_stops_pipeline_and_keeps_progress(self):
        pipeline = TransformPipeline(layers={
            1: AppendLayer(1, "[1]"),
            3: FailingLayer(),
            4: AppendLayer(4, "[4]"),
        })
        result = pipeline.run("x", "a.js")

        assert result.success is False
        assert result.error == "boom"
        assert [layer.layer_id for layer in result.layers] == [1, 3]
        assert result.layers[-1].success is False
        assert result.transformed == "x[1]"

    def test_layer_exception_becomes_failed_result(self):
        pipeline = TransformPipeline(layers={
            1: AppendLayer(1, "[1]"),
            2: ExplodingLayer(),
            4: AppendLayer(4, "[4]"),
        })
        result = pipeline.run("x", "a.js")

        assert result.success is False
        assert result.error == "Layer 2 failed: unexpected state"
        assert [layer.layer_id for layer in result.layers] == [1, 2]
        assert result.layers[1].success is False
        assert result.transformed == "x[1]"

    def test_metadata_is_populated(self, marker_pipeline):
        options = TransformOptions(user_tier=UserTier.ENTERPRISE)
        result = marker_pipeline.run("x", "a.js", options=options)

        assert result.metadata.filename == "a.js"
        assert result.metadata.processing_time_ms >= 0
        assert len(result.metadata.request_id) == 32
        assert result.metadata.user_tier == UserTier.ENTERPRISE

    def test_request_id_is_kept(self, marker_pipeline):
        result = marker_pipeline.run("x", "a.js", options=TransformOptions(request_id="req-1"))

        assert result.metadata.request_id == "req-1"


class TestDryRun:
    """Dry runs report but never change the text."""

    SAMPLE = """var count = 0;
console.log(&quot;start&quot;);
export default function Page() {
  const [open, setOpen] = useState(false);
  return <ul>{items.map(item => <li>{item.name}</li>)}</ul>;
}
"""

    def test_dry_run_identity_for_custom_layers(self, marker_pipeline):
        result = marker_pipeline.run("x", "a.js", options=TransformOptions(dry_run=True))

        assert result.transformed == "x"

    def test_dry_run_identity_for_real_layers(self):
        result = run(self.SAMPLE, "page.jsx", dry_run=True, layer_ids=[1, 2, 3, 4, 5])

        assert result.transformed == self.SAMPLE
        assert result.applied_fixes == []
        assert result.detected_issues

    def test_dry_run_reports_same_issues_as_real_run(self):
        dry = run(self.SAMPLE, "page.jsx", dry_run=True, layer_ids=[3])
        real = run(self.SAMPLE, "page.jsx", layer_ids=[3])

        assert [i.description for i in dry.detected_issues] == [i.description for i in real.detected_issues]
        assert real.transformed != self.SAMPLE
