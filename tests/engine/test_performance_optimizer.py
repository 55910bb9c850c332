"""
Tests for the static performance optimizer.

Tests:
- Re-render, bundle and render-time bottlenecks with their thresholds
- Component attribution and optimization mapping
- Heavy import detection
- Unsupported files yield an empty analysis
"""

import pytest

from backend.app.models.analysis import BottleneckType, OptimizationType
from backend.app.services.ast_engine import EnhancedAstEngine
from backend.app.services.performance_optimizer import PerformanceOptimizer, function_complexity, walk


@pytest.fixture
def optimizer():
    return PerformanceOptimizer()


def heavy_component(branches: int) -> str:
    body = "\n".join(f"  if (flag{i}) {{}}" for i in range(branches))
    return f"function Heavy() {{\n{body}\n}}\n"


class TestBottlenecks:

    def test_state_updates_flag_re_renders(self, optimizer):
        code = "\n".join("useState(0);" for _ in range(11))
        analysis = optimizer.analyze(code, "state.js")

        assert analysis.metrics.re_render_count == 11
        assert [b.type for b in analysis.bottlenecks] == [BottleneckType.UNNECESSARY_RE_RENDERS]
        assert analysis.bottlenecks[0].severity == "medium"
        assert analysis.optimizations[0].type == OptimizationType.DEBOUNCING

    def test_ten_state_updates_are_fine(self, optimizer):
        code = "\n".join("useState(0);" for _ in range(10))
        assert optimizer.analyze(code, "state.js").bottlenecks == []

    def test_many_imports_flag_bundle_size(self, optimizer):
        code = "\n".join(f"import m{i} from 'mod{i}';" for i in range(21))
        analysis = optimizer.analyze(code, "imports.ts")

        assert analysis.metrics.bundle_size == 1050
        bottleneck = analysis.bottlenecks[0]
        assert bottleneck.type == BottleneckType.LARGE_BUNDLE
        assert bottleneck.description == "Bundle size of 1050KB exceeds recommended threshold"
        assert analysis.optimizations[0].type == OptimizationType.CODE_SPLITTING

    def test_expensive_render_names_component(self, optimizer):
        analysis = optimizer.analyze(heavy_component(6), "Heavy.jsx")

        assert analysis.metrics.render_time == 120.0
        bottleneck = analysis.bottlenecks[0]
        assert bottleneck.type == BottleneckType.EXPENSIVE_RENDER
        assert bottleneck.component == "Heavy"
        assert bottleneck.description == "Render time of 120ms exceeds recommended threshold"
        assert analysis.optimizations[0].code_example.startswith("const Heavy = memo(")

    def test_render_severity_high_above_500ms(self, optimizer):
        analysis = optimizer.analyze(heavy_component(26), "Heavy.jsx")
        assert analysis.bottlenecks[0].severity == "high"


class TestComplexity:

    def test_weights(self):
        code = "function f() { if (a + b) { g(); } const xs = [1, 2, 3, 4, 5]; }"
        tree = EnhancedAstEngine.parse_source(code, "f.js")
        function = next(node for node in walk(tree.root_node) if node.type == "function_declaration")

        # if (2) + call (1) + binary (0.5) + 5 array elements (1.0)
        assert function_complexity(function) == pytest.approx(4.5)


def test_heavy_imports(optimizer):
    code = "import _ from 'lodash';\nimport { format } from 'date-fns/format';\nimport React from 'react';\nimport _ from 'lodash';\n"
    analysis = optimizer.analyze(code, "dates.js")

    assert analysis.heavy_imports == ["lodash", "date-fns/format"]


def test_unsupported_file_is_empty(optimizer):
    analysis = optimizer.analyze("body { color: red; }", "styles.css")

    assert analysis.bottlenecks == []
    assert analysis.metrics.render_time == 0
