"""
Performance Optimizer - static performance estimates for React components.

Reporting only: walks the tree-sitter syntax tree, derives rough render-time,
bundle-size, memory and re-render estimates, flags the metrics above their
thresholds as bottlenecks and maps every bottleneck to one optimization.
Nothing here rewrites code.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Tuple

import tree_sitter

from ..models.analysis import (
    BottleneckType,
    OptimizationType,
    PerformanceAnalysis,
    PerformanceBottleneck,
    PerformanceMetrics,
    PerformanceOptimization,
)

logger = logging.getLogger(__name__)

# Cost model
RENDER_MS_PER_COMPLEXITY = 10
IMPORT_KB = 50
VARIABLE_KB = 10

# (threshold, high-severity threshold)
RENDER_TIME_THRESHOLDS = (100, 500)
BUNDLE_SIZE_THRESHOLDS = (1000, 2000)
MEMORY_THRESHOLDS = (500, 1000)
RE_RENDER_THRESHOLDS = (10, 20)

HEAVY_IMPORT_MODULES = ("lodash", "moment", "date-fns")

FUNCTION_NODES = ("function_declaration", "arrow_function")
BRANCH_NODES = ("if_statement", "for_statement", "while_statement")
VARIABLE_NODES = ("lexical_declaration", "variable_declaration")

MEMOIZATION_EXAMPLE = """const {component} = memo((props) => {{
  // Component implementation
}});"""

CODE_SPLITTING_EXAMPLE = """// Use dynamic imports
const LazyComponent = lazy(() => import('./LazyComponent'));"""

LAZY_LOADING_EXAMPLE = """// Lazy load heavy components
const HeavyComponent = lazy(() => import('./HeavyComponent'));

<Suspense fallback={<Loading />}>
  <HeavyComponent />
</Suspense>"""

DEBOUNCING_EXAMPLE = """// Debounce state updates
const debouncedSetState = useMemo(
  () => debounce(setState, 300),
  []
);"""


def walk(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Pre-order traversal without recursion (deep JSX trees exceed the recursion limit)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _text(node: tree_sitter.Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _element_count(node: tree_sitter.Node) -> int:
    return sum(1 for child in node.named_children if child.type != "comment")


def function_complexity(node: tree_sitter.Node) -> float:
    """Weighted count of branches, calls, binary expressions and literal elements inside ``node``."""
    complexity = 0.0
    for child in walk(node):
        if child.type in BRANCH_NODES:
            complexity += 2
        elif child.type == "call_expression":
            complexity += 1
        elif child.type == "binary_expression":
            complexity += 0.5
        elif child.type in ("array", "object"):
            complexity += _element_count(child) * 0.2
    return complexity


def _function_name(node: tree_sitter.Node, source: bytes) -> Optional[str]:
    name = node.child_by_field_name("name")
    if name is not None:
        return _text(name, source)
    parent = node.parent
    if parent is not None and parent.type == "variable_declarator":
        declared = parent.child_by_field_name("name")
        if declared is not None:
            return _text(declared, source)
    return None


def _is_state_hook_call(node: tree_sitter.Node, source: bytes) -> bool:
    function = node.child_by_field_name("function")
    return function is not None and function.type == "identifier" and "useState" in _text(function, source)


def _import_source(node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
    source = node.child_by_field_name("source")
    if source is not None:
        return source
    # grammars that expose the from clause as its own node
    for child in node.children:
        if child.type == "string":
            return child
        if child.type == "from_clause":
            return child.child_by_field_name("source")
    return None


def _severity(value: float, thresholds: Tuple[float, float]) -> str:
    return "high" if value > thresholds[1] else "medium"


class PerformanceOptimizer:
    """Static performance analysis over a parsed syntax tree."""

    def analyze(self, code: str, filename: str) -> PerformanceAnalysis:
        """Parse ``code`` with the grammar for ``filename`` and analyze it."""
        from .ast_engine import EnhancedAstEngine
        from .errors import UnsupportedLanguageError

        try:
            tree = EnhancedAstEngine.parse_source(code, filename)
        except UnsupportedLanguageError as e:
            logger.warning(f"Performance analysis skipped: {e}")
            return PerformanceAnalysis()
        return self.analyze_tree(tree, code.encode("utf-8"))

    def analyze_tree(self, tree: tree_sitter.Tree, source: bytes) -> PerformanceAnalysis:
        """
        Analyze a parsed tree.

        Failures are logged and produce an empty analysis; performance
        reporting never breaks validation.
        """
        try:
            metrics, component = self._calculate_metrics(tree.root_node, source)
            bottlenecks = self._detect_bottlenecks(metrics, component)
            return PerformanceAnalysis(
                metrics=metrics,
                bottlenecks=bottlenecks,
                optimizations=self._generate_optimizations(bottlenecks),
                heavy_imports=self.find_heavy_imports(tree.root_node, source),
            )
        except Exception as e:
            logger.warning(f"Performance analysis failed: {e}")
            return PerformanceAnalysis()

    def _calculate_metrics(self, root: tree_sitter.Node, source: bytes) -> Tuple[PerformanceMetrics, str]:
        render_time = 0.0
        bundle_size = 0.0
        memory_usage = 0.0
        re_render_count = 0
        costs: Dict[str, float] = {}

        for node in walk(root):
            if node.type in FUNCTION_NODES:
                cost = function_complexity(node) * RENDER_MS_PER_COMPLEXITY
                render_time += cost
                name = _function_name(node, source)
                if name:
                    costs[name] = costs.get(name, 0.0) + cost
            elif node.type == "import_statement":
                bundle_size += IMPORT_KB
            elif node.type in VARIABLE_NODES:
                memory_usage += VARIABLE_KB
            elif node.type == "call_expression" and _is_state_hook_call(node, source):
                re_render_count += 1

        # The most expensive named function is reported as the component
        component = max(costs, key=costs.get) if costs else "Unknown"
        metrics = PerformanceMetrics(
            render_time=round(render_time, 2),
            bundle_size=bundle_size,
            memory_usage=memory_usage,
            re_render_count=re_render_count,
        )
        return metrics, component

    def _detect_bottlenecks(self, metrics: PerformanceMetrics, component: str) -> List[PerformanceBottleneck]:
        bottlenecks: List[PerformanceBottleneck] = []

        if metrics.render_time > RENDER_TIME_THRESHOLDS[0]:
            bottlenecks.append(
                PerformanceBottleneck(
                    type=BottleneckType.EXPENSIVE_RENDER,
                    component=component,
                    severity=_severity(metrics.render_time, RENDER_TIME_THRESHOLDS),
                    description=f"Render time of {metrics.render_time:g}ms exceeds recommended threshold",
                    impact=metrics.render_time / 100,
                )
            )

        if metrics.bundle_size > BUNDLE_SIZE_THRESHOLDS[0]:
            bottlenecks.append(
                PerformanceBottleneck(
                    type=BottleneckType.LARGE_BUNDLE,
                    component="Bundle",
                    severity=_severity(metrics.bundle_size, BUNDLE_SIZE_THRESHOLDS),
                    description=f"Bundle size of {metrics.bundle_size:g}KB exceeds recommended threshold",
                    impact=metrics.bundle_size / 1000,
                )
            )

        if metrics.memory_usage > MEMORY_THRESHOLDS[0]:
            bottlenecks.append(
                PerformanceBottleneck(
                    type=BottleneckType.MEMORY_LEAK,
                    component="Memory",
                    severity=_severity(metrics.memory_usage, MEMORY_THRESHOLDS),
                    description=f"Memory usage of {metrics.memory_usage:g}KB exceeds recommended threshold",
                    impact=metrics.memory_usage / 500,
                )
            )

        if metrics.re_render_count > RE_RENDER_THRESHOLDS[0]:
            bottlenecks.append(
                PerformanceBottleneck(
                    type=BottleneckType.UNNECESSARY_RE_RENDERS,
                    component="State",
                    severity=_severity(metrics.re_render_count, RE_RENDER_THRESHOLDS),
                    description=f"{metrics.re_render_count} state updates detected, consider memoization",
                    impact=metrics.re_render_count / 10,
                )
            )

        return bottlenecks

    def _generate_optimizations(self, bottlenecks: List[PerformanceBottleneck]) -> List[PerformanceOptimization]:
        optimizations: List[PerformanceOptimization] = []
        for bottleneck in bottlenecks:
            if bottleneck.type == BottleneckType.EXPENSIVE_RENDER:
                optimizations.append(
                    PerformanceOptimization(
                        type=OptimizationType.MEMOIZATION,
                        component=bottleneck.component,
                        description="Memoize component to prevent unnecessary re-renders",
                        benefit=bottleneck.impact * 0.8,
                        effort="low",
                        code_example=MEMOIZATION_EXAMPLE.format(component=bottleneck.component),
                    )
                )
            elif bottleneck.type == BottleneckType.LARGE_BUNDLE:
                optimizations.append(
                    PerformanceOptimization(
                        type=OptimizationType.CODE_SPLITTING,
                        component="Bundle",
                        description="Implement code splitting to reduce initial bundle size",
                        benefit=bottleneck.impact * 0.6,
                        effort="medium",
                        code_example=CODE_SPLITTING_EXAMPLE,
                    )
                )
            elif bottleneck.type == BottleneckType.MEMORY_LEAK:
                optimizations.append(
                    PerformanceOptimization(
                        type=OptimizationType.LAZY_LOADING,
                        component="Memory",
                        description="Implement lazy loading to reduce memory usage",
                        benefit=bottleneck.impact * 0.7,
                        effort="medium",
                        code_example=LAZY_LOADING_EXAMPLE,
                    )
                )
            elif bottleneck.type == BottleneckType.UNNECESSARY_RE_RENDERS:
                optimizations.append(
                    PerformanceOptimization(
                        type=OptimizationType.DEBOUNCING,
                        component="State",
                        description="Implement debouncing for frequent state updates",
                        benefit=bottleneck.impact * 0.5,
                        effort="low",
                        code_example=DEBOUNCING_EXAMPLE,
                    )
                )
        return optimizations

    def find_heavy_imports(self, root: tree_sitter.Node, source: bytes) -> List[str]:
        """Module specifiers of imports that are worth lazy-loading (lodash, moment, date-fns)."""
        heavy: List[str] = []
        for node in walk(root):
            if node.type != "import_statement":
                continue
            module = _import_source(node)
            if module is None:
                continue
            specifier = _text(module, source).strip("'\"")
            if any(name in specifier for name in HEAVY_IMPORT_MODULES) and specifier not in heavy:
                heavy.append(specifier)
        return heavy
