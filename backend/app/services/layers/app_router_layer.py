"""
Layer 5 - Next.js App Router conventions.

'use client' directive placement, import statement repair, metadata export
for pages and a dynamic-import hint for heavy client libraries.
"""

from __future__ import annotations

import logging
import os
import re
from typing import List, Tuple

from ...models.transform import LayerResult, Severity, TransformOptions
from ..source_utils import directive_lines, iter_code_matches
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

USE_CLIENT = "'use client';"

HEAVY_CLIENT_LIBRARIES = (
    "chart.js",
    "chartjs",
    "react-chartjs",
    "@google/maps",
    "google-maps",
    "react-google-maps",
    "three.js",
    "babylonjs",
    "cesium",
    "leaflet",
    "mapbox",
    "deck.gl",
)

METADATA_EXPORT = """export const metadata = {
  title: 'Page Title',
  description: 'Page description',
};

"""

_NEEDS_CLIENT_RE = re.compile(
    r"(?<![\w$])(?:use(?:State|Effect|Router|Context|Reducer|Callback|Memo|Ref|ImperativeHandle|LayoutEffect"
    r"|DebugValue)\b|on(?:Click|Change|Submit|Focus|Blur|KeyDown|KeyUp|MouseOver|MouseOut)\s*=)"
)

_OPEN_BLOCK_RE = re.compile(r"^\s*import\s*(?:type\s+)?(?:[\w$]+\s*,\s*)?\{[^}]*$")
_FROM_RE = re.compile(r"\bfrom\s*['\"]")
_UNCLOSED_NAMED_RE = re.compile(r"^(\s*import\s*(?:[\w$]+\s*,\s*)?\{)([^}]*?)\s+(from\s*['\"][^'\"]+['\"];?)\s*$")
_DEFAULT_EXPORT_FN_RE = re.compile(r"export\s+default\s+(?:async\s+)?function\b")


def needs_use_client(code: str) -> bool:
    """Hooks or event handler props used outside literals and comments."""
    return next(iter_code_matches(code, _NEEDS_CLIENT_RE), None) is not None


def directive_misplaced(code: str) -> bool:
    """True when a 'use client' directive line is preceded by code or appears more than once."""
    found = directive_lines(code)
    if not found:
        return False
    if len(found) > 1:
        return True
    for previous in code.split("\n")[:found[0]]:
        stripped = previous.strip()
        if stripped and not stripped.startswith(("//", "/*", "*")):
            return True
    return False


def move_directive_to_top(code: str) -> str:
    drop = set(directive_lines(code))
    lines = [line for index, line in enumerate(code.split("\n")) if index not in drop]
    body = re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).lstrip("\n")
    return f"{USE_CLIENT}\n\n{body}"


def _normalized(line: str) -> str:
    return re.sub(r"\s+", " ", line.strip()).rstrip(";")


def repair_imports(code: str) -> Tuple[str, int, int]:
    """
    Close unterminated import statements and drop later duplicates.

    Multi-line imports whose brace is closed are left alone. Returns the
    repaired text, the number of corrupted statements and the number of
    duplicates removed.
    """
    lines = code.split("\n")
    output: List[str] = []
    seen = set()
    corrupted = 0
    duplicates = 0
    i = 0
    n = len(lines)

    while i < n:
        line = lines[i]

        if _OPEN_BLOCK_RE.match(line) and not _FROM_RE.search(line):
            following = i + 1
            while following < n and not lines[following].strip():
                following += 1
            if following < n and lines[following].lstrip().startswith("import "):
                # dangling `import {` directly followed by another import
                corrupted += 1
                i += 1
                continue

            end = i + 1
            while end < n and not _FROM_RE.search(lines[end]) and not lines[end].lstrip().startswith("import "):
                end += 1
            if end < n and _FROM_RE.search(lines[end]):
                block = lines[i:end + 1]
                if not any("}" in part for part in block):
                    block[-1] = re.sub(r"\s*\bfrom\b", " } from", block[-1], count=1)
                    corrupted += 1
                output.extend(block)
                i = end + 1
                continue
            output.append(line)
            i += 1
            continue

        if line.lstrip().startswith("import "):
            unclosed = _UNCLOSED_NAMED_RE.match(line)
            if unclosed:
                head, names, tail = unclosed.groups()
                line = f"{head} {names.strip()} }} {tail}"
                corrupted += 1
            key = _normalized(line)
            if key in seen:
                duplicates += 1
                i += 1
                continue
            seen.add(key)

        output.append(line)
        i += 1

    return "\n".join(output), corrupted, duplicates


def heavy_libraries(code: str) -> List[str]:
    return [
        lib
        for lib in HEAVY_CLIENT_LIBRARIES
        if re.search(rf"""['"]{re.escape(lib)}(?:/[^'"]*)?['"]""", code)
    ]


@LayerRegistry.register
class AppRouterLayer(BaseLayer):
    """'use client' placement, import repair, page metadata, heavy-library hints."""

    layer_id = 5
    name = "app_router"
    description = "Next.js App Router conventions ('use client', imports, metadata)"

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)
        self._use_client(run)
        self._imports(run)
        self._metadata(run, os.path.basename(filename))
        self._heavy_libraries(run)
        return run.result()

    def _use_client(self, run: LayerRun) -> None:
        code = run.original
        if directive_lines(code):
            if directive_misplaced(code):
                run.issue("nextjs", Severity.MEDIUM, "'use client' directive should be at the top of the file")
                run.apply("app-router", "Moved 'use client' directive to top of file", move_directive_to_top)
        elif needs_use_client(code):
            run.issue("nextjs", Severity.MEDIUM, "Client component missing 'use client' directive")
            run.apply("app-router", "Added 'use client' directive", lambda text: f"{USE_CLIENT}\n\n{text}")

    def _imports(self, run: LayerRun) -> None:
        _, corrupted, duplicates = repair_imports(run.original)
        if not (corrupted or duplicates):
            return
        description = "Duplicate import statements detected" if duplicates else "Corrupted import statements detected"
        run.issue("import", Severity.MEDIUM, description, count=corrupted + duplicates)
        run.apply(
            "import",
            "Fixed corrupted import statements and removed duplicates",
            lambda text: repair_imports(text)[0],
        )

    def _metadata(self, run: LayerRun, basename: str) -> None:
        code = run.original
        if not basename.startswith("page."):
            return
        if "export const metadata" in code or not _DEFAULT_EXPORT_FN_RE.search(code):
            return
        # metadata exports are only allowed in server components
        if directive_lines(code) or needs_use_client(code):
            return

        run.issue("seo", Severity.LOW, "Consider adding metadata export for better SEO")

        def add_metadata(text: str) -> str:
            match = _DEFAULT_EXPORT_FN_RE.search(text)
            if not match:
                return text
            return text[:match.start()] + METADATA_EXPORT + text[match.start():]

        run.apply("seo", "Added metadata export for SEO", add_metadata)

    def _heavy_libraries(self, run: LayerRun) -> None:
        libraries = heavy_libraries(run.original)
        if libraries and _DEFAULT_EXPORT_FN_RE.search(run.original):
            logger.debug(f"Heavy client libraries imported: {libraries}")
            run.recommend(
                "performance",
                "Consider using dynamic imports for heavy client components to improve initial bundle size",
            )
