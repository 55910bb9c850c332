"""
Layer 2 - pattern cleanup.

Independent text-level rules (any number may fire on one file): HTML entity
corruption, a small unused-import heuristic, console statements, ``var``
declarations and emoji numbering.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from ...models.transform import LayerResult, Severity, TransformOptions, UserTier
from ..source_utils import iter_code_matches, strip_call_statements, sub_outside_literals
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

_QUOTE_ENTITY = "&quot;"
_OTHER_ENTITIES = (("&amp;", "&"), ("&lt;", "<"), ("&gt;", ">"))

_CONSOLE_LOG_RE = re.compile(r"\bconsole\.log\(")
_CONSOLE_DEBUG_INFO_RE = re.compile(r"\bconsole\.(?:debug|info)\(")

_VAR_RE = re.compile(r"\bvar\s+([A-Za-z_$][\w$]*)(\s*=)?")

SUSPECT_IMPORTS = ("useEffect", "useMemo", "debounce", "axios")

EMOJI_REPLACEMENTS = (("➡️", "→"), ("1️⃣", "1."), ("2️⃣", "2."), ("3️⃣", "3."))

# Single-line import statements: `import <clause> from '<module>';`
_IMPORT_RE = re.compile(r"^([ \t]*)import\s+(.+?)\s+from\s+(['\"][^'\"]+['\"])(;?)[ \t]*$(\n?)", re.MULTILINE)


def _usage_patterns(symbol: str) -> List[str]:
    if symbol == "axios":
        return [r"\baxios\.", r"\baxios\("]
    return [rf"\b{symbol}\("]


def _is_unused(symbol: str, code: str) -> bool:
    return not any(re.search(pattern, code) for pattern in _usage_patterns(symbol))


def unused_suspect_imports(code: str) -> List[str]:
    """Suspect symbols that are imported somewhere but never invoked."""
    unused = []
    for match in _IMPORT_RE.finditer(code):
        for name in _imported_locals(match.group(2)):
            if name in SUSPECT_IMPORTS and name not in unused and _is_unused(name, code):
                unused.append(name)
    return unused


def _split_clause(clause: str):
    """Split an import clause into ``(default, named_list or None, namespace)``."""
    default: Optional[str] = None
    named: Optional[List[str]] = None
    namespace: Optional[str] = None

    brace = clause.find("{")
    if brace != -1:
        close = clause.find("}", brace)
        if close == -1:
            return None
        named = [spec.strip() for spec in clause[brace + 1:close].split(",") if spec.strip()]
        head = clause[:brace]
    else:
        head = clause

    for part in (p.strip() for p in head.split(",")):
        if not part:
            continue
        if part.startswith("*"):
            namespace = part
        else:
            default = part
    return default, named, namespace


def _imported_locals(clause: str) -> List[str]:
    parts = _split_clause(clause)
    if parts is None:
        return []
    default, named, _ = parts
    names = [default] if default else []
    names.extend(spec.split(" as ")[-1].strip() for spec in named or [])
    return names


def _rebuild_clause(clause: str, unused: List[str]) -> Optional[str]:
    """Rebuild an import clause without the unused names; '' when nothing remains."""
    parts = _split_clause(clause)
    if parts is None:
        return None
    default, named, namespace = parts

    if default in unused:
        default = None
    kept_named = None
    if named is not None:
        kept_named = [spec for spec in named if spec.split(" as ")[-1].strip() not in unused]

    pieces = []
    if default:
        pieces.append(default)
    if namespace:
        pieces.append(namespace)
    if kept_named:
        pieces.append("{ " + ", ".join(kept_named) + " }")
    return ", ".join(pieces)


def remove_unused_imports(code: str, unused: List[str]) -> str:
    def replace(match: re.Match) -> str:
        indent, clause, module, semicolon, newline = match.groups()
        if not any(name in unused for name in _imported_locals(clause)):
            return match.group(0)
        rebuilt = _rebuild_clause(clause, unused)
        if rebuilt is None:
            return match.group(0)
        if not rebuilt:
            # nothing left: drop the statement together with its line break
            return ""
        return f"{indent}import {rebuilt} from {module}{semicolon}{newline}"

    return _IMPORT_RE.sub(replace, code)


def _assignment_count(name: str, code: str) -> int:
    escaped = re.escape(name)
    assignments = re.findall(
        rf"(?<![\w$.]){escaped}\s*(?:\*\*|<<|>>>|>>|\?\?|&&|\|\||[-+*/%&|^])?=(?!=)",
        code,
    )
    updates = re.findall(rf"(?:\+\+|--)\s*{escaped}\b|(?<![\w$.]){escaped}\s*(?:\+\+|--)", code)
    return len(assignments) + len(updates)


def modernize_var(code: str, original: str) -> str:
    """``var`` -> ``const`` unless the name is assigned more than once in ``original`` (then ``let``)."""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        initializer = match.group(2)
        if not initializer or _assignment_count(name, original) > 1:
            keyword = "let"
        else:
            keyword = "const"
        return f"{keyword} {name}{initializer or ''}"

    return sub_outside_literals(_VAR_RE, replace, code)


def standardize_emoji(code: str) -> str:
    for emoji, replacement in EMOJI_REPLACEMENTS:
        code = code.replace(emoji, replacement)
    return code


@LayerRegistry.register
class PatternLayer(BaseLayer):
    """Entity cleanup, unused imports, console statements, var, emoji."""

    layer_id = 2
    name = "patterns"
    description = "Pattern cleanup (entities, unused imports, console, var, emoji)"

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)
        self._entities(run)
        self._unused_imports(run)
        self._console(run)
        self._var_declarations(run)
        self._emoji(run)
        return run.result()

    def _entities(self, run: LayerRun) -> None:
        code = run.original
        quotes = code.count(_QUOTE_ENTITY)
        if quotes:
            run.issue("pattern", Severity.MEDIUM, "HTML quote entities found", pattern=_QUOTE_ENTITY, count=quotes)
            run.apply("entity-cleanup", "Fixed HTML quote entities", lambda text: text.replace(_QUOTE_ENTITY, '"'))

        corrupted = sum(code.count(entity) for entity, _ in _OTHER_ENTITIES)
        if corrupted:
            run.issue("pattern", Severity.HIGH, "HTML entity corruption detected", count=corrupted)

            def unescape(text: str) -> str:
                for entity, char in _OTHER_ENTITIES:
                    text = text.replace(entity, char)
                return text

            run.apply("entity-cleanup", "Fixed HTML entity corruption", unescape)

    def _unused_imports(self, run: LayerRun) -> None:
        unused = unused_suspect_imports(run.original)
        if not unused:
            return
        run.issue("pattern", Severity.MEDIUM, "Unused imports detected", pattern=", ".join(unused), count=len(unused))
        run.apply("import-cleanup", "Removed unused imports", lambda text: remove_unused_imports(text, unused))

    def _console(self, run: LayerRun) -> None:
        logs = sum(1 for _ in iter_code_matches(run.original, _CONSOLE_LOG_RE))
        if logs:
            run.issue(
                "pattern",
                Severity.LOW,
                "Console.log statements should be console.debug",
                pattern="console.log(",
                count=logs,
            )
            run.apply(
                "console-transform",
                "Converted console.log to console.debug",
                lambda text: sub_outside_literals(_CONSOLE_LOG_RE, lambda _: "console.debug(", text),
            )

        # Production cleanup runs on the already-converted text
        if run.options.user_tier == UserTier.ENTERPRISE and any(iter_code_matches(run.code, _CONSOLE_DEBUG_INFO_RE)):
            run.apply(
                "production-cleanup",
                "Removed debug console statements for production",
                lambda text: strip_call_statements(text, _CONSOLE_DEBUG_INFO_RE),
            )

    def _var_declarations(self, run: LayerRun) -> None:
        declarations = list(iter_code_matches(run.original, _VAR_RE))
        if not declarations:
            return
        run.issue("pattern", Severity.MEDIUM, "Outdated var declarations found", pattern="var", count=len(declarations))
        run.apply(
            "var-modernization",
            "Converted var to const/let",
            lambda text: modernize_var(text, run.original),
        )

    def _emoji(self, run: LayerRun) -> None:
        if not any(emoji in run.original for emoji, _ in EMOJI_REPLACEMENTS):
            return
        run.issue("pattern", Severity.LOW, "Emoji arrows should be standardized")
        run.apply("emoji-standardization", "Standardized emoji arrows to Unicode", standardize_emoji)
