"""
Text helpers shared by the transformation layers.

All layers edit source text in place (string splices), so the helpers here are
deliberately lexical: they understand brackets, string/template literals,
comments and JSX opening tags well enough to avoid the classic regex pitfalls
(`[^)]*` stopping at a nested call, `[^>]*` stopping at an arrow function).
They are not parsers.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

_PAIRS = {"(": ")", "{": "}", "[": "]"}

REACT_HOOKS: Tuple[str, ...] = (
    "useState",
    "useEffect",
    "useContext",
    "useRef",
    "useMemo",
    "useCallback",
    "useReducer",
)

_REACT_WITH_NAMED_RE = re.compile(r"import\s+React\s*,\s*\{([^}]*)\}\s*from\s*(['\"])react\2")
_REACT_NAMED_RE = re.compile(r"import\s*\{([^}]*)\}\s*from\s*(['\"])react\2")
_REACT_DEFAULT_RE = re.compile(r"import\s+React\s+from\s*(['\"])react\1")

_DIRECTIVE_RE = re.compile(r"""^\s*(['"])use (client|server)\1;?\s*$""")
_EFFECT_RE = re.compile(r"(?<![\w$])(?:React\.)?useEffect\(\s*(?:async\s*)?\(\s*\)\s*=>\s*\{")


def _string_end(code: str, start: int) -> int:
    """Index of the quote closing the literal opened at ``start``, or -1.

    Plain quotes never span lines, so an apostrophe in JSX text ("Don't")
    is treated as an ordinary character.
    """
    quote = code[start]
    i = start + 1
    n = len(code)
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i
        if ch == "\n" and quote != "`":
            return -1
        i += 1
    return -1


def skip_literal(code: str, index: int) -> int:
    """If a string literal or comment starts at ``index`` return the index just past it, else ``index``."""
    ch = code[index]
    if ch in "'\"`":
        end = _string_end(code, index)
        return end + 1 if end != -1 else index
    if code.startswith("//", index):
        newline = code.find("\n", index)
        return len(code) if newline == -1 else newline
    if code.startswith("/*", index):
        end = code.find("*/", index + 2)
        return len(code) if end == -1 else end + 2
    return index


def find_matching(code: str, open_index: int) -> int:
    """Return the index of the bracket closing the one at ``open_index`` (-1 if unbalanced)."""
    opener = code[open_index]
    closer = _PAIRS[opener]
    depth = 0
    i = open_index
    n = len(code)
    while i < n:
        skipped = skip_literal(code, i)
        if skipped != i:
            i = skipped
            continue
        ch = code[i]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def literal_spans(code: str) -> List[Tuple[int, int]]:
    """``(start, end)`` of every string/template literal and comment, in source order."""
    spans: List[Tuple[int, int]] = []
    i = 0
    n = len(code)
    while i < n:
        skipped = skip_literal(code, i)
        if skipped != i:
            spans.append((i, skipped))
            i = skipped
        else:
            i += 1
    return spans


def _inside_span(spans: List[Tuple[int, int]], starts: List[int], index: int) -> bool:
    k = bisect.bisect_right(starts, index) - 1
    return k >= 0 and spans[k][0] < index < spans[k][1]


def iter_code_matches(code: str, pattern: re.Pattern) -> Iterator[re.Match]:
    """``pattern.finditer`` restricted to matches that start outside literals and comments."""
    spans = literal_spans(code)
    starts = [start for start, _ in spans]
    for match in pattern.finditer(code):
        if not _inside_span(spans, starts, match.start()):
            yield match


def sub_outside_literals(pattern: re.Pattern, repl: Callable[[re.Match], str], code: str) -> str:
    """Like ``pattern.sub`` with a function, leaving literals and comments untouched."""
    output: List[str] = []
    cursor = 0
    for match in iter_code_matches(code, pattern):
        output.append(code[cursor:match.start()])
        output.append(repl(match))
        cursor = match.end()
    output.append(code[cursor:])
    return "".join(output)


def count_chars(code: str, chars: str) -> int:
    return sum(code.count(ch) for ch in chars)


def line_start(code: str, index: int) -> int:
    return code.rfind("\n", 0, index) + 1


# ---------------------------------------------------------------------------
# JSX opening tags
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JsxTag:
    """One JSX opening tag located in the source."""

    name: str
    start: int  # index of '<'
    name_end: int  # index just after the tag name
    end: int  # index of the closing '>'
    attrs: str  # raw attribute text (without a self-closing '/')
    self_closing: bool

    def has_attr(self, attr: str) -> bool:
        return re.search(rf"(?<![\w-]){re.escape(attr)}\s*=", self.attrs) is not None

    def has_attr_prefix(self, prefix: str) -> bool:
        return re.search(rf"(?<![\w-]){re.escape(prefix)}", self.attrs) is not None


def _find_tag_end(code: str, index: int) -> int:
    n = len(code)
    i = index
    while i < n:
        ch = code[i]
        if ch == "{":
            close = find_matching(code, i)
            if close == -1:
                return -1
            i = close + 1
            continue
        if ch in "'\"":
            end = code.find(ch, i + 1)
            if end == -1:
                return -1
            i = end + 1
            continue
        if ch == ">":
            return i
        if ch == "<":
            return -1
        i += 1
    return -1


_ANY_TAG_RE = re.compile(r"<([A-Za-z][\w.:-]*)(?=[\s/>])")


def _tag_from_match(code: str, match: re.Match) -> Optional[JsxTag]:
    end = _find_tag_end(code, match.end())
    if end == -1:
        return None
    raw = code[match.end():end]
    stripped = raw.rstrip()
    self_closing = stripped.endswith("/")
    return JsxTag(
        name=match.group(1),
        start=match.start(),
        name_end=match.end(),
        end=end,
        attrs=stripped[:-1] if self_closing else raw,
        self_closing=self_closing,
    )


def iter_jsx_tags(code: str, name_pattern: str) -> Iterator[JsxTag]:
    """Yield JSX opening tags whose name matches ``name_pattern`` (a regex fragment)."""
    tag_re = re.compile(rf"<({name_pattern})(?=[\s/>])")
    for match in tag_re.finditer(code):
        tag = _tag_from_match(code, match)
        if tag is not None:
            yield tag


def jsx_tag_at(code: str, index: int) -> Optional[JsxTag]:
    """The JSX opening tag starting exactly at ``index``, if any."""
    match = _ANY_TAG_RE.match(code, index)
    if not match:
        return None
    return _tag_from_match(code, match)


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside of brackets and literals (e.g. arrow-function parameters)."""
    parts: List[str] = []
    depth = 0
    current = 0
    i = 0
    n = len(text)
    while i < n:
        skipped = skip_literal(text, i)
        if skipped != i:
            i = skipped
            continue
        ch = text[i]
        if ch in "({[<":
            depth += 1
        elif ch in ")}]>" and depth:
            depth -= 1
        elif ch == separator and depth == 0:
            parts.append(text[current:i].strip())
            current = i + 1
        i += 1
    tail = text[current:].strip()
    if tail:
        parts.append(tail)
    return parts


def insert_after_tag_names(code: str, tags: Sequence[JsxTag], attribute: str) -> str:
    """Insert `` attribute`` right after each tag name (applied right to left)."""
    result = code
    for tag in sorted(tags, key=lambda t: t.name_end, reverse=True):
        result = result[:tag.name_end] + f" {attribute}" + result[tag.name_end:]
    return result


def tag_inner_content(code: str, tag: JsxTag) -> Optional[str]:
    """Text between an opening tag and its closing tag (None when self-closing or unclosed)."""
    if tag.self_closing:
        return None
    close = code.find(f"</{tag.name}>", tag.end + 1)
    if close == -1:
        return None
    return code[tag.end + 1:close]


# ---------------------------------------------------------------------------
# Calls and statements
# ---------------------------------------------------------------------------


def rewrite_calls(code: str, callee: re.Pattern, render: Callable[[re.Match, str], str]) -> str:
    """
    Rewrite every call whose callee matches ``callee`` (the pattern must end with ``\\(``).

    ``render`` receives the callee match and the raw argument text and returns
    the replacement for the whole call expression.
    """
    output: List[str] = []
    cursor = 0
    for match in callee.finditer(code):
        if match.start() < cursor:
            continue
        open_index = match.end() - 1
        close_index = find_matching(code, open_index)
        if close_index == -1:
            continue
        output.append(code[cursor:match.start()])
        output.append(render(match, code[open_index + 1:close_index]))
        cursor = close_index + 1
    output.append(code[cursor:])
    return "".join(output)


_JSX_ATTRIBUTE_OPEN_RE = re.compile(r"=\s*\{$")


def _is_statement(code: str, start: int, end: int) -> bool:
    """True when the call spanning ``[start, end)`` is a whole expression statement."""
    i = start - 1
    while i >= 0 and code[i].isspace():
        i -= 1
    if i >= 0:
        if code[i] not in ";{}":
            return False
        if code[i] == "{" and _JSX_ATTRIBUTE_OPEN_RE.search(code[max(i - 32, 0):i + 1]):
            # `onClick={...}` needs a non-empty expression
            return False
    following = re.match(r"[ \t]*", code[end:]).end() + end
    if following >= len(code):
        return True
    return code[following] in ";}\r\n" or code.startswith("//", following)


def strip_call_statements(code: str, callee: re.Pattern) -> str:
    """
    Remove calls that form a whole expression statement (with their ``;``).

    A line left empty is dropped entirely. A call in expression position (arrow
    body, ``&&`` operand, ternary branch, argument) becomes ``void 0`` so the
    surrounding expression stays valid. Calls inside literals and comments are
    left alone.
    """
    output: List[str] = []
    cursor = 0
    for match in iter_code_matches(code, callee):
        if match.start() < cursor:
            continue
        close_index = find_matching(code, match.end() - 1)
        if close_index == -1:
            continue
        start = match.start()
        end = close_index + 1
        if not _is_statement(code, start, end):
            output.append(code[cursor:start])
            output.append("void 0")
            cursor = end
            continue
        if end < len(code) and code[end] == ";":
            end += 1
        bol = line_start(code, start)
        eol = code.find("\n", end)
        eol = len(code) if eol == -1 else eol
        if bol >= cursor and not code[bol:start].strip() and not code[end:eol].strip():
            # whole line: drop it together with its newline
            start = bol
            end = eol + 1 if eol < len(code) else eol
        output.append(code[cursor:start])
        cursor = end
    output.append(code[cursor:])
    return "".join(output)


def iter_effect_bodies(code: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(open_brace, close_brace)`` indexes of ``useEffect(() => { ... })`` bodies."""
    for match in _EFFECT_RE.finditer(code):
        open_index = match.end() - 1
        close_index = find_matching(code, open_index)
        if close_index != -1:
            yield open_index, close_index


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def directive_lines(code: str, directive: str = "use client") -> List[int]:
    """Indexes of lines holding exactly a ``'<directive>';`` statement (not inside a comment or template)."""
    line_re = re.compile(rf"""^\s*(['"]){re.escape(directive)}\1;?\s*$""")
    spans = literal_spans(code)
    starts = [start for start, _ in spans]
    found: List[int] = []
    offset = 0
    for index, line in enumerate(code.split("\n")):
        match = line_re.match(line)
        if match:
            if not _inside_span(spans, starts, offset + match.start(1)):
                found.append(index)
        offset += len(line) + 1
    return found


def insert_import(code: str, statement: str) -> str:
    """Insert an import statement at the top, after a leading 'use client'/'use server' directive."""
    lines = code.split("\n")
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith(("//", "/*", "*")):
            continue
        if _DIRECTIVE_RE.match(line):
            return "\n".join(lines[:index + 1] + [statement] + lines[index + 1:])
        break
    return f"{statement}\n{code}"


def used_hooks(code: str) -> List[str]:
    """React hooks called directly (not through ``React.``), in canonical order."""
    return [
        hook
        for hook in REACT_HOOKS
        if re.search(rf"(?<![\w.$]){hook}\s*(?:<[^()]*?>)?\s*\(", code)
    ]


def _split_names(names: str) -> List[str]:
    return [name.strip() for name in names.split(",") if name.strip()]


def _local_name(specifier: str) -> str:
    parts = specifier.split(" as ")
    return parts[-1].strip()


def imported_react_names(code: str) -> Optional[List[str]]:
    """Local names imported from 'react' via a named import; None when no named import exists."""
    match = _REACT_WITH_NAMED_RE.search(code) or _REACT_NAMED_RE.search(code)
    if not match:
        return None
    return [_local_name(spec) for spec in _split_names(match.group(1))]


def missing_react_hooks(code: str, hooks: Optional[Sequence[str]] = None) -> List[str]:
    hooks = list(hooks) if hooks is not None else used_hooks(code)
    imported = imported_react_names(code) or []
    return [hook for hook in hooks if hook not in imported]


def ensure_react_imports(code: str, hooks: Sequence[str]) -> str:
    """
    Make sure every hook in ``hooks`` is imported from 'react'.

    Merges into an existing ``import React, {...}`` or ``import {...}`` statement,
    upgrades a bare ``import React from 'react'``, or inserts a new statement.
    """
    if not hooks:
        return code

    for pattern, prefix in ((_REACT_WITH_NAMED_RE, "import React, "), (_REACT_NAMED_RE, "import ")):
        match = pattern.search(code)
        if match:
            existing = _split_names(match.group(1))
            local_names = [_local_name(spec) for spec in existing]
            missing = [hook for hook in hooks if hook not in local_names]
            if not missing:
                return code
            quote = match.group(2)
            statement = f"{prefix}{{ {', '.join(existing + missing)} }} from {quote}react{quote}"
            return code[:match.start()] + statement + code[match.end():]

    match = _REACT_DEFAULT_RE.search(code)
    if match:
        quote = match.group(1)
        statement = f"import React, {{ {', '.join(hooks)} }} from {quote}react{quote}"
        return code[:match.start()] + statement + code[match.end():]

    return insert_import(code, f"import {{ {', '.join(hooks)} }} from 'react';")
