"""
Layer 4 - hydration / SSR safety.

Guards browser-only APIs so that server-rendered output matches the first
client render. Only runs for paid tiers; for ``free`` it is a no-op.

Every rule is a ``needs(code) -> bool`` detector evaluated on the text the
layer received, paired with a fix applied to the current text. Rules run in a
fixed order: storage, window, document, navigator, theme provider, event
listeners, client-only wrappers, chart guards.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple

from ...models.transform import LayerResult, Severity, TransformOptions
from ..source_utils import (
    ensure_react_imports,
    find_matching,
    insert_import,
    iter_code_matches,
    iter_effect_bodies,
    jsx_tag_at,
    line_start,
    split_top_level,
)
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

WINDOW_GUARD = 'typeof window !== "undefined"'
DOCUMENT_GUARD = 'typeof document !== "undefined"'
NAVIGATOR_GUARD = 'typeof navigator !== "undefined"'

STORAGE_METHODS = ("getItem", "setItem", "removeItem", "clear")
WINDOW_PROPERTIES = (
    "location",
    "history",
    "navigator",
    "screen",
    "document",
    "innerWidth",
    "innerHeight",
    "scrollX",
    "scrollY",
    "pageXOffset",
    "pageYOffset",
)
DOCUMENT_METHODS = ("getElementById", "querySelector", "querySelectorAll", "createElement")
DOCUMENT_PROPERTIES = ("body", "documentElement", "title")
NAVIGATOR_PROPERTIES = ("userAgent", "platform", "language", "onLine", "geolocation")

CLIENT_ONLY_APIS = ("google.maps", "new Chart", "Canvas", "WebGL", "navigator.geolocation")

_WINDOW_GUARD_RE = re.compile(r"typeof\s+window\s*!==\s*[\"']undefined[\"']")
_DOCUMENT_GUARD_RE = re.compile(r"typeof\s+document\s*!==\s*[\"']undefined[\"']")
_NAVIGATOR_GUARD_RE = re.compile(r"typeof\s+navigator\s*!==\s*[\"']undefined[\"']")

_STATE_DECL_RE = re.compile(r"const\s*\[\s*(\w+)\s*,\s*(set\w+)\s*\]\s*=\s*(?:React\.)?useState\b(?:<[^()]*?>)?\s*\(")
_PROVIDER_RETURN_RE = re.compile(r"return\s*\(\s*<(\w+)\.Provider\b")
_ADD_LISTENER_RE = re.compile(r"(?:(?<![\w$.])([\w$]+(?:\.[\w$]+)*)\.)?addEventListener\s*\(")
_DEFAULT_EXPORT_FN_RE = re.compile(r"export\s+default\s+function\s+([A-Z]\w*)")
_RETURN_DIV_RE = re.compile(r"return\s*\(?\s*(?=<div\b)")


# ---------------------------------------------------------------------------
# Member-chain guards
# ---------------------------------------------------------------------------


def _chain_end(code: str, index: int) -> int:
    """Extend a member expression starting before ``index`` over ``.x``, ``?.x``, calls and indexing."""
    n = len(code)
    i = index
    while i < n:
        if code.startswith("?.", i):
            i += 2
            continue
        ch = code[i]
        if ch == "." and i + 1 < n and (code[i + 1].isalpha() or code[i + 1] in "_$"):
            i += 1
            while i < n and (code[i].isalnum() or code[i] in "_$"):
                i += 1
            continue
        if ch in "([":
            close = find_matching(code, i)
            if close == -1:
                return i
            i = close + 1
            continue
        break
    return i


def _is_assignment_target(code: str, end: int) -> bool:
    return re.match(r"\s*(?:[-+*/%&|^]|\*\*|\?\?|&&|\|\|)?=(?![=>])|\s*(?:\+\+|--)", code[end:]) is not None


def guard_member_chains(
    code: str,
    root: str,
    members: Sequence[str],
    render: Callable[[str, str], str],
) -> str:
    """
    Wrap every ``root.<member>...`` expression with ``render(expression, member)``.

    The whole member chain (including trailing calls) is wrapped. Assignment
    targets and qualified accesses (``foo.root.member``) are left untouched,
    as is anything inside string literals or comments.
    """
    pattern = re.compile(rf"(?<![\w.$]){re.escape(root)}\.({'|'.join(map(re.escape, members))})\b")
    output: List[str] = []
    cursor = 0
    for match in iter_code_matches(code, pattern):
        if match.start() < cursor:
            continue
        end = _chain_end(code, match.end())
        if _is_assignment_target(code, end):
            continue
        output.append(code[cursor:match.start()])
        output.append(render(code[match.start():end], match.group(1)))
        cursor = end
    output.append(code[cursor:])
    return "".join(output)


def _uses_member(code: str, root: str, members: Sequence[str]) -> bool:
    pattern = re.compile(rf"(?<![\w.$]){re.escape(root)}\.(?:{'|'.join(members)})\b")
    return next(iter_code_matches(code, pattern), None) is not None


def guard_storage(code: str, storage: str) -> str:
    def render(expression: str, method: str) -> str:
        if method == "getItem":
            return f"({WINDOW_GUARD} ? {expression} : null)"
        return f"{WINDOW_GUARD} && {expression}"

    return guard_member_chains(code, storage, STORAGE_METHODS, render)


def guard_window(code: str) -> str:
    return guard_member_chains(
        code, "window", WINDOW_PROPERTIES, lambda expression, _: f"({WINDOW_GUARD} ? {expression} : undefined)"
    )


def guard_document(code: str) -> str:
    def render(expression: str, member: str) -> str:
        fallback = '""' if member == "title" else "null"
        return f"({DOCUMENT_GUARD} ? {expression} : {fallback})"

    return guard_member_chains(code, "document", DOCUMENT_METHODS + DOCUMENT_PROPERTIES, render)


def guard_navigator(code: str) -> str:
    return guard_member_chains(
        code,
        "navigator",
        NAVIGATOR_PROPERTIES,
        lambda expression, _: f"({NAVIGATOR_GUARD} ? {expression} : undefined)",
    )


# ---------------------------------------------------------------------------
# Theme provider
# ---------------------------------------------------------------------------


def needs_theme_provider_fix(code: str) -> bool:
    return "ThemeProvider" in code and "useState" in code and "mounted" not in code and "isClient" not in code


def _indent_of(code: str, index: int) -> str:
    start = line_start(code, index)
    return re.match(r"[ \t]*", code[start:]).group(0)


def add_theme_provider_fix(code: str) -> str:
    state = _STATE_DECL_RE.search(code)
    if not state:
        return code
    close = find_matching(code, state.end() - 1)
    if close == -1:
        return code

    value_name, setter_name = state.group(1), state.group(2)
    indent = _indent_of(code, state.start())
    end = close + 1
    if end < len(code) and code[end] == ";":
        end += 1
    mounted_state = (
        f"\n{indent}const [mounted, setMounted] = useState(false);\n\n"
        f"{indent}useEffect(() => {{\n"
        f"{indent}  setMounted(true);\n"
        f"{indent}}}, []);"
    )
    code = code[:end] + mounted_state + code[end:]

    provider = _PROVIDER_RETURN_RE.search(code, end)
    if provider:
        context = provider.group(1)
        return_indent = _indent_of(code, provider.start())
        fallback_value = f'{{{{ {value_name}: "light", {setter_name}: () => {{}} }}}}'
        guard = (
            f"if (!mounted) {{\n"
            f"{return_indent}  return <{context}.Provider value={fallback_value}>{{children}}</{context}.Provider>;\n"
            f"{return_indent}}}\n\n{return_indent}"
        )
        code = code[:provider.start()] + guard + code[provider.start():]

    return ensure_react_imports(code, ["useState", "useEffect"])


# ---------------------------------------------------------------------------
# Event listeners
# ---------------------------------------------------------------------------


def _has_cleanup(body: str) -> bool:
    return "removeEventListener" in body or re.search(r"\breturn\s*(?:\(\s*\)\s*=>|function\b)", body) is not None


def _listener_cleanups(body: str) -> Tuple[List[str], int]:
    """Cleanup statements for named handlers and the count of inline handlers that cannot be removed."""
    cleanups: List[str] = []
    inline = 0
    for match in _ADD_LISTENER_RE.finditer(body):
        if match.group(1) is None and body[max(match.start() - 1, 0)] in ".)]":
            # target is a call/index expression we cannot repeat safely
            inline += 1
            continue
        close = find_matching(body, match.end() - 1)
        if close == -1:
            continue
        args = split_top_level(body[match.end():close])
        if len(args) < 2:
            continue
        handler = args[1]
        if not re.fullmatch(r"[\w$]+(?:\.[\w$]+)*", handler):
            inline += 1
            continue
        target = match.group(1) or "window"
        cleanups.append(f"{target}.removeEventListener({', '.join([args[0], handler] + args[2:])});")
    return cleanups, inline


def _listener_effects(code: str):
    for open_index, close_index in iter_effect_bodies(code):
        body = code[open_index + 1:close_index]
        if "addEventListener" in body and not _has_cleanup(body):
            yield open_index, close_index, body


def count_listener_effects(code: str) -> Tuple[int, int]:
    """``(fixable effects, inline handlers)`` for useEffect bodies lacking listener cleanup."""
    fixable = 0
    inline_total = 0
    for _, _, body in _listener_effects(code):
        cleanups, inline = _listener_cleanups(body)
        fixable += 1 if cleanups else 0
        inline_total += inline
    return fixable, inline_total


def add_event_listener_cleanup(code: str) -> str:
    for open_index, close_index, body in reversed(list(_listener_effects(code))):
        cleanups, _ = _listener_cleanups(body)
        if not cleanups:
            continue
        indent = _indent_of(code, close_index) + "  "
        lines = "".join(f"{indent}  {statement}\n" for statement in cleanups)
        cleanup = f"\n{indent}return () => {{\n{lines}{indent}}};"
        # insert after the last statement of the body
        insert_at = open_index + 1 + len(body.rstrip())
        code = code[:insert_at] + cleanup + code[insert_at:]
    return code


# ---------------------------------------------------------------------------
# Client-only components
# ---------------------------------------------------------------------------


def needs_client_only_wrapper(code: str) -> bool:
    return any(api in code for api in CLIENT_ONLY_APIS) and "NoSSR" not in code and "dynamic" not in code


def wrap_dynamic_export(code: str) -> str:
    """Turn ``export default function X`` into a ``dynamic(..., { ssr: false })`` default export."""
    match = _DEFAULT_EXPORT_FN_RE.search(code)
    if not match:
        return code
    name = match.group(1)
    code = code[:match.start()] + f"function {name}" + code[match.end():]
    code = code.rstrip("\n") + (
        f"\n\nconst {name}Client = dynamic(() => Promise.resolve({name}), {{ ssr: false }});\n\n"
        f"export default {name}Client;\n"
    )
    return insert_import(code, "import dynamic from 'next/dynamic';")


def _closing_div(code: str, open_end: int) -> int:
    """Index of the ``</div>`` balancing a ``<div>`` whose opening tag ends at ``open_end``."""
    depth = 1
    for match in re.finditer(r"<div\b|</div\s*>", code[open_end:]):
        if match.group(0).startswith("</"):
            depth -= 1
            if depth == 0:
                return open_end + match.start()
        else:
            tag = jsx_tag_at(code, open_end + match.start())
            if tag is not None and not tag.self_closing:
                depth += 1
    return -1


def wrap_in_no_ssr(code: str) -> str:
    """Wrap the children of the first returned ``<div>`` in ``<NoSSR>``."""
    returned = _RETURN_DIV_RE.search(code)
    if not returned:
        return code
    tag = jsx_tag_at(code, returned.end())
    if tag is None or tag.self_closing:
        return code
    close = _closing_div(code, tag.end + 1)
    if close == -1:
        return code
    code = code[:tag.end + 1] + "<NoSSR>" + code[tag.end + 1:close] + "</NoSSR>" + code[close:]
    return insert_import(code, 'import NoSSR from "@/components/NoSSR";')


def add_client_only_wrapper(code: str) -> str:
    if "google.maps" in code:
        return wrap_dynamic_export(code)
    return wrap_in_no_ssr(code)


# ---------------------------------------------------------------------------
# Chart libraries
# ---------------------------------------------------------------------------


def _unguarded_chart_effects(code: str) -> List[Tuple[int, int]]:
    return [
        (open_index, close_index)
        for open_index, close_index in iter_effect_bodies(code)
        if "new Chart(" in code[open_index:close_index] and "typeof window" not in code[open_index:close_index]
    ]


def add_chart_guards(code: str) -> str:
    for open_index, _ in reversed(_unguarded_chart_effects(code)):
        indent = _indent_of(code, open_index) + "  "
        code = code[:open_index + 1] + f'\n{indent}if (typeof window === "undefined") return;' + code[open_index + 1:]
    return code


@LayerRegistry.register
class HydrationLayer(BaseLayer):
    """SSR/hydration guards for browser-only APIs (professional and enterprise tiers)."""

    layer_id = 4
    name = "hydration"
    description = "Hydration/SSR safety (storage, window, document, theme, listeners)"

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)
        if not options.is_paid_tier:
            logger.debug(f"Layer 4 skipped for tier {options.user_tier.value}")
            return run.result()

        self._storage(run, "localStorage")
        self._storage(run, "sessionStorage")
        self._window(run)
        self._document(run)
        self._navigator(run)
        self._theme_provider(run)
        self._event_listeners(run)
        self._client_only(run)
        self._chart_guards(run)
        return run.result()

    def _storage(self, run: LayerRun, storage: str) -> None:
        code = run.original
        if not _uses_member(code, storage, STORAGE_METHODS) or _WINDOW_GUARD_RE.search(code):
            return
        run.issue("hydration", Severity.HIGH, f"Unguarded {storage} access without SSR protection", pattern=storage)
        run.apply("ssr-safety", f"Added {storage} SSR guards", lambda text: guard_storage(text, storage))
        run.recommend("ssr-safety", f"Read {storage} inside useEffect so the first render matches the server")

    def _window(self, run: LayerRun) -> None:
        code = run.original
        if not _uses_member(code, "window", WINDOW_PROPERTIES) or _WINDOW_GUARD_RE.search(code):
            return
        run.issue("hydration", Severity.HIGH, "Window API access without SSR protection detected")
        run.apply("ssr-safety", "Added window API SSR guards", guard_window)
        run.recommend("ssr-safety", "Move window-dependent logic into useEffect or a client-only component")

    def _document(self, run: LayerRun) -> None:
        code = run.original
        members = DOCUMENT_METHODS + DOCUMENT_PROPERTIES
        if not _uses_member(code, "document", members) or _DOCUMENT_GUARD_RE.search(code):
            return
        run.issue("hydration", Severity.MEDIUM, "Document API access without SSR protection detected")
        run.apply("ssr-safety", "Added document API SSR guards", guard_document)
        run.recommend("ssr-safety", "Prefer refs over document queries in React components")

    def _navigator(self, run: LayerRun) -> None:
        code = run.original
        if not _uses_member(code, "navigator", NAVIGATOR_PROPERTIES) or _NAVIGATOR_GUARD_RE.search(code):
            return
        run.issue("hydration", Severity.MEDIUM, "Navigator API access without SSR protection detected")
        run.apply("ssr-safety", "Added navigator API SSR guards", guard_navigator)
        run.recommend("ssr-safety", "Detect navigator capabilities after mount")

    def _theme_provider(self, run: LayerRun) -> None:
        if not needs_theme_provider_fix(run.original):
            return
        run.issue("hydration", Severity.MEDIUM, "Theme provider needs hydration safety")
        run.apply("hydration-fix", "Added theme provider hydration safety", add_theme_provider_fix)
        run.recommend("hydration-fix", "Persist the theme in a cookie so the server can render it")

    def _event_listeners(self, run: LayerRun) -> None:
        fixable, inline = count_listener_effects(run.original)
        if inline:
            run.recommend(
                "memory-safety",
                f"Extract {inline} inline event handler(s) into named functions so they can be removed on cleanup",
                priority="low",
            )
        if not fixable:
            return
        run.issue("hydration", Severity.LOW, "Event listeners in useEffect may need cleanup", count=fixable)
        run.apply("memory-safety", "Added event listener cleanup", add_event_listener_cleanup)
        run.recommend("memory-safety", "Remove every listener registered in useEffect from its cleanup function")

    def _client_only(self, run: LayerRun) -> None:
        if not needs_client_only_wrapper(run.original):
            return
        run.issue("hydration", Severity.MEDIUM, "Component appears to be client-only, consider NoSSR wrapper")
        applied = run.apply("client-only-fix", "Added NoSSR wrapper for client-only component", add_client_only_wrapper)
        if not applied and not run.dry_run:
            logger.debug("Client-only component detected but no default export or <div> root to wrap")
        if "google.maps" in run.original:
            run.recommend("client-only-fix", "Keep Google Maps access inside the dynamically imported component")
        else:
            run.recommend("create-file", "Create NoSSR component for client-only rendering", priority="high")

    def _chart_guards(self, run: LayerRun) -> None:
        effects = _unguarded_chart_effects(run.original)
        if not effects:
            return
        run.issue("hydration", Severity.HIGH, "Chart library needs SSR protection", count=len(effects))
        run.apply("ssr-safety", "Added SSR protection for chart libraries", add_chart_guards)
        run.recommend("ssr-safety", "Load chart components with next/dynamic and { ssr: false }")
