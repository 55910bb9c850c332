"""
Layer 3 - component / JSX intelligence.

Several independent fixers, each gated by its own detector:

- missing ``key`` props on elements rendered from ``.map()`` callbacks
  (the only edit gated by the corruption validator, one insertion site at a time)
- missing React hook imports
- accessibility attributes (``alt`` on images, ``aria-label`` on icon-only buttons)
- design-system conventions (Button/Input/Icon props, Tabs/FormField structure)
- TypeScript hygiene for ``.tsx`` components (prop interfaces, forwardRef displayName)
- detection-only flag for double-invoked event handlers
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ...models.transform import LayerResult, Severity, TransformOptions
from ..corruption_validator import CORRUPTION_SIGNATURES, CorruptionValidator
from ..source_utils import (
    JsxTag,
    ensure_react_imports,
    find_matching,
    insert_after_tag_names,
    iter_jsx_tags,
    jsx_tag_at,
    missing_react_hooks,
    split_top_level,
    tag_inner_content,
)
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

DESIGN_SYSTEM_EXTENSIONS = ("tsx", "jsx", "ts", "js")

# Legacy Button variants -> current design-system names
BUTTON_VARIANT_MAP: Dict[str, str] = {
    "primary": "default",
    "secondary": "secondary",
    "danger": "destructive",
    "success": "default",
}

_MAP_CALL_RE = re.compile(r"\.map\s*\(")
_KEY_ATTR_RE = re.compile(r"\bkey\s*=(?!=)")
_HAS_JSX_RE = re.compile(r"<[A-Za-z]")
_CALLBACK_HEAD_RE = re.compile(r"\s*(?:async\s+)?(?:\(([^()]*)\)|([A-Za-z_$][\w$]*))\s*=>\s*")
_RETURN_JSX_RE = re.compile(r"\breturn\s*\(?\s*(?=<[A-Za-z])")

_UNTYPED_COMPONENT_RE = re.compile(
    r"^([ \t]*)((?:export\s+(?:default\s+)?)?function\s+([A-Z]\w*)\s*\()props(\)\s*\{)",
    re.MULTILINE,
)
_BARE_PROPS_INTERFACE_RE = re.compile(r"\binterface\s+(\w+Props)\s*\{")
_FORWARD_REF_RE = re.compile(r"\bconst\s+(\w+)\s*=\s*(?:React\.)?forwardRef\b(?:\s*<[^()]*?>)?\s*\(")

_DOUBLE_INVOKED_HANDLER = dict(CORRUPTION_SIGNATURES)["double-invoked-handler"]


# ---------------------------------------------------------------------------
# Key props
# ---------------------------------------------------------------------------


@dataclass
class _MapSite:
    """A ``.map()`` callback whose rendered root element has no key."""

    params_start: int
    params_end: int
    params: List[str]
    root: JsxTag


def _param_name(param: str) -> Optional[str]:
    """Identifier of a simple parameter (``item`` or ``item: Item``); None when destructured."""
    name = param.split(":", 1)[0].split("=", 1)[0].strip()
    return name if re.fullmatch(r"[A-Za-z_$][\w$]*", name) else None


def _callback_root(code: str, body_start: int, callback_end: int) -> Optional[JsxTag]:
    """Locate the JSX element a map callback returns (expression or block body)."""
    i = body_start
    if i < callback_end and code[i] == "(":
        i += 1
        while i < callback_end and code[i].isspace():
            i += 1
    if i < callback_end and code[i] == "<":
        return jsx_tag_at(code, i)
    if i < callback_end and code[i] == "{":
        close = find_matching(code, i)
        if close == -1:
            return None
        returned = _RETURN_JSX_RE.search(code, i, close)
        if returned:
            return jsx_tag_at(code, returned.end())
    return None


def _map_site(code: str, call: re.Match) -> Optional[_MapSite]:
    open_index = call.end() - 1
    close_index = find_matching(code, open_index)
    if close_index == -1:
        return None

    head = _CALLBACK_HEAD_RE.match(code, open_index + 1, close_index)
    if not head:
        return None

    if head.group(1) is not None:
        params = split_top_level(head.group(1))
        params_start, params_end = head.start(1) - 1, head.end(1) + 1
    else:
        params = [head.group(2)]
        params_start, params_end = head.start(2), head.end(2)

    root = _callback_root(code, head.end(), close_index)
    if root is None or root.start >= close_index or root.has_attr("key"):
        return None
    return _MapSite(params_start, params_end, params, root)


def find_keyless_map_sites(code: str) -> List[_MapSite]:
    sites = []
    for call in _MAP_CALL_RE.finditer(code):
        site = _map_site(code, call)
        if site is not None:
            sites.append(site)
    return sites


def needs_key_props(code: str) -> bool:
    map_count = len(_MAP_CALL_RE.findall(code))
    key_count = len(_KEY_ATTR_RE.findall(code))
    return bool(_HAS_JSX_RE.search(code)) and key_count < map_count


def _key_edit(site: _MapSite, reference: str):
    """Build the edit adding a key to ``site``; item property access in ``reference`` selects ``item.id``."""
    item = _param_name(site.params[0]) if site.params else None
    if item and re.search(rf"(?<![\w$]){re.escape(item)}\.[A-Za-z_$]", reference):
        key_value = f"{item}.id"
        new_params = None
    elif len(site.params) > 1 and _param_name(site.params[1]):
        key_value = _param_name(site.params[1])
        new_params = None
    else:
        key_value = "index"
        new_params = f"({', '.join(site.params + ['index'])})"

    def edit(text: str) -> str:
        name_end = site.root.name_end
        text = text[:name_end] + f" key={{{key_value}}}" + text[name_end:]
        if new_params is not None:
            text = text[:site.params_start] + new_params + text[site.params_end:]
        return text

    return edit


def add_key_props(code: str, validator: CorruptionValidator, reference: Optional[str] = None) -> Tuple[str, int]:
    """
    Insert keys site by site; every insertion is validated on its own.

    Returns the new text and the number of accepted insertions.
    """
    reference = code if reference is None else reference
    accepted_count = 0
    position = 0
    while True:
        call = _MAP_CALL_RE.search(code, position)
        if not call:
            break
        position = call.end()
        site = _map_site(code, call)
        if site is None:
            continue
        code, accepted = validator.attempt(code, _key_edit(site, reference), label="react-keys")
        if accepted:
            accepted_count += 1
    return code, accepted_count


# ---------------------------------------------------------------------------
# Accessibility and design system
# ---------------------------------------------------------------------------


def is_icon_only_content(content: Optional[str]) -> bool:
    """Empty, an icon, or a bare expression that is not ``children``. Unknown (None) is never icon-only."""
    if content is None:
        return False
    stripped = content.strip()
    if not stripped:
        return True
    if stripped.startswith("<"):
        return "<svg" in stripped or re.search(r"<\w*Icon\b", stripped) is not None
    if stripped.startswith("{"):
        return "children" not in stripped
    return False


def _unlabelled_icon_buttons(code: str) -> List[JsxTag]:
    return [
        tag
        for tag in iter_jsx_tags(code, "button")
        if not tag.has_attr_prefix("aria-") and is_icon_only_content(_block_content(code, tag))
    ]


def _legacy_variant_re(variant: str) -> re.Pattern:
    return re.compile(rf'(<Button\b[^<>]*?\bvariant=)"{variant}"')


def _unsized_icons(code: str) -> List[JsxTag]:
    return [
        tag
        for tag in iter_jsx_tags(code, r"[A-Z]\w*Icon")
        if not tag.has_attr("className") and not tag.has_attr("size")
    ]


def _block_content(code: str, tag: JsxTag) -> Optional[str]:
    """Children text of ``tag``: '' when self-closing, None when the closing tag is missing."""
    if tag.self_closing:
        return ""
    return tag_inner_content(code, tag)


def add_display_names(code: str) -> str:
    output = code
    # right to left so earlier offsets stay valid
    for match in reversed(list(_FORWARD_REF_RE.finditer(code))):
        name = match.group(1)
        if re.search(rf"\b{name}\.displayName\b", code):
            continue
        close = find_matching(output, match.end() - 1)
        if close == -1:
            continue
        end = close + 1
        if end < len(output) and output[end] == ";":
            end += 1
        output = output[:end] + f'\n{name}.displayName = "{name}";' + output[end:]
    return output


def add_prop_interfaces(code: str) -> str:
    def replace(match: re.Match) -> str:
        indent, head, name, tail = match.groups()
        interface = f"{indent}interface {name}Props {{\n{indent}  [key: string]: any;\n{indent}}}\n\n"
        return f"{interface}{indent}{head}props: {name}Props{tail}"

    return _UNTYPED_COMPONENT_RE.sub(replace, code)


def extend_prop_interfaces(code: str) -> str:
    return _BARE_PROPS_INTERFACE_RE.sub(r"interface \1 extends React.HTMLAttributes<HTMLDivElement> {", code)


@LayerRegistry.register
class ComponentLayer(BaseLayer):
    """React component fixes: keys, hook imports, accessibility, design system, TypeScript."""

    layer_id = 3
    name = "components"
    description = "Component/JSX intelligence (keys, imports, accessibility, design system)"

    def __init__(self, validator: Optional[CorruptionValidator] = None):
        self.validator = validator or CorruptionValidator()

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)
        extension = os.path.splitext(filename)[1].lstrip(".").lower()

        self._key_props(run)
        self._hook_imports(run)
        self._image_alt(run)

        if extension in DESIGN_SYSTEM_EXTENSIONS:
            self._buttons(run)
            self._structure_checks(run)
            self._inputs(run)
            self._icons(run)
            if extension == "tsx":
                self._typescript_interfaces(run)
            self._forward_ref(run)
            self._aria_labels(run)

        self._handler_corruption(run)
        return run.result()

    def _key_props(self, run: LayerRun) -> None:
        if not needs_key_props(run.original):
            return
        sites = find_keyless_map_sites(run.original)
        if not sites:
            return
        run.issue("component", Severity.HIGH, "Missing key props in mapped elements", count=len(sites))
        if run.dry_run:
            return

        updated, accepted = add_key_props(run.code, self.validator, reference=run.original)
        if accepted:
            run.code = updated
            run.record_fix("react-keys", "Added missing key props to mapped elements")
        if accepted < len(sites):
            logger.debug(f"Key props: {len(sites) - accepted} insertion(s) rejected by validator")

    def _hook_imports(self, run: LayerRun) -> None:
        missing = missing_react_hooks(run.original)
        if not missing:
            return
        run.issue("component", Severity.HIGH, "Missing React hook imports", pattern=", ".join(missing))
        run.apply(
            "imports",
            "Added missing React hook imports",
            lambda text: ensure_react_imports(text, missing_react_hooks(text)),
        )

    def _image_alt(self, run: LayerRun) -> None:
        missing = [tag for tag in iter_jsx_tags(run.original, "img") if not tag.has_attr("alt")]
        if not missing:
            return
        run.issue("component", Severity.MEDIUM, "images missing alt attributes", count=len(missing))
        run.apply(
            "accessibility",
            "Added alt attributes to images",
            lambda text: insert_after_tag_names(
                text, [tag for tag in iter_jsx_tags(text, "img") if not tag.has_attr("alt")], 'alt=""'
            ),
        )

    def _buttons(self, run: LayerRun) -> None:
        code = run.original

        if "variant=" not in code and any(True for _ in iter_jsx_tags(code, "Button")):
            run.issue("component", Severity.MEDIUM, "Button missing variant prop")
            run.apply(
                "component",
                "Added Button variant props",
                lambda text: insert_after_tag_names(text, list(iter_jsx_tags(text, "Button")), 'variant="default"'),
            )

        for old, new in BUTTON_VARIANT_MAP.items():
            if old == new:
                continue
            pattern = _legacy_variant_re(old)
            if not pattern.search(code):
                continue
            run.issue("component", Severity.MEDIUM, f'Legacy Button variant "{old}" should be "{new}"')
            run.apply(
                "component",
                f"Updated Button variant from {old} to {new}",
                lambda text, pattern=pattern, new=new: pattern.sub(rf'\1"{new}"', text),
            )

        plain = [tag for tag in iter_jsx_tags(code, "button") if not tag.has_attr("variant")]
        if plain:
            run.issue("component", Severity.MEDIUM, "Button elements missing variant attribute", count=len(plain))
            run.apply(
                "component",
                "Added variant attribute to button elements",
                lambda text: insert_after_tag_names(
                    text,
                    [tag for tag in iter_jsx_tags(text, "button") if not tag.has_attr("variant")],
                    'variant="default"',
                ),
            )

    def _structure_checks(self, run: LayerRun) -> None:
        code = run.original
        for tag in iter_jsx_tags(code, "Tabs"):
            content = _block_content(code, tag) or ""
            if "TabsList" not in content or "TabsContent" not in content:
                run.issue("component", Severity.MEDIUM, "Tabs missing proper structure (TabsList/TabsContent)")

        for tag in iter_jsx_tags(code, "FormField"):
            content = _block_content(code, tag) or ""
            if "FormControl" not in content and not tag.has_attr("render") and "render=" not in content:
                run.issue("component", Severity.MEDIUM, "FormField missing proper control structure")

    def _inputs(self, run: LayerRun) -> None:
        if "<Input" not in run.original or "type=" in run.original:
            return
        run.issue("component", Severity.MEDIUM, "Input missing type prop")
        run.apply(
            "component",
            "Added Input type props",
            lambda text: insert_after_tag_names(text, list(iter_jsx_tags(text, "Input")), 'type="text"'),
        )

    def _icons(self, run: LayerRun) -> None:
        icons = _unsized_icons(run.original)
        if not icons:
            return
        run.issue("component", Severity.LOW, "Icon missing size props", count=len(icons))
        run.apply(
            "component",
            "Added Icon size props",
            lambda text: insert_after_tag_names(text, _unsized_icons(text), 'className="w-4 h-4"'),
        )

    def _typescript_interfaces(self, run: LayerRun) -> None:
        code = run.original
        untyped = "interface" not in code and _UNTYPED_COMPONENT_RE.search(code) is not None
        if untyped:
            run.issue("typescript", Severity.MEDIUM, "Component missing TypeScript interface")
            run.apply("typescript", "Added TypeScript interface definitions", add_prop_interfaces)

        if untyped or _BARE_PROPS_INTERFACE_RE.search(code):
            run.issue("typescript", Severity.MEDIUM, "Component interfaces missing proper extensions")
            run.apply("typescript", "Extended component prop interfaces", extend_prop_interfaces)

    def _forward_ref(self, run: LayerRun) -> None:
        code = run.original
        unnamed = [
            match.group(1)
            for match in _FORWARD_REF_RE.finditer(code)
            if not re.search(rf"\b{match.group(1)}\.displayName\b", code)
        ]
        if not unnamed:
            return
        run.issue("component", Severity.MEDIUM, "ForwardRef components missing displayName", pattern=", ".join(unnamed))
        run.apply("component", "Added displayName to forwardRef components", add_display_names)

    def _aria_labels(self, run: LayerRun) -> None:
        code = run.original
        if "aria-label" in code:
            return
        buttons = _unlabelled_icon_buttons(code)
        if not buttons:
            return
        run.issue("accessibility", Severity.MEDIUM, "Interactive elements missing ARIA labels", count=len(buttons))
        run.apply(
            "accessibility",
            "Added ARIA labels to interactive elements",
            lambda text: insert_after_tag_names(text, _unlabelled_icon_buttons(text), 'aria-label="Button"'),
        )

    def _handler_corruption(self, run: LayerRun) -> None:
        if _DOUBLE_INVOKED_HANDLER.search(run.original):
            run.issue("corruption", Severity.CRITICAL, "Event handler corruption detected", pattern=") => ()")
