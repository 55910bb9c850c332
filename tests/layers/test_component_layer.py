"""
Tests for Layer 3 (component / JSX intelligence).

Tests:
- Key props on mapped elements (coverage, strategies, validator gating)
- Hook imports, accessibility and design-system rules
- TypeScript interfaces and forwardRef displayName
- Handler corruption flag
"""

import re

import pytest

from backend.app.models.transform import TransformOptions
from backend.app.services.corruption_validator import CorruptionValidator
from backend.app.services.layers.component_layer import (
    ComponentLayer,
    add_display_names,
    add_key_props,
    find_keyless_map_sites,
)


@pytest.fixture
def layer():
    return ComponentLayer()


def apply(layer, code, filename="List.jsx", **options):
    return layer.apply(code, filename, TransformOptions(**options))


class TestKeyProps:
    """Missing keys on elements rendered by .map() callbacks."""

    def test_item_property_access_uses_item_id(self, layer):
        result = apply(layer, "items.map(item => <li>{item.name}</li>)")

        assert result.transformed == "items.map(item => <li key={item.id}>{item.name}</li>)"
        assert [fix.type for fix in result.applied_fixes] == ["react-keys"]

    def test_existing_index_parameter_is_used(self, layer):
        code = "rows.map((row, i) => <Row data={row} />)"
        result = apply(layer, code)

        assert result.transformed == "rows.map((row, i) => <Row key={i} data={row} />)"

    def test_index_parameter_is_added(self, layer):
        code = "names.map((name) => <span>{name}</span>)"
        result = apply(layer, code)

        assert result.transformed == "names.map((name, index) => <span key={index}>{name}</span>)"

    def test_block_body_with_return(self, layer):
        code = "users.map(user => {\n  return (\n    <Card title={user.name} />\n  );\n})"
        result = apply(layer, code)

        assert "<Card key={user.id} title={user.name} />" in result.transformed

    def test_attribute_arrow_functions_are_not_tag_ends(self, layer):
        code = "todos.map(todo => <Item onSelect={() => toggle(todo.id)}>{todo.title}</Item>)"
        result = apply(layer, code)

        assert "<Item key={todo.id} onSelect={() => toggle(todo.id)}>" in result.transformed

    def test_every_map_root_gets_a_key(self, layer):
        code = """export function Lists({ a, b, c }) {
  return (
    <div>
      {a.map(x => <p>{x.label}</p>)}
      {b.map((y, n) => <span>{y}</span>)}
      {c.map(z => (
        <section>
          {z.items.map(w => <em>{w.text}</em>)}
        </section>
      ))}
    </div>
  );
}
"""
        result = apply(layer, code)

        assert len(re.findall(r"\bkey=", result.transformed)) >= 4

    def test_keyed_elements_are_left_alone(self, layer):
        code = "items.map(item => <li key={item.slug}>{item.name}</li>)"
        result = apply(layer, code)

        assert result.transformed == code
        assert result.detected_issues == []

    def test_non_jsx_map_is_ignored(self):
        assert find_keyless_map_sites("const ids = items.map(item => item.id);") == []

    def test_rejected_insertion_is_rolled_back(self):
        code = "items.map(item => <li>{item.name}</li>)"
        rejecting = CorruptionValidator(brace_tolerance=0, paren_tolerance=0)

        updated, accepted = add_key_props(code, rejecting)

        assert updated == code
        assert accepted == 0

    def test_idempotent(self, layer):
        once = apply(layer, "items.map(item => <li>{item.name}</li>)").transformed
        twice = apply(layer, once)

        assert twice.transformed == once
        assert not [i for i in twice.detected_issues if "key" in i.description]


class TestImportsAndAccessibility:

    def test_missing_hook_imports_added(self, layer):
        code = "import React from 'react';\nfunction A() { const [a] = useState(0); useEffect(() => {}, []); }"
        result = apply(layer, code)

        assert result.transformed.startswith("import React, { useState, useEffect } from 'react';")
        assert "imports" in [fix.type for fix in result.applied_fixes]

    def test_img_alt_added(self, layer):
        result = apply(layer, '<img src="a.png" />')

        assert result.transformed == '<img alt="" src="a.png" />'

    def test_icon_only_button_gets_aria_label(self, layer):
        code = '<button variant="ghost" onClick={close}><XIcon className="w-4 h-4" /></button>'
        result = apply(layer, code)

        assert 'aria-label="Button"' in result.transformed

    def test_text_button_gets_no_aria_label(self, layer):
        code = '<button variant="ghost" onClick={save}>Save</button>'
        result = apply(layer, code)

        assert "aria-label" not in result.transformed


class TestDesignSystem:

    def test_button_variant_added(self, layer):
        result = apply(layer, "<Button onClick={go}>Go</Button>")

        assert result.transformed == '<Button variant="default" onClick={go}>Go</Button>'

    def test_legacy_variant_mapped(self, layer):
        result = apply(layer, '<Button variant="danger">Delete</Button>')

        assert result.transformed == '<Button variant="destructive">Delete</Button>'
        assert 'Legacy Button variant "danger" should be "destructive"' in [
            i.description for i in result.detected_issues
        ]

    def test_input_type_added(self, layer):
        result = apply(layer, "<Input value={v} />")

        assert result.transformed == '<Input type="text" value={v} />'

    def test_icon_size_added(self, layer):
        result = apply(layer, "<SearchIcon />")

        assert result.transformed == '<SearchIcon className="w-4 h-4" />'

    def test_tabs_structure_reported(self, layer):
        result = apply(layer, "<Tabs><div>one</div></Tabs>")

        assert "Tabs missing proper structure (TabsList/TabsContent)" in [
            i.description for i in result.detected_issues
        ]

    def test_rules_skipped_for_other_extensions(self, layer):
        code = "<Button>Go</Button>"
        result = apply(layer, code, filename="README.mdx")

        assert result.transformed == code


class TestTypeScript:

    def test_untyped_props_get_interface(self, layer):
        code = "export function Card(props) {\n  return <div>{props.title}</div>;\n}\n"
        result = apply(layer, code, filename="Card.tsx")

        assert "interface CardProps extends React.HTMLAttributes<HTMLDivElement> {" in result.transformed
        assert "export function Card(props: CardProps) {" in result.transformed

    def test_interfaces_only_for_tsx(self, layer):
        code = "export function Card(props) {\n  return <div>{props.title}</div>;\n}\n"
        result = apply(layer, code, filename="Card.jsx")

        assert "interface" not in result.transformed

    def test_forward_ref_display_name(self):
        code = "const Input = React.forwardRef((props, ref) => <input ref={ref} {...props} />);\n"
        updated = add_display_names(code)

        assert 'Input.displayName = "Input";' in updated
        assert add_display_names(updated) == updated


def test_double_invoked_handler_flagged(layer):
    code = '<button variant="default" onClick={(e) => () => go()}>Go</button>'
    result = apply(layer, code)

    critical = [i for i in result.detected_issues if i.severity.value == "critical"]
    assert critical[0].description == "Event handler corruption detected"
    assert result.success is True


def test_dry_run_identity(layer):
    code = "items.map(item => <li>{item.name}</li>)\n<img src=\"a.png\" />"
    result = apply(layer, code, dry_run=True)

    assert result.transformed == code
    assert len(result.detected_issues) == 2
