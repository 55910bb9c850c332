"""
Tests for Layer 4 (hydration / SSR safety).

Tests:
- Tier gating
- Storage/window/document/navigator guards (assignment targets untouched)
- Theme provider, listener cleanup, client-only wrappers, chart guards
- Idempotence and dry run
"""

import pytest

from backend.app.models.transform import TransformOptions, UserTier
from backend.app.services.layers.hydration_layer import (
    HydrationLayer,
    add_event_listener_cleanup,
    add_theme_provider_fix,
    count_listener_effects,
    guard_document,
    guard_storage,
    guard_window,
    needs_client_only_wrapper,
    needs_theme_provider_fix,
    wrap_dynamic_export,
    wrap_in_no_ssr,
)


@pytest.fixture
def layer():
    return HydrationLayer()


def apply(layer, code, tier=UserTier.PROFESSIONAL, **options):
    return layer.apply(code, "Widget.jsx", TransformOptions(user_tier=tier, **options))


class TestTierGating:

    def test_free_tier_is_a_no_op(self, layer):
        code = "const theme = localStorage.getItem('theme');"
        result = apply(layer, code, tier=UserTier.FREE)

        assert result.transformed == code
        assert result.detected_issues == []

    def test_enterprise_runs(self, layer):
        result = apply(layer, "const theme = localStorage.getItem('theme');", tier=UserTier.ENTERPRISE)
        assert result.applied_fixes


class TestGuards:

    def test_storage_read_becomes_ternary(self):
        code = "const theme = localStorage.getItem('theme');"
        assert guard_storage(code, "localStorage") == (
            'const theme = (typeof window !== "undefined" ? localStorage.getItem(\'theme\') : null);'
        )

    def test_storage_write_is_short_circuited(self):
        code = "sessionStorage.setItem('k', JSON.stringify(v));"
        assert guard_storage(code, "sessionStorage") == (
            'typeof window !== "undefined" && sessionStorage.setItem(\'k\', JSON.stringify(v));'
        )

    def test_window_member_chain_is_wrapped(self):
        code = "const path = window.location.pathname;"
        assert guard_window(code) == 'const path = (typeof window !== "undefined" ? window.location.pathname : undefined);'

    def test_assignment_target_is_left_untouched(self):
        code = "window.location.href = '/login';"
        assert guard_window(code) == code

    def test_document_title_falls_back_to_empty_string(self):
        code = "const t = document.title;"
        assert guard_document(code) == 'const t = (typeof document !== "undefined" ? document.title : "");'

    def test_member_text_in_string_is_left_alone(self, layer):
        code = 'export const hint = "read window.location for the url";'

        assert guard_window(code) == code
        result = apply(layer, code)
        assert result.transformed == code
        assert result.detected_issues == []

    def test_member_text_in_comment_is_left_alone(self, layer):
        code = "// window.location is read after mount\n/* localStorage.getItem('k') */\nexport const x = 1;\n"
        result = apply(layer, code)

        assert result.transformed == code
        assert result.detected_issues == []

    def test_guarded_file_is_not_reported_again(self, layer):
        code = "const theme = localStorage.getItem('theme');\nconst w = window.innerWidth;"
        once = apply(layer, code).transformed
        twice = apply(layer, once)

        assert twice.detected_issues == []
        assert twice.transformed == once


class TestThemeProvider:

    THEME = """export function ThemeProvider({ children }) {
  const [theme, setTheme] = useState("light");
  return (
    <ThemeContext.Provider value={{ theme, setTheme }}>
      {children}
    </ThemeContext.Provider>
  );
}
"""

    def test_detection(self):
        assert needs_theme_provider_fix(self.THEME) is True
        assert needs_theme_provider_fix(self.THEME.replace("useState", "useTheme")) is False

    def test_mounted_guard_added(self):
        updated = add_theme_provider_fix(self.THEME)

        assert "const [mounted, setMounted] = useState(false);" in updated
        assert "if (!mounted) {" in updated
        assert updated.startswith("import { useState, useEffect } from 'react';")
        assert needs_theme_provider_fix(updated) is False


class TestEventListeners:

    EFFECT = """useEffect(() => {
    window.addEventListener('resize', handleResize);
  }, []);"""

    def test_named_handler_gets_cleanup(self):
        updated = add_event_listener_cleanup(self.EFFECT)

        assert "return () => {" in updated
        assert "window.removeEventListener('resize', handleResize);" in updated
        assert count_listener_effects(updated) == (0, 0)

    def test_applied_cleanup_records_recommendation(self, layer):
        result = apply(layer, self.EFFECT)

        assert [fix.type for fix in result.applied_fixes] == ["memory-safety"]
        assert [rec.type for rec in result.recommendations] == ["memory-safety"]

    def test_inline_handler_is_recommended_not_rewritten(self, layer):
        code = "useEffect(() => {\n  window.addEventListener('scroll', () => setY(window.scrollY));\n}, []);"

        assert count_listener_effects(code) == (0, 1)
        result = apply(layer, code)
        assert any(rec.type == "memory-safety" for rec in result.recommendations)


class TestClientOnly:

    def test_detection_skips_wrapped_files(self):
        assert needs_client_only_wrapper("const c = new Chart(ctx, cfg);") is True
        assert needs_client_only_wrapper("import dynamic from 'next/dynamic';\nnew Chart(ctx)") is False

    def test_google_maps_uses_dynamic_export(self):
        code = "export default function MapView() {\n  const map = new google.maps.Map(ref.current);\n  return <div ref={ref} />;\n}\n"
        updated = wrap_dynamic_export(code)

        assert updated.startswith("import dynamic from 'next/dynamic';")
        assert "const MapViewClient = dynamic(() => Promise.resolve(MapView), { ssr: false });" in updated
        assert updated.rstrip().endswith("export default MapViewClient;")

    def test_google_maps_fix_records_recommendation(self, layer):
        code = "export default function MapView() {\n  const map = new google.maps.Map(ref.current);\n  return <div ref={ref} />;\n}\n"
        result = apply(layer, code)

        assert [fix.type for fix in result.applied_fixes] == ["client-only-fix"]
        assert [rec.type for rec in result.recommendations] == ["client-only-fix"]
        assert "Google Maps" in result.recommendations[0].description

    def test_no_ssr_wraps_root_div_children(self):
        code = "export default function Viewer() {\n  return (\n    <div className=\"a\">\n      <div>inner</div>\n      <canvas />\n    </div>\n  );\n}\n"
        updated = wrap_in_no_ssr(code)

        assert '<div className="a"><NoSSR>' in updated
        assert "</NoSSR></div>\n  );" in updated
        assert updated.startswith('import NoSSR from "@/components/NoSSR";')


def test_chart_effect_gets_window_guard(layer):
    code = "useEffect(() => {\n  const chart = new Chart(ref.current, config);\n}, []);"
    result = apply(layer, code)

    assert 'if (typeof window === "undefined") return;' in result.transformed
    assert "Chart library needs SSR protection" in [i.description for i in result.detected_issues]
    chart_recs = [rec for rec in result.recommendations if rec.type == "ssr-safety"]
    assert len(chart_recs) == 1
    assert "next/dynamic" in chart_recs[0].description


def test_dry_run_identity(layer):
    code = "const theme = localStorage.getItem('theme');\nconst w = window.innerWidth;"
    result = apply(layer, code, dry_run=True)

    assert result.transformed == code
    assert len(result.detected_issues) == 2
    assert result.applied_fixes == []
