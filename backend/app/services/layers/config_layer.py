"""
Layer 1 - configuration modernization.

Only three kinds of files are eligible: ``tsconfig.json``, ``next.config.*``
and ``package.json``. Every edit is a textual splice so that the caller's
formatting survives untouched outside the edited region.
"""

from __future__ import annotations

import logging
import os
import re

from ...models.transform import LayerResult, Severity, TransformOptions
from .base import BaseLayer, LayerRegistry, LayerRun

logger = logging.getLogger(__name__)

_TS_TARGET_ES5_RE = re.compile(r'"target"\s*:\s*"es5"', re.IGNORECASE)
_TS_STRICT_FALSE_RE = re.compile(r'"strict"\s*:\s*false')

_APP_DIR_LINE_RE = re.compile(r"^[ \t]*appDir\s*:\s*true,?[ \t]*\n", re.MULTILINE)
_APP_DIR_RE = re.compile(r"appDir\s*:\s*true,?\s*")
_STRICT_MODE_FALSE_RE = re.compile(r"reactStrictMode\s*:\s*false")
_CONFIG_OBJECT_RE = re.compile(
    r"(?:(?:const|let|var)\s+nextConfig\s*(?::\s*[\w.]+\s*)?=\s*|module\.exports\s*=\s*)\{"
)

_SCRIPTS_OPEN_RE = re.compile(r'"scripts"\s*:\s*\{')
_START_SCRIPT_RE = re.compile(r'"start"\s*:\s*"([^"]*)"')
_BUILD_SCRIPT_RE = re.compile(r'"build"\s*:\s*"[^"]*"')

SECURITY_HEADERS_BLOCK = """
  async headers() {
    return [
      {
        source: '/(.*)',
        headers: [
          { key: 'X-Frame-Options', value: 'DENY' },
          { key: 'X-Content-Type-Options', value: 'nosniff' }
        ]
      }
    ];
  },"""


def _inject_headers(code: str) -> str:
    match = _CONFIG_OBJECT_RE.search(code)
    if not match:
        return code
    brace = match.end()
    # Empty object literal: `= {}` becomes `= {<headers>\n}`
    if code[brace:brace + 1] == "}":
        return code[:brace] + SECURITY_HEADERS_BLOCK + "\n" + code[brace:]
    return code[:brace] + SECURITY_HEADERS_BLOCK + code[brace:]


def _modernize_tsconfig(code: str) -> str:
    updated = _TS_TARGET_ES5_RE.sub('"target": "ES2020"', code, count=1)
    updated = _TS_STRICT_FALSE_RE.sub('"strict": true', updated)

    extra = []
    if '"strict"' not in updated:
        extra.append('"strict": true')
    if "downlevelIteration" not in updated:
        extra.append('"downlevelIteration": true')
    if extra:
        addition = "".join(f",\n    {entry}" for entry in extra)
        updated = updated.replace('"target": "ES2020"', '"target": "ES2020"' + addition, 1)
    return updated


def _remove_app_dir(code: str) -> str:
    updated = _APP_DIR_LINE_RE.sub("", code)
    updated = _APP_DIR_RE.sub("", updated)
    return _STRICT_MODE_FALSE_RE.sub("reactStrictMode: true", updated)


def _ensure_start_script(code: str) -> str:
    start = _START_SCRIPT_RE.search(code)
    if start:
        return code[:start.start()] + '"start": "next start"' + code[start.end():]

    scripts = _SCRIPTS_OPEN_RE.search(code)
    if not scripts:
        return code
    rest = code[scripts.end():]
    separator = "" if rest.lstrip().startswith("}") else ","
    return code[:scripts.end()] + f'\n    "start": "next start"{separator}' + rest


def _ensure_lint_script(code: str) -> str:
    if '"lint"' in code:
        return code
    build = _BUILD_SCRIPT_RE.search(code)
    if not build:
        return code
    return code[:build.end()] + ',\n    "lint": "next lint"' + code[build.end():]


@LayerRegistry.register
class ConfigLayer(BaseLayer):
    """Modernize tsconfig/next.config/package.json."""

    layer_id = 1
    name = "config"
    description = "Configuration modernization (tsconfig, next.config, package.json)"

    def apply(self, code: str, filename: str, options: TransformOptions) -> LayerResult:
        run = self.start(code, options)
        basename = os.path.basename(filename)

        if basename == "tsconfig.json":
            self._tsconfig(run)
        elif basename.startswith("next.config."):
            self._next_config(run)
        elif basename == "package.json":
            self._package_json(run)

        return run.result()

    def _tsconfig(self, run: LayerRun) -> None:
        if not _TS_TARGET_ES5_RE.search(run.original):
            return
        run.issue("config", Severity.HIGH, "Outdated TypeScript configuration detected", pattern='"target": "es5"')
        run.apply(
            "config-modernization",
            "Upgraded TypeScript target and enabled strict mode",
            _modernize_tsconfig,
        )

    def _next_config(self, run: LayerRun) -> None:
        if _APP_DIR_RE.search(run.original):
            run.issue("config", Severity.MEDIUM, "Deprecated appDir option found", pattern="appDir: true")
            run.apply(
                "config-modernization",
                "Removed deprecated appDir option and enabled reactStrictMode",
                _remove_app_dir,
            )

        if "headers" not in run.original:
            run.issue("config", Severity.MEDIUM, "Missing security headers")
            applied = run.apply("config-security", "Added security headers", _inject_headers)
            if not applied and not run.dry_run:
                logger.debug("next.config has no recognizable config object; headers not injected")

    def _package_json(self, run: LayerRun) -> None:
        code = run.original
        if '"scripts"' not in code:
            return

        start = _START_SCRIPT_RE.search(code)
        needs_start = start is None or start.group(1) != "next start"
        needs_lint = '"lint"' not in code and _BUILD_SCRIPT_RE.search(code) is not None
        if not (needs_start or needs_lint):
            return

        run.issue("config", Severity.LOW, "Script optimization opportunities found")
        run.apply(
            "script-modernization",
            "Updated package.json scripts",
            lambda text: _ensure_lint_script(_ensure_start_script(text)),
        )
