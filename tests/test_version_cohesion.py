from __future__ import annotations

from pathlib import Path

import tomllib


PROJECT_ROOT = Path(__file__).resolve().parent.parent


def test_version_is_single_source_of_truth_across_repo() -> None:
    """
    Prevent drift between the public-facing version surfaces.

    Canonical source of truth: `layerfix/_version.py`.
    """
    from layerfix._version import __version__ as canonical_version

    # Backend runtime surface (`/api/system/version`) should match canonical
    from backend.app._version import __version__ as backend_version

    assert backend_version == canonical_version

    # Packaging must derive version dynamically (no manual duplication)
    pyproject = tomllib.loads((PROJECT_ROOT / "pyproject.toml").read_text(encoding="utf-8"))
    assert pyproject["project"]["dynamic"] == ["version"]
    assert pyproject["tool"]["setuptools"]["dynamic"]["version"]["attr"] == "layerfix._version.__version__"
