"""Dependency contract tests for the runtime stack.

This module locks expected runtime dependency behavior.
"""

from pathlib import Path
import tomllib

REPO_ROOT = Path(__file__).resolve().parents[1]


def _project() -> dict:
    data = tomllib.loads((REPO_ROOT / "pyproject.toml").read_text(encoding="utf-8"))
    return data["project"]


def test_runtime_dependencies_contract() -> None:
    """Ensure runtime dependencies include the GIS and storage stack.

    Returns
    -------
    None

    Examples
    --------
    >>> test_runtime_dependencies_contract()
    """
    deps = _project()["dependencies"]
    for name in ("geopandas", "shapely", "pyshp", "sqlalchemy", "httpx", "loguru"):
        assert any(dep.startswith(name) for dep in deps), name


def test_gui_stack_is_not_a_runtime_dependency() -> None:
    """Ensure the desktop GUI stack is not pulled in.

    Returns
    -------
    None
    """
    deps = _project()["dependencies"]
    for name in ("pyside6", "pyqtgraph", "torch"):
        assert not any(dep.lower().startswith(name) for dep in deps), name


def test_settings_stack_declares_pydantic() -> None:
    """Ensure pydantic is declared since config imports it directly.

    Returns
    -------
    None
    """
    names = {dep.split(">")[0].split("=")[0].strip().lower() for dep in _project()["dependencies"]}
    assert "pydantic" in names
    assert "pydantic-settings" in names
