"""Top-level package for the deck toolkit.

Provides subpackages:
- deck_toolkit.core – identifiers, models, errors and XML helpers
- deck_toolkit.registry – package-wide shape and relationship id registries
- deck_toolkit.editing – slide insertion cascade, id regeneration, timing edits
- deck_toolkit.parsing – read-only views over slide parts
- deck_toolkit.session – open/save/validate orchestration with rollback
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.1"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    try:
        from importlib.metadata import version as pkg_version
        return pkg_version("deck_toolkit")
    except Exception:
        return "0.0.0"

__version__ = _get_version()
__all__: list[str] = ["__version__"]
