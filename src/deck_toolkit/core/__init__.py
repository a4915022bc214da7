"""
Core Package

Identifiers, immutable models, the error taxonomy, package path conventions
and lxml helpers. Nothing in core touches registries or performs edits.
"""

from .errors import (
    ConfigurationError,
    DeckError,
    NotFoundError,
    PackageIOError,
    PackageLockedError,
    SlideOperationError,
    StructuralError,
)
from .package import PackageLayout

__all__ = [
    "DeckError",
    "ConfigurationError",
    "NotFoundError",
    "StructuralError",
    "PackageIOError",
    "PackageLockedError",
    "SlideOperationError",
    "PackageLayout",
]
