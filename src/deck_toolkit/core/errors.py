"""
Module: core.errors

Purpose:
    Exception taxonomy shared by every deck_toolkit module. Integrity
    problems found by validation are never raised; they are reported as
    findings (see core.models.validation).

Key Classes:
    - DeckError: Base class for all toolkit errors
    - ConfigurationError: Invalid configuration or failed initialization
    - NotFoundError: Referenced slide, relationship, part or node missing
    - StructuralError: Required part missing or malformed
    - PackageIOError: Filesystem failure while reading/writing a package
    - PackageLockedError: Another writer holds the package lock
    - SlideOperationError: Wrapped failure of a multi-step structural operation

Used By:
    - All subpackages
"""

from __future__ import annotations

from typing import Optional


class DeckError(Exception):
    """Base class for deck_toolkit errors."""
    pass


class ConfigurationError(DeckError):
    """Configuration is invalid or a component failed to initialize."""
    pass


class NotFoundError(DeckError):
    """A referenced slide, relationship, part or timing node does not exist."""
    pass


class StructuralError(DeckError):
    """
    A required part is missing or malformed.

    Attributes:
        part: Package-relative path of the offending part (if known)
    """

    def __init__(self, message: str, part: str = ""):
        super().__init__(message)
        self.part = part


class PackageIOError(DeckError):
    """
    Filesystem failure during rename/write/extract.

    Attributes:
        path: Path involved in the failed operation (if known)
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class PackageLockedError(DeckError):
    """Another session already holds the write lock on this package."""
    pass


class SlideOperationError(DeckError):
    """
    A structural operation failed after it started mutating the package.

    The original failure is available as ``__cause__``. A caller receiving
    this error must treat the package as possibly inconsistent unless the
    enclosing session restored a snapshot.

    Attributes:
        operation: Operation name, e.g. "insert_blank_slide"
        position: Slide position the operation targeted (if any)
        possibly_inconsistent: Always True when raised by the cascade
    """

    def __init__(self, operation: str, message: str, position: Optional[int] = None):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.position = position
        self.possibly_inconsistent = True
