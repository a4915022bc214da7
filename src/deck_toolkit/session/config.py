"""
Module: session.config

Purpose:
    Configuration dataclass for presentation sessions. Immutable
    configuration with validation on construction.

Key Classes:
    - SessionConfig: Locking, snapshot and save behaviour of a session

Dependencies:
    - dataclasses (std)
    - pathlib (std)

Used By:
    - session.session
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..core.config import EditingConfig
from ..core.errors import ConfigurationError


@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration for a presentation session (immutable).

    Attributes:
        editing: Defaults for structural edits
        lock_package: Hold an exclusive advisory lock while the session is open
        snapshot_transactions: Snapshot the package before each structural
            operation and restore it on failure
        validate_on_save: Refuse to save a package with integrity errors
        work_dir: Parent directory for archive extraction and snapshots
            (system temp dir when None)

    Example:
        >>> config = SessionConfig(lock_package=False)
        >>> config.editing.default_effect_filter
        'fade'
    """

    editing: EditingConfig = field(default_factory=EditingConfig)

    # Safety
    lock_package: bool = True
    snapshot_transactions: bool = True
    validate_on_save: bool = True

    # Scratch space
    work_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if not isinstance(self.editing, EditingConfig):
            raise ConfigurationError(f"editing must be an EditingConfig, got {type(self.editing).__name__}")
        if self.work_dir is not None and self.work_dir.exists() and not self.work_dir.is_dir():
            raise ConfigurationError(f"work_dir is not a directory: {self.work_dir}")
