"""
Module: session.locking

Purpose:
    Advisory single-writer lock for an extracted package. The lock lives in
    a sibling file (``<package dir>.lock``) so it never becomes part of the
    package. Uses portalocker for Mac, Windows, and Linux compatibility.

Key Classes:
    - PackageLock: Non-blocking exclusive lock, usable as a context manager

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - session.session
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Optional

import portalocker

from ..core.errors import PackageIOError, PackageLockedError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


def lock_path_for(package_dir: Path) -> Path:
    """Sibling lock file of a package directory."""
    return package_dir.with_name(package_dir.name + LOCK_SUFFIX)


class PackageLock:
    """
    Exclusive, non-blocking lock on a package directory.

    Example:
        >>> with PackageLock(Path("deck")):
        ...     edit_package()
    """

    def __init__(self, package_dir: Path):
        self.path = lock_path_for(package_dir)
        self._handle: Optional[IO[str]] = None

    @property
    def is_held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        """
        Raises:
            PackageLockedError: If another session holds the lock.
            PackageIOError: If the lock file cannot be created.
        """
        if self._handle is not None:
            return
        try:
            handle = open(self.path, "a", encoding="utf-8")
        except OSError as e:
            raise PackageIOError(f"Cannot create lock file {self.path}: {e}", path=str(self.path)) from e
        try:
            portalocker.lock(handle, portalocker.LOCK_EX | portalocker.LOCK_NB)
        except portalocker.exceptions.LockException as e:
            handle.close()
            raise PackageLockedError(f"Package is locked by another session: {self.path}") from e
        self._handle = handle
        logger.debug(f"Acquired package lock {self.path}")

    def release(self) -> None:
        if self._handle is None:
            return
        try:
            portalocker.unlock(self._handle)
        finally:
            self._handle.close()
            self._handle = None
        logger.debug(f"Released package lock {self.path}")

    def __enter__(self) -> PackageLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
