"""
Session Package

Opening, locking, transactional editing and saving of presentation packages.
"""

from .config import SessionConfig
from .locking import PackageLock, lock_path_for
from .package_io import compress_package, extract_package
from .session import PresentationSession

__all__ = [
    "SessionConfig",
    "PackageLock",
    "lock_path_for",
    "compress_package",
    "extract_package",
    "PresentationSession",
]
