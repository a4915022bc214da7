"""
Module: session.package_io

Purpose:
    Archive round trip for presentation packages: extract a .pptx into a
    directory of parts, and compress a directory back into an archive with
    the manifest as the first member.

Key Functions:
    - extract_package(): archive -> directory
    - compress_package(): directory -> archive

Dependencies:
    - zipfile (std)

Used By:
    - session.session
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import List

from ..core.errors import NotFoundError, PackageIOError
from ..core.package import CONTENT_TYPES_PART
from .locking import LOCK_SUFFIX

logger = logging.getLogger(__name__)


def extract_package(archive: Path, dest: Path) -> Path:
    """
    Extract a presentation archive.

    Args:
        archive: Path to the .pptx file.
        dest: Directory to extract into (created if needed).

    Returns:
        The destination directory.

    Raises:
        NotFoundError: If the archive does not exist.
        PackageIOError: If the archive is corrupt, contains members outside
            the destination, or cannot be written.
    """
    if not archive.is_file():
        raise NotFoundError(f"Archive not found: {archive}")
    root = dest.resolve()
    try:
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                target = (root / member).resolve()
                if target != root and root not in target.parents:
                    raise PackageIOError(f"Archive member escapes package: {member}", path=str(archive))
            zf.extractall(dest)
            count = len(zf.namelist())
    except zipfile.BadZipFile as e:
        raise PackageIOError(f"Not a valid package archive: {archive.name}", path=str(archive)) from e
    except OSError as e:
        raise PackageIOError(f"Failed to extract {archive.name}: {e}", path=str(archive)) from e

    logger.debug(f"Extracted {count} members from {archive.name} to {dest}")
    return dest


def _package_members(src_dir: Path) -> List[Path]:
    """Files to archive; the manifest first, then sorted part paths."""
    files = [
        p for p in src_dir.rglob("*")
        if p.is_file() and not p.name.endswith(LOCK_SUFFIX)
    ]
    files.sort(key=lambda p: (p.name != CONTENT_TYPES_PART or p.parent != src_dir, p.relative_to(src_dir).as_posix()))
    return files


def compress_package(src_dir: Path, archive: Path) -> Path:
    """
    Compress a package directory into an archive.

    Returns:
        Path to the written archive.

    Raises:
        NotFoundError: If the source directory does not exist.
        PackageIOError: If the archive cannot be written.
    """
    if not src_dir.is_dir():
        raise NotFoundError(f"Package directory not found: {src_dir}")
    members = _package_members(src_dir)
    try:
        archive.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in members:
                zf.write(path, path.relative_to(src_dir).as_posix())
    except OSError as e:
        raise PackageIOError(f"Failed to write {archive.name}: {e}", path=str(archive)) from e

    logger.debug(f"Compressed {len(members)} parts into {archive}")
    return archive
