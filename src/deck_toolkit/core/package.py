"""
Module: core.package

Purpose:
    Path conventions of an extracted presentation package. Every component
    that touches the filesystem goes through PackageLayout so that slide
    file naming, relationship-descriptor naming and target resolution are
    defined in exactly one place.

Key Classes:
    - PackageLayout: Paths and part-name helpers rooted at a package directory

Key Functions:
    - slide_index_from_name(): "slide12.xml" -> 12 (None if not a slide file)

Dependencies:
    - pathlib, posixpath, re (std)

Used By:
    - registry.shapes, registry.relationships
    - editing.cascade, editing.slide_list, editing.content_types
    - session.session
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

SLIDE_FILE_RE = re.compile(r"^slide([0-9]+)\.xml$")
SLIDE_PART_RE = re.compile(r"^ppt/slides/slide([0-9]+)\.xml$")

SLIDES_DIR = "ppt/slides"
PRESENTATION_PART = "ppt/presentation.xml"
CONTENT_TYPES_PART = "[Content_Types].xml"


def slide_index_from_name(file_name: str) -> Optional[int]:
    """
    Extract the 1-based slide index from a slide file name.

    Example:
        >>> slide_index_from_name("slide12.xml")
        12
        >>> slide_index_from_name("slideLayout1.xml") is None
        True
    """
    match = SLIDE_FILE_RE.match(file_name)
    return int(match.group(1)) if match else None


def slide_index_from_part(part_name: str) -> Optional[int]:
    """Slide index of a package-relative part name, or None."""
    match = SLIDE_PART_RE.match(part_name)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class PackageLayout:
    """
    Filesystem layout of an extracted package (immutable).

    Part names are package-relative POSIX paths without a leading slash,
    e.g. ``ppt/slides/slide3.xml``. The package root itself is the source
    part ``""`` of ``_rels/.rels``.

    Attributes:
        root: Directory the package was extracted to
    """
    root: Path

    # ─────────────────────────────────────────────────────────────────────────
    # Well-known parts
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def content_types_path(self) -> Path:
        return self.root / CONTENT_TYPES_PART

    @property
    def presentation_path(self) -> Path:
        return self.root / PRESENTATION_PART

    @property
    def slides_dir(self) -> Path:
        return self.root / SLIDES_DIR

    # ─────────────────────────────────────────────────────────────────────────
    # Slides
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def slide_part(index: int) -> str:
        """Part name of slide ``index`` (1-based)."""
        return f"{SLIDES_DIR}/slide{index}.xml"

    def slide_path(self, index: int) -> Path:
        return self.path_for(self.slide_part(index))

    def slide_rels_path(self, index: int) -> Path:
        return self.rels_path_for(self.slide_part(index))

    def slide_indices(self) -> List[int]:
        """Sorted indices of slide files currently on disk."""
        if not self.slides_dir.is_dir():
            return []
        indices = []
        for entry in self.slides_dir.iterdir():
            if entry.is_file():
                index = slide_index_from_name(entry.name)
                if index is not None:
                    indices.append(index)
        return sorted(indices)

    # ─────────────────────────────────────────────────────────────────────────
    # Parts and relationship descriptors
    # ─────────────────────────────────────────────────────────────────────────

    def path_for(self, part_name: str) -> Path:
        """Absolute path of a package-relative part name."""
        return self.root.joinpath(*part_name.split("/")) if part_name else self.root

    def part_name_for(self, path: Path) -> str:
        """Package-relative part name of an absolute path."""
        return path.relative_to(self.root).as_posix()

    @staticmethod
    def rels_part_for(part_name: str) -> str:
        """
        Relationship descriptor part of a source part.

        Example:
            >>> PackageLayout.rels_part_for("ppt/slides/slide1.xml")
            'ppt/slides/_rels/slide1.xml.rels'
            >>> PackageLayout.rels_part_for("")
            '_rels/.rels'
        """
        directory, _, name = part_name.rpartition("/")
        rels = f"_rels/{name}.rels"
        return f"{directory}/{rels}" if directory else rels

    def rels_path_for(self, part_name: str) -> Path:
        return self.path_for(self.rels_part_for(part_name))

    @staticmethod
    def source_part_for_rels(rels_part: str) -> str:
        """
        Inverse of rels_part_for().

        Example:
            >>> PackageLayout.source_part_for_rels("ppt/_rels/presentation.xml.rels")
            'ppt/presentation.xml'
        """
        directory, _, name = rels_part.rpartition("/")
        parent = directory[: -len("_rels")].rstrip("/")
        source_name = name[: -len(".rels")]
        return f"{parent}/{source_name}" if parent else source_name

    def iter_rels_parts(self) -> Iterator[str]:
        """All relationship descriptor part names in the package, sorted."""
        if not self.root.is_dir():
            return
        for path in sorted(self.root.rglob("*.rels")):
            if path.parent.name == "_rels" and path.is_file():
                yield self.part_name_for(path)

    # ─────────────────────────────────────────────────────────────────────────
    # Target resolution
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def resolve_target(source_part: str, target: str) -> str:
        """
        Resolve a relationship target relative to its source part.

        Example:
            >>> PackageLayout.resolve_target("ppt/slides/slide1.xml", "../theme/theme1.xml")
            'ppt/theme/theme1.xml'
            >>> PackageLayout.resolve_target("ppt/presentation.xml", "slides/slide2.xml")
            'ppt/slides/slide2.xml'
        """
        if target.startswith("/"):
            return posixpath.normpath(target.lstrip("/"))
        base = posixpath.dirname(source_part)
        return posixpath.normpath(posixpath.join(base, target)).lstrip("/")

    @staticmethod
    def relative_target(source_part: str, dest_part: str) -> str:
        """Relative target from ``source_part`` to ``dest_part``."""
        base = posixpath.dirname(source_part) or "."
        return posixpath.relpath(dest_part, base)

    def target_exists(self, source_part: str, target: str) -> bool:
        return self.path_for(self.resolve_target(source_part, target)).exists()
