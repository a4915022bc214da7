"""
Module: relationships

Purpose:
    Relationship descriptor records and relationship type constants.

Key Classes:
    - RelationshipEntry: One record of a part's relationship descriptor

Key Functions:
    - is_media_type(): Whether a relationship type always gets a fresh id
    - is_external_target(): Whether a target points outside the package

Dependencies:
    - .identifiers.RelationshipId

Used By:
    - registry.relationships
    - editing.cascade
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .identifiers import RelationshipId, relationship_number

_RT = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

SLIDE_LAYOUT_TYPE = f"{_RT}/slideLayout"
THEME_TYPE = f"{_RT}/theme"
SLIDE_TYPE = f"{_RT}/slide"
NOTES_SLIDE_TYPE = f"{_RT}/notesSlide"
IMAGE_TYPE = f"{_RT}/image"
VIDEO_TYPE = f"{_RT}/video"
AUDIO_TYPE = f"{_RT}/audio"
HYPERLINK_TYPE = f"{_RT}/hyperlink"

DEFAULT_MEDIA_MARKERS = ("image", "video", "audio", "media")

EXTERNAL_PREFIXES = ("http://", "https://", "mailto:")


def is_media_type(rel_type: str, markers: Iterable[str] = DEFAULT_MEDIA_MARKERS) -> bool:
    """
    Whether ``rel_type`` is a transient/media type.

    Media relationships are never shared: every request gets a fresh id even
    when an identical (type, target) pair is already registered.

    Example:
        >>> is_media_type(IMAGE_TYPE)
        True
        >>> is_media_type(SLIDE_LAYOUT_TYPE)
        False
    """
    last_segment = rel_type.rsplit("/", 1)[-1].lower()
    return any(marker.lower() in last_segment for marker in markers)


def is_external_target(target: str) -> bool:
    """Whether ``target`` is an external URI rather than a package part."""
    return target.lower().startswith(EXTERNAL_PREFIXES)


@dataclass(frozen=True, slots=True)
class RelationshipEntry:
    """
    A single relationship record (immutable).

    Attributes:
        id: Relationship id token ("rId" + decimal)
        type: Relationship type URI
        target: Relative path or external URI as written in the descriptor
        source_part: Part that owns the descriptor ("" for the package root)
        external: True when TargetMode="External" or the target is a URI

    Example:
        >>> entry = RelationshipEntry("rId1", SLIDE_LAYOUT_TYPE, "../slideLayouts/slideLayout1.xml",
        ...                           "ppt/slides/slide1.xml")
        >>> entry.number
        1
    """
    id: RelationshipId
    type: str
    target: str
    source_part: str = ""
    external: bool = False

    def __post_init__(self) -> None:
        if relationship_number(self.id) is None:
            raise ValueError(f"Invalid relationship id: {self.id!r}")
        if not self.type:
            raise ValueError(f"Relationship {self.id} has no type")

    @property
    def number(self) -> int:
        """Numeric part of the id."""
        return relationship_number(self.id)  # type: ignore[return-value]

    @property
    def kind(self) -> str:
        """Last path segment of the type URI, e.g. "slideLayout"."""
        return self.type.rsplit("/", 1)[-1]

    def with_source(self, source_part: str) -> RelationshipEntry:
        return RelationshipEntry(self.id, self.type, self.target, source_part, self.external)

    def with_target(self, target: str) -> RelationshipEntry:
        return RelationshipEntry(self.id, self.type, target, self.source_part, self.external)
