"""
Module: slides

Purpose:
    Slide-level records: entries of the presentation's ordered slide list and
    the metadata the shape registry stores per shape id.

Key Classes:
    - SlideListEntry: {numeric_id, relationship_id, slide_index}
    - ShapeInfo: Registry metadata for one shape id
    - SlideShape: A shape as seen by the read-only slide parser

Used By:
    - registry.shapes
    - editing.slide_list, editing.cascade
    - parsing.slide_parser
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .identifiers import RelationshipId, ShapeId

MIN_SLIDE_NUMERIC_ID = 256


@dataclass(frozen=True, slots=True)
class SlideListEntry:
    """
    One entry of the presentation's ordered slide list.

    Attributes:
        numeric_id: The sldId/@id value (>= 256)
        relationship_id: Presentation relationship token pointing at the slide
        slide_index: Physical slide file index the token resolves to (None if
            the relationship is missing or does not point at a slide file)
    """
    numeric_id: int
    relationship_id: RelationshipId
    slide_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ShapeInfo:
    """
    Metadata registered for a shape id.

    Attributes:
        slide_index: Slide file index the shape lives in
        name: Shape name (cNvPr/@name), may be empty
        kind: Local tag name of the shape element (sp, pic, grpSp, ...)
    """
    slide_index: int
    name: str = ""
    kind: str = "sp"

    def __post_init__(self) -> None:
        if self.slide_index < 1:
            raise ValueError(f"slide_index must be >= 1, got {self.slide_index}")

    def moved_to(self, slide_index: int) -> ShapeInfo:
        return replace(self, slide_index=slide_index)


@dataclass(frozen=True, slots=True)
class SlideShape:
    """A shape on a slide (parser view)."""
    shape_id: ShapeId
    name: str
    kind: str
