"""
Module: results

Purpose:
    Result records returned by identifier regeneration, relationship copies
    and structural slide operations.

Key Classes:
    - RegenerationResult: Shape id mapping plus statistics of one regeneration
    - RelationshipCopyResult: Relationship id mapping of one descriptor copy
    - SlideOperationResult: Outcome of one insert/copy/template/remove call

Used By:
    - editing.rewriter, editing.cascade
    - registry.relationships
    - session.session
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .identifiers import RelationshipId, ShapeId
from .relationships import RelationshipEntry


@dataclass(frozen=True)
class RegenerationResult:
    """
    Outcome of regenerating the shape ids of one slide's content.

    Attributes:
        mapping: old shape id -> freshly allocated shape id
        shapes_processed: Number of shape-identity nodes rewritten
        references_updated: Number of animation-target leaves rewritten
        build_references_updated: Build-list entries rewritten
        connector_references_updated: Connector endpoints rewritten
    """
    mapping: Dict[ShapeId, ShapeId] = field(default_factory=dict)
    shapes_processed: int = 0
    references_updated: int = 0
    build_references_updated: int = 0
    connector_references_updated: int = 0

    def __post_init__(self) -> None:
        if self.shapes_processed < 0 or self.references_updated < 0:
            raise ValueError("Regeneration counts cannot be negative")


@dataclass(frozen=True)
class RelationshipCopyResult:
    """
    Outcome of copying one slide's relationship descriptor.

    Attributes:
        mapping: source relationship id -> id in the copied descriptor
        entries: Entries written to the destination descriptor
        used_fallback: True when the source had no descriptor and a default
            layout+theme descriptor was created instead (mapping is empty)
    """
    mapping: Dict[RelationshipId, RelationshipId] = field(default_factory=dict)
    entries: Tuple[RelationshipEntry, ...] = ()
    used_fallback: bool = False


@dataclass(frozen=True)
class SlideOperationResult:
    """
    Outcome of one structural slide operation.

    Attributes:
        operation: "insert_blank_slide", "insert_copied_slide", ...
        slide_index: Index of the inserted slide, or of the removed one
        slide_count: Slide count after the operation
        renamed_count: Number of slide files renumbered
        slide_numeric_id: sldId/@id of the new slide-list entry (None on remove)
        presentation_relationship_id: Presentation relationship of the slide
        relationships: Entries of the new slide's descriptor
        relationship_mapping: Source -> copy relationship ids (copies only)
        regeneration: Shape id regeneration result (copies only)
        timings: phase -> seconds
    """
    operation: str
    slide_index: int
    slide_count: int
    renamed_count: int = 0
    slide_numeric_id: Optional[int] = None
    presentation_relationship_id: Optional[RelationshipId] = None
    relationships: Tuple[RelationshipEntry, ...] = ()
    relationship_mapping: Dict[RelationshipId, RelationshipId] = field(default_factory=dict)
    regeneration: Optional[RegenerationResult] = None
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def total_seconds(self) -> float:
        return sum(self.timings.values())
