"""
Core Models Package

Immutable records shared by the registries, the editing layer and the
session. All models are frozen dataclasses; identifiers are NewTypes over
int / str so shape ids and relationship ids cannot be mixed up.
"""

from .identifiers import (
    RelationshipId,
    ShapeId,
    format_relationship_id,
    parse_shape_id,
    relationship_number,
)
from .relationships import RelationshipEntry, is_external_target, is_media_type
from .results import RegenerationResult, RelationshipCopyResult, SlideOperationResult
from .slides import ShapeInfo, SlideListEntry, SlideShape
from .timing import AnimationBinding, TimingNode, TimingTree
from .validation import Finding, Severity, ValidationReport

__all__ = [
    "ShapeId",
    "RelationshipId",
    "parse_shape_id",
    "relationship_number",
    "format_relationship_id",
    "RelationshipEntry",
    "is_media_type",
    "is_external_target",
    "RegenerationResult",
    "RelationshipCopyResult",
    "SlideOperationResult",
    "ShapeInfo",
    "SlideListEntry",
    "SlideShape",
    "AnimationBinding",
    "TimingNode",
    "TimingTree",
    "Finding",
    "Severity",
    "ValidationReport",
]
