"""
Module: identifiers

Purpose:
    Distinct identifier types for the two package-wide id families. Shape ids
    and relationship ids are allocated from separate registries and must never
    be compared against each other; NewType keeps that visible to type
    checkers while staying a plain int / str at runtime.

Key Functions:
    - parse_decimal(): "12" -> 12, None for anything but ASCII digits
    - parse_shape_id(): "12" -> ShapeId(12), None for malformed tokens
    - relationship_number(): "rId7" -> 7, None for malformed tokens
    - format_relationship_id(): 7 -> RelationshipId("rId7")

Used By:
    - registry.shapes, registry.relationships
    - editing.rewriter, editing.cascade
"""

from __future__ import annotations

import re
from typing import NewType, Optional

ShapeId = NewType("ShapeId", int)
RelationshipId = NewType("RelationshipId", str)

RID_PREFIX = "rId"

_RID_RE = re.compile(r"^rId([0-9]+)$")
_DECIMAL_RE = re.compile(r"[0-9]+")


def parse_decimal(token: Optional[str]) -> Optional[int]:
    """
    Non-negative ASCII decimal integer, or None.

    Only [0-9] is accepted; other Unicode digits such as "²" yield None.
    """
    if token is None:
        return None
    token = token.strip()
    return int(token) if _DECIMAL_RE.fullmatch(token) else None


def parse_shape_id(token: Optional[str]) -> Optional[ShapeId]:
    """
    Parse a shape identity attribute value.

    Returns None for anything that is not a positive decimal integer, so
    scanners can skip bad tokens without failing.

    Example:
        >>> parse_shape_id("12")
        12
        >>> parse_shape_id("abc") is None
        True
    """
    value = parse_decimal(token)
    return ShapeId(value) if value is not None and value > 0 else None


def relationship_number(token: Optional[str]) -> Optional[int]:
    """
    Numeric part of a relationship id.

    Example:
        >>> relationship_number("rId7")
        7
        >>> relationship_number("rIdX") is None
        True
    """
    if token is None:
        return None
    match = _RID_RE.match(token.strip())
    return int(match.group(1)) if match else None


def format_relationship_id(number: int) -> RelationshipId:
    """Relationship id token for a number."""
    if number < 1:
        raise ValueError(f"Relationship number must be positive, got {number}")
    return RelationshipId(f"{RID_PREFIX}{number}")
