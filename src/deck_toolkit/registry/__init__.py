"""
Registry Package

Package-wide identifier registries. Each open package owns one shape id
registry and one relationship id registry; both are caches over the parts
on disk and are rebuilt by scan().
"""

from .base import IdentifierRegistry, ScanRecord
from .relationships import DescriptorRecord, RelationshipRegistry
from .shapes import ShapeIdRegistry

__all__ = [
    "IdentifierRegistry",
    "ScanRecord",
    "DescriptorRecord",
    "RelationshipRegistry",
    "ShapeIdRegistry",
]
