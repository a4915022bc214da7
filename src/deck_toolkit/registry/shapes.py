"""
Module: registry.shapes

Purpose:
    Shape id registry. Shape ids are unique across the whole package; each
    registered id maps to the slide it lives on plus the shape's name and
    kind.

Key Classes:
    - ShapeIdRegistry: IdentifierRegistry over slide parts

Dependencies:
    - lxml (via core.utils.xml / parsing.slide_parser)

Used By:
    - editing.rewriter (allocation during regeneration)
    - editing.cascade (scope shifts on renumbering)
    - editing.templates (ids for placeholder shapes)
    - session.session
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.models.identifiers import ShapeId, parse_shape_id
from ..core.models.slides import ShapeInfo
from ..core.package import PackageLayout, slide_index_from_part
from ..core.utils.xml import parse_part
from ..parsing.slide_parser import shape_id_nodes, shape_kind
from .base import IdentifierRegistry, ScanRecord

logger = logging.getLogger(__name__)


class ShapeIdRegistry(IdentifierRegistry[ShapeId, ShapeInfo]):
    """
    Package-wide shape id registry.

    Example:
        >>> registry = ShapeIdRegistry(PackageLayout(Path("deck")))
        >>> registry.scan()
        12
        >>> new_id = registry.allocate_unique()
        >>> registry.register(new_id, ShapeInfo(slide_index=3, name="Title 1"))
    """

    family = "shape"

    def _source_parts(self) -> Iterable[str]:
        return [PackageLayout.slide_part(i) for i in self._layout.slide_indices()]

    def _read_part(self, part_name: str) -> List[ScanRecord]:
        tree = parse_part(self._layout.path_for(part_name), part_name)
        return self.records_for_document(tree, _index_of(part_name), part_name)

    @staticmethod
    def records_for_document(document: Any, slide_index: int, part_name: str = "") -> List[ScanRecord]:
        """Valid shape id occurrences of an in-memory slide document."""
        records = []
        for node in shape_id_nodes(document):
            shape_id = parse_shape_id(node.get("id"))
            if shape_id is None:
                continue
            info = ShapeInfo(slide_index, node.get("name", ""), shape_kind(node))
            records.append(ScanRecord(int(shape_id), shape_id, info, part_name))
        return records

    def _format(self, number: int) -> ShapeId:
        return ShapeId(number)

    def _number(self, key: ShapeId) -> Optional[int]:
        if isinstance(key, bool) or not isinstance(key, int) or key < 1:
            return None
        return int(key)

    def _scope(self, meta: ShapeInfo) -> int:
        return meta.slide_index

    # ─────────────────────────────────────────────────────────────────────────
    # Slide-level operations
    # ─────────────────────────────────────────────────────────────────────────

    def register_document(self, document: Any, slide_index: int) -> int:
        """
        Register every shape of an in-memory slide under ``slide_index``.

        Ids already registered with the same metadata are accepted.

        Returns:
            Number of shapes registered.
        """
        records = self.records_for_document(document, slide_index)
        for record in records:
            self.register(record.key, record.meta)
        return len(records)

    def unregister_slide(self, slide_index: int) -> int:
        """Remove every id registered under a slide. Returns the count."""
        removed = 0
        for shape_id in self.ids_for_scope(slide_index):
            if self.unregister(shape_id):
                removed += 1
        logger.debug(f"Unregistered {removed} shape ids of slide {slide_index}")
        return removed

    def shift_slides(self, plan: Dict[int, int]) -> int:
        """
        Move registered ids to their renumbered slides.

        Args:
            plan: old slide index -> new slide index

        Returns:
            Number of ids whose scope changed.
        """
        if not plan:
            return 0
        moved = 0
        with self._lock:
            for shape_id, info in list(self._entries.items()):
                if info.slide_index in plan:
                    self._entries[shape_id] = info.moved_to(plan[info.slide_index])
                    moved += 1
        logger.debug(f"Shifted {moved} shape ids across {len(plan)} renumbered slides")
        return moved


def _index_of(part_name: str) -> int:
    index = slide_index_from_part(part_name)
    if index is None:
        raise ValueError(f"Not a slide part: {part_name}")
    return index
