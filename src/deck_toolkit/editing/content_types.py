"""
Module: editing.content_types

Purpose:
    The package manifest ([Content_Types].xml). Slide parts are declared by
    Override entries; every change is an existence query first so repeated
    calls are idempotent.

Key Classes:
    - ContentTypesManifest: Query / ensure / remove overrides, sync slides

Dependencies:
    - lxml

Used By:
    - editing.cascade
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from lxml import etree

from ..core.package import CONTENT_TYPES_PART, PackageLayout, slide_index_from_part
from ..core.utils.xml import CT_NS, parse_part, write_part

logger = logging.getLogger(__name__)

SLIDE_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.slide+xml"

_OVERRIDE_TAG = f"{{{CT_NS}}}Override"
_DEFAULT_TAG = f"{{{CT_NS}}}Default"


def _part_uri(part_name: str) -> str:
    return part_name if part_name.startswith("/") else f"/{part_name}"


class ContentTypesManifest:
    """Editable view of [Content_Types].xml."""

    def __init__(self, layout: PackageLayout, tree: etree._ElementTree):
        self._layout = layout
        self._tree = tree
        self.modified = False

    @classmethod
    def load(cls, layout: PackageLayout) -> ContentTypesManifest:
        """
        Raises:
            StructuralError: If the manifest is missing or malformed.
        """
        return cls(layout, parse_part(layout.content_types_path, CONTENT_TYPES_PART))

    def _overrides(self) -> List[etree._Element]:
        return self._tree.getroot().findall(_OVERRIDE_TAG)

    def override_for(self, part_name: str) -> Optional[str]:
        """Declared content type of a part, or None."""
        uri = _part_uri(part_name)
        for element in self._overrides():
            if element.get("PartName") == uri:
                return element.get("ContentType")
        return None

    def has_override(self, part_name: str) -> bool:
        return self.override_for(part_name) is not None

    def has_default(self, extension: str) -> bool:
        return any(
            e.get("Extension", "").lower() == extension.lower()
            for e in self._tree.getroot().findall(_DEFAULT_TAG)
        )

    def ensure_override(self, part_name: str, content_type: str = SLIDE_CONTENT_TYPE) -> bool:
        """
        Declare ``part_name`` unless it is already declared.

        Returns:
            True if an entry was added.
        """
        if self.has_override(part_name):
            return False
        element = etree.SubElement(self._tree.getroot(), _OVERRIDE_TAG)
        element.set("PartName", _part_uri(part_name))
        element.set("ContentType", content_type)
        self.modified = True
        logger.debug(f"Declared content type for {part_name}")
        return True

    def remove_override(self, part_name: str) -> bool:
        uri = _part_uri(part_name)
        for element in self._overrides():
            if element.get("PartName") == uri:
                self._tree.getroot().remove(element)
                self.modified = True
                return True
        return False

    def sync_slide_overrides(self, indices: Iterable[int]) -> Tuple[int, int]:
        """
        Make the slide overrides match the given slide indices exactly.

        Returns:
            (added, removed)
        """
        wanted = set(indices)
        removed = 0
        for element in self._overrides():
            index = slide_index_from_part(element.get("PartName", "").lstrip("/"))
            if index is not None and index not in wanted:
                self._tree.getroot().remove(element)
                removed += 1
        added = sum(1 for i in sorted(wanted) if self.ensure_override(PackageLayout.slide_part(i)))
        if removed:
            self.modified = True
        return added, removed

    def save(self) -> None:
        write_part(self._tree, self._layout.content_types_path)
        self.modified = False
