"""
Module: editing.slide_list

Purpose:
    The presentation part's ordered slide list (p:sldIdLst). Each entry
    holds a numeric id and a presentation relationship id; the relationship
    target names the physical slide file. Entry order is presentation order.

Key Classes:
    - SlideList: Load / resolve / insert / remove / validate / save

Dependencies:
    - lxml: presentation.xml editing

Used By:
    - editing.cascade
    - session.session (validation)
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional

from lxml import etree

from ..core.config import EditingConfig
from ..core.errors import StructuralError
from ..core.models.identifiers import RelationshipId, parse_decimal
from ..core.models.relationships import SLIDE_TYPE
from ..core.models.slides import MIN_SLIDE_NUMERIC_ID, SlideListEntry
from ..core.models.validation import Finding, ValidationReport
from ..core.package import PRESENTATION_PART, PackageLayout, slide_index_from_part
from ..core.utils.xml import R_NS, parse_part, qn, write_part
from ..registry.relationships import RelationshipRegistry

logger = logging.getLogger(__name__)

_R_ID = f"{{{R_NS}}}id"

# Children of p:presentation that precede p:sldIdLst
_PRECEDING = ("sldMasterIdLst", "notesMasterIdLst", "handoutMasterIdLst")


class SlideList:
    """
    Editable view of p:sldIdLst.

    Entry indices are resolved through the presentation's relationship
    descriptor each time they are read, so they always reflect the current
    descriptor on disk.

    Example:
        >>> slide_list = SlideList.load(layout, relationships)
        >>> [e.slide_index for e in slide_list.entries()]
        [1, 2, 3]
    """

    def __init__(
        self,
        layout: PackageLayout,
        tree: etree._ElementTree,
        relationships: RelationshipRegistry,
        config: Optional[EditingConfig] = None,
    ):
        self._layout = layout
        self._tree = tree
        self._relationships = relationships
        self._config = config or EditingConfig()

    @classmethod
    def load(
        cls,
        layout: PackageLayout,
        relationships: RelationshipRegistry,
        config: Optional[EditingConfig] = None,
    ) -> SlideList:
        """
        Parse the presentation part.

        Raises:
            StructuralError: If the presentation part is missing or malformed.
        """
        tree = parse_part(layout.presentation_path, PRESENTATION_PART)
        return cls(layout, tree, relationships, config)

    # ─────────────────────────────────────────────────────────────────────────
    # Reading
    # ─────────────────────────────────────────────────────────────────────────

    def _list_element(self) -> Optional[etree._Element]:
        return self._tree.getroot().find(qn("p:sldIdLst"))

    def _ensure_list_element(self) -> etree._Element:
        existing = self._list_element()
        if existing is not None:
            return existing
        root = self._tree.getroot()
        element = etree.SubElement(root, qn("p:sldIdLst"))
        insert_at = 0
        for i, child in enumerate(root[:-1]):
            if isinstance(child.tag, str) and etree.QName(child).localname in _PRECEDING:
                insert_at = i + 1
        root.insert(insert_at, element)
        logger.debug("Created empty slide list")
        return element

    def check_structure(self) -> None:
        """
        Raise StructuralError if the slide list is missing while slide files exist.
        """
        if self._list_element() is None and self._layout.slide_indices():
            raise StructuralError(
                "Presentation has slide files but no slide list", part=PRESENTATION_PART
            )

    def _targets(self) -> Dict[str, Optional[int]]:
        targets = {}
        for record in self._relationships.read_descriptor(PRESENTATION_PART):
            resolved = PackageLayout.resolve_target(PRESENTATION_PART, record.target)
            targets[record.id] = slide_index_from_part(resolved)
        return targets

    def entries(self) -> List[SlideListEntry]:
        """Entries in presentation order with resolved slide indices."""
        element = self._list_element()
        if element is None:
            return []
        targets = self._targets()
        result = []
        for sld_id in element.findall(qn("p:sldId")):
            rel_id = sld_id.get(_R_ID, "")
            numeric = parse_decimal(sld_id.get("id"))
            result.append(SlideListEntry(
                numeric_id=numeric if numeric is not None else 0,
                relationship_id=RelationshipId(rel_id),
                slide_index=targets.get(rel_id),
            ))
        return result

    def __len__(self) -> int:
        element = self._list_element()
        return 0 if element is None else len(element.findall(qn("p:sldId")))

    def entry_for_index(self, slide_index: int) -> Optional[SlideListEntry]:
        for entry in self.entries():
            if entry.slide_index == slide_index:
                return entry
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Editing
    # ─────────────────────────────────────────────────────────────────────────

    def next_numeric_id(self) -> int:
        numbers = [e.numeric_id for e in self.entries()]
        return max(max(numbers, default=0) + 1, self._config.first_slide_numeric_id)

    def insert_entry(self, position: int, relationship_id: str) -> SlideListEntry:
        """
        Insert an entry for the slide now at ``position``.

        The entry goes immediately before the first existing entry whose
        slide index is >= position (appended when there is none).
        """
        element = self._ensure_list_element()
        numeric_id = self.next_numeric_id()
        targets = self._targets()

        new = etree.SubElement(element, qn("p:sldId"))
        new.set("id", str(numeric_id))
        new.set(_R_ID, relationship_id)

        for existing in element.findall(qn("p:sldId")):
            if existing is new or existing.get(_R_ID) == relationship_id:
                continue
            index = targets.get(existing.get(_R_ID, ""))
            if index is not None and index >= position:
                existing.addprevious(new)
                break

        logger.debug(f"Slide list entry {numeric_id} ({relationship_id}) inserted for slide {position}")
        return SlideListEntry(numeric_id, RelationshipId(relationship_id), position)

    def remove_entries(self, relationship_ids) -> int:
        """Remove entries whose relationship id is in ``relationship_ids``."""
        element = self._list_element()
        if element is None:
            return 0
        wanted = set(relationship_ids)
        removed = 0
        for sld_id in element.findall(qn("p:sldId")):
            if sld_id.get(_R_ID) in wanted:
                element.remove(sld_id)
                removed += 1
        return removed

    def save(self) -> None:
        write_part(self._tree, self._layout.presentation_path)

    # ─────────────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────────────

    def validate(self) -> ValidationReport:
        """
        Check the slide list against the presentation descriptor and the
        slide files on disk.
        """
        findings: List[Finding] = []
        indices = self._layout.slide_indices()
        if self._list_element() is None:
            if indices:
                findings.append(Finding.error(
                    "missing-slide-list", "Slide files exist but presentation has no slide list",
                    PRESENTATION_PART,
                ))
            return ValidationReport.of(findings)

        expected = list(range(1, len(indices) + 1))
        if indices != expected:
            findings.append(Finding.error(
                "slide-numbering-gap",
                f"Slide files are numbered {indices}, expected 1..{len(indices)}",
                PackageLayout.slide_part(indices[-1]) if indices else "",
            ))

        entries = self.entries()
        types = {r.id: r.type for r in self._relationships.read_descriptor(PRESENTATION_PART)}
        for entry in entries:
            if entry.numeric_id < MIN_SLIDE_NUMERIC_ID:
                findings.append(Finding.error(
                    "invalid-slide-numeric-id",
                    f"Slide list id {entry.numeric_id} is below {MIN_SLIDE_NUMERIC_ID}",
                    PRESENTATION_PART,
                ))
            if entry.relationship_id not in types:
                findings.append(Finding.error(
                    "missing-slide-relationship",
                    f"Slide list entry {entry.numeric_id} references unknown {entry.relationship_id}",
                    PRESENTATION_PART,
                ))
            elif types[entry.relationship_id] != SLIDE_TYPE or entry.slide_index is None:
                findings.append(Finding.error(
                    "invalid-slide-relationship",
                    f"{entry.relationship_id} of slide list entry {entry.numeric_id} does not target a slide",
                    PRESENTATION_PART,
                ))
            elif entry.slide_index not in indices:
                findings.append(Finding.error(
                    "missing-slide-file",
                    f"Slide list entry {entry.numeric_id} points at missing slide {entry.slide_index}",
                    PRESENTATION_PART,
                ))

        for numeric, count in sorted(Counter(e.numeric_id for e in entries).items()):
            if count > 1:
                findings.append(Finding.error(
                    "duplicate-slide-numeric-id",
                    f"Slide list id {numeric} occurs {count} times",
                    PRESENTATION_PART,
                ))

        listed = Counter(e.slide_index for e in entries if e.slide_index is not None)
        for index in indices:
            if listed[index] == 0:
                findings.append(Finding.error(
                    "unlisted-slide", f"Slide {index} is not in the slide list",
                    PackageLayout.slide_part(index),
                ))
            elif listed[index] > 1:
                findings.append(Finding.error(
                    "duplicate-slide-entry", f"Slide {index} is listed {listed[index]} times",
                    PackageLayout.slide_part(index),
                ))
        return ValidationReport.of(findings)
