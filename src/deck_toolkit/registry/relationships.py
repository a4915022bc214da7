"""
Module: registry.relationships

Purpose:
    Relationship id registry plus the relationship-descriptor (.rels)
    operations built on it. Relationship ids are allocated package-wide:
    a fresh id is never used by any other descriptor, even though the
    format only requires uniqueness within one descriptor.

    Non-media relationships are shared: asking for an identical
    (type, target) pair returns the id already registered for it. Media
    relationships (image, video, audio, ...) always get a fresh id so two
    slides never alias the same resource reference.

Key Classes:
    - DescriptorRecord: Raw record of a descriptor (id may be malformed)
    - RelationshipRegistry: IdentifierRegistry over all .rels parts

Key Functions:
    - RelationshipRegistry.find_or_create(): Reuse-or-allocate
    - RelationshipRegistry.create_slide_relationships(): Fresh layout+theme descriptor
    - RelationshipRegistry.copy_relationships(): Copy-and-remap a descriptor
    - RelationshipRegistry.apply_shift_plan(): Retarget descriptors after renumbering

Dependencies:
    - lxml: Descriptor parsing and serialisation
    - parsing.slide_parser: r:* attribute scan for dangling references

Used By:
    - editing.cascade
    - editing.slide_list
    - session.session
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from lxml import etree

from ..core.config import EditingConfig
from ..core.errors import NotFoundError, StructuralError
from ..core.models.identifiers import RelationshipId, format_relationship_id, relationship_number
from ..core.models.relationships import (
    IMAGE_TYPE,
    NOTES_SLIDE_TYPE,
    SLIDE_LAYOUT_TYPE,
    THEME_TYPE,
    RelationshipEntry,
    is_external_target,
    is_media_type,
)
from ..core.models.results import RelationshipCopyResult
from ..core.models.validation import Finding
from ..core.package import PRESENTATION_PART, PackageLayout, slide_index_from_part
from ..core.utils.xml import PKG_REL_NS, parse_part, write_part
from ..parsing.slide_parser import relationship_attributes
from .base import IdentifierRegistry, ScanRecord

logger = logging.getLogger(__name__)

_REL_TAG = f"{{{PKG_REL_NS}}}Relationship"
_RELS_TAG = f"{{{PKG_REL_NS}}}Relationships"


class DescriptorRecord(NamedTuple):
    """One Relationship element as written on disk."""
    id: str
    type: str
    target: str
    external: bool = False


class RelationshipRegistry(IdentifierRegistry[RelationshipId, RelationshipEntry]):
    """
    Package-wide relationship id registry.

    Entries are keyed by id. When the same id occurs in several descriptors
    the last one scanned wins; validate() reports the collision.

    Example:
        >>> registry = RelationshipRegistry(PackageLayout(Path("deck")))
        >>> registry.scan()
        >>> entry = registry.find_or_create(SLIDE_LAYOUT_TYPE, "../slideLayouts/slideLayout1.xml",
        ...                                 "ppt/slides/slide3.xml")
    """

    family = "relationship"

    def __init__(self, layout: PackageLayout, config: Optional[EditingConfig] = None):
        super().__init__(layout)
        self._config = config or EditingConfig()

    # ─────────────────────────────────────────────────────────────────────────
    # Family hooks
    # ─────────────────────────────────────────────────────────────────────────

    def _source_parts(self) -> Iterable[str]:
        return list(self._layout.iter_rels_parts())

    def _read_part(self, part_name: str) -> List[ScanRecord]:
        source_part = PackageLayout.source_part_for_rels(part_name)
        records = []
        for raw in self._parse_descriptor(part_name):
            number = relationship_number(raw.id)
            if number is None or not raw.type:
                continue
            entry = RelationshipEntry(RelationshipId(raw.id), raw.type, raw.target, source_part, raw.external)
            records.append(ScanRecord(number, entry.id, entry, part_name))
        return records

    def _format(self, number: int) -> RelationshipId:
        return format_relationship_id(number)

    def _number(self, key: RelationshipId) -> Optional[int]:
        return relationship_number(key) if isinstance(key, str) else None

    def _scope(self, meta: RelationshipEntry) -> str:
        return meta.source_part

    def _duplicate_findings(self, key: RelationshipId, records: List[ScanRecord]) -> List[Finding]:
        findings = []
        per_part: Dict[str, int] = {}
        for record in records:
            per_part[record.part] = per_part.get(record.part, 0) + 1
        for part, count in sorted(per_part.items()):
            if count > 1:
                findings.append(Finding.error(
                    "duplicate-relationship-id",
                    f"Relationship id {key} occurs {count} times in one descriptor",
                    part,
                ))
        if len(per_part) > 1:
            findings.append(Finding.warning(
                "shared-relationship-id",
                f"Relationship id {key} is used by {len(per_part)} descriptors ({', '.join(sorted(per_part))})",
            ))
        return findings

    def _extra_findings(self, records: List[ScanRecord]) -> List[Finding]:
        findings = []
        for record in records:
            entry: RelationshipEntry = record.meta
            if entry.external or is_external_target(entry.target):
                continue
            if not self._layout.target_exists(entry.source_part, entry.target):
                resolved = PackageLayout.resolve_target(entry.source_part, entry.target)
                findings.append(Finding.error(
                    "broken-relationship-target",
                    f"{entry.id} ({entry.kind}) points at missing part {resolved}",
                    record.part,
                ))
        findings.extend(self._dangling_reference_findings())
        return findings

    def _dangling_reference_findings(self) -> List[Finding]:
        """r:* attributes of slides and descriptor-owning parts naming an id absent from their descriptor."""
        parts = {PackageLayout.slide_part(index) for index in self._layout.slide_indices()}
        parts.update(PackageLayout.source_part_for_rels(p) for p in self._layout.iter_rels_parts())
        # the slide list checks presentation.xml itself
        parts.difference_update(("", PRESENTATION_PART))

        findings = []
        for part_name in sorted(parts):
            path = self._layout.path_for(part_name)
            if not part_name.endswith(".xml") or not path.exists():
                continue
            try:
                document = parse_part(path, part_name)
                known = {record.id for record in self.read_descriptor(part_name)}
            except StructuralError:
                continue
            for element, name in relationship_attributes(document):
                value = element.get(name)
                if value and value not in known:
                    findings.append(Finding.error(
                        "dangling-relationship-reference",
                        f"{etree.QName(element).localname}/@r:{etree.QName(name).localname} "
                        f"references {value}, which is not in the part's descriptor",
                        part_name,
                    ))
        return findings

    # ─────────────────────────────────────────────────────────────────────────
    # Descriptor I/O
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_descriptor(self, rels_part: str) -> List[DescriptorRecord]:
        tree = parse_part(self._layout.path_for(rels_part), rels_part)
        records = []
        for element in tree.getroot().iter(_REL_TAG):
            records.append(DescriptorRecord(
                id=element.get("Id", ""),
                type=element.get("Type", ""),
                target=element.get("Target", ""),
                external=element.get("TargetMode") == "External",
            ))
        return records

    def read_descriptor(self, source_part: str) -> List[DescriptorRecord]:
        """
        Records of a part's descriptor in document order.

        Returns an empty list when the part has no descriptor.
        """
        rels_part = PackageLayout.rels_part_for(source_part)
        if not self._layout.path_for(rels_part).exists():
            return []
        return self._parse_descriptor(rels_part)

    def write_descriptor(self, source_part: str, records: Sequence[DescriptorRecord]) -> None:
        """Write a part's descriptor, replacing any existing one."""
        root = etree.Element(_RELS_TAG, nsmap={None: PKG_REL_NS})
        for record in records:
            element = etree.SubElement(root, _REL_TAG)
            element.set("Id", record.id)
            element.set("Type", record.type)
            element.set("Target", record.target)
            if record.external:
                element.set("TargetMode", "External")
        write_part(root, self._layout.rels_path_for(source_part))

    # ─────────────────────────────────────────────────────────────────────────
    # Allocation helpers
    # ─────────────────────────────────────────────────────────────────────────

    def is_media(self, rel_type: str) -> bool:
        return is_media_type(rel_type, self._config.media_relationship_markers)

    def find_existing(self, rel_type: str, target: str) -> Optional[RelationshipEntry]:
        """Registered entry with exactly this (type, target), lowest id first."""
        for _, entry in self.items():
            if entry.type == rel_type and entry.target == target:
                return entry
        return None

    def create_fresh(self, rel_type: str, target: str, source_part: str, external: bool = False) -> RelationshipEntry:
        """Allocate and register a new id for (type, target) owned by ``source_part``."""
        rel_id = self.allocate_unique()
        entry = RelationshipEntry(rel_id, rel_type, target, source_part, external or is_external_target(target))
        self.register(rel_id, entry)
        logger.debug(f"Allocated {rel_id} for {entry.kind} -> {target} ({source_part})")
        return entry

    def find_or_create(self, rel_type: str, target: str, source_part: str = "") -> RelationshipEntry:
        """
        Reuse the id of an identical (type, target) pair or allocate a new one.

        Media types always get a fresh id.

        Returns:
            Entry owned by ``source_part`` (the id may be shared with other parts).
        """
        if not self.is_media(rel_type):
            existing = self.find_existing(rel_type, target)
            if existing is not None:
                return existing.with_source(source_part)
        return self.create_fresh(rel_type, target, source_part)

    # ─────────────────────────────────────────────────────────────────────────
    # Slide descriptors
    # ─────────────────────────────────────────────────────────────────────────

    def create_slide_relationships(
        self,
        slide_index: int,
        layout_target: Optional[str] = None,
        theme_target: Optional[str] = None,
    ) -> Tuple[RelationshipEntry, ...]:
        """
        Write a fresh descriptor for a slide: layout first, then theme.

        Returns:
            The two entries written.
        """
        source_part = PackageLayout.slide_part(slide_index)
        layout = self.find_or_create(
            SLIDE_LAYOUT_TYPE, layout_target or self._config.default_layout_target, source_part
        )
        theme = self.find_or_create(
            THEME_TYPE, theme_target or self._config.default_theme_target, source_part
        )
        entries = (layout, theme)
        self.write_descriptor(source_part, [_record_of(e) for e in entries])
        logger.debug(f"Created descriptor for slide {slide_index}: {layout.id}, {theme.id}")
        return entries

    def copy_relationships(
        self,
        source_records: Optional[Sequence[DescriptorRecord]],
        dest_index: int,
        force_new_ids: bool = False,
    ) -> RelationshipCopyResult:
        """
        Write a copy of a descriptor for slide ``dest_index``.

        Media relationships (and every relationship when ``force_new_ids``)
        get fresh ids; others reuse the id of an identical registered pair.
        Notes-slide relationships are not copied: a notes slide belongs to
        exactly one slide. When ``source_records`` is None (the source had no
        descriptor) a default layout+theme descriptor is created instead and
        the mapping is empty.
        """
        if source_records is None:
            entries = self.create_slide_relationships(dest_index)
            return RelationshipCopyResult(mapping={}, entries=entries, used_fallback=True)

        dest_part = PackageLayout.slide_part(dest_index)
        mapping: Dict[RelationshipId, RelationshipId] = {}
        entries: List[RelationshipEntry] = []
        for record in source_records:
            if record.type == NOTES_SLIDE_TYPE:
                logger.debug(f"Not copying notes relationship {record.id}")
                continue
            if record.id in mapping:
                continue
            if force_new_ids or self.is_media(record.type):
                entry = self.create_fresh(record.type, record.target, dest_part, record.external)
            else:
                entry = self.find_or_create(record.type, record.target, dest_part)
            mapping[RelationshipId(record.id)] = entry.id
            if all(e.id != entry.id for e in entries):
                entries.append(entry)

        self.write_descriptor(dest_part, [_record_of(e) for e in entries])
        logger.debug(f"Copied {len(entries)} relationships into slide {dest_index}")
        return RelationshipCopyResult(mapping=mapping, entries=tuple(entries))

    def copy_slide_relationships(
        self,
        source_index: int,
        dest_index: int,
        force_new_ids: bool = False,
    ) -> RelationshipCopyResult:
        """Copy the descriptor of slide ``source_index`` to slide ``dest_index``."""
        source_path = self._layout.slide_rels_path(source_index)
        records = None
        if source_path.exists():
            records = self.read_descriptor(PackageLayout.slide_part(source_index))
        return self.copy_relationships(records, dest_index, force_new_ids)

    def append_relationship(
        self,
        source_part: str,
        rel_type: str,
        target: str,
        external: bool = False,
    ) -> RelationshipEntry:
        """Append a relationship with a fresh id to a part's descriptor."""
        entry = self.create_fresh(rel_type, target, source_part, external)
        records = self.read_descriptor(source_part)
        records.append(_record_of(entry))
        self.write_descriptor(source_part, records)
        return entry

    def add_media_relationship(
        self,
        slide_index: int,
        rel_type: str = IMAGE_TYPE,
        target: str = "",
    ) -> RelationshipEntry:
        """
        Add a media relationship to a slide. Always allocates a fresh id.

        Raises:
            NotFoundError: If the slide does not exist.
            ValueError: If target is empty.
        """
        if not target:
            raise ValueError("Media relationship target must not be empty")
        if not self._layout.slide_path(slide_index).exists():
            raise NotFoundError(f"Slide {slide_index} does not exist")
        return self.append_relationship(PackageLayout.slide_part(slide_index), rel_type, target)

    def remove_relationship(self, slide_index: int, rel_id: str) -> bool:
        """
        Remove a relationship from a slide's descriptor.

        Returns:
            False if the descriptor has no such relationship.
        """
        source_part = PackageLayout.slide_part(slide_index)
        records = self.read_descriptor(source_part)
        remaining = [r for r in records if r.id != rel_id]
        if len(remaining) == len(records):
            return False
        self.write_descriptor(source_part, remaining)

        # other descriptors may share the id; the last one in scan order owns it
        holder = self._last_holder(rel_id)
        self.unregister(RelationshipId(rel_id))
        if holder is not None:
            self.register(holder.id, holder)
        logger.debug(f"Removed {rel_id} from slide {slide_index}")
        return True

    def _last_holder(self, rel_id: str) -> Optional[RelationshipEntry]:
        holder = None
        for rels_part in self._layout.iter_rels_parts():
            try:
                records = self._read_part(rels_part)
            except StructuralError as e:
                logger.warning(f"Skipping unreadable descriptor {rels_part}: {e}")
                continue
            for record in records:
                if record.key == rel_id:
                    holder = record.meta
        return holder

    # ─────────────────────────────────────────────────────────────────────────
    # Renumbering support
    # ─────────────────────────────────────────────────────────────────────────

    def apply_shift_plan(self, plan: Dict[int, int]) -> int:
        """
        Retarget every descriptor after slide files were renumbered.

        Must run after the files (and their descriptors) were renamed.
        Rewrites each target that resolves to a renumbered slide and moves
        registry entries owned by renumbered slides to their new part.

        Args:
            plan: old slide index -> new slide index

        Returns:
            Number of descriptor targets rewritten.
        """
        if not plan:
            return 0
        rewritten = 0
        for rels_part in self._layout.iter_rels_parts():
            source_part = PackageLayout.source_part_for_rels(rels_part)
            records = self._parse_descriptor(rels_part)
            changed = False
            for i, record in enumerate(records):
                new_target = _shifted_target(source_part, record, plan)
                if new_target is not None:
                    records[i] = record._replace(target=new_target)
                    changed = True
                    rewritten += 1
            if changed:
                self.write_descriptor(source_part, records)

        reverse = {PackageLayout.slide_part(old): PackageLayout.slide_part(new) for old, new in plan.items()}
        with self._lock:
            for rel_id, entry in list(self._entries.items()):
                source_part = reverse.get(entry.source_part, entry.source_part)
                updated = entry.with_source(source_part)
                new_target = _shifted_target(entry.source_part, _record_of(entry), plan)
                if new_target is not None:
                    updated = updated.with_target(new_target)
                self._entries[rel_id] = updated

        logger.debug(f"Retargeted {rewritten} relationships for {len(plan)} renumbered slides")
        return rewritten

    def drop_references_to(self, part_name: str) -> Dict[str, List[str]]:
        """
        Remove every relationship whose target resolves to ``part_name``.

        Returns:
            source part -> removed relationship ids
        """
        removed: Dict[str, List[str]] = {}
        for rels_part in self._layout.iter_rels_parts():
            source_part = PackageLayout.source_part_for_rels(rels_part)
            records = self._parse_descriptor(rels_part)
            kept = []
            for record in records:
                if not record.external and PackageLayout.resolve_target(source_part, record.target) == part_name:
                    removed.setdefault(source_part, []).append(record.id)
                else:
                    kept.append(record)
            if len(kept) != len(records):
                self.write_descriptor(source_part, kept)
        return removed


def _record_of(entry: RelationshipEntry) -> DescriptorRecord:
    return DescriptorRecord(entry.id, entry.type, entry.target, entry.external)


def _shifted_target(source_part: str, record: DescriptorRecord, plan: Dict[int, int]) -> Optional[str]:
    """New target for a record pointing at a renumbered slide, else None."""
    if record.external or is_external_target(record.target):
        return None
    resolved = PackageLayout.resolve_target(source_part, record.target)
    index = slide_index_from_part(resolved)
    if index is None or index not in plan:
        return None
    new_part = PackageLayout.slide_part(plan[index])
    if record.target.startswith("/"):
        return f"/{new_part}"
    return PackageLayout.relative_target(source_part, new_part)
