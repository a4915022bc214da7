"""
Module: editing.cascade

Purpose:
    Slide insertion cascade. Inserting a slide at position P into a package
    of C slides:

        1. Make room: rename slide files (and descriptors) S -> S+1 for
           S = C..P, descending so no file is overwritten
        2. Materialize the new slide content (blank, template or regenerated copy)
        3. Wire its relationship descriptor (fresh, or copied and remapped)
        4. Insert the slide-list entry before the first entry whose slide
           index is >= P
        5. Declare the slide's content type (idempotent)

    Both representations of slide order, the physical file numbering and
    the descriptor targets read by the slide list, are renumbered from one
    shift plan ({old_index: new_index}) computed once per operation. The
    same plan moves registry scopes and is applied to every descriptor,
    including notes slides and slide-to-slide hyperlinks.

    Removal runs the cascade in reverse: the slide is deleted and the
    files above it move down by one in ascending order. Content references
    (hyperlinks, embeds) to the dropped relationships are stripped.

Key Classes:
    - SlideInsertionCascade: insert_blank_slide / insert_copied_slide /
      insert_template_slide / remove_slide

Dependencies:
    - lxml (via helpers)
    - os (std): replace-existing renames

Used By:
    - session.session
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from lxml import etree

from ..core.config import EditingConfig
from ..core.errors import DeckError, NotFoundError, PackageIOError, SlideOperationError
from ..core.models.relationships import NOTES_SLIDE_TYPE, SLIDE_TYPE
from ..core.models.results import RegenerationResult, SlideOperationResult
from ..core.package import PRESENTATION_PART, PackageLayout
from ..core.utils.xml import deep_copy, parse_part, write_part
from ..registry.relationships import DescriptorRecord, RelationshipRegistry
from ..registry.shapes import ShapeIdRegistry
from .content_types import SLIDE_CONTENT_TYPE, ContentTypesManifest
from .phase_log import PhaseLog, timed_phase
from .rewriter import ReferenceRewriter
from .slide_list import SlideList
from .templates import BlankSlideTemplate, SlideTemplate, apply_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SourceSlide:
    """Source slide captured before any rename."""
    index: int
    document: etree._ElementTree
    relationships: Optional[Tuple[DescriptorRecord, ...]]


class SlideInsertionCascade:
    """
    Coordinates structural slide operations on one open package.

    Not safe for concurrent use: callers must serialise structural
    operations on a package through one owner.

    Example:
        >>> cascade = SlideInsertionCascade(layout, shapes, relationships)
        >>> result = cascade.insert_blank_slide(1, title="Agenda")
        >>> result.slide_index, result.slide_count
        (1, 4)
    """

    def __init__(
        self,
        layout: PackageLayout,
        shapes: ShapeIdRegistry,
        relationships: RelationshipRegistry,
        config: Optional[EditingConfig] = None,
    ):
        self._layout = layout
        self._shapes = shapes
        self._relationships = relationships
        self._config = config or EditingConfig()
        self._rewriter = ReferenceRewriter(shapes)

    @property
    def slide_count(self) -> int:
        return len(self._layout.slide_indices())

    # ─────────────────────────────────────────────────────────────────────────
    # Public operations
    # ─────────────────────────────────────────────────────────────────────────

    def insert_blank_slide(self, position: int, title: Optional[str] = None) -> SlideOperationResult:
        """
        Insert an empty slide (optionally with a title placeholder).

        Raises:
            ValueError: If position is outside 1..count+1.
            StructuralError: If the presentation part or slide list is unusable.
            SlideOperationError: If the operation fails after mutating the package.
        """
        return self._insert(
            "insert_blank_slide", position,
            lambda: (BlankSlideTemplate().build({"title": title}, self._shapes.allocate_unique), None),
        )

    def insert_template_slide(
        self,
        position: int,
        template: SlideTemplate,
        data: Optional[Mapping[str, Any]] = None,
    ) -> SlideOperationResult:
        """Insert a slide built by ``template`` from ``data``."""
        data = dict(data or {})
        return self._insert(
            "insert_template_slide", position,
            lambda: (template.build(data, self._shapes.allocate_unique), None),
        )

    def insert_copied_slide(
        self,
        position: int,
        source_index: int,
        title: Optional[str] = None,
    ) -> SlideOperationResult:
        """
        Insert a copy of slide ``source_index`` at ``position``.

        The source slide and its descriptor are read before any rename, so
        a source at or after the insertion point is copied correctly.

        Raises:
            NotFoundError: If the source slide does not exist.
        """
        count = self.slide_count
        self._check_position(position, count)
        if not 1 <= source_index <= count:
            raise NotFoundError(f"Source slide {source_index} does not exist ({count} slides)")
        source = self._read_source(source_index)

        def build() -> Tuple[etree._ElementTree, _SourceSlide]:
            document = deep_copy(source.document)
            if title:
                apply_title(document, title)
            return document, source

        return self._insert("insert_copied_slide", position, build)

    def remove_slide(self, index: int) -> SlideOperationResult:
        """
        Delete slide ``index`` and close the gap.

        Also deletes the slide's notes slide, its slide-list entry and every
        descriptor relationship that targeted it. Hyperlinks and other r:*
        references to those relationships are stripped from the source parts.

        Raises:
            NotFoundError: If the slide does not exist.
            SlideOperationError: If the operation fails after mutating the package.
        """
        count = self.slide_count
        if not 1 <= index <= count:
            raise NotFoundError(f"Slide {index} does not exist ({count} slides)")
        slide_list = SlideList.load(self._layout, self._relationships, self._config)
        slide_list.check_structure()
        manifest = ContentTypesManifest.load(self._layout)
        slide_part = PackageLayout.slide_part(index)
        log = PhaseLog("remove_slide")

        try:
            with timed_phase(log, "delete"):
                notes_parts = self._notes_parts(slide_part)
                self._shapes.unregister_slide(index)
                for part in notes_parts:
                    self._delete_part(part)
                    manifest.remove_override(part)
                self._delete_part(slide_part)
                dropped = self._relationships.drop_references_to(slide_part)
                for part in notes_parts:
                    for source_part, rel_ids in self._relationships.drop_references_to(part).items():
                        dropped.setdefault(source_part, []).extend(rel_ids)
                self._strip_dangling_references(dropped)

            with timed_phase(log, "close_gap"):
                plan = {s: s - 1 for s in range(index + 1, count + 1)}
                self._rename_slides(plan)
                self._relationships.apply_shift_plan(plan)
                self._shapes.shift_slides(plan)

            with timed_phase(log, "slide_list"):
                slide_list.remove_entries(dropped.get(PRESENTATION_PART, []))
                slide_list.save()
                # descriptors of deleted parts leave stale ids behind
                self._relationships.scan()

            with timed_phase(log, "content_types"):
                manifest.sync_slide_overrides(self._layout.slide_indices())
                manifest.save()
        except (DeckError, OSError, ValueError) as e:
            raise SlideOperationError("remove_slide", str(e), position=index) from e

        logger.info(f"Removed slide {index} ({len(plan)} slides renumbered, {count - 1} remaining)")
        logger.debug(log.summary())
        return SlideOperationResult(
            operation="remove_slide",
            slide_index=index,
            slide_count=count - 1,
            renamed_count=len(plan),
            timings=dict(log.timings),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Insertion protocol
    # ─────────────────────────────────────────────────────────────────────────

    def _insert(
        self,
        operation: str,
        position: int,
        build: Callable[[], Tuple[etree._ElementTree, Optional[_SourceSlide]]],
    ) -> SlideOperationResult:
        count = self.slide_count
        self._check_position(position, count)
        slide_list = SlideList.load(self._layout, self._relationships, self._config)
        slide_list.check_structure()
        manifest = ContentTypesManifest.load(self._layout)
        slide_part = PackageLayout.slide_part(position)
        log = PhaseLog(operation)
        regeneration: Optional[RegenerationResult] = None
        mapping: Dict = {}
        with timed_phase(log, "build"):
            document, source = build()

        try:
            with timed_phase(log, "make_room"):
                plan = {s: s + 1 for s in range(count, position - 1, -1)}
                self._rename_slides(plan)
                self._relationships.apply_shift_plan(plan)
                self._shapes.shift_slides(plan)

            with timed_phase(log, "materialize"):
                if source is not None:
                    regeneration = self._rewriter.regenerate(document, position)
                else:
                    self._shapes.register_document(document, position)

            with timed_phase(log, "relationships"):
                if source is not None:
                    copy = self._relationships.copy_relationships(source.relationships, position)
                    mapping = dict(copy.mapping)
                    self._rewriter.remap_relationship_references(document, mapping)
                    entries = copy.entries
                else:
                    entries = self._relationships.create_slide_relationships(position)
                write_part(document, self._layout.slide_path(position))

            with timed_phase(log, "slide_list"):
                presentation_rel = self._relationships.append_relationship(
                    PRESENTATION_PART, SLIDE_TYPE,
                    PackageLayout.relative_target(PRESENTATION_PART, slide_part),
                )
                entry = slide_list.insert_entry(position, presentation_rel.id)
                slide_list.save()

            with timed_phase(log, "content_types"):
                manifest.ensure_override(slide_part, SLIDE_CONTENT_TYPE)
                if manifest.modified:
                    manifest.save()
        except (DeckError, OSError, ValueError) as e:
            raise SlideOperationError(operation, str(e), position=position) from e

        logger.info(f"{operation}: slide {position} of {count + 1} ({len(plan)} slides renumbered)")
        logger.debug(log.summary())
        return SlideOperationResult(
            operation=operation,
            slide_index=position,
            slide_count=count + 1,
            renamed_count=len(plan),
            slide_numeric_id=entry.numeric_id,
            presentation_relationship_id=presentation_rel.id,
            relationships=tuple(entries),
            relationship_mapping=mapping,
            regeneration=regeneration,
            timings=dict(log.timings),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _check_position(position: int, count: int) -> None:
        if not 1 <= position <= count + 1:
            raise ValueError(f"Position {position} is outside 1..{count + 1}")

    def _read_source(self, index: int) -> _SourceSlide:
        part = PackageLayout.slide_part(index)
        document = parse_part(self._layout.slide_path(index), part)
        records = None
        if self._layout.slide_rels_path(index).exists():
            records = tuple(self._relationships.read_descriptor(part))
        return _SourceSlide(index, document, records)

    def _rename_slides(self, plan: Dict[int, int]) -> None:
        """
        Rename slide files and descriptors in plan order.

        Plans are built so that each destination is free when it is
        written (descending for inserts, ascending for removals).
        """
        for old, new in plan.items():
            self._replace(self._layout.slide_path(old), self._layout.slide_path(new))
            old_rels = self._layout.slide_rels_path(old)
            if old_rels.exists():
                self._replace(old_rels, self._layout.slide_rels_path(new))
            logger.debug(f"Renamed slide {old} -> {new}")

    @staticmethod
    def _replace(source: Path, dest: Path) -> None:
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, dest)
        except OSError as e:
            raise PackageIOError(f"Failed to rename {source.name} to {dest.name}: {e}", path=str(source)) from e

    def _notes_parts(self, slide_part: str) -> List[str]:
        parts = []
        for record in self._relationships.read_descriptor(slide_part):
            if record.type == NOTES_SLIDE_TYPE and not record.external:
                parts.append(PackageLayout.resolve_target(slide_part, record.target))
        return parts

    def _strip_dangling_references(self, dropped: Mapping[str, List[str]]) -> None:
        """Remove content references to relationships dropped from each source part."""
        for source_part, rel_ids in dropped.items():
            # the slide list is rewritten separately
            if source_part in ("", PRESENTATION_PART) or not rel_ids:
                continue
            path = self._layout.path_for(source_part)
            if not path.exists():
                continue
            document = parse_part(path, source_part)
            removed = ReferenceRewriter.strip_relationship_references(document, set(rel_ids))
            if removed:
                write_part(document, path)
                logger.debug(f"Stripped {removed} references to {sorted(set(rel_ids))} from {source_part}")

    def _delete_part(self, part_name: str) -> None:
        for path in (self._layout.path_for(part_name), self._layout.rels_path_for(part_name)):
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                raise PackageIOError(f"Failed to delete {part_name}: {e}", path=str(path)) from e
        logger.debug(f"Deleted {part_name}")
