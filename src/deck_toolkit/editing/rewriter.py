"""
Module: editing.rewriter

Purpose:
    Identifier regeneration for copied slide content. Every shape-identity
    node of a deep-cloned slide gets a freshly allocated shape id, and every
    reference to a remapped id inside the slide (animation targets, build
    list entries, connector endpoints) is rewritten to match.

    References to ids that were not remapped are left untouched: they are
    assumed to point at shared layout/master content.

Key Classes:
    - ReferenceRewriter: Regenerates shape ids, remaps and strips relationship ids

Dependencies:
    - lxml: element removal, and XPath via parsing.slide_parser

Used By:
    - editing.cascade (insert_copied_slide, remove_slide)
"""

from __future__ import annotations

import logging
from typing import Any, Collection, Dict, Mapping

from lxml import etree

from ..core.models.identifiers import RelationshipId, ShapeId, parse_shape_id
from ..core.models.results import RegenerationResult
from ..core.models.slides import ShapeInfo
from ..parsing.slide_parser import (
    animation_target_nodes,
    build_target_nodes,
    connector_reference_nodes,
    fallback_id_nodes,
    relationship_attributes,
    shape_id_nodes,
    shape_kind,
)
from ..registry.shapes import ShapeIdRegistry

logger = logging.getLogger(__name__)

_HYPERLINK_ELEMENTS = ("hlinkClick", "hlinkHover", "hlinkMouseOver")


class ReferenceRewriter:
    """
    Regenerates the shape ids of cloned slide content.

    Example:
        >>> rewriter = ReferenceRewriter(shape_registry)
        >>> clone = deep_copy(source_tree)
        >>> result = rewriter.regenerate(clone, destination_index=4)
        >>> result.shapes_processed, result.references_updated
        (3, 2)
    """

    def __init__(self, shapes: ShapeIdRegistry):
        self._shapes = shapes

    def regenerate(self, document: Any, destination_index: int) -> RegenerationResult:
        """
        Give every shape in ``document`` a fresh id and fix references.

        The document is mutated in place. New ids are registered under
        ``destination_index``.

        Args:
            document: Deep-cloned slide (element or element tree)
            destination_index: Slide index the content will be written to

        Returns:
            RegenerationResult with the old->new mapping and counts.
        """
        mapping: Dict[ShapeId, ShapeId] = {}
        processed = 0

        for node in shape_id_nodes(document):
            old_id = parse_shape_id(node.get("id"))
            new_id = self._shapes.allocate_unique()
            node.set("id", str(new_id))
            self._shapes.register(new_id, ShapeInfo(destination_index, node.get("name", ""), shape_kind(node)))
            processed += 1
            if old_id is None:
                continue
            if old_id in mapping:
                # first occurrence keeps the mapping
                logger.warning(
                    f"Duplicate shape id {old_id} in copied content; "
                    f"references keep pointing at {mapping[old_id]}"
                )
                continue
            mapping[old_id] = new_id

        # Fallback branches mirror their Choice branch
        for node in fallback_id_nodes(document):
            old_id = parse_shape_id(node.get("id"))
            if old_id is not None and old_id in mapping:
                node.set("id", str(mapping[old_id]))
            else:
                node.set("id", str(self._shapes.allocate_unique()))

        references = _remap_attribute(animation_target_nodes(document), "spid", mapping)
        build_refs = _remap_attribute(build_target_nodes(document), "spid", mapping)
        connector_refs = _remap_attribute(connector_reference_nodes(document), "id", mapping)

        logger.debug(
            f"Regenerated {processed} shape ids for slide {destination_index} "
            f"({references} animation, {build_refs} build, {connector_refs} connector references)"
        )
        return RegenerationResult(
            mapping=mapping,
            shapes_processed=processed,
            references_updated=references,
            build_references_updated=build_refs,
            connector_references_updated=connector_refs,
        )

    @staticmethod
    def remap_relationship_references(document: Any, mapping: Mapping[str, RelationshipId]) -> int:
        """
        Rewrite r:* attributes of copied content to the copied descriptor's ids.

        Every attribute is rewritten from its original value in a single
        pass, so chains such as rId1->rId7, rId7->rId9 are safe.

        Returns:
            Number of attributes rewritten.
        """
        if not mapping:
            return 0
        updated = 0
        for element, name in list(relationship_attributes(document)):
            value = element.get(name)
            if value in mapping and mapping[value] != value:
                element.set(name, mapping[value])
                updated += 1
        return updated

    @staticmethod
    def strip_relationship_references(document: Any, rel_ids: Collection[str]) -> int:
        """
        Remove content references to relationship ids that no longer exist.

        Hyperlink elements (hlinkClick, hlinkHover, hlinkMouseOver) carrying
        a removed id are dropped whole; on any other element only the r:*
        attribute is deleted.

        Returns:
            Number of references removed.
        """
        if not rel_ids:
            return 0
        removed = 0
        for element, name in list(relationship_attributes(document)):
            if element.get(name) not in rel_ids:
                continue
            parent = element.getparent()
            if etree.QName(element).localname in _HYPERLINK_ELEMENTS and parent is not None:
                parent.remove(element)
            elif name in element.attrib:
                del element.attrib[name]
            removed += 1
        return removed


def _remap_attribute(nodes, attribute: str, mapping: Mapping[ShapeId, ShapeId]) -> int:
    updated = 0
    for node in nodes:
        old_id = parse_shape_id(node.get(attribute))
        if old_id is not None and old_id in mapping:
            node.set(attribute, str(mapping[old_id]))
            updated += 1
    return updated
