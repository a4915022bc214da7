"""
Module: parsing.slide_parser

Purpose:
    Read-only views over a slide part. Locates shape-identity nodes,
    animation targets and relationship references in a parsed slide, and
    converts the slide's timing XML into the immutable TimingTree model.

    Shape-identity nodes are the cNvPr elements of drawable objects inside
    the shape tree (sp, pic, cxnSp, graphicFrame, grpSp). The shape tree's
    own group properties (id 1) are not a shape. Content inside
    mc:Fallback duplicates the mc:Choice branch and is reported separately.

Key Functions:
    - shape_id_nodes(): cNvPr elements carrying shape ids, document order
    - fallback_id_nodes(): cNvPr elements inside mc:Fallback branches
    - animation_target_nodes(): spTgt elements of the timing tree
    - build_target_nodes(): Build-list entries carrying spid
    - connector_reference_nodes(): stCxn / endCxn elements
    - relationship_attributes(): (element, attribute) pairs in the r: namespace
    - parse_timing_tree(): XML -> TimingTree
    - parse_slide(): XML -> SlideView

Dependencies:
    - lxml: XPath over parsed parts

Used By:
    - registry.shapes (scan / validate)
    - editing.rewriter (regeneration)
    - editing.timing_editor (shape lookup, validation)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

from lxml import etree

from ..core.models.identifiers import ShapeId, parse_decimal, parse_shape_id
from ..core.models.slides import SlideShape
from ..core.models.timing import SEQUENCE_ELEMENT, TimingNode, TimingTree
from ..core.utils.xml import R_NS, localname, qn, xpath

logger = logging.getLogger(__name__)

SHAPE_ELEMENTS = ("sp", "pic", "cxnSp", "graphicFrame", "grpSp")

_SHAPE_SELECTOR = " or ".join(f"self::p:{name}" for name in SHAPE_ELEMENTS)
_SHAPE_XPATH = f".//p:cSld/p:spTree//*[{_SHAPE_SELECTOR}]/*[1]/p:cNvPr"

CONTAINER_ELEMENTS = ("par", "seq", "excl")
BEHAVIOUR_ELEMENTS = (
    "animEffect", "anim", "set", "animClr", "animMotion", "animRot", "animScale", "cmd",
)


def _element_root(document: Any) -> etree._Element:
    if isinstance(document, etree._ElementTree):
        return document.getroot()
    return document


def _in_fallback(element: etree._Element) -> bool:
    return bool(xpath(element, "ancestor::mc:Fallback"))


# ─────────────────────────────────────────────────────────────────────────────
# Node locators
# ─────────────────────────────────────────────────────────────────────────────

def shape_id_nodes(document: Any) -> List[etree._Element]:
    """
    Shape-identity nodes of a slide in document order.

    Nodes inside mc:Fallback are excluded; see fallback_id_nodes().
    """
    root = _element_root(document)
    return [node for node in xpath(root, _SHAPE_XPATH) if not _in_fallback(node)]


def fallback_id_nodes(document: Any) -> List[etree._Element]:
    """Shape-identity nodes that live inside mc:Fallback branches."""
    root = _element_root(document)
    return [node for node in xpath(root, _SHAPE_XPATH) if _in_fallback(node)]


def animation_target_nodes(document: Any) -> List[etree._Element]:
    """spTgt elements of the slide's timing tree."""
    return xpath(_element_root(document), ".//p:timing//p:spTgt")


def build_target_nodes(document: Any) -> List[etree._Element]:
    """Build-list entries (bldP, bldGraphic, ...) that carry a spid."""
    return xpath(_element_root(document), ".//p:timing/p:bldLst/*[@spid]")


def connector_reference_nodes(document: Any) -> List[etree._Element]:
    """Connector endpoint references (a:stCxn / a:endCxn)."""
    return xpath(_element_root(document), ".//a:stCxn | .//a:endCxn")


def relationship_attributes(document: Any) -> Iterator[Tuple[etree._Element, str]]:
    """
    Every attribute in the officeDocument relationships namespace.

    Yields:
        (element, attribute name in Clark notation) pairs, document order
    """
    prefix = f"{{{R_NS}}}"
    for element in _element_root(document).iter(etree.Element):
        for name in element.attrib:
            if name.startswith(prefix):
                yield element, name


def shape_ids(document: Any) -> List[ShapeId]:
    """Valid shape ids of the slide, document order (malformed tokens skipped)."""
    ids = []
    for node in shape_id_nodes(document):
        shape_id = parse_shape_id(node.get("id"))
        if shape_id is not None:
            ids.append(shape_id)
    return ids


def shapes(document: Any) -> List[SlideShape]:
    """Shapes of the slide with name and kind."""
    result = []
    for node in shape_id_nodes(document):
        shape_id = parse_shape_id(node.get("id"))
        if shape_id is None:
            continue
        shape_element = node.getparent().getparent()
        result.append(SlideShape(shape_id, node.get("name", ""), localname(shape_element)))
    return result


def shape_kind(cnvpr: etree._Element) -> str:
    """Local tag of the shape that owns a cNvPr node."""
    return localname(cnvpr.getparent().getparent())


# ─────────────────────────────────────────────────────────────────────────────
# Timing tree
# ─────────────────────────────────────────────────────────────────────────────

def _first_delay(ctn: etree._Element) -> Optional[str]:
    cond = ctn.find(f"{qn('p:stCondLst')}/{qn('p:cond')}")
    return cond.get("delay") if cond is not None else None


def _parse_container(element: etree._Element, parent_is_sequence: bool) -> TimingNode:
    ctn = element.find(qn("p:cTn"))
    if ctn is None:
        return TimingNode(localname(element), trigger_position=parent_is_sequence)
    is_sequence = localname(element) == SEQUENCE_ELEMENT
    child_list = ctn.find(qn("p:childTnLst"))
    children = ()
    if child_list is not None:
        children = tuple(
            node for node in (_parse_node(child, is_sequence) for child in child_list)
            if node is not None
        )
    return TimingNode(
        element=localname(element),
        node_id=parse_decimal(ctn.get("id")),
        node_type=ctn.get("nodeType", ""),
        duration=ctn.get("dur"),
        delay=_first_delay(ctn),
        children=children,
        preset_class=ctn.get("presetClass"),
        trigger_position=parent_is_sequence,
    )


def _parse_behaviour(element: etree._Element) -> TimingNode:
    behaviour = element.find(qn("p:cBhvr"))
    ctn = behaviour.find(qn("p:cTn")) if behaviour is not None else None
    target = None
    if behaviour is not None:
        sp_tgt = behaviour.find(f"{qn('p:tgtEl')}/{qn('p:spTgt')}")
        if sp_tgt is not None:
            target = parse_shape_id(sp_tgt.get("spid"))
    return TimingNode(
        element=localname(element),
        node_id=parse_decimal(ctn.get("id")) if ctn is not None else None,
        node_type=ctn.get("nodeType", "") if ctn is not None else "",
        duration=ctn.get("dur") if ctn is not None else None,
        delay=_first_delay(ctn) if ctn is not None else None,
        target_shape_id=target,
        transition=element.get("transition"),
        filter=element.get("filter"),
    )


def _parse_node(element: Any, parent_is_sequence: bool) -> Optional[TimingNode]:
    if not isinstance(element.tag, str):
        return None  # comments / processing instructions
    name = localname(element)
    if name in CONTAINER_ELEMENTS:
        return _parse_container(element, parent_is_sequence)
    if name in BEHAVIOUR_ELEMENTS:
        return _parse_behaviour(element)
    return None


def parse_timing_tree(document: Any) -> TimingTree:
    """
    Build the TimingTree model of a slide.

    Returns an empty tree when the slide has no p:timing element.
    """
    root = _element_root(document)
    timing = root.find(qn("p:timing"))
    if timing is None:
        return TimingTree()
    top = timing.find(f"{qn('p:tnLst')}/*")
    tree_root = _parse_node(top, False) if top is not None else None
    build_targets = tuple(
        spid for spid in (parse_shape_id(n.get("spid")) for n in build_target_nodes(root))
        if spid is not None
    )
    return TimingTree(root=tree_root, build_targets=build_targets)


# ─────────────────────────────────────────────────────────────────────────────
# Slide view
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SlideView:
    """
    Read-only summary of one slide.

    Attributes:
        slide_index: Physical slide index (None for detached content)
        shapes: Shapes in document order
        timing: Parsed timing tree
        relationship_ids: Relationship ids referenced from the content
    """
    slide_index: Optional[int]
    shapes: Tuple[SlideShape, ...]
    timing: TimingTree
    relationship_ids: Tuple[str, ...]

    @property
    def shape_ids(self) -> Tuple[ShapeId, ...]:
        return tuple(s.shape_id for s in self.shapes)


def parse_slide(document: Any, slide_index: Optional[int] = None) -> SlideView:
    """Parse a slide document into a SlideView."""
    rel_ids = []
    for element, name in relationship_attributes(document):
        value = element.get(name)
        if value and value not in rel_ids:
            rel_ids.append(value)
    return SlideView(
        slide_index=slide_index,
        shapes=tuple(shapes(document)),
        timing=parse_timing_tree(document),
        relationship_ids=tuple(rel_ids),
    )
