"""
Module: editing.templates

Purpose:
    Slide content builders. A template turns caller data into a new slide
    document; every shape id it needs comes from the allocate callback so
    ids stay unique across the package.

Key Classes:
    - SlideTemplate: Protocol (name, build(data, allocate_shape_id))
    - BlankSlideTemplate: Empty slide, optional title placeholder
    - TitleSlideTemplate: Title placeholder plus optional body text

Key Functions:
    - new_slide_document(): Empty p:sld skeleton
    - apply_title(): Replace the text of a slide's title placeholder

Dependencies:
    - lxml

Used By:
    - editing.cascade
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

from lxml import etree

from ..core.models.identifiers import ShapeId
from ..core.utils.xml import SLIDE_NSMAP, new_element, qn, sub_element, xpath

logger = logging.getLogger(__name__)

ShapeIdAllocator = Callable[[], ShapeId]

TITLE_PLACEHOLDER_TYPES = ("title", "ctrTitle")


@runtime_checkable
class SlideTemplate(Protocol):
    """Builds the content of a new slide."""

    name: str

    def build(self, data: Mapping[str, Any], allocate_shape_id: ShapeIdAllocator) -> etree._ElementTree:
        ...


# ─────────────────────────────────────────────────────────────────────────────
# XML builders
# ─────────────────────────────────────────────────────────────────────────────

def new_slide_document() -> etree._ElementTree:
    """
    Empty slide: shape tree with its group properties and a colour map
    override that follows the master.
    """
    sld = new_element("p:sld", nsmap=SLIDE_NSMAP)
    c_sld = sub_element(sld, "p:cSld")
    sp_tree = sub_element(c_sld, "p:spTree")
    nv = sub_element(sp_tree, "p:nvGrpSpPr")
    sub_element(nv, "p:cNvPr", {"id": "1", "name": ""})
    sub_element(nv, "p:cNvGrpSpPr")
    sub_element(nv, "p:nvPr")
    grp = sub_element(sp_tree, "p:grpSpPr")
    xfrm = sub_element(grp, "a:xfrm")
    sub_element(xfrm, "a:off", {"x": "0", "y": "0"})
    sub_element(xfrm, "a:ext", {"cx": "0", "cy": "0"})
    sub_element(xfrm, "a:chOff", {"x": "0", "y": "0"})
    sub_element(xfrm, "a:chExt", {"cx": "0", "cy": "0"})
    clr = sub_element(sld, "p:clrMapOvr")
    sub_element(clr, "a:masterClrMapping")
    return etree.ElementTree(sld)


def _shape_tree(document: etree._ElementTree) -> etree._Element:
    return document.getroot().find(f"{qn('p:cSld')}/{qn('p:spTree')}")


def _set_text(tx_body: etree._Element, text: str) -> None:
    for paragraph in tx_body.findall(qn("a:p")):
        tx_body.remove(paragraph)
    for line in text.split("\n"):
        paragraph = sub_element(tx_body, "a:p")
        if line:
            run = sub_element(paragraph, "a:r")
            sub_element(run, "a:rPr", {"lang": "en-US", "dirty": "0"})
            sub_element(run, "a:t").text = line


def add_placeholder(
    document: etree._ElementTree,
    shape_id: ShapeId,
    name: str,
    text: str,
    placeholder_type: Optional[str] = None,
    index: Optional[int] = None,
) -> etree._Element:
    """Append a text placeholder shape to the shape tree."""
    sp = sub_element(_shape_tree(document), "p:sp")
    nv = sub_element(sp, "p:nvSpPr")
    sub_element(nv, "p:cNvPr", {"id": str(shape_id), "name": name})
    c_nv_sp = sub_element(nv, "p:cNvSpPr")
    sub_element(c_nv_sp, "a:spLocks", {"noGrp": "1"})
    nv_pr = sub_element(nv, "p:nvPr")
    ph_attrib = {}
    if placeholder_type:
        ph_attrib["type"] = placeholder_type
    if index is not None:
        ph_attrib["idx"] = str(index)
    sub_element(nv_pr, "p:ph", ph_attrib)
    sub_element(sp, "p:spPr")
    tx_body = sub_element(sp, "p:txBody")
    sub_element(tx_body, "a:bodyPr")
    sub_element(tx_body, "a:lstStyle")
    _set_text(tx_body, text)
    return sp


def apply_title(document: Any, title: str) -> bool:
    """
    Replace the text of the slide's title placeholder.

    Returns:
        False when the slide has no title placeholder.
    """
    root = document.getroot() if isinstance(document, etree._ElementTree) else document
    condition = " or ".join(f"@type='{t}'" for t in TITLE_PLACEHOLDER_TYPES)
    shapes = xpath(root, f".//p:spTree//p:sp[p:nvSpPr/p:nvPr/p:ph[{condition}]]")
    if not shapes:
        logger.debug("No title placeholder; title not applied")
        return False
    tx_body = shapes[0].find(qn("p:txBody"))
    if tx_body is None:
        tx_body = sub_element(shapes[0], "p:txBody")
        sub_element(tx_body, "a:bodyPr")
        sub_element(tx_body, "a:lstStyle")
    _set_text(tx_body, title)
    return True


# ─────────────────────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────────────────────

class BlankSlideTemplate:
    """Empty slide. With data["title"] it gets one title placeholder."""

    name = "blank"

    def build(self, data: Mapping[str, Any], allocate_shape_id: ShapeIdAllocator) -> etree._ElementTree:
        document = new_slide_document()
        title = data.get("title")
        if title:
            shape_id = allocate_shape_id()
            add_placeholder(document, shape_id, "Title 1", str(title), "title")
        return document


class TitleSlideTemplate:
    """
    Title placeholder plus an optional body placeholder.

    Data keys:
        title: Required title text
        body: Optional body text; newlines start new paragraphs
    """

    name = "title"

    def build(self, data: Mapping[str, Any], allocate_shape_id: ShapeIdAllocator) -> etree._ElementTree:
        title = data.get("title")
        if not title:
            raise ValueError("TitleSlideTemplate requires a 'title'")
        document = new_slide_document()
        title_id = allocate_shape_id()
        add_placeholder(document, title_id, "Title 1", str(title), "title")
        body = data.get("body")
        if body:
            body_id = allocate_shape_id()
            add_placeholder(document, body_id, "Content Placeholder 2", str(body), index=1)
        return document
