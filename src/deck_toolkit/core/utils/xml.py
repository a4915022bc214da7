"""
Module: core.utils.xml

Purpose:
    Thin lxml helpers for reading and writing package parts. Parsing and
    serialisation are delegated entirely to lxml; this module only adds
    namespace constants, Clark-notation helpers and error translation into
    the toolkit's exception taxonomy.

Key Functions:
    - qn(): "p:cNvPr" -> "{namespace}cNvPr"
    - xpath(): XPath evaluation with the PresentationML namespace map
    - parse_part(): Parse a part from disk (StructuralError on bad XML)
    - write_part(): Serialise a part to disk (PackageIOError on OSError)
    - new_element(): Create a namespaced element

Dependencies:
    - lxml: XML parsing and serialisation

Used By:
    - registry, editing, parsing, session
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

from lxml import etree

from ..errors import PackageIOError, StructuralError

# PresentationML / DrawingML / OPC namespaces
P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"

NSMAP: Dict[str, str] = {
    "p": P_NS,
    "a": A_NS,
    "r": R_NS,
    "mc": MC_NS,
}

SLIDE_NSMAP: Dict[Optional[str], str] = {
    "a": A_NS,
    "r": R_NS,
    "p": P_NS,
}

_PARSER = etree.XMLParser(remove_blank_text=False, resolve_entities=False)


def qn(tag: str) -> str:
    """
    Convert a prefixed tag name to Clark notation.

    Example:
        >>> qn("p:cNvPr")
        '{http://schemas.openxmlformats.org/presentationml/2006/main}cNvPr'
    """
    prefix, _, local = tag.partition(":")
    return f"{{{NSMAP[prefix]}}}{local}"


def localname(element: etree._Element) -> str:
    """Local part of an element's tag."""
    return etree.QName(element).localname


def xpath(node: Any, expression: str) -> List[Any]:
    """Evaluate an XPath expression using the PresentationML prefixes."""
    return node.xpath(expression, namespaces=NSMAP)


def new_element(tag: str, attrib: Optional[Dict[str, str]] = None, nsmap=None) -> etree._Element:
    """Create a namespaced element from a prefixed tag name."""
    element = etree.Element(qn(tag), nsmap=nsmap)
    for key, value in (attrib or {}).items():
        element.set(key, value)
    return element


def sub_element(parent: etree._Element, tag: str, attrib: Optional[Dict[str, str]] = None) -> etree._Element:
    """Append a namespaced child element to ``parent``."""
    element = etree.SubElement(parent, qn(tag))
    for key, value in (attrib or {}).items():
        element.set(key, value)
    return element


def parse_part(path: Path, part_name: str = "") -> etree._ElementTree:
    """
    Parse a package part from disk.

    Args:
        path: Absolute path to the part file.
        part_name: Package-relative name for error messages.

    Returns:
        Parsed element tree.

    Raises:
        StructuralError: If the file is missing or not well-formed XML.
    """
    label = part_name or path.name
    if not path.exists():
        raise StructuralError(f"Required part not found: {label}", part=label)
    try:
        return etree.parse(str(path), _PARSER)
    except etree.XMLSyntaxError as e:
        raise StructuralError(f"Malformed XML in {label}: {e}", part=label) from e


def write_part(tree: Any, path: Path) -> None:
    """
    Serialise an element or element tree to ``path``.

    Writes UTF-8 with an XML declaration and ``standalone="yes"`` as Office
    does. Parent directories are created as needed.

    Raises:
        PackageIOError: If the file cannot be written.
    """
    if isinstance(tree, etree._Element):
        tree = tree.getroottree()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tree.write(str(path), xml_declaration=True, encoding="UTF-8", standalone=True)
    except OSError as e:
        raise PackageIOError(f"Failed to write {path.name}: {e}", path=str(path)) from e


def deep_copy(tree: etree._ElementTree) -> etree._ElementTree:
    """Deep-clone a parsed document."""
    return etree.ElementTree(copy.deepcopy(tree.getroot()))
