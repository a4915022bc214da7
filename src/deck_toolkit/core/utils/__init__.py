"""
Core Utilities Package

XML helpers shared by the registries, the editing layer and the session.
"""

from .xml import (
    NSMAP,
    A_NS,
    CT_NS,
    MC_NS,
    P_NS,
    PKG_REL_NS,
    R_NS,
    qn,
    xpath,
    localname,
    parse_part,
    write_part,
    deep_copy,
)

__all__ = [
    "NSMAP",
    "A_NS",
    "CT_NS",
    "MC_NS",
    "P_NS",
    "PKG_REL_NS",
    "R_NS",
    "qn",
    "xpath",
    "localname",
    "parse_part",
    "write_part",
    "deep_copy",
]
