"""
Parsing Package

Read-only views over slide parts: shape-identity nodes, animation targets
and the timing tree model.
"""

from .slide_parser import (
    SlideView,
    animation_target_nodes,
    parse_slide,
    parse_timing_tree,
    shape_id_nodes,
    shape_ids,
)

__all__ = [
    "SlideView",
    "animation_target_nodes",
    "parse_slide",
    "parse_timing_tree",
    "shape_id_nodes",
    "shape_ids",
]
