"""
Editing Package

Structural edits of an open package: the slide insertion cascade, shape id
regeneration for copies, the slide list and manifest parts, slide templates
and timing tree mutation.
"""

from .cascade import SlideInsertionCascade
from .content_types import SLIDE_CONTENT_TYPE, ContentTypesManifest
from .phase_log import PhaseLog, timed_phase
from .rewriter import ReferenceRewriter
from .slide_list import SlideList
from .templates import BlankSlideTemplate, SlideTemplate, TitleSlideTemplate
from .timing_editor import TimingTreeEditor, validate_timing

__all__ = [
    "SlideInsertionCascade",
    "SLIDE_CONTENT_TYPE",
    "ContentTypesManifest",
    "PhaseLog",
    "timed_phase",
    "ReferenceRewriter",
    "SlideList",
    "BlankSlideTemplate",
    "SlideTemplate",
    "TitleSlideTemplate",
    "TimingTreeEditor",
    "validate_timing",
]
