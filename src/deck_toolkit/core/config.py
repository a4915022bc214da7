"""
Module: core.config

Purpose:
    Configuration dataclass for structural edits. Immutable configuration
    with validation on construction.

Key Classes:
    - EditingConfig: Defaults used by the cascade, the relationship
      registry and the timing editor

Dependencies:
    - dataclasses (std)

Used By:
    - editing.cascade
    - editing.timing_editor
    - registry.relationships
    - session.config
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .errors import ConfigurationError
from .models.identifiers import parse_decimal
from .models.relationships import DEFAULT_MEDIA_MARKERS
from .models.slides import MIN_SLIDE_NUMERIC_ID


@dataclass(frozen=True)
class EditingConfig:
    """
    Defaults for structural edits (immutable).

    Attributes:
        default_layout_target: Layout target written into new slide descriptors
        default_theme_target: Theme target written into new slide descriptors
        default_effect_duration: Effect duration (ms) when none is given
        default_effect_filter: Effect filter when none is given
        first_slide_numeric_id: Numeric id of the first slide-list entry
        media_relationship_markers: Substrings of relationship type names
            that mark a type as transient/media (always a fresh id)

    Example:
        >>> config = EditingConfig(default_effect_duration="500")
        >>> config.first_slide_numeric_id
        256
    """

    # Relationship descriptor defaults
    default_layout_target: str = "../slideLayouts/slideLayout1.xml"
    default_theme_target: str = "../theme/theme1.xml"

    # Animation defaults
    default_effect_duration: str = "330"
    default_effect_filter: str = "fade"

    # Slide list
    first_slide_numeric_id: int = MIN_SLIDE_NUMERIC_ID

    media_relationship_markers: Tuple[str, ...] = DEFAULT_MEDIA_MARKERS

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if not self.default_layout_target:
            raise ConfigurationError("default_layout_target must not be empty")
        if not self.default_theme_target:
            raise ConfigurationError("default_theme_target must not be empty")
        if parse_decimal(self.default_effect_duration) is None:
            raise ConfigurationError(
                f"default_effect_duration must be a whole number of ms: {self.default_effect_duration!r}"
            )
        if not self.default_effect_filter:
            raise ConfigurationError("default_effect_filter must not be empty")
        if self.first_slide_numeric_id < MIN_SLIDE_NUMERIC_ID:
            raise ConfigurationError(
                f"first_slide_numeric_id must be >= {MIN_SLIDE_NUMERIC_ID}: {self.first_slide_numeric_id}"
            )
        if not self.media_relationship_markers:
            raise ConfigurationError("media_relationship_markers must not be empty")
