"""
Unit Tests for Configuration Dataclasses

Tests for EditingConfig and SessionConfig validation.
"""

from pathlib import Path

import pytest

from deck_toolkit.core.config import EditingConfig
from deck_toolkit.core.errors import ConfigurationError, DeckError
from deck_toolkit.session.config import SessionConfig


class TestEditingConfig:
    """Tests for EditingConfig."""

    def test_init_when_defaults_then_valid(self):
        config = EditingConfig()
        assert config.first_slide_numeric_id == 256
        assert config.default_effect_filter == "fade"
        assert "image" in config.media_relationship_markers

    def test_init_when_duration_not_numeric_then_raises_error(self):
        with pytest.raises(ConfigurationError, match="default_effect_duration"):
            EditingConfig(default_effect_duration="fast")

    def test_init_when_numeric_id_below_minimum_then_raises_error(self):
        with pytest.raises(ConfigurationError, match="first_slide_numeric_id"):
            EditingConfig(first_slide_numeric_id=10)

    def test_init_when_empty_layout_target_then_raises_error(self):
        with pytest.raises(ConfigurationError):
            EditingConfig(default_layout_target="")

    def test_init_when_frozen_then_immutable(self):
        config = EditingConfig()
        with pytest.raises(AttributeError):
            config.default_effect_filter = "wipe"  # type: ignore

    def test_configuration_error_when_raised_then_is_deck_error(self):
        with pytest.raises(DeckError):
            EditingConfig(media_relationship_markers=())


class TestSessionConfig:
    """Tests for SessionConfig."""

    def test_init_when_defaults_then_safe_settings(self):
        config = SessionConfig()
        assert config.lock_package is True
        assert config.snapshot_transactions is True
        assert config.validate_on_save is True
        assert isinstance(config.editing, EditingConfig)

    def test_init_when_work_dir_is_file_then_raises_error(self, tmp_path: Path):
        file_path = tmp_path / "not-a-dir"
        file_path.write_text("x")
        with pytest.raises(ConfigurationError, match="work_dir"):
            SessionConfig(work_dir=file_path)

    def test_init_when_editing_wrong_type_then_raises_error(self):
        with pytest.raises(ConfigurationError, match="EditingConfig"):
            SessionConfig(editing={"default_effect_filter": "wipe"})  # type: ignore
