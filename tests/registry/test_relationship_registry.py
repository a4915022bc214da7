"""
Unit Tests for RelationshipRegistry

Tests for package-wide relationship id allocation, reuse policy, descriptor
copies and retargeting.
"""

import os
from pathlib import Path

import pytest

from deck_toolkit.core.errors import NotFoundError
from deck_toolkit.core.models.identifiers import RelationshipId
from deck_toolkit.core.models.relationships import (
    AUDIO_TYPE,
    HYPERLINK_TYPE,
    IMAGE_TYPE,
    NOTES_SLIDE_TYPE,
    SLIDE_LAYOUT_TYPE,
    THEME_TYPE,
    VIDEO_TYPE,
    is_media_type,
)
from deck_toolkit.registry.relationships import DescriptorRecord

LAYOUT_TARGET = "../slideLayouts/slideLayout1.xml"


class TestRelationshipScan:
    """Tests for scanning descriptors."""

    def test_scan_when_sample_package_then_registers_every_descriptor_entry(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        assert len(rels) == 12
        assert rels.max_seen == 18

    def test_scan_when_root_descriptor_then_source_part_is_empty(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entry = rels.lookup(RelationshipId("rId1"))
        assert entry.source_part == ""
        assert entry.target == "ppt/presentation.xml"

    def test_scan_when_malformed_id_then_skipped(self, sample_package: Path, registries, package_builder):
        rels_path = sample_package / "ppt" / "slides" / "_rels" / "slide2.xml.rels"
        rels_path.write_text(package_builder.rels_xml([
            ("layout", SLIDE_LAYOUT_TYPE, LAYOUT_TARGET),
            ("rId14", SLIDE_LAYOUT_TYPE, LAYOUT_TARGET),
        ]), encoding="utf-8")
        _, _, rels = registries(sample_package)
        assert "layout" not in rels
        assert rels.max_seen == 18


class TestRelationshipAllocation:
    """Tests for reuse and fresh allocation."""

    def test_media_type_when_image_then_true(self):
        assert is_media_type(IMAGE_TYPE)
        assert is_media_type(VIDEO_TYPE)
        assert is_media_type(AUDIO_TYPE)
        assert not is_media_type(SLIDE_LAYOUT_TYPE)

    def test_find_or_create_when_identical_pair_exists_then_reuses_lowest_id(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entry = rels.find_or_create(SLIDE_LAYOUT_TYPE, LAYOUT_TARGET, "ppt/slides/slide4.xml")
        assert entry.id == "rId10"
        assert entry.source_part == "ppt/slides/slide4.xml"

    def test_find_or_create_when_media_pair_exists_then_fresh_id(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entry = rels.find_or_create(IMAGE_TYPE, "../media/image3.png", "ppt/slides/slide4.xml")
        assert entry.id == "rId19"
        assert RelationshipId("rId19") in rels

    def test_find_or_create_when_new_pair_then_fresh_registered_id(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entry = rels.find_or_create(THEME_TYPE, "../theme/theme2.xml", "ppt/slides/slide1.xml")
        assert entry.number > 18
        assert rels.lookup(entry.id) == entry


class TestSlideDescriptors:
    """Tests for slide descriptor creation and copies."""

    def test_create_when_called_then_layout_then_theme(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entries = rels.create_slide_relationships(4)
        assert [e.type for e in entries] == [SLIDE_LAYOUT_TYPE, THEME_TYPE]
        written = rels.read_descriptor("ppt/slides/slide4.xml")
        assert [r.id for r in written] == [e.id for e in entries]

    def test_copy_when_media_present_then_media_fresh_and_layout_shared(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        result = rels.copy_slide_relationships(3, 4)
        assert result.used_fallback is False
        assert result.mapping == {"rId16": "rId10", "rId17": "rId19"}

    def test_copy_when_force_new_ids_then_every_id_fresh(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        result = rels.copy_slide_relationships(3, 4, force_new_ids=True)
        assert result.mapping == {"rId16": "rId19", "rId17": "rId20"}

    def test_copy_when_notes_relationship_then_not_copied(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        result = rels.copy_slide_relationships(1, 4)
        assert all(e.type != NOTES_SLIDE_TYPE for e in result.entries)
        assert "rId11" not in result.mapping

    def test_copy_when_source_has_no_descriptor_then_fallback(self, package_builder, registries):
        package_builder.add_slide(shapes=[("2", "A")], rels=False)
        _, _, rels = registries(package_builder.build())
        result = rels.copy_slide_relationships(1, 2)
        assert result.used_fallback is True
        assert result.mapping == {}
        assert [e.type for e in result.entries] == [SLIDE_LAYOUT_TYPE, THEME_TYPE]

    def test_add_media_when_slide_exists_then_appends_fresh_id(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        entry = rels.add_media_relationship(2, IMAGE_TYPE, "../media/image3.png")
        ids = [r.id for r in rels.read_descriptor("ppt/slides/slide2.xml")]
        assert ids == ["rId14", entry.id]
        assert entry.id == "rId19"

    def test_add_media_when_slide_missing_then_raises_not_found(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        with pytest.raises(NotFoundError):
            rels.add_media_relationship(9, IMAGE_TYPE, "../media/x.png")

    def test_add_media_when_target_empty_then_raises_error(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        with pytest.raises(ValueError, match="must not be empty"):
            rels.add_media_relationship(1, IMAGE_TYPE, "")

    def test_remove_when_present_then_true_and_unregistered(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        assert rels.remove_relationship(3, "rId17") is True
        assert RelationshipId("rId17") not in rels
        assert rels.remove_relationship(3, "rId17") is False

    def test_remove_when_id_shared_with_other_descriptor_then_still_registered(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        rels.create_slide_relationships(4)  # reuses rId10 from slide 1

        assert rels.remove_relationship(1, "rId10") is True

        assert rels.lookup(RelationshipId("rId10")).source_part == "ppt/slides/slide4.xml"
        report = rels.validate()
        assert "unregistered-relationship-id" not in report.codes()
        assert "stale-relationship-id" not in report.codes()
        assert report.is_valid

    def test_remove_when_other_holder_was_registered_then_entry_kept(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        rels.create_slide_relationships(4)

        rels.remove_relationship(4, "rId10")

        assert rels.lookup(RelationshipId("rId10")).source_part == "ppt/slides/slide1.xml"
        assert "unregistered-relationship-id" not in rels.validate().codes()


class TestRenumbering:
    """Tests for shift-plan retargeting."""

    def test_apply_shift_plan_when_slide_moved_then_presentation_and_notes_retargeted(
        self, sample_package: Path, registries,
    ):
        layout, _, rels = registries(sample_package)
        plan = {3: 4, 2: 3, 1: 2}
        for old, new in plan.items():
            os.replace(layout.slide_path(old), layout.slide_path(new))
            os.replace(layout.slide_rels_path(old), layout.slide_rels_path(new))

        rewritten = rels.apply_shift_plan(plan)

        targets = {r.id: r.target for r in rels.read_descriptor("ppt/presentation.xml")}
        assert targets["rId13"] == "slides/slide2.xml"
        assert targets["rId15"] == "slides/slide3.xml"
        assert targets["rId18"] == "slides/slide4.xml"
        notes = rels.read_descriptor("ppt/notesSlides/notesSlide1.xml")
        assert notes[0].target == "../slides/slide2.xml"
        assert rewritten == 4

    def test_apply_shift_plan_when_entry_owned_by_moved_slide_then_source_updated(self, sample_package, registries):
        layout, _, rels = registries(sample_package)
        os.replace(layout.slide_path(3), layout.slide_path(4))
        os.replace(layout.slide_rels_path(3), layout.slide_rels_path(4))
        rels.apply_shift_plan({3: 4})
        assert rels.lookup(RelationshipId("rId17")).source_part == "ppt/slides/slide4.xml"
        assert rels.lookup(RelationshipId("rId18")).target == "slides/slide4.xml"

    def test_apply_shift_plan_when_empty_then_no_changes(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        assert rels.apply_shift_plan({}) == 0

    def test_drop_references_when_slide_targeted_then_removed_from_presentation(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        removed = rels.drop_references_to("ppt/slides/slide2.xml")
        assert removed == {"ppt/presentation.xml": ["rId15"]}
        assert "rId15" not in [r.id for r in rels.read_descriptor("ppt/presentation.xml")]


class TestRelationshipValidation:
    """Tests for RelationshipRegistry.validate()."""

    def test_validate_when_consistent_then_no_findings(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        assert len(rels.validate()) == 0

    def test_validate_when_target_missing_then_broken_target_error(self, sample_package: Path, registries):
        _, _, rels = registries(sample_package)
        (sample_package / "ppt" / "media" / "image3.png").unlink()
        report = rels.validate()
        assert report.codes() == ("broken-relationship-target",)
        assert report.errors[0].part == "ppt/slides/_rels/slide3.xml.rels"

    def test_validate_when_external_target_then_not_resolved(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        rels.append_relationship("ppt/slides/slide1.xml", HYPERLINK_TYPE, "https://example.com", external=True)
        assert rels.validate().is_valid

    def test_validate_when_duplicate_in_one_descriptor_then_error(self, sample_package: Path, registries):
        _, _, rels = registries(sample_package)
        rels.write_descriptor("ppt/slides/slide2.xml", [
            DescriptorRecord("rId14", SLIDE_LAYOUT_TYPE, LAYOUT_TARGET),
            DescriptorRecord("rId14", THEME_TYPE, "../theme/theme1.xml"),
        ])
        report = rels.validate()
        assert "duplicate-relationship-id" in report.codes()
        assert not report.is_valid

    def test_validate_when_id_shared_across_descriptors_then_warning(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        rels.create_slide_relationships(4)  # reuses rId10 from slide 1
        report = rels.validate()
        assert "shared-relationship-id" in report.codes()
        assert report.is_valid

    def test_validate_when_embedded_relationship_removed_then_dangling_reference(self, sample_package, registries):
        _, _, rels = registries(sample_package)
        rels.remove_relationship(3, "rId17")

        report = rels.validate()

        assert report.codes() == ("dangling-relationship-reference",)
        assert report.errors[0].part == "ppt/slides/slide3.xml"

    def test_validate_when_run_twice_then_identical(self, sample_package: Path, registries):
        _, _, rels = registries(sample_package)
        (sample_package / "ppt" / "theme" / "theme1.xml").unlink()
        rels.register(RelationshipId("rId90"), rels.lookup(RelationshipId("rId1")).with_source("x"))
        assert rels.validate() == rels.validate()
