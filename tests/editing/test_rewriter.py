"""
Unit Tests for ReferenceRewriter

Tests for shape id regeneration on copied slide content and the remapping
of animation, build-list, connector and relationship references, and the
stripping of references to removed relationships.
"""

from lxml import etree

from deck_toolkit.core.models.identifiers import RelationshipId
from deck_toolkit.core.utils.xml import deep_copy, parse_part, xpath
from deck_toolkit.editing.rewriter import ReferenceRewriter
from deck_toolkit.parsing.slide_parser import parse_timing_tree, shape_ids


def _document(xml: str) -> etree._ElementTree:
    return etree.ElementTree(etree.fromstring(xml.encode("utf-8")))


class TestRegenerate:
    """Tests for ReferenceRewriter.regenerate()."""

    def test_regenerate_when_three_shapes_two_effects_then_counts_match(self, sample_package, registries):
        layout, shapes, _ = registries(sample_package)
        before = set(shapes.all_ids())
        clone = deep_copy(parse_part(layout.slide_path(2)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=4)

        assert result.shapes_processed == 3
        assert result.references_updated == 2
        assert result.build_references_updated == 1
        assert set(result.mapping) == {10, 11, 12}
        assert len(set(result.mapping.values())) == 3
        assert not set(result.mapping.values()) & before

    def test_regenerate_when_done_then_effects_target_mapped_ids(self, sample_package, registries):
        layout, shapes, _ = registries(sample_package)
        clone = deep_copy(parse_part(layout.slide_path(2)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=4)

        targets = parse_timing_tree(clone).target_shape_ids()
        assert targets == (result.mapping[11], result.mapping[12])
        assert set(targets) <= set(shape_ids(clone))
        assert parse_timing_tree(clone).build_targets == (result.mapping[11],)

    def test_regenerate_when_done_then_new_ids_registered_under_destination(self, sample_package, registries):
        layout, shapes, _ = registries(sample_package)
        clone = deep_copy(parse_part(layout.slide_path(2)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=4)

        assert shapes.ids_for_scope(4) == sorted(result.mapping.values())
        assert shapes.lookup(result.mapping[10]).name == "Box A"

    def test_regenerate_when_source_untouched_then_original_ids_remain(self, sample_package, registries):
        layout, shapes, _ = registries(sample_package)
        source = parse_part(layout.slide_path(2))
        ReferenceRewriter(shapes).regenerate(deep_copy(source), destination_index=4)
        assert shape_ids(source) == [10, 11, 12]

    def test_regenerate_when_target_not_in_slide_then_left_untouched(self, package_builder, registries):
        """Targets outside the copied shape set point at shared content."""
        package_builder.add_slide(shapes=[("4", "A")], effects=[4, 900])
        layout, shapes, _ = registries(package_builder.build())
        clone = deep_copy(parse_part(layout.slide_path(1)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=2)

        assert result.references_updated == 1
        assert parse_timing_tree(clone).target_shape_ids() == (result.mapping[4], 900)

    def test_regenerate_when_duplicate_source_ids_then_first_occurrence_wins(self, package_builder, registries):
        package_builder.add_slide(shapes=[("4", "First"), ("4", "Second")], effects=[4])
        layout, shapes, _ = registries(package_builder.build())
        clone = deep_copy(parse_part(layout.slide_path(1)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=2)

        new_ids = shape_ids(clone)
        assert result.shapes_processed == 2
        assert len(set(new_ids)) == 2
        assert result.mapping == {4: new_ids[0]}
        assert parse_timing_tree(clone).target_shape_ids() == (new_ids[0],)

    def test_regenerate_when_fallback_branch_then_mirrors_choice_id(self, package_builder, registries):
        alternate = (
            '<mc:AlternateContent><mc:Choice Requires="p14">'
            f'{package_builder.shape_xml("7", "Choice")}'
            '</mc:Choice><mc:Fallback>'
            f'{package_builder.shape_xml("7", "Fallback")}'
            "</mc:Fallback></mc:AlternateContent>"
        )
        package_builder.add_slide(extra_shapes=alternate)
        layout, shapes, _ = registries(package_builder.build())
        clone = deep_copy(parse_part(layout.slide_path(1)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=2)

        ids = xpath(clone.getroot(), ".//p:cNvPr[@name!='']/@id")
        assert ids == [str(result.mapping[7])] * 2
        assert result.shapes_processed == 1

    def test_regenerate_when_connector_references_shape_then_endpoint_remapped(self, package_builder, registries):
        connector = (
            '<p:cxnSp><p:nvCxnSpPr><p:cNvPr id="13" name="Connector"/>'
            '<p:cNvCxnSpPr><a:stCxn id="10" idx="1"/><a:endCxn id="99" idx="0"/></p:cNvCxnSpPr>'
            "<p:nvPr/></p:nvCxnSpPr><p:spPr/></p:cxnSp>"
        )
        package_builder.add_slide(shapes=[("10", "Start")], extra_shapes=connector)
        layout, shapes, _ = registries(package_builder.build())
        clone = deep_copy(parse_part(layout.slide_path(1)))

        result = ReferenceRewriter(shapes).regenerate(clone, destination_index=2)

        assert result.connector_references_updated == 1
        assert xpath(clone.getroot(), ".//a:stCxn/@id") == [str(result.mapping[10])]
        assert xpath(clone.getroot(), ".//a:endCxn/@id") == ["99"]


class TestRemapRelationshipReferences:
    """Tests for ReferenceRewriter.remap_relationship_references()."""

    def test_remap_when_embed_mapped_then_rewritten(self, package_builder):
        doc = _document(package_builder.slide_xml(picture=("5", "rId17")))
        updated = ReferenceRewriter.remap_relationship_references(doc, {"rId17": RelationshipId("rId30")})
        assert updated == 1
        assert xpath(doc.getroot(), ".//a:blip/@r:embed") == ["rId30"]

    def test_remap_when_chained_mapping_then_single_pass(self, package_builder):
        pictures = (
            package_builder.slide_xml(picture=("5", "rId1"))
            .replace("</p:spTree>",
                     '<p:pic><p:nvPicPr><p:cNvPr id="6" name="P"/><p:cNvPicPr/><p:nvPr/></p:nvPicPr>'
                     '<p:blipFill><a:blip r:embed="rId7"/></p:blipFill><p:spPr/></p:pic></p:spTree>')
        )
        doc = _document(pictures)
        ReferenceRewriter.remap_relationship_references(
            doc, {"rId1": RelationshipId("rId7"), "rId7": RelationshipId("rId9")},
        )
        assert xpath(doc.getroot(), ".//a:blip/@r:embed") == ["rId7", "rId9"]

    def test_remap_when_mapping_empty_then_nothing_changes(self, package_builder):
        doc = _document(package_builder.slide_xml(picture=("5", "rId17")))
        assert ReferenceRewriter.remap_relationship_references(doc, {}) == 0


class TestStripRelationshipReferences:
    """Tests for ReferenceRewriter.strip_relationship_references()."""

    def test_strip_when_hyperlink_and_embed_then_link_removed_embed_attribute_dropped(self, package_builder):
        link = (
            '<p:sp><p:nvSpPr><p:cNvPr id="6" name="Link">'
            '<a:hlinkClick r:id="rId40" action="ppaction://hlinksldjump"/>'
            "</p:cNvPr><p:cNvSpPr/><p:nvPr/></p:nvSpPr><p:spPr/></p:sp>"
        )
        doc = _document(package_builder.slide_xml(picture=("5", "rId17"), extra_shapes=link))

        removed = ReferenceRewriter.strip_relationship_references(doc, {"rId40", "rId17"})

        assert removed == 2
        assert xpath(doc.getroot(), ".//a:hlinkClick") == []
        assert xpath(doc.getroot(), ".//a:blip/@r:embed") == []
        assert shape_ids(doc) == [5, 6]

    def test_strip_when_ids_not_referenced_then_nothing_changes(self, package_builder):
        doc = _document(package_builder.slide_xml(picture=("5", "rId17")))
        assert ReferenceRewriter.strip_relationship_references(doc, {"rId99"}) == 0
        assert xpath(doc.getroot(), ".//a:blip/@r:embed") == ["rId17"]
