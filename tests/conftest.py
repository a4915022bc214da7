import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

# Add src to sys.path so we can import deck_toolkit
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from deck_toolkit.core.package import PackageLayout  # noqa: E402
from deck_toolkit.registry.relationships import RelationshipRegistry  # noqa: E402
from deck_toolkit.registry.shapes import ShapeIdRegistry  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# XML snippets
# ─────────────────────────────────────────────────────────────────────────────

P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

RT = R_NS
SLIDE_REL = f"{RT}/slide"
LAYOUT_REL = f"{RT}/slideLayout"
MASTER_REL = f"{RT}/slideMaster"
THEME_REL = f"{RT}/theme"
NOTES_REL = f"{RT}/notesSlide"
IMAGE_REL = f"{RT}/image"
OFFICE_DOC_REL = f"{RT}/officeDocument"

SLIDE_CT = "application/vnd.openxmlformats-officedocument.presentationml.slide+xml"
NOTES_CT = "application/vnd.openxmlformats-officedocument.presentationml.notesSlide+xml"

XML_DECL = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
NS_DECL = f'xmlns:a="{A_NS}" xmlns:r="{R_NS}" xmlns:p="{P_NS}"'


def rels_xml(records: Sequence[Tuple[str, str, str]]) -> str:
    body = "".join(
        f'<Relationship Id="{rid}" Type="{rtype}" Target="{target}"/>' for rid, rtype, target in records
    )
    return f'{XML_DECL}<Relationships xmlns="{PKG_REL_NS}">{body}</Relationships>'


def shape_xml(token: str, name: str) -> str:
    return (
        f'<p:sp><p:nvSpPr><p:cNvPr id="{token}" name="{name}"/><p:cNvSpPr/><p:nvPr/></p:nvSpPr>'
        f"<p:spPr/></p:sp>"
    )


def picture_xml(token: str, rel_id: str) -> str:
    return (
        f'<p:pic><p:nvPicPr><p:cNvPr id="{token}" name="Picture {token}"/><p:cNvPicPr/><p:nvPr/></p:nvPicPr>'
        f'<p:blipFill><a:blip r:embed="{rel_id}"/></p:blipFill><p:spPr/></p:pic>'
    )


def timing_xml(effects: Sequence[int] = (), builds: Sequence[int] = (), trigger_delay: str = "indefinite") -> str:
    """One click trigger holding a fade-in effect per target shape."""
    if not effects and not builds:
        return ""
    node_id = 4
    leaves = []
    for spid in effects:
        leaves.append(
            f'<p:par><p:cTn id="{node_id}" presetID="10" presetClass="entr" presetSubtype="0" fill="hold" '
            f'nodeType="clickEffect"><p:stCondLst><p:cond delay="0"/></p:stCondLst><p:childTnLst>'
            f'<p:animEffect transition="in" filter="fade"><p:cBhvr><p:cTn id="{node_id + 1}" dur="500"/>'
            f'<p:tgtEl><p:spTgt spid="{spid}"/></p:tgtEl></p:cBhvr></p:animEffect>'
            f"</p:childTnLst></p:cTn></p:par>"
        )
        node_id += 2
    build_list = ""
    if builds:
        build_list = "<p:bldLst>" + "".join(f'<p:bldP spid="{s}" grpId="0"/>' for s in builds) + "</p:bldLst>"
    return (
        '<p:timing><p:tnLst><p:par><p:cTn id="1" dur="indefinite" restart="never" nodeType="tmRoot">'
        '<p:childTnLst><p:seq concurrent="1" nextAc="seek"><p:cTn id="2" dur="indefinite" nodeType="mainSeq">'
        f'<p:childTnLst><p:par><p:cTn id="3" fill="hold"><p:stCondLst><p:cond delay="{trigger_delay}"/>'
        f'</p:stCondLst><p:childTnLst>{"".join(leaves)}</p:childTnLst></p:cTn></p:par></p:childTnLst></p:cTn>'
        '<p:prevCondLst><p:cond evt="onPrev" delay="0"><p:tgtEl><p:sldTgt/></p:tgtEl></p:cond></p:prevCondLst>'
        '<p:nextCondLst><p:cond evt="onNext" delay="0"><p:tgtEl><p:sldTgt/></p:tgtEl></p:cond></p:nextCondLst>'
        f"</p:seq></p:childTnLst></p:cTn></p:par></p:tnLst>{build_list}</p:timing>"
    )


def slide_xml(
    shapes: Sequence[Tuple[str, str]] = (),
    effects: Sequence[int] = (),
    builds: Sequence[int] = (),
    picture: Optional[Tuple[str, str]] = None,
    extra_shapes: str = "",
    timing: Optional[str] = None,
) -> str:
    """
    A slide part.

    Args:
        shapes: (id token, name) per text shape
        effects: Shape ids targeted by click-triggered effects
        builds: Shape ids in the build list
        picture: (id token, relationship id) of a picture shape
        extra_shapes: Raw XML appended to the shape tree
        timing: Raw p:timing XML (overrides effects/builds)
    """
    body = "".join(shape_xml(token, name) for token, name in shapes)
    if picture is not None:
        body += picture_xml(*picture)
    body += extra_shapes
    timing_part = timing if timing is not None else timing_xml(effects, builds)
    return (
        f"{XML_DECL}<p:sld {NS_DECL} xmlns:mc=\"{MC_NS}\"><p:cSld><p:spTree>"
        '<p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr><p:grpSpPr/>'
        f"{body}</p:spTree></p:cSld><p:clrMapOvr><a:masterClrMapping/></p:clrMapOvr>{timing_part}</p:sld>"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Package builder
# ─────────────────────────────────────────────────────────────────────────────

class PackageBuilder:
    """
    Writes a minimal extracted presentation package.

    Relationship ids are unique across the whole package (rId1 root,
    rId2/rId3 presentation, rId10+ slides) so a fresh build validates with
    no findings.
    """

    def __init__(self, root: Path):
        self.root = root
        self.slides: List[dict] = []
        self.with_slide_list = True
        self._next_rid = 10

    def _rid(self) -> str:
        rid = f"rId{self._next_rid}"
        self._next_rid += 1
        return rid

    def add_slide(
        self,
        shapes: Sequence[Tuple[str, str]] = (),
        effects: Sequence[int] = (),
        builds: Sequence[int] = (),
        picture_id: Optional[str] = None,
        notes: bool = False,
        rels: bool = True,
        extra_shapes: str = "",
        timing: Optional[str] = None,
    ) -> int:
        """Queue a slide; returns its 1-based index."""
        self.slides.append({
            "shapes": shapes, "effects": effects, "builds": builds, "picture_id": picture_id,
            "notes": notes, "rels": rels, "extra_shapes": extra_shapes, "timing": timing,
        })
        return len(self.slides)

    def _write(self, part_name: str, text: str) -> None:
        path = self.root.joinpath(*part_name.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def build(self) -> Path:
        overrides = [("/ppt/presentation.xml",
                      "application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml")]
        presentation_rels = [("rId2", MASTER_REL, "slideMasters/slideMaster1.xml"),
                             ("rId3", THEME_REL, "theme/theme1.xml")]
        slide_ids = []

        for index, slide in enumerate(self.slides, start=1):
            slide_part = f"ppt/slides/slide{index}.xml"
            records = []
            picture = None
            if slide["rels"]:
                records.append((self._rid(), LAYOUT_REL, "../slideLayouts/slideLayout1.xml"))
            if slide["picture_id"] is not None:
                image_rid = self._rid()
                records.append((image_rid, IMAGE_REL, f"../media/image{index}.png"))
                picture = (slide["picture_id"], image_rid)
                self._write(f"ppt/media/image{index}.png", "png")
            if slide["notes"]:
                records.append((self._rid(), NOTES_REL, f"../notesSlides/notesSlide{index}.xml"))
                self._write(
                    f"ppt/notesSlides/notesSlide{index}.xml",
                    f"{XML_DECL}<p:notes {NS_DECL}><p:cSld><p:spTree/></p:cSld></p:notes>",
                )
                self._write(
                    f"ppt/notesSlides/_rels/notesSlide{index}.xml.rels",
                    rels_xml([(self._rid(), SLIDE_REL, f"../slides/slide{index}.xml")]),
                )
                overrides.append((f"/ppt/notesSlides/notesSlide{index}.xml", NOTES_CT))
            self._write(slide_part, slide_xml(
                slide["shapes"], slide["effects"], slide["builds"], picture, slide["extra_shapes"], slide["timing"],
            ))
            if records:
                self._write(f"ppt/slides/_rels/slide{index}.xml.rels", rels_xml(records))
            rid = self._rid()
            presentation_rels.append((rid, SLIDE_REL, f"slides/slide{index}.xml"))
            slide_ids.append((255 + index, rid))
            overrides.append((f"/{slide_part}", SLIDE_CT))

        slide_list = ""
        if self.with_slide_list:
            slide_list = "<p:sldIdLst>" + "".join(
                f'<p:sldId id="{numeric}" r:id="{rid}"/>' for numeric, rid in slide_ids
            ) + "</p:sldIdLst>"

        self._write("[Content_Types].xml", (
            f'{XML_DECL}<Types xmlns="{CT_NS}">'
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            '<Default Extension="png" ContentType="image/png"/>'
            + "".join(f'<Override PartName="{p}" ContentType="{c}"/>' for p, c in overrides)
            + "</Types>"
        ))
        self._write("_rels/.rels", rels_xml([("rId1", OFFICE_DOC_REL, "ppt/presentation.xml")]))
        self._write("ppt/presentation.xml", (
            f"{XML_DECL}<p:presentation {NS_DECL}>"
            '<p:sldMasterIdLst><p:sldMasterId id="2147483648" r:id="rId2"/></p:sldMasterIdLst>'
            f'{slide_list}<p:sldSz cx="12192000" cy="6858000"/><p:notesSz cx="6858000" cy="9144000"/>'
            "</p:presentation>"
        ))
        self._write("ppt/_rels/presentation.xml.rels", rels_xml(presentation_rels))
        self._write("ppt/slideMasters/slideMaster1.xml",
                    f"{XML_DECL}<p:sldMaster {NS_DECL}><p:cSld><p:spTree/></p:cSld></p:sldMaster>")
        self._write("ppt/slideLayouts/slideLayout1.xml",
                    f"{XML_DECL}<p:sldLayout {NS_DECL}><p:cSld><p:spTree/></p:cSld></p:sldLayout>")
        self._write("ppt/theme/theme1.xml", f'{XML_DECL}<a:theme xmlns:a="{A_NS}" name="Office Theme"/>')
        return self.root

    # Snippets, exposed for tests that hand-write parts
    rels_xml = staticmethod(rels_xml)
    slide_xml = staticmethod(slide_xml)
    shape_xml = staticmethod(shape_xml)
    timing_xml = staticmethod(timing_xml)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def package_builder(tmp_path: Path) -> PackageBuilder:
    """Builder for a package rooted at tmp_path/deck."""
    return PackageBuilder(tmp_path / "deck")


@pytest.fixture
def empty_package(package_builder: PackageBuilder) -> Path:
    """Package with no slides and no slide list."""
    package_builder.with_slide_list = False
    return package_builder.build()


@pytest.fixture
def sample_package(package_builder: PackageBuilder) -> Path:
    """
    Three slides:
        1: shapes 2, 3 with a notes slide
        2: shapes 10, 11, 12; effects on 11 and 12; build list entry for 11
        3: shape 20 and picture 21 with an image relationship
    """
    package_builder.add_slide(shapes=[("2", "Title 1"), ("3", "Content 2")], notes=True)
    package_builder.add_slide(
        shapes=[("10", "Box A"), ("11", "Box B"), ("12", "Box C")], effects=[11, 12], builds=[11],
    )
    package_builder.add_slide(shapes=[("20", "Caption")], picture_id="21")
    return package_builder.build()


@pytest.fixture
def layout_of():
    """Factory: PackageLayout for a package directory."""
    return PackageLayout


@pytest.fixture
def registries():
    """Factory: scanned (layout, shapes, relationships) for a package directory."""
    def _open(root: Path):
        layout = PackageLayout(root)
        shapes = ShapeIdRegistry(layout)
        relationships = RelationshipRegistry(layout)
        shapes.scan()
        relationships.scan()
        return layout, shapes, relationships
    return _open
