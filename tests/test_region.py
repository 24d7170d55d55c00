"""Test the corner-region token filter.

Tests cover:
1. Region derivation for every corner, with inset clamping
2. Full-box containment (default)
3. Bottom-left-corner containment (earlier behaviour)
4. Ordering, purity and error handling
"""
from __future__ import annotations

import pytest

from titleblock_engine.errors import InvalidArgument
from titleblock_engine.region import PageRegionTextExtractor, extract, resolve_region
from titleblock_engine.types import Containment, Corner, Page, Rectangle, RegionSpec, Token


def tok(text: str, left: float, bottom: float, right: float, top: float) -> Token:
    return Token(text=text, bbox=Rectangle(left=left, bottom=bottom, right=right, top=top))


@pytest.fixture
def a4ish_page() -> Page:
    """600x800 page with tokens in and around the bottom-right corner."""
    return Page(
        width=600,
        height=800,
        tokens=(
            tok("TITLE", 500, 10, 550, 60),
            tok("NOTES", 100, 10, 150, 60),
            tok("DWG-001", 430, 100, 590, 140),
            tok("OVERHANG", 560, 20, 640, 40),
            tok("HEADER", 480, 700, 580, 740),
            tok("REV-B", 455, 130, 500, 149),
        ),
    )


BR_150 = RegionSpec(corner=Corner.BOTTOM_RIGHT, width_inset=150, height_inset=150)


# ═══════════════════════════════════════════════════════════════════════════════
# REGION DERIVATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestResolveRegion:
    """Region rectangles derived from page size."""

    def test_bottom_right(self, a4ish_page):
        assert resolve_region(a4ish_page, BR_150) == Rectangle(450, 0, 600, 150)

    def test_other_corners(self, a4ish_page):
        bl = RegionSpec(corner=Corner.BOTTOM_LEFT, width_inset=150, height_inset=100)
        tr = RegionSpec(corner=Corner.TOP_RIGHT, width_inset=150, height_inset=100)
        tl = RegionSpec(corner=Corner.TOP_LEFT, width_inset=150, height_inset=100)

        assert resolve_region(a4ish_page, bl) == Rectangle(0, 0, 150, 100)
        assert resolve_region(a4ish_page, tr) == Rectangle(450, 700, 600, 800)
        assert resolve_region(a4ish_page, tl) == Rectangle(0, 700, 150, 800)

    def test_oversized_inset_clamps_to_page(self):
        small = Page(width=200, height=100)
        spec = RegionSpec(width_inset=300, height_inset=300)
        assert resolve_region(small, spec) == Rectangle(0, 0, 200, 100)

    def test_negative_inset_clamps_to_zero(self, a4ish_page):
        spec = RegionSpec(width_inset=-20, height_inset=-5)
        assert resolve_region(a4ish_page, spec) == Rectangle(600, 0, 600, 0)

    def test_region_scales_with_page(self):
        spec = RegionSpec(width_inset=300, height_inset=300)
        a3 = Page(width=1191, height=842)
        assert resolve_region(a3, spec) == Rectangle(891, 0, 1191, 300)


# ═══════════════════════════════════════════════════════════════════════════════
# FULL CONTAINMENT
# ═══════════════════════════════════════════════════════════════════════════════

class TestFullContainment:
    """Default rule: the whole token box must be inside the region."""

    def test_inside_token_is_kept_outside_token_is_dropped(self, a4ish_page):
        texts = [t.text for t in extract(a4ish_page, BR_150)]
        assert "TITLE" in texts
        assert "NOTES" not in texts

    def test_straddling_token_is_excluded(self, a4ish_page):
        # OVERHANG runs past the page's right edge; DWG-001 starts left of the region.
        texts = [t.text for t in extract(a4ish_page, BR_150)]
        assert "OVERHANG" not in texts
        assert "DWG-001" not in texts

    def test_token_on_region_edge_is_kept(self):
        page = Page(width=600, height=800, tokens=(tok("EDGE", 450, 0, 600, 150),))
        assert [t.text for t in extract(page, BR_150)] == ["EDGE"]

    def test_full_page_inset_selects_everything_on_page(self, a4ish_page):
        spec = RegionSpec(width_inset=600, height_inset=800)
        texts = [t.text for t in extract(a4ish_page, spec)]
        assert texts == ["TITLE", "NOTES", "DWG-001", "HEADER", "REV-B"]

    def test_exact_result(self, a4ish_page):
        assert [t.text for t in extract(a4ish_page, BR_150)] == ["TITLE", "REV-B"]


# ═══════════════════════════════════════════════════════════════════════════════
# CORNER CONTAINMENT
# ═══════════════════════════════════════════════════════════════════════════════

class TestCornerContainment:
    """Earlier rule: only the token's bottom-left corner must be inside."""

    def test_straddling_token_is_kept(self, a4ish_page):
        spec = RegionSpec(width_inset=150, height_inset=150, containment=Containment.CORNER)
        texts = [t.text for t in extract(a4ish_page, spec)]
        assert texts == ["TITLE", "OVERHANG", "REV-B"]

    def test_rules_differ_only_at_boundaries(self, a4ish_page):
        full = {t.text for t in extract(a4ish_page, BR_150)}
        corner_spec = RegionSpec(width_inset=150, height_inset=150, containment=Containment.CORNER)
        corner = {t.text for t in extract(a4ish_page, corner_spec)}
        assert full <= corner
        assert corner - full == {"OVERHANG"}


# ═══════════════════════════════════════════════════════════════════════════════
# ORDER, PURITY, ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class TestExtractContract:

    def test_preserves_page_order(self):
        page = Page(
            width=600,
            height=800,
            tokens=(tok("C", 560, 10, 570, 20), tok("A", 460, 10, 470, 20), tok("B", 500, 100, 510, 110)),
        )
        assert [t.text for t in extract(page, BR_150)] == ["C", "A", "B"]

    def test_repeat_calls_are_identical(self, a4ish_page):
        first = extract(a4ish_page, BR_150)
        second = extract(a4ish_page, BR_150)
        assert first == second
        assert a4ish_page.tokens[0].text == "TITLE"

    @pytest.mark.parametrize("width,height", [(0, 800), (600, 0), (-1, 800), (0, 0)])
    def test_non_positive_geometry_raises(self, width, height):
        page = Page(width=width, height=height, tokens=(tok("X", 0, 0, 1, 1),))
        with pytest.raises(InvalidArgument):
            extract(page, BR_150)

    def test_invalid_argument_is_a_value_error(self):
        with pytest.raises(ValueError):
            extract(Page(width=0, height=10), BR_150)

    def test_empty_page(self):
        assert extract(Page(width=600, height=800), BR_150) == []

    def test_extractor_wrapper(self, a4ish_page):
        extractor = PageRegionTextExtractor(spec=BR_150)
        assert extractor.region_for(a4ish_page) == Rectangle(450, 0, 600, 150)
        assert [t.text for t in extractor.extract(a4ish_page)] == ["TITLE", "REV-B"]


class TestModel:

    def test_inverted_rectangle_rejected(self):
        with pytest.raises(InvalidArgument):
            Rectangle(left=10, bottom=0, right=5, top=10)
        with pytest.raises(InvalidArgument):
            Rectangle(left=0, bottom=10, right=5, top=0)

    def test_region_spec_from_dict(self):
        spec = RegionSpec.from_dict({"corner": "top_left", "width_inset": 120, "containment": "corner"})
        assert spec.corner == Corner.TOP_LEFT
        assert spec.width_inset == 120.0
        assert spec.height_inset == 300.0
        assert spec.containment == Containment.CORNER
        assert RegionSpec.from_dict(spec.to_dict()) == spec

    def test_region_spec_rejects_unknown_corner(self):
        with pytest.raises(InvalidArgument):
            RegionSpec.from_dict({"corner": "middle"})
