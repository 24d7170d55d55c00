"""Corner-region token filter.

The title block of a drawing sits in a fixed corner of the sheet, so the
region is derived from each page's own size rather than stored absolute.

Two containment rules are supported because both were used in practice:

- ``full``: the whole token box must be inside the region (default).
- ``corner``: only the token's bottom-left corner must be inside. This keeps
  tokens that run past the region's right or top edge.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidArgument
from .types import Containment, Corner, Page, Rectangle, RegionSpec, Token
from .utils import clamp


def resolve_region(page: Page, spec: RegionSpec) -> Rectangle:
    if page.width <= 0 or page.height <= 0:
        raise InvalidArgument(f"page geometry must be positive: width={page.width} height={page.height}")

    w, h = float(page.width), float(page.height)
    wi = clamp(float(spec.width_inset), 0.0, w)
    hi = clamp(float(spec.height_inset), 0.0, h)

    if spec.corner == Corner.BOTTOM_RIGHT:
        return Rectangle(left=w - wi, bottom=0.0, right=w, top=hi)
    if spec.corner == Corner.BOTTOM_LEFT:
        return Rectangle(left=0.0, bottom=0.0, right=wi, top=hi)
    if spec.corner == Corner.TOP_RIGHT:
        return Rectangle(left=w - wi, bottom=h - hi, right=w, top=h)
    if spec.corner == Corner.TOP_LEFT:
        return Rectangle(left=0.0, bottom=h - hi, right=wi, top=h)
    raise InvalidArgument(f"unknown corner: {spec.corner}")


def extract(page: Page, spec: RegionSpec) -> list[Token]:
    """Return the page tokens inside the corner region described by spec, in page order."""
    region = resolve_region(page, spec)
    if spec.containment == Containment.CORNER:
        return [t for t in page.tokens if region.contains_point(t.bbox.left, t.bbox.bottom)]
    return [t for t in page.tokens if region.contains(t.bbox)]


@dataclass(frozen=True)
class PageRegionTextExtractor:
    spec: RegionSpec

    def region_for(self, page: Page) -> Rectangle:
        return resolve_region(page, self.spec)

    def extract(self, page: Page) -> list[Token]:
        return extract(page, self.spec)
