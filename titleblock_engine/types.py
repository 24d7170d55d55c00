from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import InvalidArgument


class Corner(str, Enum):
    BOTTOM_RIGHT = "bottom_right"
    BOTTOM_LEFT = "bottom_left"
    TOP_RIGHT = "top_right"
    TOP_LEFT = "top_left"


class Containment(str, Enum):
    FULL = "full"  # whole token box inside the region
    CORNER = "corner"  # token's bottom-left corner inside the region


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box in PDF points, origin bottom-left, y up."""

    left: float
    bottom: float
    right: float
    top: float

    def __post_init__(self) -> None:
        if self.left > self.right or self.bottom > self.top:
            raise InvalidArgument(
                f"inverted rectangle: left={self.left} bottom={self.bottom} right={self.right} top={self.top}"
            )

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.top - self.bottom

    def contains(self, other: Rectangle) -> bool:
        return (
            other.left >= self.left
            and other.bottom >= self.bottom
            and other.right <= self.right
            and other.top <= self.top
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.bottom <= y <= self.top

    def to_list(self) -> list[float]:
        return [self.left, self.bottom, self.right, self.top]


@dataclass(frozen=True)
class Token:
    text: str
    bbox: Rectangle

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "bbox": self.bbox.to_list()}


@dataclass(frozen=True)
class Page:
    width: float
    height: float
    tokens: tuple[Token, ...] = ()
    page_index: int = 0  # 0-based
    source_ref: str = ""  # e.g. part.pdf#page=2


@dataclass(frozen=True)
class RegionSpec:
    corner: Corner = Corner.BOTTOM_RIGHT
    width_inset: float = 300.0
    height_inset: float = 300.0
    containment: Containment = Containment.FULL

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegionSpec:
        default = cls()
        try:
            corner = Corner(str(data.get("corner", default.corner.value)))
            containment = Containment(str(data.get("containment", default.containment.value)))
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
        return cls(
            corner=corner,
            width_inset=float(data.get("width_inset", default.width_inset)),
            height_inset=float(data.get("height_inset", default.height_inset)),
            containment=containment,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "corner": self.corner.value,
            "width_inset": self.width_inset,
            "height_inset": self.height_inset,
            "containment": self.containment.value,
        }
