"""
Integer geometry shared by the viewfinder, mapper and acceptance check.

Rectangles follow raster conventions: a point is inside when
left <= x < right and top <= y < bottom, while rectangle containment
compares edges inclusively. Empty rectangles contain nothing.
"""

from dataclasses import dataclass


class InvalidInput(ValueError):
    """Raised when a resolution cannot be used for coordinate mapping."""


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int


@dataclass(frozen=True)
class Rect:
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.left >= self.right or self.top >= self.bottom

    def contains_point(self, x: int, y: int) -> bool:
        return (
            not self.is_empty
            and self.left <= x < self.right
            and self.top <= y < self.bottom
        )

    def contains_rect(self, other: "Rect") -> bool:
        return (
            not self.is_empty
            and self.left <= other.left
            and self.top <= other.top
            and self.right >= other.right
            and self.bottom >= other.bottom
        )

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)
