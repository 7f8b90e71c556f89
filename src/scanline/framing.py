"""
Viewfinder sizing.

The viewfinder targets 5/8 of each screen dimension, clamped to hard
bounds so the user holds the device far enough away for the image to
be in focus, and is centered on the screen.
"""

from dataclasses import dataclass

from .geometry import Rect, Resolution


@dataclass(frozen=True)
class FramingBounds:
    min_width: int = 240
    min_height: int = 240
    max_width: int = 1200  # 5/8 * 1920
    max_height: int = 675  # 5/8 * 1080


def desired_dimension(resolution: int, hard_min: int, hard_max: int) -> int:
    dim = 5 * resolution // 8
    if dim < hard_min:
        return hard_min
    if dim > hard_max:
        return hard_max
    return dim


def _centered_offset(resolution: int, dim: int) -> int:
    # Truncates toward zero; the offset goes negative on screens smaller
    # than the minimum bounds.
    return int((resolution - dim) / 2)


def compute_framing_rect(
    screen: Resolution, bounds: FramingBounds = FramingBounds()
) -> Rect:
    width = desired_dimension(screen.width, bounds.min_width, bounds.max_width)
    height = desired_dimension(screen.height, bounds.min_height, bounds.max_height)
    left = _centered_offset(screen.width, width)
    top = _centered_offset(screen.height, height)
    return Rect(left, top, left + width, top + height)


@dataclass(frozen=True)
class ViewfinderGeometry:
    """Viewfinder rectangle in screen space and the y of its laser line."""

    rect: Rect
    mid_y: int

    @classmethod
    def for_screen(
        cls, screen: Resolution, bounds: FramingBounds = FramingBounds()
    ) -> "ViewfinderGeometry":
        rect = compute_framing_rect(screen, bounds)
        return cls(rect=rect, mid_y=rect.height // 2 + rect.top)
