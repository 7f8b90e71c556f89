import pytest

from scanline.framing import (
    FramingBounds,
    ViewfinderGeometry,
    compute_framing_rect,
    desired_dimension,
)
from scanline.geometry import Rect, Resolution


@pytest.mark.parametrize(
    "resolution,hard_min,hard_max,expected",
    [
        (1920, 240, 1200, 1200),
        (1080, 240, 675, 675),
        (1000, 240, 675, 625),
        (300, 240, 1200, 240),
        (4000, 240, 1200, 1200),
    ],
)
def test_desired_dimension_targets_five_eighths(resolution, hard_min, hard_max, expected):
    assert desired_dimension(resolution, hard_min, hard_max) == expected


def test_full_hd_screen_hits_both_maximums():
    rect = compute_framing_rect(Resolution(1920, 1080))
    assert rect == Rect(360, 202, 1560, 877)
    assert rect.width == 1200
    assert rect.height == 675


def test_square_screen_is_centered():
    geometry = ViewfinderGeometry.for_screen(Resolution(1000, 1000))
    assert geometry.rect == Rect(187, 187, 812, 812)
    assert geometry.mid_y == 499


def test_dimensions_stay_within_bounds_and_centered():
    for width in range(240, 4000, 37):
        for height in range(240, 3000, 53):
            rect = compute_framing_rect(Resolution(width, height))
            assert 240 <= rect.width <= 1200
            assert 240 <= rect.height <= 675
            assert 0 <= (width - rect.right) - rect.left <= 1
            assert 0 <= (height - rect.bottom) - rect.top <= 1


def test_small_screen_is_not_clamped_to_screen():
    rect = compute_framing_rect(Resolution(100, 101))
    # Offsets truncate toward zero: (101 - 240) / 2 -> -69
    assert rect == Rect(-70, -69, 170, 171)


def test_custom_bounds():
    bounds = FramingBounds(min_width=100, min_height=100, max_width=400, max_height=300)
    rect = compute_framing_rect(Resolution(1920, 1080), bounds)
    assert (rect.width, rect.height) == (400, 300)
    assert rect.left == 760
    assert rect.top == 390
