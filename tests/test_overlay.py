import numpy as np

from scanline.framing import ViewfinderGeometry
from scanline.geometry import Rect
from scanline.overlay import draw_overlay

GEOMETRY = ViewfinderGeometry(rect=Rect(50, 20, 150, 80), mid_y=50)


def _frame():
    return np.full((100, 200, 3), 200, dtype=np.uint8)


def test_mask_darkens_outside_only():
    frame = draw_overlay(_frame(), GEOMETRY, tick=0)
    assert frame[0, 0].tolist() == [80, 80, 80]
    assert frame[30, 100].tolist() == [200, 200, 200]
    # Right and bottom edge pixels belong to the viewfinder.
    assert frame[80, 150].tolist() == [200, 200, 200]
    assert frame[81, 151].tolist() == [80, 80, 80]


def test_laser_alpha_follows_tick():
    faded = draw_overlay(_frame(), GEOMETRY, tick=0)
    assert faded[50, 100].tolist() == [200, 200, 200]

    bright = draw_overlay(_frame(), GEOMETRY, tick=4)
    assert bright[50, 100].tolist() == [0, 0, 255]
    assert bright[49, 100].tolist() == [0, 0, 255]
    assert bright[52, 100].tolist() == [200, 200, 200]
    # The line starts two pixels inside the left edge.
    assert bright[50, 51].tolist() == [200, 200, 200]


def test_viewfinder_larger_than_frame():
    geometry = ViewfinderGeometry(rect=Rect(-70, -70, 170, 170), mid_y=50)
    frame = draw_overlay(np.full((100, 100, 3), 200, np.uint8), geometry, tick=4)
    assert frame[0, 0].tolist() == [200, 200, 200]
    assert frame[50, 10].tolist() == [0, 0, 255]
