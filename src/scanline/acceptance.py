from typing import Optional

from .geometry import Rect, Resolution


def is_on_scan_line(
    screen: Optional[Resolution],
    viewfinder: Optional[Rect],
    preview: Optional[Resolution],
    detection: Optional[Rect],
    mid_y: int,
) -> bool:
    """
    Decide whether a screen-space detection sits on the laser line.

    The detection must lie fully inside the viewfinder and contain the
    point one unit right of its left edge at the laser line's y. Any
    missing input means the camera or display is not ready yet and the
    detection is rejected.
    """
    if screen is None or viewfinder is None or preview is None or detection is None:
        return False
    return viewfinder.contains_rect(detection) and detection.contains_point(
        detection.left + 1, mid_y
    )
