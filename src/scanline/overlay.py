"""
OpenCV viewfinder window for the scanner.

Shows the camera feed stretched to the screen resolution with overlays:
- Darkened mask outside the viewfinder rectangle
- Pulsing red laser line across the viewfinder's vertical middle
- Mapped detection boxes (green when on the laser line, grey otherwise)

Controls:
- Press 'q' or Esc to cancel the scan
"""

from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from .framing import ViewfinderGeometry
from .geometry import Rect

SCANNER_ALPHA = (0, 64, 128, 192, 255, 192, 128, 64)
MASK_OPACITY = 0.6
LASER_COLOR = (0, 0, 255)


def _clip(lo: int, hi: int, limit: int) -> Tuple[int, int]:
    return max(0, min(lo, limit)), max(0, min(hi, limit))


def _blend(region: np.ndarray, color, opacity: float) -> None:
    if region.size == 0 or opacity <= 0:
        return
    tint = np.asarray(color, dtype=np.float32)
    region[...] = (region * (1.0 - opacity) + tint * opacity).astype(region.dtype)


def draw_overlay(frame: np.ndarray, geometry: ViewfinderGeometry, tick: int = 0) -> np.ndarray:
    """Draw the viewfinder mask and laser line onto frame in place."""
    height, width = frame.shape[:2]
    rect = geometry.rect

    # The viewfinder interior includes its right and bottom edge pixels.
    y1, y2 = _clip(rect.top, rect.bottom + 1, height)
    x1, x2 = _clip(rect.left, rect.right + 1, width)
    outside = np.ones((height, width), dtype=bool)
    outside[y1:y2, x1:x2] = False
    if outside.any():
        frame[outside] = (frame[outside] * (1.0 - MASK_OPACITY)).astype(frame.dtype)

    alpha = SCANNER_ALPHA[tick % len(SCANNER_ALPHA)]
    ly1, ly2 = _clip(geometry.mid_y - 1, geometry.mid_y + 2, height)
    lx1, lx2 = _clip(rect.left + 2, rect.right - 1, width)
    if ly2 > ly1 and lx2 > lx1:
        _blend(frame[ly1:ly2, lx1:lx2], LASER_COLOR, alpha / 255.0)
    return frame


class ScannerWindow:
    """Interactive viewfinder window. render() returns False once the user quits."""

    def __init__(self, window_name: str = "scanline"):
        self.window_name = window_name
        self.accepted_color = (57, 255, 20)
        self.candidate_color = (160, 160, 160)
        self._tick = 0
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)

    def render(
        self,
        frame: np.ndarray,
        geometry: ViewfinderGeometry,
        detections: Iterable[Tuple[Rect, bool]] = (),
        status: Optional[str] = None,
    ) -> bool:
        """
        Render frame with overlays and display in window.

        Args:
            frame: Camera frame already resized to the screen resolution
            geometry: Viewfinder geometry for that resolution
            detections: Screen-space rectangles and whether each was accepted
            status: Optional line of text drawn in the top-left corner

        Returns:
            True to continue, False if user quit
        """
        draw_overlay(frame, geometry, self._tick)
        self._tick += 1
        for rect, accepted in detections:
            color = self.accepted_color if accepted else self.candidate_color
            cv2.rectangle(
                frame, (rect.left, rect.top), (rect.right, rect.bottom), color, 3
            )
        if status:
            cv2.putText(
                frame,
                status,
                (10, 32),
                cv2.FONT_HERSHEY_SIMPLEX,
                1,
                self.accepted_color,
                2,
                cv2.LINE_AA,
            )
        try:
            if cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) < 0:
                return False
            cv2.imshow(self.window_name, frame)
            return self._handle_key()
        except cv2.error:
            return True

    def process_events(self) -> bool:
        """Poll keyboard events without rendering a frame."""
        try:
            return self._handle_key()
        except cv2.error:
            return True

    def close(self) -> None:
        cv2.destroyWindow(self.window_name)

    def _handle_key(self) -> bool:
        key = cv2.waitKey(1) & 0xFF
        return key not in (ord("q"), 27)
