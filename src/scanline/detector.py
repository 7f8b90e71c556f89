import math
from typing import Iterable, List, Sequence, Tuple

import cv2
import numpy as np

from .errors import CapabilityMissing
from .geometry import Rect
from .session import DetectionEvent

BACKENDS = ("opencv", "opencv_qr", "pyzbar", "zxingcpp")


def bounding_rect(points: Iterable[Tuple[float, float]]) -> Rect:
    """Smallest integer rectangle enclosing a detected quadrilateral."""
    pts = list(points)
    if not pts:
        raise ValueError("Cannot bound an empty point list")
    xs = [float(x) for x, _ in pts]
    ys = [float(y) for _, y in pts]
    return Rect(
        math.floor(min(xs)),
        math.floor(min(ys)),
        math.ceil(max(xs)),
        math.ceil(max(ys)),
    )


class BarcodeDetector:
    """
    Thin wrapper over the available barcode libraries.

    Raises:
        CapabilityMissing: if the backend's library cannot be loaded
        ValueError: for an unknown backend name
    """

    def __init__(self, backend: str = "opencv"):
        if backend not in BACKENDS:
            raise ValueError(
                f"Unknown detector backend {backend!r}; expected one of {BACKENDS}"
            )
        self.backend = backend
        self._opencv = None
        self._pyzbar = None
        self._zxingcpp = None

        if backend == "pyzbar":
            try:
                from pyzbar import pyzbar  # type: ignore
            except ImportError as exc:
                raise CapabilityMissing(
                    "pyzbar is not installed; install it or use backend=opencv"
                ) from exc
            self._pyzbar = pyzbar
        elif backend == "zxingcpp":
            try:
                import zxingcpp  # type: ignore
            except ImportError as exc:
                raise CapabilityMissing(
                    "zxing-cpp is not installed; pip install zxing-cpp"
                ) from exc
            self._zxingcpp = zxingcpp
        elif backend == "opencv_qr":
            self._opencv = cv2.QRCodeDetector()
        else:
            barcode = getattr(cv2, "barcode", None)
            if barcode is None or not hasattr(barcode, "BarcodeDetector"):
                raise CapabilityMissing(
                    "This OpenCV build has no barcode module; use opencv-python>=4.8"
                )
            self._opencv = barcode.BarcodeDetector()

    def detect(self, frame) -> List[DetectionEvent]:
        if self.backend == "pyzbar":
            return _detect_pyzbar(frame, self._pyzbar)
        if self.backend == "zxingcpp":
            return _detect_zxingcpp(frame, self._zxingcpp)
        return _detect_opencv(frame, self._opencv)


def _is_quad_array(value) -> bool:
    return isinstance(value, np.ndarray) and value.ndim == 3 and value.shape[-1] == 2


def _events_from_quads(texts: Sequence[str], quads) -> List[DetectionEvent]:
    events: List[DetectionEvent] = []
    for text, quad in zip(texts, quads):
        if not text:
            continue
        events.append(
            DetectionEvent(
                rect=bounding_rect((float(x), float(y)) for x, y in quad),
                text=text,
            )
        )
    return events


def _detect_opencv(frame, detector) -> List[DetectionEvent]:
    try:
        result = detector.detectAndDecodeMulti(frame)
    except cv2.error:
        return []
    # QRCodeDetector and OpenCV >= 4.8 barcode: (ok, texts, points, extra);
    # older barcode builds: (ok, texts, types, points).
    ok, decoded_info = result[0], result[1]
    points = next((item for item in result[2:] if _is_quad_array(item)), None)
    if not ok or not decoded_info or points is None:
        return []
    return _events_from_quads(decoded_info, points)


def _detect_pyzbar(frame, pyzbar) -> List[DetectionEvent]:
    events: List[DetectionEvent] = []
    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
    for obj in pyzbar.decode(gray):
        text = obj.data.decode("utf-8", errors="replace")
        if not text:
            continue
        points = obj.polygon or []
        if points:
            rect = bounding_rect((float(p.x), float(p.y)) for p in points)
        else:
            r = obj.rect
            rect = Rect(r.left, r.top, r.left + r.width, r.top + r.height)
        events.append(DetectionEvent(rect=rect, text=text))
    return events


def _detect_zxingcpp(frame, zxingcpp) -> List[DetectionEvent]:
    events: List[DetectionEvent] = []
    for result in zxingcpp.read_barcodes(frame):
        if not result.text:
            continue
        pos = result.position
        quad = [
            (float(pos.top_left.x), float(pos.top_left.y)),
            (float(pos.top_right.x), float(pos.top_right.y)),
            (float(pos.bottom_right.x), float(pos.bottom_right.y)),
            (float(pos.bottom_left.x), float(pos.bottom_left.y)),
        ]
        events.append(DetectionEvent(rect=bounding_rect(quad), text=result.text))
    return events
