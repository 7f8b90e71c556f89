"""Camera capture source feeding barcode detections into a scan session."""

import logging
import threading
import time
from typing import Callable, List, Optional

import cv2

from .config import CameraConfig
from .geometry import Resolution
from .session import DetectionEvent

logger = logging.getLogger(__name__)


def open_camera(
    index: int, preferred_width: int, preferred_height: int, fps: float = 15.0
) -> cv2.VideoCapture:
    """
    Open and configure a camera device for barcode scanning.

    Args:
        index: Camera device index (0 for default webcam)
        preferred_width: Requested preview width (0 = auto-select max)
        preferred_height: Requested preview height (0 = auto-select max)
        fps: Requested frame rate

    Returns:
        Configured VideoCapture object ready for threaded reading

    Note:
        The driver may negotiate a different size; read the actual preview
        size back from the capture rather than trusting the request.
    """
    cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open camera index {index}")

    # MJPG unlocks full frame rate at high resolution on USB 2.0 webcams.
    cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))

    if preferred_width and preferred_height:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, preferred_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, preferred_height)
    else:
        # Ask for a very large size so the driver picks the highest available.
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, 10000)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 10000)

    cap.set(cv2.CAP_PROP_FPS, fps)
    cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
    return cap


class _LatestFrame:
    """Thread-safe storage for latest captured frame with version tracking."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame = None
        self._version = 0

    def update(self, frame) -> None:
        with self._lock:
            self._frame = frame
            self._version += 1

    def snapshot(self):
        with self._lock:
            return self._frame, self._version


class _LatestDetections:
    """Thread-safe storage for the detections of the most recent frame."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._detections: List[DetectionEvent] = []

    def update(self, detections: List[DetectionEvent]) -> None:
        with self._lock:
            self._detections = detections

    def snapshot(self) -> List[DetectionEvent]:
        with self._lock:
            return list(self._detections)


class CameraSource:
    """
    OpenCV camera plus detector, started and stopped by the session.

    A capture thread keeps the newest frame; a detection thread decodes
    each new frame and pushes every candidate to on_detection. stop() keeps
    the source reusable, release() frees it for good.
    """

    def __init__(
        self,
        config: CameraConfig,
        detector,
        on_detection: Callable[[DetectionEvent], bool],
        opener: Callable[..., cv2.VideoCapture] = open_camera,
    ):
        self.config = config
        self.detector = detector
        self._on_detection = on_detection
        self._opener = opener
        self._cap: Optional[cv2.VideoCapture] = None
        self._preview: Optional[Resolution] = None
        self._latest = _LatestFrame()
        self._detections = _LatestDetections()
        self._stop: Optional[threading.Event] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._detection_thread: Optional[threading.Thread] = None
        self._released = False

    @property
    def preview_size(self) -> Optional[Resolution]:
        return self._preview

    @property
    def running(self) -> bool:
        return self._stop is not None and not self._stop.is_set()

    def latest_frame(self):
        frame, _ = self._latest.snapshot()
        return frame

    def frame_snapshot(self):
        """Latest frame and its version; the version changes with every frame."""
        return self._latest.snapshot()

    def latest_detections(self) -> List[DetectionEvent]:
        return self._detections.snapshot()

    def start(self) -> None:
        if self._released:
            raise RuntimeError("Camera source already released")
        if self.running:
            return
        cap = self._opener(
            self.config.index,
            self.config.preview_width,
            self.config.preview_height,
            self.config.fps,
        )
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            cap.release()
            raise RuntimeError(
                f"Camera {self.config.index} reported preview size {width}x{height}"
            )
        self._cap = cap
        self._preview = Resolution(width, height)
        # Frames captured before a stop must never reach the new detection thread.
        self._latest = _LatestFrame()
        self._detections = _LatestDetections()
        self._stop = threading.Event()
        self._capture_thread = self._start_capture_thread(cap, self._latest, self._stop)
        self._detection_thread = self._start_detection_thread(
            self._latest, self._detections, self._stop
        )
        logger.info(
            "Camera %d started at %dx%d", self.config.index, width, height
        )

    def stop(self) -> None:
        if self._stop is None:
            return
        self._stop.set()
        # The detection thread may be waiting on the session lock held by our
        # caller; it exits on its own once the stop flag is seen.
        if self._capture_thread is not None:
            self._capture_thread.join(timeout=1.0)
        self._capture_thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def release(self) -> None:
        """Stop for good and wait for the detection thread to finish.

        Must not be called while holding the lock on_detection takes.
        """
        self.stop()
        self._released = True
        thread = self._detection_thread
        self._detection_thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _start_capture_thread(
        self, cap, latest: _LatestFrame, stop: threading.Event
    ) -> threading.Thread:
        mirror = self.config.mirror

        def run() -> None:
            while not stop.is_set():
                ok, frame = cap.read()
                if not ok:
                    time.sleep(0.01)
                    continue
                if mirror:
                    frame = cv2.flip(frame, 1)
                latest.update(frame)

        thread = threading.Thread(target=run, name="scanline-capture", daemon=True)
        thread.start()
        return thread

    def _start_detection_thread(
        self, latest: _LatestFrame, out: _LatestDetections, stop: threading.Event
    ) -> threading.Thread:
        def run() -> None:
            last_seen = -1
            while not stop.is_set():
                frame, version = latest.snapshot()
                if frame is None or version == last_seen:
                    time.sleep(0.005)
                    continue
                last_seen = version
                try:
                    events = self.detector.detect(frame)
                except Exception:
                    logger.exception("Barcode detection failed; skipping frame")
                    continue
                out.update(events)
                for event in events:
                    if stop.is_set():
                        return
                    if self._on_detection(event):
                        return

        thread = threading.Thread(target=run, name="scanline-detect", daemon=True)
        thread.start()
        return thread
