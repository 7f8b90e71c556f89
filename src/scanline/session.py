"""
One barcode scanning session.

The session owns the viewfinder geometry, the capture readiness flags and
the result channel. Lifecycle events (permission, surface, resume, pause)
are pushed in through plain methods; detection events may arrive from any
thread. Every state change happens under the session lock so that at most
one result is ever delivered.
"""

import enum
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

from .acceptance import is_on_scan_line
from .errors import CapabilityMissing, PermissionDenied, ScanCancelled
from .framing import FramingBounds, ViewfinderGeometry
from .geometry import InvalidInput, Rect, Resolution
from .mapping import map_to_screen
from .readiness import CaptureReadiness, CaptureSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionEvent:
    """One candidate barcode: preview-space bounds and decoded text."""

    rect: Rect
    text: str


class ScanStatus(enum.Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    PERMISSION_DENIED = "permission_denied"
    CAPABILITY_MISSING = "capability_missing"


@dataclass(frozen=True)
class ScanOutcome:
    status: ScanStatus
    payload: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ScanStatus.SUCCESS

    def raise_for_status(self) -> str:
        """Return the payload, or raise the error matching the outcome."""
        if self.status is ScanStatus.SUCCESS:
            return self.payload
        if self.status is ScanStatus.PERMISSION_DENIED:
            raise PermissionDenied(self.reason or "Camera permission denied")
        if self.status is ScanStatus.CAPABILITY_MISSING:
            raise CapabilityMissing(self.reason or "Scanning is not available")
        raise ScanCancelled(self.reason or "Scan cancelled")


SourceFactory = Callable[[Callable[[DetectionEvent], bool]], CaptureSource]


class ScanSession:
    def __init__(
        self,
        source_factory: SourceFactory,
        permission_check: Optional[Callable[[], bool]] = None,
        bounds: FramingBounds = FramingBounds(),
        has_camera: bool = True,
    ):
        self._source_factory = source_factory
        self._permission_check = permission_check
        self._bounds = bounds
        self._has_camera = has_camera
        self._lock = threading.RLock()
        self.readiness = CaptureReadiness(lock=self._lock)
        self._screen: Optional[Resolution] = None
        self._geometry: Optional[ViewfinderGeometry] = None
        self._permission_granted = False
        self._closed = False
        self._result: Future = Future()

    @property
    def geometry(self) -> Optional[ViewfinderGeometry]:
        with self._lock:
            return self._geometry

    @property
    def screen_resolution(self) -> Optional[Resolution]:
        with self._lock:
            return self._screen

    @property
    def delivered(self) -> bool:
        return self._result.done()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def set_screen_resolution(self, screen: Resolution) -> ViewfinderGeometry:
        """Record the display size; the viewfinder is computed only once."""
        with self._lock:
            if self._geometry is None:
                self._screen = screen
                self._geometry = ViewfinderGeometry.for_screen(screen, self._bounds)
                logger.debug(
                    "Viewfinder %s mid_y=%d for screen %dx%d",
                    self._geometry.rect.as_tuple(),
                    self._geometry.mid_y,
                    screen.width,
                    screen.height,
                )
            return self._geometry

    # Lifecycle

    def create(self) -> None:
        if not self._has_camera:
            self._finish(
                ScanOutcome(ScanStatus.CAPABILITY_MISSING, reason="Device has no camera")
            )
            return
        self._check_permission()

    def permission_result(self, granted: bool) -> None:
        with self._lock:
            if self._closed or self.delivered:
                return
            if not granted:
                self._permission_granted = False
                self._finish(
                    ScanOutcome(
                        ScanStatus.PERMISSION_DENIED, reason="Camera permission denied"
                    )
                )
                return
            self._permission_granted = True
            try:
                source = self._source_factory(self.on_detection)
            except CapabilityMissing as exc:
                logger.error("Scanner unavailable: %s", exc)
                self._finish(ScanOutcome(ScanStatus.CAPABILITY_MISSING, reason=str(exc)))
                return
            self.readiness.attach_source(source)

    def resume(self) -> None:
        with self._lock:
            if self._closed or self.delivered:
                return
            if self._permission_granted and not self.readiness.source_constructed:
                self._check_permission()
                if self._closed or self.delivered:
                    return
            self.readiness.request_start()

    def pause(self) -> None:
        self.readiness.stop()

    def surface_created(self) -> None:
        self.readiness.surface_created()

    def surface_destroyed(self) -> None:
        self.readiness.surface_destroyed()

    def cancel(self, reason: str = "Scan cancelled") -> None:
        self._finish(ScanOutcome(ScanStatus.CANCELLED, reason=reason))

    def close(self) -> None:
        """Tear the session down; no result is delivered afterwards."""
        with self._lock:
            self._closed = True
        # Released without the session lock so capture threads blocked in
        # on_detection can finish.
        self.readiness.release()
        self._finish(ScanOutcome(ScanStatus.CANCELLED, reason="Session closed"))

    # Detection

    def on_detection(self, event: DetectionEvent) -> bool:
        """Deliver the event's payload if it lies on the laser line."""
        with self._lock:
            if self._closed or self.delivered:
                return False
            source = self.readiness.source
            preview = source.preview_size if source is not None else None
            if self._screen is None or preview is None or self._geometry is None:
                return False
            try:
                mapped = map_to_screen(self._screen, preview, event.rect)
            except InvalidInput as exc:
                logger.debug("Skipping detection: %s", exc)
                return False
            if not is_on_scan_line(
                self._screen, self._geometry.rect, preview, mapped, self._geometry.mid_y
            ):
                return False
            logger.info("Accepted barcode %r", event.text)
            return self._finish(ScanOutcome(ScanStatus.SUCCESS, payload=event.text))

    def result(self, timeout: Optional[float] = None) -> ScanOutcome:
        return self._result.result(timeout=timeout)

    def add_done_callback(self, fn: Callable[[ScanOutcome], None]) -> None:
        self._result.add_done_callback(lambda fut: fn(fut.result()))

    def _check_permission(self) -> None:
        if self._permission_check is None:
            return
        self.permission_result(bool(self._permission_check()))

    def _finish(self, outcome: ScanOutcome) -> bool:
        with self._lock:
            if self._result.done():
                return False
            self._result.set_result(outcome)
            return True
