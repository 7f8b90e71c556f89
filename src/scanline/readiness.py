"""
Capture readiness tracking with one-shot start.

Camera capture may only begin once three independent preconditions hold:
the display surface exists, a start was requested by the lifecycle, and a
capture source has been constructed. The start is edge-triggered: a
successful start consumes the request, so repeated readiness checks never
start the source twice.
"""

import enum
import logging
import threading
from typing import Optional, Protocol

from .errors import CaptureStartFailure
from .geometry import Resolution

logger = logging.getLogger(__name__)


class CaptureSource(Protocol):
    """Camera plus detector pipeline driven by the readiness machine."""

    @property
    def preview_size(self) -> Optional[Resolution]: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def release(self) -> None: ...


class CaptureState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class CaptureReadiness:
    """
    Tracks the three readiness flags and starts the source when all are set.

    Timing behavior:
    - surface_created / surface_destroyed: display surface lifecycle
    - request_start: lifecycle resume; cleared again by a successful start
    - attach_source: source built after permission was granted

    A start failure releases and drops the source, so source_constructed
    reads False until a new source is attached. Nothing is retried
    automatically.
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self._lock = lock if lock is not None else threading.RLock()
        self.surface_available = False
        self.start_requested = False
        self.state = CaptureState.IDLE
        self.last_error: Optional[CaptureStartFailure] = None
        self._source: Optional[CaptureSource] = None

    @property
    def source(self) -> Optional[CaptureSource]:
        with self._lock:
            return self._source

    @property
    def source_constructed(self) -> bool:
        with self._lock:
            return self._source is not None

    def surface_created(self) -> None:
        with self._lock:
            self.surface_available = True
            self._start_if_ready()

    def surface_destroyed(self) -> None:
        with self._lock:
            self.surface_available = False

    def request_start(self) -> None:
        with self._lock:
            self.start_requested = True
            self._start_if_ready()

    def attach_source(self, source: CaptureSource) -> None:
        with self._lock:
            if self._source is not None and self._source is not source:
                self._source.release()
                self.state = CaptureState.IDLE
            self._source = source
            self._start_if_ready()

    def stop(self) -> None:
        """Stop capture but keep the source for the next resume."""
        with self._lock:
            if self._source is not None:
                self._source.stop()
            self.state = CaptureState.IDLE

    def release(self) -> None:
        """Release the source unconditionally, outside the lock."""
        with self._lock:
            source = self._source
            self._source = None
            self.state = CaptureState.IDLE
        if source is not None:
            source.release()

    def _start_if_ready(self) -> None:
        if not (
            self.start_requested
            and self.surface_available
            and self._source is not None
        ):
            return
        if self.state is CaptureState.ACTIVE:
            self.start_requested = False
            return
        source = self._source
        try:
            source.start()
        except Exception as exc:
            self._source = None
            self.last_error = CaptureStartFailure(str(exc) or type(exc).__name__)
            self.last_error.__cause__ = exc
            logger.exception("Failed to start capture source")
            try:
                source.release()
            except Exception:
                logger.exception("Failed to release capture source after start failure")
            return
        self.start_requested = False
        self.last_error = None
        self.state = CaptureState.ACTIVE
        logger.info("Capture started")
