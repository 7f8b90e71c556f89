"""
scanline - scan one barcode by aligning it on the viewfinder's laser line.

Main application orchestrating:
- Threaded camera capture and barcode detection (CameraSource)
- One ScanSession gating detections through the viewfinder geometry
- Optional OpenCV viewfinder window

Architecture:
    Capture Thread → Detection Thread → ScanSession → result
         ↓                ↓
    Latest Frame    Latest Detections → Main Thread (window)
"""

import argparse
import logging
import time
from typing import List, Tuple

import cv2

from .acceptance import is_on_scan_line
from .camera import CameraSource
from .config import ScannerConfig, load_config
from .detector import BarcodeDetector
from .geometry import InvalidInput, Rect, Resolution
from .mapping import map_to_screen
from .overlay import ScannerWindow
from .session import ScanSession, ScanStatus

logger = logging.getLogger(__name__)

EXIT_CODES = {
    ScanStatus.SUCCESS: 0,
    ScanStatus.CANCELLED: 1,
    ScanStatus.PERMISSION_DENIED: 2,
    ScanStatus.CAPABILITY_MISSING: 2,
}


def _camera_available(index: int) -> bool:
    cap = cv2.VideoCapture(index)
    try:
        return cap.isOpened()
    finally:
        cap.release()


def _screen_detections(
    session: ScanSession, source: CameraSource
) -> List[Tuple[Rect, bool]]:
    """Map the latest detections to screen space for display."""
    screen = session.screen_resolution
    geometry = session.geometry
    preview = source.preview_size
    if screen is None or geometry is None or preview is None:
        return []
    boxes = []
    for event in source.latest_detections():
        try:
            mapped = map_to_screen(screen, preview, event.rect)
        except InvalidInput:
            continue
        accepted = is_on_scan_line(screen, geometry.rect, preview, mapped, geometry.mid_y)
        boxes.append((mapped, accepted))
    return boxes


def _is_new_frame(frame, version: int, last_frame, last_version: int) -> bool:
    if frame is None:
        return False
    # Versions restart with every camera start; the held reference tells a
    # restarted stream apart.
    return version != last_version or frame is not last_frame


def _run_window(session: ScanSession, window: ScannerWindow, deadline) -> None:
    screen = session.screen_resolution
    geometry = session.geometry
    last_frame, last_version = None, -1
    while not session.delivered:
        if deadline is not None and time.monotonic() >= deadline:
            session.cancel("Timed out")
            return
        source = session.readiness.source
        if isinstance(source, CameraSource):
            frame, version = source.frame_snapshot()
        else:
            frame, version = None, -1
        if not _is_new_frame(frame, version, last_frame, last_version):
            if not window.process_events():
                session.cancel("User aborted")
                return
            time.sleep(0.005)
            continue
        last_frame, last_version = frame, version
        display = cv2.resize(frame, (screen.width, screen.height))
        keep_running = window.render(
            display,
            geometry,
            _screen_detections(session, source),
            status="Align the barcode on the red line",
        )
        if not keep_running:
            session.cancel("User aborted")
            return


def _run_headless(session: ScanSession, deadline) -> None:
    while not session.delivered:
        if deadline is not None and time.monotonic() >= deadline:
            session.cancel("Timed out")
            return
        time.sleep(0.05)


def main() -> int:
    """Main application entry point."""
    parser = argparse.ArgumentParser(description="Scan a single barcode from a camera")
    parser.add_argument("--config", help="Path to config TOML")
    parser.add_argument("--no-gui", action="store_true", help="Disable viewfinder window")
    parser.add_argument(
        "--timeout", type=float, default=None, help="Give up after this many seconds"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ScannerConfig.from_dict(load_config(args.config)) if args.config else ScannerConfig()

    def source_factory(on_detection):
        detector = BarcodeDetector(backend=config.backend)
        return CameraSource(config.camera, detector, on_detection)

    session = ScanSession(
        source_factory,
        # Desktop cameras have no runtime permission prompt.
        permission_check=lambda: True,
        bounds=config.bounds,
        has_camera=_camera_available(config.camera.index),
    )
    session.set_screen_resolution(
        Resolution(config.display.width, config.display.height)
    )

    show_gui = config.display.show_window and not args.no_gui
    window = None
    deadline = time.monotonic() + args.timeout if args.timeout else None
    try:
        session.create()
        if not session.delivered:
            window = ScannerWindow() if show_gui else None
            session.surface_created()
            session.resume()
            error = session.readiness.last_error
            if error is not None:
                logger.error("Camera did not start: %s", error)
                session.cancel(str(error))
            elif window:
                _run_window(session, window, deadline)
            else:
                _run_headless(session, deadline)
    except KeyboardInterrupt:
        session.cancel("Interrupted")
    finally:
        session.pause()
        session.surface_destroyed()
        session.close()
        if window:
            window.close()

    outcome = session.result()
    if outcome.ok:
        print(outcome.payload)
    else:
        print(f"No barcode: {outcome.reason or outcome.status.value}")
    return EXIT_CODES[outcome.status]


if __name__ == "__main__":
    raise SystemExit(main())
