import logging
import threading
import time

import cv2
import numpy as np
import pytest

from scanline.camera import CameraSource
from scanline.config import CameraConfig
from scanline.geometry import Rect, Resolution
from scanline.session import DetectionEvent


class FakeCapture:
    def __init__(self, width=640, height=480):
        self.props = {cv2.CAP_PROP_FRAME_WIDTH: width, cv2.CAP_PROP_FRAME_HEIGHT: height}
        self.released = False

    def get(self, prop):
        return self.props.get(prop, 0)

    def read(self):
        if self.released:
            return False, None
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self):
        self.released = True


class FakeDetector:
    def detect(self, frame):
        return [DetectionEvent(Rect(1, 1, 3, 3), "frame-code")]


def _opener(capture):
    def opener(index, width, height, fps):
        return capture

    return opener


def test_start_reports_preview_and_pushes_detections():
    capture = FakeCapture()
    received = threading.Event()
    events = []

    def on_detection(event):
        events.append(event)
        received.set()
        return True

    source = CameraSource(CameraConfig(), FakeDetector(), on_detection, opener=_opener(capture))
    assert source.preview_size is None
    source.start()
    try:
        assert source.preview_size == Resolution(640, 480)
        assert received.wait(timeout=5)
        assert events[0].text == "frame-code"
        assert source.latest_frame() is not None
    finally:
        source.stop()
    assert capture.released
    assert not source.running


def test_stopped_source_can_start_again():
    captures = [FakeCapture(), FakeCapture()]

    def opener(index, width, height, fps):
        return captures.pop(0)

    source = CameraSource(CameraConfig(), FakeDetector(), lambda e: False, opener=opener)
    source.start()
    source.stop()
    source.start()
    assert source.running
    source.release()
    assert not source.running


def test_released_source_refuses_to_start():
    source = CameraSource(CameraConfig(), FakeDetector(), lambda e: False, opener=_opener(FakeCapture()))
    source.release()
    with pytest.raises(RuntimeError):
        source.start()


def test_zero_preview_size_fails_start():
    capture = FakeCapture(width=0, height=0)
    source = CameraSource(CameraConfig(), FakeDetector(), lambda e: False, opener=_opener(capture))
    with pytest.raises(RuntimeError):
        source.start()
    assert capture.released
    assert source.preview_size is None


class NoFrameCapture(FakeCapture):
    def read(self):
        return False, None


def test_restart_does_not_redetect_frames_from_before_stop():
    captures = [FakeCapture(), NoFrameCapture()]
    events = []
    first = threading.Event()

    def on_detection(event):
        events.append(event)
        first.set()
        return False

    def opener(index, width, height, fps):
        return captures.pop(0)

    source = CameraSource(CameraConfig(), FakeDetector(), on_detection, opener=opener)
    source.start()
    assert first.wait(timeout=5)
    source.stop()
    time.sleep(0.1)
    events.clear()

    source.start()
    try:
        time.sleep(0.3)
        assert events == []
        assert source.latest_frame() is None
        assert source.latest_detections() == []
    finally:
        source.release()


def test_frame_snapshot_version_advances():
    source = CameraSource(CameraConfig(), FakeDetector(), lambda e: False, opener=_opener(FakeCapture()))
    source.start()
    try:
        deadline = time.monotonic() + 5
        _, version = source.frame_snapshot()
        while version < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
            _, version = source.frame_snapshot()
        assert version >= 2
    finally:
        source.release()


class FlakyDetector:
    def __init__(self):
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if self.calls == 1:
            raise ValueError("corrupt frame")
        return [DetectionEvent(Rect(1, 1, 3, 3), "after-error")]


def test_detection_thread_survives_detector_errors(caplog):
    received = threading.Event()

    def on_detection(event):
        received.set()
        return True

    source = CameraSource(CameraConfig(), FlakyDetector(), on_detection, opener=_opener(FakeCapture()))
    with caplog.at_level(logging.ERROR, logger="scanline.camera"):
        source.start()
        try:
            assert received.wait(timeout=5)
        finally:
            source.release()
    assert "Barcode detection failed" in caplog.text


def test_release_joins_detection_thread():
    source = CameraSource(CameraConfig(), FakeDetector(), lambda e: False, opener=_opener(FakeCapture()))
    source.start()
    thread = source._detection_thread
    source.release()
    assert not thread.is_alive()
