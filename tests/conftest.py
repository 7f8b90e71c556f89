from typing import Optional

import pytest

from scanline.geometry import Resolution


class FakeSource:
    """In-memory capture source recording lifecycle calls."""

    def __init__(self, preview: Optional[Resolution] = Resolution(500, 500), fail: bool = False):
        self.preview_size = preview
        self.fail = fail
        self.start_calls = 0
        self.stop_calls = 0
        self.release_calls = 0

    def start(self) -> None:
        self.start_calls += 1
        if self.fail:
            raise RuntimeError("camera busy")

    def stop(self) -> None:
        self.stop_calls += 1

    def release(self) -> None:
        self.release_calls += 1


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def make_source():
    return FakeSource
