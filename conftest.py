# conftest.py
import os

import matplotlib
import pytest

from analysis.config import DetectorConfig

# Headless plotting for tuner_plotter tests
os.environ.setdefault("MPLBACKEND", "Agg")


def pytest_configure():
    matplotlib.use("Agg", force=True)


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start=0.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    # 44.1 kHz, 2048-sample frames: about 21.5 frames per second
    return DetectorConfig(sample_rate=44100, frame_size=2048)
