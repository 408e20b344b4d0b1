from unittest.mock import MagicMock

import matplotlib.pyplot as plt
import numpy as np
import pytest

from analysis.config import DisplayMode, FrequencyRange
from analysis.pitch import PitchEstimate
from analysis.smoothing import Direction, SmoothedPitch, SmoothedSample
from calibration.state_machine import Calibrated, Calibrating
from tuner.controller import IDLE, RECORDING, TunerSnapshot
from tuner.live_analyzer import FrameResult
from tuner.tuner_plotter import _title, draw_heatmap, draw_trail, update_view
from utils.music_utils import FrequencyMapper

BAND = FrequencyRange(80.0, 600.0)


def make_snapshot(mode=DisplayMode.PITCH, displayed=220.0, calibration=None,
                  trail=None, bars=None, heatmap=None):
    latest = None
    if displayed is not None or bars is not None:
        latest = FrameResult(
            timestamp=1.0,
            estimate=PitchEstimate(displayed, 0.9, 0.01),
            smoothed=SmoothedPitch(displayed, Direction.UP if displayed else Direction.UNKNOWN),
            calibration=calibration,
            position=None,
            note="A3" if displayed else None,
            level=40.0,
            bars=bars,
        )
    if trail is None:
        trail = tuple(SmoothedSample(200.0 + i, 0.9 + 0.01 * i) for i in range(11))
    return TunerSnapshot(
        state=RECORDING,
        mode=mode,
        generation=1,
        elapsed=12.0,
        latest=latest,
        calibration=calibration,
        active_range=BAND,
        trail=trail,
        heatmap=heatmap,
    )


@pytest.fixture
def ax():
    fig, ax = plt.subplots()
    yield ax
    plt.close(fig)


class FakeWindow:
    def __init__(self, ax):
        self.ax = ax
        self.canvas = MagicMock()
        self.sample_rate = 44100
        self.mapper = FrequencyMapper(inset=0.1)


# ---------------------------------------------------------
# Titles
# ---------------------------------------------------------

def test_title_shows_time_note_and_direction():
    title = _title(make_snapshot())
    assert title.startswith("00:12")
    assert "A3 (220.0 Hz, +0c)" in title
    assert "up" in title


def test_title_without_pitch():
    assert "--" in _title(make_snapshot(displayed=None, trail=()))


def test_title_reports_calibration_phase():
    calibrating = make_snapshot(DisplayMode.CALIBRATED_PITCH, calibration=Calibrating(0.0))
    assert "calibrating" in _title(calibrating)

    done = make_snapshot(DisplayMode.CALIBRATED_PITCH, calibration=Calibrated(110.0, 290.0))
    assert "range 110-290 Hz" in _title(done)


# ---------------------------------------------------------
# Trail
# ---------------------------------------------------------

def test_draw_trail_plots_line_and_head(ax):
    draw_trail(ax, make_snapshot(), FrequencyMapper())
    # 11 grid lines across 80-600 Hz come first
    line, head = ax.get_lines()[-2:]
    xs, ys = line.get_data()
    assert xs[-1] == pytest.approx(0.0)
    assert xs[0] == pytest.approx(-0.1)
    assert np.all(np.diff(ys) > 0)
    assert head.get_xdata()[0] == pytest.approx(0.0)


def test_draw_trail_uses_mapper_inset(ax):
    trail = (SmoothedSample(10.0, 0.0), SmoothedSample(900.0, 0.1))
    draw_trail(ax, make_snapshot(trail=trail), FrequencyMapper(inset=0.1))
    _, ys = ax.get_lines()[-2].get_data()
    assert ys[0] == pytest.approx(0.1)
    assert ys[-1] == pytest.approx(0.9)


def test_draw_trail_empty_shows_grid_only(ax):
    draw_trail(ax, make_snapshot(displayed=None, trail=()))
    assert len(ax.get_lines()) == 11
    # grid lines every 50 Hz across 80-600
    assert len(ax.texts) == 11


def test_fading_trail_has_no_head(ax):
    draw_trail(ax, make_snapshot(displayed=None))
    assert len(ax.get_lines()) == 12


# ---------------------------------------------------------
# Spectrum views
# ---------------------------------------------------------

def test_heatmap_draws_image(ax):
    data = np.random.default_rng(0).integers(0, 255, size=(20, 1024), dtype=np.uint8)
    draw_heatmap(ax, make_snapshot(DisplayMode.HEATMAP, heatmap=data), sample_rate=44100)
    (image,) = ax.get_images()
    assert image.get_array().shape == (1024, 20)
    assert ax.get_ylim() == (0.0, 8000.0)


def test_heatmap_empty_draws_nothing(ax):
    draw_heatmap(ax, make_snapshot(DisplayMode.HEATMAP, heatmap=np.zeros((0, 0))))
    assert ax.get_images() == []


# ---------------------------------------------------------
# Dispatch
# ---------------------------------------------------------

@pytest.mark.parametrize("mode", list(DisplayMode))
def test_update_view_redraws_every_mode(ax, mode):
    win = FakeWindow(ax)
    snap = make_snapshot(
        mode,
        bars=tuple(np.linspace(0, 1, 32)),
        heatmap=np.zeros((3, 1024), dtype=np.uint8),
        calibration=Calibrating(0.0),
    )
    update_view(win, snap)
    win.canvas.draw_idle.assert_called_once()


def test_update_view_bars(ax):
    win = FakeWindow(ax)
    update_view(win, make_snapshot(DisplayMode.BARS, bars=tuple(np.linspace(0, 1, 32))))
    assert len(ax.patches) == 32


def test_update_view_idle_snapshot(ax):
    win = FakeWindow(ax)
    idle = TunerSnapshot(
        state=IDLE, mode=DisplayMode.PITCH, generation=None, elapsed=0.0,
        latest=None, calibration=None, active_range=BAND, trail=(),
    )
    update_view(win, idle)
    assert "00:00" in ax.get_title()
    win.canvas.draw_idle.assert_called_once()
