# tuner/tuner_plotter.py
import numpy as np

from analysis.config import DisplayMode
from utils.music_utils import FrequencyMapper, cents_off

TRAIL_COLOR = "#8b5cf6"
BAR_COLOR = "#7c3aed"
BACKGROUND = "#1e1b4b"


def _title(snapshot):
    parts = [snapshot.elapsed_label]
    if snapshot.displayed is not None:
        cents = cents_off(snapshot.displayed)
        parts.append(f"{snapshot.note} ({snapshot.displayed:.1f} Hz, {cents:+.0f}c)")
        parts.append(snapshot.direction.value)
    else:
        parts.append("--")

    calib = snapshot.calibration
    if snapshot.mode is DisplayMode.CALIBRATED_PITCH and calib is not None:
        if calib.phase == "calibrated":
            parts.append(f"range {calib.min_hz:.0f}-{calib.max_hz:.0f} Hz")
        else:
            parts.append("calibrating...")
    return "  |  ".join(parts)


# ============================================================
# Pitch trail
# ============================================================

def draw_trail(ax, snapshot, mapper=None):
    """Pitch line over the last few seconds; x = seconds before now."""
    mapper = mapper or FrequencyMapper()
    ax.clear()
    ax.set_facecolor(BACKGROUND)
    ax.set_ylim(0.0, 1.0)

    freq_range = snapshot.active_range
    for freq, pos in mapper.grid_lines(freq_range, step_hz=50.0):
        ax.axhline(pos, color="white", alpha=0.1, linewidth=0.5)
        ax.text(0.0, pos, f"{freq:.0f}", color="white", alpha=0.4, fontsize=7)

    trail = snapshot.trail
    if trail:
        t_end = trail[-1].timestamp
        xs = np.array([s.timestamp - t_end for s in trail])
        ys = np.array([mapper.to_display_position(s.value, freq_range) for s in trail])
        ax.plot(xs, ys, color=TRAIL_COLOR, linewidth=2.0)
        if snapshot.displayed is not None:
            ax.plot([xs[-1]], [ys[-1]], "o", color="white")

    ax.set_title(_title(snapshot))
    ax.set_xlabel("Time (s)")
    ax.set_yticks([])


# ============================================================
# Spectrum views
# ============================================================

def draw_bars(ax, snapshot):
    ax.clear()
    ax.set_facecolor(BACKGROUND)
    bars = snapshot.latest.bars if snapshot.latest is not None else None
    if bars:
        ax.bar(np.arange(len(bars)), bars, width=0.9, color=BAR_COLOR)
    ax.set_ylim(0.0, 1.0)
    ax.set_title(_title(snapshot))
    ax.set_xticks([])


def draw_heatmap(ax, snapshot, max_hz=8000.0, sample_rate=48000):
    ax.clear()
    data = snapshot.heatmap
    if data is None or data.size == 0:
        ax.set_facecolor(BACKGROUND)
        ax.set_title(_title(snapshot))
        return

    # rows are frames → transpose so time runs left to right
    ax.imshow(
        data.T,
        origin="lower",
        aspect="auto",
        cmap="magma",
        vmin=0,
        vmax=255,
        extent=(0, data.shape[0], 0, sample_rate / 2.0),
    )
    ax.set_ylim(0, min(max_hz, sample_rate / 2.0))
    ax.set_ylabel("Frequency (Hz)")
    ax.set_title(_title(snapshot))


def update_view(window, snapshot):
    """Redraw `window.ax` for the snapshot's display mode."""
    mode = snapshot.mode
    if mode is DisplayMode.BARS:
        draw_bars(window.ax, snapshot)
    elif mode is DisplayMode.HEATMAP:
        draw_heatmap(window.ax, snapshot, sample_rate=window.sample_rate)
    else:
        draw_trail(window.ax, snapshot, getattr(window, "mapper", None))
    window.canvas.draw_idle()
