# analysis/spectrum.py
from collections import deque

import numpy as np
from scipy.signal import get_window

from analysis.frames import safe_array


class SpectrumAnalyzer:
    """
    Byte-scaled magnitude spectrum with temporal smoothing.

    Per call: Blackman window over the newest `fft_size` samples, |FFT| / N,
    exponential smoothing across calls, then dB mapped linearly so that
    `min_decibels` → 0 and `max_decibels` → 255.
    """

    def __init__(self, fft_size=2048, sample_rate=48000,
                 smoothing_time_constant=0.8,
                 min_decibels=-90.0, max_decibels=-10.0):
        if fft_size < 2:
            raise ValueError("fft_size must be at least 2")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.fft_size = int(fft_size)
        self.sample_rate = int(sample_rate)
        self.smoothing_time_constant = float(smoothing_time_constant)
        self.min_decibels = float(min_decibels)
        self.max_decibels = float(max_decibels)

        self._window = get_window("blackman", self.fft_size, fftbins=False)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=float)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def bin_frequencies(self):
        return np.arange(self.frequency_bin_count) * self.sample_rate / self.fft_size

    def _prepare(self, samples):
        x = safe_array(samples)
        if x.size >= self.fft_size:
            return x[-self.fft_size:]
        # pad at the front: the newest audio sits at the end of the window
        return np.concatenate([np.zeros(self.fft_size - x.size), x])

    def magnitudes(self, samples):
        """Smoothed linear magnitudes; updates the smoothing state."""
        x = self._prepare(samples) * self._window
        mag = np.abs(np.fft.rfft(x))[: self.frequency_bin_count] / self.fft_size

        tau = self.smoothing_time_constant
        smoothed = tau * self._smoothed + (1.0 - tau) * mag
        # state must stay finite
        smoothed[~np.isfinite(smoothed)] = 0.0
        self._smoothed = smoothed
        return smoothed.copy()

    def decibels(self, samples):
        mag = self.magnitudes(samples)
        with np.errstate(divide="ignore"):
            return 20.0 * np.log10(mag)

    def byte_frequency_data(self, samples):
        db = self.decibels(samples)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (db - self.min_decibels))
        scaled = np.nan_to_num(scaled, nan=0.0, neginf=0.0, posinf=255.0)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def reset(self):
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=float)


def frequency_bars(data, bar_count=32):
    """
    Downsample a byte spectrum to `bar_count` bar heights in [0, 1].

    Bars sample every `len(data) // bar_count`-th bin, starting at bin 0.
    """
    data = np.asarray(data)
    if data.size == 0 or bar_count < 1:
        return np.zeros(max(int(bar_count), 0), dtype=float)

    step = max(1, data.size // bar_count)
    idx = np.arange(bar_count) * step
    idx = np.clip(idx, 0, data.size - 1)
    return data[idx].astype(float) / 255.0


def audio_level(data) -> float:
    """Average byte magnitude as a 0-100 level."""
    data = np.asarray(data, dtype=float)
    if data.size == 0:
        return 0.0
    return float(np.mean(data) / 255.0 * 100.0)


class SpectrogramHistory:
    """Bounded history of byte spectra for heat-map drawing (oldest first)."""

    def __init__(self, max_rows=200):
        if int(max_rows) < 1:
            raise ValueError("max_rows must be at least 1")
        self.max_rows = int(max_rows)
        self._rows = deque(maxlen=self.max_rows)

    def __len__(self):
        return len(self._rows)

    def push(self, row):
        self._rows.append(np.array(row, dtype=np.uint8, copy=True))

    def as_array(self):
        """(rows, bins) uint8 array; (0, 0) when empty."""
        if not self._rows:
            return np.zeros((0, 0), dtype=np.uint8)
        return np.vstack(self._rows)

    def clear(self):
        self._rows.clear()
