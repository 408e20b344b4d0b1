# analysis/pitch.py
import logging
from typing import NamedTuple, Optional

import numpy as np
from scipy.signal import correlate

from analysis.config import DetectorConfig
from analysis.frames import SampleFrame

logger = logging.getLogger(__name__)

# Peaks within this much of the best correlation count as ties; the shortest
# period among them wins so a clean tone is not reported an octave low.
OCTAVE_TOLERANCE = 0.01


class PitchEstimate(NamedTuple):
    frequency: Optional[float]
    confidence: float
    rms: float = 0.0

    @property
    def voiced(self) -> bool:
        return self.frequency is not None


SILENT = PitchEstimate(None, 0.0, 0.0)


def normalized_autocorrelation(x, min_lag, max_lag):
    """
    Normalized autocorrelation for lags min_lag..max_lag (inclusive).

    r[lag] = sum(x[i] * x[i + lag]) / sum(x[i] ** 2), both sums over the
    overlap i < len(x) - lag.
    """
    n = x.size
    lags = np.arange(min_lag, max_lag + 1)
    if lags.size == 0:
        return lags, np.zeros(0, dtype=float)

    full = correlate(x, x, mode="full", method="auto")
    acf = full[n - 1:]
    energy = np.cumsum(x * x)[n - 1 - lags]

    corr = np.zeros(lags.size, dtype=float)
    ok = energy > 0
    corr[ok] = acf[lags[ok]] / energy[ok]
    return lags, corr


def _first_peak(corr):
    """Index of the best lag, preferring the earliest of near-equal peaks."""
    best = int(np.argmax(corr))
    near = np.flatnonzero(corr >= corr[best] - OCTAVE_TOLERANCE)
    # first contiguous run of near-best lags is the fundamental's peak
    breaks = np.flatnonzero(np.diff(near) > 1)
    run = near[: breaks[0] + 1] if breaks.size else near
    return int(run[np.argmax(corr[run])])


class PitchDetector:
    """
    Autocorrelation pitch tracker for monophonic voice.

    Gates on mean-square energy first, then on the normalized correlation of
    the best lag. Never raises for signal content: silence, noise and
    out-of-band results all come back as a PitchEstimate with frequency None.
    """

    def __init__(self, config: DetectorConfig = None, **overrides):
        config = config or DetectorConfig()
        if overrides:
            config = config.with_overrides(**overrides)
        self.config = config

    @property
    def min_pitch(self):
        return self.config.min_pitch

    @property
    def max_pitch(self):
        return self.config.max_pitch

    def lag_range(self, sample_rate: int, n: int):
        min_lag = max(1, int(np.floor(sample_rate / self.config.max_pitch)))
        max_lag = int(np.floor(sample_rate / self.config.min_pitch))
        # need at least half the frame as overlap
        max_lag = min(max_lag, n // 2 - 1)
        return min_lag, max_lag

    def detect(self, frame: SampleFrame) -> PitchEstimate:
        x = np.asarray(frame.samples, dtype=float)
        if x.size < 2:
            return SILENT

        # 1. DC removal
        x = x - np.mean(x)

        # 2. Energy gate
        rms = float(np.mean(x * x))
        if rms < self.config.min_volume_threshold:
            return PitchEstimate(None, 0.0, rms)

        # 3. Normalized autocorrelation over the voice band
        sr = frame.sample_rate
        min_lag, max_lag = self.lag_range(sr, x.size)
        if min_lag > max_lag:
            logger.debug("frame of %d samples too short for band", x.size)
            return PitchEstimate(None, 0.0, rms)

        lags, corr = normalized_autocorrelation(x, min_lag, max_lag)

        # 4. Confidence + band check
        idx = _first_peak(corr)
        best_corr = float(corr[idx])
        lag = int(lags[idx])

        if best_corr <= self.config.confidence_threshold:
            return PitchEstimate(None, 0.0, rms)

        f0 = sr / lag
        if not (self.config.min_pitch <= f0 <= self.config.max_pitch):
            return PitchEstimate(None, 0.0, rms)

        return PitchEstimate(float(f0), float(np.clip(best_corr, 0.0, 1.0)), rms)


def estimate_pitch(frame, sr, fmin=None, fmax=None):
    """
    Convenience wrapper: estimate f0 of a raw sample array.

    Returns the frequency in Hz or None.
    """
    overrides = {}
    if fmin is not None:
        overrides["min_pitch"] = float(fmin)
    if fmax is not None:
        overrides["max_pitch"] = float(fmax)

    detector = PitchDetector(DetectorConfig(sample_rate=int(sr), **overrides))
    return detector.detect(SampleFrame(frame, sr)).frequency
