import logging
from dataclasses import dataclass
from typing import Optional, Union

from analysis.config import MAX_PITCH, MIN_PITCH, FrequencyRange

logger = logging.getLogger(__name__)

CALIBRATION_DURATION = 3.0  # seconds
MIN_SPAN = 50.0             # Hz


@dataclass(frozen=True)
class Calibrating:
    started_at: float
    min_seen: Optional[float] = None
    max_seen: Optional[float] = None

    phase = "calibrating"


@dataclass(frozen=True)
class Calibrated:
    min_hz: float
    max_hz: float

    phase = "calibrated"

    @property
    def range(self) -> FrequencyRange:
        return FrequencyRange(self.min_hz, self.max_hz)


CalibrationState = Union[Calibrating, Calibrated]


def enforce_min_span(lo, hi, min_span=MIN_SPAN, floor=MIN_PITCH, ceiling=MAX_PITCH):
    """
    Widen [lo, hi] symmetrically to at least `min_span`, then shift it back
    inside [floor, ceiling] without shrinking it.
    """
    lo, hi = float(min(lo, hi)), float(max(lo, hi))
    lo, hi = max(lo, floor), min(hi, ceiling)

    if hi - lo >= min_span:
        return lo, hi

    center = (lo + hi) / 2.0
    lo, hi = center - min_span / 2.0, center + min_span / 2.0
    if lo < floor:
        lo, hi = floor, floor + min_span
    if hi > ceiling:
        lo, hi = ceiling - min_span, ceiling
    return lo, hi


class RangeCalibrator:
    """
    Learns the singer's usable range during the first seconds of a session.

      phases: "calibrating" → "calibrated" (terminal until reset)

    Voiced estimates inside the window widen the observed range. The first
    voiced estimate after the window closes completes calibration; without
    voiced input the calibrator simply keeps waiting.
    """

    def __init__(self, now: float = 0.0, duration: float = CALIBRATION_DURATION,
                 min_span: float = MIN_SPAN, band: FrequencyRange = None):
        self.duration = float(duration)
        self.min_span = float(min_span)
        self.band = band or FrequencyRange(MIN_PITCH, MAX_PITCH)
        if self.min_span > self.band.span:
            raise ValueError("min_span is wider than the detectable band")
        self.state: CalibrationState = Calibrating(started_at=float(now))

    @property
    def phase(self) -> str:
        return self.state.phase

    def is_calibrated(self) -> bool:
        return isinstance(self.state, Calibrated)

    def reset(self, now: float) -> CalibrationState:
        """Re-enter calibration, discarding any learned bounds."""
        self.state = Calibrating(started_at=float(now))
        logger.info("calibration restarted at t=%.3f", now)
        return self.state

    def elapsed(self, now: float) -> float:
        if isinstance(self.state, Calibrating):
            return max(0.0, now - self.state.started_at)
        return self.duration

    def progress(self, now: float) -> float:
        if self.duration <= 0:
            return 1.0
        return min(1.0, self.elapsed(now) / self.duration)

    def observe(self, estimate, now: float) -> CalibrationState:
        state = self.state
        if isinstance(state, Calibrated):
            return state

        frequency = getattr(estimate, "frequency", estimate)
        if frequency is None:
            return state

        frequency = float(frequency)
        lo = frequency if state.min_seen is None else min(state.min_seen, frequency)
        hi = frequency if state.max_seen is None else max(state.max_seen, frequency)

        if now - state.started_at < self.duration:
            self.state = Calibrating(state.started_at, lo, hi)
            return self.state

        min_hz, max_hz = enforce_min_span(
            lo, hi, self.min_span, self.band.min_hz, self.band.max_hz
        )
        self.state = Calibrated(min_hz, max_hz)
        logger.info(
            "calibrated range %.1f-%.1f Hz (seen %.1f-%.1f)", min_hz, max_hz, lo, hi
        )
        return self.state

    def active_range(self) -> FrequencyRange:
        """Calibrated range, or the absolute band while still calibrating."""
        if isinstance(self.state, Calibrated):
            return self.state.range
        return self.band
