# analysis/smoothing.py
from collections import deque
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np

ROLLING_WINDOW = 8
LERP_FACTOR = 0.3
MIN_CHANGE_THRESHOLD = 5.0   # Hz, deadband for the gentle blend
GENTLE_FACTOR = 0.1
DIRECTION_THRESHOLD = 2.0    # Hz between consecutive displayed values
FADE_FACTOR = 0.95
FADE_FLOOR = 10.0            # Hz, below this the display goes blank


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    UNKNOWN = "unknown"


class SmoothedPitch(NamedTuple):
    displayed: Optional[float]
    direction: Direction


class SmoothedSample(NamedTuple):
    value: float
    timestamp: float


def classify_direction(previous, current, threshold=DIRECTION_THRESHOLD):
    if previous is None or current is None:
        return Direction.STABLE if current is not None else Direction.UNKNOWN
    delta = current - previous
    if abs(delta) > threshold:
        return Direction.UP if delta > 0 else Direction.DOWN
    return Direction.STABLE


# ---------------------------------------------------------
# Pitch smoothing
# ---------------------------------------------------------
class PitchSmoother:
    """
    Two-stage smoothing for a live pitch line.

      1. rolling mean over the last `window` voiced estimates
      2. adaptive interpolation toward that mean, with a deadband that damps
         micro-jitter instead of freezing the line

    Unvoiced ticks fade the displayed value out exponentially so short gaps
    (consonants, breaths) do not blank the display.
    """

    def __init__(self, window=ROLLING_WINDOW, alpha=LERP_FACTOR,
                 min_change=MIN_CHANGE_THRESHOLD,
                 direction_threshold=DIRECTION_THRESHOLD,
                 fade_factor=FADE_FACTOR, fade_floor=FADE_FLOOR):
        if int(window) < 1:
            raise ValueError("window must be at least 1")
        self.window = int(window)
        self.alpha = float(alpha)
        self.min_change = float(min_change)
        self.direction_threshold = float(direction_threshold)
        self.fade_factor = float(fade_factor)
        self.fade_floor = float(fade_floor)

        self.buffer = deque(maxlen=self.window)
        self.current: Optional[float] = None
        self.direction = Direction.UNKNOWN

    @property
    def average(self) -> Optional[float]:
        if not self.buffer:
            return None
        return float(np.mean(self.buffer))

    def _blend(self, previous, average):
        if previous is None:
            return average
        if abs(average - previous) > self.min_change:
            return previous * (1.0 - self.alpha) + average * self.alpha
        return previous * (1.0 - GENTLE_FACTOR) + average * GENTLE_FACTOR

    def update(self, estimate, now=None) -> SmoothedPitch:
        """
        Feed one per-tick estimate (a PitchEstimate, a bare frequency or None).

        `now` is accepted for symmetry with the other session components;
        smoothing is per tick, not per second.
        """
        frequency = getattr(estimate, "frequency", estimate)
        previous = self.current

        if frequency is not None:
            self.buffer.append(float(frequency))
            displayed = self._blend(previous, self.average)
            self.current = displayed
            self.direction = classify_direction(
                previous, displayed, self.direction_threshold
            )
            return SmoothedPitch(displayed, self.direction)

        # ---- unvoiced tick: fade out ----
        if previous is None:
            self.direction = Direction.UNKNOWN
            return SmoothedPitch(None, Direction.UNKNOWN)

        faded = previous * self.fade_factor
        if faded < self.fade_floor:
            self.reset()
            return SmoothedPitch(None, Direction.UNKNOWN)

        self.current = faded
        self.direction = classify_direction(
            previous, faded, self.direction_threshold
        )
        return SmoothedPitch(faded, self.direction)

    def reset(self):
        self.buffer.clear()
        self.current = None
        self.direction = Direction.UNKNOWN
