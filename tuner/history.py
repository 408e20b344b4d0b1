# tuner/history.py
import logging
from collections import deque

from analysis.smoothing import SmoothedSample

logger = logging.getLogger(__name__)

MAX_AGE = 3.0    # seconds
MAX_COUNT = 300


class HistoryTrail:
    """
    Time-ordered trail of displayed pitch samples for drawing.

    Bounded by count and by age; both are enforced on every append, oldest
    evicted first. Rendering only: pitch logic never reads it.
    """

    def __init__(self, max_age: float = MAX_AGE, max_count: int = MAX_COUNT):
        if max_age <= 0 or int(max_count) < 1:
            raise ValueError("max_age and max_count must be positive")
        self.max_age = float(max_age)
        self.max_count = int(max_count)
        self._samples = deque(maxlen=self.max_count)

    def __len__(self):
        return len(self._samples)

    @property
    def latest(self):
        return self._samples[-1] if self._samples else None

    def append(self, sample: SmoothedSample) -> bool:
        """Add a sample; returns False if it would break time ordering."""
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            logger.debug(
                "dropping out-of-order sample t=%.3f < %.3f",
                sample.timestamp, self._samples[-1].timestamp,
            )
            return False

        # deque maxlen evicts from the left when full
        self._samples.append(SmoothedSample(float(sample.value), float(sample.timestamp)))
        self.prune(sample.timestamp)
        return True

    def prune(self, now: float) -> int:
        removed = 0
        while self._samples and now - self._samples[0].timestamp > self.max_age:
            self._samples.popleft()
            removed += 1
        return removed

    def snapshot(self, now: float = None) -> tuple:
        """
        Immutable copy of the trail, oldest first.

        With `now`, samples that have aged out by then are left out without
        mutating the trail, so readers on another cadence can call this.
        """
        samples = tuple(self._samples)
        if now is None:
            return samples
        return tuple(s for s in samples if now - s.timestamp <= self.max_age)

    def clear(self):
        self._samples.clear()
