# analysis/frames.py
from typing import Optional

import numpy as np


def safe_array(x):
    """
    Convert x into a 1D float64 numpy array.
    Returns a zero-length array if x is None or invalid; NaN/inf become 0.
    """
    if x is None:
        return np.zeros(0, dtype=float)

    try:
        arr = np.asarray(x, dtype=float)
    except (TypeError, ValueError):
        return np.zeros(0, dtype=float)

    if arr.ndim == 2:
        # (frames, channels) block from an input stream: keep channel 0
        arr = arr[:, 0]
    arr = arr.flatten()
    # zero rather than drop, so the sample spacing is preserved
    return np.where(np.isfinite(arr), arr, 0.0)


class SampleFrame:
    """
    Fixed-length window of samples normalized to [-1, 1].

    Samples are stored read-only; a frame is consumed once by the detector.
    `timestamp` is None when the capture time is unknown; the Tuner stamps
    such frames with its own clock.
    """

    __slots__ = ("samples", "sample_rate", "timestamp")

    def __init__(self, samples, sample_rate: int, timestamp: Optional[float] = None):
        if int(sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        arr = np.asarray(samples, dtype=float)
        if arr.ndim != 1:
            raise ValueError(f"SampleFrame expects 1D samples, got shape {arr.shape}")

        arr = np.clip(np.where(np.isfinite(arr), arr, 0.0), -1.0, 1.0)
        arr.setflags(write=False)

        object.__setattr__(self, "samples", arr)
        object.__setattr__(self, "sample_rate", int(sample_rate))
        object.__setattr__(
            self, "timestamp", None if timestamp is None else float(timestamp)
        )

    def __setattr__(self, name, value):
        raise AttributeError("SampleFrame is immutable")

    def __len__(self):
        return self.samples.size

    @property
    def duration(self) -> float:
        return self.samples.size / self.sample_rate

    def __repr__(self):
        t = "-" if self.timestamp is None else f"{self.timestamp:.3f}"
        return f"SampleFrame(n={self.samples.size}, sr={self.sample_rate}, t={t})"


class FrameBuffer:
    """
    Rolling window over an incoming sample stream.

    Capture blocks of any size are appended; `frame()` hands out the most
    recent `frame_size` samples, zero-filled until enough audio has arrived.
    """

    def __init__(self, frame_size: int, sample_rate: int):
        if frame_size < 1:
            raise ValueError("frame_size must be at least 1")
        self.frame_size = int(frame_size)
        self.sample_rate = int(sample_rate)
        self._data = np.zeros(self.frame_size, dtype=float)
        self._received = 0

    def extend(self, chunk) -> None:
        chunk = safe_array(chunk)
        if chunk.size == 0:
            return
        if chunk.size >= self.frame_size:
            self._data = chunk[-self.frame_size:].copy()
        else:
            self._data = np.concatenate([self._data[chunk.size:], chunk])
        self._received += chunk.size

    @property
    def filled(self) -> bool:
        return self._received >= self.frame_size

    @property
    def received(self) -> int:
        return self._received

    def frame(self, timestamp: Optional[float] = None) -> SampleFrame:
        return SampleFrame(self._data, self.sample_rate, timestamp)

    def clear(self) -> None:
        self._data = np.zeros(self.frame_size, dtype=float)
        self._received = 0
