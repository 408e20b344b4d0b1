# analysis/config.py
import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import NamedTuple

logger = logging.getLogger(__name__)

# Absolute detectable band (Hz)
MIN_PITCH = 80.0
MAX_PITCH = 600.0

MIN_VOLUME_THRESHOLD = 0.001
CONFIDENCE_THRESHOLD = 0.5

DEFAULT_SAMPLE_RATE = 48000
DEFAULT_FRAME_SIZE = 2048


class FrequencyRange(NamedTuple):
    min_hz: float
    max_hz: float

    @property
    def span(self) -> float:
        return self.max_hz - self.min_hz


class DisplayMode(str, Enum):
    """Which derived view a renderer asks the tuner for."""

    BARS = "bars"
    HEATMAP = "heatmap"
    PITCH = "pitch"
    CALIBRATED_PITCH = "calibrated_pitch"

    @property
    def wants_spectrum(self) -> bool:
        return self in (DisplayMode.BARS, DisplayMode.HEATMAP)

    @property
    def uses_calibration(self) -> bool:
        return self is DisplayMode.CALIBRATED_PITCH


@dataclass(frozen=True)
class DetectorConfig:
    """
    Tunables shared by the detector, smoother, calibrator and trail.

    Every display variant runs the same pipeline; only these numbers differ.
    """

    sample_rate: int = DEFAULT_SAMPLE_RATE
    frame_size: int = DEFAULT_FRAME_SIZE

    # detector
    min_pitch: float = MIN_PITCH
    max_pitch: float = 500.0
    min_volume_threshold: float = MIN_VOLUME_THRESHOLD
    confidence_threshold: float = CONFIDENCE_THRESHOLD

    # spectrum analyser
    fft_size: int = 2048
    smoothing_time_constant: float = 0.8
    min_decibels: float = -90.0
    max_decibels: float = -10.0
    bar_count: int = 32
    heatmap_rows: int = 200

    # smoother
    rolling_window: int = 8
    lerp_factor: float = 0.3
    min_change_threshold: float = 5.0

    # calibration
    calibration_duration: float = 3.0
    min_span: float = 50.0

    # trail
    trail_max_age: float = 3.0
    trail_max_count: int = 300
    display_inset: float = 0.0

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.frame_size < 2 or self.fft_size < 2:
            raise ValueError("frame_size and fft_size must be at least 2")
        if not 0 < self.min_pitch < self.max_pitch:
            raise ValueError(
                f"invalid pitch band {self.min_pitch}..{self.max_pitch} Hz"
            )
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must lie in [0, 1]")
        if self.min_volume_threshold < 0:
            raise ValueError("min_volume_threshold must not be negative")
        if not 0.0 <= self.smoothing_time_constant < 1.0:
            raise ValueError("smoothing_time_constant must lie in [0, 1)")
        if self.min_decibels >= self.max_decibels:
            raise ValueError("min_decibels must be below max_decibels")
        if not 0.0 < self.lerp_factor <= 1.0:
            raise ValueError("lerp_factor must lie in (0, 1]")
        if min(self.rolling_window, self.trail_max_count,
               self.bar_count, self.heatmap_rows) < 1:
            raise ValueError("buffer sizes must be at least 1")
        if self.calibration_duration < 0 or self.trail_max_age <= 0:
            raise ValueError("durations must be positive")
        if self.min_span > self.max_pitch - self.min_pitch:
            raise ValueError("min_span is wider than the detectable band")
        if not 0.0 <= self.display_inset < 0.5:
            raise ValueError("display_inset must lie in [0, 0.5)")

    @property
    def band(self) -> FrequencyRange:
        return FrequencyRange(float(self.min_pitch), float(self.max_pitch))

    def with_overrides(self, **overrides) -> "DetectorConfig":
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict, base: "DetectorConfig | None" = None):
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        overrides = {k: v for k, v in data.items() if k in known}
        return replace(base or cls(), **overrides)


# Presets for the four display variants. Later variants widen the band and
# raise the confidence gate for a steadier line.
PRESETS = {
    DisplayMode.BARS: DetectorConfig(
        max_pitch=500.0, confidence_threshold=0.3, trail_max_count=200,
    ),
    DisplayMode.HEATMAP: DetectorConfig(
        max_pitch=500.0, confidence_threshold=0.3, trail_max_count=200,
    ),
    DisplayMode.PITCH: DetectorConfig(
        max_pitch=500.0, confidence_threshold=0.5, trail_max_count=300,
    ),
    DisplayMode.CALIBRATED_PITCH: DetectorConfig(
        max_pitch=MAX_PITCH, confidence_threshold=0.6,
        trail_max_count=400, display_inset=0.1,
    ),
}


def preset_for(mode) -> DetectorConfig:
    return PRESETS[DisplayMode(mode)]


def load_config(path, mode=DisplayMode.CALIBRATED_PITCH) -> DetectorConfig:
    """
    Load JSON overrides on top of the preset for `mode`.

    The file holds a flat object of DetectorConfig field names, e.g.
    {"confidence_threshold": 0.55, "max_pitch": 550}.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a JSON object")

    cfg = DetectorConfig.from_dict(data, base=preset_for(mode))
    logger.info("Loaded detector config from %s", path)
    return cfg
