# tuner/live_analyzer.py
import logging
from typing import NamedTuple, Optional

from analysis.config import DetectorConfig, DisplayMode
from analysis.pitch import PitchDetector, PitchEstimate
from analysis.smoothing import PitchSmoother, SmoothedPitch, SmoothedSample
from analysis.spectrum import (
    SpectrogramHistory,
    SpectrumAnalyzer,
    audio_level,
    frequency_bars,
)
from calibration.state_machine import RangeCalibrator
from tuner.history import HistoryTrail
from utils.music_utils import FrequencyMapper, freq_to_note_name

logger = logging.getLogger(__name__)


class FrameResult(NamedTuple):
    timestamp: float
    estimate: PitchEstimate
    smoothed: SmoothedPitch
    calibration: object
    position: Optional[float]
    note: Optional[str]
    level: float = 0.0
    bars: Optional[tuple] = None


class LiveAnalyzer:
    """
    Pass each frame through:
      - pitch detection (energy + confidence gated)
      - range calibration (calibrated display mode only)
      - pitch smoothing with direction + fade-out
      - trail history
      - spectrum views (bars / heat-map display modes only)
    """

    def __init__(self, detector, calibrator, smoother, trail, mapper,
                 mode=DisplayMode.PITCH, spectrum=None, heatmap=None, bar_count=32):
        self.detector = detector
        self.calibrator = calibrator
        self.smoother = smoother
        self.trail = trail
        self.mapper = mapper
        self.mode = DisplayMode(mode)
        self.spectrum = spectrum
        self.heatmap = heatmap
        self.bar_count = int(bar_count)
        self.latest: Optional[FrameResult] = None

    @classmethod
    def from_config(cls, config: DetectorConfig, mode=DisplayMode.PITCH, now=0.0):
        mode = DisplayMode(mode)
        spectrum = heatmap = None
        if mode.wants_spectrum:
            spectrum = SpectrumAnalyzer(
                fft_size=config.fft_size,
                sample_rate=config.sample_rate,
                smoothing_time_constant=config.smoothing_time_constant,
                min_decibels=config.min_decibels,
                max_decibels=config.max_decibels,
            )
            if mode is DisplayMode.HEATMAP:
                heatmap = SpectrogramHistory(config.heatmap_rows)

        return cls(
            detector=PitchDetector(config),
            calibrator=RangeCalibrator(
                now=now,
                duration=config.calibration_duration,
                min_span=config.min_span,
                band=config.band,
            ),
            smoother=PitchSmoother(
                window=config.rolling_window,
                alpha=config.lerp_factor,
                min_change=config.min_change_threshold,
            ),
            trail=HistoryTrail(config.trail_max_age, config.trail_max_count),
            mapper=FrequencyMapper(inset=config.display_inset),
            mode=mode,
            spectrum=spectrum,
            heatmap=heatmap,
            bar_count=config.bar_count,
        )

    def active_range(self):
        if self.mode.uses_calibration:
            return self.calibrator.active_range()
        return self.calibrator.band

    def process_frame(self, frame, now=None) -> FrameResult:
        if now is None:
            if frame.timestamp is None:
                raise ValueError("frame has no timestamp and no `now` was given")
            now = frame.timestamp
        now = float(now)

        # ---------------- Detect ----------------
        estimate = self.detector.detect(frame)

        # ---------------- Calibrate ----------------
        if self.mode.uses_calibration:
            calibration = self.calibrator.observe(estimate, now)
        else:
            calibration = self.calibrator.state

        # ---------------- Smooth ----------------
        smoothed = self.smoother.update(estimate, now)

        # ---------------- Trail ----------------
        if smoothed.displayed is not None:
            self.trail.append(SmoothedSample(smoothed.displayed, now))
        else:
            self.trail.prune(now)

        # ---------------- Map ----------------
        position = note = None
        if smoothed.displayed is not None:
            position = self.mapper.to_display_position(
                smoothed.displayed, self.active_range()
            )
            note = freq_to_note_name(smoothed.displayed)

        # ---------------- Spectrum views ----------------
        level = min(100.0, estimate.rms ** 0.5 * 100.0)
        bars = None
        if self.spectrum is not None:
            data = self.spectrum.byte_frequency_data(frame.samples)
            level = audio_level(data)
            bars = tuple(frequency_bars(data, self.bar_count))
            if self.heatmap is not None:
                self.heatmap.push(data)

        result = FrameResult(
            timestamp=now,
            estimate=estimate,
            smoothed=smoothed,
            calibration=calibration,
            position=position,
            note=note,
            level=level,
            bars=bars,
        )
        self.latest = result
        return result

    def recalibrate(self, now):
        self.calibrator.reset(now)

    def reset(self, now=0.0):
        """Reset all per-session state, e.g. between recordings."""
        self.smoother.reset()
        self.trail.clear()
        self.calibrator.reset(now)
        if self.spectrum is not None:
            self.spectrum.reset()
        if self.heatmap is not None:
            self.heatmap.clear()
        self.latest = None
