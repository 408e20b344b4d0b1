# tuner/controller.py
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from analysis.config import DetectorConfig, DisplayMode, preset_for
from analysis.frames import FrameBuffer, SampleFrame
from tuner.live_analyzer import FrameResult, LiveAnalyzer

logger = logging.getLogger(__name__)

IDLE = "idle"
RECORDING = "recording"
RECORDED = "recorded"


def format_time(seconds) -> str:
    """Elapsed seconds as MM:SS."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


class Session:
    """Everything that lives for one recording: created on start, dropped on stop."""

    def __init__(self, generation, config, mode, started_at):
        self.generation = generation
        self.started_at = float(started_at)
        self.frame_buffer = FrameBuffer(config.frame_size, config.sample_rate)
        self.analyzer = LiveAnalyzer.from_config(config, mode, now=started_at)
        self.frames_processed = 0


@dataclass(frozen=True)
class TunerSnapshot:
    """Read-only view of the tuner for the render loop."""

    state: str
    mode: DisplayMode
    generation: Optional[int]
    elapsed: float
    latest: Optional[FrameResult]
    calibration: object
    active_range: object
    trail: tuple
    heatmap: Optional[np.ndarray] = None

    @property
    def displayed(self):
        return self.latest.smoothed.displayed if self.latest else None

    @property
    def direction(self):
        return self.latest.smoothed.direction if self.latest else None

    @property
    def note(self):
        return self.latest.note if self.latest else None

    @property
    def elapsed_label(self):
        return format_time(self.elapsed)


class Tuner:
    """
    Session owner and single writer of pitch-tracking state.

    The frame cadence calls `process_frame` / `process_samples`; the render
    cadence calls `snapshot`. Both go through one lock, and lifecycle calls
    swap the whole Session under that lock, so a frame can never land in a
    session other than the one it was captured for.
    """

    def __init__(self, config: DetectorConfig = None,
                 mode=DisplayMode.CALIBRATED_PITCH, clock=time.monotonic):
        self.mode = DisplayMode(mode)
        self.config = config or preset_for(self.mode)
        self.clock = clock

        self.state = IDLE
        self._session: Optional[Session] = None
        self._generations = itertools.count(1)
        self._last_elapsed = 0.0
        self._lock = threading.Lock()

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------
    @property
    def generation(self):
        session = self._session
        return session.generation if session else None

    @property
    def is_recording(self):
        return self._session is not None

    def start(self, now=None) -> int:
        """Begin a fresh session (dropping any current one); returns its generation."""
        now = self.clock() if now is None else float(now)
        with self._lock:
            session = Session(next(self._generations), self.config, self.mode, now)
            self._session = session
            self.state = RECORDING
            self._last_elapsed = 0.0
        logger.info("session %d started (mode=%s)", session.generation, self.mode.value)
        return session.generation

    def stop(self, now=None) -> None:
        """Stop recording. Safe to call repeatedly."""
        now = self.clock() if now is None else float(now)
        with self._lock:
            session = self._session
            if session is None:
                return
            self._last_elapsed = max(0.0, now - session.started_at)
            self._session = None
            self.state = RECORDED
        logger.info(
            "session %d stopped after %d frames",
            session.generation, session.frames_processed,
        )

    def clear(self) -> None:
        """Drop any session and return to idle. Safe to call repeatedly."""
        with self._lock:
            session = self._session
            self._session = None
            self.state = IDLE
            self._last_elapsed = 0.0
        if session is not None:
            logger.info("session %d cleared", session.generation)

    def recalibrate(self, now=None) -> bool:
        now = self.clock() if now is None else float(now)
        with self._lock:
            if self._session is None:
                return False
            self._session.analyzer.recalibrate(now)
        return True

    def set_mode(self, mode, config: DetectorConfig = None) -> Optional[int]:
        """
        Switch display mode and preset.

        A running session is replaced by a fresh one in a single step;
        returns its generation, or None when idle.
        """
        mode = DisplayMode(mode)
        config = config or preset_for(mode)
        now = self.clock()
        with self._lock:
            previous = self._session
            self.mode = mode
            self.config = config
            if previous is None:
                return None
            session = Session(next(self._generations), config, mode, now)
            self._session = session
            self.state = RECORDING
            self._last_elapsed = 0.0
        logger.info(
            "session %d replaced by %d (mode=%s)",
            previous.generation, session.generation, mode.value,
        )
        return session.generation

    # ---------------------------------------------------------
    # Frame cadence
    # ---------------------------------------------------------
    def _accepts(self, session, generation, timestamp) -> bool:
        if session is None:
            return False
        if generation is not None and generation != session.generation:
            logger.debug("dropping frame for stale session %s", generation)
            return False
        if timestamp < session.started_at:
            logger.debug(
                "dropping frame stamped %.3f before session start %.3f",
                timestamp, session.started_at,
            )
            return False
        return True

    def process_frame(self, frame: SampleFrame, generation=None) -> Optional[FrameResult]:
        """
        Run one frame through the session pipeline.

        Frames without a timestamp are stamped with the tuner's clock.
        Returns None (and changes nothing) when no session is active, the
        frame belongs to an older session, or it predates the session start.
        """
        timestamp = self.clock() if frame.timestamp is None else frame.timestamp
        with self._lock:
            session = self._session
            if not self._accepts(session, generation, timestamp):
                return None
            result = session.analyzer.process_frame(frame, now=timestamp)
            session.frames_processed += 1
            return result

    def process_samples(self, chunk, timestamp=None, generation=None) -> Optional[FrameResult]:
        """Push a capture block into the session window and process the window."""
        timestamp = self.clock() if timestamp is None else float(timestamp)
        with self._lock:
            session = self._session
            if not self._accepts(session, generation, timestamp):
                return None
            session.frame_buffer.extend(chunk)
            frame = session.frame_buffer.frame(timestamp)
            result = session.analyzer.process_frame(frame)
            session.frames_processed += 1
            return result

    # ---------------------------------------------------------
    # Render cadence
    # ---------------------------------------------------------
    def snapshot(self, now=None) -> TunerSnapshot:
        now = self.clock() if now is None else float(now)
        with self._lock:
            session = self._session
            if session is None:
                return TunerSnapshot(
                    state=self.state,
                    mode=self.mode,
                    generation=None,
                    elapsed=self._last_elapsed,
                    latest=None,
                    calibration=None,
                    active_range=self.config.band,
                    trail=(),
                )

            analyzer = session.analyzer
            heatmap = analyzer.heatmap.as_array() if analyzer.heatmap is not None else None
            return TunerSnapshot(
                state=self.state,
                mode=self.mode,
                generation=session.generation,
                elapsed=max(0.0, now - session.started_at),
                latest=analyzer.latest,
                calibration=analyzer.calibrator.state,
                active_range=analyzer.active_range(),
                trail=analyzer.trail.snapshot(now),
                heatmap=heatmap,
            )
