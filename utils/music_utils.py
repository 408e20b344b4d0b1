import numpy as np

from analysis.config import FrequencyRange

A4_HZ = 440.0

# Equal-tempered names counted up from A
NOTE_NAMES_FROM_A = ["A", "A#", "B", "C", "C#", "D",
                     "D#", "E", "F", "F#", "G", "G#"]

NO_NOTE = "--"


# -------------------------
# Pitch to note
# -------------------------


def hz_to_midi(f0):
    """Convert frequency in Hz to MIDI note number."""
    if f0 is None or f0 <= 0:
        return None
    return int(round(69 + 12 * np.log2(f0 / A4_HZ)))


def semitones_from_a4(freq):
    if freq is None or freq <= 0:
        return None
    return int(round(12 * np.log2(freq / A4_HZ)))


def freq_to_note_name(freq: float) -> str:
    """
    Approximate note label for a frequency, anchored at A4 = 440 Hz.

    The octave number advances at A rather than C, so labels between C and
    G# read one octave low compared with scientific pitch notation.
    """
    semitones = semitones_from_a4(freq)
    if semitones is None:
        return NO_NOTE
    name = NOTE_NAMES_FROM_A[((semitones % 12) + 12) % 12]
    octave = semitones // 12 + 4
    return f"{name}{octave}"


def cents_off(freq):
    """Deviation in cents from the nearest equal-tempered note."""
    semitones = semitones_from_a4(freq)
    if semitones is None:
        return None
    exact = 12 * np.log2(freq / A4_HZ)
    return float(100.0 * (exact - semitones))


# -------------------------
# Frequency to screen
# -------------------------


class FrequencyMapper:
    """
    Map frequencies onto a display axis.

    `inset` keeps the line away from the edges (0.1 → the range occupies the
    middle 80% of the extent). With `invert=True` coordinates are
    screen-style: the low extreme of the range lands on `high_bound`, which is
    the bottom of a canvas whose y axis grows downward.
    """

    def __init__(self, low_bound=0.0, high_bound=1.0, inset=0.0, invert=False):
        if not 0.0 <= inset < 0.5:
            raise ValueError("inset must lie in [0, 0.5)")
        self.low_bound = float(low_bound)
        self.high_bound = float(high_bound)
        self.inset = float(inset)
        self.invert = bool(invert)

    def normalize(self, frequency, freq_range) -> float:
        min_hz, max_hz = freq_range.min_hz, freq_range.max_hz
        span = max_hz - min_hz
        if span <= 0:
            return 0.5
        return float(np.clip((frequency - min_hz) / span, 0.0, 1.0))

    def to_display_position(self, frequency, freq_range: FrequencyRange) -> float:
        n = self.normalize(frequency, freq_range)
        n = self.inset + n * (1.0 - 2.0 * self.inset)
        if self.invert:
            n = 1.0 - n
        return self.low_bound + n * (self.high_bound - self.low_bound)

    def to_note_name(self, frequency) -> str:
        return freq_to_note_name(frequency)

    def grid_lines(self, freq_range: FrequencyRange, step_hz=50.0):
        """(frequency, position) pairs for reference lines across the range."""
        start = np.ceil(freq_range.min_hz / step_hz) * step_hz
        freqs = np.arange(start, freq_range.max_hz + 1e-9, step_hz)
        return [(float(f), self.to_display_position(f, freq_range)) for f in freqs]
