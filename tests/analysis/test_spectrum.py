import numpy as np
import pytest

from analysis.spectrum import (
    SpectrogramHistory,
    SpectrumAnalyzer,
    audio_level,
    frequency_bars,
)
from analysis.synthetic import tone


# ----------------------------------------------------------------------
# SpectrumAnalyzer
# ----------------------------------------------------------------------

def test_byte_data_shape_and_type():
    sa = SpectrumAnalyzer(fft_size=2048, sample_rate=48000)
    data = sa.byte_frequency_data(np.zeros(2048))
    assert data.shape == (1024,)
    assert data.dtype == np.uint8
    assert sa.frequency_bin_count == 1024


def test_silence_maps_to_zero():
    sa = SpectrumAnalyzer()
    assert not sa.byte_frequency_data(np.zeros(2048)).any()


def test_tone_peaks_at_its_bin():
    sr = 48000
    sa = SpectrumAnalyzer(fft_size=2048, sample_rate=sr)
    data = sa.byte_frequency_data(tone(1000, sr, dur=0.05))

    peak = int(np.argmax(data))
    freqs = sa.bin_frequencies()
    assert abs(freqs[peak] - 1000) <= sr / 2048
    assert data[peak] > 100


def test_smoothing_builds_up_over_calls():
    sr = 48000
    sa = SpectrumAnalyzer(sample_rate=sr, smoothing_time_constant=0.8)
    sig = tone(1000, sr, dur=0.05)
    first = sa.byte_frequency_data(sig)
    second = sa.byte_frequency_data(sig)
    peak = int(np.argmax(second))
    assert second[peak] > first[peak]


def test_no_smoothing_is_stateless():
    sr = 48000
    sa = SpectrumAnalyzer(sample_rate=sr, smoothing_time_constant=0.0)
    sig = tone(700, sr, dur=0.05)
    assert np.array_equal(sa.byte_frequency_data(sig), sa.byte_frequency_data(sig))


def test_reset_clears_smoothing():
    sr = 48000
    sa = SpectrumAnalyzer(sample_rate=sr)
    sig = tone(700, sr, dur=0.05)
    first = sa.byte_frequency_data(sig)
    sa.byte_frequency_data(sig)
    sa.reset()
    assert np.array_equal(sa.byte_frequency_data(sig), first)


def test_short_input_is_front_padded():
    sa = SpectrumAnalyzer(fft_size=256, sample_rate=8000)
    data = sa.byte_frequency_data(tone(1000, 8000, dur=0.01))  # 80 samples
    assert data.shape == (128,)


def test_invalid_decibel_range():
    with pytest.raises(ValueError):
        SpectrumAnalyzer(min_decibels=0.0, max_decibels=-10.0)


# ----------------------------------------------------------------------
# Bars + level
# ----------------------------------------------------------------------

def test_frequency_bars_sample_every_step():
    data = np.arange(64, dtype=np.uint8)
    bars = frequency_bars(data, bar_count=32)
    assert bars.shape == (32,)
    assert bars[1] == pytest.approx(2 / 255)
    assert bars[-1] == pytest.approx(62 / 255)


def test_frequency_bars_full_scale():
    bars = frequency_bars(np.full(1024, 255, dtype=np.uint8))
    assert np.allclose(bars, 1.0)


def test_frequency_bars_fewer_bins_than_bars():
    bars = frequency_bars(np.array([255, 0], dtype=np.uint8), bar_count=4)
    assert bars.shape == (4,)
    assert bars.max() <= 1.0


def test_frequency_bars_empty():
    assert frequency_bars(np.array([]), bar_count=8).tolist() == [0.0] * 8


def test_audio_level_range():
    assert audio_level(np.full(16, 255)) == pytest.approx(100.0)
    assert audio_level(np.zeros(16)) == 0.0
    assert audio_level([]) == 0.0


# ----------------------------------------------------------------------
# Heat-map history
# ----------------------------------------------------------------------

def test_spectrogram_history_is_bounded():
    hist = SpectrogramHistory(max_rows=3)
    for i in range(5):
        hist.push(np.full(4, i, dtype=np.uint8))

    arr = hist.as_array()
    assert len(hist) == 3
    assert arr.shape == (3, 4)
    assert arr[:, 0].tolist() == [2, 3, 4]


def test_spectrogram_history_copies_rows():
    hist = SpectrogramHistory(max_rows=2)
    row = np.zeros(4, dtype=np.uint8)
    hist.push(row)
    row[:] = 9
    assert not hist.as_array().any()


def test_spectrogram_history_empty_and_clear():
    hist = SpectrogramHistory()
    assert hist.as_array().shape == (0, 0)
    hist.push(np.ones(3, dtype=np.uint8))
    hist.clear()
    assert len(hist) == 0
