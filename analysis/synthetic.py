import numpy as np


def tone(freq, sr=48000, dur=0.05, amp=0.5):
    """
    Pure sine tone.

    Parameters
    ----------
    freq : float
        Frequency in Hz.
    sr : int
        Sample rate.
    dur : float
        Duration in seconds.
    amp : float
        Peak amplitude, within [-1, 1].

    Returns
    -------
    np.ndarray
        The audio signal.
    """
    t = np.arange(int(sr * dur)) / sr
    return amp * np.sin(2 * np.pi * freq * t)


def voiced(freq, sr=48000, dur=0.05, amp=0.5, harmonics=4):
    """Sine with decaying harmonics, closer to a sung vowel than a pure tone."""
    t = np.arange(int(sr * dur)) / sr
    sig = np.zeros_like(t)
    for h in range(1, harmonics + 1):
        sig += np.sin(2 * np.pi * freq * h * t) / h
    return amp * sig / np.max(np.abs(sig))


def glide(f_start, f_end, sr=48000, dur=1.0, amp=0.5):
    """Linear frequency sweep with continuous phase."""
    n = int(sr * dur)
    freqs = np.linspace(f_start, f_end, n, endpoint=False)
    phase = 2 * np.pi * np.cumsum(freqs) / sr
    return amp * np.sin(phase)


def silence(sr=48000, dur=0.05, noise=0.0, seed=None):
    n = int(sr * dur)
    if noise <= 0:
        return np.zeros(n)
    rng = np.random.default_rng(seed)
    return noise * rng.standard_normal(n)


def chunked(signal, hop):
    """Split a signal into consecutive `hop`-sized blocks (last one dropped if short)."""
    signal = np.asarray(signal, dtype=float)
    for start in range(0, signal.size - hop + 1, hop):
        yield signal[start:start + hop]
