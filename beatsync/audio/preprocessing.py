"""Audio preprocessing utilities."""

from __future__ import annotations

import numpy as np
from scipy.signal import butter, sosfilt


def _nyquist_safe(cutoff: float, sr: int) -> float:
    # butter() requires 0 < Wn < fs/2
    return float(min(max(cutoff, 1.0), sr / 2.0 * 0.99))


def low_pass_filter(
    audio: np.ndarray,
    sr: int,
    cutoff: float = 150.0,
) -> np.ndarray:
    """Apply a 4th-order Butterworth low-pass filter.

    Parameters
    ----------
    audio:
        Input audio signal.
    sr:
        Sample rate in Hz.
    cutoff:
        Low-pass cutoff frequency in Hz. Defaults to 150 Hz (kick band).
    """
    sos = butter(N=4, Wn=_nyquist_safe(cutoff, sr), btype="low", fs=sr, output="sos")
    return sosfilt(sos, audio)


def high_pass_filter(
    audio: np.ndarray,
    sr: int,
    cutoff: float = 5000.0,
) -> np.ndarray:
    """Apply a 4th-order Butterworth high-pass filter.

    Parameters
    ----------
    audio:
        Input audio signal.
    sr:
        Sample rate in Hz.
    cutoff:
        High-pass cutoff frequency in Hz. Defaults to 5 kHz (hi-hat band).
    """
    sos = butter(N=4, Wn=_nyquist_safe(cutoff, sr), btype="high", fs=sr, output="sos")
    return sosfilt(sos, audio)


def band_pass_filter(
    audio: np.ndarray,
    sr: int,
    low: float,
    high: float,
) -> np.ndarray:
    """Apply a 4th-order Butterworth band-pass filter between *low* and *high* Hz."""
    low = _nyquist_safe(low, sr)
    high = _nyquist_safe(high, sr)
    if high <= low:
        return high_pass_filter(audio, sr, cutoff=low)
    sos = butter(N=4, Wn=[low, high], btype="band", fs=sr, output="sos")
    return sosfilt(sos, audio)
