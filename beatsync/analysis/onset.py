"""Onset detection from a framewise energy-flux curve."""

import librosa
import numpy as np
from scipy.signal import find_peaks

from beatsync.analysis.context import AnalysisContext

# Peak picking windows, in seconds
_REFRACTORY_SECONDS = 0.05
# Fraction of the curve maximum below which nothing counts as an onset
# (scaled by 1 - sensitivity)
_ABSOLUTE_FLOOR = 0.2


def onset_strength_curve(
    audio: np.ndarray,
    sr: int,
    context: AnalysisContext | None = None,
) -> tuple[np.ndarray, float]:
    """Half-wave rectified first difference of framewise RMS energy.

    Returns (curve, rate) where curve is normalized to a maximum of 1 (all
    zeros for silence) and rate is the number of curve frames per second.
    """
    context = context or AnalysisContext()
    frame_length = context.onset_frame_length(sr)
    hop_length = context.onset_hop_length(sr)

    rms = librosa.feature.rms(
        y=np.asarray(audio, dtype=np.float32),
        frame_length=frame_length,
        hop_length=hop_length,
        center=True,
    )[0].astype(np.float64)

    # Treat the signal as starting from silence so an attack at t=0 registers
    curve = np.maximum(0.0, np.diff(rms, prepend=0.0))

    max_val = curve.max() if len(curve) else 0.0
    if max_val > 0:
        curve = curve / max_val
    return curve, sr / hop_length


def onset_threshold(curve: np.ndarray, sensitivity: float) -> float:
    """Minimum curve value for a peak to count as an onset.

    Higher sensitivity lowers both the percentile and the absolute floor.
    """
    if len(curve) == 0:
        return 0.0
    percentile = float(np.quantile(curve, 1.0 - sensitivity))
    floor = _ABSOLUTE_FLOOR * (1.0 - sensitivity) * float(curve.max())
    return max(percentile, floor)


def pick_onsets(curve: np.ndarray, rate: float, sensitivity: float = 0.5) -> np.ndarray:
    """Times (seconds, strictly increasing) of local maxima above the threshold."""
    if len(curve) == 0 or curve.max() <= 0:
        return np.zeros(0)

    threshold = onset_threshold(curve, sensitivity)
    wait = max(1, int(round(_REFRACTORY_SECONDS * rate)))

    # Zero padding lets a peak on the first or last frame be found
    padded = np.concatenate([[0.0], curve, [0.0]])
    peaks, _ = find_peaks(padded, height=max(threshold, np.finfo(float).tiny), distance=wait)
    return (peaks - 1) / rate


def detect_onsets(
    audio: np.ndarray,
    sr: int,
    sensitivity: float = 0.5,
    context: AnalysisContext | None = None,
) -> tuple[np.ndarray, np.ndarray, float]:
    """Detect onsets in audio.

    Returns (onset_times, curve, rate).
    """
    curve, rate = onset_strength_curve(audio, sr, context)
    return pick_onsets(curve, rate, sensitivity), curve, rate
