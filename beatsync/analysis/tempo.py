"""Tempo estimation by autocorrelation of the onset-strength curve."""

import math

import librosa
import numpy as np

from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import OnsetDetectionOptions, OnsetDetectionResult
from beatsync.analysis.onset import onset_strength_curve, pick_onsets
from beatsync.audio.recording import AudioRecording
from beatsync.config import settings

# Lags within this many frames (or this fraction of the lag) of an integer
# multiple of the winning lag belong to the same periodicity.
_HARMONIC_TOL_FRAMES = 2
_HARMONIC_TOL_RATIO = 0.04


def _tempo_prior(bpms: np.ndarray, start_bpm: float) -> np.ndarray:
    """Log-normal weighting centred on start_bpm with a one-octave spread."""
    return np.exp(-0.5 * np.log2(bpms / start_bpm) ** 2)


def _is_harmonic(lag: float, reference: float) -> bool:
    hi, lo = max(lag, reference), min(lag, reference)
    k = round(hi / lo)
    if k < 1:
        return False
    return abs(hi - k * lo) <= max(_HARMONIC_TOL_FRAMES, _HARMONIC_TOL_RATIO * hi)


def _parabolic_offset(left: float, centre: float, right: float) -> float:
    """Sub-frame offset of a peak from three neighbouring samples."""
    denom = left - 2.0 * centre + right
    if denom == 0:
        return 0.0
    return float(np.clip(0.5 * (left - right) / denom, -0.5, 0.5))


def estimate_tempo(
    curve: np.ndarray,
    rate: float,
    min_bpm: float,
    max_bpm: float,
    start_bpm: float | None = None,
) -> tuple[float, float]:
    """Estimate (bpm, confidence) from an onset-strength curve.

    The BPM always lies in [min_bpm, max_bpm]. Confidence compares the
    winning autocorrelation peak against the strongest peak that is not a
    multiple or divisor of it; 0.0 means no periodicity was found.
    """
    start_bpm = settings.start_bpm if start_bpm is None else start_bpm
    fallback = float(np.clip(start_bpm, min_bpm, max_bpm))

    if len(curve) < 2 or curve.max() <= 0:
        return fallback, 0.0

    min_lag = max(1, math.ceil(60.0 * rate / max_bpm))
    max_lag = min(math.floor(60.0 * rate / min_bpm), len(curve) - 1)
    if min_lag > max_lag:
        return fallback, 0.0

    centred = curve - curve.mean()
    ac = librosa.autocorrelate(centred, max_size=max_lag + 1)
    if ac[0] <= 0:
        return fallback, 0.0

    lags = np.arange(min_lag, max_lag + 1)
    weighted = ac[lags] * _tempo_prior(60.0 * rate / lags, start_bpm)

    best = int(np.argmax(weighted))
    peak = float(weighted[best])
    if peak <= 0:
        return fallback, 0.0

    lag = float(lags[best])
    if 0 < best < len(lags) - 1:
        lag += _parabolic_offset(weighted[best - 1], peak, weighted[best + 1])

    bpm = float(np.clip(round(60.0 * rate / lag, 1), min_bpm, max_bpm))

    # Strongest local maximum outside the winner's harmonic family
    competitor = 0.0
    for i in range(1, len(lags) - 1):
        if weighted[i] > weighted[i - 1] and weighted[i] >= weighted[i + 1]:
            if not _is_harmonic(float(lags[i]), float(lags[best])):
                competitor = max(competitor, float(weighted[i]))

    confidence = float(np.clip((peak - competitor) / peak, 0.0, 1.0))
    return bpm, round(confidence, 3)


def detect_beats(
    recording: AudioRecording | None,
    options: OnsetDetectionOptions | None = None,
    context: AnalysisContext | None = None,
) -> OnsetDetectionResult | None:
    """Estimate tempo and onsets of a recording.

    Deterministic: the same recording and options always give the same result.
    """
    if recording is None:
        return None

    options = options or OnsetDetectionOptions()
    curve, rate = onset_strength_curve(recording.mono(), recording.sample_rate, context)
    onsets = pick_onsets(curve, rate, options.sensitivity)
    bpm, confidence = estimate_tempo(curve, rate, options.min_bpm, options.max_bpm)

    return OnsetDetectionResult(
        bpm=bpm,
        confidence=confidence,
        onsets=[float(t) for t in onsets],
        onset_curve=curve,
        curve_rate=rate,
    )


def estimate_bpm(
    recording: AudioRecording,
    options: OnsetDetectionOptions | None = None,
    context: AnalysisContext | None = None,
) -> float:
    """Autocorrelation tempo estimate only, skipping onset peak picking."""
    options = options or OnsetDetectionOptions()
    curve, rate = onset_strength_curve(recording.mono(), recording.sample_rate, context)
    bpm, _ = estimate_tempo(curve, rate, options.min_bpm, options.max_bpm)
    return bpm
