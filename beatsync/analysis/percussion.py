"""Band-limited percussion classification.

Kick and hi-hat hits are found as onsets of low-pass and high-pass copies of
the signal. Snares are broadband onsets that sound noisy (high spectral
flatness) and carry mid-band energy. Any broadband onset left over is a
generic transient.
"""

import logging

import librosa
import numpy as np

from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import TranscriptionElement
from beatsync.analysis.onset import detect_onsets
from beatsync.audio.preprocessing import band_pass_filter, high_pass_filter, low_pass_filter
from beatsync.audio.recording import AudioRecording
from beatsync.config import settings

logger = logging.getLogger(__name__)

# A filtered band quieter than this fraction of the full signal is treated as
# empty; normalizing a near-silent curve would otherwise turn filter leakage
# into onsets.
_MIN_BAND_RATIO = 0.2
# Window after each onset used for the snare checks, in seconds
_SNARE_WINDOW = 0.05
_FLATNESS_FFT = 2048
# Mid-band share of the post-onset energy needed to count as a snare
_MIN_MID_RATIO = 0.1
_MID_LOW_HZ = 150.0
_MID_HIGH_HZ = 5000.0


def _rms(x: np.ndarray) -> float:
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64)))) if len(x) else 0.0


def _band_onsets(
    band: np.ndarray,
    full_rms: float,
    sr: int,
    sensitivity: float,
    context: AnalysisContext,
) -> np.ndarray:
    if full_rms <= 0 or _rms(band) < _MIN_BAND_RATIO * full_rms:
        return np.zeros(0)
    onsets, _, _ = detect_onsets(band, sr, sensitivity, context)
    return onsets


def spectral_flatness_at(audio: np.ndarray, sr: int, time: float, window: float = _SNARE_WINDOW) -> float:
    """Spectral flatness of the *window* seconds following *time*.

    The window is analysed as a single frame so that silence after a short
    hit does not read as white noise.
    """
    start = int(time * sr)
    segment = audio[start:start + max(1, int(window * sr))].astype(np.float32)
    if len(segment) == 0 or not np.any(segment):
        return 0.0
    segment = librosa.util.pad_center(segment[:_FLATNESS_FFT], size=_FLATNESS_FFT)
    spectrum = np.abs(librosa.stft(
        segment, n_fft=_FLATNESS_FFT, hop_length=_FLATNESS_FFT, center=False,
    ))
    return float(librosa.feature.spectral_flatness(S=spectrum)[0, 0])


def _is_snare(audio: np.ndarray, mid: np.ndarray, sr: int, time: float) -> bool:
    if spectral_flatness_at(audio, sr, time) < settings.snare_flatness:
        return False
    start = int(time * sr)
    stop = start + max(1, int(_SNARE_WINDOW * sr))
    full = _rms(audio[start:stop])
    return full > 0 and _rms(mid[start:stop]) >= _MIN_MID_RATIO * full


def unmatched(times: np.ndarray, others: np.ndarray, tolerance: float) -> np.ndarray:
    """Entries of *times* with no entry of *others* within *tolerance* seconds."""
    if len(times) == 0 or len(others) == 0:
        return np.asarray(times, dtype=float)
    others = np.sort(others)
    idx = np.clip(np.searchsorted(others, times), 1, len(others) - 1)
    nearest = np.minimum(np.abs(times - others[idx - 1]), np.abs(times - others[idx]))
    return np.asarray(times, dtype=float)[nearest > tolerance]


def clean_markers(times, duration: float) -> list[float]:
    """Sort, deduplicate at millisecond precision and clip to [0, duration]."""
    rounded = {round(float(t), 3) for t in times}
    return sorted(t for t in rounded if 0.0 <= t <= duration)


def classify_percussion(
    recording: AudioRecording,
    elements,
    sensitivity: float = 0.5,
    context: AnalysisContext | None = None,
) -> dict[TranscriptionElement, list[float]]:
    """Onset times per requested percussion element.

    Only KICK, SNARE, HIHAT and TRANSIENT are handled; other entries of
    *elements* are ignored.
    """
    context = context or AnalysisContext()
    elements = {TranscriptionElement(e) for e in elements}
    audio = recording.mono().astype(np.float64)
    sr = recording.sample_rate
    full_rms = _rms(audio)

    kick = _band_onsets(
        low_pass_filter(audio, sr, cutoff=settings.kick_cutoff_hz), full_rms, sr, sensitivity, context,
    )
    hihat = _band_onsets(
        high_pass_filter(audio, sr, cutoff=settings.hihat_cutoff_hz), full_rms, sr, sensitivity, context,
    )

    broadband, _, _ = detect_onsets(audio, sr, sensitivity, context)
    mid = band_pass_filter(audio, sr, _MID_LOW_HZ, _MID_HIGH_HZ)
    snare = np.array([t for t in broadband if _is_snare(audio, mid, sr, t)], dtype=float)

    tolerance = settings.onset_match_tolerance
    classified = np.concatenate([kick, snare, hihat])
    transient = unmatched(broadband, classified, tolerance)

    logger.debug(
        f"Percussion: {len(kick)} kick, {len(snare)} snare, {len(hihat)} hihat, "
        f"{len(transient)} transient of {len(broadband)} onsets"
    )

    found = {
        TranscriptionElement.KICK: kick,
        TranscriptionElement.SNARE: snare,
        TranscriptionElement.HIHAT: hihat,
        TranscriptionElement.TRANSIENT: transient,
    }
    return {
        element: clean_markers(times, recording.duration)
        for element, times in found.items()
        if element in elements
    }
