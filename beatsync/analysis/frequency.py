"""Frequency-domain analysis of a recording."""

import logging

import librosa
import numpy as np
from scipy.signal import lfilter

from beatsync.analysis.context import AnalysisContext, resolve_fft_size
from beatsync.analysis.models import FrequencyAnalysisOptions, FrequencyAnalysisResult
from beatsync.audio.recording import AudioRecording

logger = logging.getLogger(__name__)

_MIN_MAGNITUDE = 1e-10  # -200 dB floor


def frequency_bins(sample_rate: int, fft_size: int) -> np.ndarray:
    """Centre frequency in Hz of each FFT bin."""
    return librosa.fft_frequencies(sr=sample_rate, n_fft=fft_size)


def _smooth_frames(mag: np.ndarray, smoothing: float) -> np.ndarray:
    """Recursive averaging across frames: y[n] = (1 - s) * x[n] + s * y[n - 1].

    The filter state starts at the first frame so that heavy smoothing does
    not drag the average towards silence.
    """
    if smoothing <= 0.0 or mag.shape[1] < 2:
        return mag
    zi = smoothing * mag[:, :1]
    smoothed, _ = lfilter([1.0 - smoothing], [1.0, -smoothing], mag, axis=1, zi=zi)
    return smoothed


def analyze_frequency(
    recording: AudioRecording | None,
    options: FrequencyAnalysisOptions | None = None,
    context: AnalysisContext | None = None,
) -> FrequencyAnalysisResult | None:
    """Average magnitude spectrum of a recording.

    Returns None when there is no recording to analyze. An unsupported
    ``fft_size`` is replaced by the default (see ``resolve_fft_size``).
    """
    if recording is None:
        logger.error("No recording supplied for frequency analysis")
        return None

    context = context or AnalysisContext()
    options = options or FrequencyAnalysisOptions(fft_size=context.fft_size)
    fft_size = resolve_fft_size(options.fft_size)
    smoothing = float(np.clip(options.smoothing_time_constant, 0.0, 1.0))
    sr = recording.sample_rate

    window = context.window(fft_size)
    stft = librosa.stft(
        recording.mono().astype(np.float32),
        n_fft=fft_size,
        hop_length=max(1, fft_size // 4),
        window=window,
        center=True,
    )
    # Scale so a full-scale sine reads ~0 dB
    mag = np.abs(stft) * (2.0 / float(np.sum(window)))
    spectrum = _smooth_frames(mag, smoothing).mean(axis=1)

    freqs = frequency_bins(sr, fft_size)
    mask = np.ones(len(freqs), dtype=bool)
    if options.min_frequency is not None:
        mask &= freqs >= options.min_frequency
    if options.max_frequency is not None:
        mask &= freqs <= options.max_frequency

    linear = np.maximum(spectrum[mask], _MIN_MAGNITUDE)
    db = 20.0 * np.log10(linear)

    if len(linear) == 0 or np.ptp(db) == 0:
        normalized = np.zeros(len(linear))
    else:
        normalized = linear / linear.max()

    return FrequencyAnalysisResult(
        frequencies=freqs[mask].astype(float).tolist(),
        magnitudes=db.astype(float).tolist(),
        normalized_magnitudes=normalized.astype(float).tolist(),
        fft_size=fft_size,
        sample_rate=sr,
    )
