"""Bar-length estimation from beat accent periodicity."""

import numpy as np

from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import OnsetDetectionOptions, RhythmicPattern
from beatsync.analysis.tempo import detect_beats
from beatsync.audio.recording import AudioRecording
from beatsync.timing import beat_grid, seconds_per_beat

CANDIDATE_BEATS_PER_BAR = (2, 3, 4, 5, 6, 7)
DEFAULT_BEATS_PER_BAR = 4


def compute_beat_energies(
    beat_times: list[float],
    audio: np.ndarray,
    sr: int,
    window_ms: float = 30.0,
) -> np.ndarray:
    """Compute RMS energy in a window around each beat position.

    Uses raw audio amplitude rather than spectral flux, giving more
    reliable accent detection (especially for percussive sounds).
    """
    if not beat_times:
        return np.array([])
    window_samples = int(window_ms / 1000.0 * sr)
    energies = np.zeros(len(beat_times))
    for i, bt in enumerate(beat_times):
        center = int(bt * sr)
        start = max(0, center - window_samples)
        end = min(len(audio), center + window_samples)
        if end > start:
            energies[i] = float(np.sqrt(np.mean(audio[start:end] ** 2)))
    return energies


def accent_periodicity(beat_energies: np.ndarray) -> dict[int, float]:
    """Autocorrelate beat energies at bar-length lags.

    For 3/4 with accented downbeats the energy sequence is
    [H, L, L, H, L, L, ...] and the autocorrelation peaks at lag=3.
    Returns beats_per_bar -> score normalized to a maximum of 1.
    """
    scores: dict[int, float] = {}

    if len(beat_energies) < 8:
        return scores

    be = beat_energies.astype(np.float64)
    be -= np.mean(be)
    norm = np.sum(be ** 2)
    if norm < 1e-10:
        return scores

    n = len(be)
    autocorr = np.correlate(be, be, mode="full")[n - 1:]
    autocorr = autocorr / autocorr[0]

    raw_peaks: dict[int, float] = {}
    for beats_per_bar in CANDIDATE_BEATS_PER_BAR:
        if beats_per_bar >= n:
            continue
        peak = float(autocorr[beats_per_bar])
        if peak > 0.02:
            raw_peaks[beats_per_bar] = peak

    if not raw_peaks:
        return scores

    # The shortest period with a clear peak is the bar, its multiples are
    # repeats of it: boost the fundamental and damp the multiples.
    fundamentals: set[int] = set()
    for bpb in sorted(raw_peaks):
        if any(bpb % fund == 0 for fund in fundamentals):
            continue
        if raw_peaks[bpb] > 0.05:
            fundamentals.add(bpb)
            raw_peaks[bpb] *= 1.4
            for mult in range(2, 5):
                if bpb * mult in raw_peaks:
                    raw_peaks[bpb * mult] *= 0.5

    max_score = max(raw_peaks.values())
    return {bpb: peak / max_score for bpb, peak in raw_peaks.items()}


def _bar_subdivisions(onsets: list[float], bar_seconds: float, phase: float) -> list[list[float]]:
    """Inter-onset intervals inside each bar."""
    bars: dict[int, list[float]] = {}
    for t in onsets:
        if t < phase:
            continue
        bars.setdefault(int((t - phase) // bar_seconds), []).append(t)
    return [
        [round(b - a, 4) for a, b in zip(times, times[1:])]
        for _, times in sorted(bars.items())
    ]


def detect_rhythmic_pattern(
    recording: AudioRecording | None,
    options: OnsetDetectionOptions | None = None,
    context: AnalysisContext | None = None,
) -> RhythmicPattern | None:
    """Estimate beats per bar (x/4) and the onset subdivisions of each bar.

    Falls back to 4/4 when the accents show no periodicity.
    """
    detection = detect_beats(recording, options, context)
    if detection is None:
        return None

    spb = seconds_per_beat(detection.bpm)
    phase = detection.onsets[0] % spb if detection.onsets else 0.0
    grid = beat_grid(detection.bpm, recording.duration, phase)
    energies = compute_beat_energies(grid, recording.mono(), recording.sample_rate)

    scores = accent_periodicity(energies)
    beats_per_bar = max(scores, key=lambda k: (scores[k], -k)) if scores else DEFAULT_BEATS_PER_BAR

    return RhythmicPattern(
        beats_per_bar=beats_per_bar,
        beat_unit=4,
        subdivisions=_bar_subdivisions(detection.onsets, spb * beats_per_bar, phase),
    )
