"""Shared test fixtures for beatsync tests."""

import numpy as np
import pytest

from beatsync.audio.recording import AudioRecording

SR = 22050


def generate_click_track(
    bpm: float,
    beats_per_bar: int = 4,
    duration_seconds: float = 10.0,
    sr: int = SR,
    accent_ratio: float = 2.0,
) -> np.ndarray:
    """Generate a synthetic click track with accented downbeats.

    Returns mono audio at the given sample rate.
    """
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)

    beat_interval = 60.0 / bpm  # seconds per beat
    click_duration = 0.02  # 20ms click
    click_samples = int(click_duration * sr)

    # Create click sound (short sine burst with envelope)
    t_click = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * 1000 * t_click) * np.exp(-t_click * 100)

    n_beats = int(np.ceil(duration_seconds / beat_interval))
    for beat in range(n_beats):
        sample_pos = int(round(beat * beat_interval * sr))
        amplitude = accent_ratio if beat % beats_per_bar == 0 else 1.0
        end = min(sample_pos + click_samples, n_samples)
        length = end - sample_pos
        if length > 0:
            audio[sample_pos:end] += click[:length] * amplitude

    # Normalize
    peak = np.max(np.abs(audio))
    if peak > 0:
        audio = audio / peak

    return audio


def generate_bursts(
    times: list[float],
    kind: str,
    duration_seconds: float,
    sr: int = SR,
    length: float = 0.08,
    seed: int = 0,
) -> np.ndarray:
    """Decaying bursts at *times*: ``"low"`` is a 60 Hz thump, ``"noise"`` white noise."""
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)
    burst_samples = int(length * sr)
    t = np.arange(burst_samples) / sr
    envelope = np.exp(-t * 40)
    rng = np.random.default_rng(seed)

    for time in times:
        if kind == "low":
            burst = np.sin(2 * np.pi * 60 * t) * envelope
        else:
            burst = rng.standard_normal(burst_samples) * envelope
        start = int(round(time * sr))
        end = min(start + burst_samples, n_samples)
        if end > start:
            audio[start:end] += burst[:end - start]

    peak = np.max(np.abs(audio))
    return audio / peak if peak > 0 else audio


@pytest.fixture
def click_120():
    """Evenly accented 120 BPM pulse over 10 seconds."""
    return AudioRecording.from_mono(
        generate_click_track(bpm=120, duration_seconds=10, accent_ratio=1.0), SR,
    )


@pytest.fixture
def click_4_4():
    """Click track in 4/4 at 120 BPM."""
    return AudioRecording.from_mono(generate_click_track(bpm=120, beats_per_bar=4), SR)


@pytest.fixture
def click_3_4():
    """Click track in 3/4 at 100 BPM."""
    return AudioRecording.from_mono(generate_click_track(bpm=100, beats_per_bar=3), SR)


@pytest.fixture
def silence():
    """Two seconds of digital silence."""
    return AudioRecording.from_mono(np.zeros(2 * SR, dtype=np.float32), SR)


@pytest.fixture
def sine_440():
    """One second of a 440 Hz sine at half scale."""
    t = np.arange(SR) / SR
    return AudioRecording.from_mono((0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32), SR)
