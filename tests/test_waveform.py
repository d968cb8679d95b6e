"""Tests for waveform extraction, amplitude statistics and recordings."""

import numpy as np
import pytest

from beatsync.analysis.models import WaveformOptions
from beatsync.analysis.waveform import extract_waveform, get_amplitude_stats, get_loudness_profile
from beatsync.audio.recording import AudioRecording
from beatsync.errors import AnalysisError, ConfigurationError


@pytest.mark.parametrize("resolution", [1, 100, 1000, 7919])
def test_waveform_length(click_120, resolution):
    result = extract_waveform(click_120, WaveformOptions(resolution=resolution))
    assert len(result.data) == resolution
    assert len(result.times) == resolution
    assert result.duration == pytest.approx(10.0)


def test_waveform_uneven_length_covers_whole_signal():
    # 1050 samples do not divide into 1000 buckets
    recording = AudioRecording.from_mono(np.full(1050, 0.5), sample_rate=1050)
    result = extract_waveform(recording, WaveformOptions(resolution=1000, normalize=False))
    assert len(result.data) == 1000
    assert np.all(result.data == pytest.approx(0.5))
    assert result.times[-1] == pytest.approx(0.999)


def test_waveform_tail_lines_up_with_times():
    samples = np.zeros(1050)
    samples[-10:] = 1.0
    recording = AudioRecording.from_mono(samples, sample_rate=1050)
    result = extract_waveform(recording, WaveformOptions(resolution=1000))
    loud = np.flatnonzero(result.data)
    assert result.times[loud[0]] > 0.98
    assert loud[-1] == 999


def test_waveform_is_normalized(sine_440):
    result = extract_waveform(sine_440, WaveformOptions(resolution=200))
    assert np.max(np.abs(result.data)) == pytest.approx(1.0)


def test_waveform_not_normalized(sine_440):
    result = extract_waveform(sine_440, WaveformOptions(resolution=200, normalize=False))
    assert np.max(np.abs(result.data)) == pytest.approx(0.5, abs=1e-3)


def test_waveform_keeps_transients(click_120):
    # A zero-mean average would flatten the clicks; signed peaks keep them
    result = extract_waveform(click_120, WaveformOptions(resolution=100))
    assert np.sum(np.abs(result.data) > 0.5) >= 10


def test_waveform_silence(silence):
    result = extract_waveform(silence, WaveformOptions(resolution=50))
    assert np.all(result.data == 0)
    assert result.peak == 0.0


def test_waveform_missing_recording():
    assert extract_waveform(None) is None


def test_invalid_resolution():
    with pytest.raises(ConfigurationError):
        WaveformOptions(resolution=0)


def test_amplitude_stats(sine_440):
    stats = get_amplitude_stats(sine_440)
    assert stats.peak == pytest.approx(0.5, abs=1e-3)
    assert stats.rms == pytest.approx(0.5 / np.sqrt(2), rel=1e-2)
    assert stats.crest == pytest.approx(np.sqrt(2), rel=1e-2)


def test_loudness_profile(sine_440):
    profile = get_loudness_profile(sine_440, segment_duration=0.1)
    assert len(profile.times) == len(profile.loudness) == 10
    assert np.allclose(profile.loudness, 0.5 / np.sqrt(2), rtol=0.05)


def test_loudness_profile_rejects_bad_segment(sine_440):
    with pytest.raises(ConfigurationError):
        get_loudness_profile(sine_440, segment_duration=0)


def test_recording_validation():
    with pytest.raises(AnalysisError):
        AudioRecording(sample_rate=22050, channels=np.zeros((1, 0)))
    with pytest.raises(AnalysisError):
        AudioRecording(sample_rate=0, channels=np.zeros(10))
    with pytest.raises(AnalysisError):
        AudioRecording(sample_rate=22050, channels=np.array([0.0, np.nan]))


def test_recording_is_read_only(sine_440):
    with pytest.raises(ValueError):
        sine_440.channels[0, 0] = 1.0


def test_recording_mono_mix():
    recording = AudioRecording(sample_rate=100, channels=np.array([[1.0, 1.0], [0.0, -1.0]]))
    assert recording.n_channels == 2
    assert np.allclose(recording.mono(), [0.5, 0.0])


def test_content_hash_depends_on_samples(sine_440, silence):
    assert sine_440.content_hash() == AudioRecording.from_mono(sine_440.mono(), 22050).content_hash()
    assert sine_440.content_hash() != silence.content_hash()
