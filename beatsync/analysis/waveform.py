"""Time-domain waveform extraction and amplitude statistics."""

import math

import numpy as np

from beatsync.analysis.models import AmplitudeStats, LoudnessProfile, WaveformOptions, WaveformResult
from beatsync.audio.recording import AudioRecording
from beatsync.errors import ConfigurationError


def extract_waveform(
    recording: AudioRecording | None,
    options: WaveformOptions | None = None,
) -> WaveformResult | None:
    """Downsample one channel to ``options.resolution`` representative points.

    Samples are split into ``resolution`` contiguous buckets covering the
    whole channel; widths differ by at most one sample, so bucket ``i``
    starts near ``times[i]``. Buckets only come out empty (reading 0) when
    the recording has fewer samples than ``resolution``. Each bucket is
    reduced to its signed peak: the sample with the largest absolute value,
    which keeps transients visible where an average of a zero-mean signal
    would flatten them.
    """
    if recording is None:
        return None

    options = options or WaveformOptions()
    resolution = options.resolution
    raw = recording.channel(options.channel).astype(np.float64)

    data = np.array([
        bucket[np.argmax(np.abs(bucket))] if len(bucket) else 0.0
        for bucket in np.array_split(raw, resolution)
    ])

    peak = float(np.max(np.abs(data)))
    if options.normalize and peak > 0:
        data = data / peak
        peak = 1.0

    times = np.arange(resolution) * (recording.duration / resolution)
    rms = float(np.sqrt(np.mean(raw ** 2)))

    return WaveformResult(
        data=data.astype(np.float32),
        times=times,
        duration=recording.duration,
        resolution=resolution,
        peak=peak,
        rms=rms,
    )


def get_amplitude_stats(recording: AudioRecording, channel: int = 0) -> AmplitudeStats:
    """Min, max, peak, RMS and crest factor of one channel."""
    samples = recording.channel(channel).astype(np.float64)
    lo = min(float(samples.min()), 0.0)
    hi = max(float(samples.max()), 0.0)
    peak = max(abs(lo), abs(hi))
    rms = float(np.sqrt(np.mean(samples ** 2)))
    crest = peak / rms if rms > 0 else 0.0
    return AmplitudeStats(min=lo, max=hi, peak=peak, rms=rms, crest=crest)


def get_loudness_profile(recording: AudioRecording, segment_duration: float = 0.1) -> LoudnessProfile:
    """RMS of the mono mix over consecutive segments of ``segment_duration`` seconds."""
    if not segment_duration > 0:
        raise ConfigurationError(f"segment_duration must be positive, got {segment_duration!r}")

    mono = recording.mono().astype(np.float64)
    seg_samples = max(1, int(recording.sample_rate * segment_duration))
    n_segments = math.ceil(len(mono) / seg_samples)

    loudness = np.zeros(n_segments)
    for i in range(n_segments):
        segment = mono[i * seg_samples:(i + 1) * seg_samples]
        loudness[i] = float(np.sqrt(np.mean(segment ** 2)))

    times = np.arange(n_segments) * (seg_samples / recording.sample_rate)
    return LoudnessProfile(times=times, loudness=loudness)
