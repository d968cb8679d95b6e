"""Immutable decoded audio value consumed by the analysis pipeline."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

import numpy as np

from beatsync.errors import AnalysisError


@dataclass(frozen=True, eq=False)
class AudioRecording:
    """Decoded PCM audio.

    Parameters
    ----------
    sample_rate:
        Sample rate in Hz.
    channels:
        Sample data shaped ``(n_channels, n_samples)``. A 1-D array is
        treated as a single channel. The array is copied and made read-only.
    """

    sample_rate: int
    channels: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.sample_rate is None or self.sample_rate <= 0:
            raise AnalysisError(f"sample_rate must be positive, got {self.sample_rate!r}")

        data = np.array(self.channels, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2 or data.shape[0] == 0:
            raise AnalysisError(f"expected (n_channels, n_samples) sample data, got shape {data.shape}")
        if data.shape[1] == 0:
            raise AnalysisError("recording contains no samples")
        if not np.all(np.isfinite(data)):
            raise AnalysisError("recording contains non-finite samples")

        data.setflags(write=False)
        object.__setattr__(self, "channels", data)

    @classmethod
    def from_mono(cls, samples: np.ndarray, sample_rate: int) -> AudioRecording:
        return cls(sample_rate=sample_rate, channels=np.asarray(samples)[np.newaxis, :])

    @property
    def n_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def n_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.n_samples / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        """Samples of one channel; out-of-range indices clamp to the last channel."""
        index = min(max(index, 0), self.n_channels - 1)
        return self.channels[index]

    def mono(self) -> np.ndarray:
        """Average of all channels."""
        if self.n_channels == 1:
            return self.channels[0]
        return self.channels.mean(axis=0)

    def content_hash(self) -> str:
        """SHA-256 of sample rate and sample data -> 16 hex chars."""
        h = hashlib.sha256()
        h.update(str(self.sample_rate).encode("ascii"))
        h.update(str(self.channels.shape).encode("ascii"))
        h.update(self.channels.tobytes())
        return h.hexdigest()[:16]
