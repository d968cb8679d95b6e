"""Core data models for audio analysis and transcription."""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from beatsync.config import settings
from beatsync.errors import ConfigurationError
from beatsync.timing import time_signature_string


class TranscriptionElement(str, Enum):
    """Marker categories a transcription can produce."""
    BEAT = "beat"  # quarter-note grid derived from the tempo
    KICK = "kick"
    SNARE = "snare"
    HIHAT = "hihat"
    TRANSIENT = "transient"  # percussive hit that fits no other category


PERCUSSION_ELEMENTS = frozenset({
    TranscriptionElement.KICK,
    TranscriptionElement.SNARE,
    TranscriptionElement.HIHAT,
    TranscriptionElement.TRANSIENT,
})


@dataclass
class FrequencyAnalysisOptions:
    """Options for frequency analysis."""
    fft_size: int = field(default_factory=lambda: settings.default_fft_size)
    min_frequency: float | None = None  # Hz
    max_frequency: float | None = None  # Hz
    smoothing_time_constant: float = field(default_factory=lambda: settings.smoothing_time_constant)


@dataclass
class FrequencyAnalysisResult:
    """Averaged magnitude spectrum of a recording."""
    frequencies: list[float]  # Hz
    magnitudes: list[float]  # dB
    normalized_magnitudes: list[float]  # 0.0-1.0
    fft_size: int
    sample_rate: int


@dataclass
class WaveformOptions:
    """Options for waveform extraction."""
    resolution: int = field(default_factory=lambda: settings.waveform_resolution)
    channel: int = 0
    normalize: bool = True

    def __post_init__(self):
        if self.resolution < 1:
            raise ConfigurationError(f"resolution must be >= 1, got {self.resolution!r}")


@dataclass
class WaveformResult:
    """Downsampled waveform with one representative sample per bucket."""
    data: np.ndarray
    times: np.ndarray  # seconds
    duration: float
    resolution: int
    peak: float = 0.0
    rms: float = 0.0


@dataclass
class AmplitudeStats:
    """Amplitude statistics of one channel."""
    min: float
    max: float
    peak: float
    rms: float
    crest: float  # peak / rms


@dataclass
class LoudnessProfile:
    """RMS loudness per fixed-length segment."""
    times: np.ndarray
    loudness: np.ndarray


@dataclass
class OnsetDetectionOptions:
    """Options for onset and tempo detection."""
    min_bpm: float = field(default_factory=lambda: settings.min_bpm)
    max_bpm: float = field(default_factory=lambda: settings.max_bpm)
    sensitivity: float = field(default_factory=lambda: settings.sensitivity)  # 0.0-1.0, higher finds more onsets

    def __post_init__(self):
        if not self.min_bpm > 0:
            raise ConfigurationError(f"min_bpm must be positive, got {self.min_bpm!r}")
        if not self.max_bpm >= self.min_bpm:
            raise ConfigurationError(
                f"max_bpm ({self.max_bpm!r}) must not be below min_bpm ({self.min_bpm!r})"
            )
        if not 0.0 <= self.sensitivity <= 1.0:
            raise ConfigurationError(f"sensitivity must be within [0, 1], got {self.sensitivity!r}")


@dataclass
class OnsetDetectionResult:
    """Tempo estimate plus the onsets and curve it was derived from."""
    bpm: float
    confidence: float  # 0.0-1.0
    onsets: list[float]  # seconds, strictly increasing
    onset_curve: np.ndarray = field(repr=False)
    curve_rate: float  # curve frames per second


@dataclass
class RhythmicPattern:
    """Estimated bar structure of a recording."""
    beats_per_bar: int
    beat_unit: int
    subdivisions: list[list[float]]  # inter-beat intervals within each bar

    @property
    def time_signature(self) -> str:
        return time_signature_string(self.beats_per_bar, self.beat_unit)


@dataclass
class TranscriptionOptions:
    """Options for a transcription run."""
    elements: frozenset[TranscriptionElement] = frozenset({
        TranscriptionElement.KICK,
        TranscriptionElement.SNARE,
        TranscriptionElement.BEAT,
    })
    detect_bpm: bool = True
    sensitivity: float = field(default_factory=lambda: settings.sensitivity)
    min_bpm: float = field(default_factory=lambda: settings.min_bpm)
    max_bpm: float = field(default_factory=lambda: settings.max_bpm)
    align_beats: bool = True  # phase-align beat markers to the first onset

    def __post_init__(self):
        self.elements = frozenset(TranscriptionElement(e) for e in self.elements)
        # Validates the numeric fields
        self.onset_options()

    def onset_options(self) -> OnsetDetectionOptions:
        return OnsetDetectionOptions(
            min_bpm=self.min_bpm,
            max_bpm=self.max_bpm,
            sensitivity=self.sensitivity,
        )

    def wants_percussion(self) -> bool:
        return bool(self.elements & PERCUSSION_ELEMENTS)

    def cache_key(self) -> str:
        """Stable textual form of the options, used in cache keys."""
        elements = ",".join(sorted(e.value for e in self.elements))
        return (
            f"{elements}|{int(self.detect_bpm)}|{self.sensitivity!r}|"
            f"{self.min_bpm!r}|{self.max_bpm!r}|{int(self.align_beats)}"
        )


@dataclass
class TranscriptionResult:
    """Tempo estimate and per-category onset markers for one recording."""
    bpm: float
    bpm_confidence: float
    duration: float
    markers: dict[TranscriptionElement, list[float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "bpm": self.bpm,
            "bpm_confidence": self.bpm_confidence,
            "duration": self.duration,
            "markers": {e.value: list(times) for e, times in self.markers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptionResult":
        return cls(
            bpm=data["bpm"],
            bpm_confidence=data["bpm_confidence"],
            duration=data["duration"],
            markers={TranscriptionElement(k): list(v) for k, v in data["markers"].items()},
        )
