"""Value types for audio-clock rhythm scheduling."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from beatsync.analysis.models import TranscriptionElement
from beatsync.errors import ConfigurationError


class SyncEventType(str, Enum):
    BEAT = "beat"
    BAR = "bar"
    EIGHTH = "eighth"
    SIXTEENTH = "sixteenth"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BPMSyncConfig:
    """Tempo and time signature driving a schedule."""
    bpm: float
    beats_per_bar: int = 4  # time signature numerator
    beat_unit: int = 4  # time signature denominator
    offset_seconds: float = 0.0  # audio time of the first beat

    def __post_init__(self):
        if not self.bpm > 0 or math.isinf(self.bpm):
            raise ConfigurationError(f"bpm must be a positive finite number, got {self.bpm!r}")
        if self.beats_per_bar < 1:
            raise ConfigurationError(f"beats_per_bar must be >= 1, got {self.beats_per_bar!r}")
        if self.beat_unit < 1:
            raise ConfigurationError(f"beat_unit must be >= 1, got {self.beat_unit!r}")
        if not math.isfinite(self.offset_seconds):
            raise ConfigurationError(f"offset_seconds must be finite, got {self.offset_seconds!r}")

    @classmethod
    def from_transcription(
        cls,
        result,
        beats_per_bar: int = 4,
        beat_unit: int = 4,
        offset_seconds: float | None = None,
    ) -> "BPMSyncConfig":
        """Config matching a TranscriptionResult.

        The offset defaults to the first beat marker so the schedule lines
        up with the transcribed grid. A result transcribed with
        ``detect_bpm=False`` carries no tempo and raises ConfigurationError.
        """
        if result.bpm <= 0:
            raise ConfigurationError(
                "transcription has no tempo estimate; transcribe with detect_bpm=True"
            )
        if offset_seconds is None:
            beats = result.markers.get(TranscriptionElement.BEAT) or []
            offset_seconds = beats[0] if beats else 0.0
        return cls(
            bpm=result.bpm,
            beats_per_bar=beats_per_bar,
            beat_unit=beat_unit,
            offset_seconds=offset_seconds,
        )


@dataclass(frozen=True)
class RhythmEvent:
    """A musical event delivered to listeners when its time is reached."""
    type: SyncEventType
    time: float  # seconds from the start of playback
    bar: int | None = None
    beat: int | None = None
    division: int | None = None  # 1 = on the beat, 2..4 = sub-beat slot
    data: Any = None  # payload of custom events


@dataclass
class SyncPoint:
    """One scheduled event and whether it has been delivered yet."""
    time: float
    id: str
    event: RhythmEvent
    triggered: bool = False


@dataclass(frozen=True)
class BarMarker:
    bar: int
    time: float
    duration: float


RhythmEventCallback = Callable[[RhythmEvent], None]


@dataclass(frozen=True)
class ListenerHandle:
    """Returned by add_listener; pass it to remove_listener."""
    id: int
    event_type: SyncEventType | None  # None listens to every event
    callback: RhythmEventCallback = field(compare=False, repr=False)
