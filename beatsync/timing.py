"""Tempo and musical-time conversions.

Pure functions shared by the transcription pipeline and the scheduler.
Bars and beats are 1-indexed; beat counts and phases are 0-based.
"""

import math
from typing import NamedTuple

from beatsync.errors import ConfigurationError

# Beat counts this close to an integer are treated as landing on the beat,
# so that time -> position -> time round trips survive float error.
_SNAP_EPSILON = 1e-9


class BeatPhase(NamedTuple):
    """Whole beat index plus the fractional position within that beat."""
    beat: int
    phase: float


class BarBeatPosition(NamedTuple):
    """A musical position: bar (1-based), beat in bar (1-based), phase in [0, 1)."""
    bar: int
    beat: int
    phase: float


def _check_bpm(bpm: float) -> None:
    if not bpm > 0 or math.isinf(bpm):
        raise ConfigurationError(f"bpm must be a positive finite number, got {bpm!r}")


def _check_beats_per_bar(beats_per_bar: int) -> None:
    if beats_per_bar < 1:
        raise ConfigurationError(f"beats_per_bar must be >= 1, got {beats_per_bar!r}")


def _snap(total_beats: float) -> float:
    nearest = round(total_beats)
    if abs(total_beats - nearest) < _SNAP_EPSILON:
        return float(nearest)
    return total_beats


def ms_per_beat(bpm: float) -> float:
    """Milliseconds per beat."""
    _check_bpm(bpm)
    return 60000.0 / bpm


def seconds_per_beat(bpm: float) -> float:
    """Seconds per beat."""
    _check_bpm(bpm)
    return 60.0 / bpm


def beat_to_seconds(beat: float, bpm: float) -> float:
    """Convert a 0-based beat count to seconds."""
    return beat * seconds_per_beat(bpm)


def seconds_to_beat(seconds: float, bpm: float) -> BeatPhase:
    """Convert seconds to a whole beat index and phase in [0, 1)."""
    _check_bpm(bpm)
    total_beats = _snap(seconds * bpm / 60.0)
    beat = math.floor(total_beats)
    return BeatPhase(beat=beat, phase=total_beats - beat)


def bar_beat_to_beats(
    bar: int,
    beat: int,
    division: float = 0.0,
    beats_per_bar: int = 4,
) -> float:
    """Convert bar:beat:division to total beats from the start."""
    _check_beats_per_bar(beats_per_bar)
    return (bar - 1) * beats_per_bar + (beat - 1) + division


def beats_to_bar_beat(total_beats: float, beats_per_bar: int = 4) -> BarBeatPosition:
    """Convert total beats from the start to bar:beat:phase."""
    _check_beats_per_bar(beats_per_bar)
    total_beats = _snap(total_beats)
    bar = math.floor(total_beats / beats_per_bar) + 1
    beat_in_bar = total_beats - (bar - 1) * beats_per_bar
    whole = math.floor(beat_in_bar)
    return BarBeatPosition(bar=bar, beat=whole + 1, phase=beat_in_bar - whole)


def time_for_bar_beat(
    bar: int,
    beat: int,
    division: float = 0.0,
    bpm: float = 120.0,
    beats_per_bar: int = 4,
) -> float:
    """Seconds from the start at which bar:beat:division occurs."""
    return beat_to_seconds(bar_beat_to_beats(bar, beat, division, beats_per_bar), bpm)


def get_position_at_time(
    seconds: float,
    bpm: float = 120.0,
    beats_per_bar: int = 4,
) -> BarBeatPosition:
    """Musical position at the given time. Inverse of time_for_bar_beat."""
    beat_info = seconds_to_beat(seconds, bpm)
    position = beats_to_bar_beat(beat_info.beat, beats_per_bar)
    # Keep the phase from seconds_to_beat, the integer beat has none
    return BarBeatPosition(bar=position.bar, beat=position.beat, phase=beat_info.phase)


def get_next_beat_time(current_seconds: float, bpm: float) -> float:
    """Time of the first beat strictly after current_seconds."""
    beat_info = seconds_to_beat(current_seconds, bpm)
    return beat_to_seconds(beat_info.beat + 1, bpm)


def beat_grid(bpm: float, duration: float, phase: float = 0.0) -> list[float]:
    """Evenly spaced beat times from *phase* up to (excluding) *duration*.

    Times are computed by index rather than by accumulation so they do not
    drift over long recordings.
    """
    spb = seconds_per_beat(bpm)
    phase = phase % spb
    count = max(0, math.ceil((duration - phase) / spb))
    times = [phase + i * spb for i in range(count)]
    return [t for t in times if t < duration]


def note_to_frequency(midi_note: float) -> float:
    """Frequency in Hz of a MIDI note number (69 = A4 = 440 Hz)."""
    return 440.0 * 2.0 ** ((midi_note - 69) / 12.0)


def time_signature_string(beats_per_bar: int, beat_unit: int) -> str:
    return f"{beats_per_bar}/{beat_unit}"
