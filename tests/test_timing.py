"""Tests for tempo and musical-time conversions."""

import pytest

from beatsync.errors import ConfigurationError
from beatsync.timing import (
    bar_beat_to_beats,
    beat_grid,
    beat_to_seconds,
    beats_to_bar_beat,
    get_next_beat_time,
    get_position_at_time,
    ms_per_beat,
    note_to_frequency,
    seconds_per_beat,
    seconds_to_beat,
    time_for_bar_beat,
    time_signature_string,
)


def test_ms_per_beat():
    assert ms_per_beat(120) == 500
    assert ms_per_beat(60) == 1000


def test_seconds_per_beat():
    assert seconds_per_beat(180) == pytest.approx(0.3333, abs=1e-4)


def test_bar_beat_to_beats():
    assert bar_beat_to_beats(2, 3, 0.5, 4) == 6.5
    assert bar_beat_to_beats(1, 1) == 0


def test_beats_to_bar_beat():
    assert beats_to_bar_beat(6.5, 4) == (2, 3, 0.5)
    assert beats_to_bar_beat(0, 3) == (1, 1, 0.0)
    assert beats_to_bar_beat(3, 3) == (2, 1, 0.0)


def test_seconds_to_beat():
    beat, phase = seconds_to_beat(1.25, 120)
    assert beat == 2
    assert phase == pytest.approx(0.5)


def test_beat_to_seconds():
    assert beat_to_seconds(4, 120) == 2.0


@pytest.mark.parametrize("bpm", [60, 97.3, 120, 175])
@pytest.mark.parametrize("beats_per_bar", [3, 4, 7])
def test_position_round_trip(bpm, beats_per_bar):
    for bar in (1, 2, 9):
        for beat in range(1, beats_per_bar + 1):
            t = time_for_bar_beat(bar, beat, 0.0, bpm, beats_per_bar)
            position = get_position_at_time(t, bpm, beats_per_bar)
            assert (position.bar, position.beat) == (bar, beat)
            assert position.phase == pytest.approx(0.0, abs=1e-6)


def test_position_keeps_phase():
    position = get_position_at_time(0.75, 120, 4)
    assert (position.bar, position.beat) == (1, 2)
    assert position.phase == pytest.approx(0.5)


def test_next_beat_time():
    assert get_next_beat_time(0.0, 120) == 0.5
    assert get_next_beat_time(0.6, 120) == 1.0
    # Exactly on a beat: the next one, not the current one
    assert get_next_beat_time(1.0, 120) == 1.5


def test_beat_grid():
    grid = beat_grid(120, 10.0)
    assert len(grid) == 20
    assert grid[0] == 0.0
    assert grid[-1] == pytest.approx(9.5)


def test_beat_grid_phase():
    grid = beat_grid(120, 2.0, phase=0.6)
    assert grid == pytest.approx([0.1, 0.6, 1.1, 1.6])


@pytest.mark.parametrize("bpm", [0, -10, float("nan"), float("inf")])
def test_invalid_bpm(bpm):
    with pytest.raises(ConfigurationError):
        ms_per_beat(bpm)


def test_invalid_beats_per_bar():
    with pytest.raises(ConfigurationError):
        beats_to_bar_beat(4, 0)


def test_note_to_frequency():
    assert note_to_frequency(69) == 440.0
    assert note_to_frequency(81) == pytest.approx(880.0)


def test_time_signature_string():
    assert time_signature_string(7, 8) == "7/8"
