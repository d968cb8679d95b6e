"""Tests for the transcription pipeline and its lifecycle."""

import threading

import numpy as np
import pytest
import soundfile as sf

from beatsync.analysis import cache as cache_module
from beatsync.analysis.analyzer import AudioAnalyzer
from beatsync.analysis.cache import SOURCE_DEPS, TranscriptionCache
from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import TranscriptionElement, TranscriptionOptions
from beatsync.analysis.transcriber import Transcriber, TranscriberState
from beatsync.errors import ConfigurationError, InitializationError, TranscriptionCancelled
from tests.conftest import SR, generate_click_track


@pytest.fixture
def transcriber():
    t = Transcriber()
    t.initialize()
    yield t
    t.dispose()


def test_transcribe_pulse_track(transcriber, click_120):
    result = transcriber.transcribe(click_120)
    assert abs(result.bpm - 120) < 2
    assert result.bpm_confidence > 0.7
    assert result.duration == pytest.approx(10.0)

    beats = result.markers[TranscriptionElement.BEAT]
    assert len(beats) >= 19
    assert all(0 <= t <= result.duration for t in beats)
    assert beats == sorted(set(beats))


def test_default_elements(transcriber, click_120):
    result = transcriber.transcribe(click_120)
    assert set(result.markers) == {
        TranscriptionElement.BEAT,
        TranscriptionElement.KICK,
        TranscriptionElement.SNARE,
    }


def test_markers_sorted_and_clipped(transcriber, click_4_4):
    options = TranscriptionOptions(elements=list(TranscriptionElement))
    result = transcriber.transcribe(click_4_4, options)
    for times in result.markers.values():
        assert times == sorted(set(times))
        assert all(0 <= t <= result.duration for t in times)


def test_idempotent(transcriber, click_4_4):
    assert transcriber.transcribe(click_4_4).to_dict() == transcriber.transcribe(click_4_4).to_dict()


def test_without_bpm(transcriber, click_120):
    options = TranscriptionOptions(detect_bpm=False)
    result = transcriber.transcribe(click_120, options)
    assert result.bpm == 0
    assert result.bpm_confidence == 0
    assert TranscriptionElement.BEAT not in result.markers


def test_only_beats(transcriber, click_120):
    result = transcriber.transcribe(click_120, TranscriptionOptions(elements=["beat"]))
    assert set(result.markers) == {TranscriptionElement.BEAT}


def test_uninitialized_returns_none(click_120):
    t = Transcriber()
    assert t.state == TranscriberState.UNINITIALIZED
    assert t.transcribe(click_120) is None


def test_state_transitions(click_120):
    t = Transcriber()
    t.initialize()
    assert t.state == TranscriberState.READY
    t.initialize()  # no-op when ready
    assert t.state == TranscriberState.READY
    t.dispose()
    assert t.state == TranscriberState.DISPOSED
    with pytest.raises(InitializationError):
        t.transcribe(click_120)
    with pytest.raises(InitializationError):
        t.initialize()


def test_initialize_failure_keeps_uninitialized():
    def broken():
        raise RuntimeError("no audio backend")

    t = Transcriber(context_factory=broken)
    with pytest.raises(InitializationError):
        t.initialize()
    assert t.state == TranscriberState.UNINITIALIZED

    t = Transcriber(context_factory=lambda: None)
    with pytest.raises(InitializationError):
        t.initialize()
    assert t.state == TranscriberState.UNINITIALIZED


def test_cancellation(transcriber, click_120):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(TranscriptionCancelled):
        transcriber.transcribe(click_120, cancel_event=cancel)
    assert transcriber.state == TranscriberState.READY


def test_transcribe_file(transcriber, tmp_path):
    path = tmp_path / "click.wav"
    sf.write(str(path), generate_click_track(bpm=120, accent_ratio=1.0), SR)
    result = transcriber.transcribe(path)
    assert abs(result.bpm - 120) < 2


def test_missing_file_returns_none(transcriber, tmp_path):
    assert transcriber.transcribe(tmp_path / "missing.wav") is None


def test_no_recording_returns_none(transcriber):
    assert transcriber.transcribe(None) is None


def test_undecodable_file_returns_none(transcriber, tmp_path):
    path = tmp_path / "junk.wav"
    path.write_bytes(b"not audio at all" * 64)
    assert transcriber.transcribe(path) is None
    assert transcriber.state == TranscriberState.READY


def test_invalid_options():
    with pytest.raises(ConfigurationError):
        TranscriptionOptions(min_bpm=200, max_bpm=100)
    with pytest.raises(ValueError):
        TranscriptionOptions(elements=["cowbell"])


def test_cache_round_trip(tmp_path, click_120):
    cache = TranscriptionCache(tmp_path / "cache")
    try:
        t = Transcriber(cache=cache)
        t.initialize()
        first = t.transcribe(click_120)
        assert len(cache) == 1
        assert cache.load(click_120, TranscriptionOptions()).to_dict() == first.to_dict()
        assert t.transcribe(click_120).to_dict() == first.to_dict()
        # Different options are a different entry
        assert cache.load(click_120, TranscriptionOptions(detect_bpm=False)) is None
    finally:
        cache.close()


def test_source_deps_exist():
    root = cache_module._package_root()
    assert {"analysis/context.py", "analysis/models.py"} <= set(SOURCE_DEPS)
    for rel_path in SOURCE_DEPS:
        assert (root / rel_path).is_file(), rel_path


def test_source_hash_tracks_option_defaults(tmp_path, monkeypatch):
    for rel_path in SOURCE_DEPS:
        (tmp_path / rel_path).parent.mkdir(parents=True, exist_ok=True)
        (tmp_path / rel_path).write_text(rel_path)
    monkeypatch.setattr(cache_module, "_package_root", lambda: tmp_path)

    before = TranscriptionCache._combined_hash(*SOURCE_DEPS)
    (tmp_path / "analysis" / "models.py").write_text("sensitivity = 0.7")
    assert TranscriptionCache._combined_hash(*SOURCE_DEPS) != before


def test_cache_survives_reopen(tmp_path, click_120):
    options = TranscriptionOptions(elements=["beat"])
    cache = TranscriptionCache(tmp_path)
    t = Transcriber(cache=cache)
    t.initialize()
    result = t.transcribe(click_120, options)
    cache.close()

    reopened = TranscriptionCache(tmp_path)
    try:
        assert reopened.load(click_120, options).to_dict() == result.to_dict()
    finally:
        reopened.close()


def test_analyzer_facade(click_120, sine_440):
    analyzer = AudioAnalyzer(AnalysisContext(fft_size=1024))
    assert analyzer.analyze_frequency(sine_440).fft_size == 1024
    assert len(analyzer.extract_waveform(click_120).data) == 1000
    assert abs(analyzer.estimate_bpm(click_120) - 120) < 2
    assert analyzer.detect_beats(click_120).onsets
    assert analyzer.detect_rhythmic_pattern(click_120).beat_unit == 4
    assert analyzer.get_amplitude_stats(sine_440).peak == pytest.approx(0.5, abs=1e-3)
    assert len(analyzer.get_loudness_profile(sine_440).loudness) == 10
    assert np.all(analyzer.get_loudness_profile(sine_440).loudness > 0)
