"""Transcription orchestrator - turns a recording into tempo and percussion markers."""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Callable

from audioread.exceptions import DecodeError

from beatsync.analysis.cache import TranscriptionCache
from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import TranscriptionElement, TranscriptionOptions, TranscriptionResult
from beatsync.analysis.percussion import classify_percussion, clean_markers
from beatsync.analysis.tempo import detect_beats
from beatsync.audio.loader import load_recording
from beatsync.audio.recording import AudioRecording
from beatsync.config import settings
from beatsync.errors import AnalysisError, InitializationError, TranscriptionCancelled
from beatsync.timing import beat_grid, seconds_per_beat

logger = logging.getLogger(__name__)


class TranscriberState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    TRANSCRIBING = "transcribing"
    DISPOSED = "disposed"


def _check_cancelled(cancel_event: threading.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Transcription cancelled before {stage}")
        raise TranscriptionCancelled(f"cancelled before {stage}")


class Transcriber:
    """Runs the transcription pipeline.

    Lifecycle: UNINITIALIZED -> READY (initialize) -> TRANSCRIBING while a
    call runs -> READY, and DISPOSED once dispose() is called. A disposed
    transcriber cannot be reused.
    """

    def __init__(
        self,
        context_factory: Callable[[], AnalysisContext | None] = AnalysisContext.create,
        cache: TranscriptionCache | None = None,
    ):
        self._context_factory = context_factory
        self.cache = cache
        self._context: AnalysisContext | None = None
        self._state = TranscriberState.UNINITIALIZED

    @property
    def state(self) -> TranscriberState:
        return self._state

    def initialize(self) -> None:
        """Acquire the analysis context.

        Raises InitializationError if the context cannot be created; the
        transcriber then stays uninitialized and initialize() may be retried.
        """
        if self._state == TranscriberState.DISPOSED:
            raise InitializationError("Transcriber has been disposed")
        if self._state != TranscriberState.UNINITIALIZED:
            return

        try:
            context = self._context_factory()
        except Exception as exc:
            logger.error(f"Failed to create analysis context: {exc}")
            raise InitializationError("Failed to create analysis context") from exc
        if context is None:
            logger.error("Failed to create analysis context: factory returned None")
            raise InitializationError("Failed to create analysis context")

        self._context = context
        self._state = TranscriberState.READY
        logger.info(f"Transcriber initialized (fft_size={context.fft_size})")

    def transcribe(
        self,
        recording: AudioRecording | str | Path | None,
        options: TranscriptionOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> TranscriptionResult | None:
        """Transcribe a recording (or an audio file path).

        Returns None when the transcriber is not initialized, no recording
        is given, or the file cannot be decoded. Raises
        TranscriptionCancelled when *cancel_event* is set between stages.
        """
        if self._state == TranscriberState.DISPOSED:
            raise InitializationError("Transcriber has been disposed")
        if self._state != TranscriberState.READY:
            logger.error("Transcriber not initialized")
            return None

        if recording is None:
            logger.error("No recording supplied for transcription")
            return None
        if not isinstance(recording, AudioRecording):
            if not Path(recording).exists():
                logger.error(f"Audio file not found: {recording}")
                return None
            try:
                recording = load_recording(recording, sr=settings.sample_rate)
            except (OSError, ValueError, RuntimeError, EOFError, DecodeError, AnalysisError) as exc:
                logger.error(f"Failed to load {recording}: {exc}")
                return None

        options = options or TranscriptionOptions()

        if self.cache is not None:
            cached = self.cache.load(recording, options)
            if cached is not None:
                logger.info("Transcription loaded from cache")
                return cached

        self._state = TranscriberState.TRANSCRIBING
        try:
            result = self._run(recording, options, cancel_event)
        finally:
            self._state = TranscriberState.READY

        if self.cache is not None:
            self.cache.save(recording, options, result)
        return result

    def _run(
        self,
        recording: AudioRecording,
        options: TranscriptionOptions,
        cancel_event: threading.Event | None,
    ) -> TranscriptionResult:
        duration = recording.duration
        logger.info(f"Transcribing {duration:.1f}s of audio at {recording.sample_rate}Hz")
        markers: dict[TranscriptionElement, list[float]] = {}
        bpm = 0.0
        confidence = 0.0

        if options.detect_bpm:
            _check_cancelled(cancel_event, "tempo estimation")
            logger.info("Step 1: Tempo estimation")
            detection = detect_beats(recording, options.onset_options(), self._context)
            bpm, confidence = detection.bpm, detection.confidence
            logger.info(f"  Tempo: {bpm} BPM (confidence: {confidence})")

            if TranscriptionElement.BEAT in options.elements:
                _check_cancelled(cancel_event, "beat markers")
                logger.info("Step 2: Beat markers")
                phase = 0.0
                if options.align_beats and detection.onsets:
                    phase = detection.onsets[0] % seconds_per_beat(bpm)
                markers[TranscriptionElement.BEAT] = clean_markers(beat_grid(bpm, duration, phase), duration)
                logger.info(f"  {len(markers[TranscriptionElement.BEAT])} beats from phase {phase:.3f}s")

        if options.wants_percussion():
            _check_cancelled(cancel_event, "percussion classification")
            logger.info("Step 3: Percussion classification")
            markers.update(
                classify_percussion(recording, options.elements, options.sensitivity, self._context)
            )
            for element, times in markers.items():
                if element != TranscriptionElement.BEAT:
                    logger.info(f"  {element.value}: {len(times)} markers")

        return TranscriptionResult(
            bpm=bpm,
            bpm_confidence=confidence,
            duration=duration,
            markers=markers,
        )

    def dispose(self) -> None:
        """Release the analysis context. The transcriber cannot be used afterwards."""
        if self._context is not None:
            self._context.release()
            self._context = None
        self._state = TranscriberState.DISPOSED
