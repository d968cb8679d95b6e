"""Audio analyzer: the analysis primitives bound to one AnalysisContext."""

from beatsync.analysis import frequency, meter, tempo, waveform
from beatsync.analysis.context import AnalysisContext
from beatsync.analysis.models import (
    AmplitudeStats,
    FrequencyAnalysisOptions,
    FrequencyAnalysisResult,
    LoudnessProfile,
    OnsetDetectionOptions,
    OnsetDetectionResult,
    RhythmicPattern,
    WaveformOptions,
    WaveformResult,
)
from beatsync.audio.recording import AudioRecording


class AudioAnalyzer:
    """Runs frequency, waveform and onset analysis against a shared context."""

    def __init__(self, context: AnalysisContext | None = None):
        self.context = context or AnalysisContext.create()

    def analyze_frequency(
        self,
        recording: AudioRecording | None,
        options: FrequencyAnalysisOptions | None = None,
    ) -> FrequencyAnalysisResult | None:
        return frequency.analyze_frequency(recording, options, self.context)

    def extract_waveform(
        self,
        recording: AudioRecording | None,
        options: WaveformOptions | None = None,
    ) -> WaveformResult | None:
        return waveform.extract_waveform(recording, options)

    def detect_beats(
        self,
        recording: AudioRecording | None,
        options: OnsetDetectionOptions | None = None,
    ) -> OnsetDetectionResult | None:
        return tempo.detect_beats(recording, options, self.context)

    def estimate_bpm(
        self,
        recording: AudioRecording,
        options: OnsetDetectionOptions | None = None,
    ) -> float:
        return tempo.estimate_bpm(recording, options, self.context)

    def detect_rhythmic_pattern(
        self,
        recording: AudioRecording | None,
        options: OnsetDetectionOptions | None = None,
    ) -> RhythmicPattern | None:
        return meter.detect_rhythmic_pattern(recording, options, self.context)

    def get_amplitude_stats(self, recording: AudioRecording, channel: int = 0) -> AmplitudeStats:
        return waveform.get_amplitude_stats(recording, channel)

    def get_loudness_profile(self, recording: AudioRecording, segment_duration: float = 0.1) -> LoudnessProfile:
        return waveform.get_loudness_profile(recording, segment_duration)
