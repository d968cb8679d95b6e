"""Exception and warning types raised by the analysis and sync pipelines."""


class BeatSyncError(Exception):
    """Base class for all beatsync errors."""


class InitializationError(BeatSyncError):
    """Analysis resources are unavailable, or were used after disposal."""


class ConfigurationError(BeatSyncError, ValueError):
    """Numeric configuration that would corrupt downstream timing math."""


class AnalysisError(BeatSyncError):
    """Malformed or empty audio recording."""


class TranscriptionCancelled(BeatSyncError):
    """Raised between transcription stages when the caller requested cancellation."""


class InvalidFftSizeWarning(UserWarning):
    """An FFT size was not a supported power of two and was replaced by the default."""
