"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Analysis defaults with env var overrides."""

    # Audio
    sample_rate: int = 22050

    # Frequency analysis
    default_fft_size: int = 2048
    smoothing_time_constant: float = 0.8

    # Onset detection
    onset_frame_seconds: float = 0.02
    onset_hop_seconds: float = 0.01
    sensitivity: float = 0.5

    # Tempo
    min_bpm: float = 60.0
    max_bpm: float = 200.0
    start_bpm: float = 120.0  # centre of the tempo prior

    # Percussion classification
    kick_cutoff_hz: float = 150.0
    hihat_cutoff_hz: float = 5000.0
    snare_flatness: float = 0.2
    onset_match_tolerance: float = 0.03  # seconds

    # Waveform
    waveform_resolution: int = 1000

    # Cache
    cache_dir: str = ".cache"

    model_config = {"env_prefix": "BEATSYNC_"}


settings = Settings()
