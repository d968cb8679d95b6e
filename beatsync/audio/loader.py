"""Audio file loading utilities."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Union

import librosa

from beatsync.audio.recording import AudioRecording


def load_recording(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int | None = None,
) -> AudioRecording:
    """Load an audio file or buffer into an AudioRecording.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. ``None`` keeps the file's native rate.

    Returns
    -------
    AudioRecording
        All channels of the file, resampled if ``sr`` is given.
    """
    audio, sample_rate = librosa.load(file_path_or_buffer, sr=sr, mono=False)
    return AudioRecording(sample_rate=int(sample_rate), channels=audio)
