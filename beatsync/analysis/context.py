"""Explicit analysis context passed to every analyzer call."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
from scipy.signal import get_window

from beatsync.config import settings
from beatsync.errors import InvalidFftSizeWarning

logger = logging.getLogger(__name__)

VALID_FFT_SIZES = (32, 64, 128, 256, 512, 1024, 2048, 4096, 8192, 16384, 32768)
DEFAULT_FFT_SIZE = 2048


def resolve_fft_size(fft_size: int | None) -> int:
    """Return *fft_size* if it is a supported power of two, else the default.

    A replaced value emits InvalidFftSizeWarning so callers and tests can see
    the correction happen.
    """
    if fft_size is None:
        return DEFAULT_FFT_SIZE
    if fft_size in VALID_FFT_SIZES:
        return int(fft_size)
    message = f"Invalid FFT size: {fft_size}. Using {DEFAULT_FFT_SIZE} instead."
    logger.warning(message)
    warnings.warn(message, InvalidFftSizeWarning, stacklevel=3)
    return DEFAULT_FFT_SIZE


@dataclass
class AnalysisContext:
    """Reusable analysis resources: FFT size, onset framing and cached windows.

    One context can serve any number of analyses. It holds no per-recording
    state, so results never depend on what was analyzed before.
    """
    fft_size: int = DEFAULT_FFT_SIZE
    window_name: str = "blackman"
    onset_frame_seconds: float = field(default_factory=lambda: settings.onset_frame_seconds)
    onset_hop_seconds: float = field(default_factory=lambda: settings.onset_hop_seconds)
    _windows: dict[int, np.ndarray] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.fft_size = resolve_fft_size(self.fft_size)

    @classmethod
    def create(cls) -> AnalysisContext:
        """Build a context sized to the configured default FFT window."""
        context = cls(fft_size=settings.default_fft_size)
        context.window(context.fft_size)
        return context

    def onset_frame_length(self, sr: int) -> int:
        return max(2, int(round(sr * self.onset_frame_seconds)))

    def onset_hop_length(self, sr: int) -> int:
        return max(1, int(round(sr * self.onset_hop_seconds)))

    def window(self, size: int) -> np.ndarray:
        """Analysis window of the given length (cached)."""
        if size not in self._windows:
            self._windows[size] = get_window(self.window_name, size, fftbins=True).astype(np.float32)
        return self._windows[size]

    def release(self) -> None:
        self._windows.clear()
