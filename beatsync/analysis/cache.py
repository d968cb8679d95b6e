"""Transcription result cache backed by LMDB.

Cache structure:
    .cache/transcriptions.lmdb/
    ├── data.mdb
    └── lock.mdb

Key format:
    transcription:{source_hash}:{recording_hash}:{options_hash}  → JSON string

The source hash covers the analysis modules that shape a transcription, so
editing any of them invalidates every entry. Stale entries are removed when
the cache is opened.
"""

import hashlib
import json
import logging
from pathlib import Path

import lmdb

from beatsync.analysis.models import TranscriptionOptions, TranscriptionResult
from beatsync.audio.recording import AudioRecording
from beatsync.config import settings

logger = logging.getLogger(__name__)

# LMDB map size: 1 GB virtual address space (file grows on demand).
_MAP_SIZE = 1024 * 1024 * 1024

_PREFIX = "transcription"

# Source files whose contents affect a transcription result.
SOURCE_DEPS: list[str] = [
    "analysis/context.py",
    "analysis/models.py",
    "analysis/onset.py",
    "analysis/tempo.py",
    "analysis/percussion.py",
    "analysis/transcriber.py",
    "audio/preprocessing.py",
    "audio/recording.py",
    "timing.py",
]


class TranscriptionCache:
    """Per-recording, per-options cache of TranscriptionResult values."""

    def __init__(self, cache_dir: Path | str | None = None):
        self.cache_dir = Path(cache_dir if cache_dir is not None else settings.cache_dir)
        self._source_hash = self._combined_hash(*SOURCE_DEPS)

        lmdb_path = self.cache_dir / "transcriptions.lmdb"
        lmdb_path.mkdir(parents=True, exist_ok=True)
        self._env = lmdb.open(
            str(lmdb_path),
            map_size=_MAP_SIZE,
            max_dbs=0,
            readahead=False,
        )

        self._cleanup_stale_entries()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def options_hash(options: TranscriptionOptions) -> str:
        return hashlib.sha256(options.cache_key().encode()).hexdigest()[:12]

    def _key(self, recording_hash: str, options: TranscriptionOptions) -> bytes:
        return f"{_PREFIX}:{self._source_hash}:{recording_hash}:{self.options_hash(options)}".encode()

    @staticmethod
    def _combined_hash(*rel_paths: str) -> str:
        """SHA-256 of concatenated package source files -> 12 hex chars."""
        root = _package_root()
        h = hashlib.sha256()
        for rp in sorted(rel_paths):
            p = root / rp
            if p.exists():
                h.update(p.read_bytes())
        return h.hexdigest()[:12]

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self, recording: AudioRecording, options: TranscriptionOptions) -> TranscriptionResult | None:
        key = self._key(recording.content_hash(), options)
        with self._env.begin() as txn:
            data = txn.get(key)
        if data is None:
            return None
        return TranscriptionResult.from_dict(json.loads(data))

    def save(self, recording: AudioRecording, options: TranscriptionOptions, result: TranscriptionResult) -> None:
        key = self._key(recording.content_hash(), options)
        with self._env.begin(write=True) as txn:
            txn.put(key, json.dumps(result.to_dict()).encode())

    def __len__(self) -> int:
        return self._env.stat()["entries"]

    # ------------------------------------------------------------------
    # Stale entry cleanup
    # ------------------------------------------------------------------

    def _cleanup_stale_entries(self) -> None:
        """Remove entries written by a different version of the analysis code."""
        if self._env.stat()["entries"] == 0:
            return

        valid_prefix = f"{_PREFIX}:{self._source_hash}:".encode()
        with self._env.begin(write=True) as txn:
            cursor = txn.cursor()
            stale = [key for key, _ in cursor if not key.startswith(valid_prefix)]
            for key in stale:
                txn.delete(key)

        if stale:
            logger.info("LMDB cleanup: removed %d stale entries", len(stale))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the LMDB environment."""
        if self._env:
            self._env.close()
            self._env = None


def _package_root() -> Path:
    return Path(__file__).resolve().parent.parent
