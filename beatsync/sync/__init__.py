"""Audio-clock synchronisation subpackage."""

from beatsync.sync.models import (
    BarMarker,
    BPMSyncConfig,
    ListenerHandle,
    RhythmEvent,
    SyncEventType,
    SyncPoint,
)
from beatsync.sync.scheduler import AudioClockScheduler

__all__ = [
    "AudioClockScheduler",
    "BarMarker",
    "BPMSyncConfig",
    "ListenerHandle",
    "RhythmEvent",
    "SyncEventType",
    "SyncPoint",
]
