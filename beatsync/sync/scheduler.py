"""Audio-clock driven rhythm event scheduler.

The scheduler owns a time-sorted table of SyncPoints generated from a
BPMSyncConfig. Each update() reads the audio clock and fires every point
whose time has been reached, in order and exactly once.
"""

import bisect
import logging
import math
from typing import Callable

from beatsync import timing
from beatsync.errors import ConfigurationError
from beatsync.sync.models import (
    BarMarker,
    BPMSyncConfig,
    ListenerHandle,
    RhythmEvent,
    RhythmEventCallback,
    SyncEventType,
    SyncPoint,
)
from beatsync.timing import BarBeatPosition

logger = logging.getLogger(__name__)


class AudioClockScheduler:
    """Fires rhythm events against a playback clock.

    *clock* is an optional zero-argument callable returning the current
    audio time in seconds. Without one, every update() must be given the
    time explicitly.
    """

    def __init__(self, config: BPMSyncConfig, clock: Callable[[], float] | None = None):
        self.config = config
        self._clock = clock
        self._listeners: dict[SyncEventType, list[ListenerHandle]] = {}
        self._catch_all: list[ListenerHandle] = []
        self._next_listener_id = 0
        self._custom_points: list[SyncPoint] = []

        self._points: list[SyncPoint] | None = None  # None when not playing
        self._cursor = 0  # every point before this index has fired
        self._duration = 0.0
        self._start_time = 0.0
        self._last_time: float | None = None  # last processed clock reading

    # ------------------------------------------------------------------
    # Schedule generation
    # ------------------------------------------------------------------

    def generate_schedule(self, duration_seconds: float, config: BPMSyncConfig | None = None) -> list[SyncPoint]:
        """Sync points for *duration_seconds* of playback, sorted by time.

        Per beat: the beat, a bar point on the first beat of each bar, the
        eighth at +1/2 and sixteenths at +1/4, +1/2 and +3/4 of a beat.
        Points at equal times keep that generation order.
        """
        config = config or self.config
        spb = timing.seconds_per_beat(config.bpm)
        # beats before time 0 are skipped, so a negative offset needs extra ones at the end
        span = duration_seconds - min(config.offset_seconds, 0.0)
        total_beats = math.ceil(span * config.bpm / 60.0)
        points: list[SyncPoint] = []

        for i in range(total_beats):
            time = timing.beat_to_seconds(i, config.bpm) + config.offset_seconds
            if time < 0:
                continue
            if time > duration_seconds:
                break

            position = timing.beats_to_bar_beat(i, config.beats_per_bar)
            bar, beat = position.bar, position.beat

            points.append(_point(f"beat-{bar}-{beat}", SyncEventType.BEAT, time, bar, beat, 1))
            if beat == 1:
                points.append(_point(f"bar-{bar}", SyncEventType.BAR, time, bar, 1, None))

            eighth_time = time + spb / 2
            if eighth_time <= duration_seconds:
                points.append(_point(f"eighth-{bar}-{beat}-1", SyncEventType.EIGHTH, eighth_time, bar, beat, 2))

            for sixteenth in (1, 2, 3):
                sixteenth_time = time + sixteenth * spb / 4
                if sixteenth_time > duration_seconds:
                    break
                points.append(_point(
                    f"sixteenth-{bar}-{beat}-{sixteenth}",
                    SyncEventType.SIXTEENTH,
                    sixteenth_time,
                    bar,
                    beat,
                    sixteenth + 1,
                ))

        for custom in self._custom_points:
            if 0 <= custom.time <= duration_seconds:
                points.append(SyncPoint(time=custom.time, id=custom.id, event=custom.event))

        # sort() is stable, so ties keep generation order
        points.sort(key=lambda p: p.time)
        return points

    def generate_bar_markers(self, number_of_bars: int = 4, start_bar: int = 0) -> list[BarMarker]:
        """Start time and length of *number_of_bars* bars, from 0-based bar index *start_bar*."""
        bar_seconds = timing.seconds_per_beat(self.config.bpm) * self.config.beats_per_bar
        return [
            BarMarker(
                bar=i + 1,
                time=i * bar_seconds + self.config.offset_seconds,
                duration=bar_seconds,
            )
            for i in range(start_bar, start_bar + number_of_bars)
        ]

    def add_custom_point(self, time: float, data=None, point_id: str | None = None) -> SyncPoint:
        """Schedule a custom event at *time* seconds from the start of playback.

        The point is kept across restarts and reconfiguration. While playing
        it is merged into the live table and fires on the next update that
        reaches it.
        """
        point_id = point_id or f"custom-{len(self._custom_points) + 1}"
        event = RhythmEvent(type=SyncEventType.CUSTOM, time=time, data=data)
        point = SyncPoint(time=time, id=point_id, event=event)
        self._custom_points.append(point)

        if self._points is not None and 0 <= time <= self._duration:
            live = SyncPoint(time=time, id=point_id, event=event)
            index = bisect.bisect_right(self._points, time, key=lambda p: p.time)
            self._points.insert(index, live)
            self._cursor = min(self._cursor, index)
        return point

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self._points is not None

    @property
    def sync_points(self) -> list[SyncPoint]:
        return list(self._points or [])

    def _read_clock(self) -> float:
        if self._clock is None:
            raise ConfigurationError("No clock configured; pass current_time explicitly")
        return float(self._clock())

    def start(self, duration_seconds: float, start_time: float | None = None) -> None:
        """Begin scheduling *duration_seconds* of playback.

        *start_time* is the clock reading at which playback began; it
        defaults to the clock's current value, or 0 without a clock.
        """
        if start_time is None:
            start_time = self._read_clock() if self._clock is not None else 0.0
        self._start_time = float(start_time)
        self._duration = float(duration_seconds)
        self._last_time = None
        self._cursor = 0
        self._points = self.generate_schedule(self._duration)
        logger.info(
            f"Scheduler started: {len(self._points)} sync points over {self._duration:.2f}s "
            f"at {self.config.bpm} BPM"
        )

    def stop(self) -> bool:
        """Tear down the schedule. Returns whether playback was active."""
        was_playing = self._points is not None
        self._points = None
        self._cursor = 0
        self._last_time = None
        return was_playing

    def update(self, current_time: float | None = None) -> list[RhythmEvent]:
        """Fire every pending point whose time has been reached.

        Returns the events fired by this call, in firing order.
        """
        if current_time is None:
            current_time = self._read_clock()
        if self._points is None:
            return []

        self._last_time = float(current_time)
        relative = self._last_time - self._start_time
        points = self._points
        fired: list[RhythmEvent] = []

        while self._cursor < len(points) and points[self._cursor].time <= relative:
            point = points[self._cursor]
            self._cursor += 1
            if point.triggered:
                continue
            point.triggered = True
            fired.append(point.event)
            self._dispatch(point.event)
            if self._points is not points:
                # a listener stopped, restarted or reconfigured playback
                break

        if fired:
            logger.debug(f"update({relative:.4f}s): fired {len(fired)} events")
        return fired

    def reconfigure(self, config: BPMSyncConfig) -> None:
        """Switch to a new tempo / time signature.

        While playing, the new table is built aside with every point up to
        the last processed time already marked triggered, then swapped in.
        Nothing fires during reconfiguration.
        """
        if not isinstance(config, BPMSyncConfig):
            raise ConfigurationError(f"expected BPMSyncConfig, got {type(config).__name__}")

        if self._points is None:
            self.config = config
            return

        points = self.generate_schedule(self._duration, config)
        cursor = 0
        if self._last_time is not None:
            relative = self._last_time - self._start_time
            for point in points:
                if point.time > relative:
                    break
                point.triggered = True
                cursor += 1

        self.config = config
        self._points, self._cursor = points, cursor
        logger.info(f"Scheduler reconfigured: {config.bpm} BPM, {config.beats_per_bar}/{config.beat_unit}")

    # ------------------------------------------------------------------
    # Position queries
    # ------------------------------------------------------------------

    def _relative_time(self) -> float:
        if self._clock is not None:
            now = self._read_clock()
        elif self._last_time is not None:
            now = self._last_time
        else:
            now = self._start_time
        return now - self._start_time

    def get_beat_position(self) -> BarBeatPosition:
        """Current bar:beat:phase, or (1, 1, 0.0) when not playing."""
        if self._points is None:
            return BarBeatPosition(1, 1, 0.0)
        musical = max(0.0, self._relative_time() - self.config.offset_seconds)
        return timing.get_position_at_time(musical, self.config.bpm, self.config.beats_per_bar)

    def get_time_for_beat(self, bar: int, beat: int) -> float:
        """Playback time (seconds from start) of bar:beat."""
        return timing.time_for_bar_beat(
            bar, beat, 0.0, self.config.bpm, self.config.beats_per_bar,
        ) + self.config.offset_seconds

    def get_next_beat_time(self) -> float:
        """Playback time of the next beat after the current position."""
        musical = self._relative_time() - self.config.offset_seconds
        if musical < 0:
            return self.config.offset_seconds
        return timing.get_next_beat_time(musical, self.config.bpm) + self.config.offset_seconds

    @property
    def ms_per_beat(self) -> float:
        return timing.ms_per_beat(self.config.bpm)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(
        self,
        callback: RhythmEventCallback,
        event_type: SyncEventType | str | None = None,
    ) -> ListenerHandle:
        """Register *callback* for one event type, or for every event when None."""
        if event_type is not None:
            event_type = SyncEventType(event_type)
        self._next_listener_id += 1
        handle = ListenerHandle(id=self._next_listener_id, event_type=event_type, callback=callback)
        if event_type is None:
            self._catch_all.append(handle)
        else:
            self._listeners.setdefault(event_type, []).append(handle)
        return handle

    def remove_listener(self, handle: ListenerHandle) -> bool:
        """Unregister a listener. Returns False if it was not registered."""
        if handle.event_type is None:
            bucket = self._catch_all
        else:
            bucket = self._listeners.get(handle.event_type, [])
        if handle in bucket:
            bucket.remove(handle)
            return True
        return False

    def _dispatch(self, event: RhythmEvent) -> None:
        # Copies let listeners add or remove listeners while being called
        handles = list(self._listeners.get(event.type, [])) + list(self._catch_all)
        for handle in handles:
            try:
                handle.callback(event)
            except Exception:
                logger.exception(f"Error in rhythm event listener for {event.type.value} at {event.time:.3f}s")


def _point(
    point_id: str,
    event_type: SyncEventType,
    time: float,
    bar: int,
    beat: int,
    division: int | None,
) -> SyncPoint:
    event = RhythmEvent(type=event_type, time=time, bar=bar, beat=beat, division=division)
    return SyncPoint(time=time, id=point_id, event=event)
