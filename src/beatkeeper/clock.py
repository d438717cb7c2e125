"""Beat timing and measure state for beatkeeper.

BeatClock is the single source of truth for tempo, running state and
beat position, and the only place where beat intervals and accent
strengths are computed. It does no locking and no I/O; the controller
owns one instance and serialises access to it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .models import (
    DEFAULT_ACCENT_SOUND,
    DEFAULT_BEAT_SOUND,
    DEFAULT_BPM,
    DEFAULT_VOLUME,
    Beat,
    SoundType,
    StateSnapshot,
    TimeSignature,
    accent_strength_at,
    position_in_measure,
    validate_bpm,
    validate_volume,
)

logger = logging.getLogger(__name__)


class BeatClock:
    """Tempo, time signature and beat counters for one metronome.

    Times are float seconds read from ``clock`` (monotonic by default).

    Attributes:
        bpm: Tempo in beats per minute (60-200).
        time_signature: Current time signature.
        is_running: Whether the clock has been started.
        start_instant: Clock reading at start, None while stopped.
        beat_count: Beats fired since the last start.
        current_position_in_measure: 1-based position of the last beat.
        accent_enabled: Global accent switch.
        volume: Playback volume passed through to audio (0.0-1.0).
        beat_sound: Sound handle for regular beats.
        accent_sound: Sound handle for strong beats.
    """

    def __init__(
        self,
        bpm: int = DEFAULT_BPM,
        time_signature: TimeSignature = TimeSignature.FOUR,
        *,
        accent_enabled: bool = True,
        volume: float = DEFAULT_VOLUME,
        beat_sound: SoundType = DEFAULT_BEAT_SOUND,
        accent_sound: SoundType = DEFAULT_ACCENT_SOUND,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bpm = validate_bpm(bpm)
        self.time_signature = time_signature
        self.accent_enabled = accent_enabled
        self.volume = validate_volume(volume)
        self.beat_sound = beat_sound
        self.accent_sound = accent_sound
        self.is_running = False
        self.start_instant: float | None = None
        self.beat_count = 0
        self.current_position_in_measure = 1
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def start(self) -> None:
        """Start counting from zero. No-op when already running."""
        if self.is_running:
            return
        self.start_instant = self._clock()
        self.beat_count = 0
        self.current_position_in_measure = 1
        self.is_running = True
        logger.debug("Clock started at %d bpm in %s", self.bpm, self.time_signature.label)

    def stop(self) -> None:
        """Stop the clock, keeping beat_count and position for inspection."""
        self.is_running = False
        self.start_instant = None
        logger.debug("Clock stopped after %d beats", self.beat_count)

    def reset_beat_position(self) -> None:
        self.current_position_in_measure = 1

    def interval(self) -> float:
        """Seconds between beats.

        The same for every time signature: bpm always counts the
        notated beat, compound signatures are not subdivided.
        """
        return 60 / self.bpm

    def elapsed(self) -> float:
        if not self.is_running or self.start_instant is None:
            return 0.0
        return self._clock() - self.start_instant

    def should_fire(self, last_fire: float) -> bool:
        """Whether a full interval has passed since ``last_fire``."""
        if not self.is_running:
            return False
        return self._clock() - last_fire >= self.interval()

    def advance(self) -> Beat:
        """Count one beat and describe it.

        This is the only mutator of the beat position. It does not check
        should_fire(); calling it directly produces a beat immediately.

        Returns:
            The Beat for the new beat count.
        """
        self.beat_count += 1
        self.current_position_in_measure = position_in_measure(
            self.beat_count, self.time_signature
        )
        return Beat(
            sequence_number=self.beat_count,
            position_in_measure=self.current_position_in_measure,
            accent_strength=self.accent_strength_at(self.current_position_in_measure),
            time_signature=self.time_signature,
            bpm=self.bpm,
            accent_enabled=self.accent_enabled,
            timestamp=self._clock(),
            beat_sound=self.beat_sound,
            accent_sound=self.accent_sound,
            volume=self.volume,
        )

    def set_bpm(self, bpm: int) -> None:
        self.bpm = validate_bpm(bpm)
        logger.debug("Tempo set to %d bpm", bpm)

    def set_time_signature(self, time_signature: TimeSignature) -> None:
        """Change the signature. A running clock starts a fresh measure."""
        self.time_signature = time_signature
        if self.is_running:
            self.current_position_in_measure = 1
        logger.debug("Time signature set to %s", time_signature.label)

    def set_volume(self, volume: float) -> None:
        self.volume = validate_volume(volume)

    def set_sounds(self, beat_sound: SoundType, accent_sound: SoundType) -> None:
        self.beat_sound = beat_sound
        self.accent_sound = accent_sound

    def set_accent_enabled(self, accent_enabled: bool) -> None:
        self.accent_enabled = accent_enabled

    def accent_strength_at(self, position: int) -> float:
        """Preview the strength of a position under the current settings."""
        return accent_strength_at(self.time_signature, position, self.accent_enabled)

    def is_accent_beat(self) -> bool:
        return self.accent_strength_at(self.current_position_in_measure) > 0.0

    def next_beat_time(self) -> float | None:
        """Ideal clock reading of the next beat, None while stopped."""
        if self.start_instant is None:
            return None
        return self.start_instant + self.interval() * (self.beat_count + 1)

    def timing_error(self, actual: float) -> float | None:
        """Distance in seconds between ``actual`` and the ideal next beat."""
        expected = self.next_beat_time()
        if expected is None:
            return None
        return abs(actual - expected)

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            bpm=self.bpm,
            beat_count=self.beat_count,
            elapsed=self.elapsed(),
            time_signature=self.time_signature,
            position_in_measure=self.current_position_in_measure,
            is_running=self.is_running,
            volume=self.volume,
            accent_enabled=self.accent_enabled,
            beat_sound=self.beat_sound,
            accent_sound=self.accent_sound,
            interval=self.interval(),
        )
