"""Thread-safe metronome controller.

MetronomeController owns a BeatClock behind a mutex and exposes every
clock operation as a single locked call. Start/stop requests are also
recorded on a continuation flag that is read and written without the
state lock, so a signal handler or stop button never waits on a slow
consumer holding it.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable
from types import FrameType
from typing import TYPE_CHECKING, Any

from .clock import BeatClock
from .exceptions import BeatkeeperError
from .models import (
    DEFAULT_BPM,
    MAX_BPM,
    MIN_BPM,
    Beat,
    SoundType,
    StateSnapshot,
    TimeSignature,
    validate_bpm,
    validate_volume,
)

if TYPE_CHECKING:
    from .config import MetronomeConfig

logger = logging.getLogger(__name__)


class MetronomeController:
    """Owner of a BeatClock for use across threads.

    The lock is held for exactly one operation at a time. A caller that
    checks should_fire() and then calls advance() may see a settings
    change land in between; that costs at most one beat of jitter.

    Example:
        >>> controller = MetronomeController(120)
        >>> controller.start()
        >>> controller.advance().position_in_measure
        1
    """

    def __init__(
        self,
        initial_bpm: int = DEFAULT_BPM,
        *,
        config: MetronomeConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create a stopped controller.

        Args:
            initial_bpm: Starting tempo, ignored when config is given.
            config: Optional record seeding every clock field.
            clock: Time source in seconds.

        Raises:
            InvalidTempoError: If the tempo is out of range.
            InvalidVolumeError: If the configured volume is out of range.
        """
        if config is None:
            self._clock = BeatClock(validate_bpm(initial_bpm), clock=clock)
        else:
            config.validate()
            self._clock = BeatClock(
                config.bpm,
                config.time_signature,
                accent_enabled=config.accent_enabled,
                volume=config.volume,
                beat_sound=config.beat_sound,
                accent_sound=config.accent_sound,
                clock=clock,
            )
        self._lock = threading.Lock()
        self._continue = threading.Event()

    @classmethod
    def from_config(
        cls, config: MetronomeConfig, clock: Callable[[], float] = time.monotonic
    ) -> MetronomeController:
        return cls(config=config, clock=clock)

    # Continuation flag

    def start(self) -> None:
        """Raise the continuation flag, then start the clock."""
        self._continue.set()
        with self._lock:
            self._clock.start()

    def stop(self) -> None:
        """Lower the continuation flag, then stop the clock."""
        self._continue.clear()
        with self._lock:
            self._clock.stop()

    def request_stop(self) -> None:
        """Ask the driving loop to finish without touching the state lock."""
        self._continue.clear()

    def should_continue(self) -> bool:
        return self._continue.is_set()

    def is_running(self) -> bool:
        if not self._continue.is_set():
            return False
        with self._lock:
            return self._clock.is_running

    def install_signal_handler(self, signum: int = signal.SIGINT) -> Any:
        """Make ``signum`` request a stop.

        Must be called from the main thread.

        Returns:
            The previously installed handler.

        Raises:
            BeatkeeperError: If the handler cannot be installed.
        """

        def _handler(received: int, frame: FrameType | None) -> None:
            logger.info("Received signal %d, stopping metronome", received)
            self.request_stop()

        try:
            return signal.signal(signum, _handler)
        except ValueError as e:
            raise BeatkeeperError(f"Failed to install signal handler: {e}") from e

    # Beat dispatch

    def should_fire(self, last_fire: float) -> bool:
        with self._lock:
            return self._clock.should_fire(last_fire)

    def advance(self) -> Beat:
        with self._lock:
            return self._clock.advance()

    def reset_beat_position(self) -> None:
        with self._lock:
            self._clock.reset_beat_position()

    def now(self) -> float:
        return self._clock.now()

    # Settings

    def update_settings(
        self,
        *,
        bpm: int | None = None,
        time_signature: TimeSignature | None = None,
        beat_sound: SoundType | None = None,
        accent_sound: SoundType | None = None,
        accent_enabled: bool | None = None,
        volume: float | None = None,
    ) -> None:
        """Apply every supplied field as one atomic change.

        All values are validated before any is written, so a single
        invalid field leaves the whole state untouched.

        Raises:
            InvalidTempoError: If bpm is out of range.
            InvalidVolumeError: If volume is out of range.
        """
        with self._lock:
            if bpm is not None:
                validate_bpm(bpm)
            if volume is not None:
                validate_volume(volume)

            if bpm is not None:
                self._clock.set_bpm(bpm)
            if time_signature is not None:
                self._clock.set_time_signature(time_signature)
            if beat_sound is not None or accent_sound is not None:
                self._clock.set_sounds(
                    beat_sound if beat_sound is not None else self._clock.beat_sound,
                    accent_sound if accent_sound is not None else self._clock.accent_sound,
                )
            if accent_enabled is not None:
                self._clock.set_accent_enabled(accent_enabled)
            if volume is not None:
                self._clock.set_volume(volume)

    def set_bpm(self, bpm: int) -> None:
        with self._lock:
            self._clock.set_bpm(bpm)

    def adjust_bpm(self, delta: int) -> int:
        """Nudge the tempo, clamped into the supported range.

        Returns:
            The tempo after adjustment.
        """
        with self._lock:
            new_bpm = min(max(self._clock.bpm + delta, MIN_BPM), MAX_BPM)
            self._clock.set_bpm(new_bpm)
            return new_bpm

    def set_time_signature(self, time_signature: TimeSignature) -> None:
        with self._lock:
            self._clock.set_time_signature(time_signature)

    def cycle_time_signature(self) -> TimeSignature:
        with self._lock:
            time_signature = self._clock.time_signature.next()
            self._clock.set_time_signature(time_signature)
            return time_signature

    def set_volume(self, volume: float) -> None:
        with self._lock:
            self._clock.set_volume(volume)

    def set_sounds(self, beat_sound: SoundType, accent_sound: SoundType) -> None:
        with self._lock:
            self._clock.set_sounds(beat_sound, accent_sound)

    def set_accent_enabled(self, accent_enabled: bool) -> None:
        with self._lock:
            self._clock.set_accent_enabled(accent_enabled)

    def toggle_accent_enabled(self) -> bool:
        """Flip the accent switch in one locked step.

        Returns:
            The new accent setting.
        """
        with self._lock:
            self._clock.set_accent_enabled(not self._clock.accent_enabled)
            return self._clock.accent_enabled

    # Accessors

    def get_bpm(self) -> int:
        with self._lock:
            return self._clock.bpm

    def get_time_signature(self) -> TimeSignature:
        with self._lock:
            return self._clock.time_signature

    def get_volume(self) -> float:
        with self._lock:
            return self._clock.volume

    def get_accent_enabled(self) -> bool:
        with self._lock:
            return self._clock.accent_enabled

    def get_sounds(self) -> tuple[SoundType, SoundType]:
        """Return (beat_sound, accent_sound)."""
        with self._lock:
            return self._clock.beat_sound, self._clock.accent_sound

    def get_beat_count(self) -> int:
        with self._lock:
            return self._clock.beat_count

    def get_interval(self) -> float:
        with self._lock:
            return self._clock.interval()

    def get_elapsed(self) -> float:
        with self._lock:
            return self._clock.elapsed()

    def accent_strength_at(self, position: int) -> float:
        with self._lock:
            return self._clock.accent_strength_at(position)

    def get_state_snapshot(self) -> StateSnapshot:
        with self._lock:
            return self._clock.snapshot()
