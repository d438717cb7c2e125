"""Audio playback for beatkeeper.

This module synthesises the built-in metronome sounds, loads custom
sound files, and plays beats through an output device. Two player
backends exist: one backed by sounddevice and a silent one used when
no device can be opened. The backend is chosen once by AudioEngine;
nothing in the metronome core knows which one is active.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np
import soundfile as sf  # type: ignore[import-untyped]

from .exceptions import (
    AudioError,
    DeviceNotAvailableError,
    PlaybackError,
    SoundLoadError,
    UnsupportedFormatError,
)
from .models import Beat, BuiltinSound, CustomSound, SoundType, validate_volume

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("wav", "flac", "ogg", "mp3")

# Custom sound files larger than this are rejected
MAX_SOUND_FILE_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True, eq=False)
class SoundData:
    """Decoded audio ready for playback.

    Attributes:
        sound: Handle this data was produced from.
        samples: float32 samples, shape (frames,) or (frames, channels).
        sample_rate: Samples per second.
        channels: Number of channels.
    """

    sound: SoundType
    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate


def _time_axis(duration_ms: int, sample_rate: int) -> np.ndarray:
    frames = sample_rate * duration_ms // 1000
    return np.arange(frames, dtype=np.float32) / np.float32(sample_rate)


def generate_click(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Sharp 2 kHz click: flat for the first tenth, then a linear decay."""
    t = _time_axis(50, sample_rate)
    frames = len(t)
    attack = frames // 10
    envelope = np.ones(frames, dtype=np.float32)
    decay = np.arange(frames - attack, dtype=np.float32) / np.float32(frames - attack)
    envelope[attack:] = np.clip(1.0 - decay, 0.0, None)
    wave = np.sin(2 * np.pi * 2000.0 * t)
    return (wave * 0.5 * envelope).astype(np.float32)


def generate_wood(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Wood block: 800 Hz with 3rd and 5th harmonics, exponential decay."""
    t = _time_axis(80, sample_rate)
    fundamental = 800.0
    wave = (
        np.sin(2 * np.pi * fundamental * t) * 0.6
        + np.sin(2 * np.pi * fundamental * 3 * t) * 0.3
        + np.sin(2 * np.pi * fundamental * 5 * t) * 0.1
    )
    envelope = np.exp(-t * 8.0)
    return (wave * 0.4 * envelope).astype(np.float32)


def generate_beep(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Clean 1 kHz beep with 1000-sample linear fades at both ends."""
    t = _time_axis(100, sample_rate)
    frames = len(t)
    fade = min(1000, frames // 2)
    envelope = np.ones(frames, dtype=np.float32)
    ramp = np.arange(fade, dtype=np.float32) / np.float32(fade)
    envelope[:fade] = ramp
    envelope[frames - fade :] = ramp[::-1] + np.float32(1.0 / fade)
    wave = np.sin(2 * np.pi * 1000.0 * t)
    return (wave * 0.3 * envelope).astype(np.float32)


_GENERATORS: dict[BuiltinSound, Callable[[int], np.ndarray]] = {
    BuiltinSound.CLICK: generate_click,
    BuiltinSound.WOOD: generate_wood,
    BuiltinSound.BEEP: generate_beep,
}


def synthesize(sound: BuiltinSound, sample_rate: int = SAMPLE_RATE) -> SoundData:
    return SoundData(
        sound=sound,
        samples=_GENERATORS[sound](sample_rate),
        sample_rate=sample_rate,
        channels=1,
    )


def validate_sound_file(path: Path) -> None:
    """Check that a path points at a loadable sound file.

    Args:
        path: Candidate sound file.

    Raises:
        SoundLoadError: If the file is missing, not a regular file,
            unreadable, or larger than MAX_SOUND_FILE_BYTES.
        UnsupportedFormatError: If the extension is missing or unsupported.
    """
    if not path.exists():
        raise SoundLoadError(f"File not found: {path}")
    if not path.is_file():
        raise SoundLoadError(f"Path is not a file: {path}")
    try:
        size = path.stat().st_size
    except OSError as e:
        raise SoundLoadError(f"Cannot read file metadata: {e}") from e
    if size > MAX_SOUND_FILE_BYTES:
        raise SoundLoadError("File too large (max 10MB)")

    extension = path.suffix.lower().lstrip(".")
    if not extension:
        raise UnsupportedFormatError("No file extension found")
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(f"Unsupported file format: {extension}")


def load_sound_file(path: Path) -> SoundData:
    """Validate and decode a custom sound file.

    Raises:
        SoundLoadError: If the file fails validation or decoding.
        UnsupportedFormatError: If the extension is unsupported.
    """
    validate_sound_file(path)
    try:
        samples, sample_rate = sf.read(str(path), dtype="float32")
    except (RuntimeError, OSError) as e:
        raise SoundLoadError(f"Cannot decode {path.name}: {e}") from e
    channels = 1 if samples.ndim == 1 else samples.shape[1]
    return SoundData(
        sound=CustomSound(path),
        samples=samples,
        sample_rate=int(sample_rate),
        channels=channels,
    )


def sound_for_beat(beat: Beat) -> SoundType:
    """Pick the sound for a beat from the handles it was fired with.

    Only full-strength beats use the accent sound.
    """
    return beat.sound


class AudioStatus(Enum):
    """State of the audio backend, valued by its display text."""

    AVAILABLE = "Audio available"
    UNAVAILABLE = "Audio unavailable"
    FALLBACK = "Visual-only mode"
    DISABLED = "Audio disabled"

    def __str__(self) -> str:
        return self.value


class AudioPlayer(ABC):
    """Output backend that can play decoded sounds."""

    @abstractmethod
    def play(self, data: SoundData, volume: float) -> None:
        """Start playing data without blocking.

        Raises:
            PlaybackError: If the device rejects the samples.
        """

    @abstractmethod
    def is_available(self) -> bool: ...

    def close(self) -> None:
        """Release the device. Default does nothing."""


class SilentPlayer(AudioPlayer):
    """Backend that plays nothing, for hosts without an output device."""

    def play(self, data: SoundData, volume: float) -> None:
        logger.debug("Silent playback of %s", data.sound)

    def is_available(self) -> bool:
        return False


class SounddevicePlayer(AudioPlayer):
    """Backend playing through the default PortAudio output device."""

    def __init__(self) -> None:
        """Open the sounddevice module and check for an output device.

        Raises:
            DeviceNotAvailableError: If sounddevice or PortAudio cannot be
                loaded, or no output device exists.
        """
        try:
            import sounddevice as sd  # type: ignore[import-untyped]  # noqa: PLC0415
        except (ImportError, OSError) as e:
            raise DeviceNotAvailableError(f"sounddevice could not be loaded: {e}") from e

        try:
            sd.query_devices(kind="output")
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceNotAvailableError(f"No output device: {e}") from e

        self._sd = sd

    def play(self, data: SoundData, volume: float) -> None:
        try:
            self._sd.play(data.samples * np.float32(volume), samplerate=data.sample_rate)
        except self._sd.PortAudioError as e:
            raise PlaybackError(str(e)) from e

    def is_available(self) -> bool:
        return True

    def close(self) -> None:
        self._sd.stop()


class AudioEngine:
    """Sound cache plus the chosen playback backend.

    Call initialize() once before playing. With fallback enabled, a
    missing device degrades to visual-only mode instead of failing.
    """

    def __init__(
        self,
        player_factory: Callable[[], AudioPlayer] | None = None,
        *,
        fallback_enabled: bool = True,
        muted: bool = False,
    ) -> None:
        self._player_factory = player_factory
        self.fallback_enabled = fallback_enabled
        self.muted = muted
        self.player: AudioPlayer | None = None
        self._cache: dict[SoundType, SoundData] = {}

    def initialize(self) -> AudioStatus:
        """Load built-in sounds and open the playback backend.

        Returns:
            The resulting status.

        Raises:
            DeviceNotAvailableError: If no device is available and
                fallback is disabled.
        """
        self.load_builtin_sounds()

        if self.muted:
            self.player = SilentPlayer()
            return self.status

        factory = self._player_factory if self._player_factory is not None else SounddevicePlayer
        try:
            self.player = factory()
        except DeviceNotAvailableError as e:
            if not self.fallback_enabled:
                raise
            logger.warning("Audio initialization failed (%s), using visual-only mode", e)
            self.player = SilentPlayer()
        return self.status

    @property
    def status(self) -> AudioStatus:
        if self.player is None:
            return AudioStatus.FALLBACK if self.fallback_enabled else AudioStatus.DISABLED
        if isinstance(self.player, SilentPlayer):
            return AudioStatus.DISABLED if self.muted else AudioStatus.FALLBACK
        return AudioStatus.AVAILABLE if self.player.is_available() else AudioStatus.UNAVAILABLE

    def is_available(self) -> bool:
        return self.status is AudioStatus.AVAILABLE

    def load_builtin_sounds(self) -> None:
        for sound in BuiltinSound:
            if sound not in self._cache:
                self._cache[sound] = synthesize(sound)

    def load_sound_strict(self, sound: SoundType) -> SoundData:
        """Return cached data for sound, loading it if needed.

        Raises:
            AudioError: If a custom sound cannot be loaded.
        """
        if sound not in self._cache:
            if isinstance(sound, BuiltinSound):
                self._cache[sound] = synthesize(sound)
            else:
                self._cache[sound] = load_sound_file(sound.path)
        return self._cache[sound]

    def load_sound(self, sound: SoundType) -> SoundData:
        """Like load_sound_strict, but a broken custom sound falls back to CLICK.

        The fallback is cached under the broken handle so the failure is
        reported once.
        """
        try:
            return self.load_sound_strict(sound)
        except AudioError as e:
            logger.warning("Failed to load sound %s (%s), using built-in click", sound, e)
            fallback = self.load_sound_strict(BuiltinSound.CLICK)
            self._cache[sound] = fallback
            return fallback

    def preload(self, sounds: Iterable[SoundType]) -> None:
        for sound in sounds:
            self.load_sound(sound)

    def is_cached(self, sound: SoundType) -> bool:
        return sound in self._cache

    def cached_sounds(self) -> list[SoundType]:
        return list(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def play_sound(self, sound: SoundType, volume: float = 1.0) -> None:
        """Play one sound. A no-op in visual-only mode.

        Raises:
            InvalidVolumeError: If volume is out of range.
            PlaybackError: If the device rejects the sound.
        """
        validate_volume(volume)
        data = self.load_sound(sound)
        if self.player is None:
            return
        self.player.play(data, volume)

    def play_beat(self, beat: Beat) -> SoundType:
        """Play a beat with the sound and volume it was fired with.

        Returns:
            The sound that was selected.
        """
        sound = sound_for_beat(beat)
        self.play_sound(sound, beat.volume)
        return sound

    def close(self) -> None:
        if self.player is not None:
            self.player.close()
