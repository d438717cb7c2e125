"""Domain models for beatkeeper.

Immutable data classes and enumerations describing time signatures,
fired beats, sound handles and state snapshots. Accent strengths are
read from a single table indexed by beats per measure, so every
accent-related predicate agrees with every other one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .exceptions import InvalidTempoError, InvalidVolumeError

MIN_BPM = 60
MAX_BPM = 200
DEFAULT_BPM = 120
DEFAULT_VOLUME = 0.7

# Downbeat = 1.0, mid-measure accent = 0.5, everything else 0.0
ACCENT_PATTERNS: dict[int, tuple[float, ...]] = {
    1: (0.0,),
    2: (1.0, 0.0),
    3: (1.0, 0.0, 0.0),
    4: (1.0, 0.0, 0.5, 0.0),
    5: (1.0, 0.0, 0.0, 0.0, 0.0),
    6: (1.0, 0.0, 0.0, 0.5, 0.0, 0.0),
    7: (1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
    8: (1.0, 0.0, 0.0, 0.0, 0.5, 0.0, 0.0, 0.0),
}

_LABELS: dict[int, str] = {
    1: "None",
    2: "2/4",
    3: "3/4",
    4: "4/4",
    5: "5/8",
    6: "6/8",
    7: "7/8",
    8: "8/8",
}


def validate_bpm(bpm: int) -> int:
    """Check that a tempo lies within [MIN_BPM, MAX_BPM].

    Args:
        bpm: Tempo in beats per minute.

    Returns:
        The tempo, unchanged.

    Raises:
        InvalidTempoError: If bpm is not an integer in range.
    """
    if isinstance(bpm, bool) or not isinstance(bpm, int) or not MIN_BPM <= bpm <= MAX_BPM:
        raise InvalidTempoError(bpm)
    return bpm


def validate_volume(volume: float) -> float:
    """Check that a volume lies within [0.0, 1.0].

    Raises:
        InvalidVolumeError: If volume is out of range (NaN included).
    """
    if isinstance(volume, bool) or not isinstance(volume, (int, float)):
        raise InvalidVolumeError(volume)
    if not 0.0 <= volume <= 1.0:
        raise InvalidVolumeError(volume)
    return float(volume)


class TimeSignature(Enum):
    """Supported time signatures, valued by beats per measure."""

    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8

    @property
    def beats_per_measure(self) -> int:
        return self.value

    @property
    def label(self) -> str:
        return _LABELS[self.value]

    @property
    def accent_pattern(self) -> tuple[float, ...]:
        return ACCENT_PATTERNS[self.value]

    @classmethod
    def default(cls) -> TimeSignature:
        return cls.FOUR

    @classmethod
    def from_label(cls, text: str) -> TimeSignature:
        """Parse a display label ("3/4"), a beat count ("3") or "none".

        Args:
            text: User supplied text.

        Returns:
            The matching TimeSignature.

        Raises:
            ValueError: If the text names no supported signature.
        """
        cleaned = text.strip().lower()
        for signature in cls:
            if cleaned == signature.label.lower():
                return signature
        if cleaned.isdigit() and int(cleaned) in ACCENT_PATTERNS:
            return cls(int(cleaned))
        choices = ", ".join(s.label for s in cls)
        raise ValueError(f"Unknown time signature {text!r} (choose from {choices})")

    def next(self) -> TimeSignature:
        """Return the following signature, wrapping after EIGHT."""
        members = list(TimeSignature)
        return members[(members.index(self) + 1) % len(members)]


class BeatStrength(Enum):
    """Classification of an accent strength value."""

    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


def classify_strength(strength: float) -> BeatStrength:
    """Classify a strength: strong at 1.0, weak at 0.0, medium in between."""
    if strength >= 1.0:
        return BeatStrength.STRONG
    if strength > 0.0:
        return BeatStrength.MEDIUM
    return BeatStrength.WEAK


def accent_strength_at(
    time_signature: TimeSignature, position: int, accent_enabled: bool = True
) -> float:
    """Look up the accent strength of a position within a measure.

    Disabled accents override the pattern entirely rather than editing it.

    Args:
        time_signature: Signature whose pattern is consulted.
        position: 1-based position within the measure.
        accent_enabled: Global accent switch.

    Returns:
        Strength in [0.0, 1.0].

    Raises:
        ValueError: If position is outside [1, beats_per_measure].
    """
    beats = time_signature.beats_per_measure
    if not 1 <= position <= beats:
        raise ValueError(f"Position {position} outside measure of {beats} beats")
    if not accent_enabled:
        return 0.0
    return time_signature.accent_pattern[position - 1]


def position_in_measure(sequence_number: int, time_signature: TimeSignature) -> int:
    """Map a 1-based beat sequence number to its position in the measure."""
    effective = max(sequence_number, 1)
    return (effective - 1) % time_signature.beats_per_measure + 1


class BuiltinSound(Enum):
    """Sounds synthesised by the audio collaborator."""

    CLICK = "click"
    WOOD = "wood"
    BEEP = "beep"


@dataclass(frozen=True)
class CustomSound:
    """A user-supplied sound file."""

    path: Path


SoundType = BuiltinSound | CustomSound

DEFAULT_BEAT_SOUND = BuiltinSound.CLICK
DEFAULT_ACCENT_SOUND = BuiltinSound.WOOD


def parse_sound(text: str) -> SoundType:
    """Map a builtin sound name or a file path to a sound handle."""
    cleaned = text.strip()
    try:
        return BuiltinSound(cleaned.lower())
    except ValueError:
        return CustomSound(Path(cleaned).expanduser())


def sound_to_text(sound: SoundType) -> str:
    """Inverse of parse_sound, used for persisting configuration."""
    if isinstance(sound, BuiltinSound):
        return sound.value
    return str(sound.path)


def sound_label(sound: SoundType) -> str:
    """Human-readable name of a sound handle."""
    if isinstance(sound, BuiltinSound):
        return sound.value.capitalize()
    return f"Custom: {sound.path.name or 'Unknown'}"


@dataclass(frozen=True)
class Beat:
    """One fired beat.

    Produced by a single advance of the clock and never mutated after.
    A sequence number of 0 is treated as 1 so that off-by-one callers
    still get a valid downbeat.

    Attributes:
        sequence_number: 1-based count of beats since start.
        position_in_measure: 1-based position within the measure.
        accent_strength: Strength in [0.0, 1.0] from the accent table.
        time_signature: Signature at creation time.
        bpm: Tempo at creation time.
        accent_enabled: Whether accents were enabled at creation time.
        timestamp: Monotonic creation time in seconds.
        beat_sound: Regular beat sound configured at creation time.
        accent_sound: Accent sound configured at creation time.
        volume: Playback volume configured at creation time.
    """

    sequence_number: int
    position_in_measure: int
    accent_strength: float
    time_signature: TimeSignature
    bpm: int
    accent_enabled: bool = True
    timestamp: float = field(default_factory=time.monotonic)
    beat_sound: SoundType = DEFAULT_BEAT_SOUND
    accent_sound: SoundType = DEFAULT_ACCENT_SOUND
    volume: float = DEFAULT_VOLUME

    def __post_init__(self) -> None:
        if self.sequence_number == 0:
            object.__setattr__(self, "sequence_number", 1)

    @classmethod
    def create(
        cls,
        sequence_number: int,
        time_signature: TimeSignature,
        bpm: int,
        accent_enabled: bool = True,
        timestamp: float | None = None,
        beat_sound: SoundType = DEFAULT_BEAT_SOUND,
        accent_sound: SoundType = DEFAULT_ACCENT_SOUND,
        volume: float = DEFAULT_VOLUME,
    ) -> Beat:
        """Build a beat, deriving position and strength from the sequence number."""
        effective = 1 if sequence_number == 0 else sequence_number
        position = position_in_measure(effective, time_signature)
        return cls(
            sequence_number=effective,
            position_in_measure=position,
            accent_strength=accent_strength_at(time_signature, position, accent_enabled),
            time_signature=time_signature,
            bpm=bpm,
            accent_enabled=accent_enabled,
            timestamp=time.monotonic() if timestamp is None else timestamp,
            beat_sound=beat_sound,
            accent_sound=accent_sound,
            volume=volume,
        )

    @property
    def sound(self) -> SoundType:
        """Sound to play for this beat. Only full-strength beats use the accent sound."""
        return self.accent_sound if self.uses_accent_sound else self.beat_sound

    @property
    def is_first_beat(self) -> bool:
        return self.position_in_measure == 1

    @property
    def is_accent(self) -> bool:
        """Whether the accent pattern marks this position at all.

        Medium beats count as accented here, unlike uses_accent_sound.
        """
        return self.accent_enabled and self.accent_strength > 0.0

    @property
    def uses_accent_sound(self) -> bool:
        """Whether audio playback should use the accent sound."""
        return self.accent_strength >= 1.0

    @property
    def strength(self) -> BeatStrength:
        return classify_strength(self.accent_strength)

    @property
    def is_strong_beat(self) -> bool:
        return self.strength is BeatStrength.STRONG

    @property
    def is_medium_beat(self) -> bool:
        return self.strength is BeatStrength.MEDIUM

    @property
    def is_weak_beat(self) -> bool:
        return self.strength is BeatStrength.WEAK


@dataclass(frozen=True)
class StateSnapshot:
    """Copy of the clock state taken under the controller lock."""

    bpm: int
    beat_count: int
    elapsed: float
    time_signature: TimeSignature
    position_in_measure: int
    is_running: bool
    volume: float = DEFAULT_VOLUME
    accent_enabled: bool = True
    beat_sound: SoundType = DEFAULT_BEAT_SOUND
    accent_sound: SoundType = DEFAULT_ACCENT_SOUND
    interval: float = 60 / DEFAULT_BPM
