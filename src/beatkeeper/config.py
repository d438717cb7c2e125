"""Configuration file management for beatkeeper.

This module provides the configuration record that seeds a metronome
(tempo, time signature, sounds, accent switch, volume) together with
loading and saving it as a JSON file in the user's application
directory.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import click

from .models import (
    DEFAULT_ACCENT_SOUND,
    DEFAULT_BEAT_SOUND,
    DEFAULT_BPM,
    DEFAULT_VOLUME,
    SoundType,
    TimeSignature,
    parse_sound,
    sound_to_text,
    validate_bpm,
    validate_volume,
)

logger = logging.getLogger(__name__)

# Current config file version
CONFIG_VERSION = 1

APP_NAME = "beatkeeper"
CONFIG_FILENAME = "config.json"


@dataclass
class MetronomeConfig:
    """Settings a metronome is constructed from.

    Attributes:
        version: Config file format version.
        bpm: Tempo in beats per minute (60-200).
        time_signature: Time signature for accent patterns.
        beat_sound: Sound played on regular beats.
        accent_sound: Sound played on strong beats.
        sound_enabled: Whether audio playback is wanted at all.
        visual_enabled: Whether the terminal display is wanted.
        accent_enabled: Whether accent strengths are applied.
        volume: Playback volume (0.0-1.0).
    """

    version: int = CONFIG_VERSION
    bpm: int = DEFAULT_BPM
    time_signature: TimeSignature = TimeSignature.FOUR
    beat_sound: SoundType = DEFAULT_BEAT_SOUND
    accent_sound: SoundType = DEFAULT_ACCENT_SOUND
    sound_enabled: bool = True
    visual_enabled: bool = True
    accent_enabled: bool = True
    volume: float = DEFAULT_VOLUME

    def validate(self) -> None:
        """Raise InvalidTempoError or InvalidVolumeError for bad values."""
        validate_bpm(self.bpm)
        validate_volume(self.volume)

    def with_volume(self, volume: float) -> MetronomeConfig:
        """Return a copy with volume clamped into [0.0, 1.0]."""
        return replace(self, volume=min(max(float(volume), 0.0), 1.0))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "bpm": self.bpm,
            "time_signature": self.time_signature.label,
            "beat_sound": sound_to_text(self.beat_sound),
            "accent_sound": sound_to_text(self.accent_sound),
            "sound_enabled": self.sound_enabled,
            "visual_enabled": self.visual_enabled,
            "accent_enabled": self.accent_enabled,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetronomeConfig:
        """Create from dictionary (parsed JSON).

        Missing keys fall back to defaults. Values are not range-checked
        here; call validate() before using the result.

        Args:
            data: Dictionary from parsed JSON.

        Returns:
            MetronomeConfig instance.

        Raises:
            TypeError: If data is not a dictionary.
            ValueError: If the time signature label is unknown.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict, got {type(data).__name__}")

        time_signature = TimeSignature.default()
        if "time_signature" in data:
            time_signature = TimeSignature.from_label(str(data["time_signature"]))

        return cls(
            version=data.get("version", CONFIG_VERSION),
            bpm=data.get("bpm", DEFAULT_BPM),
            time_signature=time_signature,
            beat_sound=parse_sound(data.get("beat_sound", sound_to_text(DEFAULT_BEAT_SOUND))),
            accent_sound=parse_sound(
                data.get("accent_sound", sound_to_text(DEFAULT_ACCENT_SOUND))
            ),
            sound_enabled=data.get("sound_enabled", True),
            visual_enabled=data.get("visual_enabled", True),
            accent_enabled=data.get("accent_enabled", True),
            volume=data.get("volume", DEFAULT_VOLUME),
        )


def get_config_path() -> Path:
    """Get the default config file path.

    The file lives in the platform's per-user application directory,
    e.g. ~/.config/beatkeeper/config.json on Linux.
    """
    return Path(click.get_app_dir(APP_NAME)) / CONFIG_FILENAME


def load_config(config_path: Path | None = None) -> MetronomeConfig | None:
    """Load config from a JSON file if it exists.

    Args:
        config_path: File to read. Defaults to get_config_path().

    Returns:
        MetronomeConfig if file exists and is valid, None otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        logger.debug("No config file found at %s", config_path)
        return None

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        config = MetronomeConfig.from_dict(data)
        config.validate()
        logger.info("Loaded config from %s", config_path)
        return config
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return None
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return None


def save_config(config: MetronomeConfig, config_path: Path | None = None) -> bool:
    """Save config to a JSON file, creating its directory if needed.

    Args:
        config: Configuration to save.
        config_path: File to write. Defaults to get_config_path().

    Returns:
        True if saved successfully, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
        logger.info("Saved config to %s", config_path)
        return True
    except OSError as e:
        logger.warning("Failed to write config file %s: %s", config_path, e)
        return False
