"""Interactive settings prompt for beatkeeper.

This module asks for every configurable metronome setting using
questionary prompts, validating answers with the same rules the
metronome core enforces, and returns a new configuration record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import click
import questionary

from .audio import validate_sound_file
from .config import MetronomeConfig
from .exceptions import AudioError, InvalidTempoError, InvalidVolumeError
from .models import (
    BuiltinSound,
    CustomSound,
    SoundType,
    TimeSignature,
    sound_label,
    sound_to_text,
    validate_bpm,
    validate_volume,
)

# Sentinel value for the "custom file" menu entry
_CUSTOM_SENTINEL = "__custom__"


def parse_bpm_input(text: str) -> int:
    """Parse a typed tempo.

    Raises:
        InvalidTempoError: If the text is not an integer in range.
    """
    try:
        bpm = int(text.strip())
    except ValueError as e:
        raise InvalidTempoError(text) from e
    return validate_bpm(bpm)


def parse_volume_input(text: str) -> float:
    """Parse a typed volume, either "0.7" or "70%".

    Raises:
        InvalidVolumeError: If the text is not a number in range.
    """
    cleaned = text.strip()
    try:
        if cleaned.endswith("%"):
            volume = float(cleaned[:-1]) / 100
        else:
            volume = float(cleaned)
    except ValueError as e:
        raise InvalidVolumeError(text) from e
    return validate_volume(volume)


def _validator(parse: Callable[[str], Any]) -> Callable[[str], bool | str]:
    """Adapt a parser to questionary's validate protocol (True or message)."""

    def validate(text: str) -> bool | str:
        try:
            parse(text)
        except (InvalidTempoError, InvalidVolumeError, AudioError) as e:
            return str(e)
        return True

    return validate


def _ask(question: questionary.Question) -> Any:
    answer = question.ask()
    if answer is None:
        # User cancelled (Ctrl+C)
        raise click.Abort()
    return answer


def prompt_sound(message: str, default: SoundType) -> SoundType:
    """Prompt for a built-in sound or a custom sound file.

    Raises:
        click.Abort: If user cancels.
    """
    choices = [questionary.Choice(sound_label(s), value=s.value) for s in BuiltinSound]
    choices.append(questionary.Choice("Custom file...", value=_CUSTOM_SENTINEL))
    default_value = default.value if isinstance(default, BuiltinSound) else _CUSTOM_SENTINEL

    selected = _ask(questionary.select(message, choices=choices, default=default_value))
    if selected != _CUSTOM_SENTINEL:
        return BuiltinSound(selected)

    path_text = _ask(
        questionary.path(
            "Sound file:",
            default=sound_to_text(default) if isinstance(default, CustomSound) else "",
            validate=_validator(lambda text: validate_sound_file(Path(text).expanduser())),
        )
    )
    return CustomSound(Path(path_text).expanduser())


def prompt_settings(current: MetronomeConfig | None = None) -> MetronomeConfig:
    """Walk through every setting, starting from current values.

    Args:
        current: Settings shown as defaults. Uses MetronomeConfig() if None.

    Returns:
        A new config with the answers applied.

    Raises:
        click.Abort: If user cancels any prompt.
    """
    if current is None:
        current = MetronomeConfig()

    bpm = parse_bpm_input(
        _ask(
            questionary.text(
                "Tempo (BPM, 60-200):",
                default=str(current.bpm),
                validate=_validator(parse_bpm_input),
            )
        )
    )

    signature_label = _ask(
        questionary.select(
            "Time signature:",
            choices=[s.label for s in TimeSignature],
            default=current.time_signature.label,
        )
    )

    beat_sound = prompt_sound("Beat sound:", current.beat_sound)
    accent_sound = prompt_sound("Accent sound:", current.accent_sound)

    accent_enabled = _ask(
        questionary.confirm("Accent strong beats?", default=current.accent_enabled)
    )

    volume = parse_volume_input(
        _ask(
            questionary.text(
                "Volume (0.0-1.0 or percent):",
                default=f"{current.volume:g}",
                validate=_validator(parse_volume_input),
            )
        )
    )

    return replace(
        current,
        bpm=bpm,
        time_signature=TimeSignature.from_label(signature_label),
        beat_sound=beat_sound,
        accent_sound=accent_sound,
        accent_enabled=bool(accent_enabled),
        volume=volume,
    )
