"""Custom exceptions for beatkeeper.

This module defines the exception hierarchy for handling errors
raised by the metronome core and its audio and configuration
collaborators.
"""


class BeatkeeperError(Exception):
    """Base exception for beatkeeper.

    All custom exceptions in this library inherit from this class,
    allowing callers to catch all beatkeeper-related errors with a
    single except clause.
    """


class InvalidTempoError(BeatkeeperError, ValueError):
    """Tempo outside the supported range.

    Raised on construction and by every tempo-setting operation.
    The value is rejected outright and the prior tempo is kept.
    """

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid BPM value: {value}. Must be between 60 and 200")


class InvalidVolumeError(BeatkeeperError, ValueError):
    """Volume outside the range 0.0 to 1.0."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid volume value: {value}. Must be between 0.0 and 1.0")


class AudioError(BeatkeeperError):
    """Base class for audio collaborator failures."""


class DeviceNotAvailableError(AudioError):
    """No audio output device could be opened.

    This can occur when:
    - The sounddevice package is not installed
    - The PortAudio library cannot be loaded
    - The host has no default output device
    """


class PlaybackError(AudioError):
    """A sound could not be played on an opened device."""


class SoundLoadError(AudioError):
    """A sound file could not be read."""


class UnsupportedFormatError(AudioError):
    """A sound file has an extension we cannot decode."""
