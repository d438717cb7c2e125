"""Keyboard controls for a running metronome.

A background thread reads single keystrokes from the terminal and
turns them into controller updates (tempo nudges, time signature
changes, accent toggling, stop requests). The terminal is put in
cbreak mode, so Ctrl+C still raises SIGINT for the signal handler.
"""

from __future__ import annotations

import logging
import os
import select
import sys
import termios
import threading
import tty
from collections.abc import Callable, Generator
from contextlib import contextmanager
from enum import Enum
from typing import Protocol, TextIO

from .controller import MetronomeController

logger = logging.getLogger(__name__)


class KeyAction(Enum):
    """Things a keystroke can ask the controller to do."""

    BPM_UP = "bpm_up"
    BPM_DOWN = "bpm_down"
    BPM_UP_LARGE = "bpm_up_large"
    BPM_DOWN_LARGE = "bpm_down_large"
    NEXT_SIGNATURE = "next_signature"
    TOGGLE_ACCENTS = "toggle_accents"
    RESET = "reset"
    QUIT = "quit"


KEY_BINDINGS: dict[str, KeyAction] = {
    "up": KeyAction.BPM_UP,
    "+": KeyAction.BPM_UP,
    "=": KeyAction.BPM_UP,
    "down": KeyAction.BPM_DOWN,
    "-": KeyAction.BPM_DOWN,
    "right": KeyAction.BPM_UP_LARGE,
    "left": KeyAction.BPM_DOWN_LARGE,
    "t": KeyAction.NEXT_SIGNATURE,
    "a": KeyAction.TOGGLE_ACCENTS,
    "r": KeyAction.RESET,
    "q": KeyAction.QUIT,
    "esc": KeyAction.QUIT,
}

_BPM_STEPS: dict[KeyAction, int] = {
    KeyAction.BPM_UP: 1,
    KeyAction.BPM_DOWN: -1,
    KeyAction.BPM_UP_LARGE: 10,
    KeyAction.BPM_DOWN_LARGE: -10,
}

# How long the reader waits for a key before rechecking for a stop
DEFAULT_KEY_POLL_INTERVAL = 0.05


class KeySource(Protocol):
    """Anything read_key can pull characters from."""

    def read(self, size: int, /) -> str: ...


class DescriptorReader:
    """Unbuffered character reads from a file descriptor.

    Reading the descriptor directly keeps select() accurate: a buffered
    text stream could hold keys that select() no longer reports.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd

    def read(self, size: int, /) -> str:
        return os.read(self.fd, size).decode("utf-8", errors="replace")


def read_key(stream: KeySource) -> str:
    """Read a single keypress, handling escape sequences for arrow keys.

    Returns:
        String representing the key pressed:
        - 'up', 'down', 'left', 'right' for arrow keys
        - 'esc' for Escape key (without arrow sequence)
        - '' at end of input
        - other single characters as-is, lowercased
    """
    arrow_keys = {"A": "up", "B": "down", "C": "right", "D": "left"}

    ch = stream.read(1)

    if ch == "\x1b":  # Escape sequence
        ch2 = stream.read(1)
        if ch2 == "[":
            ch3 = stream.read(1)
            if ch3 in arrow_keys:
                return arrow_keys[ch3]
        return "esc"
    return ch.lower()


def action_for_key(key: str) -> KeyAction | None:
    return KEY_BINDINGS.get(key)


def apply_key_action(controller: MetronomeController, action: KeyAction) -> None:
    """Perform a key action through the controller.

    Tempo nudges are clamped to the supported range, so no action
    raises for an out-of-range tempo.
    """
    if action in _BPM_STEPS:
        bpm = controller.adjust_bpm(_BPM_STEPS[action])
        logger.debug("Tempo adjusted to %d bpm", bpm)
    elif action is KeyAction.NEXT_SIGNATURE:
        signature = controller.cycle_time_signature()
        logger.debug("Time signature changed to %s", signature.label)
    elif action is KeyAction.TOGGLE_ACCENTS:
        enabled = controller.toggle_accent_enabled()
        logger.debug("Accents %s", "on" if enabled else "off")
    elif action is KeyAction.RESET:
        controller.reset_beat_position()
    elif action is KeyAction.QUIT:
        controller.request_stop()


class KeyboardControls:
    """Background key reader feeding a controller.

    The reader waits for input in short select() slices, so it notices a
    stop request without needing another keystroke and can be joined.

    Args:
        controller: Controller to update.
        stream: Input to read keys from (stdin by default).
        on_action: Optional callback invoked after each applied action.
        poll_interval: Seconds to wait for input before rechecking state.
    """

    def __init__(
        self,
        controller: MetronomeController,
        stream: TextIO | None = None,
        on_action: Callable[[KeyAction], None] | None = None,
        poll_interval: float = DEFAULT_KEY_POLL_INTERVAL,
    ) -> None:
        self.controller = controller
        self.stream = stream if stream is not None else sys.stdin
        self.on_action = on_action
        self.poll_interval = poll_interval
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    def _descriptor(self) -> int | None:
        try:
            return self.stream.fileno()
        except (OSError, ValueError):
            # In-memory streams have no descriptor and never block
            return None

    def process_keys(self) -> None:
        """Read and apply keys until input ends or reading is stopped."""
        fd = self._descriptor()
        source: KeySource = self.stream if fd is None else DescriptorReader(fd)
        while self.controller.should_continue() and not self._stopped.is_set():
            if fd is not None:
                ready, _, _ = select.select([fd], [], [], self.poll_interval)
                if not ready:
                    continue
            key = read_key(source)
            if key == "":
                break
            action = action_for_key(key)
            if action is None:
                continue
            apply_key_action(self.controller, action)
            if self.on_action is not None:
                self.on_action(action)

    def start(self) -> None:
        self._stopped.clear()
        self._thread = threading.Thread(target=self.process_keys, name="keys", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the reader thread and wait for it to exit."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Key reader did not stop within %.1fs", timeout)
            self._thread = None

    @contextmanager
    def active(self) -> Generator[bool, None, None]:
        """Read keys in the background while the block runs.

        The reader is joined before the terminal mode is restored.

        Yields:
            True if keyboard control is active, False when the input is
            not an interactive terminal.
        """
        if not self.stream.isatty():
            yield False
            return

        # cbreak delivers keys one at a time without echo; signal keys still work
        try:
            fd = self.stream.fileno()
            old_settings = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except (OSError, termios.error) as e:
            logger.warning("Keyboard controls unavailable: %s", e)
            yield False
            return

        try:
            self.start()
            yield True
        finally:
            self.stop()
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
