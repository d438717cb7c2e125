"""Terminal display for beatkeeper.

This module renders metronome state with rich: a startup panel, an
accent legend for the active time signature, and a live status line
showing tempo, beat count, elapsed time and the position within the
measure. Render functions return rich objects so they can be
inspected without a terminal.
"""

from __future__ import annotations

from dataclasses import replace

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .audio import AudioStatus
from .config import MetronomeConfig
from .models import (
    Beat,
    BeatStrength,
    StateSnapshot,
    TimeSignature,
    accent_strength_at,
    classify_strength,
    sound_label,
)

# Symbol and colour for each strength class
STRENGTH_SYMBOLS: dict[BeatStrength, str] = {
    BeatStrength.STRONG: "●",  # Solid circle
    BeatStrength.MEDIUM: "◐",  # Half-filled circle
    BeatStrength.WEAK: "○",  # Empty circle
}

STRENGTH_COLORS: dict[BeatStrength, str] = {
    BeatStrength.STRONG: "red",
    BeatStrength.MEDIUM: "yellow",
    BeatStrength.WEAK: "white",
}

KEY_HELP: list[tuple[str, str]] = [
    ("↑/↓", "±1 bpm"),
    ("←/→", "±10 bpm"),
    ("t", "Time signature"),
    ("a", "Accents"),
    ("r", "Reset"),
    ("q", "Quit"),
]


def beat_symbol(strength: float) -> str:
    return STRENGTH_SYMBOLS[classify_strength(strength)]


def format_elapsed(seconds: float) -> str:
    """Format seconds as MM:SS."""
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def measure_strengths(time_signature: TimeSignature, accent_enabled: bool) -> list[float]:
    """Preview the strength of every position in one measure."""
    return [
        accent_strength_at(time_signature, position, accent_enabled)
        for position in range(1, time_signature.beats_per_measure + 1)
    ]


def describe_pattern(time_signature: TimeSignature, accent_enabled: bool = True) -> str:
    """Describe a measure in words, e.g. "Strong-weak-medium-weak"."""
    words = [
        classify_strength(strength).value
        for strength in measure_strengths(time_signature, accent_enabled)
    ]
    return "-".join(words).capitalize()


def render_measure(
    time_signature: TimeSignature,
    current_position: int,
    accent_enabled: bool = True,
) -> Text:
    """Render one symbol per position, highlighting the current one.

    Args:
        time_signature: Signature whose measure is drawn.
        current_position: 1-based position to highlight.
        accent_enabled: Global accent switch.

    Returns:
        Rich Text such as "● ○ ◐ ○ (1/4)".
    """
    beats = time_signature.beats_per_measure
    measure = Text()
    for position, strength in enumerate(measure_strengths(time_signature, accent_enabled), 1):
        strength_class = classify_strength(strength)
        color = STRENGTH_COLORS[strength_class]
        style = f"bold {color}" if position == current_position else f"dim {color}"
        measure.append(STRENGTH_SYMBOLS[strength_class], style=style)
        if position < beats:
            measure.append(" ")
    measure.append(f" ({current_position}/{beats})", style="dim")
    return measure


def render_status(snapshot: StateSnapshot) -> Text:
    """Render the one-line running status."""
    status = Text()
    status.append("BPM: ", style="dim")
    status.append(f"{snapshot.bpm:3d}", style="bold")
    status.append(" | Beat: ", style="dim")
    status.append(f"{snapshot.beat_count:4d}", style="bold")
    status.append(" | Time: ", style="dim")
    status.append(format_elapsed(snapshot.elapsed), style="green")
    status.append(" | ", style="dim")
    status.append(snapshot.time_signature.label, style="cyan")
    status.append(": ", style="dim")
    status.append_text(
        render_measure(
            snapshot.time_signature,
            snapshot.position_in_measure,
            snapshot.accent_enabled,
        )
    )
    if not snapshot.accent_enabled:
        status.append(" accents off", style="dim italic")
    return status


def render_legend(time_signature: TimeSignature, accent_enabled: bool = True) -> Table:
    """Render a table of positions and strengths for a time signature."""
    table = Table(
        title=f"Beat pattern: [cyan]{time_signature.label}[/]",
        caption=describe_pattern(time_signature, accent_enabled),
        show_header=True,
        header_style="bold",
        # Caption wraps to table width; leave room for the 8/8 description
        min_width=48,
    )
    table.add_column("Beat", justify="right", style="dim", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Strength", justify="right", no_wrap=True)
    table.add_column("Class", no_wrap=True)

    for position, strength in enumerate(measure_strengths(time_signature, accent_enabled), 1):
        strength_class = classify_strength(strength)
        color = STRENGTH_COLORS[strength_class]
        table.add_row(
            str(position),
            Text(STRENGTH_SYMBOLS[strength_class], style=f"bold {color}"),
            f"{strength:.1f}",
            Text(strength_class.value, style=color),
        )
    return table


def render_key_help() -> Text:
    """Render the help text for keyboard controls."""
    help_text = Text()
    for i, (key, action) in enumerate(KEY_HELP):
        help_text.append("[" if i == 0 else "  [", style="dim")
        help_text.append(key, style="bold cyan")
        help_text.append(f"] {action}", style="dim")
    return help_text


def render_startup(
    config: MetronomeConfig,
    audio_status: AudioStatus,
    show_keys: bool = True,
) -> Panel:
    """Render the startup panel summarising the session settings."""
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="dim", no_wrap=True)
    grid.add_column()
    grid.add_row("BPM", Text(str(config.bpm), style="bold"))
    grid.add_row("Time signature", Text(config.time_signature.label, style="cyan"))
    grid.add_row("Accents", "on" if config.accent_enabled else "off")
    grid.add_row("Beat sound", sound_label(config.beat_sound))
    grid.add_row("Accent sound", sound_label(config.accent_sound))
    grid.add_row("Volume", f"{config.volume:.0%}")
    grid.add_row("Audio", str(audio_status))

    footer = render_key_help() if show_keys else Text("Press Ctrl+C to stop", style="dim")
    return Panel(Group(grid, Text(), footer), title="beatkeeper", expand=False)


class MetronomeDisplay:
    """Live-updating status line for a running metronome.

    Use as a context manager around the beat loop; show_beat() is safe
    to pass straight to the loop as a callback target.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> MetronomeDisplay:
        self._live = Live(
            Text("Waiting for first beat...", style="dim"),
            console=self.console,
            auto_refresh=False,
            transient=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._live is not None:
            self._live.__exit__(*exc_info)
            self._live = None

    def show_beat(self, beat: Beat, snapshot: StateSnapshot) -> None:
        """Redraw the status line for a freshly fired beat.

        Beat fields win over the snapshot, which may have been taken after
        a later settings change.
        """
        line = render_status(
            replace(
                snapshot,
                bpm=beat.bpm,
                beat_count=beat.sequence_number,
                time_signature=beat.time_signature,
                position_in_measure=beat.position_in_measure,
                accent_enabled=beat.accent_enabled,
            )
        )
        line.append("  ")
        line.append(beat_symbol(beat.accent_strength), style="bold")
        if self._live is not None:
            self._live.update(line, refresh=True)
        else:
            self.console.print(line)

    def show_goodbye(self, beat_count: int, elapsed: float) -> None:
        self.console.print(
            f"Stopped after [bold]{beat_count}[/] beats ({format_elapsed(elapsed)})."
        )
