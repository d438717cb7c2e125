"""Command-line interface for beatkeeper."""

from __future__ import annotations

import logging
import signal
import time
from contextlib import ExitStack
from dataclasses import replace
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from .audio import AudioEngine, synthesize
from .config import MetronomeConfig, get_config_path, load_config, save_config
from .configure import prompt_settings
from .controller import MetronomeController
from .controls import KeyboardControls
from .display import MetronomeDisplay, render_legend, render_startup
from .exceptions import AudioError, BeatkeeperError, InvalidTempoError, InvalidVolumeError
from .models import Beat, BuiltinSound, SoundType, TimeSignature, parse_sound, sound_label
from .runner import run_loop

logger = logging.getLogger(__name__)


def _time_signature_option(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> TimeSignature | None:
    if value is None:
        return None
    try:
        return TimeSignature.from_label(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _sound_option(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> SoundType | None:
    return None if value is None else parse_sound(value)


def resolve_config(
    config_path: Path | None,
    **overrides: Any,
) -> MetronomeConfig:
    """Merge command-line overrides over the saved (or default) config.

    Args:
        config_path: Config file to start from; the default location if None.
        **overrides: MetronomeConfig fields; None values are ignored.

    Returns:
        A validated MetronomeConfig.

    Raises:
        click.BadParameter: If the resulting tempo or volume is invalid.
    """
    base = load_config(config_path) or MetronomeConfig()
    config = replace(base, **{k: v for k, v in overrides.items() if v is not None})
    try:
        config.validate()
    except InvalidTempoError as e:
        raise click.BadParameter(str(e), param_hint="'BPM'") from e
    except InvalidVolumeError as e:
        raise click.BadParameter(str(e), param_hint="'--volume'") from e
    return config


@click.group()
@click.version_option(package_name="beatkeeper")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """beatkeeper - a terminal metronome with accented beats."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )


@main.command()
@click.argument("bpm", type=int, required=False)
@click.option(
    "-t",
    "--time-signature",
    callback=_time_signature_option,
    help="Time signature: None, 2/4, 3/4, 4/4, 5/8, 6/8, 7/8 or 8/8.",
)
@click.option(
    "--beat-sound",
    callback=_sound_option,
    help="Sound for regular beats: click, wood, beep or a file path.",
)
@click.option(
    "--accent-sound",
    callback=_sound_option,
    help="Sound for strong beats: click, wood, beep or a file path.",
)
@click.option("--accent/--no-accent", default=None, help="Accent strong beats.")
@click.option("--volume", type=float, help="Playback volume from 0.0 to 1.0.")
@click.option("--silent", is_flag=True, help="Do not play any audio.")
@click.option("--count", type=click.IntRange(min=1), help="Stop after this many beats.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file to read (and write with --save).",
)
@click.option("--save", is_flag=True, help="Save the resulting settings as the new defaults.")
@click.option("--keys/--no-keys", default=True, help="Enable keyboard controls.")
def run(
    bpm: int | None,
    time_signature: TimeSignature | None,
    beat_sound: SoundType | None,
    accent_sound: SoundType | None,
    accent: bool | None,
    volume: float | None,
    silent: bool,
    count: int | None,
    config_path: Path | None,
    save: bool,
    keys: bool,
) -> None:
    """Run the metronome at BPM beats per minute (60-200).

    Settings not given on the command line come from the saved config.
    Press Ctrl+C (or q) to stop.
    """
    config = resolve_config(
        config_path,
        bpm=bpm,
        time_signature=time_signature,
        beat_sound=beat_sound,
        accent_sound=accent_sound,
        accent_enabled=accent,
        volume=volume,
    )
    if save and not save_config(config, config_path):
        click.echo("Warning: could not save settings", err=True)

    controller = MetronomeController.from_config(config)
    audio = AudioEngine(muted=silent or not config.sound_enabled)
    audio_status = audio.initialize()
    audio.preload([config.beat_sound, config.accent_sound])

    console = Console()
    display = MetronomeDisplay(console)
    controls = KeyboardControls(controller)

    if config.visual_enabled:
        console.print(render_startup(config, audio_status, show_keys=keys))

    def on_beat(beat: Beat) -> None:
        try:
            audio.play_beat(beat)
        except AudioError as e:
            logger.warning("Audio playback error: %s", e)
        if config.visual_enabled:
            display.show_beat(beat, controller.get_state_snapshot())

    try:
        previous_handler = controller.install_signal_handler()
    except BeatkeeperError as e:
        logger.warning("%s", e)
        previous_handler = None

    started = time.monotonic()
    try:
        controller.start()
        with ExitStack() as stack:
            if config.visual_enabled:
                stack.enter_context(display)
            if keys:
                stack.enter_context(controls.active())
            fired = run_loop(controller, [on_beat], max_beats=count)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        audio.close()

    display.show_goodbye(fired, time.monotonic() - started)


@main.command()
@click.option(
    "-t",
    "--time-signature",
    callback=_time_signature_option,
    default="4/4",
    show_default=True,
    help="Time signature to describe.",
)
@click.option("--accent/--no-accent", default=True, help="Apply accents.")
def legend(time_signature: TimeSignature, accent: bool) -> None:
    """Show the accent pattern of a time signature."""
    Console().print(render_legend(time_signature, accent))


@main.command()
@click.option("--play", "play_sound", help="Play a sound once: click, wood, beep or a file path.")
@click.option("--volume", type=float, default=1.0, show_default=True)
def sounds(play_sound: str | None, volume: float) -> None:
    """List built-in sounds, or play one to test it."""
    if play_sound is None:
        for sound in BuiltinSound:
            data = synthesize(sound)
            click.echo(f"{sound.value:6} {sound_label(sound):6} {data.duration * 1000:.0f} ms")
        return

    sound = parse_sound(play_sound)
    audio = AudioEngine(fallback_enabled=False)
    try:
        audio.initialize()
        data = audio.load_sound_strict(sound)
        audio.play_sound(sound, volume)
        # Playback is non-blocking; wait for it before the process exits
        time.sleep(data.duration)
    except InvalidVolumeError as e:
        raise click.BadParameter(str(e), param_hint="'--volume'") from e
    except AudioError as e:
        raise click.ClickException(str(e)) from e
    finally:
        audio.close()
    click.echo(f"Played {sound_label(sound)}")


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file to edit.",
)
def configure(config_path: Path | None) -> None:
    """Interactively choose and save default settings."""
    current = load_config(config_path) or MetronomeConfig()
    config = prompt_settings(current)
    target = config_path or get_config_path()
    if not save_config(config, target):
        raise click.ClickException(f"Could not write {target}")
    click.echo(f"Saved settings to {target}")


if __name__ == "__main__":
    main()
