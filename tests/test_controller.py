"""Tests for MetronomeController."""

from __future__ import annotations

import signal
import threading
import time
from typing import TYPE_CHECKING

import pytest

from beatkeeper.config import MetronomeConfig
from beatkeeper.controller import MetronomeController
from beatkeeper.exceptions import BeatkeeperError, InvalidTempoError, InvalidVolumeError
from beatkeeper.models import BuiltinSound, CustomSound, TimeSignature

if TYPE_CHECKING:
    from pathlib import Path

    from conftest import FakeClock


class TestConstruction:
    """Tests for creating a controller."""

    def test_initial_bpm(self) -> None:
        """Controller starts stopped at the requested tempo."""
        controller = MetronomeController(90)

        assert controller.get_bpm() == 90
        assert not controller.is_running()
        assert not controller.should_continue()

    def test_invalid_bpm(self) -> None:
        """Out of range initial tempo raises InvalidTempoError with the value."""
        with pytest.raises(InvalidTempoError) as exc_info:
            MetronomeController(300)
        assert exc_info.value.value == 300

    def test_from_config(self) -> None:
        """from_config seeds every setting."""
        config = MetronomeConfig(
            bpm=80,
            time_signature=TimeSignature.SEVEN,
            accent_enabled=False,
            volume=0.2,
        )
        controller = MetronomeController.from_config(config)

        assert controller.get_bpm() == 80
        assert controller.get_time_signature() is TimeSignature.SEVEN
        assert not controller.get_accent_enabled()
        assert controller.get_volume() == 0.2

    def test_from_config_invalid_volume(self) -> None:
        """A config with an invalid volume is rejected."""
        with pytest.raises(InvalidVolumeError):
            MetronomeController.from_config(MetronomeConfig(volume=3.0))


class TestContinuationFlag:
    """Tests for start, stop and cancellation."""

    def test_start_and_stop(self) -> None:
        """start() raises the flag and runs the clock; stop() undoes both."""
        controller = MetronomeController()

        controller.start()
        assert controller.should_continue()
        assert controller.is_running()

        controller.stop()
        assert not controller.should_continue()
        assert not controller.is_running()

    def test_request_stop_only_lowers_flag(self) -> None:
        """request_stop() ends the loop without stopping the clock itself."""
        controller = MetronomeController()
        controller.start()

        controller.request_stop()

        assert not controller.should_continue()
        assert not controller.is_running()
        assert controller.get_state_snapshot().is_running

    def test_flag_does_not_need_state_lock(self) -> None:
        """Cancellation works while another thread holds the state lock."""
        controller = MetronomeController()
        controller.start()
        results: list[bool] = []

        def cancel() -> None:
            controller.request_stop()
            results.append(controller.should_continue())

        with controller._lock:
            worker = threading.Thread(target=cancel)
            worker.start()
            worker.join(timeout=2.0)
            assert not worker.is_alive()

        assert results == [False]

    def test_stop_from_another_thread(self) -> None:
        """A loop polling should_continue() sees a stop issued elsewhere."""
        controller = MetronomeController()
        controller.start()

        stopper = threading.Timer(0.05, controller.stop)
        stopper.start()

        deadline = time.monotonic() + 2.0
        while controller.should_continue() and time.monotonic() < deadline:
            time.sleep(0.001)
        stopper.join()

        assert not controller.should_continue()

    def test_signal_handler_requests_stop(self) -> None:
        """The installed handler lowers the flag."""
        controller = MetronomeController()
        controller.start()

        previous = controller.install_signal_handler()
        try:
            handler = signal.getsignal(signal.SIGINT)
            assert callable(handler)
            handler(signal.SIGINT, None)
        finally:
            signal.signal(signal.SIGINT, previous)

        assert not controller.should_continue()

    def test_signal_handler_outside_main_thread(self) -> None:
        """Installing from a worker thread raises BeatkeeperError."""
        controller = MetronomeController()
        errors: list[Exception] = []

        def install() -> None:
            try:
                controller.install_signal_handler()
            except BeatkeeperError as e:
                errors.append(e)

        worker = threading.Thread(target=install)
        worker.start()
        worker.join()

        assert len(errors) == 1


class TestBeats:
    """Tests for beat dispatch through the controller."""

    def test_advance_sequence(self, fake_clock: FakeClock) -> None:
        """Advances number beats 1..n and track the beat count."""
        controller = MetronomeController(120, clock=fake_clock)
        controller.start()

        beats = [controller.advance() for _ in range(5)]

        assert [b.sequence_number for b in beats] == [1, 2, 3, 4, 5]
        assert [b.position_in_measure for b in beats] == [1, 2, 3, 4, 1]
        assert [b.accent_strength for b in beats] == [1.0, 0.0, 0.5, 0.0, 1.0]
        assert controller.get_beat_count() == 5

    def test_should_fire(self, fake_clock: FakeClock) -> None:
        """should_fire() delegates to the clock."""
        controller = MetronomeController(60, clock=fake_clock)
        controller.start()
        last_fire = controller.now()

        fake_clock.advance(0.5)
        assert not controller.should_fire(last_fire)
        fake_clock.advance(0.5)
        assert controller.should_fire(last_fire)

    def test_reset_beat_position(self, fake_clock: FakeClock) -> None:
        """Reset returns the snapshot position to the downbeat."""
        controller = MetronomeController(clock=fake_clock)
        controller.start()
        controller.advance()
        controller.advance()

        controller.reset_beat_position()

        assert controller.get_state_snapshot().position_in_measure == 1

    def test_concurrent_advances_and_updates(self) -> None:
        """Advances from one thread are all counted while another changes settings."""
        controller = MetronomeController()
        controller.start()

        def advance() -> None:
            for _ in range(500):
                controller.advance()

        def update() -> None:
            for i in range(500):
                controller.update_settings(
                    bpm=60 + i % 100,
                    time_signature=list(TimeSignature)[i % 8],
                )

        threads = [threading.Thread(target=advance), threading.Thread(target=update)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert controller.get_beat_count() == 500

    def test_beat_keeps_handles_after_update(self, fake_clock: FakeClock) -> None:
        """A fired beat keeps the sounds and volume in effect when it fired."""
        controller = MetronomeController(clock=fake_clock)
        controller.start()

        beat = controller.advance()
        controller.update_settings(accent_sound=BuiltinSound.BEEP, volume=0.2)

        assert beat.sound is BuiltinSound.WOOD
        assert beat.volume == 0.7
        assert controller.get_sounds() == (BuiltinSound.CLICK, BuiltinSound.BEEP)

    def test_snapshots_see_paired_updates_whole(self) -> None:
        """Snapshots never mix the tempo of one update with the signature of another."""
        pairs = [(60 + 10 * k, signature) for k, signature in enumerate(TimeSignature)]
        controller = MetronomeController(pairs[0][0])
        controller.update_settings(bpm=pairs[0][0], time_signature=pairs[0][1])
        controller.start()
        seen: list[tuple[int, TimeSignature]] = []
        done = threading.Event()

        def write() -> None:
            for _ in range(300):
                for bpm, signature in pairs:
                    controller.update_settings(bpm=bpm, time_signature=signature)
            done.set()

        def read() -> None:
            while True:
                snapshot = controller.get_state_snapshot()
                seen.append((snapshot.bpm, snapshot.time_signature))
                if done.is_set():
                    break

        threads = [threading.Thread(target=write), threading.Thread(target=read)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert seen
        assert set(seen) <= set(pairs)


class TestUpdateSettings:
    """Tests for update_settings."""

    def test_applies_all_fields(self, tmp_path: Path) -> None:
        """Every supplied field is applied."""
        controller = MetronomeController()
        custom = CustomSound(tmp_path / "tick.wav")

        controller.update_settings(
            bpm=140,
            time_signature=TimeSignature.THREE,
            beat_sound=custom,
            accent_sound=BuiltinSound.BEEP,
            accent_enabled=False,
            volume=0.9,
        )

        assert controller.get_bpm() == 140
        assert controller.get_time_signature() is TimeSignature.THREE
        assert controller.get_sounds() == (custom, BuiltinSound.BEEP)
        assert not controller.get_accent_enabled()
        assert controller.get_volume() == 0.9

    def test_omitted_fields_unchanged(self) -> None:
        """Fields left as None keep their values."""
        controller = MetronomeController(100)

        controller.update_settings(accent_sound=BuiltinSound.BEEP)

        assert controller.get_bpm() == 100
        assert controller.get_sounds() == (BuiltinSound.CLICK, BuiltinSound.BEEP)

    def test_invalid_bpm_changes_nothing(self) -> None:
        """An invalid tempo leaves every field, including the signature, unchanged."""
        controller = MetronomeController(120)

        with pytest.raises(InvalidTempoError):
            controller.update_settings(bpm=500, time_signature=TimeSignature.THREE)

        assert controller.get_bpm() == 120
        assert controller.get_time_signature() is TimeSignature.FOUR

    def test_invalid_volume_changes_nothing(self) -> None:
        """An invalid volume leaves a valid tempo unapplied."""
        controller = MetronomeController(120)

        with pytest.raises(InvalidVolumeError):
            controller.update_settings(bpm=80, volume=-1.0)

        assert controller.get_bpm() == 120
        assert controller.get_volume() == 0.7

    def test_signature_change_while_running_resets_position(
        self, fake_clock: FakeClock
    ) -> None:
        """A new signature on a running metronome starts a fresh measure."""
        controller = MetronomeController(clock=fake_clock)
        controller.start()
        controller.advance()
        controller.advance()

        controller.update_settings(time_signature=TimeSignature.SIX)

        snapshot = controller.get_state_snapshot()
        assert snapshot.position_in_measure == 1
        assert snapshot.time_signature is TimeSignature.SIX
        assert snapshot.is_running


class TestSetters:
    """Tests for individual setters."""

    def test_set_bpm_invalid_keeps_prior(self) -> None:
        """set_bpm rejects out of range values."""
        controller = MetronomeController(110)
        with pytest.raises(InvalidTempoError):
            controller.set_bpm(59)
        assert controller.get_bpm() == 110

    @pytest.mark.parametrize(
        ("start", "delta", "expected"),
        [
            (120, 1, 121),
            (120, -10, 110),
            (195, 10, 200),
            (200, 1, 200),
            (65, -10, 60),
            (60, -1, 60),
        ],
    )
    def test_adjust_bpm_clamps(self, start: int, delta: int, expected: int) -> None:
        """adjust_bpm nudges the tempo and clamps at the range ends."""
        controller = MetronomeController(start)
        assert controller.adjust_bpm(delta) == expected
        assert controller.get_bpm() == expected

    def test_cycle_time_signature(self) -> None:
        """cycle_time_signature steps to the next signature and wraps."""
        controller = MetronomeController()
        assert controller.cycle_time_signature() is TimeSignature.FIVE

        controller.set_time_signature(TimeSignature.EIGHT)
        assert controller.cycle_time_signature() is TimeSignature.ONE

    def test_set_volume(self) -> None:
        """set_volume validates its input."""
        controller = MetronomeController()
        controller.set_volume(0.25)
        assert controller.get_volume() == 0.25
        with pytest.raises(InvalidVolumeError):
            controller.set_volume(1.5)

    def test_set_sounds(self) -> None:
        """set_sounds replaces both handles."""
        controller = MetronomeController()
        controller.set_sounds(BuiltinSound.WOOD, BuiltinSound.BEEP)
        assert controller.get_sounds() == (BuiltinSound.WOOD, BuiltinSound.BEEP)

    def test_accent_strength_preview(self) -> None:
        """accent_strength_at follows the accent switch."""
        controller = MetronomeController()
        assert controller.accent_strength_at(3) == 0.5

        controller.set_accent_enabled(False)
        assert controller.accent_strength_at(1) == 0.0

    def test_toggle_accent_enabled(self) -> None:
        """toggle_accent_enabled flips the switch and returns the new value."""
        controller = MetronomeController()

        assert controller.toggle_accent_enabled() is False
        assert not controller.get_accent_enabled()
        assert controller.toggle_accent_enabled() is True
        assert controller.get_accent_enabled()

    def test_concurrent_toggles_are_not_lost(self) -> None:
        """An even number of toggles from two threads restores the original setting."""
        controller = MetronomeController()

        def toggle() -> None:
            for _ in range(501):
                controller.toggle_accent_enabled()

        threads = [threading.Thread(target=toggle) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert controller.get_accent_enabled()


class TestAccessors:
    """Tests for read-only accessors."""

    def test_interval(self) -> None:
        """get_interval is 60 / bpm."""
        assert MetronomeController(60).get_interval() == 1.0
        assert MetronomeController(120).get_interval() == 0.5

    def test_elapsed(self, fake_clock: FakeClock) -> None:
        """get_elapsed measures time since start."""
        controller = MetronomeController(clock=fake_clock)
        assert controller.get_elapsed() == 0.0

        controller.start()
        fake_clock.advance(4.0)
        assert controller.get_elapsed() == 4.0

    def test_state_snapshot(self, fake_clock: FakeClock) -> None:
        """Snapshot is a consistent copy of the state."""
        controller = MetronomeController(100, clock=fake_clock)
        controller.start()
        controller.advance()
        fake_clock.advance(1.0)

        snapshot = controller.get_state_snapshot()

        assert snapshot.bpm == 100
        assert snapshot.beat_count == 1
        assert snapshot.elapsed == 1.0
        assert snapshot.time_signature is TimeSignature.FOUR
        assert snapshot.position_in_measure == 1
        assert snapshot.is_running
        assert snapshot.interval == 0.6
