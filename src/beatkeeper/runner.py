"""Polling loops that drive a metronome controller.

Both loops poll the controller about once per millisecond, advance it
when a beat is due and hand the resulting Beat to every callback. The
continuation flag is checked on each pass, so cancellation is
cooperative and takes effect within one poll interval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from .controller import MetronomeController
from .models import Beat

logger = logging.getLogger(__name__)

BeatCallback = Callable[[Beat], None]

# Polling granularity of the reference loop; bounds timing error
DEFAULT_POLL_INTERVAL = 0.001


def _dispatch(beat: Beat, callbacks: Iterable[BeatCallback]) -> None:
    for callback in callbacks:
        callback(beat)


def run_loop(
    controller: MetronomeController,
    callbacks: Iterable[BeatCallback] = (),
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    max_beats: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run the blocking beat loop until the controller is told to stop.

    The controller is started if it is not already running. The first
    beat fires one interval after the loop begins.

    Args:
        controller: Controller to poll.
        callbacks: Called in order with each fired Beat. Exceptions
            propagate out of the loop.
        poll_interval: Seconds to sleep between polls.
        max_beats: Stop after this many beats when given.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Number of beats fired.
    """
    callbacks = list(callbacks)
    if not controller.should_continue():
        controller.start()

    fired = 0
    last_fire = controller.now()
    try:
        while controller.should_continue():
            if controller.should_fire(last_fire):
                beat = controller.advance()
                last_fire = controller.now()
                _dispatch(beat, callbacks)
                fired += 1
                if max_beats is not None and fired >= max_beats:
                    break
            sleep(poll_interval)
    finally:
        controller.stop()
        logger.debug("Beat loop finished after %d beats", fired)
    return fired


async def run_async(
    controller: MetronomeController,
    callbacks: Iterable[BeatCallback] = (),
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    max_beats: int | None = None,
) -> int:
    """Coroutine form of run_loop for event-loop hosted front ends."""
    callbacks = list(callbacks)
    if not controller.should_continue():
        controller.start()

    fired = 0
    last_fire = controller.now()
    try:
        while controller.should_continue():
            if controller.should_fire(last_fire):
                beat = controller.advance()
                last_fire = controller.now()
                _dispatch(beat, callbacks)
                fired += 1
                if max_beats is not None and fired >= max_beats:
                    break
            await asyncio.sleep(poll_interval)
    finally:
        controller.stop()
        logger.debug("Async beat loop finished after %d beats", fired)
    return fired
