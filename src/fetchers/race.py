"""First-settled race over labeled detector coroutines."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Detector = tuple[str, Callable[[], Awaitable]]


class RaceTimeout(Exception):
    """No detector produced a value before the deadline."""


class NoWinner(Exception):
    """Every detector finished without producing a value."""

    def __init__(self, errors: dict[str, BaseException | None]):
        super().__init__(f"No detector produced a result: {sorted(errors)}")
        # label -> exception raised, or None if the detector returned None
        self.errors = errors


async def first_settled(detectors: list[Detector], timeout: float) -> tuple[str, object]:
    """
    Run all detectors concurrently and return the first usable result.

    A detector that raises or returns None drops out of the race. Detectors
    finishing in the same tick are ranked by their order in ``detectors``.
    Losers are cancelled and awaited before returning.

    Returns:
        (label, value) of the winning detector.

    Raises:
        RaceTimeout: ``timeout`` seconds passed without a usable result.
        NoWinner: all detectors finished without a usable result.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    order = {label: i for i, (label, _) in enumerate(detectors)}
    labels: dict[asyncio.Task, str] = {
        asyncio.create_task(factory(), name=label): label for label, factory in detectors
    }
    pending = set(labels)
    errors: dict[str, BaseException | None] = {}

    try:
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise RaceTimeout(f"No result within {timeout:.1f}s")
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                raise RaceTimeout(f"No result within {timeout:.1f}s")

            winners = []
            for task in done:
                label = labels[task]
                if task.exception() is not None:
                    logger.debug("Detector %s dropped out: %r", label, task.exception())
                    errors[label] = task.exception()
                elif task.result() is None:
                    logger.debug("Detector %s had no result", label)
                    errors[label] = None
                else:
                    winners.append(task)

            if winners:
                winner = min(winners, key=lambda t: order[labels[t]])
                return labels[winner], winner.result()

        raise NoWinner(errors)
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
