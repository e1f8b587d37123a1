"""Fan-out for the independent content-generation calls that precede validation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_generation_stages(
    stages: Sequence[Callable[[], Awaitable[T]]],
    parallel: bool = True,
) -> list[T]:
    """
    Run each stage and return their results in stage order.

    In parallel mode the first failure cancels the stages still running and
    propagates unchanged. Sequential mode exists for local backends that
    cannot serve concurrent requests; a failure there stops the remaining
    stages from starting.
    """
    if not parallel:
        logger.info("Running %d generation stages sequentially", len(stages))
        results: list[T] = []
        for index, stage in enumerate(stages, start=1):
            results.append(await stage())
            logger.info("Generation stage %d/%d complete", index, len(stages))
        return results

    logger.info("Running %d generation stages in parallel", len(stages))
    tasks = [asyncio.ensure_future(stage()) for stage in stages]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
