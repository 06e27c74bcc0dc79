"""Execution loops driven by schedules.

These helpers suspend the calling task until a schedule's next instant and
then run a user block. They never start tasks of their own: to run several
loops in parallel, wrap each in ``asyncio.create_task``.

Example:
    async def report(moment: datetime) -> bool:
        print(f"tick at {moment}")
        return moment.minute < 30

    await do_while("0 */5 * * *", report)
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from pykron.config import settings
from pykron.cron.errors import EmptyCandidateSetError
from pykron.cron.schedule import KronScheduler, build_schedule, real_time_between

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A scheduler or the expression to build one from
ScheduleLike = KronScheduler | str

# Work run at each instant; may be a plain function or a coroutine function
Block = Callable[[datetime], Awaitable[T] | T]


def _as_scheduler(schedule: ScheduleLike) -> KronScheduler:
    if isinstance(schedule, KronScheduler):
        return schedule
    return build_schedule(schedule)


async def _wait_next(scheduler: KronScheduler) -> datetime | None:
    """Sleep until the scheduler's next instant and return it.

    Returns None without sleeping if the schedule never matches again.
    """
    now = scheduler.now()
    moment = scheduler.next(now)
    if moment is None:
        return None

    delay = real_time_between(now, moment).total_seconds()
    if delay > 0:
        logger.debug(f"Sleeping {delay:.3f}s until {moment.isoformat()}")
        await asyncio.sleep(delay)
    return moment


async def _call(block: Block[T], moment: datetime) -> T:
    result = block(moment)
    if inspect.isawaitable(result):
        result = await result
    return result


async def do_once(schedule: ScheduleLike, block: Block[T]) -> T:
    """Run ``block`` once at the schedule's next instant.

    Args:
        schedule: Scheduler or expression text.
        block: Work to run; receives the instant it was scheduled for.

    Returns:
        Whatever ``block`` returns.

    Raises:
        EmptyCandidateSetError: If the schedule never matches again.
            ``block`` is not called in that case.
    """
    scheduler = _as_scheduler(schedule)
    moment = await _wait_next(scheduler)
    if moment is None:
        raise EmptyCandidateSetError(f"{scheduler!r} has no next occurrence")

    logger.info(f"Running scheduled block for {moment.isoformat()}")
    return await _call(block, moment)


async def do_while(schedule: ScheduleLike, block: Block[Any]) -> None:
    """Run ``block`` at each of the schedule's instants while it returns true.

    The loop also ends when the schedule never matches again.

    Args:
        schedule: Scheduler or expression text.
        block: Work to run; a falsy result stops the loop.
    """
    scheduler = _as_scheduler(schedule)

    while True:
        # Keeps one instant from firing twice when block returns quickly
        await asyncio.sleep(settings.loop_pause_seconds)

        moment = await _wait_next(scheduler)
        if moment is None:
            logger.warning(f"{scheduler!r} has no next occurrence, stopping loop")
            return

        logger.info(f"Running scheduled block for {moment.isoformat()}")
        if not await _call(block, moment):
            logger.debug("Block requested stop")
            return


async def do_forever(schedule: ScheduleLike, block: Block[Any]) -> None:
    """Run ``block`` at every instant of the schedule, ignoring its result.

    Runs until the enclosing task is cancelled or the schedule never
    matches again.
    """
    async def _always(moment: datetime) -> bool:
        await _call(block, moment)
        return True

    await do_while(schedule, _always)


async def ticks(schedule: ScheduleLike) -> AsyncIterator[datetime]:
    """Yield each instant of the schedule as it arrives.

    Example:
        async for moment in ticks("0 0 * * *"):
            await rotate_logs(moment)
    """
    scheduler = _as_scheduler(schedule)

    while True:
        await asyncio.sleep(settings.loop_pause_seconds)

        moment = await _wait_next(scheduler)
        if moment is None:
            logger.warning(f"{scheduler!r} has no next occurrence, stopping ticks")
            return

        yield moment
