"""Repeating tick loops and APScheduler interval jobs for the agent."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autoagent.utils.logging import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RepeatingTask:
    """
    Explicit "act -> wait -> act" loop on the running event loop.

    The wait length is read from ``interval`` after every tick, so callers can
    change the cadence between ticks (the adaptive poll loop does). ``stop()``
    wakes a pending wait immediately but lets an in-flight tick finish.

    Pass ``sleep`` to replace the real wait (tests use a fake that records the
    requested delays and advances a fake clock).

    Example:
        >>> task = RepeatingTask("poll", agent.poll_once, lambda: 15.0)
        >>> task.start()
        >>> await task.stop()
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        interval: Callable[[], float],
        *,
        run_immediately: bool = True,
        sleep: Sleep | None = None,
    ) -> None:
        self.name = name
        self._action = action
        self._interval = interval
        self._run_immediately = run_immediately
        self._sleep = sleep
        self._stopped = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("repeating_task_started", task=self.name)

    async def stop(self) -> None:
        self._stopped.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.debug("repeating_task_stopped", task=self.name, ticks=self.ticks)

    async def _run(self) -> None:
        if not self._run_immediately and await self._wait(self._interval()):
            return
        while not self._stopped.is_set():
            try:
                await self._action()
            except Exception as e:
                logger.exception("repeating_task_tick_failed", task=self.name, error=str(e))
            self.ticks += 1
            if await self._wait(self._interval()):
                return

    async def _wait(self, seconds: float) -> bool:
        """Wait between ticks; True when stop() was requested."""
        if self._sleep is not None:
            await self._sleep(seconds)
            return self._stopped.is_set()
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


def add_interval_job(
    scheduler: AsyncIOScheduler,
    job_id: str,
    func: Callable[[], Awaitable[Any]],
    seconds: float,
) -> None:
    """Add (or replace) a coroutine job that runs every ``seconds``."""
    scheduler.add_job(
        func,
        trigger=IntervalTrigger(seconds=seconds),
        id=job_id,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info("scheduled_job_added", job_id=job_id, interval_seconds=seconds)


def start_scheduler(jobs: list[dict[str, Any]]) -> AsyncIOScheduler:
    """
    Create and start an AsyncIOScheduler on the running loop.

    jobs: [{"id": "status-snapshot", "func": coro_fn, "seconds": 300}, ...]
    """
    scheduler = AsyncIOScheduler()
    for j in jobs:
        add_interval_job(scheduler, j["id"], j["func"], j["seconds"])
    scheduler.start()
    logger.info("scheduler_started", job_count=len(jobs))
    return scheduler
