"""Priority-ordered, rate-limited queue of deferred agent work."""

from __future__ import annotations

import inspect
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel

from autoagent.utils.logging import get_logger
from autoagent.utils.rate_limit import RateLimiter

logger = get_logger(__name__)

DEFAULT_MIN_WORK_INTERVAL_MS = 60_000

WorkAction = Callable[[], Union[Awaitable[Any], Any]]


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


@dataclass
class WorkItem:
    """A unit of deferred work. Dropped once dequeued, whatever the outcome."""

    action: WorkAction
    priority: Priority
    description: str
    enqueued_at: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class WorkResult(BaseModel):
    """
    Outcome of one process_work() call.

    Attributes:
        processed: True only when an action ran to completion.
        reason: Why nothing ran (empty queue or rate limited).
        description: Description of the dequeued item, if any.
        item_id: Id of the dequeued item, if any.
        error: Error message when the action raised.
    """

    processed: bool
    reason: str | None = None
    description: str | None = None
    item_id: str | None = None
    error: str | None = None
    retry_after_seconds: float | None = None


class WorkQueue:
    """
    Deferred work ordered by priority (high, medium, low), FIFO within a level.

    Dequeues are spaced at least min_work_interval_ms apart by a size-1
    sliding-window limiter, independent of the budget ledger. Failed items
    are logged and dropped; there is no retry.

    Example:
        >>> queue = WorkQueue()
        >>> _ = queue.add_work(lambda: None, "low", "tidy up")
        >>> queue.get_queue_stats()["total"]
        1
    """

    def __init__(
        self,
        min_work_interval_ms: float = DEFAULT_MIN_WORK_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_work_interval_ms = min_work_interval_ms
        self._clock = clock
        self._limiter = RateLimiter(
            max_requests=1,
            window_seconds=min_work_interval_ms / 1000.0,
            clock=clock,
        )
        self._queue: list[WorkItem] = []

    def __len__(self) -> int:
        return len(self._queue)

    def add_work(
        self,
        action: WorkAction,
        priority: Priority | str = Priority.MEDIUM,
        description: str = "",
    ) -> WorkItem:
        """Enqueue an action; raises ValueError for an unknown priority."""
        item = WorkItem(
            action=action,
            priority=Priority(priority),
            description=description,
            enqueued_at=self._clock(),
        )
        self._queue.append(item)
        # list.sort is stable, so equal priorities keep insertion order
        self._queue.sort(key=lambda w: w.priority.rank, reverse=True)
        logger.debug("work_enqueued", item_id=item.id, priority=item.priority.value, description=description)
        return item

    def peek(self) -> WorkItem | None:
        return self._queue[0] if self._queue else None

    async def process_work(self) -> WorkResult:
        """Run the highest-priority item if the queue is non-empty and not rate limited."""
        if not self._queue:
            return WorkResult(processed=False, reason="No work in queue")
        if not self._limiter.allow("dequeue"):
            wait = self._limiter.retry_after("dequeue")
            logger.debug("work_too_soon", retry_after_seconds=round(wait, 3), queue_depth=len(self._queue))
            return WorkResult(processed=False, reason="Too soon since last work", retry_after_seconds=wait)

        item = self._queue.pop(0)
        try:
            outcome = item.action()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.exception("work_failed", item_id=item.id, description=item.description, error=str(e))
            return WorkResult(
                processed=False,
                description=item.description,
                item_id=item.id,
                error=str(e),
            )
        logger.info("work_processed", item_id=item.id, description=item.description)
        return WorkResult(processed=True, description=item.description, item_id=item.id)

    def get_queue_stats(self) -> dict[str, Any]:
        by_priority = {p.value: 0 for p in Priority}
        for item in self._queue:
            by_priority[item.priority.value] += 1
        return {"total": len(self._queue), "by_priority": by_priority}
