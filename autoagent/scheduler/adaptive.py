"""Activity-driven polling interval controller.

Each performed poll reports whether it saw new inbound work. Activity nudges
``activity_level`` up by 0.2, an empty poll decays it by 0.1. The interval
snaps back to the base interval above 0.7, backs off by 1.5x below 0.3 and
holds in between, so the level cannot flap the interval around a single
threshold. More than five empty polls in a row double the interval on top of
that. The interval always stays within [base_interval_ms, max_interval_ms].
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

DEFAULT_BASE_INTERVAL_MS = 15_000
DEFAULT_MAX_INTERVAL_MS = 300_000

ACTIVITY_STEP_UP = 0.2
ACTIVITY_STEP_DOWN = 0.1
HIGH_ACTIVITY = 0.7
LOW_ACTIVITY = 0.3
LOW_ACTIVITY_BACKOFF = 1.5
EMPTY_POLL_LIMIT = 5
EMPTY_POLL_BACKOFF = 2.0


@dataclass
class PollState:
    base_interval_ms: float
    max_interval_ms: float
    current_interval_ms: float
    activity_level: float = 0.0
    consecutive_empty_polls: int = 0
    message_count: int = 0
    last_activity_at: float | None = None


class AdaptivePollController:
    """Owns a PollState and applies the backoff/snap-back rules after every poll."""

    def __init__(
        self,
        base_interval_ms: float = DEFAULT_BASE_INTERVAL_MS,
        max_interval_ms: float = DEFAULT_MAX_INTERVAL_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if base_interval_ms <= 0:
            raise ValueError(f"base_interval_ms must be positive, got {base_interval_ms}")
        if max_interval_ms < base_interval_ms:
            raise ValueError(
                f"max_interval_ms ({max_interval_ms}) must be >= base_interval_ms ({base_interval_ms})"
            )
        self._clock = clock
        self.state = PollState(
            base_interval_ms=base_interval_ms,
            max_interval_ms=max_interval_ms,
            current_interval_ms=base_interval_ms,
        )

    @property
    def current_interval_ms(self) -> float:
        return self.state.current_interval_ms

    @property
    def current_interval_seconds(self) -> float:
        return self.state.current_interval_ms / 1000.0

    def record_poll(self, had_activity: bool) -> float:
        """Fold one activity signal into the state; returns the new interval in ms."""
        s = self.state
        if had_activity:
            s.activity_level = min(s.activity_level + ACTIVITY_STEP_UP, 1.0)
            s.consecutive_empty_polls = 0
            s.message_count += 1
            s.last_activity_at = self._clock()
        else:
            s.activity_level = max(s.activity_level - ACTIVITY_STEP_DOWN, 0.0)
            s.consecutive_empty_polls += 1
        self._update_interval()
        return s.current_interval_ms

    def _update_interval(self) -> None:
        s = self.state
        if s.activity_level > HIGH_ACTIVITY:
            s.current_interval_ms = s.base_interval_ms
        elif s.activity_level < LOW_ACTIVITY:
            s.current_interval_ms = min(s.current_interval_ms * LOW_ACTIVITY_BACKOFF, s.max_interval_ms)

        if s.consecutive_empty_polls > EMPTY_POLL_LIMIT:
            s.current_interval_ms = min(s.current_interval_ms * EMPTY_POLL_BACKOFF, s.max_interval_ms)

    def get_stats(self) -> dict[str, Any]:
        s = self.state
        return {
            "current_interval_ms": s.current_interval_ms,
            "activity_level": s.activity_level,
            "message_count": s.message_count,
            "consecutive_empty_polls": s.consecutive_empty_polls,
        }
