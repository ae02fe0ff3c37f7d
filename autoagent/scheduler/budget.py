"""Daily budget ledger gating every backend-facing operation."""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping

from autoagent.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DAILY_LIMIT = 100_000
DEFAULT_COST = 50
DEFAULT_WARN_RATIO = 0.8

DEFAULT_COSTS: dict[str, int] = {
    "check_messages": 50,
    "record_entity": 200,
    "send_message": 150,
    "log_entry": 10,
    "status_update": 100,
    "process_work": 200,
}


class BudgetLedger:
    """
    Daily allowance of abstract budget units.

    used_today only grows until the calendar date changes; the reset happens
    lazily on the next access rather than on a timer. The ledger never
    raises during operation, it only answers whether something may run.

    Example:
        >>> ledger = BudgetLedger(daily_limit=1000, costs={"X": 600})
        >>> ledger.spend("X")
        600
        >>> ledger.can_spend("X")
        False
    """

    def __init__(
        self,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        costs: Mapping[str, int] | None = None,
        default_cost: int = DEFAULT_COST,
        warn_ratio: float = DEFAULT_WARN_RATIO,
        today: Callable[[], date] = date.today,
    ) -> None:
        if daily_limit <= 0:
            raise ValueError(f"daily_limit must be positive, got {daily_limit}")
        if default_cost < 0:
            raise ValueError(f"default_cost must be non-negative, got {default_cost}")
        table = dict(DEFAULT_COSTS if costs is None else costs)
        for category, cost in table.items():
            if cost < 0:
                raise ValueError(f"cost for {category!r} must be non-negative, got {cost}")
        self.daily_limit = daily_limit
        self.costs = table
        self.default_cost = default_cost
        self.warn_ratio = warn_ratio
        self._today = today
        self.used_today = 0
        self.last_reset_date = today()

    @classmethod
    def from_config(cls, budget_cfg: Mapping[str, Any], **kwargs: Any) -> BudgetLedger:
        """Build a ledger from the ``budget`` config section."""
        costs = dict(DEFAULT_COSTS)
        costs.update(budget_cfg.get("costs") or {})
        return cls(
            daily_limit=int(budget_cfg.get("daily_limit", DEFAULT_DAILY_LIMIT)),
            costs=costs,
            default_cost=int(budget_cfg.get("default_cost", DEFAULT_COST)),
            warn_ratio=float(budget_cfg.get("warn_ratio", DEFAULT_WARN_RATIO)),
            **kwargs,
        )

    def _reset_if_new_day(self) -> None:
        today = self._today()
        if today != self.last_reset_date:
            logger.info(
                "budget_reset",
                previous_date=self.last_reset_date.isoformat(),
                used=self.used_today,
            )
            self.used_today = 0
            self.last_reset_date = today

    def cost(self, category: str) -> int:
        return self.costs.get(category, self.default_cost)

    def can_spend(self, category: str) -> bool:
        """True if charging category now would stay within today's limit."""
        self._reset_if_new_day()
        return self.used_today + self.cost(category) <= self.daily_limit

    def spend(self, category: str, actual_cost: int | None = None) -> int:
        """
        Charge an operation against today's budget.

        Args:
            category: Cost-table category of the operation.
            actual_cost: Measured cost, when known; overrides the table.

        Returns:
            The amount charged.
        """
        self._reset_if_new_day()
        charged = actual_cost if actual_cost is not None else self.cost(category)
        self.used_today += charged
        ratio = self.used_today / self.daily_limit
        if ratio > self.warn_ratio:
            logger.warning(
                "budget_approaching_limit",
                category=category,
                used=self.used_today,
                limit=self.daily_limit,
                percentage=round(ratio * 100, 1),
            )
        return charged

    def try_spend(self, category: str) -> int | None:
        """Check and charge in one step. Returns the charge, or None if over budget."""
        if not self.can_spend(category):
            return None
        return self.spend(category)

    def get_usage_stats(self) -> dict[str, Any]:
        self._reset_if_new_day()
        return {
            "used": self.used_today,
            "limit": self.daily_limit,
            "remaining": self.daily_limit - self.used_today,
            "percentage": self.used_today / self.daily_limit * 100,
        }
