"""Usage accounting and Prometheus metrics for observability."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

# Executed operations by agent and budget category
AGENT_OPERATIONS = Counter(
    "agent_operations_total",
    "Total executed (non-skipped) agent operations",
    ["agent_id", "category"],
)

# Estimated budget units consumed
AGENT_BUDGET_UNITS = Counter(
    "agent_budget_units_total",
    "Estimated budget units consumed by executed operations",
    ["agent_id", "category"],
)

POLL_INTERVAL = Gauge(
    "agent_poll_interval_seconds",
    "Current adaptive message polling interval",
    ["agent_id"],
)

WORK_QUEUE_DEPTH = Gauge(
    "agent_work_queue_depth",
    "Items waiting in the deferred work queue",
    ["agent_id"],
)

DEFAULT_ESTIMATED_COST = 50


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus HTTP server for scraping. Call from main when enabled."""
    start_http_server(port)


def record_poll_interval(agent_id: str, interval_ms: float) -> None:
    POLL_INTERVAL.labels(agent_id=agent_id).set(interval_ms / 1000.0)


def record_queue_depth(agent_id: str, depth: int) -> None:
    WORK_QUEUE_DEPTH.labels(agent_id=agent_id).set(depth)


class UsageMonitor:
    """
    Append-only usage counters for one agent.

    Counts every executed operation per category and keeps a running total of
    estimated cost. Reporting only: budget decisions belong to BudgetLedger.

    Example:
        >>> monitor = UsageMonitor("worker-1")
        >>> monitor.track("send_message", 150)
        150
        >>> monitor.get_stats()["total_cost"]
        150
    """

    def __init__(self, agent_id: str) -> None:
        self.agent_id = agent_id
        self.total_operations = 0
        self.total_cost = 0
        self._operations: dict[str, int] = {}

    def track(self, category: str, estimated_cost: int = DEFAULT_ESTIMATED_COST) -> int:
        """Record one executed operation; returns the estimated cost recorded."""
        self._operations[category] = self._operations.get(category, 0) + 1
        self.total_operations += 1
        self.total_cost += estimated_cost
        AGENT_OPERATIONS.labels(agent_id=self.agent_id, category=category).inc()
        AGENT_BUDGET_UNITS.labels(agent_id=self.agent_id, category=category).inc(estimated_cost)
        return estimated_cost

    def count(self, category: str) -> int:
        return self._operations.get(category, 0)

    def top_categories(self, n: int = 5) -> list[tuple[str, int]]:
        """Top-n categories by count; ties keep first-seen order."""
        ranked = sorted(self._operations.items(), key=lambda kv: kv[1], reverse=True)
        return ranked[:n]

    def get_stats(self) -> dict:
        return {
            "total_operations": self.total_operations,
            "total_cost": self.total_cost,
            "operations": dict(self._operations),
            "top_operations": self.top_categories(),
        }
