"""Budget ledger, adaptive polling, priority work queue and tick loops."""

from autoagent.scheduler.adaptive import AdaptivePollController, PollState
from autoagent.scheduler.budget import BudgetLedger
from autoagent.scheduler.runner import RepeatingTask, start_scheduler
from autoagent.scheduler.work_queue import Priority, WorkItem, WorkQueue, WorkResult

__all__ = [
    "AdaptivePollController",
    "BudgetLedger",
    "PollState",
    "Priority",
    "RepeatingTask",
    "WorkItem",
    "WorkQueue",
    "WorkResult",
    "start_scheduler",
]
