"""Long-running autonomous agent: poll loop, work-drain loop, status snapshots, shutdown."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from autoagent.agent.dispatcher import MessageDispatcher
from autoagent.backend.base import Backend, OutboundMessage
from autoagent.scheduler.adaptive import AdaptivePollController
from autoagent.scheduler.budget import BudgetLedger
from autoagent.scheduler.runner import RepeatingTask, Sleep, start_scheduler
from autoagent.scheduler.work_queue import Priority, WorkQueue, WorkResult
from autoagent.utils.logging import get_logger
from autoagent.utils.monitoring import UsageMonitor, record_poll_interval, record_queue_depth

logger = get_logger(__name__)

DEFAULT_DRAIN_INTERVAL_MS = 60_000
DEFAULT_STATUS_INTERVAL_SECONDS = 300
NO_WORK = "No work in queue"


class AutonomousAgent:
    """
    One agent instance and all of its scheduling state.

    The poll loop, the drain loop and the status job are separate asyncio
    tasks, but every tick runs under ``_tick_lock`` so they never interleave
    and a can_spend()/spend() pair is never split by another tick.
    Work item actions run while the lock is held; they must use the
    unlocked helpers (send_message, store_in_memory), not poll_once/drain_once.

    Example:
        >>> agent = AutonomousAgent("worker-1", InMemoryBackend("worker-1"))
        >>> await agent.start()
        >>> await agent.stop()
    """

    def __init__(
        self,
        agent_id: str,
        backend: Backend,
        *,
        ledger: BudgetLedger | None = None,
        work_queue: WorkQueue | None = None,
        poller: AdaptivePollController | None = None,
        monitor: UsageMonitor | None = None,
        data_dir: str | Path = "./data",
        peers: Iterable[str] = (),
        roles: Mapping[str, str] | None = None,
        drain_interval_ms: float = DEFAULT_DRAIN_INTERVAL_MS,
        status_interval_seconds: float = DEFAULT_STATUS_INTERVAL_SECONDS,
        sleep: Sleep | None = None,
    ) -> None:
        if not agent_id or not agent_id.strip():
            raise ValueError("agent_id must be a non-empty string")
        self.agent_id = agent_id
        self.backend = backend
        # explicit None checks: an empty WorkQueue is falsy
        self.ledger = ledger if ledger is not None else BudgetLedger()
        self.work_queue = work_queue if work_queue is not None else WorkQueue()
        self.poller = poller if poller is not None else AdaptivePollController()
        self.monitor = monitor if monitor is not None else UsageMonitor(agent_id)
        self.data_dir = Path(data_dir)
        self.known_agents = list(peers)
        self.roles = dict(roles or {})
        self.drain_interval_ms = drain_interval_ms
        self.status_interval_seconds = status_interval_seconds
        self.dispatcher = MessageDispatcher(
            agent_id,
            self.work_queue,
            self.ledger,
            send=self.send_message,
            status_provider=self.get_status,
        )

        self.running = False
        self.last_message_check = datetime.fromtimestamp(0, tz=timezone.utc)
        self._sleep = sleep
        self._tick_lock = asyncio.Lock()
        self._poll_task: RepeatingTask | None = None
        self._drain_task: RepeatingTask | None = None
        self._status_scheduler: AsyncIOScheduler | None = None
        self._started_at: float | None = None
        self._log = logger.bind(agent_id=agent_id)

    @classmethod
    def from_config(
        cls,
        agent_id: str,
        config: Mapping[str, Any],
        backend: Backend | None = None,
        **kwargs: Any,
    ) -> AutonomousAgent:
        """Build an agent from a load_config() dict. Extra kwargs override config-derived ones."""
        if backend is None:
            from autoagent.utils.backend_factory import get_backend_from_config
            backend = get_backend_from_config(agent_id, dict(config))
        agent_cfg = config.get("agent", {})
        polling = config.get("polling", {})
        work = config.get("work", {})
        params: dict[str, Any] = {
            "ledger": BudgetLedger.from_config(config.get("budget", {})),
            "work_queue": WorkQueue(min_work_interval_ms=float(work.get("min_work_interval_ms", 60_000))),
            "poller": AdaptivePollController(
                base_interval_ms=float(polling.get("base_interval_ms", 15_000)),
                max_interval_ms=float(polling.get("max_interval_ms", 300_000)),
            ),
            "data_dir": agent_cfg.get("data_dir", "./data"),
            "peers": agent_cfg.get("peers", []),
            "roles": agent_cfg.get("roles", {}),
            "drain_interval_ms": float(work.get("drain_interval_ms", DEFAULT_DRAIN_INTERVAL_MS)),
            "status_interval_seconds": float(
                config.get("status", {}).get("interval_seconds", DEFAULT_STATUS_INTERVAL_SECONDS)
            ),
        }
        params.update(kwargs)
        return cls(agent_id, backend, **params)

    @property
    def log_file(self) -> Path:
        return self.data_dir / f"{self.agent_id}-autonomous.log"

    def peers(self) -> list[str]:
        """Known agents other than this one."""
        return [a for a in self.known_agents if a != self.agent_id]

    # --- lifecycle ---

    async def start(self) -> None:
        """Create the data dir, start both loops and the status job, then announce."""
        if self.running:
            return
        self._log.info("agent_starting")
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._started_at = time.monotonic()

        self._poll_task = RepeatingTask(
            f"{self.agent_id}-poll",
            self.poll_once,
            lambda: self.poller.current_interval_seconds,
            sleep=self._sleep,
        )
        self._drain_task = RepeatingTask(
            f"{self.agent_id}-work",
            self.drain_once,
            lambda: self.drain_interval_ms / 1000.0,
            run_immediately=False,
            sleep=self._sleep,
        )
        self._poll_task.start()
        self._drain_task.start()
        self._log.info(
            "loops_started",
            poll_interval_seconds=self.poller.current_interval_seconds,
            drain_interval_seconds=self.drain_interval_ms / 1000.0,
        )
        if self.status_interval_seconds > 0:
            self._status_scheduler = start_scheduler(
                [{"id": f"{self.agent_id}-status", "func": self.update_status, "seconds": self.status_interval_seconds}]
            )

        self.running = True
        if self.ledger.can_spend("send_message"):
            async with self._tick_lock:
                await self.announce_availability()
        else:
            self._log.info("announce_skipped_budget")
        self._log.info("agent_operational")

    async def stop(self) -> None:
        """
        Graceful shutdown: stop loops (in-flight ticks finish), log final
        stats, then tell peers we are going offline if the budget allows.
        Notification failures never block shutdown.
        """
        if not self.running:
            return
        self._log.info("agent_stopping")
        self.running = False

        for task in (self._poll_task, self._drain_task):
            if task is not None:
                await task.stop()
        self._poll_task = None
        self._drain_task = None
        if self._status_scheduler is not None:
            self._status_scheduler.shutdown(wait=False)
            self._status_scheduler = None

        budget = self.ledger.get_usage_stats()
        queue = self.work_queue.get_queue_stats()
        poll = self.poller.get_stats()
        self._log.info(
            "final_stats",
            budget_used=budget["used"],
            budget_limit=budget["limit"],
            budget_percentage=round(budget["percentage"], 1),
            queue_remaining=queue["total"],
            messages_seen=poll["message_count"],
            empty_polls=poll["consecutive_empty_polls"],
            total_operations=self.monitor.total_operations,
        )

        async with self._tick_lock:
            if self.ledger.can_spend("send_message"):
                for peer in self.peers():
                    await self.send_message(
                        peer,
                        OutboundMessage(type="autonomous_offline", content=f"Agent {self.agent_id} going offline"),
                    )
            else:
                self._log.info("offline_notice_skipped_budget")
        self._log.info("agent_stopped")

    # --- ticks ---

    async def poll_once(self) -> bool | None:
        """One poll tick. Returns the activity signal, or None if skipped or failed."""
        async with self._tick_lock:
            if not self.ledger.can_spend("check_messages"):
                self._log.info("poll_skipped_budget", interval_ms=self.poller.current_interval_ms)
                return None
            return await self.check_messages()

    async def drain_once(self) -> WorkResult | None:
        """One work-drain tick. Returns the queue's result, or None if skipped."""
        async with self._tick_lock:
            if not self.ledger.can_spend("process_work"):
                self._log.info("work_skipped_budget")
                return None
            result = await self.work_queue.process_work()
            if result.item_id is not None:
                # the action ran, successful or not
                cost = self.ledger.spend("process_work")
                self.monitor.track("process_work", cost)
            if result.processed:
                self._log.info("work_done", description=result.description)
            elif result.error is not None:
                self._log.error("work_item_dropped", description=result.description, error=result.error)
            elif result.reason == NO_WORK:
                self.add_default_work()
            record_queue_depth(self.agent_id, len(self.work_queue))
            return result

    async def update_status(self) -> bool:
        """Status snapshot job entrypoint."""
        async with self._tick_lock:
            return await self.record_status()

    # --- operations (call with the tick lock held) ---

    async def check_messages(self) -> bool | None:
        try:
            messages = await self.backend.check_messages(self.agent_id)
        except Exception as e:
            self._log.error("check_messages_failed", error=str(e))
            return None
        cost = self.ledger.spend("check_messages")
        self.monitor.track("check_messages", cost)

        had_activity = bool(messages)
        interval = self.poller.record_poll(had_activity)
        record_poll_interval(self.agent_id, interval)
        if not had_activity:
            self._log.debug("no_new_messages", next_interval_ms=interval)
            return False

        self._log.info("messages_found", count=len(messages), next_interval_ms=interval)
        for message in messages:
            await self.dispatcher.dispatch(message)
        self.last_message_check = datetime.now(timezone.utc)
        return True

    async def send_message(self, target_agent_id: str, message: OutboundMessage) -> bool:
        """Budget-gated send. Returns True if the backend accepted the message."""
        if not self.ledger.can_spend("send_message"):
            self._log.info("send_skipped_budget", target=target_agent_id, message_type=message.type)
            return False
        try:
            await self.backend.send_message(target_agent_id, message)
        except Exception as e:
            self._log.error("send_message_failed", target=target_agent_id, message_type=message.type, error=str(e))
            return False
        cost = self.ledger.spend("send_message")
        self.monitor.track("send_message", cost)
        self._log.info("message_sent", target=target_agent_id, message_type=message.type)
        return True

    async def store_in_memory(self, name: str, category: str, observations: list[str]) -> bool:
        """Budget-gated record_entity. Returns True if stored."""
        if not self.ledger.can_spend("record_entity"):
            self._log.info("store_skipped_budget", name=name)
            return False
        try:
            await self.backend.record_entity(name, category, observations)
        except Exception as e:
            self._log.error("store_in_memory_failed", name=name, error=str(e))
            return False
        cost = self.ledger.spend("record_entity")
        self.monitor.track("record_entity", cost)
        self._log.debug("stored_in_memory", name=name)
        return True

    async def record_status(self) -> bool:
        if not self.ledger.can_spend("status_update"):
            self._log.info("status_update_skipped_budget")
            return False
        status = self.get_status()
        stored = await self.store_in_memory(
            f"{self.agent_id} Status",
            "agent_status",
            [
                f"Agent: {self.agent_id}",
                f"Uptime: {int(status['uptime_seconds'])} seconds",
                f"Budget Usage: {status['budget']['percentage']:.1f}%",
                f"Work Queue: {status['work_queue']['total']} items",
                f"Poll Interval: {status['polling']['current_interval_ms'] / 1000:g}s",
                f"Status: {'Active' if self.running else 'Inactive'}",
            ],
        )
        if stored:
            self.monitor.track("status_update", self.ledger.cost("status_update"))
        return stored

    async def announce_availability(self) -> int:
        """Tell every peer we are online. Returns the number of peers reached."""
        reached = 0
        for peer in self.peers():
            if not self.ledger.can_spend("send_message"):
                self._log.info("announce_skipped_budget", target=peer)
                continue
            sent = await self.send_message(
                peer,
                OutboundMessage(
                    type="autonomous_online",
                    content=f"Agent {self.agent_id} is online and available for collaboration.",
                ),
            )
            reached += int(sent)
        self._log.info("availability_announced", peers=len(self.peers()), reached=reached)
        return reached

    def add_default_work(self) -> None:
        """Queue this agent's role check when there is nothing else to do."""
        role = self.roles.get(self.agent_id)
        if not role:
            return

        async def role_check() -> None:
            self._log.info("role_work", role=role, queue_depth=len(self.work_queue))

        self.work_queue.add_work(role_check, Priority.MEDIUM, role)

    def get_status(self) -> dict[str, Any]:
        uptime = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        return {
            "agent": self.agent_id,
            "running": self.running,
            "uptime_seconds": uptime,
            "last_message_check": self.last_message_check.isoformat(),
            "budget": self.ledger.get_usage_stats(),
            "work_queue": self.work_queue.get_queue_stats(),
            "polling": self.poller.get_stats(),
            "usage": self.monitor.get_stats(),
        }
