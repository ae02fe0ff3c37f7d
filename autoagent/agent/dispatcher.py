"""Route inbound messages to handlers and acknowledge every one of them."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from autoagent.backend.base import InboundMessage, OutboundMessage
from autoagent.scheduler.budget import BudgetLedger
from autoagent.scheduler.work_queue import Priority, WorkQueue
from autoagent.utils.logging import get_logger

logger = get_logger(__name__)

SendFn = Callable[[str, OutboundMessage], Awaitable[bool]]
Handler = Callable[[InboundMessage], Awaitable[None]]

# Replies to our own sends: consumed without dispatch, never acknowledged
RECEIPT_TYPES = frozenset({"acknowledgment", "status_response"})


class DispatchResult(BaseModel):
    """What happened to one inbound message."""

    message_type: str
    handler: str
    acknowledged: bool = False
    error: str | None = None


class MessageDispatcher:
    """
    Dispatch by declared message type.

    collaboration/task (and peer announcements) become high-priority work
    items rather than running inline, so intake stays fast. Whatever the
    handler does, the sender gets exactly one acknowledgment when the budget
    allows it.
    """

    def __init__(
        self,
        agent_id: str,
        work_queue: WorkQueue,
        ledger: BudgetLedger,
        send: SendFn,
        status_provider: Callable[[], dict[str, Any]] | None = None,
    ) -> None:
        self.agent_id = agent_id
        self.work_queue = work_queue
        self.ledger = ledger
        self._send = send
        self._status_provider = status_provider
        self._log = logger.bind(agent_id=agent_id)
        self._handlers: dict[str, Handler] = {
            "collaboration": self.handle_collaboration,
            "autonomous_online": self.handle_collaboration,
            "task": self.handle_task,
            "autonomous_offline": self.handle_peer_offline,
            "status_request": self.handle_status_request,
        }

    async def dispatch(self, message: InboundMessage) -> DispatchResult:
        if message.type in RECEIPT_TYPES:
            self._log.debug("receipt_received", sender=message.sender, message_type=message.type)
            return DispatchResult(message_type=message.type, handler="receipt")
        handler = self._handlers.get(message.type, self.handle_generic)
        result = DispatchResult(message_type=message.type, handler=handler.__name__)
        self._log.debug("message_dispatch", sender=message.sender, message_type=message.type)
        try:
            await handler(message)
        except Exception as e:
            self._log.exception("message_handler_failed", sender=message.sender, message_type=message.type, error=str(e))
            result.error = str(e)
        result.acknowledged = await self.acknowledge(message)
        return result

    async def acknowledge(self, message: InboundMessage) -> bool:
        if not self.ledger.can_spend("send_message"):
            self._log.info("ack_skipped_budget", sender=message.sender)
            return False
        return await self._send(
            message.sender,
            OutboundMessage(type="acknowledgment", content=f"Message received and processed: {message.type}"),
        )

    async def handle_collaboration(self, message: InboundMessage) -> None:
        sender, content = message.sender, message.content
        self._log.info("collaboration_received", sender=sender, content=content)

        async def collaborate() -> None:
            self._log.info("collaboration_processing", sender=sender, content=content)

        self.work_queue.add_work(collaborate, Priority.HIGH, f"Collaboration with {sender}")

    async def handle_task(self, message: InboundMessage) -> None:
        sender, content = message.sender, message.content
        self._log.info("task_received", sender=sender, content=content)

        async def process_task() -> None:
            self._log.info("task_processing", sender=sender, content=content)

        self.work_queue.add_work(process_task, Priority.HIGH, f"Task from {sender}")

    async def handle_peer_offline(self, message: InboundMessage) -> None:
        self._log.info("peer_offline", peer=message.sender)

    async def handle_status_request(self, message: InboundMessage) -> None:
        if self._status_provider is None or not self.ledger.can_spend("send_message"):
            self._log.info("status_request_skipped", sender=message.sender)
            return
        status = self._status_provider()
        await self._send(message.sender, OutboundMessage(type="status_response", content=json.dumps(status, default=str)))

    async def handle_generic(self, message: InboundMessage) -> None:
        self._log.info("generic_message", sender=message.sender, message_type=message.type, content=message.content)
