"""In-process mailbox backend.

Backends that share one ``mailboxes`` dict can message each other, which lets
several agents run in a single process (and lets tests observe every send).
"""

from __future__ import annotations

from typing import Any, Iterable

from autoagent.backend.base import Backend, InboundMessage, OutboundMessage, parse_inbox
from autoagent.exceptions import BackendError


class InMemoryBackend(Backend):
    """
    Mailbox-per-agent backend.

    Attributes:
        sent: Every delivered message as (target, OutboundMessage), in order.
        entities: Every recorded entity as a dict.
        fail_operations: Operation names ("check_messages", "send_message",
            "record_entity") that raise BackendError instead of succeeding.
    """

    def __init__(
        self,
        agent_id: str,
        mailboxes: dict[str, list[dict[str, Any]]] | None = None,
        fail_operations: Iterable[str] = (),
    ) -> None:
        self.agent_id = agent_id
        self.mailboxes = mailboxes if mailboxes is not None else {}
        self.fail_operations = set(fail_operations)
        self.sent: list[tuple[str, OutboundMessage]] = []
        self.entities: list[dict[str, Any]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise BackendError(operation, "backend unavailable")

    def deliver(self, agent_id: str, sender: str, type: str, content: str = "") -> None:
        """Drop a message into agent_id's mailbox as if sender had sent it."""
        self.mailboxes.setdefault(agent_id, []).append({"from": sender, "type": type, "content": content})

    async def check_messages(self, agent_id: str) -> list[InboundMessage]:
        self._maybe_fail("check_messages")
        pending = self.mailboxes.pop(agent_id, [])
        return parse_inbox(pending)

    async def send_message(self, target_agent_id: str, message: OutboundMessage) -> dict[str, Any]:
        self._maybe_fail("send_message")
        self.deliver(target_agent_id, self.agent_id, message.type, message.content)
        self.sent.append((target_agent_id, message))
        return {"success": True, "to": target_agent_id}

    async def record_entity(self, name: str, category: str, observations: list[str]) -> dict[str, Any]:
        self._maybe_fail("record_entity")
        self.entities.append({"name": name, "entityType": category, "observations": list(observations)})
        return {"success": True, "name": name}
