"""Backend abstraction: the three operations the agent needs from its message/knowledge store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from autoagent.utils.logging import get_logger

logger = get_logger(__name__)


class InboundMessage(BaseModel):
    """A message waiting in this agent's inbox."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(validation_alias=AliasChoices("sender", "from", "fromAgent", "from_agent", "source"))
    content: str = ""
    type: str = Field(default="info", validation_alias=AliasChoices("type", "messageType", "message_type"))
    id: str | None = None


class OutboundMessage(BaseModel):
    """Payload for send_message: a typed text message to one peer."""

    type: str
    content: str


def parse_inbox(
    raw_messages: Iterable[Any],
    parse: Callable[[dict[str, Any]], InboundMessage] = InboundMessage.model_validate,
) -> list[InboundMessage]:
    """
    Validate fetched messages one at a time.

    The inbox is already drained (or marked read) when this runs, so a
    malformed entry is logged and skipped rather than failing the batch.
    """
    messages: list[InboundMessage] = []
    for raw in raw_messages:
        if not isinstance(raw, dict):
            logger.warning("malformed_message_skipped", reason="not an object", raw=repr(raw)[:200])
            continue
        try:
            messages.append(parse(raw))
        except ValidationError as e:
            logger.warning("malformed_message_skipped", reason=str(e).splitlines()[0], raw=repr(raw)[:200])
    return messages


class Backend(ABC):
    """
    Abstract messaging/knowledge backend.

    Implementations raise BackendError on any failure; callers in the agent
    catch, log and carry on.
    """

    @abstractmethod
    async def check_messages(self, agent_id: str) -> list[InboundMessage]:
        """Return new messages for agent_id (empty list when idle)."""
        pass

    @abstractmethod
    async def send_message(self, target_agent_id: str, message: OutboundMessage) -> dict[str, Any]:
        """Deliver a message to another agent; returns the backend's acknowledgement."""
        pass

    @abstractmethod
    async def record_entity(self, name: str, category: str, observations: list[str]) -> dict[str, Any]:
        """Store a named entity with observations in shared memory."""
        pass

    async def close(self) -> None:
        """Release resources held by the backend."""
        return None
