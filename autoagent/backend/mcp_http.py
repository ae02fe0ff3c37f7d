"""JSON-RPC client for an MCP HTTP gateway (``POST <base_url>/mcp``, method ``tools/call``)."""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any

import requests

from autoagent.backend.base import Backend, InboundMessage, OutboundMessage, parse_inbox
from autoagent.exceptions import BackendError
from autoagent.utils.logging import get_logger

logger = get_logger(__name__)


class McpHttpBackend(Backend):
    """
    Talks to the collaboration gateway through its MCP tools:
    get_ai_messages, send_ai_message and create_entities.

    requests is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        agent_id: str,
        base_url: str = "http://localhost:6174",
        api_key: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.agent_id = agent_id
        self.url = base_url.rstrip("/") + "/mcp"
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _post(self, tool: str, arguments: dict[str, Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "tools/call",
            "params": {"name": tool, "arguments": arguments},
        }
        try:
            resp = self._session.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            raise BackendError(tool, str(e)) from e
        except ValueError as e:
            raise BackendError(tool, f"invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise BackendError(tool, "unexpected response shape")
        if body.get("error"):
            err = body["error"]
            message = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            raise BackendError(tool, message)
        return _tool_payload(tool, body.get("result") or {})

    async def _call(self, tool: str, arguments: dict[str, Any]) -> Any:
        logger.debug("mcp_call", tool=tool)
        return await asyncio.to_thread(self._post, tool, arguments)

    async def check_messages(self, agent_id: str) -> list[InboundMessage]:
        data = await self._call(
            "get_ai_messages",
            {"agentId": agent_id, "unreadOnly": True, "compact": False, "markAsRead": True},
        )
        if isinstance(data, dict):
            raw = data.get("messages", [])
        elif isinstance(data, list):
            raw = data
        else:
            raw = []
        return parse_inbox(raw, _normalize_message)

    async def send_message(self, target_agent_id: str, message: OutboundMessage) -> dict[str, Any]:
        data = await self._call(
            "send_ai_message",
            {
                "agentId": target_agent_id,
                "content": message.content,
                "messageType": message.type,
                "from": self.agent_id,
            },
        )
        return {"success": True, "to": target_agent_id, "result": data}

    async def record_entity(self, name: str, category: str, observations: list[str]) -> dict[str, Any]:
        data = await self._call(
            "create_entities",
            {"entities": [{"name": name, "entityType": category, "observations": list(observations)}]},
        )
        return {"success": True, "name": name, "result": data}

    async def close(self) -> None:
        self._session.close()


def _tool_payload(tool: str, result: dict[str, Any]) -> Any:
    """Unwrap an MCP tool result: content[0].text, parsed as JSON when possible."""
    if result.get("isError"):
        raise BackendError(tool, _first_text(result) or "tool reported an error")
    text = _first_text(result)
    if text is None:
        return result
    try:
        return json.loads(text)
    except ValueError:
        return text


def _first_text(result: dict[str, Any]) -> str | None:
    for block in result.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            return block.get("text")
    return None


def _normalize_message(raw: dict[str, Any]) -> InboundMessage:
    """Flatten the gateway's nested message shape ({content: {from, messageType, content}})."""
    inner = raw.get("content")
    if isinstance(inner, dict) and ("from" in inner or "messageType" in inner):
        return InboundMessage(
            sender=inner.get("from") or raw.get("source") or "unknown",
            type=inner.get("messageType") or raw.get("type") or "info",
            content=str(inner.get("content") or inner.get("summary") or ""),
            id=str(raw["id"]) if raw.get("id") is not None else None,
        )
    flat = dict(raw)
    if flat.get("id") is not None:
        flat["id"] = str(flat["id"])
    if "content" in flat and not isinstance(flat["content"], str):
        flat["content"] = json.dumps(flat["content"])
    return InboundMessage.model_validate(flat)
