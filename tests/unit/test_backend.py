"""Unit tests for the backend implementations and factory."""

import json

import pytest
import requests

from autoagent.backend.base import InboundMessage, OutboundMessage
from autoagent.backend.mcp_http import McpHttpBackend
from autoagent.backend.memory import InMemoryBackend
from autoagent.exceptions import BackendError
from autoagent.utils.backend_factory import get_backend_from_config


class FakeResponse:
    def __init__(self, body, status=200):
        self._body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._body


class FakeSession:
    """Records posts and replays canned responses (or raises)."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.posts = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def _tool_text(payload):
    return {"jsonrpc": "2.0", "id": 1, "result": {"content": [{"type": "text", "text": json.dumps(payload)}]}}


def test_inbound_message_accepts_wire_aliases():
    m = InboundMessage.model_validate({"fromAgent": "peer", "messageType": "task", "content": "do it"})
    assert (m.sender, m.type, m.content) == ("peer", "task", "do it")
    m = InboundMessage.model_validate({"from": "peer"})
    assert m.type == "info"


@pytest.mark.asyncio
async def test_memory_backends_share_mailboxes(mailboxes):
    a = InMemoryBackend("a", mailboxes=mailboxes)
    b = InMemoryBackend("b", mailboxes=mailboxes)
    await a.send_message("b", OutboundMessage(type="task", content="hello"))
    assert a.sent == [("b", OutboundMessage(type="task", content="hello"))]

    inbox = await b.check_messages("b")
    assert [(m.sender, m.type, m.content) for m in inbox] == [("a", "task", "hello")]
    assert await b.check_messages("b") == []


@pytest.mark.asyncio
async def test_memory_backend_failure_injection():
    backend = InMemoryBackend("a", fail_operations={"record_entity"})
    with pytest.raises(BackendError) as exc:
        await backend.record_entity("x", "agent_status", [])
    assert exc.value.operation == "record_entity"
    assert backend.entities == []
    assert await backend.check_messages("a") == []


@pytest.mark.asyncio
async def test_mcp_check_messages_flattens_gateway_shape():
    session = FakeSession([
        FakeResponse(_tool_text({
            "agentId": "me",
            "messages": [
                {"id": 12, "content": {"from": "peer", "messageType": "collaboration", "content": "pair?"}},
                {"from": "other", "type": "task", "content": {"steps": 2}},
            ],
        })),
    ])
    backend = McpHttpBackend("me", base_url="http://gw:6174/", api_key="k", session=session)
    messages = await backend.check_messages("me")

    assert [(m.sender, m.type) for m in messages] == [("peer", "collaboration"), ("other", "task")]
    assert messages[0].id == "12"
    assert messages[0].content == "pair?"
    assert json.loads(messages[1].content) == {"steps": 2}

    post = session.posts[0]
    assert post["url"] == "http://gw:6174/mcp"
    assert post["headers"]["x-api-key"] == "k"
    assert post["json"]["method"] == "tools/call"
    assert post["json"]["params"]["name"] == "get_ai_messages"
    assert post["json"]["params"]["arguments"]["agentId"] == "me"


@pytest.mark.asyncio
async def test_mcp_check_messages_skips_malformed_entries():
    session = FakeSession([
        FakeResponse(_tool_text({"messages": [{"type": "task"}, "junk", {"from": "peer", "type": "task", "content": "go"}]})),
    ])
    messages = await McpHttpBackend("me", session=session).check_messages("me")
    assert [(m.sender, m.content) for m in messages] == [("peer", "go")]


@pytest.mark.asyncio
async def test_mcp_send_and_record_build_tool_calls():
    session = FakeSession([
        FakeResponse({"result": {"content": [{"type": "text", "text": "Message sent"}]}}),
        FakeResponse({"result": {"content": [{"type": "text", "text": "Stored 1 entity"}]}}),
    ])
    backend = McpHttpBackend("me", session=session)
    ack = await backend.send_message("peer", OutboundMessage(type="acknowledgment", content="ok"))
    assert ack["success"] is True and ack["result"] == "Message sent"
    await backend.record_entity("me Status", "agent_status", ["Agent: me"])

    send_args = session.posts[0]["json"]["params"]["arguments"]
    assert send_args == {"agentId": "peer", "content": "ok", "messageType": "acknowledgment", "from": "me"}
    entity_args = session.posts[1]["json"]["params"]["arguments"]
    assert entity_args == {"entities": [{"name": "me Status", "entityType": "agent_status", "observations": ["Agent: me"]}]}
    assert "x-api-key" not in session.posts[0]["headers"]
    assert session.posts[1]["json"]["id"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Unknown tool"}}),
        FakeResponse({}, status=503),
        requests.ConnectionError("refused"),
        FakeResponse({"result": {"isError": True, "content": [{"type": "text", "text": "denied"}]}}),
    ],
)
async def test_mcp_failures_raise_backend_error(response):
    backend = McpHttpBackend("me", session=FakeSession([response]))
    with pytest.raises(BackendError):
        await backend.send_message("peer", OutboundMessage(type="info", content="x"))


@pytest.mark.asyncio
async def test_mcp_close_closes_session():
    session = FakeSession([])
    backend = McpHttpBackend("me", session=session)
    await backend.close()
    assert session.closed is True


def test_factory_selects_provider():
    memory = get_backend_from_config("a", {"backend": {"provider": "memory"}})
    assert isinstance(memory, InMemoryBackend)
    http = get_backend_from_config(
        "a", {"backend": {"provider": "mcp_http", "base_url": "http://x:1", "api_key": "k", "timeout_seconds": 5}}
    )
    assert isinstance(http, McpHttpBackend)
    assert http.url == "http://x:1/mcp"
    assert http.timeout == 5.0
    with pytest.raises(ValueError):
        get_backend_from_config("a", {"backend": {"provider": "carrier-pigeon"}})
