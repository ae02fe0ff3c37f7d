"""Backend collaborators: abstract contract plus in-memory and MCP HTTP implementations."""

from autoagent.backend.base import Backend, InboundMessage, OutboundMessage, parse_inbox
from autoagent.backend.mcp_http import McpHttpBackend
from autoagent.backend.memory import InMemoryBackend

__all__ = ["Backend", "InboundMessage", "OutboundMessage", "InMemoryBackend", "McpHttpBackend", "parse_inbox"]
