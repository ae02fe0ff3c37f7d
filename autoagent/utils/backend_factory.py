"""Backend factory from config."""

from __future__ import annotations

from typing import Any

from autoagent.backend.base import Backend
from autoagent.utils.logging import get_logger

logger = get_logger(__name__)


def _create_backend(provider: str, agent_id: str, **kwargs: Any) -> Backend:
    """Create a single backend by provider name."""
    provider = (provider or "mcp_http").lower()
    if provider == "mcp_http":
        from autoagent.backend.mcp_http import McpHttpBackend
        return McpHttpBackend(
            agent_id,
            base_url=kwargs.get("base_url") or "http://localhost:6174",
            api_key=kwargs.get("api_key"),
            timeout=float(kwargs.get("timeout_seconds", 30.0)),
        )
    if provider == "memory":
        from autoagent.backend.memory import InMemoryBackend
        return InMemoryBackend(agent_id)
    raise ValueError(f"Unknown backend provider: {provider}")


def get_backend_from_config(agent_id: str, config: dict[str, Any]) -> Backend:
    """Build the backend described by the ``backend`` config section."""
    backend_cfg = dict(config.get("backend") or {})
    provider = backend_cfg.pop("provider", "mcp_http")
    backend = _create_backend(provider, agent_id, **backend_cfg)
    logger.info("backend_created", provider=provider, agent_id=agent_id)
    return backend
