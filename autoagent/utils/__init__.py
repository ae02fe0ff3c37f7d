"""Shared utilities."""

from autoagent.utils.config import load_config
from autoagent.utils.logging import get_logger, setup_logging

__all__ = ["load_config", "get_logger", "setup_logging"]
