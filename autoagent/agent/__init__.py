"""Autonomous agent lifecycle and inbound message dispatch."""

from autoagent.agent.dispatcher import DispatchResult, MessageDispatcher
from autoagent.agent.lifecycle import AutonomousAgent

__all__ = ["AutonomousAgent", "DispatchResult", "MessageDispatcher"]
