"""wavebuild agents: data types, the execution contract and the engineer roster."""

from .protocol import BuildAgent
from .registry import ENGINEERS, create_agent, create_roster
from .runner import AgentContext, AgentEventEmitter, AgentRunner, AgentTaskError, backoff_delay
from .types import (
    AgentConfig,
    AgentDashboardInfo,
    AgentDependency,
    AgentId,
    AgentLogEntry,
    AgentMetrics,
    AgentResult,
    AgentStatus,
    LogLevel,
)

__all__ = [
    # Types
    "AgentId",
    "AgentStatus",
    "LogLevel",
    "AgentDependency",
    "AgentConfig",
    "AgentLogEntry",
    "AgentMetrics",
    "AgentResult",
    "AgentDashboardInfo",
    # Contract
    "BuildAgent",
    "AgentRunner",
    "AgentContext",
    "AgentEventEmitter",
    "AgentTaskError",
    "backoff_delay",
    # Registry
    "ENGINEERS",
    "create_agent",
    "create_roster",
]
