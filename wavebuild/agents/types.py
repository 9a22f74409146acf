"""Data types shared by the agents and the orchestrator.

Pydantic v2 models for agent identity, configuration, metrics, logs and
results.  Configs and results are frozen: a config is fixed when the agent is
constructed, and a result is written exactly once by the orchestrator.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentId(str, Enum):
    """The closed set of engineer agents in the build roster."""

    TYPECHECK = "typecheck"
    LINT = "lint"
    TEST = "test"
    SECURITY = "security"
    QUALITY = "quality"
    BUNDLE = "bundle"
    PERFORMANCE = "performance"
    DOCUMENTATION = "documentation"
    BUILD = "build"
    PUBLISH = "publish"


class AgentStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class AgentDependency(BaseModel):
    """An edge from a dependency to the agent that declares it.

    Only ``required`` edges gate scheduling and execution.  ``condition`` is
    informational: callers may evaluate it against the dependency's result,
    the orchestrator never does.
    """

    model_config = ConfigDict(frozen=True)

    agent_id: AgentId
    required: bool = True
    condition: Optional[Callable[..., bool]] = Field(default=None, exclude=True)


class AgentConfig(BaseModel):
    """Static description of an agent, fixed at construction."""

    model_config = ConfigDict(frozen=True)

    id: AgentId
    name: str
    description: str = ""
    dependencies: tuple[AgentDependency, ...] = ()
    timeout: float = Field(default=300.0, gt=0, description="Per-attempt timeout in seconds")
    retries: int = Field(default=0, ge=0, description="Extra attempts after the first")
    priority: int = Field(default=0, description="Higher runs earlier within a wave")
    parallel: bool = Field(default=True, description="Safe to run alongside wave mates")

    @property
    def required_dependencies(self) -> list[AgentId]:
        return [dep.agent_id for dep in self.dependencies if dep.required]


# ---------------------------------------------------------------------------
# Execution output
# ---------------------------------------------------------------------------

class AgentLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel = LogLevel.INFO
    message: str


class AgentMetrics(BaseModel):
    """Best-effort measurements for one execution.

    Counts stay ``None`` unless the task actually measured them.
    """

    model_config = ConfigDict(frozen=True)

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = Field(default=None, description="Seconds")
    files_processed: Optional[int] = None
    errors_found: Optional[int] = None
    warnings_found: Optional[int] = None
    extra: dict[str, Any] = Field(default_factory=dict)


class AgentResult(BaseModel):
    """Outcome of one agent's execution attempt(s)."""

    model_config = ConfigDict(frozen=True)

    success: bool
    agent_id: AgentId
    status: AgentStatus
    data: Any = None
    error: Optional[str] = None
    logs: list[AgentLogEntry] = Field(default_factory=list)
    metrics: AgentMetrics = Field(default_factory=AgentMetrics)
    attempts: int = Field(default=0, ge=0)

    @classmethod
    def blocked(cls, agent_id: AgentId, dependency: AgentId) -> "AgentResult":
        """Synthetic result for an agent whose required dependency did not succeed."""
        return cls(
            success=False,
            agent_id=agent_id,
            status=AgentStatus.BLOCKED,
            error=f"Dependency {dependency.value} failed",
        )


class AgentDashboardInfo(BaseModel):
    """Row of the live dashboard."""

    id: AgentId
    name: str
    status: AgentStatus
    progress: int = Field(default=0, ge=0, le=100)
    message: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
