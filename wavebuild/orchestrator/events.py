"""Build event stream.

The orchestrator republishes every agent's lifecycle events, and its own
build/wave milestones, as one ordered stream of :data:`BuildEvent` models.
Delivery is synchronous, in emission order, to listeners in registration
order.  There is no buffering: a listener only sees events emitted after it
subscribed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field

from wavebuild.agents.types import AgentId, AgentResult
from wavebuild.config import BuildConfig
from wavebuild.orchestrator.report import OrchestratorReport
from wavebuild.utils import print_error


class _Event(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BuildStarted(_Event):
    type: Literal["BUILD_STARTED"] = "BUILD_STARTED"
    config: BuildConfig


class WaveStarted(_Event):
    type: Literal["WAVE_STARTED"] = "WAVE_STARTED"
    wave: int
    agents: list[AgentId]


class AgentStarted(_Event):
    type: Literal["AGENT_STARTED"] = "AGENT_STARTED"
    agent_id: AgentId


class AgentProgress(_Event):
    type: Literal["AGENT_PROGRESS"] = "AGENT_PROGRESS"
    agent_id: AgentId
    progress: int = Field(..., ge=0, le=100)
    message: str = ""


class AgentCompleted(_Event):
    type: Literal["AGENT_COMPLETED"] = "AGENT_COMPLETED"
    agent_id: AgentId
    result: AgentResult


class AgentFailed(_Event):
    type: Literal["AGENT_FAILED"] = "AGENT_FAILED"
    agent_id: AgentId
    error: str
    result: Optional[AgentResult] = None


class WaveCompleted(_Event):
    type: Literal["WAVE_COMPLETED"] = "WAVE_COMPLETED"
    wave: int
    results: list[AgentResult]


class BuildCompleted(_Event):
    type: Literal["BUILD_COMPLETED"] = "BUILD_COMPLETED"
    report: OrchestratorReport


class BuildFailed(_Event):
    type: Literal["BUILD_FAILED"] = "BUILD_FAILED"
    error: str
    partial_report: OrchestratorReport


BuildEvent = Annotated[
    Union[
        BuildStarted,
        WaveStarted,
        AgentStarted,
        AgentProgress,
        AgentCompleted,
        AgentFailed,
        WaveCompleted,
        BuildCompleted,
        BuildFailed,
    ],
    Field(discriminator="type"),
]

BuildEventHandler = Callable[[BuildEvent], None]


class EventBus:
    """Ordered listener registry with synchronous delivery."""

    def __init__(self) -> None:
        self._listeners: list[BuildEventHandler] = []

    def subscribe(self, handler: BuildEventHandler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unsubscribes it."""
        self._listeners.append(handler)

        def unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return unsubscribe

    def emit(self, event: BuildEvent) -> None:
        """Deliver *event* to every listener.

        A listener that raises is reported and skipped; the remaining
        listeners still receive the event.
        """
        for handler in list(self._listeners):
            try:
                handler(event)
            except Exception as exc:
                print_error(f"Event listener failed on {event.type}: {exc}")

    def __len__(self) -> int:
        return len(self._listeners)
