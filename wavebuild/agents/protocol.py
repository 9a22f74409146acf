"""Protocol definition for build agents."""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from wavebuild.agents.types import AgentConfig, AgentResult, AgentStatus


@runtime_checkable
class BuildAgent(Protocol):
    """What the orchestrator needs from every roster member."""

    def get_config(self) -> AgentConfig: ...

    def get_status(self) -> AgentStatus: ...

    def on(self, event: str, handler: Callable[[dict[str, Any]], None]) -> None: ...

    async def execute_with_retries(self) -> AgentResult: ...
