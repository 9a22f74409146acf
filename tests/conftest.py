"""Shared pytest fixtures for the wavebuild test suite.

Provides reusable fixtures for:
- Temporary Node project directories
- Build configurations with retry delays disabled
- Scripted fake agents (invocation counting, timing, failures)
- Mock subprocess helpers
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from wavebuild.agents.runner import AgentContext, AgentRunner, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId
from wavebuild.config import BuildConfig


# ---------------------------------------------------------------------------
# Paths & Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary Node project with a package.json and a src/ directory."""
    project_dir = tmp_path / "web-app"
    (project_dir / "src").mkdir(parents=True)
    (project_dir / "package.json").write_text(
        json.dumps({"name": "@acme/web-app", "version": "1.2.3"}), encoding="utf-8"
    )
    yield project_dir


@pytest.fixture
def build_config(tmp_project_dir: Path) -> BuildConfig:
    """BuildConfig rooted at the temp project, with no retry delays."""
    return BuildConfig(
        project_root=tmp_project_dir,
        retry_delay=0.0,
        max_retry_delay=0.0,
    )


# ---------------------------------------------------------------------------
# Fake agents
# ---------------------------------------------------------------------------

class FakeTask:
    """Scripted agent task.

    ``outcomes`` is consumed one entry per attempt (the last entry repeats):
    ``True`` succeeds, ``False`` raises :class:`AgentTaskError`, an exception
    instance is raised as-is, and ``"hang"`` sleeps past any timeout.
    """

    def __init__(
        self,
        outcomes: Iterable[Any] = (True,),
        delay: float = 0.0,
        data: Any = None,
    ) -> None:
        self.outcomes = list(outcomes)
        self.delay = delay
        self.data = data
        self.calls = 0
        self.intervals: list[tuple[float, float]] = []

    async def __call__(self, ctx: AgentContext) -> Any:
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        start = time.monotonic()
        try:
            ctx.progress(50, "working")
            if outcome == "hang":
                await asyncio.sleep(3600)
            if self.delay:
                await asyncio.sleep(self.delay)
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome is False:
                raise AgentTaskError("scripted failure", errors_found=1)
            ctx.record(files_processed=1, errors_found=0, warnings_found=0)
            return self.data
        finally:
            self.intervals.append((start, time.monotonic()))


def make_config(
    agent_id: AgentId,
    requires: Iterable[AgentId] = (),
    soft: Iterable[AgentId] = (),
    priority: int = 0,
    retries: int = 0,
    timeout: float = 5.0,
    parallel: bool = True,
) -> AgentConfig:
    dependencies = tuple(AgentDependency(agent_id=d) for d in requires) + tuple(
        AgentDependency(agent_id=d, required=False) for d in soft
    )
    return AgentConfig(
        id=agent_id,
        name=f"{agent_id.value} agent",
        dependencies=dependencies,
        priority=priority,
        retries=retries,
        timeout=timeout,
        parallel=parallel,
    )


@pytest.fixture
def config_factory() -> Callable[..., AgentConfig]:
    """Factory for AgentConfig objects: ``config_factory(AgentId.TEST, requires=[AgentId.LINT])``."""
    return make_config


@pytest.fixture
def agent_factory(build_config: BuildConfig) -> Callable[..., tuple[AgentRunner, FakeTask]]:
    """Factory for ``(AgentRunner, FakeTask)`` pairs.

    Usage:
        def test_something(agent_factory):
            agent, task = agent_factory(AgentId.LINT, outcomes=[False, True], retries=1)
    """

    def factory(
        agent_id: AgentId,
        requires: Iterable[AgentId] = (),
        soft: Iterable[AgentId] = (),
        priority: int = 0,
        retries: int = 0,
        timeout: float = 5.0,
        parallel: bool = True,
        outcomes: Iterable[Any] = (True,),
        delay: float = 0.0,
        data: Any = None,
        config: Optional[BuildConfig] = None,
        sleep: Optional[AsyncMock] = None,
    ) -> tuple[AgentRunner, FakeTask]:
        task = FakeTask(outcomes=outcomes, delay=delay, data=data)
        agent_config = make_config(agent_id, requires, soft, priority, retries, timeout, parallel)
        runner = AgentRunner(
            agent_config, config or build_config, task=task, sleep=sleep or AsyncMock()
        )
        return runner, task

    return factory


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
