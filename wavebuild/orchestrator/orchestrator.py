"""Wave executor.

:class:`BuildOrchestrator` owns the roster, plans it into waves and runs the
waves in order.  Within a wave, agents run in concurrency-bounded batches;
a batch fully settles before the next batch starts, and a wave fully
settles before the next wave starts.  Results are written once into a
:class:`ResultStore` after their batch settles, and later waves read them to
decide whether an agent runs or is blocked.

Usage::

    orchestrator = BuildOrchestrator(config)
    orchestrator.on_event(print)
    report = await orchestrator.run()
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Optional

from pydantic import BaseModel, Field
from rich.panel import Panel

from wavebuild.agents.protocol import BuildAgent
from wavebuild.agents.registry import create_roster
from wavebuild.agents.types import (
    AgentConfig,
    AgentDashboardInfo,
    AgentId,
    AgentResult,
    AgentStatus,
)
from wavebuild.config import BuildConfig
from wavebuild.orchestrator.events import (
    AgentCompleted,
    AgentFailed,
    AgentProgress,
    AgentStarted,
    BuildCompleted,
    BuildEvent,
    BuildEventHandler,
    BuildFailed,
    BuildStarted,
    EventBus,
    WaveCompleted,
    WaveStarted,
)
from wavebuild.orchestrator.planner import ExecutionPlan, create_execution_plan, print_execution_plan
from wavebuild.orchestrator.report import OrchestratorReport, generate_summary, print_report
from wavebuild.orchestrator.results import ResultStore
from wavebuild.utils import (
    console,
    print_debug,
    print_error,
    print_info,
    print_phase_header,
    print_success,
    print_warning,
)


class OrchestratorPhase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    PUBLISHING = "publishing"
    COMPLETE = "complete"
    FAILED = "failed"


class OrchestratorState(BaseModel):
    phase: OrchestratorPhase = OrchestratorPhase.IDLE
    current_wave: int = 0
    total_waves: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class BuildFailedError(Exception):
    """Raised by :meth:`BuildOrchestrator.run` when fail-fast stops a build.

    ``partial_report`` holds every result recorded before the abort.
    """

    def __init__(
        self,
        failed_agents: list[AgentId],
        partial_report: Optional[OrchestratorReport] = None,
    ) -> None:
        self.failed_agents = failed_agents
        self.partial_report = partial_report
        super().__init__(f"Build failed: {', '.join(a.value for a in failed_agents)} failed")


class BuildOrchestrator:
    """Plans and executes one build over a fixed roster of agents.

    Args:
        config: Build configuration shared with every agent.
        agents: The roster keyed by agent id.  Defaults to the full engineer
            roster from :func:`~wavebuild.agents.registry.create_roster`.
    """

    def __init__(
        self,
        config: BuildConfig,
        agents: Optional[Mapping[AgentId, BuildAgent]] = None,
    ) -> None:
        self.config = config
        self._agents: dict[AgentId, BuildAgent] = dict(
            agents if agents is not None else create_roster(config)
        )
        self._bus = EventBus()
        self._results = ResultStore()
        self._state = OrchestratorState()
        self._plan: Optional[ExecutionPlan] = None
        self._last_report: Optional[OrchestratorReport] = None
        self._build_started = 0.0
        self._dashboard: dict[AgentId, AgentDashboardInfo] = {}

        for agent_id, agent in self._agents.items():
            config_ = agent.get_config()
            self._dashboard[agent_id] = AgentDashboardInfo(
                id=agent_id, name=config_.name, status=AgentStatus.IDLE
            )
            self._wire(agent_id, agent)

    # ------------------------------------------------------------------
    # Public accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state.model_copy()

    @property
    def results(self) -> Mapping[AgentId, AgentResult]:
        return self._results

    @property
    def execution_plan(self) -> Optional[ExecutionPlan]:
        return self._plan

    @property
    def last_report(self) -> Optional[OrchestratorReport]:
        """The final report, or the partial report of a failed run."""
        return self._last_report

    @property
    def agent_configs(self) -> dict[AgentId, AgentConfig]:
        return {agent_id: agent.get_config() for agent_id, agent in self._agents.items()}

    def on_event(self, handler: BuildEventHandler) -> Callable[[], None]:
        """Subscribe to the build event stream; returns an unsubscribe callable."""
        return self._bus.subscribe(handler)

    def get_dashboard_state(self) -> list[AgentDashboardInfo]:
        return [info.model_copy() for info in self._dashboard.values()]

    def plan(self) -> ExecutionPlan:
        """Compute the execution plan without running anything."""
        return create_execution_plan(self.agent_configs, strict=self.config.strict_dependencies)

    # ------------------------------------------------------------------
    # Event plumbing
    # ------------------------------------------------------------------

    def _emit(self, event: BuildEvent) -> None:
        self._bus.emit(event)

    def _wire(self, agent_id: AgentId, agent: BuildAgent) -> None:
        """Republish the agent's own events on the build bus."""

        def started(payload: dict[str, Any]) -> None:
            info = self._dashboard[agent_id]
            info.status = AgentStatus.RUNNING
            info.progress = 0
            info.start_time = datetime.now(timezone.utc)
            self._emit(AgentStarted(agent_id=agent_id))

        def progress(payload: dict[str, Any]) -> None:
            info = self._dashboard[agent_id]
            info.progress = payload["progress"]
            info.message = payload.get("message", "")
            self._emit(
                AgentProgress(
                    agent_id=agent_id,
                    progress=payload["progress"],
                    message=payload.get("message", ""),
                )
            )

        def completed(payload: dict[str, Any]) -> None:
            self._finish_dashboard(agent_id, AgentStatus.SUCCESS, "Done")
            self._emit(AgentCompleted(agent_id=agent_id, result=payload["result"]))

        def failed(payload: dict[str, Any]) -> None:
            self._finish_dashboard(agent_id, AgentStatus.FAILED, payload["error"])
            self._emit(
                AgentFailed(agent_id=agent_id, error=payload["error"], result=payload.get("result"))
            )

        agent.on("started", started)
        agent.on("progress", progress)
        agent.on("completed", completed)
        agent.on("failed", failed)

    def _finish_dashboard(self, agent_id: AgentId, status: AgentStatus, message: str) -> None:
        info = self._dashboard[agent_id]
        info.status = status
        info.message = message
        info.end_time = datetime.now(timezone.utc)
        if status == AgentStatus.SUCCESS:
            info.progress = 100

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> OrchestratorReport:
        """Plan and execute the build.

        Raises:
            BuildFailedError: fail-fast stopped the build after a wave with
                failures.
            InvalidRosterError, CyclicDependencyError: planning failed.
        """
        if self._state.phase != OrchestratorPhase.IDLE:
            raise RuntimeError("BuildOrchestrator.run() can only be called once")

        self._build_started = time.monotonic()
        self._state.phase = OrchestratorPhase.PLANNING
        self._state.start_time = datetime.now(timezone.utc)

        self._print_header()
        self._emit(BuildStarted(config=self.config))

        try:
            configs = self.agent_configs
            print_debug("Creating execution plan...", self.config.verbose)
            self._plan = create_execution_plan(configs, strict=self.config.strict_dependencies)
            self._state.total_waves = len(self._plan.waves)
            print_execution_plan(self._plan, configs)

            self._state.phase = OrchestratorPhase.EXECUTING
            for index, wave in enumerate(self._plan.waves, 1):
                self._state.current_wave = index
                print_phase_header(f"Wave {index}/{len(self._plan.waves)}")
                print_info("Agents: " + ", ".join(configs[a].name for a in wave))
                self._emit(WaveStarted(wave=index, agents=wave))

                wave_results = await self.execute_wave(wave)

                self._emit(WaveCompleted(wave=index, results=wave_results))
                failures = [r.agent_id for r in wave_results if not r.success]
                if failures and self.config.fail_fast:
                    raise BuildFailedError(failures)

            if self.config.publish_to_npm:
                self._state.phase = OrchestratorPhase.PUBLISHING
                print_phase_header("Publishing", color="magenta")
                self._log_publish_checkpoint()

            self._state.phase = OrchestratorPhase.COMPLETE
            self._state.end_time = datetime.now(timezone.utc)

            report = self._build_report()
            self._last_report = report
            print_report(report)
            self._emit(BuildCompleted(report=report))
            return report

        except Exception as exc:
            self._state.phase = OrchestratorPhase.FAILED
            self._state.end_time = datetime.now(timezone.utc)
            print_error(f"Build aborted: {exc}")

            partial = self._build_report()
            self._last_report = partial
            if isinstance(exc, BuildFailedError):
                exc.partial_report = partial
            self._emit(BuildFailed(error=str(exc), partial_report=partial))
            raise

    # ------------------------------------------------------------------
    # Wave execution
    # ------------------------------------------------------------------

    async def execute_wave(self, wave: list[AgentId]) -> list[AgentResult]:
        """Run *wave* batch by batch and record every outcome.

        Returns the wave's results in batch order.
        """
        results: list[AgentResult] = []
        for batch in self._batches(wave):
            print_debug(f"  Batch: {', '.join(a.value for a in batch)}", self.config.verbose)
            outcomes = await asyncio.gather(
                *(self._run_agent(agent_id) for agent_id in batch),
                return_exceptions=True,
            )
            for agent_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    outcome = self._contract_violation(agent_id, outcome)
                self._results.record(outcome)
                results.append(outcome)
        return results

    def _batches(self, wave: list[AgentId]) -> Iterator[list[AgentId]]:
        """Split *wave* into batches of at most the effective concurrency.

        Agents whose config says ``parallel=False`` always get a batch of
        their own.
        """
        size = self.config.effective_concurrency or len(wave)
        batch: list[AgentId] = []
        for agent_id in wave:
            if not self._agents[agent_id].get_config().parallel:
                if batch:
                    yield batch
                    batch = []
                yield [agent_id]
                continue
            batch.append(agent_id)
            if len(batch) >= size:
                yield batch
                batch = []
        if batch:
            yield batch

    async def _run_agent(self, agent_id: AgentId) -> AgentResult:
        agent = self._agents[agent_id]
        for dep in agent.get_config().required_dependencies:
            if not self._results.succeeded(dep):
                print_warning(f"  {agent_id.value}: skipped, dependency {dep.value} did not succeed")
                self._finish_dashboard(agent_id, AgentStatus.BLOCKED, f"Blocked by {dep.value}")
                return AgentResult.blocked(agent_id, dep)

        set_start = getattr(agent, "set_build_start_time", None)
        if callable(set_start):
            set_start(self._build_started)

        result = await agent.execute_with_retries()
        if result.success:
            print_success(f"  {agent_id.value}: done")
        else:
            print_error(f"  {agent_id.value}: {result.error}")
        return result

    def _contract_violation(self, agent_id: AgentId, exc: Exception) -> AgentResult:
        """Turn an exception escaping ``execute_with_retries`` into a failed result."""
        message = f"{type(exc).__name__}: {exc}"
        print_error(f"  {agent_id.value} raised instead of returning a result: {message}")
        self._finish_dashboard(agent_id, AgentStatus.FAILED, message)
        return AgentResult(
            success=False,
            agent_id=agent_id,
            status=AgentStatus.FAILED,
            error=message,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _build_report(self) -> OrchestratorReport:
        summary = generate_summary(self._results, len(self._agents))
        complete = self._state.phase == OrchestratorPhase.COMPLETE
        return OrchestratorReport(
            success=complete and summary.failed_agents == 0 and summary.skipped_agents == 0,
            execution_plan=self._plan,
            results=dict(self._results),
            total_duration=round(time.monotonic() - self._build_started, 4),
            summary=summary,
            started_at=self._state.start_time or datetime.now(timezone.utc),
            finished_at=self._state.end_time,
        )

    def _log_publish_checkpoint(self) -> None:
        publish = self._results.get(AgentId.PUBLISH)
        if publish is None:
            print_warning("  No publish agent in the roster")
        elif publish.success:
            print_success("  Publish agent finished")
        else:
            print_warning(f"  Publish agent {publish.status.value}: {publish.error}")

    def _print_header(self) -> None:
        targets = ", ".join(t.name for t in self.config.targets) or "(project root)"
        concurrency = self.config.effective_concurrency
        console.print(
            Panel(
                f"[bold bright_cyan]wavebuild[/bold bright_cyan]\n"
                f"Targets         : {targets}\n"
                f"Agents          : {len(self._agents)}\n"
                f"Parallel        : {'yes' if self.config.parallel else 'no'}\n"
                f"Max concurrency : {concurrency if concurrency else 'whole wave'}\n"
                f"Fail fast       : {'yes' if self.config.fail_fast else 'no'}\n"
                f"Publish to npm  : {'yes' if self.config.publish_to_npm else 'no'}\n"
                f"Dry run         : {'yes' if self.config.dry_run else 'no'}",
                title="[bold]Build Start[/bold]",
                border_style="bright_cyan",
            )
        )
