"""Retry/timeout/event wrapper shared by every engineer agent.

An engineer supplies an async *task* that does the actual work; the
:class:`AgentRunner` turns it into the execution contract the orchestrator
relies on:

1. Attempt the task up to ``retries + 1`` times.
2. Bound every attempt by ``timeout`` (a timeout is a failed attempt).
3. Sleep ``min(retry_delay * 2**(n-1), max_retry_delay)`` before retry *n*.
4. Never raise: exhaustion yields a failed :class:`AgentResult`.
5. Emit ``started``, any number of ``progress`` events, then exactly one
   ``completed`` or ``failed`` event.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from wavebuild.agents.types import (
    AgentConfig,
    AgentLogEntry,
    AgentMetrics,
    AgentResult,
    AgentStatus,
    LogLevel,
)
from wavebuild.config import BuildConfig
from wavebuild.utils import print_debug, print_error

AGENT_EVENTS = ("started", "progress", "completed", "failed")

EventHandler = Callable[[dict[str, Any]], None]
AgentTask = Callable[["AgentContext"], Awaitable[Any]]


class AgentTaskError(Exception):
    """Raised by a task to report a failure together with what it measured."""

    def __init__(
        self,
        message: str,
        files_processed: int | None = None,
        errors_found: int | None = None,
        warnings_found: int | None = None,
        data: Any = None,
    ) -> None:
        self.files_processed = files_processed
        self.errors_found = errors_found
        self.warnings_found = warnings_found
        self.data = data
        super().__init__(message)


def backoff_delay(attempt: int, base: float, ceiling: float) -> float:
    """Delay before retry number *attempt* (1-based); never decreases."""
    if attempt < 1 or base <= 0:
        return 0.0
    return min(base * (2 ** (attempt - 1)), ceiling)


# ---------------------------------------------------------------------------
# Event emitter
# ---------------------------------------------------------------------------

class AgentEventEmitter:
    """Ordered per-event listener registry with synchronous delivery."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {name: [] for name in AGENT_EVENTS}

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown agent event: {event!r}")
        self._handlers[event].append(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception as exc:
                print_error(f"  Listener for '{event}' raised: {exc}")


# ---------------------------------------------------------------------------
# Per-attempt context handed to tasks
# ---------------------------------------------------------------------------

class AgentContext:
    """What a task may touch while it runs: progress, logs, metrics, config."""

    def __init__(
        self,
        config: AgentConfig,
        build_config: BuildConfig,
        emitter: AgentEventEmitter,
        logs: list[AgentLogEntry],
        attempt: int,
        build_started_at: float | None = None,
    ) -> None:
        self.config = config
        self.build_config = build_config
        self.attempt = attempt
        self.build_started_at = build_started_at
        self._emitter = emitter
        self._logs = logs
        self.files_processed: int | None = None
        self.errors_found: int | None = None
        self.warnings_found: int | None = None
        self.extra: dict[str, Any] = {}

    def progress(self, percent: int, message: str = "") -> None:
        percent = max(0, min(100, int(percent)))
        self._emitter.emit(
            "progress",
            {"agent_id": self.config.id, "progress": percent, "message": message},
        )

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        self._logs.append(AgentLogEntry(level=level, message=message))
        print_debug(f"  [{self.config.id.value}] {message}", self.build_config.verbose)

    def record(
        self,
        files_processed: int | None = None,
        errors_found: int | None = None,
        warnings_found: int | None = None,
        **extra: Any,
    ) -> None:
        """Record measured counts; omitted values keep what was recorded before."""
        if files_processed is not None:
            self.files_processed = files_processed
        if errors_found is not None:
            self.errors_found = errors_found
        if warnings_found is not None:
            self.warnings_found = warnings_found
        self.extra.update(extra)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class AgentRunner:
    """Runs one agent task under the execution contract.

    The runner is the roster member the orchestrator talks to; it satisfies
    :class:`~wavebuild.agents.protocol.BuildAgent`.  The engineer itself is
    just the *task* coroutine it wraps.

    Usage::

        agent = AgentRunner(engineer.config, build_config, task=engineer.run)
        agent.on("progress", handler)
        result = await agent.execute_with_retries()
    """

    def __init__(
        self,
        config: AgentConfig,
        build_config: BuildConfig,
        task: AgentTask,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.build_config = build_config
        self._task = task
        self._sleep = sleep
        self._emitter = AgentEventEmitter()
        self._status = AgentStatus.IDLE
        self._build_started_at: float | None = None

    def get_config(self) -> AgentConfig:
        return self.config

    def get_status(self) -> AgentStatus:
        return self._status

    def on(self, event: str, handler: EventHandler) -> None:
        self._emitter.on(event, handler)

    def set_build_start_time(self, started_at: float) -> None:
        """``time.monotonic()`` reading taken when the build started."""
        self._build_started_at = started_at

    async def execute_with_retries(self) -> AgentResult:
        """Run the task with timeout and retries; never raises."""
        agent_id = self.config.id
        max_attempts = self.config.retries + 1
        logs: list[AgentLogEntry] = []
        start_time = datetime.now(timezone.utc)
        started = time.monotonic()

        self._status = AgentStatus.RUNNING
        self._emitter.emit("started", {"agent_id": agent_id})

        last_error = "Agent did not run"
        context: Optional[AgentContext] = None
        error_data: Any = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = backoff_delay(
                    attempt - 1,
                    self.build_config.retry_delay,
                    self.build_config.max_retry_delay,
                )
                logs.append(
                    AgentLogEntry(
                        level=LogLevel.WARN,
                        message=f"Retrying (attempt {attempt}/{max_attempts}) in {delay:.1f}s",
                    )
                )
                await self._sleep(delay)

            context = AgentContext(
                self.config,
                self.build_config,
                self._emitter,
                logs,
                attempt,
                build_started_at=self._build_started_at,
            )
            try:
                data = await asyncio.wait_for(self._task(context), timeout=self.config.timeout)
            except asyncio.TimeoutError:
                last_error = f"Timed out after {self.config.timeout:g}s"
            except AgentTaskError as exc:
                last_error = str(exc)
                error_data = exc.data
                context.record(
                    files_processed=exc.files_processed,
                    errors_found=exc.errors_found,
                    warnings_found=exc.warnings_found,
                )
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                result = AgentResult(
                    success=True,
                    agent_id=agent_id,
                    status=AgentStatus.SUCCESS,
                    data=data,
                    logs=logs,
                    metrics=self._metrics(context, start_time, started),
                    attempts=attempt,
                )
                self._status = AgentStatus.SUCCESS
                self._emitter.emit("completed", {"agent_id": agent_id, "result": result})
                return result

            logs.append(
                AgentLogEntry(
                    level=LogLevel.ERROR,
                    message=f"Attempt {attempt}/{max_attempts} failed: {last_error}",
                )
            )

        result = AgentResult(
            success=False,
            agent_id=agent_id,
            status=AgentStatus.FAILED,
            data=error_data,
            error=last_error,
            logs=logs,
            metrics=self._metrics(context, start_time, started),
            attempts=max_attempts,
        )
        self._status = AgentStatus.FAILED
        self._emitter.emit("failed", {"agent_id": agent_id, "error": last_error, "result": result})
        return result

    @staticmethod
    def _metrics(
        context: Optional[AgentContext],
        start_time: datetime,
        started: float,
    ) -> AgentMetrics:
        metrics: dict[str, Any] = {
            "start_time": start_time,
            "end_time": datetime.now(timezone.utc),
            "duration": round(time.monotonic() - started, 4),
        }
        if context is not None:
            metrics.update(
                files_processed=context.files_processed,
                errors_found=context.errors_found,
                warnings_found=context.warnings_found,
                extra=dict(context.extra),
            )
        return AgentMetrics(**metrics)
