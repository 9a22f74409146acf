"""Performance engineer: build-time and per-chunk budgets."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from wavebuild.agents.engineers.bundle import measure_bundle
from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId, LogLevel
from wavebuild.utils import format_bytes, format_duration


class PerformanceEngineer:
    """Checks the largest chunks and how long the build itself took.

    The total build time comes from the orchestrator, which hands every agent
    the moment the build started before it executes them.
    """

    config = AgentConfig(
        id=AgentId.PERFORMANCE,
        name="Performance Engineer",
        description="Enforces chunk-size and build-time budgets",
        dependencies=(AgentDependency(agent_id=AgentId.BUNDLE),),
        timeout=60,
        priority=30,
    )

    MAX_CHUNK_KB = 250
    CRITICAL_CHUNK_KB = 750
    MAX_BUILD_SECONDS = 600

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        ctx.progress(10, "Analysing chunks")
        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(None, measure_bundle, self._build_config.dist_dir)

        warnings = 0
        errors = 0
        oversized: list[dict[str, Any]] = []
        for entry in files:
            kb = entry["bytes"] / 1024
            if kb > self.CRITICAL_CHUNK_KB:
                errors += 1
                oversized.append(entry)
            elif kb > self.MAX_CHUNK_KB:
                warnings += 1
                oversized.append(entry)

        build_seconds = None
        if ctx.build_started_at is not None:
            build_seconds = round(time.monotonic() - ctx.build_started_at, 2)
            if build_seconds > self.MAX_BUILD_SECONDS:
                warnings += 1
                ctx.log(
                    f"Build took {format_duration(build_seconds)} "
                    f"(budget {format_duration(self.MAX_BUILD_SECONDS)})",
                    LogLevel.WARN,
                )

        ctx.record(
            files_processed=len(files),
            errors_found=errors,
            warnings_found=warnings,
            build_seconds=build_seconds,
        )
        ctx.progress(100, "Performance budgets checked")

        data = {"build_seconds": build_seconds, "oversized_chunks": oversized}
        if errors:
            largest = oversized[0]
            raise AgentTaskError(
                f"{errors} chunk(s) over {self.CRITICAL_CHUNK_KB} KB, "
                f"largest {largest['path']} ({format_bytes(largest['bytes'])})",
                files_processed=len(files),
                errors_found=errors,
                warnings_found=warnings,
                data=data,
            )
        return data
