"""Bundle engineer: measures the compiled output against size budgets."""

from __future__ import annotations

import asyncio
import gzip
from pathlib import Path
from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId
from wavebuild.utils import collect_files, format_bytes, relative_to

BUNDLE_EXTENSIONS = {".js", ".mjs", ".cjs", ".css"}


def measure_bundle(dist_dir: Path) -> list[dict[str, Any]]:
    """Return ``[{"path", "bytes", "gzip_bytes"}]`` for every bundle file, largest first."""
    entries: list[dict[str, Any]] = []
    for path in collect_files(dist_dir, BUNDLE_EXTENSIONS, skip={"node_modules", "docs"}):
        raw = path.read_bytes()
        entries.append(
            {
                "path": relative_to(path, dist_dir),
                "bytes": len(raw),
                "gzip_bytes": len(gzip.compress(raw, compresslevel=6)),
            }
        )
    entries.sort(key=lambda e: e["bytes"], reverse=True)
    return entries


class BundleEngineer:
    config = AgentConfig(
        id=AgentId.BUNDLE,
        name="Bundle Engineer",
        description="Analyses bundle sizes and enforces the size budget",
        dependencies=(AgentDependency(agent_id=AgentId.BUILD),),
        timeout=60,
        priority=50,
    )

    MAX_BUNDLE_KB = 500
    CRITICAL_BUNDLE_KB = 1000

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        dist_dir = self._build_config.dist_dir
        ctx.progress(10, f"Measuring {dist_dir}")

        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(None, measure_bundle, dist_dir)
        if not files:
            raise AgentTaskError(f"No bundle output found in {dist_dir}")

        total = sum(f["bytes"] for f in files)
        total_gzip = sum(f["gzip_bytes"] for f in files)
        total_kb = total / 1024
        warnings = 1 if self.MAX_BUNDLE_KB < total_kb <= self.CRITICAL_BUNDLE_KB else 0
        errors = 1 if total_kb > self.CRITICAL_BUNDLE_KB else 0

        data = {
            "total_bytes": total,
            "gzip_bytes": total_gzip,
            "files": files[:25],
        }
        ctx.record(
            files_processed=len(files),
            errors_found=errors,
            warnings_found=warnings,
            bundle_bytes=total,
            bundle_gzip_bytes=total_gzip,
        )
        ctx.progress(100, f"Bundle {format_bytes(total)} ({format_bytes(total_gzip)} gzip)")

        if errors:
            raise AgentTaskError(
                f"Bundle is {format_bytes(total)}, over the {self.CRITICAL_BUNDLE_KB} KB budget",
                files_processed=len(files),
                errors_found=errors,
                data=data,
            )
        return data
