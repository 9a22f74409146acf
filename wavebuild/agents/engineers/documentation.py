"""API documentation engineer (TypeDoc)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId, LogLevel
from wavebuild.utils import collect_files, run_command


class DocumentationEngineer:
    config = AgentConfig(
        id=AgentId.DOCUMENTATION,
        name="Documentation Engineer",
        description="Generates API reference documentation with TypeDoc",
        dependencies=(AgentDependency(agent_id=AgentId.TYPECHECK),),
        timeout=300,
        priority=40,
    )

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        root = Path(self._build_config.project_root)
        docs_dir = self._build_config.dist_dir / "docs"

        warnings = 0
        if not (root / "README.md").is_file():
            warnings += 1
            ctx.log("README.md is missing", LogLevel.WARN)

        ctx.progress(10, "Running TypeDoc")
        code, stdout, stderr = await run_command(
            ["npx", "typedoc", "--out", str(docs_dir)],
            cwd=root,
            timeout=self._build_config.command_timeout,
        )
        output = f"{stdout}\n{stderr}"
        warnings += sum(1 for line in output.splitlines() if "[warning]" in line)
        errors = sum(1 for line in output.splitlines() if "[error]" in line)

        pages = collect_files(docs_dir, {".html", ".md"}, skip=set())
        ctx.record(files_processed=len(pages), errors_found=errors, warnings_found=warnings)
        ctx.progress(100, f"{len(pages)} documentation page(s)")

        if code != 0:
            raise AgentTaskError(
                f"TypeDoc exited with code {code}",
                files_processed=len(pages),
                errors_found=max(errors, 1),
                warnings_found=warnings,
            )
        return {"output_dir": str(docs_dir), "pages": len(pages)}
