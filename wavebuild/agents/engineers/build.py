"""Build engineer: compiles every configured target with ``npm run build``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId, LogLevel
from wavebuild.config import BuildConfig, BuildTarget
from wavebuild.utils import collect_files, run_command

OUTPUT_EXTENSIONS = {".js", ".mjs", ".cjs", ".css", ".map", ".d.ts", ".ts"}


class BuildEngineer:
    """Runs each target's ``build`` script sequentially.

    Targets share ``node_modules`` and frequently depend on one another, so
    they are built in declaration order rather than in parallel.  With no
    targets configured the project root itself is built.
    """

    config = AgentConfig(
        id=AgentId.BUILD,
        name="Build Engineer",
        description="Compiles all build targets for production",
        dependencies=(
            AgentDependency(agent_id=AgentId.TYPECHECK),
            AgentDependency(agent_id=AgentId.LINT),
            AgentDependency(agent_id=AgentId.TEST, required=False),
        ),
        timeout=900,
        priority=85,
    )

    def __init__(self, build_config: BuildConfig) -> None:
        self._build_config = build_config

    def _targets(self) -> list[BuildTarget]:
        return list(self._build_config.targets) or [
            BuildTarget(name=Path(self._build_config.project_root).resolve().name)
        ]

    def _env(self) -> dict[str, str]:
        return {
            "NODE_ENV": "production",
            "SOURCE_MAP": "true" if self._build_config.source_map else "false",
            "MINIFY": "true" if self._build_config.minify else "false",
            "BUILD_OUT_DIR": str(self._build_config.dist_dir),
        }

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        root = Path(self._build_config.project_root)
        targets = self._targets()
        built: list[dict[str, Any]] = []

        for index, target in enumerate(targets):
            ctx.progress(int(100 * index / len(targets)), f"Building {target.name}")
            target_dir = root / target.path
            code, stdout, stderr = await run_command(
                ["npm", "run", "build"],
                cwd=target_dir,
                timeout=self._build_config.command_timeout,
                env=self._env(),
            )
            if code != 0:
                ctx.log(stderr or stdout, LogLevel.ERROR)
                raise AgentTaskError(
                    f"Build of {target.name} failed with exit code {code}",
                    files_processed=sum(t["output_files"] for t in built),
                    errors_found=1,
                    data={"targets": built, "failed_target": target.name},
                )

            outputs = collect_files(target_dir / "dist", OUTPUT_EXTENSIONS, skip=set())
            built.append({"name": target.name, "version": target.version, "output_files": len(outputs)})
            ctx.log(f"{target.name}: {len(outputs)} output file(s)")

        files = sum(t["output_files"] for t in built)
        ctx.record(files_processed=files, errors_found=0)
        ctx.progress(100, f"Built {len(built)} target(s)")
        return {"targets": built}
