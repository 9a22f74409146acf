"""TypeScript type-check engineer (``tsc --noEmit``)."""

from __future__ import annotations

import re
from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentId
from wavebuild.utils import collect_files, run_command

# src/app.ts(12,5): error TS2322: Type 'string' is not assignable to type 'number'.
_RE_TSC_DIAGNOSTIC = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<col>\d+)\): (?P<severity>error|warning) "
    r"TS(?P<code>\d+): (?P<message>.*)$",
    re.MULTILINE,
)


def parse_tsc_output(output: str) -> list[dict[str, Any]]:
    """Extract diagnostics from ``tsc --pretty false`` output."""
    return [
        {
            "file": m.group("file"),
            "line": int(m.group("line")),
            "column": int(m.group("col")),
            "severity": m.group("severity"),
            "code": f"TS{m.group('code')}",
            "message": m.group("message").strip(),
        }
        for m in _RE_TSC_DIAGNOSTIC.finditer(output)
    ]


class TypeCheckEngineer:
    config = AgentConfig(
        id=AgentId.TYPECHECK,
        name="TypeCheck Engineer",
        description="Verifies the whole project type-checks with the TypeScript compiler",
        timeout=300,
        priority=100,
    )

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        root = self._build_config.project_root
        sources = collect_files(root, {".ts", ".tsx", ".mts", ".cts"})
        ctx.progress(10, f"Type-checking {len(sources)} file(s)")

        code, stdout, stderr = await run_command(
            ["npx", "tsc", "--noEmit", "--pretty", "false"],
            cwd=root,
            timeout=self._build_config.command_timeout,
        )
        diagnostics = parse_tsc_output(stdout + "\n" + stderr)
        errors = [d for d in diagnostics if d["severity"] == "error"]
        warnings = len(diagnostics) - len(errors)

        ctx.record(files_processed=len(sources), errors_found=len(errors), warnings_found=warnings)
        ctx.progress(100, "Type-check finished")

        if code != 0:
            detail = errors[0]["message"] if errors else (stderr or stdout)[:300]
            raise AgentTaskError(
                f"tsc reported {len(errors)} error(s): {detail}",
                files_processed=len(sources),
                errors_found=len(errors),
                warnings_found=warnings,
                data={"diagnostics": diagnostics[:50]},
            )
        return {"diagnostics": diagnostics[:50]}
