"""ESLint engineer."""

from __future__ import annotations

from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentId, LogLevel
from wavebuild.utils import parse_json_output, run_command


def summarise_eslint_report(report: list[dict[str, Any]]) -> dict[str, Any]:
    """Reduce ESLint's ``--format json`` output to counts and the noisiest rules.

    Each entry of *report* is one linted file with ``errorCount``,
    ``warningCount`` and a ``messages`` list carrying ``ruleId``.
    """
    errors = sum(int(f.get("errorCount", 0)) for f in report)
    warnings = sum(int(f.get("warningCount", 0)) for f in report)
    rules: dict[str, int] = {}
    for file_result in report:
        for message in file_result.get("messages", []):
            rule = message.get("ruleId") or "parse-error"
            rules[rule] = rules.get(rule, 0) + 1
    top_rules = sorted(rules.items(), key=lambda item: item[1], reverse=True)[:10]
    return {
        "files": len(report),
        "errors": errors,
        "warnings": warnings,
        "top_rules": dict(top_rules),
    }


class LintEngineer:
    config = AgentConfig(
        id=AgentId.LINT,
        name="Lint Engineer",
        description="Runs ESLint across the project and fails on lint errors",
        timeout=300,
        priority=90,
    )

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        ctx.progress(10, "Running ESLint")
        code, stdout, stderr = await run_command(
            ["npx", "eslint", ".", "--format", "json"],
            cwd=self._build_config.project_root,
            timeout=self._build_config.command_timeout,
        )

        # eslint exits 1 when it found problems and 2 when it crashed.
        report = parse_json_output(stdout)
        if code == 2 or not isinstance(report, list):
            raise AgentTaskError(f"ESLint did not produce a report: {(stderr or stdout)[:300]}")

        summary = summarise_eslint_report(report)
        ctx.record(
            files_processed=summary["files"],
            errors_found=summary["errors"],
            warnings_found=summary["warnings"],
        )
        if summary["warnings"]:
            ctx.log(f"{summary['warnings']} lint warning(s)", LogLevel.WARN)
        ctx.progress(100, "Lint finished")

        if summary["errors"]:
            raise AgentTaskError(
                f"ESLint found {summary['errors']} error(s)",
                files_processed=summary["files"],
                errors_found=summary["errors"],
                warnings_found=summary["warnings"],
                data=summary,
            )
        return summary
