"""Unit-test engineer (Vitest)."""

from __future__ import annotations

from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId
from wavebuild.utils import parse_json_output, run_command


def parse_vitest_report(data: dict[str, Any]) -> dict[str, Any]:
    """Reduce a Vitest JSON report to totals and the failing test names.

    Expected structure (subset)::

        {
          "numTotalTests": N, "numPassedTests": N,
          "numFailedTests": N, "numPendingTests": N,
          "testResults": [
            {"name": "...", "assertionResults": [
                {"fullName": "...", "status": "failed", "failureMessages": ["..."]}
            ]}
          ]
        }
    """
    failures: list[dict[str, str]] = []
    for suite in data.get("testResults", []):
        for assertion in suite.get("assertionResults", []):
            if assertion.get("status") == "failed":
                failures.append(
                    {
                        "test": assertion.get("fullName", "unknown"),
                        "file": suite.get("name", "unknown"),
                        "error": "\n".join(assertion.get("failureMessages", []))[:500],
                    }
                )

    return {
        "total": int(data.get("numTotalTests", 0)),
        "passed": int(data.get("numPassedTests", 0)),
        "failed": int(data.get("numFailedTests", 0)),
        "skipped": int(data.get("numPendingTests", 0)),
        "files": len(data.get("testResults", [])),
        "failures": failures[:20],
    }


class TestEngineer:
    """Runs the unit test suite once the project type-checks."""

    __test__ = False  # not a pytest test class

    config = AgentConfig(
        id=AgentId.TEST,
        name="Test Engineer",
        description="Runs the unit test suite with Vitest",
        dependencies=(
            AgentDependency(agent_id=AgentId.TYPECHECK),
            AgentDependency(agent_id=AgentId.LINT, required=False),
        ),
        timeout=600,
        retries=1,
        priority=70,
    )

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        ctx.progress(5, "Starting Vitest")
        code, stdout, stderr = await run_command(
            ["npx", "vitest", "run", "--reporter=json"],
            cwd=self._build_config.project_root,
            timeout=self._build_config.command_timeout,
            env={"CI": "true"},
        )

        report = parse_json_output(stdout)
        if not isinstance(report, dict):
            raise AgentTaskError(f"Vitest produced no JSON report: {(stderr or stdout)[:300]}")

        summary = parse_vitest_report(report)
        ctx.record(
            files_processed=summary["files"],
            errors_found=summary["failed"],
            tests_total=summary["total"],
            tests_passed=summary["passed"],
        )
        ctx.progress(100, f"{summary['passed']}/{summary['total']} tests passed")

        if summary["failed"] or code != 0:
            message = (
                f"{summary['failed']} of {summary['total']} test(s) failed"
                if summary["failed"]
                else f"Vitest exited with code {code}"
            )
            raise AgentTaskError(
                message,
                files_processed=summary["files"],
                errors_found=summary["failed"],
                data=summary,
            )
        return summary
