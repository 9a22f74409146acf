"""Dependency security audit engineer (``npm audit``)."""

from __future__ import annotations

from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentId
from wavebuild.utils import parse_json_output, run_command

BLOCKING_SEVERITIES = ("high", "critical")
ADVISORY_SEVERITIES = ("info", "low", "moderate")


def count_vulnerabilities(audit: dict[str, Any]) -> dict[str, int]:
    """Return ``{severity: count}`` from an ``npm audit --json`` payload.

    npm 7+ reports ``metadata.vulnerabilities``; older versions only list
    ``advisories``, which are counted by their ``severity`` field.
    """
    counts = {severity: 0 for severity in ADVISORY_SEVERITIES + BLOCKING_SEVERITIES}
    metadata = audit.get("metadata", {}).get("vulnerabilities")
    if isinstance(metadata, dict):
        for severity in counts:
            counts[severity] = int(metadata.get(severity, 0))
        return counts

    for advisory in audit.get("advisories", {}).values():
        severity = advisory.get("severity", "info")
        if severity in counts:
            counts[severity] += 1
    return counts


class SecurityEngineer:
    config = AgentConfig(
        id=AgentId.SECURITY,
        name="Security Engineer",
        description="Audits production dependencies for known vulnerabilities",
        timeout=120,
        retries=1,
        priority=80,
    )

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        ctx.progress(10, "Auditing dependencies")
        _code, stdout, stderr = await run_command(
            ["npm", "audit", "--json", "--omit=dev"],
            cwd=self._build_config.project_root,
            timeout=self._build_config.command_timeout,
        )

        audit = parse_json_output(stdout)
        if not isinstance(audit, dict):
            raise AgentTaskError(f"npm audit returned no JSON: {(stderr or stdout)[:300]}")
        if "error" in audit:
            raise AgentTaskError(f"npm audit failed: {audit['error']}")

        counts = count_vulnerabilities(audit)
        blocking = sum(counts[s] for s in BLOCKING_SEVERITIES)
        advisory = sum(counts[s] for s in ADVISORY_SEVERITIES)
        dependencies = audit.get("metadata", {}).get("dependencies")
        if isinstance(dependencies, dict):
            dependencies = dependencies.get("total")

        ctx.record(
            files_processed=dependencies if isinstance(dependencies, int) else None,
            errors_found=blocking,
            warnings_found=advisory,
        )
        ctx.progress(100, "Audit finished")

        if blocking:
            raise AgentTaskError(
                f"{blocking} high/critical vulnerabilit{'y' if blocking == 1 else 'ies'} found",
                errors_found=blocking,
                warnings_found=advisory,
                data={"vulnerabilities": counts},
            )
        return {"vulnerabilities": counts}
