"""Build summary and report.

:func:`generate_summary` reduces the recorded results to counts and totals;
:class:`OrchestratorReport` bundles the summary with the plan and the raw
results and knows how to serialise and render itself.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, computed_field
from rich.panel import Panel
from rich.table import Table

from wavebuild.agents.types import AgentId, AgentResult, AgentStatus
from wavebuild.orchestrator.planner import ExecutionPlan
from wavebuild.utils import console, format_duration

PUBLISH_AGENT = AgentId.PUBLISH

_STATUS_STYLES = {
    AgentStatus.SUCCESS: ("green", "ok"),
    AgentStatus.FAILED: ("red", "FAIL"),
    AgentStatus.BLOCKED: ("yellow", "blocked"),
    AgentStatus.CANCELLED: ("yellow", "cancelled"),
}


class BuildSummary(BaseModel):
    total_agents: int = 0
    successful_agents: int = 0
    failed_agents: int = 0
    skipped_agents: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    files_processed: int = 0
    published_packages: list[str] = Field(default_factory=list)


def generate_summary(results: Mapping[AgentId, AgentResult], roster_size: int) -> BuildSummary:
    """Count outcomes and sum metrics across *results*.

    Agents without a result (never started because fail-fast stopped the
    build) count as skipped, so the three counts always add up to
    *roster_size*.
    """
    summary = BuildSummary(total_agents=roster_size)
    for result in results.values():
        if result.success:
            summary.successful_agents += 1
        elif result.status == AgentStatus.BLOCKED:
            summary.skipped_agents += 1
        else:
            summary.failed_agents += 1

        summary.total_errors += result.metrics.errors_found or 0
        summary.total_warnings += result.metrics.warnings_found or 0
        summary.files_processed += result.metrics.files_processed or 0

    summary.skipped_agents += max(0, roster_size - len(results))

    publish = results.get(PUBLISH_AGENT)
    if publish is not None and publish.success and isinstance(publish.data, dict):
        for package in publish.data.get("packages") or []:
            summary.published_packages.append(f"{package['name']}@{package['version']}")

    return summary


class OrchestratorReport(BaseModel):
    """Everything known about one build, complete or partial."""

    success: bool
    execution_plan: Optional[ExecutionPlan] = None
    results: dict[AgentId, AgentResult] = Field(default_factory=dict)
    total_duration: float = Field(default=0.0, description="Seconds")
    summary: BuildSummary = Field(default_factory=BuildSummary)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def failed_agent_ids(self) -> list[AgentId]:
        return [
            agent_id
            for agent_id, result in self.results.items()
            if not result.success and result.status != AgentStatus.BLOCKED
        ]

    # -- Serialisation helpers -----------------------------------------------

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent)

    def save(self, path: Path) -> Path:
        """Write the JSON report, creating parent directories as needed."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "OrchestratorReport":
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    # -- Summary helpers -----------------------------------------------------

    def summary_text(self) -> str:
        """Human-readable multi-line summary."""
        s = self.summary
        status = "SUCCESS" if self.success else "FAILED"
        lines = [
            f"Build {status} in {format_duration(self.total_duration)}",
            "-" * 60,
            f"  Agents    {s.successful_agents}/{s.total_agents} succeeded, "
            f"{s.failed_agents} failed, {s.skipped_agents} skipped",
            f"  Findings  {s.total_errors} error(s), {s.total_warnings} warning(s)",
            f"  Files     {s.files_processed} processed",
        ]
        if s.published_packages:
            lines.append(f"  Published {', '.join(s.published_packages)}")
        lines.append("-" * 60)
        return "\n".join(lines)

    def to_markdown(self) -> str:
        s = self.summary
        lines = [
            "# Build Report",
            "",
            f"**Status:** {'Success' if self.success else 'Failed'}  ",
            f"**Started:** {self.started_at.isoformat()}  ",
            f"**Duration:** {format_duration(self.total_duration)}",
            "",
            "## Summary",
            "",
            "| Metric | Value |",
            "|---|---|",
            f"| Agents | {s.total_agents} |",
            f"| Successful | {s.successful_agents} |",
            f"| Failed | {s.failed_agents} |",
            f"| Skipped | {s.skipped_agents} |",
            f"| Errors | {s.total_errors} |",
            f"| Warnings | {s.total_warnings} |",
            f"| Files processed | {s.files_processed} |",
            "",
        ]

        if self.execution_plan is not None:
            lines += ["## Execution Plan", ""]
            for index, wave in enumerate(self.execution_plan.waves, 1):
                lines.append(f"{index}. {', '.join(a.value for a in wave)}")
            critical = " -> ".join(a.value for a in self.execution_plan.critical_path)
            lines += ["", f"Critical path: `{critical}`", ""]

        lines += ["## Agents", "", "| Agent | Status | Duration | Attempts | Error |", "|---|---|---|---|---|"]
        for agent_id, result in self.results.items():
            duration = result.metrics.duration
            lines.append(
                f"| {agent_id.value} | {result.status.value} | "
                f"{format_duration(duration) if duration is not None else 'N/A'} | "
                f"{result.attempts} | {(result.error or '').replace('|', '/')} |"
            )

        if s.published_packages:
            lines += ["", "## Published Packages", ""]
            lines += [f"- `{pkg}`" for pkg in s.published_packages]

        lines.append("")
        return "\n".join(lines)

    def summary_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "duration": format_duration(self.total_duration),
            **self.summary.model_dump(exclude={"published_packages"}),
        }


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------

def print_report(report: OrchestratorReport) -> None:
    """Render the summary panel and the per-agent table."""
    s = report.summary
    colour = "green" if report.success else "red"
    body = (
        f"[bold {colour}]{'SUCCESS' if report.success else 'FAILED'}[/bold {colour}]"
        f" in {format_duration(report.total_duration)}\n"
        f"[green]{s.successful_agents}[/green]/{s.total_agents} succeeded, "
        f"[red]{s.failed_agents}[/red] failed, [yellow]{s.skipped_agents}[/yellow] skipped\n"
        f"Errors: {s.total_errors}  Warnings: {s.total_warnings}  "
        f"Files processed: {s.files_processed}"
    )
    if s.published_packages:
        body += "\nPublished: " + ", ".join(s.published_packages)
    console.print(Panel(body, title="[bold]Build Summary[/bold]", border_style=colour))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Agent", style="bold")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", overflow="fold")

    for agent_id, result in report.results.items():
        style, label = _STATUS_STYLES.get(result.status, ("white", result.status.value))
        duration = result.metrics.duration
        table.add_row(
            agent_id.value,
            f"[{style}]{label}[/{style}]",
            format_duration(duration) if duration is not None else "N/A",
            str(result.attempts),
            result.error or "",
        )

    console.print(table)
    console.print()
