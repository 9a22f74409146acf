"""wavebuild entry points.

:func:`run_build` is the programmatic entry point: it runs one build for a
:class:`BuildConfig` and writes ``build-report.json`` / ``build-report.md``.
:func:`main` is the ``wavebuild`` command line.

Usage::

    wavebuild run --fail-fast --max-concurrency 2
    wavebuild run --config wavebuild.json --publish
    wavebuild plan
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from wavebuild.agents.protocol import BuildAgent
from wavebuild.agents.types import AgentId
from wavebuild.config import BuildConfig
from wavebuild.dashboard import BuildDashboard
from wavebuild.orchestrator import (
    BuildEventHandler,
    BuildFailedError,
    BuildOrchestrator,
    CyclicDependencyError,
    InvalidRosterError,
    OrchestratorReport,
    print_execution_plan,
)
from wavebuild.utils import console, print_error, print_success, print_summary_table, save_text


async def write_reports(report: OrchestratorReport, config: BuildConfig) -> list[Path]:
    """Write the JSON and Markdown reports into the output directory."""
    return [
        await save_text(report.to_json(), config.report_json_path),
        await save_text(report.to_markdown(), config.report_markdown_path),
    ]


async def run_build(
    config: BuildConfig,
    agents: Optional[Mapping[AgentId, BuildAgent]] = None,
    dashboard: bool = False,
    on_event: Optional[BuildEventHandler] = None,
) -> OrchestratorReport:
    """Run one build and return its report.

    Reports are written even when the build fails (the partial report), but
    never in a dry run.  A report that cannot be written is reported on the
    console and does not replace the build outcome.

    Raises:
        BuildFailedError: fail-fast stopped the build.
        InvalidRosterError, CyclicDependencyError: the roster could not be planned.
    """
    orchestrator = BuildOrchestrator(config, agents=agents)
    if on_event is not None:
        orchestrator.on_event(on_event)

    try:
        if dashboard:
            with BuildDashboard(orchestrator):
                report = await orchestrator.run()
        else:
            report = await orchestrator.run()
    finally:
        if not config.dry_run and orchestrator.last_report is not None:
            try:
                written = await write_reports(orchestrator.last_report, config)
            except OSError as exc:
                print_error(f"Could not write build reports: {exc}")
            else:
                console.print(f"[dim]Reports written to {written[0].parent}[/dim]")

    return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="JSON build configuration (default: built from WAVEBUILD_* environment variables)",
    )
    parser.add_argument(
        "--project-root", "-C",
        default=None,
        help="Project directory to build (default: current directory)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat a dependency cycle as an error instead of scheduling it together",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavebuild",
        description="wavebuild -- dependency-wave build orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  wavebuild run\n"
            "  wavebuild run --fail-fast --max-concurrency 2 -o ./dist\n"
            "  wavebuild run --publish --config wavebuild.json\n"
            "  wavebuild plan\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the build")
    _add_config_arguments(run)
    run.add_argument("--output", "-o", default=None, help="Output directory (default: ./dist)")
    run.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Agents per batch within a wave; 0 runs the whole wave at once",
    )
    run.add_argument("--sequential", action="store_true", help="Run one agent at a time")
    run.add_argument("--fail-fast", action="store_true", help="Stop after the first wave with a failure")
    run.add_argument("--dry-run", action="store_true", help="Do not publish or write reports")
    run.add_argument("--publish", action="store_true", help="Publish packages to npm")
    run.add_argument("--verbose", "-v", action="store_true", help="Print debug output")
    run.add_argument("--dashboard", action="store_true", help="Show the live agent dashboard")

    plan = subparsers.add_parser("plan", help="Print the execution plan without running anything")
    _add_config_arguments(plan)

    return parser


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    """Merge CLI flags on top of the config file (or the environment)."""
    overrides: dict[str, Any] = {}
    if args.project_root:
        overrides["project_root"] = Path(args.project_root)
    if args.strict:
        overrides["strict_dependencies"] = True

    if args.command == "run":
        if args.output:
            overrides["output_dir"] = Path(args.output)
        if args.max_concurrency is not None:
            overrides["max_concurrency"] = args.max_concurrency
        if args.sequential:
            overrides["parallel"] = False
        for flag, field_name in (
            ("fail_fast", "fail_fast"),
            ("dry_run", "dry_run"),
            ("publish", "publish_to_npm"),
            ("verbose", "verbose"),
        ):
            if getattr(args, flag):
                overrides[field_name] = True

    if args.config:
        base = BuildConfig.load(Path(args.config))
        # saved configs never carry the token
        if base.npm_token is None and os.environ.get("NPM_TOKEN"):
            overrides["npm_token"] = os.environ["NPM_TOKEN"]
        return BuildConfig(**{**base.model_dump(), **overrides})
    return BuildConfig.from_env(**overrides)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``wavebuild`` and ``python -m wavebuild``."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
    except (OSError, ValidationError, ValueError) as exc:
        print_error(f"Error: invalid configuration: {exc}")
        sys.exit(1)

    if args.command == "plan":
        orchestrator = BuildOrchestrator(config)
        try:
            plan = orchestrator.plan()
        except (InvalidRosterError, CyclicDependencyError) as exc:
            print_error(f"Error: {exc}")
            sys.exit(1)
        print_execution_plan(plan, orchestrator.agent_configs)
        print_summary_table(
            {
                "Agents": str(plan.total_agents),
                "Waves": str(len(plan.waves)),
                "Cycle detected": "yes" if plan.cycle_detected else "no",
            },
            title="Plan",
        )
        return

    try:
        report = asyncio.run(run_build(config, dashboard=args.dashboard))
    except (BuildFailedError, InvalidRosterError, CyclicDependencyError) as exc:
        print_error(f"Error: {exc}")
        sys.exit(1)

    if report.success:
        print_success("Build completed successfully!")
    else:
        print_error("Build finished with failures.")
        sys.exit(1)


if __name__ == "__main__":
    main()
