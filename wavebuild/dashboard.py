"""Live terminal dashboard driven by the build event stream."""

from __future__ import annotations

from typing import Callable, Optional

from rich.live import Live
from rich.table import Table

from wavebuild.agents.types import AgentStatus
from wavebuild.orchestrator import BuildEvent, BuildOrchestrator
from wavebuild.utils import console

_STATUS_MARKUP = {
    AgentStatus.IDLE: "[dim]waiting[/dim]",
    AgentStatus.RUNNING: "[cyan]running[/cyan]",
    AgentStatus.SUCCESS: "[green]done[/green]",
    AgentStatus.FAILED: "[red]failed[/red]",
    AgentStatus.BLOCKED: "[yellow]blocked[/yellow]",
    AgentStatus.CANCELLED: "[yellow]cancelled[/yellow]",
}

_BAR_WIDTH = 20


def progress_bar(percent: int, width: int = _BAR_WIDTH) -> str:
    filled = round(width * max(0, min(100, percent)) / 100)
    return "#" * filled + "-" * (width - filled)


class BuildDashboard:
    """Renders :meth:`BuildOrchestrator.get_dashboard_state` in a Rich ``Live`` view.

    Usage::

        with BuildDashboard(orchestrator):
            report = await orchestrator.run()
    """

    def __init__(self, orchestrator: BuildOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._live: Optional[Live] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def render(self) -> Table:
        state = self._orchestrator.state
        title = f"Build [{state.phase.value}]"
        if state.total_waves:
            title += f"  wave {state.current_wave}/{state.total_waves}"

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Agent", style="bold", no_wrap=True)
        table.add_column("Status")
        table.add_column("Progress", no_wrap=True)
        table.add_column("Message", overflow="ellipsis", max_width=60)

        for info in self._orchestrator.get_dashboard_state():
            table.add_row(
                info.name,
                _STATUS_MARKUP.get(info.status, info.status.value),
                f"{progress_bar(info.progress)} {info.progress:3d}%",
                info.message,
            )
        return table

    def handle(self, event: BuildEvent) -> None:
        if self._live is not None:
            self._live.update(self.render())

    def __enter__(self) -> "BuildDashboard":
        self._live = Live(self.render(), console=console, refresh_per_second=4)
        self._live.__enter__()
        self._unsubscribe = self._orchestrator.on_event(self.handle)
        return self

    def __exit__(self, *exc_info) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._live is not None:
            self._live.update(self.render())
            self._live.__exit__(*exc_info)
            self._live = None
