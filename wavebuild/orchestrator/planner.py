"""Dependency graph and execution planning.

Turns the roster's declared dependencies into ordered waves of agents that
may run concurrently, plus a critical-path estimate:

* Only ``required`` dependencies become graph edges.  Soft dependencies never
  influence placement.
* A wave holds every remaining agent whose required dependencies all sit in
  earlier waves.  Within a wave, higher priority comes first and ties keep
  roster declaration order.
* When no agent is ready but some remain, the roster contains a cycle.  The
  remaining agents are forced into one final wave with a warning, or
  :class:`CyclicDependencyError` is raised in strict mode.
"""

from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field
from rich.table import Table

from wavebuild.agents.types import AgentConfig, AgentId
from wavebuild.utils import console, format_duration, print_warning

# Placeholder per-agent duration used for the estimate; there is no timing history.
DEFAULT_AGENT_DURATION = 30.0

DependencyGraph = dict[AgentId, list[AgentId]]


class InvalidRosterError(Exception):
    """The roster cannot be planned (bad key or unknown required dependency)."""

    def __init__(self, agent_id: AgentId, message: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"{agent_id.value}: {message}")


class CyclicDependencyError(Exception):
    """Raised in strict mode when required dependencies form a cycle."""

    def __init__(self, agents: list[AgentId]) -> None:
        self.agents = agents
        super().__init__(
            "Cyclic dependency among: " + ", ".join(a.value for a in agents)
        )


class ExecutionPlan(BaseModel):
    """Waves, graph and critical path for one build.  Computed once per run."""

    model_config = ConfigDict(frozen=True)

    waves: list[list[AgentId]]
    dependency_graph: dict[AgentId, list[AgentId]]
    critical_path: list[AgentId]
    estimated_duration: float = Field(..., description="Seconds")
    cycle_detected: bool = False

    @property
    def total_agents(self) -> int:
        return sum(len(wave) for wave in self.waves)

    def wave_of(self, agent_id: AgentId) -> int:
        """1-based wave number holding *agent_id*."""
        for index, wave in enumerate(self.waves, 1):
            if agent_id in wave:
                return index
        raise KeyError(agent_id)


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------

def build_dependency_graph(configs: Mapping[AgentId, AgentConfig]) -> DependencyGraph:
    """Map each agent to its required dependencies, in declaration order."""
    graph: DependencyGraph = {}
    for agent_id, config in configs.items():
        if config.id != agent_id:
            raise InvalidRosterError(
                agent_id, f"registered under a different id than its config ({config.id.value})"
            )
        deps: list[AgentId] = []
        for dep in config.dependencies:
            if not dep.required:
                continue
            if dep.agent_id not in configs:
                raise InvalidRosterError(
                    agent_id, f"required dependency {dep.agent_id.value} is not in the roster"
                )
            if dep.agent_id not in deps:
                deps.append(dep.agent_id)
        graph[agent_id] = deps
    return graph


def topological_waves(
    graph: DependencyGraph,
    priorities: Mapping[AgentId, int] | None = None,
    strict: bool = False,
) -> tuple[list[list[AgentId]], bool]:
    """Layer *graph* into waves.

    Returns:
        ``(waves, cycle_detected)``.
    """
    priorities = priorities or {}
    remaining = list(graph)
    completed: set[AgentId] = set()
    waves: list[list[AgentId]] = []
    cycle_detected = False

    while remaining:
        wave = [
            agent_id
            for agent_id in remaining
            if all(dep in completed for dep in graph[agent_id])
        ]
        if not wave:
            if strict:
                raise CyclicDependencyError(list(remaining))
            cycle_detected = True
            print_warning(
                "Circular dependency detected among "
                f"{', '.join(a.value for a in remaining)}; scheduling them together."
            )
            wave = list(remaining)

        # sorted() is stable, so equal priorities keep declaration order
        wave = sorted(wave, key=lambda a: priorities.get(a, 0), reverse=True)
        waves.append(wave)
        completed.update(wave)
        remaining = [a for a in remaining if a not in completed]

    return waves, cycle_detected


def find_critical_path(graph: DependencyGraph) -> list[AgentId]:
    """Longest chain of required edges, dependency first.

    Memoised DFS.  A dependency that is still on the DFS stack (a cycle) is
    ignored, so the search always terminates.
    """
    memo: dict[AgentId, list[AgentId]] = {}
    on_stack: set[AgentId] = set()

    def longest_to(agent_id: AgentId) -> list[AgentId]:
        if agent_id in memo:
            return memo[agent_id]
        on_stack.add(agent_id)
        longest: list[AgentId] = []
        for dep in graph.get(agent_id, []):
            if dep in on_stack:
                continue
            path = longest_to(dep)
            if len(path) > len(longest):
                longest = path
        on_stack.discard(agent_id)
        memo[agent_id] = [*longest, agent_id]
        return memo[agent_id]

    critical: list[AgentId] = []
    for agent_id in graph:
        path = longest_to(agent_id)
        if len(path) > len(critical):
            critical = path
    return critical


def create_execution_plan(
    configs: Mapping[AgentId, AgentConfig],
    strict: bool = False,
) -> ExecutionPlan:
    """Plan a build for the roster described by *configs*."""
    graph = build_dependency_graph(configs)
    priorities = {agent_id: config.priority for agent_id, config in configs.items()}
    waves, cycle_detected = topological_waves(graph, priorities, strict=strict)
    critical_path = find_critical_path(graph)
    return ExecutionPlan(
        waves=waves,
        dependency_graph=graph,
        critical_path=critical_path,
        estimated_duration=len(critical_path) * DEFAULT_AGENT_DURATION,
        cycle_detected=cycle_detected,
    )


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------

def print_execution_plan(plan: ExecutionPlan, configs: Mapping[AgentId, AgentConfig]) -> None:
    """Render the wave breakdown and critical path."""
    table = Table(title="Execution Plan", show_header=True, header_style="bold cyan")
    table.add_column("Wave", justify="right", style="bold")
    table.add_column("Agents")
    table.add_column("Waits on", style="dim")

    for index, wave in enumerate(plan.waves, 1):
        names = ", ".join(configs[a].name if a in configs else a.value for a in wave)
        waits = sorted({dep.value for a in wave for dep in plan.dependency_graph.get(a, [])})
        table.add_row(str(index), names, ", ".join(waits) or "-")

    console.print(table)
    console.print(
        f"  Critical path: [bold]{' -> '.join(a.value for a in plan.critical_path) or '-'}[/bold]"
    )
    console.print(f"  Estimated duration: {format_duration(plan.estimated_duration)}")
    console.print()
