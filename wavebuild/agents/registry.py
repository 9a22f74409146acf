"""Static agent registry: maps every :class:`AgentId` to its engineer."""

from __future__ import annotations

from typing import Iterable, Optional

from wavebuild.agents.engineers import (
    BuildEngineer,
    BundleEngineer,
    DocumentationEngineer,
    LintEngineer,
    PerformanceEngineer,
    PublishEngineer,
    QualityEngineer,
    SecurityEngineer,
    TestEngineer,
    TypeCheckEngineer,
)
from wavebuild.agents.runner import AgentRunner
from wavebuild.agents.types import AgentId
from wavebuild.config import BuildConfig

ENGINEERS: dict[AgentId, type] = {
    AgentId.TYPECHECK: TypeCheckEngineer,
    AgentId.LINT: LintEngineer,
    AgentId.SECURITY: SecurityEngineer,
    AgentId.TEST: TestEngineer,
    AgentId.QUALITY: QualityEngineer,
    AgentId.DOCUMENTATION: DocumentationEngineer,
    AgentId.BUILD: BuildEngineer,
    AgentId.BUNDLE: BundleEngineer,
    AgentId.PERFORMANCE: PerformanceEngineer,
    AgentId.PUBLISH: PublishEngineer,
}


def create_agent(agent_id: AgentId, build_config: BuildConfig) -> AgentRunner:
    """Instantiate the engineer for *agent_id* wrapped in an :class:`AgentRunner`."""
    try:
        engineer_cls = ENGINEERS[AgentId(agent_id)]
    except (KeyError, ValueError):
        raise KeyError(f"No engineer registered for agent {agent_id!r}") from None
    engineer = engineer_cls(build_config)
    return AgentRunner(engineer.config, build_config, task=engineer.run)


def create_roster(
    build_config: BuildConfig,
    agent_ids: Optional[Iterable[AgentId]] = None,
) -> dict[AgentId, AgentRunner]:
    """Build the roster the orchestrator runs, keyed by agent id.

    With *agent_ids* only that subset is created; any required dependency
    outside the subset will be rejected later by the planner.
    """
    ids = list(ENGINEERS) if agent_ids is None else [AgentId(a) for a in agent_ids]
    return {agent_id: create_agent(agent_id, build_config) for agent_id in ids}
