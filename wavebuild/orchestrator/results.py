"""Insert-only store of agent results for one build."""

from __future__ import annotations

from typing import Iterator, Mapping

from wavebuild.agents.types import AgentId, AgentResult


class ResultAlreadyRecordedError(Exception):
    """A second result was written for the same agent."""

    def __init__(self, agent_id: AgentId) -> None:
        self.agent_id = agent_id
        super().__init__(f"A result for {agent_id.value} has already been recorded")


class ResultStore(Mapping[AgentId, AgentResult]):
    """Read-only mapping with a single write path, :meth:`record`.

    Iteration follows recording order, so reports list agents in the order
    their batches settled.
    """

    def __init__(self) -> None:
        self._results: dict[AgentId, AgentResult] = {}

    def record(self, result: AgentResult) -> None:
        if result.agent_id in self._results:
            raise ResultAlreadyRecordedError(result.agent_id)
        self._results[result.agent_id] = result

    def succeeded(self, agent_id: AgentId) -> bool:
        result = self._results.get(agent_id)
        return result is not None and result.success

    def __getitem__(self, agent_id: AgentId) -> AgentResult:
        return self._results[agent_id]

    def __iter__(self) -> Iterator[AgentId]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        return f"ResultStore({', '.join(a.value for a in self._results)})"
