"""wavebuild orchestrator.

Plans the roster into dependency waves and executes them, publishing a
unified event stream and producing the final build report.

Key classes:
    BuildOrchestrator   - wave-by-wave executor with fail-fast
    ExecutionPlan       - waves, dependency graph and critical path
    ResultStore         - write-once results of one build
    EventBus            - ordered synchronous build event delivery
    OrchestratorReport  - summary, plan and results of a build
"""

from .events import (
    AgentCompleted,
    AgentFailed,
    AgentProgress,
    AgentStarted,
    BuildCompleted,
    BuildEvent,
    BuildEventHandler,
    BuildFailed,
    BuildStarted,
    EventBus,
    WaveCompleted,
    WaveStarted,
)
from .orchestrator import BuildFailedError, BuildOrchestrator, OrchestratorPhase, OrchestratorState
from .planner import (
    DEFAULT_AGENT_DURATION,
    CyclicDependencyError,
    ExecutionPlan,
    InvalidRosterError,
    build_dependency_graph,
    create_execution_plan,
    find_critical_path,
    print_execution_plan,
    topological_waves,
)
from .report import BuildSummary, OrchestratorReport, generate_summary, print_report
from .results import ResultAlreadyRecordedError, ResultStore

__all__ = [
    # Orchestrator
    "BuildOrchestrator",
    "BuildFailedError",
    "OrchestratorPhase",
    "OrchestratorState",
    # Planning
    "ExecutionPlan",
    "InvalidRosterError",
    "CyclicDependencyError",
    "DEFAULT_AGENT_DURATION",
    "build_dependency_graph",
    "topological_waves",
    "find_critical_path",
    "create_execution_plan",
    "print_execution_plan",
    # Results
    "ResultStore",
    "ResultAlreadyRecordedError",
    # Events
    "EventBus",
    "BuildEvent",
    "BuildEventHandler",
    "BuildStarted",
    "WaveStarted",
    "AgentStarted",
    "AgentProgress",
    "AgentCompleted",
    "AgentFailed",
    "WaveCompleted",
    "BuildCompleted",
    "BuildFailed",
    # Reporting
    "BuildSummary",
    "OrchestratorReport",
    "generate_summary",
    "print_report",
]
