"""wavebuild engineers.

One engineer per build concern.  Each is a plain object exposing a ``config``
(:class:`~wavebuild.agents.types.AgentConfig`) and an async ``run(ctx)``
task; :class:`~wavebuild.agents.runner.AgentRunner` supplies retries,
timeouts and events around it.

Key classes:
    TypeCheckEngineer      - ``tsc --noEmit``
    LintEngineer           - ESLint
    SecurityEngineer       - ``npm audit``
    TestEngineer           - Vitest
    QualityEngineer        - source scan and quality score
    DocumentationEngineer  - TypeDoc
    BuildEngineer          - ``npm run build`` per target
    BundleEngineer         - bundle size budget
    PerformanceEngineer    - chunk and build-time budgets
    PublishEngineer        - ``npm publish`` and registry check
"""

from .build import BuildEngineer
from .bundle import BundleEngineer, measure_bundle
from .documentation import DocumentationEngineer
from .lint import LintEngineer, summarise_eslint_report
from .performance import PerformanceEngineer
from .publish import PublishEngineer, resolve_package
from .quality import QualityEngineer, QualityIssue
from .security import SecurityEngineer, count_vulnerabilities
from .testing import TestEngineer, parse_vitest_report
from .typecheck import TypeCheckEngineer, parse_tsc_output

__all__ = [
    # Static analysis
    "TypeCheckEngineer",
    "parse_tsc_output",
    "LintEngineer",
    "summarise_eslint_report",
    "SecurityEngineer",
    "count_vulnerabilities",
    "QualityEngineer",
    "QualityIssue",
    # Verification
    "TestEngineer",
    "parse_vitest_report",
    "DocumentationEngineer",
    # Output
    "BuildEngineer",
    "BundleEngineer",
    "measure_bundle",
    "PerformanceEngineer",
    # Release
    "PublishEngineer",
    "resolve_package",
]
