"""Code quality engineer.

Static scan of the project sources for patterns that should never ship:
leftover ``debugger`` statements, ``console.log`` calls, ``@ts-ignore``
suppressions, explicit ``any`` types, unresolved TODO/FIXME markers, and
oversized modules.  Produces a 0-100 quality score in the same way the
other audits do: each finding deducts points by severity.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId
from wavebuild.utils import collect_files, relative_to

SOURCE_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"}

# (pattern, severity, category, description)
_RULES: list[tuple[re.Pattern[str], str, str, str]] = [
    (re.compile(r"^\s*debugger\s*;?\s*$", re.MULTILINE), "error", "debugger", "Leftover debugger statement"),
    (re.compile(r"\bconsole\.log\s*\("), "warning", "console-log", "console.log call"),
    (re.compile(r"//\s*@ts-ignore"), "warning", "ts-ignore", "@ts-ignore suppression"),
    (re.compile(r":\s*any\b(?!\w)"), "warning", "explicit-any", "Explicit 'any' type"),
    (re.compile(r"//\s*(?:TODO|FIXME)\b"), "info", "todo", "Unresolved TODO/FIXME"),
]


class QualityIssue(BaseModel):
    severity: str = Field(..., description="'error', 'warning', or 'info'")
    category: str
    description: str
    file: str
    line: int | None = None


class QualityEngineer:
    config = AgentConfig(
        id=AgentId.QUALITY,
        name="Quality Engineer",
        description="Scans sources for debug leftovers, suppressions and oversized modules",
        dependencies=(
            AgentDependency(agent_id=AgentId.LINT),
            AgentDependency(agent_id=AgentId.TYPECHECK, required=False),
        ),
        timeout=120,
        priority=60,
    )

    MAX_FILE_LINES = 500
    _SEVERITY_WEIGHTS = {"error": 10.0, "warning": 2.0, "info": 0.5}

    def __init__(self, build_config) -> None:
        self._build_config = build_config

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        root = Path(self._build_config.project_root)
        src_dir = root / "src"
        files = collect_files(src_dir if src_dir.is_dir() else root, SOURCE_EXTENSIONS)
        ctx.progress(5, f"Scanning {len(files)} file(s)")

        loop = asyncio.get_running_loop()
        issues: list[QualityIssue] = []
        for index, path in enumerate(files, 1):
            content = await loop.run_in_executor(None, path.read_text, "utf-8")
            issues.extend(self.scan(content, relative_to(path, root)))
            if index % 50 == 0:
                ctx.progress(5 + int(90 * index / len(files)), f"Scanned {index}/{len(files)}")

        errors = [i for i in issues if i.severity == "error"]
        warnings = [i for i in issues if i.severity == "warning"]
        score = self.calculate_score(issues)
        ctx.record(
            files_processed=len(files),
            errors_found=len(errors),
            warnings_found=len(warnings),
            quality_score=score,
        )
        ctx.progress(100, f"Quality score {score}")

        data = {"score": score, "issues": [i.model_dump() for i in issues[:100]]}
        if errors:
            raise AgentTaskError(
                f"{len(errors)} blocking quality issue(s), first in {errors[0].file}",
                files_processed=len(files),
                errors_found=len(errors),
                warnings_found=len(warnings),
                data=data,
            )
        return data

    def scan(self, content: str, rel_path: str) -> list[QualityIssue]:
        """Apply every rule to one file's *content*."""
        issues: list[QualityIssue] = []
        for pattern, severity, category, description in _RULES:
            for match in pattern.finditer(content):
                issues.append(
                    QualityIssue(
                        severity=severity,
                        category=category,
                        description=description,
                        file=rel_path,
                        line=content[: match.start()].count("\n") + 1,
                    )
                )

        line_count = content.count("\n") + 1
        if line_count > self.MAX_FILE_LINES:
            issues.append(
                QualityIssue(
                    severity="warning",
                    category="file-size",
                    description=f"{line_count} lines (recommended: <{self.MAX_FILE_LINES})",
                    file=rel_path,
                )
            )
        return issues

    def calculate_score(self, issues: list[QualityIssue]) -> float:
        deductions = sum(self._SEVERITY_WEIGHTS.get(i.severity, 1.0) for i in issues)
        return max(0.0, round(100.0 - deductions, 1))
