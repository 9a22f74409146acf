"""Unit tests for the concrete engineers (wavebuild.agents.engineers).

Every external tool is replaced by patching ``run_command`` in the engineer's
module, so these tests exercise output parsing, metrics and the pass/fail
decision of each engineer through the real AgentRunner.

Tests cover:
- TypeCheckEngineer / parse_tsc_output
- LintEngineer / summarise_eslint_report
- SecurityEngineer / count_vulnerabilities
- TestEngineer / parse_vitest_report
- QualityEngineer scan and score
- DocumentationEngineer
- BuildEngineer
- BundleEngineer / measure_bundle
- PerformanceEngineer
- PublishEngineer / resolve_package
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from wavebuild.agents.engineers import (
    BundleEngineer,
    PerformanceEngineer,
    QualityEngineer,
    count_vulnerabilities,
    measure_bundle,
    parse_tsc_output,
    parse_vitest_report,
    resolve_package,
    summarise_eslint_report,
)
from wavebuild.agents.registry import create_agent
from wavebuild.agents.runner import AgentTaskError
from wavebuild.agents.types import AgentId, AgentStatus
from wavebuild.config import BuildConfig, BuildTarget

ENGINEERS = "wavebuild.agents.engineers"


async def run_agent(agent_id: AgentId, config: BuildConfig):
    return await create_agent(agent_id, config).execute_with_retries()


def write_file(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


# ---------------------------------------------------------------------------
# TypeCheck
# ---------------------------------------------------------------------------


TSC_OUTPUT = (
    "src/app.ts(12,5): error TS2322: Type 'string' is not assignable to type 'number'.\n"
    "src/util.ts(3,1): error TS7006: Parameter 'x' implicitly has an 'any' type.\n"
    "Found 2 errors.\n"
)


class TestTypeCheckEngineer:
    @pytest.mark.unit
    def test_parse_tsc_output(self):
        diagnostics = parse_tsc_output(TSC_OUTPUT)
        assert len(diagnostics) == 2
        assert diagnostics[0] == {
            "file": "src/app.ts",
            "line": 12,
            "column": 5,
            "severity": "error",
            "code": "TS2322",
            "message": "Type 'string' is not assignable to type 'number'.",
        }

    @pytest.mark.unit
    def test_parse_tsc_output_ignores_noise(self):
        assert parse_tsc_output("Version 5.4.0\n") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_errors_fail_the_agent(self, build_config, tmp_project_dir):
        (tmp_project_dir / "src" / "app.ts").write_text("export const x: number = 'a';")
        with patch(f"{ENGINEERS}.typecheck.run_command", AsyncMock(return_value=(2, TSC_OUTPUT, ""))):
            result = await run_agent(AgentId.TYPECHECK, build_config)

        assert result.success is False
        assert result.metrics.errors_found == 2
        assert result.metrics.files_processed == 1
        assert result.error.startswith("tsc reported 2 error(s)")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clean_project_succeeds(self, build_config):
        with patch(f"{ENGINEERS}.typecheck.run_command", AsyncMock(return_value=(0, "", ""))) as mock_run:
            result = await run_agent(AgentId.TYPECHECK, build_config)

        assert result.success is True
        assert result.data == {"diagnostics": []}
        assert mock_run.await_args.args[0][:3] == ["npx", "tsc", "--noEmit"]


# ---------------------------------------------------------------------------
# Lint
# ---------------------------------------------------------------------------


ESLINT_REPORT = [
    {
        "filePath": "/p/src/a.ts",
        "errorCount": 1,
        "warningCount": 1,
        "messages": [{"ruleId": "no-unused-vars"}, {"ruleId": "no-console"}],
    },
    {
        "filePath": "/p/src/b.ts",
        "errorCount": 0,
        "warningCount": 1,
        "messages": [{"ruleId": "no-console"}],
    },
]


class TestLintEngineer:
    @pytest.mark.unit
    def test_summarise_report(self):
        summary = summarise_eslint_report(ESLINT_REPORT)
        assert summary["files"] == 2
        assert summary["errors"] == 1
        assert summary["warnings"] == 2
        assert list(summary["top_rules"])[0] == "no-console"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_lint_errors_fail(self, build_config):
        mock_run = AsyncMock(return_value=(1, json.dumps(ESLINT_REPORT), ""))
        with patch(f"{ENGINEERS}.lint.run_command", mock_run):
            result = await run_agent(AgentId.LINT, build_config)

        assert result.success is False
        assert result.error == "ESLint found 1 error(s)"
        assert result.metrics.warnings_found == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_warnings_only_succeeds(self, build_config):
        report = [{"filePath": "a.ts", "errorCount": 0, "warningCount": 3, "messages": []}]
        mock_run = AsyncMock(return_value=(0, json.dumps(report), ""))
        with patch(f"{ENGINEERS}.lint.run_command", mock_run):
            result = await run_agent(AgentId.LINT, build_config)

        assert result.success is True
        assert result.metrics.warnings_found == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_crash_without_report_fails(self, build_config):
        mock_run = AsyncMock(return_value=(2, "", "Oops! Something went wrong!"))
        with patch(f"{ENGINEERS}.lint.run_command", mock_run):
            result = await run_agent(AgentId.LINT, build_config)

        assert result.success is False
        assert "did not produce a report" in result.error


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


class TestSecurityEngineer:
    @pytest.mark.unit
    def test_count_from_metadata(self):
        audit = {"metadata": {"vulnerabilities": {"low": 2, "high": 1, "critical": 0}}}
        counts = count_vulnerabilities(audit)
        assert counts["low"] == 2
        assert counts["high"] == 1
        assert counts["moderate"] == 0

    @pytest.mark.unit
    def test_count_from_legacy_advisories(self):
        audit = {"advisories": {"1": {"severity": "critical"}, "2": {"severity": "low"}}}
        counts = count_vulnerabilities(audit)
        assert counts["critical"] == 1
        assert counts["low"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blocking_vulnerabilities_fail(self, build_config):
        audit = {
            "metadata": {
                "vulnerabilities": {"moderate": 1, "high": 2},
                "dependencies": {"total": 120},
            }
        }
        mock_run = AsyncMock(return_value=(1, json.dumps(audit), ""))
        with patch(f"{ENGINEERS}.security.run_command", mock_run):
            result = await run_agent(AgentId.SECURITY, build_config)

        assert result.success is False
        assert result.error == "2 high/critical vulnerabilities found"
        assert result.attempts == 2
        assert result.metrics.warnings_found == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_advisory_only_succeeds(self, build_config):
        audit = {"metadata": {"vulnerabilities": {"low": 4}, "dependencies": {"total": 80}}}
        mock_run = AsyncMock(return_value=(1, json.dumps(audit), ""))
        with patch(f"{ENGINEERS}.security.run_command", mock_run):
            result = await run_agent(AgentId.SECURITY, build_config)

        assert result.success is True
        assert result.metrics.files_processed == 80
        assert result.data["vulnerabilities"]["low"] == 4


# ---------------------------------------------------------------------------
# Test (Vitest)
# ---------------------------------------------------------------------------


VITEST_REPORT = {
    "numTotalTests": 3,
    "numPassedTests": 2,
    "numFailedTests": 1,
    "numPendingTests": 0,
    "testResults": [
        {
            "name": "src/math.test.ts",
            "assertionResults": [
                {"fullName": "adds", "status": "passed"},
                {"fullName": "divides", "status": "failed", "failureMessages": ["expected 2"]},
            ],
        },
        {"name": "src/str.test.ts", "assertionResults": [{"fullName": "joins", "status": "passed"}]},
    ],
}


class TestTestEngineer:
    @pytest.mark.unit
    def test_parse_report(self):
        summary = parse_vitest_report(VITEST_REPORT)
        assert summary["total"] == 3
        assert summary["failed"] == 1
        assert summary["files"] == 2
        assert summary["failures"] == [
            {"test": "divides", "file": "src/math.test.ts", "error": "expected 2"}
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_tests_fail(self, build_config):
        mock_run = AsyncMock(return_value=(1, json.dumps(VITEST_REPORT), ""))
        with patch(f"{ENGINEERS}.testing.run_command", mock_run):
            result = await run_agent(AgentId.TEST, build_config)

        assert result.success is False
        assert result.error == "1 of 3 test(s) failed"
        assert mock_run.await_args.kwargs["env"] == {"CI": "true"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nonzero_exit_without_failures(self, build_config):
        report = {**VITEST_REPORT, "numFailedTests": 0, "numPassedTests": 3, "testResults": []}
        mock_run = AsyncMock(return_value=(1, json.dumps(report), ""))
        with patch(f"{ENGINEERS}.testing.run_command", mock_run):
            result = await run_agent(AgentId.TEST, build_config)

        assert result.success is False
        assert result.error == "Vitest exited with code 1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_passing_suite(self, build_config):
        report = {**VITEST_REPORT, "numFailedTests": 0, "numPassedTests": 3, "testResults": []}
        mock_run = AsyncMock(return_value=(0, json.dumps(report), ""))
        with patch(f"{ENGINEERS}.testing.run_command", mock_run):
            result = await run_agent(AgentId.TEST, build_config)

        assert result.success is True
        assert result.metrics.extra["tests_passed"] == 3


# ---------------------------------------------------------------------------
# Quality
# ---------------------------------------------------------------------------


class TestQualityEngineer:
    @pytest.mark.unit
    def test_scan_finds_issues_with_line_numbers(self, build_config):
        engineer = QualityEngineer(build_config)
        content = "const a: any = 1;\nconsole.log(a);\n// TODO: remove\n"

        issues = engineer.scan(content, "src/a.ts")

        by_category = {i.category: i for i in issues}
        assert by_category["explicit-any"].line == 1
        assert by_category["console-log"].line == 2
        assert by_category["todo"].severity == "info"

    @pytest.mark.unit
    def test_oversized_file_is_a_warning(self, build_config):
        engineer = QualityEngineer(build_config)
        issues = engineer.scan("x\n" * 600, "src/big.ts")
        assert [i.category for i in issues] == ["file-size"]

    @pytest.mark.unit
    def test_score(self, build_config):
        engineer = QualityEngineer(build_config)
        issues = engineer.scan("debugger;\nconsole.log(1);\n", "src/a.ts")
        assert engineer.calculate_score(issues) == 88.0
        assert engineer.calculate_score([]) == 100.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_debugger_fails_the_agent(self, build_config, tmp_project_dir):
        (tmp_project_dir / "src" / "a.ts").write_text("debugger;\n", encoding="utf-8")
        (tmp_project_dir / "src" / "b.ts").write_text("export const b = 1;\n", encoding="utf-8")

        result = await run_agent(AgentId.QUALITY, build_config)

        assert result.success is False
        assert result.metrics.files_processed == 2
        assert result.metrics.errors_found == 1
        assert "src/a.ts" in result.error

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clean_sources_succeed(self, build_config, tmp_project_dir):
        (tmp_project_dir / "src" / "a.ts").write_text("export const a = 1;\n", encoding="utf-8")

        result = await run_agent(AgentId.QUALITY, build_config)

        assert result.success is True
        assert result.data["score"] == 100.0


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------


class TestDocumentationEngineer:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_readme_is_a_warning(self, build_config):
        output = "[warning] Foo is not exported\n"
        with patch(f"{ENGINEERS}.documentation.run_command", AsyncMock(return_value=(0, output, ""))):
            result = await run_agent(AgentId.DOCUMENTATION, build_config)

        assert result.success is True
        assert result.metrics.warnings_found == 2
        assert result.data["output_dir"].endswith("docs")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_typedoc_failure(self, build_config, tmp_project_dir):
        (tmp_project_dir / "README.md").write_text("# web-app\n", encoding="utf-8")
        with patch(f"{ENGINEERS}.documentation.run_command", AsyncMock(return_value=(3, "", "boom"))):
            result = await run_agent(AgentId.DOCUMENTATION, build_config)

        assert result.success is False
        assert result.error == "TypeDoc exited with code 3"
        assert result.metrics.warnings_found == 0


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


class TestBuildEngineer:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_builds_project_root_without_targets(self, build_config, tmp_project_dir):
        write_file(tmp_project_dir / "dist" / "index.js", 10)
        write_file(tmp_project_dir / "dist" / "index.js.map", 10)
        mock_run = AsyncMock(return_value=(0, "built", ""))
        with patch(f"{ENGINEERS}.build.run_command", mock_run):
            result = await run_agent(AgentId.BUILD, build_config)

        assert result.success is True
        assert result.data["targets"][0]["name"] == "web-app"
        assert result.metrics.files_processed == 2
        assert mock_run.await_args.args[0] == ["npm", "run", "build"]
        assert mock_run.await_args.kwargs["env"]["NODE_ENV"] == "production"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stops_at_first_failing_target(self, tmp_project_dir):
        config = BuildConfig(
            project_root=tmp_project_dir,
            retry_delay=0.0,
            max_retry_delay=0.0,
            targets=[
                BuildTarget(name="@acme/core", path=Path("packages/core")),
                BuildTarget(name="@acme/ui", path=Path("packages/ui")),
                BuildTarget(name="@acme/app", path=Path("packages/app")),
            ],
        )
        mock_run = AsyncMock(side_effect=[(0, "", ""), (1, "", "ui broke"), (0, "", "")])
        with patch(f"{ENGINEERS}.build.run_command", mock_run):
            result = await run_agent(AgentId.BUILD, config)

        assert result.success is False
        assert result.error == "Build of @acme/ui failed with exit code 1"
        assert result.data["failed_target"] == "@acme/ui"
        assert mock_run.await_count == 2


# ---------------------------------------------------------------------------
# Bundle & Performance
# ---------------------------------------------------------------------------


class TestBundleEngineer:
    @pytest.mark.unit
    def test_measure_bundle_sorted_largest_first(self, tmp_path):
        write_file(tmp_path / "a.js", 100)
        write_file(tmp_path / "assets" / "b.css", 300)
        write_file(tmp_path / "c.map", 900)

        entries = measure_bundle(tmp_path)

        assert [e["path"] for e in entries] == [str(Path("assets") / "b.css"), "a.js"]
        assert entries[0]["bytes"] == 300
        assert 0 < entries[0]["gzip_bytes"] < 300

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_output_fails(self, build_config):
        result = await run_agent(AgentId.BUNDLE, build_config)
        assert result.success is False
        assert "No bundle output" in result.error

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_within_budget(self, build_config):
        write_file(build_config.dist_dir / "index.js", 20 * 1024)

        result = await run_agent(AgentId.BUNDLE, build_config)

        assert result.success is True
        assert result.data["total_bytes"] == 20 * 1024
        assert result.metrics.warnings_found == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_over_critical_budget_fails(self, build_config):
        write_file(build_config.dist_dir / "index.js", (BundleEngineer.CRITICAL_BUNDLE_KB + 1) * 1024)

        result = await run_agent(AgentId.BUNDLE, build_config)

        assert result.success is False
        assert result.metrics.errors_found == 1


class TestPerformanceEngineer:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_large_chunk_warns(self, build_config):
        write_file(build_config.dist_dir / "vendor.js", (PerformanceEngineer.MAX_CHUNK_KB + 1) * 1024)

        agent = create_agent(AgentId.PERFORMANCE, build_config)
        agent.set_build_start_time(time.monotonic() - 5)
        result = await agent.execute_with_retries()

        assert result.success is True
        assert result.metrics.warnings_found == 1
        assert 5 <= result.data["build_seconds"] < 60

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_critical_chunk_fails(self, build_config):
        write_file(build_config.dist_dir / "vendor.js", (PerformanceEngineer.CRITICAL_CHUNK_KB + 1) * 1024)

        result = await run_agent(AgentId.PERFORMANCE, build_config)

        assert result.success is False
        assert "vendor.js" in result.error
        assert result.data["build_seconds"] is None


# ---------------------------------------------------------------------------
# Publish
# ---------------------------------------------------------------------------


class TestPublishEngineer:
    @pytest.mark.unit
    def test_resolve_package_from_manifest(self, tmp_project_dir):
        assert resolve_package(tmp_project_dir) == {"name": "@acme/web-app", "version": "1.2.3"}

    @pytest.mark.unit
    def test_explicit_version_wins(self, tmp_project_dir):
        package = resolve_package(tmp_project_dir, name="ignored", version="2.0.0")
        assert package == {"name": "@acme/web-app", "version": "2.0.0"}

    @pytest.mark.unit
    def test_unresolvable_package(self, tmp_path):
        with pytest.raises(AgentTaskError):
            resolve_package(tmp_path)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disabled_publish_is_skipped(self, build_config):
        mock_run = AsyncMock()
        with patch(f"{ENGINEERS}.publish.run_command", mock_run):
            result = await run_agent(AgentId.PUBLISH, build_config)

        assert result.success is True
        assert result.data == {"packages": [], "skipped": True}
        mock_run.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_token_fails(self, tmp_project_dir):
        config = BuildConfig(
            project_root=tmp_project_dir, publish_to_npm=True, retry_delay=0.0, max_retry_delay=0.0
        )
        result = await run_agent(AgentId.PUBLISH, config)

        assert result.success is False
        assert "no npm token" in result.error
        assert result.attempts == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dry_run_uses_npm_dry_run(self, tmp_project_dir):
        config = BuildConfig(project_root=tmp_project_dir, dry_run=True)
        mock_run = AsyncMock(return_value=(0, "", ""))
        mock_wait = AsyncMock(return_value=True)
        with patch(f"{ENGINEERS}.publish.run_command", mock_run), patch(
            f"{ENGINEERS}.publish.wait_for_registry", mock_wait
        ):
            result = await run_agent(AgentId.PUBLISH, config)

        assert result.success is True
        assert result.data["packages"] == [{"name": "@acme/web-app", "version": "1.2.3"}]
        assert "--dry-run" in mock_run.await_args.args[0]
        mock_wait.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_real_publish_checks_registry(self, tmp_project_dir):
        config = BuildConfig(project_root=tmp_project_dir, publish_to_npm=True, npm_token="tok")
        mock_run = AsyncMock(return_value=(0, "", ""))
        mock_wait = AsyncMock(side_effect=[False, True])
        with patch(f"{ENGINEERS}.publish.run_command", mock_run), patch(
            f"{ENGINEERS}.publish.wait_for_registry", mock_wait
        ):
            result = await run_agent(AgentId.PUBLISH, config)

        assert result.status == AgentStatus.SUCCESS
        assert mock_run.await_args.kwargs["env"] == {"NODE_AUTH_TOKEN": "tok"}
        assert mock_wait.await_args.args[0] == "https://registry.npmjs.org/@acme/web-app/1.2.3"
        assert [c.kwargs["timeout"] for c in mock_wait.await_args_list] == [0, 60]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_version_already_on_registry_is_not_republished(self, tmp_project_dir):
        config = BuildConfig(project_root=tmp_project_dir, publish_to_npm=True, npm_token="tok")
        mock_run = AsyncMock(return_value=(0, "", ""))
        mock_wait = AsyncMock(return_value=True)
        with patch(f"{ENGINEERS}.publish.run_command", mock_run), patch(
            f"{ENGINEERS}.publish.wait_for_registry", mock_wait
        ):
            result = await run_agent(AgentId.PUBLISH, config)

        assert result.success is True
        assert result.data["packages"] == [{"name": "@acme/web-app", "version": "1.2.3"}]
        mock_run.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_resumes_after_published_packages(self, tmp_project_dir):
        for name in ("ui", "core"):
            package_dir = tmp_project_dir / "packages" / name
            package_dir.mkdir(parents=True)
            (package_dir / "package.json").write_text(
                json.dumps({"name": f"@acme/{name}", "version": "1.0.0"}), encoding="utf-8"
            )
        config = BuildConfig(
            project_root=tmp_project_dir,
            targets=[
                BuildTarget(name="@acme/ui", path=Path("packages/ui")),
                BuildTarget(name="@acme/core", path=Path("packages/core")),
            ],
            publish_to_npm=True,
            npm_token="tok",
            retry_delay=0.0,
            max_retry_delay=0.0,
        )
        on_registry: set[str] = set()
        exit_codes = iter([0, 1, 0])

        async def fake_publish(cmd, cwd=None, timeout=None, env=None):
            code = next(exit_codes)
            if code == 0:
                on_registry.add(Path(cwd).name)
            return code, "", "npm ERR! 503 Service Unavailable" if code else ""

        async def fake_registry(url, timeout=60):
            return any(url.endswith(f"/@acme/{name}/1.0.0") for name in on_registry)

        mock_run = AsyncMock(side_effect=fake_publish)
        with patch(f"{ENGINEERS}.publish.run_command", mock_run), patch(
            f"{ENGINEERS}.publish.wait_for_registry", side_effect=fake_registry
        ):
            result = await run_agent(AgentId.PUBLISH, config)

        assert result.success is True
        assert result.attempts == 2
        published_dirs = [Path(c.kwargs["cwd"]).name for c in mock_run.await_args_list]
        assert published_dirs == ["ui", "core", "core"]
        assert result.data["packages"] == [
            {"name": "@acme/ui", "version": "1.0.0"},
            {"name": "@acme/core", "version": "1.0.0"},
        ]
