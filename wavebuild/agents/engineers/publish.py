"""Publish engineer: pushes built packages to the npm registry.

Runs last.  A real publish needs ``publish_to_npm`` and an npm token; a dry
run goes through ``npm publish --dry-run`` so the tarball contents are still
validated without touching the registry.  After a real publish each version
is polled on the registry until it becomes visible.  Versions already on
the registry are not published again, so a retry picks up where the failed
attempt stopped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wavebuild.agents.runner import AgentContext, AgentTaskError
from wavebuild.agents.types import AgentConfig, AgentDependency, AgentId, LogLevel
from wavebuild.config import BuildConfig
from wavebuild.utils import load_json, run_command, wait_for_registry

DEFAULT_VERSION = "0.0.0"


def resolve_package(package_dir: Path, name: str | None = None, version: str | None = None) -> dict[str, str]:
    """Fill in *name*/*version* from ``package.json`` where they are not given."""
    manifest: dict[str, Any] = {}
    manifest_path = package_dir / "package.json"
    if manifest_path.is_file():
        manifest = load_json(manifest_path)

    resolved_name = manifest.get("name") or name
    resolved_version = version if version and version != DEFAULT_VERSION else manifest.get("version")
    if not resolved_name or not resolved_version:
        raise AgentTaskError(f"Cannot determine package name/version for {package_dir}")
    return {"name": str(resolved_name), "version": str(resolved_version)}


class PublishEngineer:
    config = AgentConfig(
        id=AgentId.PUBLISH,
        name="Publish Engineer",
        description="Publishes built packages to npm",
        dependencies=(
            AgentDependency(agent_id=AgentId.BUILD),
            AgentDependency(agent_id=AgentId.TEST),
            AgentDependency(agent_id=AgentId.SECURITY),
            AgentDependency(agent_id=AgentId.BUNDLE),
            AgentDependency(agent_id=AgentId.QUALITY, required=False),
        ),
        timeout=300,
        retries=2,
        priority=10,
    )

    REGISTRY_WAIT_SECONDS = 60

    def __init__(self, build_config: BuildConfig) -> None:
        self._build_config = build_config

    def _package_dirs(self) -> list[tuple[Path, str | None, str | None]]:
        root = Path(self._build_config.project_root)
        if not self._build_config.targets:
            return [(root, None, None)]
        return [(root / t.path, t.name, t.version) for t in self._build_config.targets]

    async def run(self, ctx: AgentContext) -> dict[str, Any]:
        cfg = self._build_config
        if not cfg.publish_to_npm and not cfg.dry_run:
            ctx.log("Publishing disabled; nothing to do")
            return {"packages": [], "skipped": True}

        if cfg.publish_to_npm and not cfg.dry_run and not cfg.npm_token:
            raise AgentTaskError("publish_to_npm is set but no npm token is configured")

        command = ["npm", "publish", "--access", "public", "--registry", cfg.npm_registry]
        env: dict[str, str] = {}
        if cfg.dry_run:
            command.append("--dry-run")
        else:
            env["NODE_AUTH_TOKEN"] = cfg.npm_token or ""

        packages: list[dict[str, str]] = []
        dirs = self._package_dirs()
        for index, (package_dir, name, version) in enumerate(dirs):
            package = resolve_package(package_dir, name, version)
            label = f"{package['name']}@{package['version']}"
            ctx.progress(int(100 * index / len(dirs)), f"Publishing {label}")
            url = f"{cfg.npm_registry.rstrip('/')}/{package['name']}/{package['version']}"

            # a retried attempt resumes after the packages it already published
            if not cfg.dry_run and await wait_for_registry(url, timeout=0):
                ctx.log(f"{label} is already on the registry; skipping")
                packages.append(package)
                continue

            code, stdout, stderr = await run_command(
                command, cwd=package_dir, timeout=cfg.command_timeout, env=env or None
            )
            if code != 0:
                ctx.log(stderr or stdout, LogLevel.ERROR)
                raise AgentTaskError(
                    f"npm publish of {label} failed with exit code {code}",
                    files_processed=len(packages),
                    errors_found=1,
                    data={"packages": packages},
                )

            if not cfg.dry_run and not await wait_for_registry(
                url, timeout=self.REGISTRY_WAIT_SECONDS
            ):
                ctx.log(f"{label} not visible on the registry yet", LogLevel.WARN)

            packages.append(package)
            ctx.log(f"Published {label}" + (" (dry run)" if cfg.dry_run else ""))

        ctx.record(files_processed=len(packages), errors_found=0)
        ctx.progress(100, f"{len(packages)} package(s) published")
        return {"packages": packages, "dry_run": cfg.dry_run}
