"""wavebuild configuration.

Typed build configuration for the orchestrator and every engineer agent. All
settings use Pydantic v2 models so they are validated at construction time and
can be serialised to/from JSON or read from environment variables.  A
``BuildConfig`` is treated as immutable for the duration of a run.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TargetType(str, Enum):
    """Kind of artefact a build target produces."""

    LIBRARY = "library"
    APPLICATION = "application"
    PACKAGE = "package"


class BuildTarget(BaseModel):
    """A single package or application to build."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Package name, e.g. '@acme/ui'")
    path: Path = Field(default=Path("."), description="Package root relative to project_root")
    version: str = Field(default="0.0.0")
    type: TargetType = Field(default=TargetType.LIBRARY)


class BuildConfig(BaseModel):
    """Global build configuration.

    Created once by the CLI (or by a caller of ``run_build``) and handed to the
    orchestrator, which passes it on to every agent it constructs.
    """

    model_config = ConfigDict(frozen=True)

    targets: list[BuildTarget] = Field(default_factory=list)
    project_root: Path = Field(default=Path("."))
    output_dir: Path = Field(default=Path("./dist"))

    source_map: bool = Field(default=True)
    minify: bool = Field(default=True)

    # Scheduling
    parallel: bool = Field(default=True, description="Run agents of a wave concurrently")
    max_concurrency: Optional[int] = Field(
        default=4, ge=0, description="Batch size within a wave; 0/None means the whole wave"
    )
    fail_fast: bool = Field(default=False)
    strict_dependencies: bool = Field(
        default=False, description="Reject cyclic rosters instead of force-scheduling them"
    )

    # Retry policy shared by all agents
    retry_delay: float = Field(default=1.0, ge=0.0, description="Base delay between attempts (s)")
    max_retry_delay: float = Field(default=30.0, ge=0.0, description="Backoff ceiling (s)")
    command_timeout: float = Field(
        default=600.0, gt=0, description="Per-command subprocess timeout (s)"
    )

    verbose: bool = Field(default=False)
    dry_run: bool = Field(default=False)

    # Publishing
    publish_to_npm: bool = Field(default=False)
    npm_token: Optional[str] = Field(default=None, repr=False, exclude=True)
    npm_registry: str = Field(default="https://registry.npmjs.org")

    @model_validator(mode="after")
    def _check_retry_ceiling(self) -> "BuildConfig":
        if self.max_retry_delay < self.retry_delay:
            raise ValueError("max_retry_delay must be >= retry_delay")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def effective_concurrency(self) -> int | None:
        """Batch size the orchestrator should use; ``None`` means unbounded."""
        if not self.parallel:
            return 1
        return self.max_concurrency or None

    @property
    def dist_dir(self) -> Path:
        """Directory the build engineer writes compiled output into."""
        if self.output_dir.is_absolute():
            return self.output_dir
        return self.project_root / self.output_dir

    @property
    def report_json_path(self) -> Path:
        return self.dist_dir / "build-report.json"

    @property
    def report_markdown_path(self) -> Path:
        return self.dist_dir / "build-report.md"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration (minus the npm token) to a JSON file."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "BuildConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, **overrides: Any) -> "BuildConfig":
        """Build a ``BuildConfig`` from environment variables.

        Recognised variables (all optional):
            WAVEBUILD_PROJECT_ROOT, WAVEBUILD_OUTPUT_DIR, WAVEBUILD_MAX_CONCURRENCY,
            WAVEBUILD_FAIL_FAST, WAVEBUILD_DRY_RUN, WAVEBUILD_VERBOSE,
            WAVEBUILD_PUBLISH, WAVEBUILD_RETRY_DELAY, NPM_TOKEN.

        Keyword *overrides* win over the environment.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("WAVEBUILD_PROJECT_ROOT"):
            kwargs["project_root"] = Path(os.environ["WAVEBUILD_PROJECT_ROOT"])
        if os.environ.get("WAVEBUILD_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["WAVEBUILD_OUTPUT_DIR"])
        if os.environ.get("WAVEBUILD_MAX_CONCURRENCY"):
            kwargs["max_concurrency"] = int(os.environ["WAVEBUILD_MAX_CONCURRENCY"])
        if os.environ.get("WAVEBUILD_RETRY_DELAY"):
            kwargs["retry_delay"] = float(os.environ["WAVEBUILD_RETRY_DELAY"])
        for env_name, field_name in (
            ("WAVEBUILD_FAIL_FAST", "fail_fast"),
            ("WAVEBUILD_DRY_RUN", "dry_run"),
            ("WAVEBUILD_VERBOSE", "verbose"),
            ("WAVEBUILD_PUBLISH", "publish_to_npm"),
        ):
            if os.environ.get(env_name):
                kwargs[field_name] = _env_flag(os.environ[env_name])
        if os.environ.get("NPM_TOKEN"):
            kwargs["npm_token"] = os.environ["NPM_TOKEN"]

        kwargs.update(overrides)
        return cls(**kwargs)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
