"""Build matrix models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class BuildStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BuildTarget(BaseModel):
    """One (target triple, feature set) entry of the build matrix.

    ``check_only`` entries type-check a feature combination on a given
    toolchain without producing a release binary.
    """

    model_config = ConfigDict(frozen=True)

    target: str
    features: tuple[str, ...] = ()
    default_features: bool = True
    static: bool = False
    toolchain: str = "stable"
    check_only: bool = False

    @property
    def feature_label(self) -> str:
        base = "default" if self.default_features else "no-default"
        if self.features:
            return f"{base}+{','.join(self.features)}"
        return base

    @property
    def label(self) -> str:
        prefix = "check" if self.check_only else "build"
        return f"{prefix}:{self.toolchain}:{self.target}:{self.feature_label}"


class BuildResult(BaseModel):
    """Outcome of one matrix entry."""

    model_config = ConfigDict(frozen=True)

    target: BuildTarget
    status: BuildStatus = BuildStatus.PENDING
    artifact_path: Path | None = None
    diagnostics: str = ""

    @property
    def target_triple(self) -> str:
        return self.target.target

    @property
    def succeeded(self) -> bool:
        return self.status == BuildStatus.SUCCESS


class MatrixResult(BaseModel):
    """All matrix outcomes in configured order."""

    model_config = ConfigDict(frozen=True)

    results: list[BuildResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True only when every entry succeeded (none pending, none failed)."""
        return all(result.status == BuildStatus.SUCCESS for result in self.results)

    @property
    def failed(self) -> list[BuildResult]:
        return [result for result in self.results if result.status != BuildStatus.SUCCESS]

    def binaries(self) -> dict[str, Path]:
        """Map of target triple to promoted binary path for successful builds."""
        return {
            result.target_triple: result.artifact_path
            for result in self.results
            if result.succeeded and result.artifact_path is not None
        }
