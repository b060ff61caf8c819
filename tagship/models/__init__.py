"""tagship data models: all Pydantic v2, all frozen (immutable)."""

from tagship.models.artifacts import Artifact, ArtifactKind, ArtifactSource
from tagship.models.build import BuildResult, BuildStatus, BuildTarget, MatrixResult
from tagship.models.channels import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ChannelOutcome,
    ChannelStatus,
    ChannelTransition,
    PublishReceipt,
    PublishReport,
)
from tagship.models.config import (
    DEFAULT_MASK_PATTERNS,
    ChannelSpec,
    ReleaseConfig,
    StaticDependency,
    load_release_config,
)
from tagship.models.manifests import ChannelManifest, PublishAction, PublishDecision
from tagship.models.reports import PipelineReport
from tagship.models.versioning import ReleaseVersion

__all__ = [
    # versioning
    "ReleaseVersion",
    # artifacts
    "Artifact",
    "ArtifactKind",
    "ArtifactSource",
    # build
    "BuildResult",
    "BuildStatus",
    "BuildTarget",
    "MatrixResult",
    # manifests
    "ChannelManifest",
    "PublishAction",
    "PublishDecision",
    # channels
    "ChannelOutcome",
    "ChannelStatus",
    "ChannelTransition",
    "PublishReceipt",
    "PublishReport",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    # config
    "ChannelSpec",
    "DEFAULT_MASK_PATTERNS",
    "ReleaseConfig",
    "StaticDependency",
    "load_release_config",
    # reports
    "PipelineReport",
]
