"""Release configuration models, loaded from ``tagship.toml``.

Example::

    [release]
    app = "ffsend"

    [release.fields]
    owner = "timvisee"
    repo = "ffsend"

    [[matrix]]
    target = "x86_64-unknown-linux-musl"
    static = true

    [[artifacts]]
    name = "binary"
    kind = "binary"
    url = "https://github.com/{owner}/{repo}/releases/download/{tag}/{app}-{tag}-linux-x64-static"

    [[channels]]
    id = "aur-bin"
    kind = "aur"
    template = "pkg/aur/ffsend-bin/PKGBUILD"
    artifacts = ["binary"]
    depends_on = ["github"]
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from tagship.core.errors import ConfigError
from tagship.models.artifacts import ArtifactSource
from tagship.models.build import BuildTarget

DEFAULT_MASK_PATTERNS: tuple[str, ...] = (r"^pkgver=.*$", r"^version:.*$")


class StaticDependency(BaseModel):
    """A pinned library compiled from source before static builds."""

    model_config = ConfigDict(frozen=True)

    name: str = "openssl"
    version: str
    url: str = "https://github.com/openssl/openssl/releases/download/openssl-{version}/openssl-{version}.tar.gz"
    sha256: str | None = None
    configure_args: tuple[str, ...] = ("no-async", "-fPIC")


class ChannelSpec(BaseModel):
    """Configuration of one distribution channel or channel variant.

    ``tracks_head`` enables change detection: the channel is only
    republished when its version-masked manifest differs from the
    currently published one.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    template: Path | None = None
    filename: str | None = None
    artifacts: tuple[str, ...] = ()
    binaries: dict[str, str] = Field(default_factory=dict)  # target triple -> staged name
    depends_on: tuple[str, ...] = ()
    tracks_head: bool = False
    version_format: str = "{version}"
    mask_patterns: tuple[str, ...] = DEFAULT_MASK_PATTERNS
    fields: dict[str, str] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    required: bool = True

    @property
    def manifest_filename(self) -> str | None:
        if self.filename:
            return self.filename
        if self.template is None:
            return None
        name = self.template.name
        return name[: -len(".in")] if name.endswith(".in") else name


class ReleaseConfig(BaseModel):
    """Project-level release configuration."""

    model_config = ConfigDict(frozen=True)

    app: str
    root: Path = Path(".")
    fields: dict[str, str] = Field(default_factory=dict)
    matrix: tuple[BuildTarget, ...] = ()
    static_dependency: StaticDependency | None = None
    artifacts: tuple[ArtifactSource, ...] = ()
    channels: tuple[ChannelSpec, ...] = ()

    @model_validator(mode="after")
    def _check_references(self) -> ReleaseConfig:
        channel_ids = [channel.id for channel in self.channels]
        duplicates = sorted({cid for cid in channel_ids if channel_ids.count(cid) > 1})
        if duplicates:
            raise ValueError(f"duplicate channel ids: {duplicates}")
        artifact_names = {artifact.name for artifact in self.artifacts}
        built = {entry.target for entry in self.matrix if not entry.check_only}
        for channel in self.channels:
            unknown = [name for name in channel.artifacts if name not in artifact_names]
            if unknown:
                raise ValueError(f"channel {channel.id!r} references unknown artifacts {unknown}")
            unbuilt = [triple for triple in channel.binaries if triple not in built]
            if unbuilt:
                raise ValueError(f"channel {channel.id!r} needs binaries for unbuilt targets {unbuilt}")
            missing = [dep for dep in channel.depends_on if dep not in channel_ids]
            if missing:
                raise ValueError(f"channel {channel.id!r} depends on unknown channels {missing}")
        if any(entry.static for entry in self.matrix) and self.static_dependency is None:
            raise ValueError("static matrix entries require a [static_dependency] table")
        return self

    def channel(self, channel_id: str) -> ChannelSpec:
        for spec in self.channels:
            if spec.id == channel_id:
                return spec
        raise ConfigError(
            f"Unknown channel {channel_id!r}. Configured: {[spec.id for spec in self.channels]}"
        )

    def template_path(self, spec: ChannelSpec) -> Path | None:
        if spec.template is None:
            return None
        return spec.template if spec.template.is_absolute() else self.root / spec.template


def load_release_config(path: Path) -> ReleaseConfig:
    """Load and validate a release config file.

    Relative template paths are resolved against the file's directory.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Release config not found: {path}")
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    release = raw.get("release", {})
    payload: dict[str, Any] = {
        "app": release.get("app"),
        "root": path.resolve().parent,
        "fields": release.get("fields", {}),
        "matrix": raw.get("matrix", []),
        "static_dependency": raw.get("static_dependency"),
        "artifacts": raw.get("artifacts", []),
        "channels": raw.get("channels", []),
    }
    try:
        return ReleaseConfig.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid release config {path}: {exc}") from exc
