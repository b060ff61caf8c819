"""Package index channel: publishes the crate with cargo."""

from __future__ import annotations

from pathlib import Path

from tagship.channels.base import CommandChannel
from tagship.core.errors import PublishError, ValidationError
from tagship.models.channels import PublishReceipt
from tagship.models.manifests import ChannelManifest


class CratesChannel(CommandChannel):
    """``cargo package`` to validate, ``cargo publish`` to release.

    Options: ``project_dir`` (default: project root), ``crate`` (default:
    app name).  The registry token is read by cargo from
    ``CARGO_REGISTRY_TOKEN``.
    """

    @property
    def project_dir(self) -> Path:
        return self.project_path(self.option("project_dir", "."))

    def stage(self, manifest: ChannelManifest | None, workdir: Path, files: dict[str, Path]) -> Path:
        self.check(
            ["cargo", "package", "--verbose", "--allow-dirty"],
            error=ValidationError,
            cwd=self.project_dir,
        )
        return self.project_dir

    def publish(self, package_path: Path) -> PublishReceipt:
        self.check(
            ["cargo", "publish", "--verbose", "--allow-dirty"],
            error=PublishError,
            cwd=package_path,
        )
        crate = self.option("crate", self.context.config.app)
        return PublishReceipt(
            channel_id=self.channel_id,
            location=f"https://crates.io/crates/{crate}/{self.version.number}",
        )
