"""Snap store channel."""

from __future__ import annotations

from pathlib import Path

from tagship.channels.base import CommandChannel
from tagship.core.errors import PublishError, ValidationError
from tagship.models.channels import PublishReceipt
from tagship.models.manifests import ChannelManifest


class SnapChannel(CommandChannel):
    """Builds a snap from the rendered ``snapcraft.yaml`` and pushes it.

    Options: ``context`` (extra files for the snap build), ``release``
    (store channel, default ``stable``).
    """

    def stage(self, manifest: ChannelManifest | None, workdir: Path, files: dict[str, Path]) -> Path:
        self.copy_context(workdir)
        self.check(["snapcraft"], error=ValidationError, cwd=workdir)
        snaps = sorted(workdir.glob("*.snap"))
        if not snaps:
            raise ValidationError(f"{self.channel_id}: snapcraft produced no .snap file")
        return snaps[0]

    def publish(self, package_path: Path) -> PublishReceipt:
        release = self.option("release", "stable")
        self.check(
            ["snapcraft", "push", f"--release={release}", str(package_path)],
            error=PublishError,
            cwd=package_path.parent,
        )
        return PublishReceipt(
            channel_id=self.channel_id,
            location=f"snap:{package_path.name}",
            details={"release": release},
        )
