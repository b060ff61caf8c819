"""Binary hosting channel: a GitHub release with the matrix binaries attached.

The channel's ``binaries`` table names each uploaded asset, e.g.::

    [channels.binaries]
    x86_64-unknown-linux-gnu = "{app}-{tag}-linux-x64"
    x86_64-unknown-linux-musl = "{app}-{tag}-linux-x64-static"
"""

from __future__ import annotations

import logging
from pathlib import Path

from tagship.channels.base import CommandChannel
from tagship.core.errors import PublishError, ValidationError
from tagship.core.hasher import sha256_file
from tagship.models.channels import PublishReceipt
from tagship.models.manifests import ChannelManifest

logger = logging.getLogger(__name__)


class GitHubReleaseChannel(CommandChannel):
    """Creates the release with ``gh`` and uploads every staged asset.

    Options: ``repo`` (``owner/name``, default ``{owner}/{repo}`` from the
    release fields), ``title`` (default ``{app} {tag}``).  ``gh`` reads
    its token from ``GITHUB_TOKEN``.  An existing release for the tag is
    reused, so a re-run after a partial upload finishes the asset list.
    """

    def stage(self, manifest: ChannelManifest | None, workdir: Path, files: dict[str, Path]) -> Path:
        if not files:
            raise ValidationError(f"{self.channel_id}: no binaries staged for upload")
        empty = sorted(name for name, path in files.items() if path.stat().st_size == 0)
        if empty:
            raise ValidationError(f"{self.channel_id}: refusing to upload empty assets {empty}")
        return workdir

    def publish(self, package_path: Path) -> PublishReceipt:
        repo = self.format_option("repo", "{owner}/{repo}")
        tag = self.version.tag
        title = self.format_option("title", "{app} {tag}")

        if self._run(["gh", "release", "view", tag, "--repo", repo]).ok:
            logger.info("%s: release %s already exists on %s, reusing it", self.channel_id, tag, repo)
        else:
            self.check(
                ["gh", "release", "create", tag, "--repo", repo, "--title", title, "--notes", ""],
                error=PublishError,
            )
        assets = sorted(path for path in package_path.iterdir() if path.is_file())
        for asset in assets:
            self.check(
                ["gh", "release", "upload", tag, str(asset), "--repo", repo, "--clobber"],
                error=PublishError,
            )
        return PublishReceipt(
            channel_id=self.channel_id,
            location=f"https://github.com/{repo}/releases/tag/{tag}",
            details={"assets": {asset.name: sha256_file(asset) for asset in assets}},
        )
