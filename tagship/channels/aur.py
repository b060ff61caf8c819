"""Arch User Repository channel.

Each AUR package is its own git repository holding ``PKGBUILD`` and
``.SRCINFO``.  Publishing is a commit pushed over SSH.  The currently
published ``PKGBUILD`` is read over HTTPS from the cgit frontend, which
makes this channel a ``RemoteManifestStore`` for change detection.
"""

from __future__ import annotations

from pathlib import Path

from tagship.channels.base import ChannelContext, CommandChannel
from tagship.channels.git import GitRepository
from tagship.core.errors import ConfigError, FetchError, ValidationError
from tagship.models.channels import PublishReceipt
from tagship.models.config import ChannelSpec
from tagship.models.manifests import ChannelManifest

AUR_CGIT_URL = "https://aur.archlinux.org/cgit/aur.git/plain/{filename}?h={package}"
AUR_GIT_URL = "ssh://aur@aur.archlinux.org/{package}.git"


class AurChannel(CommandChannel):
    """Publishes one AUR package.

    Options:

    - ``package``: AUR package name (default: channel id)
    - ``repo_url``: push URL (default: the AUR SSH URL)
    - ``validate``: run ``makepkg -c`` before publishing (default false)
    - ``commit_message``: default ``Release {tag}``
    - ``ssh_command``: exported as ``GIT_SSH_COMMAND``
    - ``author_name`` / ``author_email``: commit identity
    """

    def __init__(
        self,
        spec: ChannelSpec,
        context: ChannelContext,
        *,
        repository: GitRepository | None = None,
    ) -> None:
        super().__init__(spec, context)
        self.package = str(self.option("package", spec.id))
        self.filename = spec.manifest_filename or "PKGBUILD"
        if repository is None:
            env = {}
            if self.option("ssh_command"):
                env["GIT_SSH_COMMAND"] = str(self.option("ssh_command"))
            repository = GitRepository(
                str(self.option("repo_url", AUR_GIT_URL.format(package=self.package))),
                runner=context.runner,
                author_name=self.option("author_name"),
                author_email=self.option("author_email"),
                env=env,
            )
        self.repository = repository

    def stage(self, manifest: ChannelManifest | None, workdir: Path, files: dict[str, Path]) -> Path:
        if manifest is None:
            raise ConfigError(f"{self.channel_id}: AUR channels need a PKGBUILD template")
        if self.option("validate", False):
            self.check(["makepkg", "-c"], error=ValidationError, cwd=workdir)
        srcinfo = self.check(["makepkg", "--printsrcinfo"], error=ValidationError, cwd=workdir)
        if not srcinfo.stdout.strip():
            raise ValidationError(f"{self.channel_id}: makepkg --printsrcinfo produced no output")
        (workdir / ".SRCINFO").write_text(srcinfo.stdout, encoding="utf-8")
        return workdir

    def publish(self, package_path: Path) -> PublishReceipt:
        message = self.format_option("commit_message", "Release {tag}")
        commit = self.repository.commit_and_push(
            {
                self.filename: package_path / self.filename,
                ".SRCINFO": package_path / ".SRCINFO",
            },
            message,
        )
        return PublishReceipt(
            channel_id=self.channel_id,
            location=f"https://aur.archlinux.org/packages/{self.package}",
            details={"commit": commit, "message": message},
        )

    def fetch_current_manifest(self, channel_id: str) -> str:
        if self.context.fetcher is None:
            raise ConfigError(f"{self.channel_id}: no fetcher to read the published manifest")
        url = AUR_CGIT_URL.format(filename=self.filename, package=self.package)
        body = self.context.fetcher.get(url)
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FetchError(url, f"undecodable manifest: {exc}") from exc
