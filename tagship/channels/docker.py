"""Container registry channel: builds, smoke-tests and pushes an image."""

from __future__ import annotations

import os
from pathlib import Path

from tagship.channels.base import CommandChannel
from tagship.core.errors import ConfigError, PublishError, ValidationError
from tagship.models.channels import PublishReceipt
from tagship.models.manifests import ChannelManifest


class DockerChannel(CommandChannel):
    """Builds ``image:latest`` from a context directory plus the static binary.

    Options:

    - ``image`` (required), e.g. ``"timvisee/ffsend"``
    - ``context``: directory with the ``Dockerfile``, copied into staging
    - ``smoke_args``: arguments for the smoke run (default ``["-V"]``)
    - ``user_env`` / ``password_env``: environment variables holding
      registry credentials (default ``DOCKER_USER`` / ``DOCKER_PASSWORD``);
      login is skipped when either is unset
    """

    @property
    def image(self) -> str:
        image = self.option("image")
        if not image:
            raise ConfigError(f"{self.channel_id}: option 'image' is required")
        return self.format_option("image", image)

    @property
    def version_tag(self) -> str:
        return f"{self.image}:{self.version.number}"

    def stage(self, manifest: ChannelManifest | None, workdir: Path, files: dict[str, Path]) -> Path:
        self.copy_context(workdir)
        for path in files.values():
            path.chmod(0o755)
        latest = f"{self.image}:latest"
        self.check(["docker", "build", "-t", latest, str(workdir)], error=ValidationError, cwd=workdir)
        smoke_args = [str(arg) for arg in self.option("smoke_args", ["-V"])]
        self.check(["docker", "run", "--rm", latest, *smoke_args], error=ValidationError)
        self.check(["docker", "tag", latest, self.version_tag], error=ValidationError)
        return workdir

    def publish(self, package_path: Path) -> PublishReceipt:
        self._login()
        for tag in (self.version_tag, f"{self.image}:latest"):
            self.check(["docker", "push", tag], error=PublishError)
        return PublishReceipt(
            channel_id=self.channel_id,
            location=self.version_tag,
            details={"tags": [self.version.number, "latest"]},
        )

    def _login(self) -> None:
        user = os.environ.get(self.option("user_env", "DOCKER_USER"))
        password = os.environ.get(self.option("password_env", "DOCKER_PASSWORD"))
        if not user or not password:
            return
        args = ["docker", "login", "-u", user, "--password-stdin"]
        registry = self.option("registry")
        if registry:
            args.append(str(registry))
        self.check(args, error=PublishError, input_text=password)
