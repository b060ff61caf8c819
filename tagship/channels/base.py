"""Channel protocol for tagship distribution channels.

Every channel implements ``stage`` and ``publish``.  The publisher calls
``stage`` with a scoped working directory that already contains the
rendered manifest and any extra files, then ``publish`` with whatever
``stage`` returned.  The working directory is removed after ``publish``
returns, so channels must not keep references to it.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from tagship.core.errors import ConfigError, TagshipError
from tagship.core.fetch import Fetcher
from tagship.core.process import CommandResult, CommandRunner, run_command
from tagship.models.channels import PublishReceipt
from tagship.models.config import ChannelSpec, ReleaseConfig
from tagship.models.manifests import ChannelManifest
from tagship.models.versioning import ReleaseVersion

logger = logging.getLogger(__name__)


@runtime_checkable
class Channel(Protocol):
    """Protocol that every distribution channel must implement.

    Attributes
    ----------
    channel_id : str
        The configured channel id (e.g. ``"aur-bin"``).
    """

    @property
    def channel_id(self) -> str:
        ...

    def stage(
        self,
        manifest: ChannelManifest | None,
        workdir: Path,
        files: dict[str, Path],
    ) -> Path:
        """Build and validate the channel's native package.

        Parameters
        ----------
        manifest:
            The rendered manifest, already written to ``workdir``; ``None``
            for channels without a template.
        workdir:
            Scoped staging directory.
        files:
            Extra files copied into ``workdir``, by their staged name.

        Raises ``ValidationError`` when the native tooling rejects the package.
        """
        ...

    def publish(self, package_path: Path) -> PublishReceipt:
        """Push a staged package to the channel's remote store.

        Raises ``PublishError`` (``PushError`` for source control) on failure.
        """
        ...


@dataclass(frozen=True)
class ChannelContext:
    """Run-wide inputs shared by every channel built for one release."""

    config: ReleaseConfig
    version: ReleaseVersion
    runner: CommandRunner = run_command
    fetcher: Fetcher | None = None


class CommandChannel:
    """Shared plumbing for channels that drive external packaging tools.

    Parameters
    ----------
    spec:
        The channel's configuration.
    context:
        Run-wide inputs.
    """

    def __init__(self, spec: ChannelSpec, context: ChannelContext) -> None:
        self.spec = spec
        self.context = context
        self._run = context.runner

    @property
    def channel_id(self) -> str:
        return self.spec.id

    @property
    def version(self) -> ReleaseVersion:
        return self.context.version

    def option(self, key: str, default: Any = None) -> Any:
        return self.spec.options.get(key, default)

    def project_path(self, value: str | Path) -> Path:
        """Resolve a configured path against the project root."""
        path = Path(value)
        return path if path.is_absolute() else self.context.config.root / path

    def format_option(self, key: str, default: str) -> str:
        """Read a string option and fill in ``{app}``, ``{tag}`` and ``{version}``."""
        template = str(self.option(key, default))
        values = {
            **self.context.config.fields,
            "app": self.context.config.app,
            "tag": self.version.tag,
            "version": self.version.number,
        }
        try:
            return template.format(**values)
        except KeyError as exc:
            raise ConfigError(
                f"{self.channel_id}: option {key!r} references undefined field {exc.args[0]!r}"
            ) from exc

    def copy_context(self, workdir: Path) -> None:
        """Copy the configured ``context`` directory into *workdir*, if any.

        Entries already staged (the rendered manifest, binaries) are kept.
        """
        context_dir = self.option("context")
        if not context_dir:
            return
        source = self.project_path(context_dir)
        if not source.is_dir():
            raise ConfigError(f"{self.channel_id}: context directory {source} does not exist")
        for entry in source.iterdir():
            target = workdir / entry.name
            if target.exists():
                continue
            if entry.is_dir():
                shutil.copytree(entry, target)
            else:
                shutil.copy2(entry, target)

    def check(
        self,
        args: list[str],
        *,
        error: type[TagshipError],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        input_text: str | None = None,
    ) -> CommandResult:
        """Run a tool and raise *error* with its output if it fails."""
        logger.info("%s: %s", self.channel_id, " ".join(args[:3]))
        result = self._run(args, cwd=cwd, env=env, input_text=input_text)
        if not result.ok:
            raise error(
                f"{self.channel_id}: '{' '.join(args[:3])}' exited with {result.returncode}: "
                f"{result.output or 'no output'}"
            )
        return result
