"""Source-control publishing for channels backed by a git repository.

Used by package repositories that accept updates as commits (the AUR).
Every publish works in a fresh clone inside a temporary directory.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path

from tagship.core.errors import PushError
from tagship.core.process import CommandResult, CommandRunner, run_command

logger = logging.getLogger(__name__)


class GitRepository:
    """A remote repository that receives packaging files as commits.

    Parameters
    ----------
    url:
        Clone/push URL (e.g. ``ssh://aur@aur.archlinux.org/ffsend.git``).
    author_name, author_email:
        Commit identity; git's own configuration is used when unset.
    env:
        Extra environment for git, e.g. ``GIT_SSH_COMMAND``.
    """

    def __init__(
        self,
        url: str,
        *,
        runner: CommandRunner = run_command,
        author_name: str | None = None,
        author_email: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.url = url
        self._run = runner
        self.author_name = author_name
        self.author_email = author_email
        self.env = dict(env or {})

    def commit_and_push(self, files: Mapping[str, Path], message: str) -> str:
        """Clone, replace *files*, commit with *message* and push.

        Returns the pushed commit id, or the current ``HEAD`` when the
        files were already up to date and nothing was pushed.

        Raises ``PushError`` carrying git's stderr if any step fails.
        """
        with tempfile.TemporaryDirectory(prefix="tagship-git-") as tmp:
            checkout = Path(tmp) / "repo"
            self._git(["clone", self.url, str(checkout)], step="clone")

            for name, source in files.items():
                shutil.copy2(source, checkout / name)
            self._git(["add", "--", *files], step="add", cwd=checkout)

            status = self._git(["status", "--porcelain"], step="status", cwd=checkout)
            if not status.stdout.strip():
                logger.warning("%s already up to date, nothing to push", self.url)
                return self._head(checkout)

            self._git([*self._identity(), "commit", "-m", message], step="commit", cwd=checkout)
            self._git(["push", "origin", "HEAD"], step="push", cwd=checkout)
            commit = self._head(checkout)
            logger.info("Pushed %s to %s", commit[:12], self.url)
            return commit

    def _identity(self) -> list[str]:
        args: list[str] = []
        if self.author_name:
            args.extend(["-c", f"user.name={self.author_name}"])
        if self.author_email:
            args.extend(["-c", f"user.email={self.author_email}"])
        return args

    def _head(self, checkout: Path) -> str:
        return self._git(["rev-parse", "HEAD"], step="rev-parse", cwd=checkout).stdout.strip()

    def _git(self, args: list[str], *, step: str, cwd: Path | None = None) -> CommandResult:
        result = self._run(["git", *args], cwd=cwd, env=self.env or None)
        if not result.ok:
            raise PushError(
                f"git {step} failed for {self.url}",
                transport_error=result.stderr.strip() or result.output,
            )
        return result
