"""Publishable artifact models (digests are immutable once computed)."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from tagship.core.errors import DigestMismatchError


class ArtifactKind(str, Enum):
    """What a publishable file is."""

    BINARY = "binary"
    LICENSE = "license"
    COMPLETION = "completion"
    SOURCE = "source"
    OTHER = "other"


class ArtifactSource(BaseModel):
    """Configured location of one publishable file.

    ``url`` is a ``str.format`` template; see ``tagship.core.resolver``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    kind: ArtifactKind = ArtifactKind.OTHER


class Artifact(BaseModel):
    """A resolved artifact: a name, its remote URL and, once computed, its digest."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    kind: ArtifactKind = ArtifactKind.OTHER
    digest: str | None = None  # SHA-256 hex

    def with_digest(self, digest: str) -> Artifact:
        """Return a copy carrying *digest*.

        Raises ``DigestMismatchError`` if a different digest was already
        recorded for this artifact.
        """
        if self.digest is not None and self.digest != digest:
            raise DigestMismatchError(
                f"Artifact {self.name!r} at {self.url} changed within the run: "
                f"recorded {self.digest}, fetched {digest}"
            )
        return self.model_copy(update={"digest": digest})
