"""Release version model: one immutable value per pipeline run."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from tagship.core.errors import ConfigError

# Release tags look like v1, v1.4 or v1.4.2; nothing else triggers a release.
TAG_PATTERN = re.compile(r"^v(?P<number>(?:\d+\.)*\d+)$")


class ReleaseVersion(BaseModel):
    """A version parsed from the triggering tag.

    ``tag`` keeps the original string (``v1.4.2``) for URLs and release
    names; ``number`` is the bare numeric form (``1.4.2``) written into
    every manifest version field.
    """

    model_config = ConfigDict(frozen=True)

    tag: str
    number: str

    @classmethod
    def parse(cls, tag: str | None) -> ReleaseVersion:
        """Parse a release tag, raising ``ConfigError`` if absent or malformed."""
        if not tag or not tag.strip():
            raise ConfigError("No release tag given; a tag like 'v1.2.3' is required")
        tag = tag.strip()
        match = TAG_PATTERN.match(tag)
        if match is None:
            raise ConfigError(
                f"Malformed release tag {tag!r}; expected 'v' followed by dotted numbers"
            )
        return cls(tag=tag, number=match.group("number"))

    def __str__(self) -> str:
        return self.number
