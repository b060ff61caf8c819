"""Rendered channel manifests and publish decisions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChannelManifest(BaseModel):
    """A rendered package definition for one channel or channel variant.

    Owned by the run that rendered it and discarded after publish.
    """

    model_config = ConfigDict(frozen=True)

    channel_id: str
    filename: str
    version: str
    sources: dict[str, str] = Field(default_factory=dict)  # artifact name -> URL
    digests: dict[str, str] = Field(default_factory=dict)  # artifact name -> sha256
    text: str


class PublishAction(str, Enum):
    PUBLISH = "publish"
    SKIP_UNCHANGED = "skip-unchanged"


class PublishDecision(BaseModel):
    """Whether a channel needs a new publish, and why."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    action: PublishAction
    reason: str
    local_digest: str | None = None
    remote_digest: str | None = None

    @classmethod
    def publish(cls, channel_id: str, reason: str, **digests: str | None) -> PublishDecision:
        return cls(channel_id=channel_id, action=PublishAction.PUBLISH, reason=reason, **digests)

    @property
    def should_publish(self) -> bool:
        return self.action == PublishAction.PUBLISH
