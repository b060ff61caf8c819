"""Change Detector: decides whether a tracked-HEAD channel needs a publish.

A channel that tracks source-control HEAD gets a new version string on
every commit, even when nothing it packages has changed.  To avoid
republishing on every run, version-bearing lines are masked out of both
the freshly rendered manifest and the currently published one, and the
SHA-256 digests of the masked texts are compared.

Deciding never fails: if the remote manifest cannot be read, the channel
is published.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from tagship.core.errors import FetchError, NotFoundError
from tagship.core.hasher import masked_digest
from tagship.models.config import ChannelSpec
from tagship.models.manifests import ChannelManifest, PublishAction, PublishDecision

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteManifestStore(Protocol):
    """Source of the manifest a channel currently serves."""

    def fetch_current_manifest(self, channel_id: str) -> str:
        """Return the published manifest text.

        Raises ``NotFoundError`` when nothing has been published yet.
        """
        ...


class ChangeDetector:
    """Compares masked local and remote manifests per channel.

    Parameters
    ----------
    store:
        Where the currently published manifest is read from.
    """

    def __init__(self, store: RemoteManifestStore) -> None:
        self._store = store

    def decide(self, manifest: ChannelManifest, spec: ChannelSpec) -> PublishDecision:
        channel_id = manifest.channel_id
        if not spec.tracks_head:
            return PublishDecision.publish(channel_id, "version-pinned channel")

        local = masked_digest(manifest.text, spec.mask_patterns)
        try:
            remote_text = self._store.fetch_current_manifest(channel_id)
        except NotFoundError:
            logger.info("%s: no published manifest yet, publishing", channel_id)
            return PublishDecision.publish(
                channel_id, "no published manifest", local_digest=local
            )
        except FetchError as exc:
            logger.warning("%s: could not read published manifest (%s), publishing", channel_id, exc)
            return PublishDecision.publish(
                channel_id, f"published manifest unavailable: {exc}", local_digest=local
            )

        remote = masked_digest(remote_text, spec.mask_patterns)
        if local == remote:
            logger.info("%s: manifest unchanged apart from version, skipping", channel_id)
            return PublishDecision(
                channel_id=channel_id,
                action=PublishAction.SKIP_UNCHANGED,
                reason="manifest unchanged apart from version fields",
                local_digest=local,
                remote_digest=remote,
            )
        return PublishDecision.publish(
            channel_id, "manifest changed", local_digest=local, remote_digest=remote
        )
