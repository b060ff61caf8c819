"""tagship distribution channels: registry mapping channel kind to class.

Usage::

    from tagship.channels import ChannelContext, build_channel

    context = ChannelContext(config=config, version=version, fetcher=fetcher)
    channel = build_channel(config.channel("aur-bin"), context)
"""

from __future__ import annotations

from tagship.channels.aur import AurChannel
from tagship.channels.base import Channel, ChannelContext, CommandChannel
from tagship.channels.crates import CratesChannel
from tagship.channels.docker import DockerChannel
from tagship.channels.git import GitRepository
from tagship.channels.github import GitHubReleaseChannel
from tagship.channels.snap import SnapChannel
from tagship.core.errors import ConfigError
from tagship.models.config import ChannelSpec

# ---------------------------------------------------------------------------
# Channel registry: kind -> channel class
# ---------------------------------------------------------------------------

CHANNEL_REGISTRY: dict[str, type[CommandChannel]] = {
    "crates": CratesChannel,
    "github": GitHubReleaseChannel,
    "docker": DockerChannel,
    "snap": SnapChannel,
    "aur": AurChannel,
}


def build_channel(spec: ChannelSpec, context: ChannelContext) -> Channel:
    """Instantiate the channel class registered for ``spec.kind``.

    Raises ``ConfigError`` if the kind is not registered.
    """
    try:
        cls = CHANNEL_REGISTRY[spec.kind]
    except KeyError:
        raise ConfigError(
            f"Unknown channel kind {spec.kind!r} for channel {spec.id!r}. "
            f"Registered kinds: {sorted(CHANNEL_REGISTRY)}"
        ) from None
    return cls(spec, context)


__all__ = [
    # Base
    "Channel",
    "ChannelContext",
    "CommandChannel",
    "GitRepository",
    # Registry
    "CHANNEL_REGISTRY",
    "build_channel",
    # Concrete channels
    "AurChannel",
    "CratesChannel",
    "DockerChannel",
    "GitHubReleaseChannel",
    "SnapChannel",
]
