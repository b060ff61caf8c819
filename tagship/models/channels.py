"""Channel publish state machine models.

Every channel moves through::

    pending -> staged -> published | skipped | failed
    pending -> skipped | failed

Terminal states have no outgoing transitions, so each run records a
terminal status per channel exactly once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tagship.models.manifests import PublishDecision


class ChannelStatus(str, Enum):
    PENDING = "pending"
    STAGED = "staged"
    PUBLISHED = "published"
    SKIPPED = "skipped"
    FAILED = "failed"


VALID_TRANSITIONS: dict[ChannelStatus, set[ChannelStatus]] = {
    ChannelStatus.PENDING: {ChannelStatus.STAGED, ChannelStatus.SKIPPED, ChannelStatus.FAILED},
    ChannelStatus.STAGED: {ChannelStatus.PUBLISHED, ChannelStatus.SKIPPED, ChannelStatus.FAILED},
    ChannelStatus.PUBLISHED: set(),  # terminal
    ChannelStatus.SKIPPED: set(),  # terminal
    ChannelStatus.FAILED: set(),  # terminal
}

TERMINAL_STATES: frozenset[ChannelStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


class ChannelTransition(BaseModel):
    """A single recorded state change of one channel."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    from_state: ChannelStatus
    to_state: ChannelStatus
    reason: str = ""
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PublishReceipt(BaseModel):
    """What a channel's remote store accepted."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    location: str = ""  # URL, image reference or pushed commit
    details: dict[str, Any] = Field(default_factory=dict)


class ChannelOutcome(BaseModel):
    """Terminal result for one channel in one run."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    status: ChannelStatus
    reason: str = ""
    error_type: str | None = None
    required: bool = True
    decision: PublishDecision | None = None
    receipt: PublishReceipt | None = None
    manifest_version: str | None = None
    transitions: list[ChannelTransition] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (ChannelStatus.PUBLISHED, ChannelStatus.SKIPPED)

    @property
    def summary(self) -> str:
        """One-line status: ``published``, ``skipped-unchanged`` or ``failed: <reason>``."""
        if self.status == ChannelStatus.FAILED:
            if self.error_type:
                return f"failed: {self.error_type}: {self.reason}"
            return f"failed: {self.reason}"
        if self.status == ChannelStatus.SKIPPED:
            if self.decision is not None and not self.decision.should_publish:
                return "skipped-unchanged"
            return f"skipped: {self.reason}" if self.reason else "skipped"
        return self.status.value


class PublishReport(BaseModel):
    """Per-channel outcomes in configured channel order."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[ChannelOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True when every required channel reached published or skipped."""
        return all(outcome.ok for outcome in self.outcomes if outcome.required)

    @property
    def failed(self) -> list[ChannelOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == ChannelStatus.FAILED]

    def get(self, channel_id: str) -> ChannelOutcome:
        for outcome in self.outcomes:
            if outcome.channel_id == channel_id:
                return outcome
        raise KeyError(channel_id)

    def statuses(self) -> dict[str, ChannelStatus]:
        return {outcome.channel_id: outcome.status for outcome in self.outcomes}
