"""Multi-Channel Publisher: pushes one release to every configured channel.

Channels are grouped into stage barriers from their ``depends_on`` edges.
Barriers run strictly in order; channels inside a barrier run concurrently
on a bounded pool.  Each channel follows the state machine::

    pending -> staged -> published | skipped (dry run) | failed
    pending -> skipped (unchanged) | failed

A failure in one channel is recorded in its outcome and never affects its
siblings.  A channel whose dependency did not reach ``published`` or
``skipped`` fails with a dependency reason and is not attempted.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from tagship.channels.base import Channel
from tagship.core.errors import ConfigError, TagshipError, describe_error
from tagship.models.channels import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ChannelOutcome,
    ChannelStatus,
    ChannelTransition,
    PublishReceipt,
    PublishReport,
)
from tagship.models.config import ChannelSpec
from tagship.models.manifests import ChannelManifest, PublishDecision

logger = logging.getLogger(__name__)


class InvalidTransitionError(TagshipError):
    """Raised when a requested channel state transition is not valid."""


class ChannelTracker:
    """Enforces the channel state machine and records every transition."""

    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        self._status = ChannelStatus.PENDING
        self._transitions: list[ChannelTransition] = []

    @property
    def status(self) -> ChannelStatus:
        return self._status

    @property
    def transitions(self) -> list[ChannelTransition]:
        return list(self._transitions)

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATES

    def transition(self, target: ChannelStatus, reason: str = "") -> ChannelTransition:
        allowed = VALID_TRANSITIONS.get(self._status, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self.channel_id} from {self._status.value} to "
                f"{target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )
        record = ChannelTransition(
            channel_id=self.channel_id,
            from_state=self._status,
            to_state=target,
            reason=reason,
        )
        self._transitions.append(record)
        self._status = target
        logger.debug("%s: %s -> %s %s", self.channel_id, record.from_state.value, target.value, reason)
        return record


@dataclass(frozen=True)
class PreparedChannel:
    """Result of a channel's preparation step.

    ``files`` maps the staged file name to its source path; each file is
    copied into the staging directory next to the manifest.
    """

    decision: PublishDecision
    manifest: ChannelManifest | None = None
    files: dict[str, Path] = field(default_factory=dict)


@dataclass(frozen=True)
class PublishJob:
    """A channel plus the deferred work that decides what to publish.

    ``prepare`` runs inside the channel's isolation boundary, so checksum,
    render and change-detection errors are scoped to this channel.
    """

    spec: ChannelSpec
    channel: Channel
    prepare: Callable[[], PreparedChannel]

    @property
    def channel_id(self) -> str:
        return self.spec.id


def compute_barriers(specs: Sequence[ChannelSpec]) -> list[list[ChannelSpec]]:
    """Group channels into stage barriers (Kahn layering).

    Each barrier holds every channel whose dependencies all sit in earlier
    barriers, in configured order.  Dependencies on channels outside
    *specs* are ignored, so a filtered run still orders what it selected.

    Raises ``ConfigError`` if the dependency graph has a cycle.
    """
    ids = [spec.id for spec in specs]
    selected = set(ids)
    prerequisites: dict[str, set[str]] = {
        spec.id: {dep for dep in spec.depends_on if dep in selected} for spec in specs
    }
    dependents: dict[str, list[str]] = {cid: [] for cid in ids}
    for spec in specs:
        for dep in prerequisites[spec.id]:
            dependents[dep].append(spec.id)

    in_degree = {cid: len(prereqs) for cid, prereqs in prerequisites.items()}
    by_id = {spec.id: spec for spec in specs}
    layer = deque(cid for cid in ids if in_degree[cid] == 0)
    barriers: list[list[ChannelSpec]] = []
    placed = 0

    while layer:
        current = sorted(layer, key=ids.index)
        layer.clear()
        barriers.append([by_id[cid] for cid in current])
        placed += len(current)
        for cid in current:
            for dependent in dependents[cid]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    layer.append(dependent)

    if placed != len(ids):
        cyclic = sorted(cid for cid, degree in in_degree.items() if degree > 0)
        raise ConfigError(f"Channel dependencies contain a cycle involving {cyclic}")
    return barriers


class MultiChannelPublisher:
    """Runs publish jobs barrier by barrier.

    Parameters
    ----------
    max_workers:
        Bound on concurrently publishing channels within one barrier.
    dry_run:
        Stage every channel but never publish; staged channels end as
        ``skipped``.
    work_dir:
        Parent directory for per-channel staging directories.  Defaults
        to the system temporary directory.
    """

    def __init__(
        self,
        *,
        max_workers: int = 4,
        dry_run: bool = False,
        work_dir: Path | None = None,
    ) -> None:
        self.max_workers = max(1, max_workers)
        self.dry_run = dry_run
        self.work_dir = Path(work_dir) if work_dir is not None else None

    def publish(self, jobs: Sequence[PublishJob]) -> PublishReport:
        """Publish every job and return outcomes in job order."""
        ids = [job.channel_id for job in jobs]
        duplicates = sorted({cid for cid in ids if ids.count(cid) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate channel ids in publish run: {duplicates}")

        by_id = {job.channel_id: job for job in jobs}
        barriers = compute_barriers([job.spec for job in jobs])
        outcomes: dict[str, ChannelOutcome] = {}

        for index, barrier in enumerate(barriers, start=1):
            logger.info(
                "Barrier %d/%d: %s",
                index,
                len(barriers),
                ", ".join(spec.id for spec in barrier),
            )
            runnable: list[PublishJob] = []
            for spec in barrier:
                blocked = [
                    dep for dep in spec.depends_on if dep in outcomes and not outcomes[dep].ok
                ]
                if blocked:
                    outcomes[spec.id] = self._dependency_failed(spec, blocked)
                else:
                    runnable.append(by_id[spec.id])
            if not runnable:
                continue

            workers = min(self.max_workers, len(runnable))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="publish") as executor:
                futures = {executor.submit(self.run_job, job): job for job in runnable}
                for future in as_completed(futures):
                    job = futures[future]
                    outcomes[job.channel_id] = future.result()

        report = PublishReport(outcomes=[outcomes[cid] for cid in ids])
        for outcome in report.outcomes:
            log = logger.error if outcome.status == ChannelStatus.FAILED else logger.info
            log("Channel %s: %s", outcome.channel_id, outcome.summary)
        return report

    def run_job(self, job: PublishJob) -> ChannelOutcome:
        """Run one channel to a terminal state.  Never raises."""
        tracker = ChannelTracker(job.channel_id)
        decision: PublishDecision | None = None
        manifest: ChannelManifest | None = None
        receipt: PublishReceipt | None = None
        error_type: str | None = None

        try:
            prepared = job.prepare()
            decision = prepared.decision
            manifest = prepared.manifest
            if not decision.should_publish:
                tracker.transition(ChannelStatus.SKIPPED, decision.reason)
            else:
                receipt = self._stage_and_publish(job, prepared, tracker)
        except Exception as exc:  # noqa: BLE001
            error_type = describe_error(exc)
            logger.error("Channel %s failed: %s: %s", job.channel_id, error_type, exc)
            if tracker.is_terminal:
                logger.warning(
                    "Channel %s already %s; error after completion not recorded",
                    job.channel_id,
                    tracker.status.value,
                )
                error_type = None
            else:
                tracker.transition(ChannelStatus.FAILED, str(exc))

        last = tracker.transitions[-1]
        return ChannelOutcome(
            channel_id=job.channel_id,
            status=tracker.status,
            reason=last.reason,
            error_type=error_type,
            required=job.spec.required,
            decision=decision,
            receipt=receipt,
            manifest_version=manifest.version if manifest is not None else None,
            transitions=tracker.transitions,
        )

    def _stage_and_publish(
        self,
        job: PublishJob,
        prepared: PreparedChannel,
        tracker: ChannelTracker,
    ) -> PublishReceipt | None:
        with self._staging_dir(job.channel_id) as workdir:
            staged_files: dict[str, Path] = {}
            if prepared.manifest is not None:
                (workdir / prepared.manifest.filename).write_text(
                    prepared.manifest.text, encoding="utf-8"
                )
            for name, source in prepared.files.items():
                target = workdir / name
                shutil.copy2(source, target)
                staged_files[name] = target

            package = job.channel.stage(prepared.manifest, workdir, staged_files)
            tracker.transition(ChannelStatus.STAGED, str(package))

            if self.dry_run:
                tracker.transition(ChannelStatus.SKIPPED, "dry run")
                return None

            receipt = job.channel.publish(package)
            tracker.transition(ChannelStatus.PUBLISHED, receipt.location)
            return receipt

    @contextmanager
    def _staging_dir(self, channel_id: str) -> Iterator[Path]:
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(
            prefix=f"tagship-{channel_id}-",
            dir=self.work_dir,
            ignore_cleanup_errors=True,
        ) as tmp:
            yield Path(tmp)

    @staticmethod
    def _dependency_failed(spec: ChannelSpec, blocked: list[str]) -> ChannelOutcome:
        tracker = ChannelTracker(spec.id)
        reason = f"dependency not published: {', '.join(blocked)}"
        tracker.transition(ChannelStatus.FAILED, reason)
        logger.error("Channel %s not attempted: %s", spec.id, reason)
        return ChannelOutcome(
            channel_id=spec.id,
            status=ChannelStatus.FAILED,
            reason=reason,
            error_type="DependencyFailed",
            required=spec.required,
            transitions=tracker.transitions,
        )
