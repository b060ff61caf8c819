"""Tests for the MultiChannelPublisher: barriers, isolation, state machine."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from tagship.core.errors import (
    ConfigError,
    EmptyArtifactError,
    PushError,
    ResolutionError,
    ValidationError,
)
from tagship.core.publisher import (
    ChannelTracker,
    InvalidTransitionError,
    MultiChannelPublisher,
    PreparedChannel,
    PublishJob,
    compute_barriers,
)
from tagship.models.channels import ChannelStatus
from tagship.models.config import ChannelSpec
from tagship.models.manifests import ChannelManifest, PublishAction, PublishDecision

from fakes import FakeChannel


def _manifest(channel_id: str) -> ChannelManifest:
    return ChannelManifest(
        channel_id=channel_id, filename="PKGBUILD", version="2.0.0", text="pkgver=2.0.0\n"
    )


def _publish(channel_id: str) -> PreparedChannel:
    return PreparedChannel(
        decision=PublishDecision.publish(channel_id, "version-pinned channel"),
        manifest=_manifest(channel_id),
    )


def _job(
    channel_id: str,
    *,
    depends_on: tuple[str, ...] = (),
    channel: FakeChannel | None = None,
    prepare=None,
    required: bool = True,
) -> PublishJob:
    spec = ChannelSpec(id=channel_id, kind="fake", depends_on=depends_on, required=required)
    return PublishJob(
        spec=spec,
        channel=channel or FakeChannel(channel_id),
        prepare=prepare or (lambda: _publish(channel_id)),
    )


def _specs(*edges: tuple[str, tuple[str, ...]]) -> list[ChannelSpec]:
    return [ChannelSpec(id=cid, kind="fake", depends_on=deps) for cid, deps in edges]


class TestComputeBarriers:
    def test_layers_in_configured_order(self):
        specs = _specs(
            ("aur", ("github",)),
            ("github", ()),
            ("crates", ()),
            ("aur-bin", ("github",)),
            ("aur-git", ("aur",)),
        )
        barriers = [[spec.id for spec in barrier] for barrier in compute_barriers(specs)]
        assert barriers == [["github", "crates"], ["aur", "aur-bin"], ["aur-git"]]

    def test_independent_channels_share_one_barrier(self):
        specs = _specs(("a", ()), ("b", ()), ("c", ()))
        assert len(compute_barriers(specs)) == 1

    def test_cycle_is_config_error(self):
        specs = _specs(("a", ("b",)), ("b", ("a",)), ("c", ()))
        with pytest.raises(ConfigError, match="cycle"):
            compute_barriers(specs)

    def test_dependencies_outside_selection_ignored(self):
        specs = _specs(("aur", ("github",)))
        assert [[s.id for s in b] for b in compute_barriers(specs)] == [["aur"]]

    def test_empty(self):
        assert compute_barriers([]) == []


class TestChannelTracker:
    def test_happy_path(self):
        tracker = ChannelTracker("aur")
        tracker.transition(ChannelStatus.STAGED)
        tracker.transition(ChannelStatus.PUBLISHED)
        assert tracker.status == ChannelStatus.PUBLISHED
        assert [(t.from_state, t.to_state) for t in tracker.transitions] == [
            (ChannelStatus.PENDING, ChannelStatus.STAGED),
            (ChannelStatus.STAGED, ChannelStatus.PUBLISHED),
        ]

    def test_cannot_publish_without_staging(self):
        with pytest.raises(InvalidTransitionError):
            ChannelTracker("aur").transition(ChannelStatus.PUBLISHED)

    @pytest.mark.parametrize("terminal", [ChannelStatus.SKIPPED, ChannelStatus.FAILED])
    def test_terminal_exactly_once(self, terminal: ChannelStatus):
        tracker = ChannelTracker("aur")
        tracker.transition(terminal)
        assert tracker.is_terminal
        with pytest.raises(InvalidTransitionError):
            tracker.transition(ChannelStatus.FAILED)


class TestMultiChannelPublisher:
    def test_publishes_all(self, tmp_path: Path):
        channels = {cid: FakeChannel(cid) for cid in ("aur", "aur-bin")}
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [_job(cid, channel=channel) for cid, channel in channels.items()]
        )
        assert report.succeeded
        assert report.statuses() == {"aur": ChannelStatus.PUBLISHED, "aur-bin": ChannelStatus.PUBLISHED}
        assert report.get("aur").receipt.location == "fake://aur"
        assert report.get("aur").manifest_version == "2.0.0"

    def test_manifest_and_files_staged_then_cleaned(self, tmp_path: Path):
        binary = tmp_path / "ffsend-x86_64-unknown-linux-musl"
        binary.write_bytes(b"static")
        seen: dict[str, str] = {}

        class Inspecting(FakeChannel):
            def stage(self, manifest, workdir, files):
                seen["manifest"] = (workdir / "PKGBUILD").read_text()
                return super().stage(manifest, workdir, files)

        channel = Inspecting("github")
        prepared = PreparedChannel(
            decision=PublishDecision.publish("github", "pinned"),
            manifest=_manifest("github"),
            files={"ffsend-v2.0.0-linux-x64-static": binary},
        )
        report = MultiChannelPublisher(work_dir=tmp_path / "staging").publish(
            [_job("github", channel=channel, prepare=lambda: prepared)]
        )
        assert report.get("github").status == ChannelStatus.PUBLISHED
        assert seen["manifest"] == "pkgver=2.0.0\n"
        assert channel.staged_files == [{"ffsend-v2.0.0-linux-x64-static": b"static"}]
        assert not channel.staged_dirs[0].exists()

    def test_staging_cleaned_after_failure(self, tmp_path: Path):
        channel = FakeChannel("aur", publish_error=PushError("git push failed", transport_error="denied"))
        MultiChannelPublisher(work_dir=tmp_path).publish([_job("aur", channel=channel)])
        assert not channel.staged_dirs[0].exists()

    def test_failure_is_isolated(self, tmp_path: Path):
        broken = FakeChannel("aur", stage_error=ValidationError("makepkg failed"))
        healthy = FakeChannel("aur-bin")
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [_job("aur", channel=broken), _job("aur-bin", channel=healthy)]
        )
        assert report.get("aur").status == ChannelStatus.FAILED
        assert report.get("aur").summary == "failed: ValidationError: makepkg failed"
        assert report.get("aur-bin").status == ChannelStatus.PUBLISHED
        assert healthy.published
        assert not report.succeeded

    def test_push_error_keeps_transport_error(self, tmp_path: Path):
        error = PushError("git push failed", transport_error="fatal: Could not read from remote repository.")
        channel = FakeChannel("aur", publish_error=error)
        report = MultiChannelPublisher(work_dir=tmp_path).publish([_job("aur", channel=channel)])
        outcome = report.get("aur")
        assert outcome.error_type == "PushError"
        assert "Could not read from remote repository" in outcome.reason
        assert [t.to_state for t in outcome.transitions] == [ChannelStatus.STAGED, ChannelStatus.FAILED]

    def test_prepare_error_fails_before_staging(self, tmp_path: Path):
        channel = FakeChannel("aur-bin")

        def prepare():
            raise ResolutionError("binary", EmptyArtifactError("https://example.org/bin"), attempts=3)

        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [_job("aur-bin", channel=channel, prepare=prepare)]
        )
        outcome = report.get("aur-bin")
        assert outcome.status == ChannelStatus.FAILED
        assert outcome.summary.startswith("failed: EmptyArtifactError")
        assert channel.staged == []
        assert [t.from_state for t in outcome.transitions] == [ChannelStatus.PENDING]

    def test_skip_unchanged_never_stages(self, tmp_path: Path):
        channel = FakeChannel("aur-git")
        decision = PublishDecision(
            channel_id="aur-git", action=PublishAction.SKIP_UNCHANGED, reason="unchanged"
        )
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [
                _job(
                    "aur-git",
                    channel=channel,
                    prepare=lambda: PreparedChannel(decision=decision, manifest=_manifest("aur-git")),
                )
            ]
        )
        outcome = report.get("aur-git")
        assert outcome.status == ChannelStatus.SKIPPED
        assert outcome.summary == "skipped-unchanged"
        assert channel.staged == []
        assert channel.published == []
        assert report.succeeded

    def test_dry_run_stages_but_never_publishes(self, tmp_path: Path):
        channel = FakeChannel("aur")
        report = MultiChannelPublisher(dry_run=True, work_dir=tmp_path).publish([_job("aur", channel=channel)])
        outcome = report.get("aur")
        assert outcome.status == ChannelStatus.SKIPPED
        assert outcome.summary == "skipped: dry run"
        assert len(channel.staged) == 1
        assert channel.published == []

    def test_dependency_failure_blocks_dependents(self, tmp_path: Path):
        github = FakeChannel("github", publish_error=RuntimeError("HTTP 502 from uploads.github.com"))
        aur = FakeChannel("aur")
        crates = FakeChannel("crates")
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [
                _job("github", channel=github),
                _job("aur", channel=aur, depends_on=("github",)),
                _job("crates", channel=crates),
            ]
        )
        assert report.get("github").status == ChannelStatus.FAILED
        assert report.get("aur").status == ChannelStatus.FAILED
        assert "github" in report.get("aur").reason
        assert aur.staged == []
        assert report.get("crates").status == ChannelStatus.PUBLISHED

    def test_skipped_dependency_unblocks_dependents(self, tmp_path: Path):
        decision = PublishDecision(channel_id="github", action=PublishAction.SKIP_UNCHANGED, reason="same")
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [
                _job("github", prepare=lambda: PreparedChannel(decision=decision)),
                _job("aur", depends_on=("github",)),
            ]
        )
        assert report.get("aur").status == ChannelStatus.PUBLISHED

    def test_barriers_run_sequentially(self, tmp_path: Path):
        events: list[str] = []
        lock = threading.Lock()

        class Ordered(FakeChannel):
            def publish(self, package_path):
                with lock:
                    events.append(f"publish:{self.channel_id}")
                return super().publish(package_path)

            def stage(self, manifest, workdir, files):
                with lock:
                    events.append(f"stage:{self.channel_id}")
                return super().stage(manifest, workdir, files)

        MultiChannelPublisher(max_workers=4, work_dir=tmp_path).publish(
            [
                _job("aur", channel=Ordered("aur"), depends_on=("github",)),
                _job("github", channel=Ordered("github")),
            ]
        )
        assert events.index("publish:github") < events.index("stage:aur")

    def test_same_barrier_runs_concurrently(self, tmp_path: Path):
        first_started = threading.Event()

        class Waiting(FakeChannel):
            def stage(self, manifest, workdir, files):
                assert first_started.wait(timeout=5), "sibling channel never started"
                return super().stage(manifest, workdir, files)

        class Signalling(FakeChannel):
            def stage(self, manifest, workdir, files):
                first_started.set()
                return super().stage(manifest, workdir, files)

        report = MultiChannelPublisher(max_workers=2, work_dir=tmp_path).publish(
            [_job("aur", channel=Waiting("aur")), _job("aur-bin", channel=Signalling("aur-bin"))]
        )
        assert report.succeeded

    def test_outcomes_in_job_order(self, tmp_path: Path):
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [_job("z", depends_on=("a",)), _job("m"), _job("a")]
        )
        assert [o.channel_id for o in report.outcomes] == ["z", "m", "a"]

    def test_optional_channel_failure_does_not_fail_report(self, tmp_path: Path):
        channel = FakeChannel("snap", publish_error=RuntimeError("store down"))
        report = MultiChannelPublisher(work_dir=tmp_path).publish(
            [_job("snap", channel=channel, required=False), _job("aur")]
        )
        assert report.get("snap").status == ChannelStatus.FAILED
        assert report.succeeded

    def test_duplicate_ids_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Duplicate"):
            MultiChannelPublisher(work_dir=tmp_path).publish([_job("aur"), _job("aur")])
