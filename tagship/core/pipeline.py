"""Release pipeline: the central coordinator for a tagship run.

The ReleasePipeline wires together the TargetMatrixRunner, the Artifact
Resolver, the ChecksumService, the Manifest Templater, the ChangeDetector
and the MultiChannelPublisher into one release run::

    parse tag -> build matrix -> resolve artifacts -> per channel:
        (checksum -> render -> decide) -> stage -> publish

Configuration problems surface as ``ConfigError`` before anything is
built.  A failed matrix aborts the run before any channel is attempted.
Everything after that is channel-scoped and ends up in the report.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from functools import partial
from pathlib import Path

from tagship.channels import Channel, ChannelContext, build_channel
from tagship.config import ReleaseSettings
from tagship.core.change_detector import ChangeDetector, RemoteManifestStore
from tagship.core.checksums import ChecksumService
from tagship.core.errors import ConfigError
from tagship.core.fetch import Fetcher, HttpFetcher
from tagship.core.matrix import BuildToolchain, CargoToolchain, StaticDependencyCache, TargetMatrixRunner
from tagship.core.process import CommandRunner, run_command
from tagship.core.publisher import MultiChannelPublisher, PreparedChannel, PublishJob, compute_barriers
from tagship.core.resolver import resolve_artifacts
from tagship.core.templater import build_substitutions, render
from tagship.models.artifacts import Artifact
from tagship.models.build import MatrixResult
from tagship.models.channels import PublishReport
from tagship.models.config import ChannelSpec, ReleaseConfig
from tagship.models.manifests import ChannelManifest, PublishDecision
from tagship.models.reports import PipelineReport
from tagship.models.versioning import ReleaseVersion

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[ChannelSpec, ChannelContext], Channel]


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"ts-{ts}-{uuid.uuid4().hex[:3]}"


class ReleasePipeline:
    """Central release coordinator.

    Parameters
    ----------
    config:
        The project's release configuration.
    settings:
        Runtime settings.  Uses defaults (and ``TAGSHIP_*`` env) if not provided.
    toolchain:
        Build toolchain; defaults to cargo in the project root.
    fetcher:
        Artifact fetcher; defaults to an HTTP fetcher.
    runner:
        Command runner handed to channels and the default toolchain.
    channel_factory:
        Builds a channel from its spec; defaults to the kind registry.
    sleep:
        Backoff sleep for fetch retries, injectable for tests.
    """

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        settings: ReleaseSettings | None = None,
        toolchain: BuildToolchain | None = None,
        fetcher: Fetcher | None = None,
        runner: CommandRunner = run_command,
        channel_factory: ChannelFactory = build_channel,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.settings = settings or ReleaseSettings()
        self.runner = runner
        self.toolchain = toolchain or CargoToolchain(config.root, config.app, runner=runner)
        self.fetcher = fetcher or HttpFetcher(timeout=self.settings.fetch_timeout_seconds)
        self._channel_factory = channel_factory
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(
        self,
        tag: str | None,
        *,
        revision: str | None = None,
        dry_run: bool | None = None,
        only: Sequence[str] | None = None,
    ) -> PipelineReport:
        """Run a complete release for *tag*.

        Parameters
        ----------
        tag:
            The triggering tag, e.g. ``v2.0.0``.
        revision:
            Source revision for tracked-HEAD channels; falls back to
            ``settings.revision``.
        dry_run:
            Stage but never publish; falls back to ``settings.dry_run``.
        only:
            Restrict publication to these channel ids.
        """
        version = ReleaseVersion.parse(tag)
        revision = revision or self.settings.revision
        dry_run = self.settings.dry_run if dry_run is None else dry_run
        specs = self.select_channels(only)
        channels = self.build_channels(specs, version)

        run_id = new_run_id()
        started_at = datetime.now(timezone.utc)
        logger.info(
            "Release run %s: %s (%d matrix entries, %d channels%s)",
            run_id,
            version.tag,
            len(self.config.matrix),
            len(specs),
            ", dry run" if dry_run else "",
        )

        matrix = self.build()
        if not matrix.succeeded:
            failed = ", ".join(result.target.label for result in matrix.failed)
            logger.error("Release %s aborted: build matrix failed (%s)", version.tag, failed)
            return PipelineReport(
                run_id=run_id,
                version=version,
                matrix=matrix,
                aborted=True,
                abort_reason=f"build matrix failed: {failed}",
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )

        publish = self.publish(
            version,
            channels,
            binaries=matrix.binaries(),
            revision=revision,
            dry_run=dry_run,
        )
        report = PipelineReport(
            run_id=run_id,
            version=version,
            matrix=matrix,
            publish=publish,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        if report.succeeded:
            logger.info("Release %s complete", version.tag)
        else:
            logger.error(
                "Release %s finished with %d failed channel(s)", version.tag, len(publish.failed)
            )
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def build(self) -> MatrixResult:
        """Run the build matrix only."""
        static_cache = None
        if self.config.static_dependency is not None:
            static_cache = StaticDependencyCache(
                self.config.static_dependency,
                self.settings.cache_dir,
                fetcher=self.fetcher,
                runner=self.runner,
            )
        runner = TargetMatrixRunner(
            self.toolchain,
            app=self.config.app,
            output_dir=self.settings.output_dir,
            max_workers=self.settings.max_build_workers,
            static_cache=static_cache,
        )
        return runner.run(self.config.matrix)

    def publish(
        self,
        version: ReleaseVersion,
        channels: dict[str, Channel],
        *,
        binaries: dict[str, Path] | None = None,
        revision: str | None = None,
        dry_run: bool = False,
    ) -> PublishReport:
        """Publish to *channels* (built by ``build_channels``)."""
        artifacts = {artifact.name: artifact for artifact in self.resolve(version)}
        checksums = self.new_checksum_service()
        jobs = [
            PublishJob(
                spec=self.config.channel(channel_id),
                channel=channel,
                prepare=partial(
                    self._prepare,
                    self.config.channel(channel_id),
                    channel,
                    version,
                    artifacts,
                    checksums,
                    binaries or {},
                    revision,
                ),
            )
            for channel_id, channel in channels.items()
        ]
        publisher = MultiChannelPublisher(
            max_workers=self.settings.max_publish_workers,
            dry_run=dry_run,
            work_dir=self.settings.staging_dir,
        )
        return publisher.publish(jobs)

    def resolve(self, version: ReleaseVersion) -> tuple[Artifact, ...]:
        return resolve_artifacts(
            version, self.config.artifacts, self.config.fields, app=self.config.app
        )

    def checksums(self, tag: str | None) -> list[Artifact]:
        """Resolve and digest every configured artifact for *tag*."""
        version = ReleaseVersion.parse(tag)
        return self.new_checksum_service().checksum_all(self.resolve(version))

    def render(self, tag: str | None, channel_id: str, *, revision: str | None = None) -> ChannelManifest:
        """Render one channel's manifest for *tag* without publishing."""
        version = ReleaseVersion.parse(tag)
        spec = self.config.channel(channel_id)
        if spec.template is None:
            raise ConfigError(f"Channel {channel_id!r} has no manifest template")
        artifacts = {artifact.name: artifact for artifact in self.resolve(version)}
        digested = self.new_checksum_service().checksum_all(
            [artifacts[name] for name in spec.artifacts]
        )
        return self.render_manifest(spec, version, digested, revision or self.settings.revision)

    def plan(self, only: Sequence[str] | None = None) -> list[list[ChannelSpec]]:
        """Return the channel stage barriers for the selected channels."""
        return compute_barriers(self.select_channels(only))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def new_checksum_service(self) -> ChecksumService:
        """A fresh service; digests are never shared between runs."""
        return ChecksumService(
            self.fetcher,
            retries=self.settings.fetch_retries,
            backoff_seconds=self.settings.fetch_backoff_seconds,
            max_workers=self.settings.max_fetch_workers,
            sleep=self._sleep,
        )

    def select_channels(self, only: Sequence[str] | None = None) -> list[ChannelSpec]:
        if not only:
            return list(self.config.channels)
        wanted = set(only)
        unknown = sorted(wanted - {spec.id for spec in self.config.channels})
        if unknown:
            raise ConfigError(
                f"Unknown channel(s) {unknown}. "
                f"Configured: {[spec.id for spec in self.config.channels]}"
            )
        return [spec for spec in self.config.channels if spec.id in wanted]

    def build_channels(self, specs: Sequence[ChannelSpec], version: ReleaseVersion) -> dict[str, Channel]:
        """Instantiate channels and check their setup before anything is built."""
        compute_barriers(specs)
        context = ChannelContext(
            config=self.config,
            version=version,
            runner=self.runner,
            fetcher=self.fetcher,
        )
        channels: dict[str, Channel] = {}
        for spec in specs:
            template = self.config.template_path(spec)
            if template is not None and not template.is_file():
                raise ConfigError(f"Template for channel {spec.id!r} not found: {template}")
            channel = self._channel_factory(spec, context)
            if spec.tracks_head:
                if template is None:
                    raise ConfigError(f"Channel {spec.id!r} tracks HEAD but has no manifest template")
                if not isinstance(channel, RemoteManifestStore):
                    raise ConfigError(
                        f"Channel {spec.id!r} tracks HEAD but its kind {spec.kind!r} "
                        "cannot read the published manifest"
                    )
            channels[spec.id] = channel
        return channels

    def render_manifest(
        self,
        spec: ChannelSpec,
        version: ReleaseVersion,
        artifacts: Sequence[Artifact],
        revision: str | None,
    ) -> ChannelManifest:
        template = self.config.template_path(spec)
        if template is None:
            raise ConfigError(f"Channel {spec.id!r} has no manifest template")
        substitutions = build_substitutions(
            version,
            artifacts,
            app=self.config.app,
            fields={**self.config.fields, **spec.fields},
            version_format=spec.version_format,
            revision=revision,
        )
        return render(
            template.read_text(encoding="utf-8"),
            substitutions,
            channel_id=spec.id,
            filename=spec.manifest_filename or template.name,
            artifacts=artifacts,
        )

    def _binary_files(
        self,
        spec: ChannelSpec,
        binaries: dict[str, Path],
        version: ReleaseVersion,
    ) -> dict[str, Path]:
        files: dict[str, Path] = {}
        for triple, name in spec.binaries.items():
            path = binaries.get(triple)
            if path is None:
                raise ConfigError(f"Channel {spec.id!r} needs a binary for {triple}, none was built")
            values = {
                **self.config.fields,
                "app": self.config.app,
                "tag": version.tag,
                "version": version.number,
                "target": triple,
            }
            staged_name = name.format(**values)
            files[staged_name] = path
        return files

    def _prepare(
        self,
        spec: ChannelSpec,
        channel: Channel,
        version: ReleaseVersion,
        artifacts: dict[str, Artifact],
        checksums: ChecksumService,
        binaries: dict[str, Path],
        revision: str | None,
    ) -> PreparedChannel:
        files = self._binary_files(spec, binaries, version)
        if spec.template is None:
            return PreparedChannel(
                decision=PublishDecision.publish(spec.id, "no manifest"),
                files=files,
            )

        digested = checksums.checksum_all([artifacts[name] for name in spec.artifacts])
        manifest = self.render_manifest(spec, version, digested, revision)
        if isinstance(channel, RemoteManifestStore):
            decision = ChangeDetector(channel).decide(manifest, spec)
        else:
            decision = PublishDecision.publish(spec.id, "version-pinned channel")
        return PreparedChannel(decision=decision, manifest=manifest, files=files)
