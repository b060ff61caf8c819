"""Shared test fixtures for tagship."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from tagship.config import ReleaseSettings
from tagship.core.pipeline import ReleasePipeline
from tagship.models.config import ReleaseConfig, load_release_config
from tagship.models.versioning import ReleaseVersion

from fakes import (
    ARTIFACT_BODIES,
    FakeChannel,
    FakeFetcher,
    FakeToolchain,
    RecordingRunner,
    seed_static_cache,
    write_project,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def version() -> ReleaseVersion:
    return ReleaseVersion.parse("v2.0.0")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def config_path(project_dir: Path) -> Path:
    return write_project(project_dir)


@pytest.fixture
def release_config(config_path: Path) -> ReleaseConfig:
    return load_release_config(config_path)


@pytest.fixture
def settings(tmp_path: Path) -> ReleaseSettings:
    return ReleaseSettings(
        _env_file=None,
        work_dir=tmp_path / "work",
        fetch_retries=2,
        fetch_backoff_seconds=0.0,
        max_publish_workers=4,
    )


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(dict(ARTIFACT_BODIES))


@pytest.fixture
def toolchain(tmp_path: Path) -> FakeToolchain:
    return FakeToolchain(tmp_path / "cargo-target")


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        return None

    return _sleep


@pytest.fixture
def make_pipeline(
    settings: ReleaseSettings,
    toolchain: FakeToolchain,
    fetcher: FakeFetcher,
    runner: RecordingRunner,
    no_sleep: Callable[[float], None],
) -> Callable[..., ReleasePipeline]:
    """Factory fixture: a pipeline wired to fakes, with channels from *channels*."""
    seed_static_cache(settings)

    def _factory(config: ReleaseConfig, channels: dict[str, Any] | None = None) -> ReleasePipeline:
        channels = channels if channels is not None else {}

        def _channel_factory(spec, context):
            if spec.id not in channels:
                channels[spec.id] = FakeChannel(spec.id)
            return channels[spec.id]

        return ReleasePipeline(
            config,
            settings=settings,
            toolchain=toolchain,
            fetcher=fetcher,
            runner=runner,
            channel_factory=_channel_factory,
            sleep=no_sleep,
        )

    return _factory
