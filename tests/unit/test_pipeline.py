"""Tests for ReleasePipeline phases and setup checks."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from tagship.core.errors import ConfigError, ResolutionError
from tagship.core.hasher import sha256_hex
from tagship.core.pipeline import ReleasePipeline, new_run_id
from tagship.models.config import ReleaseConfig, load_release_config

from fakes import ARTIFACT_BODIES, RELEASE_BASE, FakeChannel, FakeTrackedChannel, write_project

BINARY_URL = f"{RELEASE_BASE}/v2.0.0/ffsend-v2.0.0-linux-x64-static"


class TestChannelSelection:
    def test_all_channels_by_default(self, make_pipeline, release_config):
        pipeline = make_pipeline(release_config)
        assert [spec.id for spec in pipeline.select_channels()] == ["github", "aur", "aur-bin"]

    def test_only_keeps_configured_order(self, make_pipeline, release_config):
        pipeline = make_pipeline(release_config)
        assert [spec.id for spec in pipeline.select_channels(["aur-bin", "github"])] == ["github", "aur-bin"]

    def test_unknown_channel(self, make_pipeline, release_config):
        with pytest.raises(ConfigError, match="homebrew"):
            make_pipeline(release_config).select_channels(["homebrew"])

    def test_plan_barriers(self, make_pipeline, release_config):
        barriers = make_pipeline(release_config).plan()
        assert [[spec.id for spec in barrier] for barrier in barriers] == [["github"], ["aur", "aur-bin"]]


class TestBuildChannels:
    def test_missing_template_is_config_error(self, make_pipeline, release_config, project_dir, version):
        (project_dir / "pkg/aur/ffsend-bin/PKGBUILD.in").unlink()
        pipeline = make_pipeline(release_config)
        with pytest.raises(ConfigError, match="not found"):
            pipeline.build_channels(pipeline.select_channels(), version)

    def test_tracked_channel_must_read_remote(self, make_pipeline, project_dir, version):
        config = load_release_config(write_project(project_dir, tracked=True))
        pipeline = make_pipeline(config, {"aur-git": FakeChannel("aur-git")})
        with pytest.raises(ConfigError, match="cannot read the published manifest"):
            pipeline.build_channels(pipeline.select_channels(), version)

    def test_tracked_channel_with_store(self, make_pipeline, project_dir, version):
        config = load_release_config(write_project(project_dir, tracked=True))
        tracked = FakeTrackedChannel("aur-git")
        pipeline = make_pipeline(config, {"aur-git": tracked})
        channels = pipeline.build_channels(pipeline.select_channels(), version)
        assert channels["aur-git"] is tracked
        assert list(channels) == ["github", "aur", "aur-bin", "aur-git"]


class TestPhases:
    def test_resolve(self, make_pipeline, release_config, version):
        artifacts = make_pipeline(release_config).resolve(version)
        assert artifacts[0].url == BINARY_URL
        assert set(a.url for a in artifacts) == set(ARTIFACT_BODIES)

    def test_checksums(self, make_pipeline, release_config):
        digests = {a.name: a.digest for a in make_pipeline(release_config).checksums("v2.0.0")}
        assert digests["binary"] == sha256_hex(ARTIFACT_BODIES[BINARY_URL])
        assert len(digests) == 6

    def test_checksums_exhausted_retries(self, make_pipeline, release_config, fetcher):
        fetcher.responses[BINARY_URL] = b""
        with pytest.raises(ResolutionError):
            make_pipeline(release_config).checksums("v2.0.0")
        assert fetcher.count(BINARY_URL) == 3

    def test_render_aur_bin(self, make_pipeline, release_config):
        manifest = make_pipeline(release_config).render("v2.0.0", "aur-bin")
        assert manifest.filename == "PKGBUILD"
        assert manifest.version == "2.0.0"
        assert "pkgver=2.0.0\n" in manifest.text
        assert f"'{sha256_hex(ARTIFACT_BODIES[BINARY_URL])}'" in manifest.text
        assert f"ffsend-v$pkgver::{BINARY_URL}" in manifest.text
        assert "{{" not in manifest.text
        assert manifest.digests["license"] == sha256_hex(b"GNU GENERAL PUBLIC LICENSE\n")

    def test_render_channel_without_template(self, make_pipeline, release_config):
        with pytest.raises(ConfigError, match="no manifest template"):
            make_pipeline(release_config).render("v2.0.0", "github")

    def test_build_promotes_binaries(self, make_pipeline, release_config, settings):
        matrix = make_pipeline(release_config).build()
        assert matrix.succeeded
        assert set(matrix.binaries()) == {"x86_64-unknown-linux-gnu", "x86_64-unknown-linux-musl"}
        assert all(path.parent == settings.output_dir for path in matrix.binaries().values())


class TestBinaryFiles:
    def test_staged_names(self, make_pipeline, release_config, version):
        pipeline = make_pipeline(release_config)
        binaries = {
            "x86_64-unknown-linux-gnu": Path("/dist/ffsend-x86_64-unknown-linux-gnu"),
            "x86_64-unknown-linux-musl": Path("/dist/ffsend-x86_64-unknown-linux-musl"),
        }
        files = pipeline._binary_files(release_config.channel("github"), binaries, version)
        assert files == {
            "ffsend-v2.0.0-linux-x64": binaries["x86_64-unknown-linux-gnu"],
            "ffsend-v2.0.0-linux-x64-static": binaries["x86_64-unknown-linux-musl"],
        }

    def test_missing_binary(self, make_pipeline, release_config, version):
        with pytest.raises(ConfigError, match="x86_64-unknown-linux-musl"):
            make_pipeline(release_config)._binary_files(
                release_config.channel("github"),
                {"x86_64-unknown-linux-gnu": Path("/dist/gnu")},
                version,
            )

    def test_builtin_names_override_fields(self, make_pipeline, release_config, version):
        config = release_config.model_copy(
            update={"fields": {**release_config.fields, "tag": "stale", "app": "other"}}
        )
        binaries = {
            "x86_64-unknown-linux-gnu": Path("/dist/gnu"),
            "x86_64-unknown-linux-musl": Path("/dist/musl"),
        }
        files = make_pipeline(config)._binary_files(config.channel("github"), binaries, version)
        assert sorted(files) == ["ffsend-v2.0.0-linux-x64", "ffsend-v2.0.0-linux-x64-static"]


def test_run_id_format():
    assert re.fullmatch(r"ts-\d{8}-\d{6}-[0-9a-f]{3}", new_run_id())


def test_default_collaborators(release_config: ReleaseConfig, settings):
    pipeline = ReleasePipeline(release_config, settings=settings)
    assert pipeline.toolchain.app == "ffsend"
    assert pipeline.fetcher.timeout == settings.fetch_timeout_seconds
