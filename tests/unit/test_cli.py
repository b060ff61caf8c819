"""Unit tests for the CLI: command registration, output and exit codes."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from tagship.cli.app import app
from tagship.cli.commands import _shared
from tagship.core.errors import ConfigError

from fakes import RELEASE_BASE

runner = CliRunner()


@pytest.fixture
def patched_pipeline(monkeypatch, make_pipeline, release_config):
    """Route every command to a pipeline wired to fakes."""
    pipelines = []

    def _build(config_path=None):
        pipeline = make_pipeline(release_config)
        pipelines.append(pipeline)
        return pipeline

    monkeypatch.setattr(_shared, "build_pipeline", _build)
    return pipelines


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("release", "build", "checksums", "render", "plan"):
            assert command in result.output

    @pytest.mark.parametrize("command", ["release", "build", "checksums", "render", "plan"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestReleaseCommand:
    def test_successful_release_exits_zero(self, patched_pipeline):
        result = runner.invoke(app, ["release", "v2.0.0"])
        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output

    def test_failed_channel_exits_one(self, patched_pipeline, fetcher):
        fetcher.responses[f"{RELEASE_BASE}/v2.0.0/ffsend-v2.0.0-linux-x64-static"] = b""
        result = runner.invoke(app, ["release", "v2.0.0"])
        assert result.exit_code == 1
        assert "FAILED" in result.output

    def test_bad_tag_exits_two(self, patched_pipeline):
        result = runner.invoke(app, ["release", "2.0.0"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_dry_run_and_only_are_forwarded(self, monkeypatch, make_pipeline, release_config):
        seen = {}
        pipeline = make_pipeline(release_config)
        run = pipeline.run

        def _recording_run(tag, **kwargs):
            seen.update(kwargs)
            return run(tag, **kwargs)

        monkeypatch.setattr(pipeline, "run", _recording_run)
        monkeypatch.setattr(_shared, "build_pipeline", lambda config_path=None: pipeline)
        result = runner.invoke(app, ["release", "v2.0.0", "--dry-run", "--only", "aur", "-r", "r12"])
        assert result.exit_code == 0, result.output
        assert seen == {"revision": "r12", "dry_run": True, "only": ["aur"]}

    def test_missing_config_exits_two(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TAGSHIP_CONFIG_PATH", str(tmp_path / "missing.toml"))
        result = runner.invoke(app, ["release", "v2.0.0"])
        assert result.exit_code == 2


class TestOtherCommands:
    def test_build(self, patched_pipeline):
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 0
        assert "Build Matrix" in result.output

    def test_build_failure(self, patched_pipeline, toolchain):
        toolchain.fail = {"x86_64-unknown-linux-gnu"}
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 1

    def test_checksums(self, patched_pipeline):
        result = runner.invoke(app, ["checksums", "v2.0.0"])
        assert result.exit_code == 0
        assert "Artifact Digests" in result.output

    def test_render_prints_plain_manifest(self, patched_pipeline):
        result = runner.invoke(app, ["render", "v2.0.0", "aur"])
        assert result.exit_code == 0
        assert "pkgname=ffsend\npkgver=2.0.0\n" in result.stdout

    def test_render_unknown_channel(self, patched_pipeline):
        result = runner.invoke(app, ["render", "v2.0.0", "homebrew"])
        assert result.exit_code == 2

    def test_plan(self, patched_pipeline):
        result = runner.invoke(app, ["plan"])
        assert result.exit_code == 0
        assert "Release plan" in result.output

    def test_error_mapping(self, monkeypatch):
        def _fail(config_path=None):
            raise ConfigError("Release config not found: tagship.toml")

        monkeypatch.setattr(_shared, "build_pipeline", _fail)
        result = runner.invoke(app, ["plan"])
        assert result.exit_code == 2
        assert "not found" in result.output
