"""Target Matrix Runner: builds every (target, feature set) entry.

Every entry runs, even after earlier failures, so a single run reports the
complete state of the matrix.  The matrix succeeds only when every entry
succeeds.  Successful builds are relocated to ``{app}-{target}`` and
stripped; promotion goes through a ``.partial`` file and an atomic rename,
so a failed entry never leaves a release-named binary behind.

Static entries first ensure a pinned cryptography library built from
source (``StaticDependencyCache``).
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tarfile
import tempfile
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Protocol

from tagship.core.errors import BuildError, ConfigError, FetchError
from tagship.core.fetch import Fetcher
from tagship.core.hasher import sha256_hex
from tagship.core.process import CommandRunner, run_command
from tagship.models.build import BuildResult, BuildStatus, BuildTarget, MatrixResult
from tagship.models.config import StaticDependency

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Build toolchain collaborator
# ---------------------------------------------------------------------------


class BuildToolchain(Protocol):
    """The compiler toolchain, invoked once per matrix entry."""

    def build(self, target: BuildTarget, env: dict[str, str]) -> Path:
        """Build *target* and return the path of the produced binary.

        Raises ``BuildError`` with the captured output on failure.
        """
        ...

    def check(self, target: BuildTarget, env: dict[str, str]) -> None:
        """Type-check *target* without producing a binary."""
        ...

    def strip(self, path: Path) -> None:
        """Strip debug symbols from *path* in place."""
        ...


class CargoToolchain:
    """``BuildToolchain`` that shells out to cargo, rustup and strip.

    Parameters
    ----------
    project_dir:
        Directory holding ``Cargo.toml``.
    app:
        Binary name produced by cargo.
    install_targets:
        Run ``rustup target add`` before each build.
    """

    def __init__(
        self,
        project_dir: Path,
        app: str,
        *,
        runner: CommandRunner = run_command,
        install_targets: bool = True,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.app = app
        self._run = runner
        self.install_targets = install_targets

    @staticmethod
    def _feature_args(target: BuildTarget) -> list[str]:
        args: list[str] = []
        if not target.default_features:
            args.append("--no-default-features")
        if target.features:
            args.extend(["--features", ",".join(target.features)])
        return args

    def build(self, target: BuildTarget, env: dict[str, str]) -> Path:
        if self.install_targets:
            added = self._run(
                ["rustup", "target", "add", target.target, "--toolchain", target.toolchain],
                cwd=self.project_dir,
            )
            if not added.ok:
                raise BuildError(f"rustup could not add target {target.target}", output=added.output)

        result = self._run(
            [
                "cargo",
                f"+{target.toolchain}",
                "build",
                "--target",
                target.target,
                "--release",
                "--verbose",
                *self._feature_args(target),
            ],
            cwd=self.project_dir,
            env=env,
        )
        if not result.ok:
            raise BuildError(f"cargo build failed for {target.label}", output=result.output)

        binary = self.project_dir / "target" / target.target / "release" / self.app
        if not binary.is_file():
            raise BuildError(f"cargo build succeeded but {binary} does not exist")
        return binary

    def check(self, target: BuildTarget, env: dict[str, str]) -> None:
        result = self._run(
            ["cargo", f"+{target.toolchain}", "check", "--verbose", *self._feature_args(target)],
            cwd=self.project_dir,
            env=env,
        )
        if not result.ok:
            raise BuildError(f"cargo check failed for {target.label}", output=result.output)

    def strip(self, path: Path) -> None:
        result = self._run(["strip", "-g", str(path)])
        if not result.ok:
            raise BuildError(f"strip failed for {path.name}", output=result.output)


# ---------------------------------------------------------------------------
# Pinned static dependency
# ---------------------------------------------------------------------------


class StaticDependencyCache:
    """Builds a pinned library from source once and reuses it.

    Layout: ``{cache_dir}/{name}-{version}/`` is the install prefix and
    holds a stamp file recording the version and tarball digest.  A stamp
    that disagrees with the pinned version or digest is a ``BuildError``;
    the cache is never silently rebuilt over a mismatched result.

    Parameters
    ----------
    dependency:
        The pinned dependency.
    cache_dir:
        Root directory for cached builds.
    fetcher:
        Used to download the source tarball.
    """

    STAMP_NAME = ".tagship-stamp.json"

    def __init__(
        self,
        dependency: StaticDependency,
        cache_dir: Path,
        *,
        fetcher: Fetcher,
        runner: CommandRunner = run_command,
    ) -> None:
        self.dependency = dependency
        self.cache_dir = Path(cache_dir)
        self._fetcher = fetcher
        self._run = runner
        self._lock = threading.Lock()

    @property
    def prefix(self) -> Path:
        return self.cache_dir / f"{self.dependency.name}-{self.dependency.version}"

    @property
    def stamp_path(self) -> Path:
        return self.prefix / self.STAMP_NAME

    def ensure(self) -> dict[str, str]:
        """Make sure the pinned build exists and return the build environment."""
        with self._lock:
            stamp = self._read_stamp()
            if stamp is None:
                self._build()
            else:
                self._verify_stamp(stamp)
                logger.info(
                    "Reusing cached %s %s at %s",
                    self.dependency.name,
                    self.dependency.version,
                    self.prefix,
                )
        return self.environment()

    def environment(self) -> dict[str, str]:
        lib_dir = self.prefix / "lib64"
        if not lib_dir.exists():
            lib_dir = self.prefix / "lib"
        return {
            "OPENSSL_STATIC": "1",
            "OPENSSL_LIB_DIR": str(lib_dir),
            "OPENSSL_INCLUDE_DIR": str(self.prefix / "include"),
        }

    def _read_stamp(self) -> dict[str, str] | None:
        if not self.stamp_path.exists():
            return None
        try:
            return json.loads(self.stamp_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise BuildError(f"Corrupt build stamp at {self.stamp_path}: {exc}") from exc

    def _verify_stamp(self, stamp: dict[str, str]) -> None:
        if stamp.get("version") != self.dependency.version:
            raise BuildError(
                f"Cached {self.dependency.name} at {self.prefix} was built for version "
                f"{stamp.get('version')!r}, pinned version is {self.dependency.version!r}"
            )
        if self.dependency.sha256 and stamp.get("sha256") != self.dependency.sha256:
            raise BuildError(
                f"Cached {self.dependency.name} {self.dependency.version} was built from a "
                f"tarball with digest {stamp.get('sha256')}, expected {self.dependency.sha256}"
            )

    def _build(self) -> None:
        dep = self.dependency
        url = dep.url.format(version=dep.version)
        logger.info("Building %s %s from %s", dep.name, dep.version, url)
        try:
            data = self._fetcher.get(url)
        except FetchError as exc:
            raise BuildError(f"Could not download {dep.name} {dep.version}: {exc}") from exc

        digest = sha256_hex(data)
        if dep.sha256 and digest != dep.sha256:
            raise BuildError(
                f"{dep.name} {dep.version} tarball digest {digest} does not match pinned {dep.sha256}"
            )

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=f"{dep.name}-", dir=self.cache_dir) as tmp:
            build_root = Path(tmp)
            tarball = build_root / f"{dep.name}-{dep.version}.tar.gz"
            tarball.write_bytes(data)
            with tarfile.open(tarball, "r:gz") as archive:
                archive.extractall(build_root / "src", filter="data")
            source_dirs = [path for path in (build_root / "src").iterdir() if path.is_dir()]
            source_dir = source_dirs[0] if len(source_dirs) == 1 else build_root / "src"

            steps = [
                [
                    "./config",
                    *dep.configure_args,
                    f"--openssldir={self.prefix / 'ssl'}",
                    f"--prefix={self.prefix}",
                ],
                ["make"],
                ["make", "install"],
            ]
            for step in steps:
                result = self._run(step, cwd=source_dir)
                if not result.ok:
                    raise BuildError(
                        f"{dep.name} {dep.version}: '{' '.join(step)}' failed",
                        output=result.output,
                    )

        self.prefix.mkdir(parents=True, exist_ok=True)
        self.stamp_path.write_text(
            json.dumps({"version": dep.version, "sha256": digest}, indent=2) + "\n",
            encoding="utf-8",
        )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class TargetMatrixRunner:
    """Runs every matrix entry on a bounded worker pool.

    Parameters
    ----------
    toolchain:
        The build toolchain collaborator.
    app:
        Application name, used for ``{app}-{target}`` artifact names.
    output_dir:
        Directory that receives promoted binaries.
    max_workers:
        Upper bound on concurrently running entries.
    static_cache:
        Required when any entry is ``static``.
    """

    def __init__(
        self,
        toolchain: BuildToolchain,
        *,
        app: str,
        output_dir: Path,
        max_workers: int = 4,
        static_cache: StaticDependencyCache | None = None,
    ) -> None:
        self._toolchain = toolchain
        self.app = app
        self.output_dir = Path(output_dir)
        self.max_workers = max(1, max_workers)
        self._static_cache = static_cache

    def run(self, targets: Sequence[BuildTarget]) -> MatrixResult:
        """Run all *targets* and return results in the given order."""
        self._validate(targets)
        if not targets:
            return MatrixResult()

        self.output_dir.mkdir(parents=True, exist_ok=True)
        results: dict[int, BuildResult] = {}
        workers = min(self.max_workers, len(targets))
        logger.info("Running build matrix: %d entries, %d workers", len(targets), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="matrix") as executor:
            futures = {executor.submit(self.run_one, target): index for index, target in enumerate(targets)}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as exc:  # noqa: BLE001
                    logger.error("Matrix entry %s crashed: %s", targets[index].label, exc)
                    results[index] = BuildResult(
                        target=targets[index],
                        status=BuildStatus.FAILED,
                        diagnostics=f"{type(exc).__name__}: {exc}",
                    )

        matrix = MatrixResult(results=[results[index] for index in range(len(targets))])
        if matrix.succeeded:
            logger.info("Build matrix green: %d/%d entries succeeded", len(targets), len(targets))
        else:
            logger.error(
                "Build matrix failed: %d/%d entries failed (%s)",
                len(matrix.failed),
                len(targets),
                ", ".join(result.target.label for result in matrix.failed),
            )
        return matrix

    def run_one(self, target: BuildTarget) -> BuildResult:
        """Run a single entry; build failures are returned, not raised."""
        logger.info("Matrix entry %s started", target.label)
        try:
            env = self._environment(target)
            if target.check_only:
                self._toolchain.check(target, env)
                path = None
            else:
                built = self._toolchain.build(target, env)
                path = self._promote(built, target)
        except BuildError as exc:
            logger.error("Matrix entry %s failed: %s", target.label, exc)
            diagnostics = f"{exc}\n{exc.output}".strip() if exc.output else str(exc)
            return BuildResult(target=target, status=BuildStatus.FAILED, diagnostics=diagnostics)

        logger.info("Matrix entry %s succeeded", target.label)
        return BuildResult(target=target, status=BuildStatus.SUCCESS, artifact_path=path)

    def artifact_path(self, target: BuildTarget) -> Path:
        return self.output_dir / f"{self.app}-{target.target}"

    def _validate(self, targets: Sequence[BuildTarget]) -> None:
        seen: set[str] = set()
        for target in targets:
            if target.check_only:
                continue
            if target.target in seen:
                raise ConfigError(
                    f"Matrix builds {target.target} more than once; release binaries are "
                    f"named {self.app}-<target> and would collide"
                )
            seen.add(target.target)
        if any(target.static for target in targets) and self._static_cache is None:
            raise ConfigError("Static matrix entries need a static dependency cache")

    def _environment(self, target: BuildTarget) -> dict[str, str]:
        if target.static and self._static_cache is not None:
            return self._static_cache.ensure()
        return {}

    def _promote(self, built: Path, target: BuildTarget) -> Path:
        final = self.artifact_path(target)
        partial = final.with_name(final.name + ".partial")
        try:
            shutil.move(str(built), partial)
            self._toolchain.strip(partial)
            os.replace(partial, final)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise BuildError(f"Could not promote {built} to {final}: {exc}") from exc
        except BuildError:
            partial.unlink(missing_ok=True)
            raise
        return final
