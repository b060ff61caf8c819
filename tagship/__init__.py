"""tagship: release publication orchestrator.

Triggered by a version tag, a tagship run:
  - builds every (target, feature set) entry of the build matrix, blocking
    publication if any entry fails
  - resolves the published artifacts and computes their SHA-256 digests,
    retrying while uploads propagate
  - renders per-channel package manifests from templates
  - skips channels that track HEAD when nothing but the version changed
  - publishes to every channel in dependency order, isolating failures
"""

__version__ = "0.1.0"
__description__ = "Release publication orchestrator for multi-channel tagged releases"

from tagship.core.pipeline import ReleasePipeline
from tagship.cli.app import app as cli

__all__ = ["ReleasePipeline", "cli", "__version__"]
