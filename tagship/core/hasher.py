"""Hashing helpers for artifact digests and manifest comparison.

All digests are SHA-256 hex strings.  Manifest text is normalized before
hashing so that a locally rendered file and the copy served by a remote
store compare equal when their content is equal.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from pathlib import Path

VERSION_PLACEHOLDER = "<version>"


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in 1 MiB chunks."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def normalize_manifest_text(text: str) -> str:
    """Normalize line endings and trailing blank lines.

    Remote stores commonly serve ``\\r\\n`` or drop the final newline.
    """
    return text.replace("\r\n", "\n").rstrip("\n") + "\n"


def mask_version_fields(text: str, patterns: Iterable[str]) -> str:
    """Replace every version-bearing match with a constant placeholder.

    Each pattern is a multiline regex.  The whole match is replaced, so
    ``^pkgver=.*$`` turns ``pkgver=1.2.3.abc123`` into ``<version>``.
    """
    masked = normalize_manifest_text(text)
    for pattern in patterns:
        masked = re.sub(pattern, VERSION_PLACEHOLDER, masked, flags=re.MULTILINE)
    return masked


def masked_digest(text: str, patterns: Iterable[str]) -> str:
    """SHA-256 of manifest text with version fields masked out."""
    return sha256_hex(mask_version_fields(text, patterns).encode("utf-8"))
