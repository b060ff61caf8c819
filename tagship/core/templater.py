"""Manifest Templater: renders per-channel package definitions.

Templates use ``{{ key }}`` placeholders.  Replacement is strict: any
placeholder left after substitution is a ``TemplateError`` naming every
missing key, so no manifest is ever emitted with a stale or empty field.

Every channel variant of a run renders from the same artifacts and
digests; only the version string differs (``version_format``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from tagship.core.errors import TemplateError
from tagship.models.artifacts import Artifact
from tagship.models.manifests import ChannelManifest
from tagship.models.versioning import ReleaseVersion

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def format_version(version: ReleaseVersion, version_format: str, revision: str | None = None) -> str:
    """Apply a channel's version format, e.g. ``{version}.{revision}``."""
    values = {"version": version.number, "tag": version.tag}
    if revision is not None and revision.strip():
        values["revision"] = revision.strip()
    try:
        return version_format.format(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        if missing == "revision":
            raise TemplateError(
                f"Version format {version_format!r} tracks source-control HEAD "
                "but no revision was given",
                missing=[missing],
            ) from exc
        raise TemplateError(
            f"Version format {version_format!r} references unknown field {missing!r}",
            missing=[missing],
        ) from exc


def build_substitutions(
    version: ReleaseVersion,
    artifacts: Sequence[Artifact],
    *,
    app: str,
    fields: Mapping[str, str] | None = None,
    version_format: str = "{version}",
    revision: str | None = None,
) -> dict[str, str]:
    """Build the substitution map shared by all channels of a run.

    Keys: ``version`` (formatted for the channel), ``tag``, ``app``,
    ``<artifact>_url`` and ``<artifact>_sha256`` for every artifact, and
    any extra channel fields.  Built-in keys win over extra fields.
    """
    substitutions: dict[str, str] = dict(fields or {})
    for artifact in artifacts:
        key = artifact.name.replace("-", "_")
        substitutions[f"{key}_url"] = artifact.url
        if artifact.digest is not None:
            substitutions[f"{key}_sha256"] = artifact.digest
    substitutions.update(
        {
            "version": format_version(version, version_format, revision),
            "tag": version.tag,
            "app": app,
        }
    )
    return substitutions


def render_text(template_text: str, substitutions: Mapping[str, str]) -> str:
    """Substitute placeholders, raising ``TemplateError`` for any left over."""
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in substitutions:
            return str(substitutions[key])
        if key not in missing:
            missing.append(key)
        return match.group(0)

    rendered = PLACEHOLDER.sub(_replace, template_text)
    if missing:
        raise TemplateError(
            f"Unresolved placeholder(s): {', '.join(missing)}",
            missing=missing,
        )
    return rendered


def render(
    template_text: str,
    substitutions: Mapping[str, str],
    *,
    channel_id: str,
    filename: str,
    artifacts: Sequence[Artifact] = (),
) -> ChannelManifest:
    """Render a channel manifest from a template.

    Parameters
    ----------
    template_text:
        Template content with ``{{ key }}`` placeholders.
    substitutions:
        Map from ``build_substitutions``; must contain ``version``.
    channel_id:
        Channel the manifest belongs to.
    filename:
        File name the manifest is written under when staged.
    artifacts:
        Artifacts the manifest references, recorded as sources/digests.
    """
    try:
        text = render_text(template_text, substitutions)
    except TemplateError as exc:
        raise TemplateError(f"{channel_id}/{filename}: {exc}", missing=exc.missing) from exc
    return ChannelManifest(
        channel_id=channel_id,
        filename=filename,
        version=str(substitutions.get("version", "")),
        sources={artifact.name: artifact.url for artifact in artifacts},
        digests={
            artifact.name: artifact.digest for artifact in artifacts if artifact.digest is not None
        },
        text=text,
    )
