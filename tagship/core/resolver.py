"""Artifact Resolver: turns configured URL templates into concrete artifacts.

Pure function of (version, configured sources, fields); no network access.
URL templates are ``str.format`` strings.  The built-in fields are
``version``, ``tag`` and ``app``; anything else must come from the
configured ``[release.fields]`` table.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from string import Formatter

from tagship.core.errors import ConfigError
from tagship.models.artifacts import Artifact, ArtifactSource
from tagship.models.versioning import ReleaseVersion


def template_fields(template: str) -> list[str]:
    """Return the top-level field names referenced by a format template."""
    try:
        parsed = list(Formatter().parse(template))
    except ValueError as exc:
        raise ConfigError(f"Malformed URL template {template!r}: {exc}") from exc
    names: list[str] = []
    for _, field_name, _, _ in parsed:
        if field_name is None:
            continue
        if not field_name:
            raise ConfigError(f"Positional field in URL template {template!r}; use named fields")
        # "{owner.name}" and "{hosts[0]}" both reference "owner"/"hosts"
        root = field_name.split(".", 1)[0].split("[", 1)[0]
        if root not in names:
            names.append(root)
    return names


def resolve_artifacts(
    version: ReleaseVersion,
    sources: Iterable[ArtifactSource],
    fields: Mapping[str, str] | None = None,
    *,
    app: str = "",
) -> tuple[Artifact, ...]:
    """Resolve every configured artifact for *version*.

    Parameters
    ----------
    version:
        The run's release version.
    sources:
        Configured artifact sources, in configured order.
    fields:
        Extra template fields (owner, repo, hosts...).
    app:
        Application name, exposed as ``{app}``.

    Raises ``ConfigError`` for an undefined template field or a duplicate
    artifact name.
    """
    values: dict[str, str] = {**(fields or {}), "version": version.number, "tag": version.tag}
    if app:
        values["app"] = app

    resolved: list[Artifact] = []
    seen: set[str] = set()
    for source in sources:
        if source.name in seen:
            raise ConfigError(f"Duplicate artifact name {source.name!r}")
        seen.add(source.name)

        undefined = [name for name in template_fields(source.url) if name not in values]
        if undefined:
            raise ConfigError(
                f"Artifact {source.name!r} URL template references undefined "
                f"field(s) {undefined}: {source.url}"
            )
        resolved.append(
            Artifact(name=source.name, url=source.url.format(**values), kind=source.kind)
        )
    return tuple(resolved)
