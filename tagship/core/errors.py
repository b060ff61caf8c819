"""Error taxonomy for release runs.

Scope of each error:

- ``ConfigError``         pipeline-wide, raised before any build, never retried.
- ``BuildError``          one matrix entry; any occurrence blocks publication.
- ``FetchError``          transient; retried by the Checksum Service.
- ``EmptyArtifactError``  transient; upstream publish has not propagated yet.
- ``ResolutionError``     channel-scoped; raised once fetch retries run out.
- ``DigestMismatchError`` hard error; the same artifact hashed differently.
- ``TemplateError``       channel-scoped; unresolved manifest placeholder.
- ``ValidationError``     channel-scoped; native packaging step rejected input.
- ``PublishError``        channel-scoped; the push to the remote store failed.
- ``PushError``           channel-scoped; source-control push failed.
"""

from __future__ import annotations


class TagshipError(RuntimeError):
    """Base class for every error raised by tagship."""


class ConfigError(TagshipError):
    """Raised for a bad or missing trigger tag, config file or template field."""


class BuildError(TagshipError):
    """Raised when a matrix entry fails to build, check or strip.

    Parameters
    ----------
    message:
        Short description of the failure.
    output:
        Captured diagnostic output of the failing tool.
    """

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class FetchError(TagshipError):
    """Raised when a remote URL cannot be fetched (network, 4xx, 5xx)."""

    def __init__(self, url: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class NotFoundError(FetchError):
    """Raised when the remote resource does not exist (HTTP 404)."""


class EmptyArtifactError(TagshipError):
    """Raised when a fetch returns zero bytes."""

    def __init__(self, url: str) -> None:
        super().__init__(f"{url}: empty response, upstream publish not yet propagated")
        self.url = url


class ResolutionError(TagshipError):
    """Raised when an artifact digest cannot be computed after all retries.

    The last transient error is kept in ``cause`` and chained as
    ``__cause__``.
    """

    def __init__(self, artifact_name: str, cause: Exception, *, attempts: int) -> None:
        super().__init__(
            f"Could not resolve artifact {artifact_name!r} after {attempts} attempt(s): "
            f"{type(cause).__name__}: {cause}"
        )
        self.artifact_name = artifact_name
        self.cause = cause
        self.attempts = attempts


class DigestMismatchError(TagshipError):
    """Raised when a refetched artifact no longer matches its recorded digest."""


class TemplateError(TagshipError):
    """Raised when a rendered manifest still contains placeholders."""

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class ValidationError(TagshipError):
    """Raised when a channel's native build/validate step fails."""


class PublishError(TagshipError):
    """Raised when pushing a staged package to a channel's store fails."""


class PushError(PublishError):
    """Raised when a source-control commit or push fails.

    ``transport_error`` holds the underlying tool output unmodified.
    """

    def __init__(self, message: str, *, transport_error: str = "") -> None:
        super().__init__(f"{message}: {transport_error}" if transport_error else message)
        self.transport_error = transport_error


RETRYABLE_FETCH_ERRORS: tuple[type[Exception], ...] = (FetchError, EmptyArtifactError)


def describe_error(exc: BaseException) -> str:
    """Return the error type name used in run summaries.

    A ``ResolutionError`` is reported by the transient error that caused it,
    so an unpropagated upload shows up as ``EmptyArtifactError``.
    """
    if isinstance(exc, ResolutionError):
        return type(exc.cause).__name__
    return type(exc).__name__
