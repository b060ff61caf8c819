"""Artifact fetch collaborator: ``GET(url) -> bytes | FetchError``.

Used identically by the Checksum Service and by remote manifest lookups.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import requests
from requests import Response, Session
from requests.exceptions import RequestException

from tagship.core.errors import FetchError, NotFoundError

logger = logging.getLogger(__name__)


@runtime_checkable
class Fetcher(Protocol):
    """Fetches the full body of a URL."""

    def get(self, url: str) -> bytes:
        """Return the response body.

        Raises ``NotFoundError`` for 404 and ``FetchError`` for any other
        transport failure or non-success status.
        """
        ...


class HttpFetcher:
    """``Fetcher`` backed by a ``requests.Session``.

    Each call makes an independent request; the session only pools
    connections.  Redirects are followed, as release hosts redirect
    download URLs to a CDN.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    session:
        Optional preconfigured session (tests, proxies).
    """

    def __init__(self, *, timeout: float = 30.0, session: Session | None = None) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()

    def get(self, url: str) -> bytes:
        try:
            response: Response = self._session.get(url, timeout=self.timeout, allow_redirects=True)
        except RequestException as exc:
            raise FetchError(url, f"request failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError(url, "not found", status_code=404)
        if response.status_code >= 400:
            raise FetchError(
                url,
                f"HTTP {response.status_code} {response.reason or ''}".strip(),
                status_code=response.status_code,
            )
        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.content
