"""Fetch raster tiles from URL template endpoints.

Templates follow the common slippy-map conventions: ``{z}``, ``{x}`` and
``{y}`` placeholders, ``{-y}`` for the TMS row order and an optional
subdomain range such as ``{a-c}``.  Subdomains are picked from the tile
coordinate so repeated requests for a tile always hit the same host and can
be served from HTTP caches.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

import requests

from ..config import TILE_REQUEST_TIMEOUT_SEC, TILE_USER_AGENT
from ..errors import TileFetchError

_SUBDOMAIN_PATTERN = re.compile(r"\{([a-z0-9])-([a-z0-9])\}")


class TileFetcher(Protocol):
    """Anything able to return the encoded image bytes of a tile."""

    def fetch(self, z: int, x: int, y: int) -> Optional[bytes]:  # pragma: no cover - protocol
        ...


def expand_template(template: str, z: int, x: int, y: int) -> str:
    """Return the concrete URL for tile ``z/x/y`` described by *template*."""

    match = _SUBDOMAIN_PATTERN.search(template)
    if match is not None:
        first, last = match.group(1), match.group(2)
        subdomains = [chr(code) for code in range(ord(first), ord(last) + 1)]
        if subdomains:
            subdomain = subdomains[(x + y) % len(subdomains)]
            template = template[: match.start()] + subdomain + template[match.end():]

    n = 1 << z
    return (
        template.replace("{z}", str(z))
        .replace("{x}", str(x))
        .replace("{-y}", str(n - 1 - y))
        .replace("{y}", str(y))
    )


class UrlTemplateFetcher:
    """Download tiles over HTTP with :mod:`requests`.

    Parameters
    ----------
    template:
        URL template of the tile endpoint.
    session:
        Optional :class:`requests.Session` so callers can share connection
        pools or inject a stub during tests.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        template: str,
        *,
        session: requests.Session | None = None,
        timeout: float = TILE_REQUEST_TIMEOUT_SEC,
    ) -> None:
        self.template = template
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", TILE_USER_AGENT)
        self._timeout = timeout

    # ------------------------------------------------------------------
    def url_for(self, z: int, x: int, y: int) -> str:
        return expand_template(self.template, z, x, y)

    # ------------------------------------------------------------------
    def fetch(self, z: int, x: int, y: int) -> Optional[bytes]:
        """Return the tile payload, ``None`` for absent tiles (HTTP 404)."""

        url = self.url_for(z, x, y)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TileFetchError(f"Request for tile {z}/{x}/{y} failed: {exc}") from exc

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise TileFetchError(f"Tile {z}/{x}/{y} returned HTTP {response.status_code}") from exc
        return response.content

    # ------------------------------------------------------------------
    def close(self) -> None:
        self._session.close()


__all__ = ["TileFetcher", "UrlTemplateFetcher", "expand_template"]
