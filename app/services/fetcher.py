"""
Outbound HTTP for the upstream API and the image mirrors.

Two httpx clients with different connection policies:

- api client: keep-alive pooling for small JSON metadata calls.
- image client: a fresh connection per download (no keep-alive), identity
  encoding and an image-preferring Accept header. Some image mirrors are
  flaky under connection reuse, and the payloads are already compressed.

Both transports bind to 0.0.0.0, which pins DNS resolution and connects to
IPv4. Hosts with broken IPv6 routing otherwise stall until timeout.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)

_IPV4_ANY = "0.0.0.0"
_IMAGE_ACCEPT = "image/avif,image/webp,image/png,image/jpeg,image/*;q=0.8,*/*;q=0.5"
_SECRET_PARAMS = {"api_key"}


def is_fetchable(url: str) -> bool:
    """True for absolute http(s) URLs; anything else cannot be downloaded."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def redact_url(url: str) -> str:
    """Drop credential query parameters so a URL is safe to log or return."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in _SECRET_PARAMS]
    return urlunsplit(parts._replace(query=urlencode(query)))


class RemoteFetcher:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings

        api_transport = transport or httpx.AsyncHTTPTransport(local_address=_IPV4_ANY)
        image_transport = transport or httpx.AsyncHTTPTransport(
            local_address=_IPV4_ANY,
            limits=httpx.Limits(max_keepalive_connections=0),
        )

        self._api = httpx.AsyncClient(
            transport=api_transport,
            timeout=settings.API_TIMEOUT_SECONDS,
            headers={"User-Agent": settings.USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
        )
        self._images = httpx.AsyncClient(
            transport=image_transport,
            timeout=settings.IMAGE_TIMEOUT_SECONDS,
            headers={
                "User-Agent": settings.USER_AGENT,
                "Accept": _IMAGE_ACCEPT,
                "Accept-Encoding": "identity",
                "Connection": "close",
            },
            follow_redirects=True,
        )

    async def get_json(
        self,
        url: str,
        params: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document. Raises httpx.HTTPStatusError on 4xx/5xx."""
        response = await self._api.get(url, params=params, timeout=timeout or self.settings.API_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    @asynccontextmanager
    async def stream_image(self, url: str, timeout: Optional[float] = None) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming GET for an image.

        The yielded response has a 2xx status; read it with aiter_bytes().
        Raises httpx.HTTPStatusError on 4xx/5xx.
        """
        async with self._images.stream(
            "GET", url, timeout=timeout or self.settings.IMAGE_TIMEOUT_SECONDS
        ) as response:
            response.raise_for_status()
            yield response

    async def head(self, url: str, timeout: Optional[float] = None) -> Optional[int]:
        """
        Preflight a URL and return its status code.

        Returns None when the HEAD itself fails; some origins block HEAD, so
        callers treat None as "go ahead with the GET".
        """
        try:
            response = await self._images.head(url, timeout=timeout or self.settings.HEAD_TIMEOUT_SECONDS)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("HEAD failed url=%s error=%s", redact_url(url), type(exc).__name__)
            return None
        if response.status_code == 405:
            return None
        return response.status_code

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._images.aclose()
