"""
Local content store for cached images.

Maps a cache key (a relative path such as ``epic/2024/08/10/epic_1b_x.png``)
to a file under the configured cache directory. A file that exists is
trusted as-is: there is no checksum or freshness check, and files are never
rewritten or deleted by this service. Swap this class for a stricter one
(content-hash verification, object storage) without touching callers.
"""
import asyncio
import logging
import os
import weakref
from pathlib import Path
from typing import AsyncIterator, Optional
from uuid import uuid4

from starlette.requests import Request

from app.core.errors import CacheWriteError

logger = logging.getLogger(__name__)

CACHE_ROUTE = "/cached"


class ContentStore:
    def __init__(self, root: Path, public_base_url: str = ""):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def path_for(self, key: str) -> Optional[Path]:
        """Resolve a key to its file path, or None if it escapes the store root."""
        root = self.root.resolve()
        path = (root / key).resolve()
        if path == root or not path.is_relative_to(root):
            return None
        return path

    def exists(self, key: str) -> bool:
        path = self.path_for(key)
        return path is not None and path.is_file()

    def lock(self, key: str) -> asyncio.Lock:
        """Per-key writer lock; held for the whole check-download-place sequence."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def write(self, key: str, chunks: AsyncIterator[bytes]) -> int:
        """
        Stream chunks to the file for key and return the byte count.

        Bytes go to a hidden temp file beside the destination and are moved
        into place with os.replace, so a reader never sees a partial file.
        Raises CacheWriteError if the store is unwritable.
        """
        path = self.path_for(key)
        if path is None:
            raise CacheWriteError(f"invalid cache key: {key!r}")

        tmp_path = path.with_name(f".{path.name}.tmp.{uuid4().hex}")
        written = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("wb") as fh:
                async for chunk in chunks:
                    fh.write(chunk)
                    written += len(chunk)
            if written == 0:
                raise CacheWriteError(f"empty body for {key}")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise CacheWriteError(f"could not write {key}: {exc}") from exc
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

        return written

    def public_url(self, key: str, request: Optional[Request] = None) -> str:
        """
        Absolute URL clients use to fetch the cached file.

        Uses PUBLIC_BASE_URL when configured, otherwise derives the base from
        X-Forwarded-Proto / X-Forwarded-Host, falling back to the request's
        own scheme and host. Without either, a root-relative URL is returned.
        """
        return f"{self._base_url(request)}{CACHE_ROUTE}/{key}"

    def _base_url(self, request: Optional[Request]) -> str:
        if self.public_base_url:
            return self.public_base_url
        if request is None:
            return ""

        headers = request.headers
        proto = _first(headers.get("x-forwarded-proto")) or request.url.scheme
        host = _first(headers.get("x-forwarded-host")) or headers.get("host") or request.url.netloc
        return f"{proto}://{host}"


def _first(value: Optional[str]) -> Optional[str]:
    # Proxy chains send comma-separated lists; the client-facing hop comes first
    if not value:
        return None
    return value.split(",")[0].strip() or None
