import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.main import create_app
from app.services.content_store import ContentStore
from app.services.fetcher import RemoteFetcher
from app.services.image_cache import ImageCache

API = "https://api.nasa.gov"
ARCHIVE = "https://epic.gsfc.nasa.gov"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64


@dataclass
class _Reply:
    status: int = 200
    json: Any = None
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[type] = None
    delay: float = 0.0

    def build(self, request: httpx.Request, with_body: bool = True) -> httpx.Response:
        if self.error is not None:
            raise self.error("simulated failure", request=request)
        headers = {"content-type": self.content_type} if self.content_type else {}
        if not with_body:
            return httpx.Response(self.status, headers=headers)
        if self.json is not None:
            return httpx.Response(self.status, json=self.json)
        return httpx.Response(self.status, content=self.content or b"", headers=headers)


@dataclass
class FakeUpstream:
    """
    Routes requests by method + scheme://host/path (query ignored).

    Several replies for one route are served in order; the last one repeats.
    HEAD falls back to the status of the matching GET route. Unknown routes
    answer 404.
    """

    routes: dict[tuple[str, str], list[_Reply]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, url: str, method: str = "GET", **reply: Any) -> None:
        self.routes.setdefault((method, url), []).append(_Reply(**reply))

    def image(self, url: str, content: bytes = PNG, content_type: str = "image/png") -> None:
        self.add(url, content=content, content_type=content_type)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, _route(request.url))

        queue = self.routes.get(key)
        if queue is None and request.method == "HEAD":
            queue = self.routes.get(("GET", key[1]))
            if queue:
                return queue[0].build(request, with_body=False)
        if not queue:
            return httpx.Response(404)

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if reply.delay:
            await asyncio.sleep(reply.delay)
        return reply.build(request)

    def calls(self, url: str, method: str = "GET") -> int:
        return sum(1 for r in self.requests if r.method == method and _route(r.url) == url)

    def paths(self, method: str = "GET") -> list[str]:
        return [_route(r.url) for r in self.requests if r.method == method]


def _route(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        NASA_API_KEY="test-key",
        CACHE_DIR=tmp_path / "cache",
        PUBLIC_BASE_URL="",
        RETRY_BASE_DELAY_SECONDS=0.5,
        REQUEST_DEADLINE_SECONDS=10.0,
    )


@pytest.fixture
def store(settings: Settings) -> ContentStore:
    return ContentStore(settings.CACHE_DIR, "https://cdn.example.com")


@pytest_asyncio.fixture
async def fetcher(settings: Settings, upstream: FakeUpstream):
    f = RemoteFetcher(settings, transport=httpx.MockTransport(upstream.handler))
    yield f
    await f.aclose()


@pytest.fixture
def image_cache(settings: Settings, store: ContentStore, fetcher: RemoteFetcher, sleeps: SleepRecorder) -> ImageCache:
    return ImageCache(settings, store, fetcher, sleep=sleeps)


@pytest_asyncio.fixture
async def client(settings: Settings, upstream: FakeUpstream, sleeps: SleepRecorder):
    app = create_app(settings, transport=httpx.MockTransport(upstream.handler), sleep=sleeps)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
