import httpx
import pytest
from starlette.requests import Request

from app.core.errors import CacheWriteError
from app.services.content_store import ContentStore


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _broken_stream():
    yield b"partial"
    raise httpx.ReadError("connection dropped")


def _request(headers: dict[str, str], scheme: str = "http") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": scheme,
        "path": "/earth-image",
        "query_string": b"",
        "server": ("internal", 8000),
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    })


def _leftovers(root) -> list:
    return [p for p in root.rglob(".*") if p.is_file()]


async def test_write_creates_directories_and_places_file(tmp_path):
    store = ContentStore(tmp_path)
    key = "epic/2024/08/10/epic_1b_x.png"

    assert not store.exists(key)
    written = await store.write(key, _chunks(b"abc", b"def"))

    assert written == 6
    assert store.exists(key)
    assert (tmp_path / key).read_bytes() == b"abcdef"
    assert _leftovers(tmp_path) == []

    # Existing parent directories are fine
    await store.write("epic/2024/08/10/other.png", _chunks(b"x"))
    assert store.exists("epic/2024/08/10/other.png")


async def test_interrupted_write_leaves_nothing_behind(tmp_path):
    store = ContentStore(tmp_path)
    with pytest.raises(httpx.ReadError):
        await store.write("apod/2024-08-10.jpg", _broken_stream())

    assert not store.exists("apod/2024-08-10.jpg")
    assert _leftovers(tmp_path) == []


async def test_empty_body_is_not_stored(tmp_path):
    store = ContentStore(tmp_path)
    with pytest.raises(CacheWriteError):
        await store.write("apod/2024-08-10.jpg", _chunks())
    assert not store.exists("apod/2024-08-10.jpg")


async def test_unwritable_root_raises_cache_write_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")
    store = ContentStore(blocker)
    with pytest.raises(CacheWriteError):
        await store.write("apod/2024-08-10.jpg", _chunks(b"x"))


def test_keys_cannot_escape_the_root(tmp_path):
    (tmp_path / "secret.txt").write_text("x")
    store = ContentStore(tmp_path / "cache")

    assert store.path_for("../secret.txt") is None
    assert store.path_for("") is None
    assert not store.exists("../secret.txt")


def test_public_url_prefers_static_base(tmp_path):
    store = ContentStore(tmp_path, "https://cdn.example.com/")
    request = _request({"host": "internal:8000", "x-forwarded-host": "proxy.example.org"})
    assert store.public_url("apod/2024-08-10.jpg", request) == "https://cdn.example.com/cached/apod/2024-08-10.jpg"


def test_public_url_uses_forwarded_headers(tmp_path):
    store = ContentStore(tmp_path)
    request = _request({
        "host": "internal:8000",
        "x-forwarded-proto": "https, http",
        "x-forwarded-host": "proxy.example.org",
    })
    assert store.public_url("a/b.png", request) == "https://proxy.example.org/cached/a/b.png"


def test_public_url_falls_back_to_connection(tmp_path):
    store = ContentStore(tmp_path)
    request = _request({"host": "internal:8000"})
    assert store.public_url("a/b.png", request) == "http://internal:8000/cached/a/b.png"
    assert store.public_url("a/b.png") == "/cached/a/b.png"
