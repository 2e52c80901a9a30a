import httpx
import pytest

from app.core.errors import NotFoundError
from app.services.retry import backoff_delay, is_retryable, with_retry


def _status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.org/image.png")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class _Flaky:
    """Raises the queued errors in order, then returns 'ok'."""

    def __init__(self, *errors: Exception):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_backoff_delay_doubles():
    assert [backoff_delay(n, 0.5) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


@pytest.mark.parametrize("code,expected", [(404, False), (400, False), (403, False), (429, True), (500, True), (503, True)])
def test_status_classification(code: int, expected: bool):
    assert is_retryable(_status_error(code)) is expected


def test_transport_errors_are_retryable():
    assert is_retryable(httpx.ConnectTimeout("slow"))
    assert is_retryable(httpx.ConnectError("refused"))
    assert not is_retryable(ValueError("bad json"))


async def test_not_found_aborts_without_retry(sleeps):
    op = _Flaky(_status_error(404))
    with pytest.raises(NotFoundError):
        await with_retry(op, attempts=3, base_delay=0.5, label="t", sleep=sleeps)
    assert op.calls == 1
    assert sleeps.delays == []


async def test_rate_limited_is_retried_with_increasing_delay(sleeps):
    op = _Flaky(_status_error(429), _status_error(429))
    assert await with_retry(op, attempts=3, base_delay=0.5, label="t", sleep=sleeps) == "ok"
    assert op.calls == 3
    assert sleeps.delays == [0.5, 1.0]


async def test_budget_exhaustion_raises_last_error(sleeps):
    op = _Flaky(_status_error(503), httpx.ReadTimeout("slow"), _status_error(502))
    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await with_retry(op, attempts=3, base_delay=1.0, label="t", sleep=sleeps)
    assert excinfo.value.response.status_code == 502
    assert op.calls == 3
    assert sleeps.delays == [1.0, 2.0]


async def test_client_error_aborts_immediately(sleeps):
    op = _Flaky(_status_error(403))
    with pytest.raises(httpx.HTTPStatusError):
        await with_retry(op, attempts=3, base_delay=0.5, label="t", sleep=sleeps)
    assert op.calls == 1
    assert sleeps.delays == []
