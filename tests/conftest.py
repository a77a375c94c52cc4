from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Mapping
from urllib.parse import parse_qs, urlsplit

import pytest

# Allow running the tests from a source checkout without installation.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from uniprot_rest.http_client import HttpResponse  # noqa: E402
from uniprot_rest.search import UniProtSearch  # noqa: E402

SEARCH_URL = "https://rest.uniprot.org/uniprotkb/search"


def make_response(
    status: int = 200,
    payload: Any = None,
    *,
    body: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> HttpResponse:
    """Build an :class:`HttpResponse` with plain ``dict`` headers."""

    if body is None:
        body = json.dumps(payload if payload is not None else {"results": []})
    return HttpResponse(status=status, body=body, headers=dict(headers or {}))


def record(index: int) -> dict[str, Any]:
    return {"primaryAccession": f"P{index:05d}", "index": index}


class FakeTransport:
    """In-memory :class:`~uniprot_rest.http_client.Transport` recording calls."""

    def __init__(self, responder: Callable[[str], HttpResponse | Exception]) -> None:
        self.responder = responder
        self.calls: list[str] = []

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        self.calls.append(url)
        result = self.responder(url)
        if isinstance(result, Exception):
            raise result
        return result

    def post(
        self,
        url: str,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:  # pragma: no cover - not used by the clients under test
        raise AssertionError("unexpected POST")


class CursorServer:
    """Simulate the UniProt search endpoint with opaque ``c<start>`` cursors.

    ``total`` records exist.  Each response carries ``X-Total-Results`` and,
    while records remain, a ``Link`` header with ``rel="next"``.  Cursors listed
    in ``failures`` answer with the mapped response or exception instead.
    """

    def __init__(
        self,
        total: int,
        *,
        failures: Mapping[str, HttpResponse | Exception] | None = None,
        send_total_header: bool = True,
    ) -> None:
        self.total = total
        self.failures = dict(failures or {})
        self.send_total_header = send_total_header

    def __call__(self, url: str) -> HttpResponse | Exception:
        params = parse_qs(urlsplit(url).query)
        size = int(params.get("size", ["500"])[0])
        cursor = params.get("cursor", [None])[0]
        if cursor is not None and cursor in self.failures:
            return self.failures[cursor]
        start = int(cursor[1:]) if cursor else 0
        end = min(start + size, self.total)
        headers: dict[str, str] = {}
        if self.send_total_header:
            headers["X-Total-Results"] = str(self.total)
        if end < self.total:
            headers["Link"] = (
                f'<{SEARCH_URL}?format=json&cursor=c{end}&size={size}>; rel="next"'
            )
        return make_response(
            payload={"results": [record(i) for i in range(start, end)]},
            headers=headers,
        )


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_search(sleeper: SleepRecorder) -> Callable[..., tuple[UniProtSearch, FakeTransport]]:
    """Return a factory building a search client over a fake transport."""

    def _factory(
        responder: Callable[[str], HttpResponse | Exception], **kwargs: Any
    ) -> tuple[UniProtSearch, FakeTransport]:
        transport = FakeTransport(responder)
        kwargs.setdefault("sleep", sleeper)
        return UniProtSearch(transport, **kwargs), transport

    return _factory
