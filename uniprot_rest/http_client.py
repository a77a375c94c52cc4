"""HTTP transport used by the UniProt clients.

The pagination engine never talks to :mod:`requests` directly.  It consumes any
object implementing the :class:`Transport` protocol: a synchronous ``get`` and
``post`` returning an :class:`HttpResponse`.  :class:`HttpTransport` is the
default implementation built on :class:`requests.Session`.

Algorithm Notes
---------------
1. Before each outgoing request the transport waits on its
   :class:`RateLimiter`.
2. Connection errors and transient statuses (408, 429, 5xx) are retried with
   exponential backoff, honouring ``Retry-After`` when the server sends it.
3. When retries are exhausted on a transient status the last response is
   returned to the caller.  Only network failures raise, as
   :class:`~uniprot_rest.exceptions.TransportError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from importlib import import_module
import json
import logging
from pathlib import Path
from threading import RLock
import time
from types import ModuleType, TracebackType
from typing import Any, Iterable, Mapping, Protocol, Sequence, cast

import requests  # type: ignore[import-untyped]
from requests.structures import CaseInsensitiveDict
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .exceptions import TransportError

LOGGER = logging.getLogger(__name__)

USER_AGENT = "uniprot-rest/0.1 (Python client library)"

DEFAULT_STATUS_FORCELIST: frozenset[int] = frozenset(
    {408, 429, 500, 502, 503, 504}
)


@dataclass(frozen=True)
class HttpResponse:
    """Transport independent view of an HTTP response.

    ``headers`` is always case-insensitive because UniProt does not guarantee
    the casing of ``Link`` or ``X-Total-Results``.
    """

    status: int
    body: str
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers or {}))

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON, raising :class:`ValueError` on bad input."""

        return json.loads(self.body)


FormData = Mapping[str, "str | Sequence[str]"]


class Transport(Protocol):
    """Minimal synchronous HTTP contract consumed by the clients."""

    def get(
        self, url: str, headers: Mapping[str, str] | None = None
    ) -> HttpResponse: ...

    def post(
        self,
        url: str,
        data: FormData | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse: ...


def _parse_retry_after(value: str | None) -> float | None:
    """Return the delay in seconds encoded in a ``Retry-After`` value."""

    if not value or not value.strip():
        return None
    candidate = value.strip()
    try:
        return max(0.0, float(candidate))
    except ValueError:
        pass
    try:
        retry_dt = parsedate_to_datetime(candidate)
    except (TypeError, ValueError):
        return None
    if retry_dt.tzinfo is None:
        retry_dt = retry_dt.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_dt - datetime.now(timezone.utc)).total_seconds())


def retry_after_from_response(response: requests.Response) -> float | None:
    """Return the pause requested by ``response`` or ``None``."""

    return _parse_retry_after(response.headers.get("Retry-After"))


class TransientStatusError(Exception):
    """Internal signal used to make tenacity retry on transient statuses."""

    def __init__(self, response: requests.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class RetryAfterWaitStrategy(wait_base):
    """Tenacity wait strategy preferring the server's ``Retry-After`` hint."""

    def __init__(self, fallback: wait_base) -> None:
        self._fallback = fallback

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            exception = outcome.exception()
            if isinstance(exception, TransientStatusError):
                retry_after = retry_after_from_response(exception.response)
                if retry_after is not None:
                    LOGGER.debug("Retry-After requested %.2f seconds", retry_after)
                    return retry_after
        return self._fallback(retry_state)


def _import_requests_cache() -> ModuleType | None:
    """Return :mod:`requests_cache` when the optional extra is installed."""

    try:
        return import_module("requests_cache")
    except ModuleNotFoundError:
        return None


@dataclass
class CacheConfig:
    """Persistent HTTP cache settings.

    Caching only becomes active when ``enabled`` is set, a ``path`` is given
    and ``ttl_seconds`` is positive.
    """

    enabled: bool = False
    path: str | None = None
    ttl_seconds: float = 0.0

    def is_active(self) -> bool:
        return bool(self.enabled and self.path and self.ttl_seconds > 0)


def create_http_session(cache_config: CacheConfig | None = None) -> requests.Session:
    """Return a session honouring ``cache_config``.

    Cursor URLs are short-lived, so only the caller decides whether caching
    makes sense.  A plain :class:`requests.Session` is returned when the cache
    is inactive or ``requests-cache`` is not installed.
    """

    if cache_config is None or not cache_config.is_active():
        return requests.Session()
    requests_cache_module = _import_requests_cache()
    if requests_cache_module is None:
        LOGGER.warning(
            "HTTP caching requested but 'requests-cache' is not installed; "
            "install the 'cache' extra to enable it. Proceeding without cache."
        )
        return requests.Session()

    assert cache_config.path is not None
    cache_path = Path(cache_config.path).expanduser()
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.debug(
        "HTTP cache enabled at %s with TTL %.0f s", cache_path, cache_config.ttl_seconds
    )
    cached_session_factory = cast(Any, requests_cache_module).CachedSession
    return cached_session_factory(
        cache_name=str(cache_path),
        backend="sqlite",
        expire_after=int(cache_config.ttl_seconds),
        allowable_methods=("GET",),
    )


@dataclass
class RateLimiter:
    """Enforce a maximum number of requests per second.

    ``rps`` of ``0`` disables limiting.  :meth:`apply_penalty` pushes the next
    allowed request further out, e.g. after a ``429`` response.
    """

    rps: float
    last_call: float = 0.0
    blocked_until: float = 0.0
    lock: RLock = field(default_factory=RLock, init=False, repr=False, compare=False)

    def wait(self) -> None:
        with self.lock:
            now = time.monotonic()
            wait_until = max(now, self.blocked_until)
            if self.rps > 0:
                wait_until = max(wait_until, self.last_call + 1.0 / self.rps)
            if wait_until > now:
                time.sleep(wait_until - now)
            self.last_call = time.monotonic()

    def apply_penalty(self, delay_seconds: float | None) -> None:
        if not delay_seconds or delay_seconds <= 0:
            return
        with self.lock:
            self.blocked_until = max(
                self.blocked_until, time.monotonic() + delay_seconds
            )


def _to_http_response(response: requests.Response) -> HttpResponse:
    return HttpResponse(
        status=response.status_code,
        body=response.text,
        headers=CaseInsensitiveDict(response.headers),
    )


class HttpTransport:
    """:class:`Transport` implementation backed by :mod:`requests`.

    Args:
        timeout: Per request timeout in seconds.
        max_retries: Number of retries after the initial attempt for
            connection errors and statuses in ``status_forcelist``.
        rps: Requests per second allowed by the rate limiter. ``0`` disables
            rate limiting.
        backoff_multiplier: Multiplier for the exponential backoff.
        status_forcelist: Statuses considered transient.
        cache_config: Optional persistent cache configuration.
        session: Optional pre-configured session. Sessions passed in are not
            closed by :meth:`close`.
        user_agent: Value of the ``User-Agent`` header.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        rps: float = 0.0,
        backoff_multiplier: float = 1.0,
        status_forcelist: Iterable[int] | None = None,
        cache_config: CacheConfig | None = None,
        session: requests.Session | None = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_multiplier = backoff_multiplier
        self.rate_limiter = RateLimiter(rps)
        self.status_forcelist = (
            set(DEFAULT_STATUS_FORCELIST)
            if status_forcelist is None
            else set(status_forcelist)
        )
        self.user_agent = user_agent
        self._owns_session = session is None
        self.session = session if session is not None else create_http_session(
            cache_config
        )

    def close(self) -> None:
        """Close the underlying session when it was created by the transport."""

        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        return self.request("GET", url, headers=headers)

    def post(
        self,
        url: str,
        data: FormData | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        return self.request("POST", url, headers=headers, data=data)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        data: FormData | None = None,
    ) -> HttpResponse:
        """Perform one HTTP request with retries and rate limiting.

        Raises
        ------
        TransportError
            When the request could not be completed after all retries.
        """

        merged_headers = {"User-Agent": self.user_agent, **dict(headers or {})}

        def _log_retry(retry_state: RetryCallState) -> None:
            if retry_state.outcome is None:
                return
            exception = retry_state.outcome.exception()
            sleep_seconds = 0.0
            if retry_state.next_action is not None:
                sleep_seconds = float(retry_state.next_action.sleep or 0.0)
            if isinstance(exception, TransientStatusError):
                reason = f"HTTP {exception.response.status_code}"
                if exception.response.status_code == 429:
                    self.rate_limiter.apply_penalty(sleep_seconds)
            else:
                reason = repr(exception)
            LOGGER.warning(
                "Retrying %s %s (attempt %d/%d) after %.2f seconds due to %s",
                method,
                url,
                retry_state.attempt_number + 1,
                self.max_retries + 1,
                sleep_seconds,
                reason,
            )

        @retry(
            reraise=True,
            retry=retry_if_exception_type(
                (requests.RequestException, TransientStatusError)
            ),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=RetryAfterWaitStrategy(
                wait_exponential(multiplier=self.backoff_multiplier)
            ),
            before_sleep=_log_retry,
        )
        def _do_request() -> requests.Response:
            self.rate_limiter.wait()
            LOGGER.debug("HTTP %s %s", method, url)
            resp = self.session.request(
                method, url, headers=merged_headers, data=data, timeout=self.timeout
            )
            if resp.status_code in self.status_forcelist:
                raise TransientStatusError(resp)
            return resp

        try:
            resp = _do_request()
        except TransientStatusError as exc:
            LOGGER.warning(
                "Giving up on %s %s after HTTP %s",
                method,
                url,
                exc.response.status_code,
            )
            resp = exc.response
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return _to_http_response(resp)


__all__ = [
    "CacheConfig",
    "DEFAULT_STATUS_FORCELIST",
    "HttpResponse",
    "HttpTransport",
    "RateLimiter",
    "RetryAfterWaitStrategy",
    "Transport",
    "create_http_session",
    "retry_after_from_response",
]
