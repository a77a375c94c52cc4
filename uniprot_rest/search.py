"""Search client for the UniProtKB ``/search`` endpoint.

Algorithm Notes
---------------
UniProt only offers cursor pagination with at most 500 records per request.
:meth:`UniProtSearch.get_paginated_results` emulates offset paging on top of
it:

1. Count the matches with a ``size=1`` request (``x-total-results`` header).
2. Split the offset into ``offset // 500`` complete batches and a position
   inside the target batch.
3. Request the first 500-record batch, then follow ``rel="next"`` links once
   per complete batch, discarding the records.  A fixed pause precedes every
   request of this walk, the first one included.
4. Slice the page out of the target batch.  Failures during steps 3-4 yield an
   empty page flagged as incomplete instead of an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Any, Callable, Mapping

from requests.structures import CaseInsensitiveDict

from .exceptions import InvalidInputError, UniProtError
from .http_client import HttpResponse, Transport
from .links import extract_next_link, find_header
from .pagination import PageView, normalise_offset, normalise_page_size
from .query import (
    DEFAULT_BASE_URL,
    MAX_BATCH_SIZE,
    ResultFormat,
    SearchOptions,
    build_search_url,
)
from .results import Record, SearchResults, extract_records

LOGGER = logging.getLogger(__name__)

__all__ = ["DEFAULT_HOP_DELAY", "FirstPage", "UniProtSearch"]

#: Pause in seconds before each request of an offset walk.
DEFAULT_HOP_DELAY = 0.5

OptionsLike = SearchOptions | Mapping[str, Any] | None


@dataclass(frozen=True)
class FirstPage:
    """Result of a single search request.

    ``records`` is empty for non-JSON formats; the raw payload is in ``body``.
    """

    records: list[Record]
    headers: CaseInsensitiveDict
    body: str
    format: ResultFormat = ResultFormat.JSON
    next_url: str | None = None


def _coerce_options(options: OptionsLike) -> SearchOptions:
    if isinstance(options, SearchOptions):
        return options
    return SearchOptions.from_mapping(options)


def _require_query(query: str) -> str:
    if not isinstance(query, str) or not query.strip():
        raise InvalidInputError("Query cannot be empty")
    return query


def _api_error_message(body: str) -> str | None:
    """Join the ``messages`` array of a UniProt error payload."""

    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("messages"), list):
        return "; ".join(str(message) for message in payload["messages"])
    return None


def validate_response(response: HttpResponse) -> None:
    """Raise :class:`UniProtError` unless ``response`` has a 2xx status."""

    if response.status >= 400:
        api_message = _api_error_message(response.body)
        raise UniProtError(
            api_message or f"HTTP {response.status} error",
            http_status=response.status,
            api_response=response.body,
            api_error_message=api_message,
        )
    if not response.ok:
        raise UniProtError(
            f"Unexpected HTTP status: {response.status}", http_status=response.status
        )


def parse_json_object(response: HttpResponse) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise UniProtError(f"Failed to parse JSON response: {exc}") from exc
    if not isinstance(payload, dict):
        raise UniProtError("Invalid JSON response: expected object")
    return payload


class UniProtSearch:
    """Search UniProtKB with lazy or offset based pagination.

    Parameters
    ----------
    transport:
        Object implementing :class:`~uniprot_rest.http_client.Transport`.
    base_url:
        API root, ``https://rest.uniprot.org`` by default.
    hop_delay:
        Seconds slept before every request of an offset walk, including the
        first batch request after the count request.  A walk over ``n`` complete
        batches therefore sleeps ``n + 1`` times.
    sleep:
        Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        base_url: str = DEFAULT_BASE_URL,
        hop_delay: float = DEFAULT_HOP_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if hop_delay < 0:
            raise InvalidInputError(f"hop_delay must not be negative, got {hop_delay}")
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.hop_delay = hop_delay
        self._sleep = sleep

    def build_url(self, query: str, options: OptionsLike = None) -> str:
        return build_search_url(query, _coerce_options(options), base_url=self.base_url)

    # ------------------------------------------------------------------
    def search(self, query: str, options: OptionsLike = None) -> SearchResults:
        """Return a lazy iterator over every record matching ``query``.

        No request is made until the first record is requested.
        """

        return SearchResults(self, _require_query(query), _coerce_options(options))

    def get_first_page(self, query: str, options: OptionsLike = None) -> FirstPage:
        """Fetch the first batch of ``query`` together with its headers.

        Raises
        ------
        InvalidInputError
            If ``query`` is empty.
        UniProtError
            On HTTP errors or, for JSON, an unparseable body.
        TransportError
            When the request could not be performed.
        """

        opts = _coerce_options(options)
        url = self.build_url(_require_query(query), opts)
        LOGGER.debug("Fetching first page: %s", url)
        response = self.transport.get(url)
        validate_response(response)
        next_url = extract_next_link(response.headers)
        if opts.format is not ResultFormat.JSON:
            return FirstPage(
                records=[],
                headers=response.headers,
                body=response.body,
                format=opts.format,
                next_url=next_url,
            )
        payload = parse_json_object(response)
        return FirstPage(
            records=extract_records(payload) or [],
            headers=response.headers,
            body=response.body,
            format=opts.format,
            next_url=next_url,
        )

    def get_total_count(self, query: str, options: OptionsLike = None) -> int:
        """Return the number of records matching ``query``.

        A single ``size=1`` request is issued.  The ``x-total-results`` header
        is authoritative; without it the records of that response are counted.
        """

        opts = _coerce_options(options).with_size(1)
        url = self.build_url(_require_query(query), opts)
        response = self.transport.get(url)
        validate_response(response)

        header = find_header(response.headers, "x-total-results")
        if header is not None:
            try:
                return int(str(header).strip())
            except ValueError:
                LOGGER.debug("Ignoring non numeric x-total-results %r", header)

        records = extract_records(parse_json_object(response))
        return len(records) if records else 0

    def get_paginated_results(
        self,
        query: str,
        offset: int = 0,
        page_size: int = 10,
        options: OptionsLike = None,
    ) -> PageView:
        """Return ``page_size`` records starting at ``offset``.

        ``page_size`` outside of
        :data:`~uniprot_rest.pagination.ALLOWED_PAGE_SIZES` falls back to 10
        and negative offsets to 0.  Only the count request raises; a failure
        while walking the cursors produces an empty page with
        ``complete=False``.
        """

        _require_query(query)
        page_size = normalise_page_size(page_size)
        offset = normalise_offset(offset)
        opts = _coerce_options(options)
        if opts.format is not ResultFormat.JSON:
            msg = f"Paginated results require JSON format, got {opts.format.value!r}"
            raise InvalidInputError(msg)

        total = self.get_total_count(query, opts)
        if total == 0 or offset >= total:
            return PageView.build(
                [],
                offset=offset,
                page_size=page_size,
                total_results=total,
                has_previous_page=offset > 0,
            )

        records, error = self._walk_to_offset(query, offset, page_size, opts)
        if error is not None:
            LOGGER.warning(
                "Returning empty page for %r at offset %d: %s", query, offset, error
            )
        return PageView.build(
            records,
            offset=offset,
            page_size=page_size,
            total_results=total,
            complete=error is None,
            error=error,
        )

    def _get_batch(self, url: str) -> HttpResponse:
        self._sleep(self.hop_delay)
        response = self.transport.get(url)
        validate_response(response)
        return response

    def _walk_to_offset(
        self, query: str, offset: int, page_size: int, options: SearchOptions
    ) -> tuple[list[Record], str | None]:
        complete_batches, offset_in_batch = divmod(offset, MAX_BATCH_SIZE)
        url = self.build_url(query, options.with_size(MAX_BATCH_SIZE))
        try:
            for hop in range(complete_batches):
                response = self._get_batch(url)
                next_url = extract_next_link(response.headers)
                if next_url is None:
                    return [], (
                        f"cursor chain ended after {hop + 1} of "
                        f"{complete_batches + 1} batches"
                    )
                url = next_url
            LOGGER.debug(
                "Fetching target batch after %d hops: %s", complete_batches, url
            )
            records = extract_records(parse_json_object(self._get_batch(url)))
        except UniProtError as exc:
            return [], str(exc)
        if records is None:
            return [], "target batch is not a result payload"
        return records[offset_in_batch : offset_in_batch + page_size], None
