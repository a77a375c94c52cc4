"""Lazy iteration over every record matching a search.

Algorithm Notes
---------------
1. The first ``next()`` call performs the initial search request.  Errors at
   this point propagate to the caller.
2. Records are handed out from the current batch.  Only when the batch is
   used up is the ``rel="next"`` URL of the previous response requested.
3. A cursor hop that fails (non-200 status, invalid or empty payload, network
   error) ends the iteration quietly.  The cause is kept on
   :attr:`SearchResults.error` so callers can tell a failure from the natural
   end of the result set.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import TYPE_CHECKING, Any, Iterator

from .exceptions import InvalidInputError, UniProtError
from .links import extract_next_link
from .query import ResultFormat, SearchOptions

if TYPE_CHECKING:  # pragma: no cover
    from .search import UniProtSearch

LOGGER = logging.getLogger(__name__)

__all__ = ["IteratorState", "SearchResults", "extract_records"]

Record = dict[str, Any]


class IteratorState(str, Enum):
    """Lifecycle of a :class:`SearchResults` iteration."""

    NOT_STARTED = "not_started"
    FETCHING_FIRST = "fetching_first"
    HAS_BATCH = "has_batch"
    FETCHING_NEXT = "fetching_next"
    EXHAUSTED = "exhausted"


def extract_records(payload: Any) -> list[Record] | None:
    """Return the ``results`` array of a batch payload.

    ``None`` is returned when ``payload`` is not shaped like a batch.
    """

    if not isinstance(payload, dict):
        return None
    records = payload.get("results")
    if not isinstance(records, list):
        return None
    return records


class SearchResults(Iterator[Record]):
    """Forward-only iterator over all records of a search.

    ``iter(results)`` returns the iterator itself, so a partially consumed
    instance continues where it stopped.  :meth:`restart` begins again from the
    first record, which issues a new initial request.

    Attributes
    ----------
    state:
        Current :class:`IteratorState`.
    position:
        Number of records returned so far, i.e. the 0-based position of the
        next record across all batches.
    batches_fetched:
        Number of HTTP requests issued by the current iteration.
    error:
        Exception that ended the iteration early, ``None`` otherwise.
    """

    def __init__(
        self, search: "UniProtSearch", query: str, options: SearchOptions
    ) -> None:
        if options.format is not ResultFormat.JSON:
            msg = f"Record iteration requires JSON format, got {options.format.value!r}"
            raise InvalidInputError(msg)
        self._search = search
        self.query = query
        self.options = options
        self._reset()

    def _reset(self) -> None:
        self.state = IteratorState.NOT_STARTED
        self.position = 0
        self.batches_fetched = 0
        self.error: Exception | None = None
        self._batch: list[Record] = []
        self._index = 0
        self._next_url: str | None = None

    @property
    def index(self) -> int | None:
        """0-based position of the last returned record, ``None`` before the first."""

        return self.position - 1 if self.position else None

    @property
    def exhausted(self) -> bool:
        return self.state is IteratorState.EXHAUSTED

    @property
    def failed(self) -> bool:
        """``True`` when the iteration ended because a cursor hop failed."""

        return self.error is not None

    def restart(self) -> "SearchResults":
        """Discard all progress; the next record is fetched with a new request."""

        self._reset()
        return self

    def __iter__(self) -> "SearchResults":
        return self

    def __next__(self) -> Record:
        if self.state is IteratorState.NOT_STARTED:
            self._fetch_first()
        while self.state is IteratorState.HAS_BATCH:
            if self._index < len(self._batch):
                record = self._batch[self._index]
                self._index += 1
                self.position += 1
                return record
            self._fetch_next()
        raise StopIteration

    def _fetch_first(self) -> None:
        self.state = IteratorState.FETCHING_FIRST
        try:
            page = self._search.get_first_page(self.query, self.options)
        except Exception:
            self.state = IteratorState.NOT_STARTED
            raise
        self.batches_fetched += 1
        self._set_batch(page.records, page.next_url)

    def _fetch_next(self) -> None:
        if self._next_url is None:
            self.state = IteratorState.EXHAUSTED
            LOGGER.debug(
                "Search %r exhausted after %d records", self.query, self.position
            )
            return
        self.state = IteratorState.FETCHING_NEXT
        url = self._next_url
        try:
            response = self._search.transport.get(url)
        except UniProtError as exc:
            self._fail(url, exc)
            return
        self.batches_fetched += 1
        if response.status != 200:
            self._fail(url, UniProtError(
                f"Cursor request returned HTTP {response.status}",
                http_status=response.status,
                api_response=response.body,
            ))
            return
        try:
            records = extract_records(response.json())
        except ValueError as exc:
            self._fail(url, exc)
            return
        if records is None:
            self._fail(url, UniProtError("Cursor response is not a result batch"))
            return
        if not records:
            # An empty batch is treated as the end of the result set.
            self.state = IteratorState.EXHAUSTED
            return
        self._set_batch(records, extract_next_link(response.headers))

    def _set_batch(self, records: list[Record], next_url: str | None) -> None:
        self._batch = list(records)
        self._index = 0
        self._next_url = next_url
        self.state = IteratorState.HAS_BATCH

    def _fail(self, url: str, exc: Exception) -> None:
        LOGGER.warning(
            "Stopping search %r at position %d: cursor request %s failed: %s",
            self.query,
            self.position,
            url,
            exc,
        )
        self.error = exc
        self.state = IteratorState.EXHAUSTED
