"""Requests against the UniProt ID mapping job API.

A mapping job is submitted once and then queried by its ``jobId``.  This
module issues the individual requests (submit, status, details, results);
deciding when to poll again is left to the caller.

Results are paginated like searches: each response may carry a
``Link: <...>; rel="next"`` header whose URL is requested verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Iterator
from urllib.parse import quote, urlencode

from .exceptions import InvalidInputError, UniProtError
from .http_client import HttpResponse, Transport
from .links import extract_next_link, find_header
from .query import DEFAULT_BASE_URL, MAX_BATCH_SIZE, ResultFormat
from .search import parse_json_object, validate_response

LOGGER = logging.getLogger(__name__)

__all__ = ["MAX_IDS_PER_JOB", "MappingPage", "UniProtIdMapping"]

RUN_ENDPOINT = "/idmapping/run"
STATUS_ENDPOINT = "/idmapping/status"
DETAILS_ENDPOINT = "/idmapping/details"
RESULTS_ENDPOINT = "/idmapping/results"
STREAM_ENDPOINT = "/idmapping/stream"
FIELDS_ENDPOINT = "/configure/idmapping/fields"

MAX_IDS_PER_JOB = 100_000


@dataclass(frozen=True)
class MappingPage:
    """One batch of mapping results.

    ``failed_ids`` lists identifiers that could not be mapped.  ``next_url`` is
    the ``rel="next"`` URL of the batch, ``None`` on the last one.
    """

    results: list[dict[str, Any]]
    failed_ids: list[str] = field(default_factory=list)
    next_url: str | None = None
    total_results: int | None = None


def _require_job_id(job_id: str) -> str:
    job_id = (job_id or "").strip()
    if not job_id:
        raise InvalidInputError("Job ID cannot be empty")
    return job_id


def _total_from_headers(response: HttpResponse) -> int | None:
    value = find_header(response.headers, "x-total-results")
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class UniProtIdMapping:
    """Submit ID mapping jobs and fetch their status and results."""

    def __init__(self, transport: Transport, *, base_url: str = DEFAULT_BASE_URL) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def _job_url(self, endpoint: str, job_id: str) -> str:
        return f"{self.base_url}{endpoint}/{quote(_require_job_id(job_id), safe='')}"

    def _get_json(self, url: str) -> dict[str, Any]:
        response = self.transport.get(url)
        validate_response(response)
        return parse_json_object(response)

    def submit(
        self,
        from_db: str,
        to_db: str,
        ids: Iterable[str],
        tax_id: int | None = None,
    ) -> str:
        """Submit a mapping job and return its ``jobId``.

        Raises
        ------
        InvalidInputError
            If no identifiers are given or more than :data:`MAX_IDS_PER_JOB`.
        UniProtError
            If the API rejects the job or answers without a ``jobId``.
        """

        id_list = [str(item).strip() for item in ids if str(item).strip()]
        if not id_list:
            raise InvalidInputError("IDs list cannot be empty")
        if len(id_list) > MAX_IDS_PER_JOB:
            raise InvalidInputError(
                f"Maximum {MAX_IDS_PER_JOB} IDs per job exceeded. Got {len(id_list)}"
            )
        if not from_db or not to_db:
            raise InvalidInputError("Source and target databases are required")

        form: dict[str, str] = {"from": from_db, "to": to_db, "ids": ",".join(id_list)}
        if tax_id is not None:
            form["taxId"] = str(tax_id)

        response = self.transport.post(f"{self.base_url}{RUN_ENDPOINT}", data=form)
        validate_response(response)
        job_id = parse_json_object(response).get("jobId")
        if not job_id:
            raise UniProtError("No jobId in response", api_response=response.body)
        LOGGER.info(
            "Submitted ID mapping job %s (%d ids, %s -> %s)",
            job_id,
            len(id_list),
            from_db,
            to_db,
        )
        return str(job_id)

    def status(self, job_id: str) -> dict[str, Any]:
        """Return the status document of ``job_id``.

        A ``303`` answer means the job has finished and is parsed like ``200``.
        An empty body yields ``{}``.
        """

        response = self.transport.get(self._job_url(STATUS_ENDPOINT, job_id))
        if response.status not in (200, 303):
            raise UniProtError(
                f"Unexpected status code: {response.status}",
                http_status=response.status,
                api_response=response.body,
            )
        if not response.body.strip():
            return {}
        return parse_json_object(response)

    def get_details(self, job_id: str) -> dict[str, Any]:
        return self._get_json(self._job_url(DETAILS_ENDPOINT, job_id))

    def get_results(self, job_id: str, size: int = 25) -> MappingPage:
        """Return the first batch of results of a finished job."""

        if isinstance(size, bool) or not isinstance(size, int):
            raise InvalidInputError(f"size must be an integer, got {size!r}")
        if not 1 <= size <= MAX_BATCH_SIZE:
            msg = f"size must be between 1 and {MAX_BATCH_SIZE}, got {size}"
            raise InvalidInputError(msg)
        url = f"{self._job_url(RESULTS_ENDPOINT, job_id)}?{urlencode({'size': size})}"
        return self.get_results_page(url)

    def get_results_page(self, url: str) -> MappingPage:
        """Fetch the batch at ``url``, typically a previous page's ``next_url``."""

        response = self.transport.get(url)
        validate_response(response)
        payload = parse_json_object(response)
        results = payload.get("results")
        if not isinstance(results, list):
            raise UniProtError(
                "Mapping response is not a result batch", api_response=response.body
            )
        failed = payload.get("failedIds")
        return MappingPage(
            results=results,
            failed_ids=list(failed) if isinstance(failed, list) else [],
            next_url=extract_next_link(response.headers),
            total_results=_total_from_headers(response),
        )

    def iter_results(
        self, job_id: str, size: int = MAX_BATCH_SIZE
    ) -> Iterator[dict[str, Any]]:
        """Yield every result of ``job_id``, following ``rel="next"`` links.

        Unlike search iteration, a failing batch request raises.
        """

        page = self.get_results(job_id, size)
        while True:
            yield from page.results
            if page.next_url is None:
                return
            LOGGER.debug("Following mapping cursor %s", page.next_url)
            page = self.get_results_page(page.next_url)

    def stream_results(
        self,
        job_id: str,
        format: ResultFormat | str = "json",
        fields: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Return all results in one response from the stream endpoint.

        JSON is returned as a dictionary; other formats as
        ``{"body": <text>, "format": <format>}``.
        """

        fmt = ResultFormat.parse(format)
        params = {"format": fmt.value}
        field_list = [str(item) for item in fields if str(item).strip()]
        if field_list:
            params["fields"] = ",".join(field_list)
        query = urlencode(params, quote_via=quote)
        url = f"{self._job_url(STREAM_ENDPOINT, job_id)}?{query}"
        response = self.transport.get(url)
        validate_response(response)
        if fmt is ResultFormat.JSON:
            return parse_json_object(response)
        return {"body": response.body, "format": fmt.value}

    def get_available_databases(self) -> dict[str, Any]:
        """Return the from/to database configuration of the mapping service."""

        return self._get_json(f"{self.base_url}{FIELDS_ENDPOINT}")
