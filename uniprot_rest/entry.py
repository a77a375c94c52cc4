"""Retrieval of individual UniProtKB entries by accession."""

from __future__ import annotations

import logging
from typing import Any, Iterable
from urllib.parse import quote

from .exceptions import InvalidInputError, UniProtError
from .http_client import HttpResponse, Transport
from .query import DEFAULT_BASE_URL, ResultFormat
from .search import parse_json_object, validate_response

LOGGER = logging.getLogger(__name__)

__all__ = ["UniProtEntry"]

ENTRY_ENDPOINT = "/uniprotkb"


class UniProtEntry:
    """Fetch single entries from ``/uniprotkb/{accession}``.

    JSON entries are returned as dictionaries.  Any other format is returned as
    ``{"body": <text>, "format": <format>}`` without interpretation.
    """

    def __init__(self, transport: Transport, *, base_url: str = DEFAULT_BASE_URL) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def build_url(self, accession: str, format: ResultFormat | str = "json") -> str:
        fmt = ResultFormat.parse(format)
        path = f"{self.base_url}{ENTRY_ENDPOINT}/{quote(accession, safe='')}"
        if fmt is ResultFormat.JSON:
            return path
        return f"{path}.{fmt.value}"

    def _fetch(self, url: str) -> HttpResponse:
        LOGGER.debug("Fetching entry %s", url)
        response = self.transport.get(url)
        if response.status == 404:
            raise UniProtError(
                "Entry not found (404)", http_status=404, api_response=response.body
            )
        validate_response(response)
        return response

    def get(self, accession: str, format: ResultFormat | str = "json") -> dict[str, Any]:
        """Return the entry for ``accession``.

        Raises
        ------
        InvalidInputError
            If ``accession`` is blank or ``format`` unknown.
        UniProtError
            For missing entries (status ``404``) and other HTTP errors.
        TransportError
            When the request could not be performed.
        """

        accession = (accession or "").strip()
        if not accession:
            raise InvalidInputError("Accession number cannot be empty")
        fmt = ResultFormat.parse(format)
        response = self._fetch(self.build_url(accession, fmt))
        if fmt is ResultFormat.JSON:
            return parse_json_object(response)
        return {"body": response.body, "format": fmt.value}

    def get_batch(
        self, accessions: Iterable[str], format: ResultFormat | str = "json"
    ) -> list[dict[str, Any]]:
        """Fetch several entries one by one.

        A failing accession does not abort the batch; it is reported as
        ``{"error": <message>, "accession": <accession>}`` at its position.
        """

        accession_list = list(accessions)
        if not accession_list:
            raise InvalidInputError("Accession list cannot be empty")
        results: list[dict[str, Any]] = []
        for accession in accession_list:
            try:
                results.append(self.get(accession, format))
            except UniProtError as exc:
                LOGGER.warning("Failed to fetch %s: %s", accession, exc)
                results.append({"error": str(exc), "accession": accession})
        return results

    def exists(self, accession: str) -> bool:
        """Return ``True`` when ``accession`` resolves to an entry."""

        accession = (accession or "").strip()
        if not accession:
            return False
        try:
            return self.transport.get(self.build_url(accession)).status == 200
        except UniProtError as exc:
            LOGGER.debug("Existence check for %s failed: %s", accession, exc)
            return False

    def get_with_fields(self, accession: str, fields: Iterable[str] = ()) -> dict[str, Any]:
        """Return a JSON entry restricted to ``fields``."""

        field_list = [str(item) for item in fields if str(item).strip()]
        if not field_list:
            return self.get(accession)
        accession = (accession or "").strip()
        if not accession:
            raise InvalidInputError("Accession number cannot be empty")
        field_str = ",".join(quote(item, safe="") for item in field_list)
        response = self._fetch(f"{self.build_url(accession)}?fields={field_str}")
        return parse_json_object(response)
