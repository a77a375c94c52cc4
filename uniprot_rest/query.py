"""Search options and URL construction for ``/uniprotkb/search``."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping
from urllib.parse import quote, urlencode

from .exceptions import InvalidInputError

__all__ = [
    "DEFAULT_BASE_URL",
    "MAX_BATCH_SIZE",
    "ResultFormat",
    "SearchOptions",
    "build_search_url",
]

DEFAULT_BASE_URL = "https://rest.uniprot.org"
SEARCH_ENDPOINT = "/uniprotkb/search"

#: Largest ``size`` accepted by the search endpoint.
MAX_BATCH_SIZE = 500


class ResultFormat(str, Enum):
    """Response formats supported by the UniProtKB endpoints."""

    JSON = "json"
    TSV = "tsv"
    FASTA = "fasta"
    XML = "xml"
    GFF = "gff"
    TXT = "txt"
    LIST = "list"

    @classmethod
    def parse(cls, value: "ResultFormat | str") -> "ResultFormat":
        try:
            return cls(str(value.value if isinstance(value, cls) else value).lower())
        except ValueError as exc:
            allowed = ", ".join(item.value for item in cls)
            msg = f"Unsupported format {value!r}; expected one of: {allowed}"
            raise InvalidInputError(msg) from exc


def _ordered_unique(fields: Iterable[str]) -> tuple[str, ...]:
    cleaned = (str(item).strip() for item in fields)
    return tuple(dict.fromkeys(item for item in cleaned if item))


@dataclass(frozen=True)
class SearchOptions:
    """Immutable options attached to a search.

    Attributes
    ----------
    size:
        Records per request. Values above :data:`MAX_BATCH_SIZE` are clamped.
    format:
        Response format, JSON unless stated otherwise.
    fields:
        Ordered, de-duplicated return fields. Empty means the API default.
    cursor:
        Optional cursor to start from.
    include_isoform, compressed:
        Sent as ``true``/``false`` only when not ``None``.
    """

    size: int = MAX_BATCH_SIZE
    format: ResultFormat = ResultFormat.JSON
    fields: tuple[str, ...] = field(default_factory=tuple)
    cursor: str | None = None
    include_isoform: bool | None = None
    compressed: bool | None = None

    def __post_init__(self) -> None:
        try:
            size = int(self.size)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"size must be an integer, got {self.size!r}") from exc
        if size < 1:
            raise InvalidInputError(f"size must be at least 1, got {size}")
        object.__setattr__(self, "size", min(size, MAX_BATCH_SIZE))
        object.__setattr__(self, "format", ResultFormat.parse(self.format))
        if isinstance(self.fields, str):
            object.__setattr__(self, "fields", _ordered_unique(self.fields.split(",")))
        else:
            object.__setattr__(self, "fields", _ordered_unique(self.fields))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SearchOptions":
        """Build options from a loosely typed mapping.

        Both the snake_case attribute names and the API's camelCase
        ``includeIsoform`` key are accepted. Unknown keys are rejected.
        """

        if not data:
            return cls()
        payload = dict(data)
        if "includeIsoform" in payload:
            payload["include_isoform"] = payload.pop("includeIsoform")
        unknown = set(payload) - {
            "size",
            "format",
            "fields",
            "cursor",
            "include_isoform",
            "compressed",
        }
        if unknown:
            raise InvalidInputError(f"Unknown search options: {sorted(unknown)}")
        return cls(**payload)

    def with_size(self, size: int) -> "SearchOptions":
        return replace(self, size=size)

    def to_params(self) -> dict[str, str]:
        """Return the query parameters in the order the API documents them."""

        params = {"format": self.format.value, "size": str(self.size)}
        if self.fields:
            params["fields"] = ",".join(self.fields)
        if self.cursor:
            params["cursor"] = self.cursor
        if self.include_isoform is not None:
            params["includeIsoform"] = "true" if self.include_isoform else "false"
        if self.compressed is not None:
            params["compressed"] = "true" if self.compressed else "false"
        return params


def build_search_url(
    query: str, options: SearchOptions | None = None, *, base_url: str = DEFAULT_BASE_URL
) -> str:
    """Return the full search URL for ``query``.

    Spaces are encoded as ``%20`` (RFC 3986) rather than ``+``.
    """

    opts = options or SearchOptions()
    params = {"query": query, **opts.to_params()}
    return f"{base_url.rstrip('/')}{SEARCH_ENDPOINT}?{urlencode(params, quote_via=quote)}"
