"""Client library for the UniProtKB REST API with cursor and offset pagination."""

from .entry import UniProtEntry
from .exceptions import InvalidInputError, TransportError, UniProtError
from .http_client import CacheConfig, HttpResponse, HttpTransport, Transport
from .id_mapping import MappingPage, UniProtIdMapping
from .links import extract_next_link, parse_link_header
from .pagination import ALLOWED_PAGE_SIZES, PageView
from .query import MAX_BATCH_SIZE, ResultFormat, SearchOptions, build_search_url
from .results import IteratorState, SearchResults
from .search import FirstPage, UniProtSearch

__version__ = "0.1.0"

__all__ = [
    "ALLOWED_PAGE_SIZES",
    "CacheConfig",
    "FirstPage",
    "HttpResponse",
    "HttpTransport",
    "InvalidInputError",
    "IteratorState",
    "MappingPage",
    "MAX_BATCH_SIZE",
    "PageView",
    "ResultFormat",
    "SearchOptions",
    "SearchResults",
    "Transport",
    "TransportError",
    "UniProtEntry",
    "UniProtError",
    "UniProtIdMapping",
    "UniProtSearch",
    "build_search_url",
    "extract_next_link",
    "parse_link_header",
]
