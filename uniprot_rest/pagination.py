"""Offset based page model layered on top of cursor pagination."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any

__all__ = [
    "ALLOWED_PAGE_SIZES",
    "DEFAULT_PAGE_SIZE",
    "PageView",
    "build_page_links",
    "normalise_offset",
    "normalise_page_size",
]

ALLOWED_PAGE_SIZES: tuple[int, ...] = (10, 20, 50)
DEFAULT_PAGE_SIZE = ALLOWED_PAGE_SIZES[0]


def normalise_page_size(page_size: Any) -> int:
    """Return ``page_size`` when allowed, otherwise :data:`DEFAULT_PAGE_SIZE`.

    Invalid values are never an error so that UI callers can forward raw user
    input.
    """

    if isinstance(page_size, bool):
        return DEFAULT_PAGE_SIZE
    try:
        value = int(page_size)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return value if value in ALLOWED_PAGE_SIZES else DEFAULT_PAGE_SIZE


def normalise_offset(offset: Any) -> int:
    try:
        value = int(offset)
    except (TypeError, ValueError):
        return 0
    return max(value, 0)


def build_page_links(total_pages: int, page_size: int) -> dict[int, int]:
    """Map every page number (1-based) to the offset of its first record."""

    return {page: (page - 1) * page_size for page in range(1, total_pages + 1)}


@dataclass(frozen=True)
class PageView:
    """One page of an offset paginated search.

    ``complete`` is ``False`` when the cursor walk towards the page failed or
    stopped early and ``records`` therefore holds fewer entries than the
    totals promise.  ``error`` describes the cause.
    """

    records: list[dict[str, Any]]
    offset: int
    page_size: int
    current_page: int
    total_pages: int
    total_results: int
    previous_offset: int | None
    next_offset: int | None
    page_links: dict[int, int] = field(default_factory=dict)
    has_next_page: bool = False
    has_previous_page: bool = False
    complete: bool = True
    error: str | None = None

    @classmethod
    def build(
        cls,
        records: list[dict[str, Any]],
        *,
        offset: int,
        page_size: int,
        total_results: int,
        has_previous_page: bool | None = None,
        complete: bool = True,
        error: str | None = None,
    ) -> "PageView":
        """Derive page numbers, neighbour offsets and the link table.

        ``has_previous_page`` defaults to whether a previous offset exists.
        Pages past the end of the result set pass ``offset > 0`` instead, so a
        "previous" control stays available there.
        """

        total_pages = math.ceil(total_results / page_size) if total_results > 0 else 0
        previous_offset = offset - page_size if offset >= page_size else None
        next_offset = (
            offset + page_size if offset + page_size < total_results else None
        )
        return cls(
            records=records,
            offset=offset,
            page_size=page_size,
            current_page=offset // page_size + 1,
            total_pages=total_pages,
            total_results=total_results,
            previous_offset=previous_offset,
            next_offset=next_offset,
            page_links=build_page_links(total_pages, page_size),
            has_next_page=next_offset is not None,
            has_previous_page=(
                previous_offset is not None
                if has_previous_page is None
                else has_previous_page
            ),
            complete=complete,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase mapping used by web front-ends."""

        return {
            "results": list(self.records),
            "offset": self.offset,
            "pageSize": self.page_size,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalResults": self.total_results,
            "previousOffset": self.previous_offset,
            "nextOffset": self.next_offset,
            "pageLinks": dict(self.page_links),
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
            "complete": self.complete,
            "error": self.error,
        }
