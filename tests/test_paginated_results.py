from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import CursorServer, make_response, record
from uniprot_rest.exceptions import InvalidInputError, TransportError, UniProtError
from uniprot_rest.pagination import PageView, build_page_links, normalise_page_size


def _size(url: str) -> str:
    return parse_qs(urlsplit(url).query)["size"][0]


def test_first_page_metadata(make_search) -> None:
    search, transport = make_search(CursorServer(20420))

    view = search.get_paginated_results("reviewed:true", offset=0, page_size=10)

    assert view.current_page == 1
    assert view.total_pages == 2042
    assert view.total_results == 20420
    assert view.previous_offset is None
    assert view.next_offset == 10
    assert view.page_links[1] == 0
    assert view.page_links[2] == 10
    assert len(view.page_links) == 2042
    assert view.has_next_page is True
    assert view.has_previous_page is False
    assert view.records == [record(i) for i in range(10)]
    assert view.complete is True
    assert [_size(url) for url in transport.calls] == ["1", "500"]


def test_offset_walk_hops_through_complete_batches(make_search, sleeper) -> None:
    search, transport = make_search(CursorServer(5000))

    view = search.get_paginated_results("reviewed:true", offset=1390, page_size=10)

    count_call, first, *hops = transport.calls
    assert _size(count_call) == "1"
    assert "cursor" not in first and _size(first) == "500"
    assert len(hops) == 2
    assert [parse_qs(urlsplit(url).query)["cursor"] for url in hops] == [
        ["c500"],
        ["c1000"],
    ]
    # Positions 390-399 of the third batch.
    assert view.records == [record(i) for i in range(1390, 1400)]
    assert view.current_page == 140
    assert view.previous_offset == 1380
    assert view.next_offset == 1400
    assert sleeper.calls == [0.5, 0.5, 0.5]


def test_first_batch_request_is_delayed_after_count(make_search, sleeper) -> None:
    search, transport = make_search(CursorServer(300))

    view = search.get_paginated_results("q", offset=20, page_size=20)

    assert len(transport.calls) == 2
    assert sleeper.calls == [0.5]
    assert view.records == [record(i) for i in range(20, 40)]


def test_offset_beyond_total_returns_navigation_only(make_search) -> None:
    search, transport = make_search(CursorServer(100))

    view = search.get_paginated_results("q", offset=150, page_size=10)

    assert view.records == []
    assert view.has_next_page is False
    assert view.next_offset is None
    assert view.has_previous_page is True
    assert view.previous_offset == 140
    assert len(view.page_links) == 10
    assert view.page_links == build_page_links(10, 10)
    assert len(transport.calls) == 1


def test_invalid_page_size_snaps_to_default(make_search) -> None:
    search, _ = make_search(CursorServer(20420))

    snapped = search.get_paginated_results("q", offset=20, page_size=7)
    default = search.get_paginated_results("q", offset=20, page_size=10)

    assert snapped == default
    assert snapped.page_size == 10


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(10, 10), (20, 20), (50, 50), ("20", 20), (7, 10), (None, 10), (True, 10)],
)
def test_normalise_page_size(raw: object, expected: int) -> None:
    assert normalise_page_size(raw) == expected


def test_negative_offset_is_clamped(make_search) -> None:
    search, _ = make_search(CursorServer(30))

    view = search.get_paginated_results("q", offset=-25, page_size=20)

    assert view.offset == 0
    assert view.records == [record(i) for i in range(20)]
    assert view.next_offset == 20
    assert view.total_pages == 2


def test_last_partial_page(make_search) -> None:
    search, _ = make_search(CursorServer(45))

    view = search.get_paginated_results("q", offset=40, page_size=20)

    assert view.records == [record(i) for i in range(40, 45)]
    assert view.current_page == 3
    assert view.next_offset is None
    assert view.has_next_page is False


def test_zero_results(make_search) -> None:
    search, transport = make_search(CursorServer(0))

    view = search.get_paginated_results("q", offset=0, page_size=10)

    assert view.records == []
    assert view.total_pages == 0
    assert view.page_links == {}
    assert view.has_next_page is False
    assert view.has_previous_page is False
    assert len(transport.calls) == 1


def test_zero_results_keeps_previous_affordance_for_positive_offset(make_search) -> None:
    search, _ = make_search(CursorServer(0))

    view = search.get_paginated_results("q", offset=30, page_size=10)

    assert view.total_pages == 0
    assert view.has_previous_page is True
    assert view.previous_offset == 20


def test_hop_failure_degrades_to_empty_page(make_search, caplog) -> None:
    server = CursorServer(
        2000, failures={"c500": make_response(500, {"messages": ["boom"]})}
    )
    search, _ = make_search(server)

    with caplog.at_level("WARNING"):
        view = search.get_paginated_results("q", offset=1200, page_size=10)

    assert view.records == []
    assert view.complete is False
    assert view.error == "boom"
    assert view.total_results == 2000
    assert view.next_offset == 1210
    assert "empty page" in caplog.text


def test_transport_failure_on_final_batch_degrades(make_search) -> None:
    server = CursorServer(2000, failures={"c500": TransportError("reset")})
    search, _ = make_search(server)

    view = search.get_paginated_results("q", offset=510, page_size=10)

    assert view.records == []
    assert view.complete is False


def test_cursor_chain_ending_early_returns_no_records(make_search) -> None:
    def responder(url: str):
        # Claims 3000 results but never sends a Link header.
        params = parse_qs(urlsplit(url).query)
        size = int(params["size"][0])
        return make_response(
            payload={"results": [record(i) for i in range(size)]},
            headers={"x-total-results": "3000"},
        )

    search, transport = make_search(responder)

    view = search.get_paginated_results("q", offset=1100, page_size=10)

    assert view.records == []
    assert view.complete is False
    assert "cursor chain ended" in (view.error or "")
    assert len(transport.calls) == 2


def test_count_failure_is_raised(make_search) -> None:
    search, _ = make_search(lambda url: make_response(500, {"messages": ["down"]}))

    with pytest.raises(UniProtError):
        search.get_paginated_results("q")


def test_hop_delay_is_configurable(make_search, sleeper) -> None:
    search, _ = make_search(CursorServer(1500), hop_delay=0)

    search.get_paginated_results("q", offset=1000)

    assert sleeper.calls == [0, 0, 0]


def test_rejects_empty_query_and_non_json(make_search) -> None:
    search, transport = make_search(CursorServer(10))

    with pytest.raises(InvalidInputError):
        search.get_paginated_results("")
    with pytest.raises(InvalidInputError):
        search.get_paginated_results("q", options={"format": "tsv"})
    assert transport.calls == []


def test_negative_hop_delay_is_rejected(make_search) -> None:
    with pytest.raises(InvalidInputError):
        make_search(CursorServer(1), hop_delay=-1)


def test_page_view_to_dict_uses_camel_case() -> None:
    view = PageView.build(
        [record(0)], offset=0, page_size=10, total_results=11
    )

    data = view.to_dict()

    assert data["results"] == [record(0)]
    assert data["pageSize"] == 10
    assert data["totalPages"] == 2
    assert data["pageLinks"] == {1: 0, 2: 10}
    assert data["hasNextPage"] is True
    assert data["hasPreviousPage"] is False
