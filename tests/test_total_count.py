from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import CursorServer, make_response, record
from uniprot_rest.exceptions import InvalidInputError, TransportError, UniProtError
from uniprot_rest.query import SearchOptions


def test_header_wins_over_body_count(make_search) -> None:
    search, _ = make_search(
        lambda url: make_response(
            payload={"results": [record(0)]}, headers={"X-Total-Results": "542"}
        )
    )

    assert search.get_total_count("gene:BRCA1") == 542


def test_count_request_forces_size_one_and_keeps_other_options(make_search) -> None:
    search, transport = make_search(CursorServer(9))

    total = search.get_total_count(
        "q", SearchOptions(size=200, fields=("accession",), include_isoform=True)
    )

    assert total == 9
    params = parse_qs(urlsplit(transport.calls[0]).query)
    assert params["size"] == ["1"]
    assert params["fields"] == ["accession"]
    assert params["includeIsoform"] == ["true"]


def test_falls_back_to_counting_results(make_search) -> None:
    search, _ = make_search(CursorServer(3, send_total_header=False))

    assert search.get_total_count("q") == 1


@pytest.mark.parametrize("payload", [{"results": []}, {}, {"results": None}])
def test_missing_results_count_as_zero(make_search, payload) -> None:
    search, _ = make_search(lambda url: make_response(payload=payload))

    assert search.get_total_count("q") == 0


def test_non_numeric_header_uses_body(make_search) -> None:
    search, _ = make_search(
        lambda url: make_response(
            payload={"results": [record(0)]}, headers={"x-total-results": "lots"}
        )
    )

    assert search.get_total_count("q") == 1


def test_invalid_json_in_fallback_raises(make_search) -> None:
    search, _ = make_search(lambda url: make_response(body="not json"))

    with pytest.raises(UniProtError, match="Failed to parse JSON"):
        search.get_total_count("q")


def test_http_error_carries_status_and_body(make_search) -> None:
    body = '{"messages": ["invalid field"], "url": "x"}'
    search, _ = make_search(lambda url: make_response(400, body=body))

    with pytest.raises(UniProtError) as excinfo:
        search.get_total_count("bogus_field:1")

    assert excinfo.value.http_status == 400
    assert excinfo.value.api_response == body
    assert "HTTP Status: 400" in excinfo.value.detailed_message()


def test_transport_failure_propagates(make_search) -> None:
    search, _ = make_search(lambda url: TransportError("dns failure"))

    with pytest.raises(TransportError):
        search.get_total_count("q")


def test_empty_query_is_rejected_without_request(make_search) -> None:
    search, transport = make_search(CursorServer(1))

    with pytest.raises(InvalidInputError):
        search.get_total_count("")
    assert transport.calls == []
