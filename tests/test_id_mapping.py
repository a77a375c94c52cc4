from __future__ import annotations

from urllib.parse import parse_qs

import pytest

from conftest import FakeTransport, make_response
from uniprot_rest.exceptions import InvalidInputError, UniProtError
from uniprot_rest.http_client import HttpTransport
from uniprot_rest.id_mapping import MAX_IDS_PER_JOB, UniProtIdMapping

API = "https://rest.uniprot.org"


@pytest.fixture
def mapping() -> UniProtIdMapping:
    return UniProtIdMapping(HttpTransport(timeout=1, max_retries=0))


def test_submit_posts_form_and_returns_job_id(requests_mock, mapping) -> None:
    requests_mock.post(f"{API}/idmapping/run", json={"jobId": "27a020f6"})

    job_id = mapping.submit("UniProtKB_AC-ID", "Ensembl", [" P05067", "P12345 "], 9606)

    assert job_id == "27a020f6"
    form = parse_qs(requests_mock.last_request.text)
    assert form == {
        "from": ["UniProtKB_AC-ID"],
        "to": ["Ensembl"],
        "ids": ["P05067,P12345"],
        "taxId": ["9606"],
    }


def test_submit_without_job_id_raises(requests_mock, mapping) -> None:
    requests_mock.post(f"{API}/idmapping/run", json={"unexpected": True})

    with pytest.raises(UniProtError, match="No jobId"):
        mapping.submit("UniProtKB_AC-ID", "Ensembl", ["P05067"])


def test_submit_reports_api_messages(requests_mock, mapping) -> None:
    requests_mock.post(
        f"{API}/idmapping/run",
        status_code=400,
        json={"messages": ["The 'to' value 'Nope' is invalid"]},
    )

    with pytest.raises(UniProtError) as excinfo:
        mapping.submit("UniProtKB_AC-ID", "Nope", ["P05067"])

    assert excinfo.value.http_status == 400
    assert excinfo.value.api_error_message == "The 'to' value 'Nope' is invalid"


def test_submit_validates_ids_before_any_request(requests_mock, mapping) -> None:
    with pytest.raises(InvalidInputError):
        mapping.submit("UniProtKB_AC-ID", "Ensembl", [])
    with pytest.raises(InvalidInputError):
        mapping.submit("UniProtKB_AC-ID", "Ensembl", ["  "])
    with pytest.raises(InvalidInputError, match="Maximum"):
        mapping.submit("UniProtKB_AC-ID", "Ensembl", ["P1"] * (MAX_IDS_PER_JOB + 1))
    assert requests_mock.call_count == 0


def test_status_accepts_see_other_and_empty_bodies() -> None:
    def server(url: str):
        if url.endswith("/done"):
            return make_response(303, {"jobStatus": "FINISHED"})
        if url.endswith("/new"):
            return make_response(200, body="")
        return make_response(500, body="oops")

    client = UniProtIdMapping(FakeTransport(server))

    assert client.status("done") == {"jobStatus": "FINISHED"}
    assert client.status("new") == {}
    with pytest.raises(UniProtError, match="Unexpected status code: 500"):
        client.status("broken")
    with pytest.raises(InvalidInputError):
        client.status(" ")


def test_details_and_available_databases(requests_mock, mapping) -> None:
    requests_mock.get(f"{API}/idmapping/details/job%2F1", json={"from": "UniProtKB_AC-ID"})
    requests_mock.get(f"{API}/configure/idmapping/fields", json={"groups": []})

    assert mapping.get_details("job/1") == {"from": "UniProtKB_AC-ID"}
    assert mapping.get_available_databases() == {"groups": []}


def test_iter_results_follows_next_links(requests_mock, mapping) -> None:
    next_url = f"{API}/idmapping/results/abc?cursor=opaque1&size=2"
    requests_mock.get(
        f"{API}/idmapping/results/abc?size=2",
        json={
            "results": [{"from": "P1", "to": "E1"}, {"from": "P2", "to": "E2"}],
            "failedIds": ["X9"],
        },
        headers={"Link": f'<{next_url}>; rel="next"', "X-Total-Results": "3"},
    )
    requests_mock.get(next_url, json={"results": [{"from": "P3", "to": "E3"}]})

    first = mapping.get_results("abc", size=2)
    everything = list(mapping.iter_results("abc", size=2))

    assert first.failed_ids == ["X9"]
    assert first.next_url == next_url
    assert first.total_results == 3
    assert [item["from"] for item in everything] == ["P1", "P2", "P3"]
    assert requests_mock.request_history[-1].url == next_url


def test_failing_result_batch_raises(requests_mock, mapping) -> None:
    next_url = f"{API}/idmapping/results/abc?cursor=opaque1&size=2"
    requests_mock.get(
        f"{API}/idmapping/results/abc?size=2",
        json={"results": [{"from": "P1"}]},
        headers={"Link": f'<{next_url}>; rel="next"'},
    )
    requests_mock.get(next_url, status_code=400, json={"messages": ["expired"]})

    with pytest.raises(UniProtError, match="expired"):
        list(mapping.iter_results("abc", size=2))


@pytest.mark.parametrize("size", [0, 501, True])
def test_result_size_is_validated(mapping, size) -> None:
    with pytest.raises(InvalidInputError):
        mapping.get_results("abc", size=size)


def test_stream_results_in_other_formats(requests_mock, mapping) -> None:
    requests_mock.get(f"{API}/idmapping/stream/abc", text="From\tTo\nP1\tE1\n")

    result = mapping.stream_results("abc", "tsv", ["accession", "gene_names"])

    assert result == {"body": "From\tTo\nP1\tE1\n", "format": "tsv"}
    assert requests_mock.last_request.url.endswith(
        "?format=tsv&fields=accession%2Cgene_names"
    )
