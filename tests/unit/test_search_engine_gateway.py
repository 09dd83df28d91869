import asyncio

import pytest
from opensearchpy import Connection, OpenSearch
from opensearchpy.exceptions import ConnectionError as OpenSearchConnectionError
from opensearchpy.exceptions import RequestError

from paper_search.clients.search_engine import SearchEngineGateway, is_protected_index
from paper_search.core.errors import BulkIndexingError, ProtectedIndexError, SearchEngineError, SearchExecutionError
from paper_search.models.results import ParseFailure
from paper_search.services.search_service import SearchService


class FakeIndices:
    def __init__(self):
        self.deleted = []

    def exists(self, index):
        return index == "papers_v3"

    def delete(self, index):
        self.deleted.append(index)
        return {"acknowledged": True}


class FakeOpenSearch:
    def __init__(self, search_error=None, bulk_error=None):
        self.indices = FakeIndices()
        self.search_error = search_error
        self.bulk_error = bulk_error

    def ping(self):
        raise OpenSearchConnectionError("N/A", "refused", None)

    def search(self, index, body):
        if self.search_error:
            raise self.search_error
        return {"hits": {"hits": []}}

    def bulk(self, body):
        if self.bulk_error:
            raise self.bulk_error
        return {"items": []}


@pytest.mark.parametrize("name", [".kibana", ".opendistro-security", "_all", "*", "", "  "])
def test_protected_index_names(name):
    assert is_protected_index(name) is True


def test_regular_index_is_not_protected():
    assert is_protected_index("papers_v3") is False


def test_delete_protected_index_never_reaches_client():
    client = FakeOpenSearch()
    gateway = SearchEngineGateway(client)

    with pytest.raises(ProtectedIndexError):
        gateway.delete_index(".security")
    assert client.indices.deleted == []

    gateway.delete_index("papers_v2")
    assert client.indices.deleted == ["papers_v2"]


def test_search_failure_carries_raw_engine_response():
    error = RequestError(400, "search_phase_execution_exception", {"error": {"type": "search_phase_execution_exception"}})
    gateway = SearchEngineGateway(FakeOpenSearch(search_error=error))

    with pytest.raises(SearchExecutionError) as exc:
        gateway.search("papers", {"query": {"match_all": {}}})
    assert exc.value.status_code == 400
    assert exc.value.raw_response == {"error": {"type": "search_phase_execution_exception"}}
    assert exc.value.error_code == "SEARCH_EXECUTION_FAILED"


def test_bulk_transport_failure_is_bulk_indexing_error():
    gateway = SearchEngineGateway(FakeOpenSearch(bulk_error=OpenSearchConnectionError("N/A", "reset", None)))

    with pytest.raises(BulkIndexingError) as exc:
        gateway.bulk([{"index": {"_id": "a"}}, {"id": "a"}])
    assert isinstance(exc.value, SearchEngineError)


def test_ping_failure_returns_false():
    assert SearchEngineGateway(FakeOpenSearch()).ping() is False


def test_index_exists_passes_through():
    assert SearchEngineGateway(FakeOpenSearch()).index_exists("papers_v3") is True


class GarbledConnection(Connection):
    def perform_request(self, method, url, params=None, body=None, timeout=None, ignore=(), headers=None):
        return 200, {"content-type": "application/json"}, "<html>proxy error</html>"


class FakeEmbeddings:
    dimension = 3

    async def embed_text(self, text):
        return [0.1, 0.2, 0.3]


def test_undecodable_search_body_is_returned_raw():
    gateway = SearchEngineGateway(OpenSearch(connection_class=GarbledConnection))

    assert gateway.search("papers", {"query": {"match_all": {}}}) == "<html>proxy error</html>"


def test_undecodable_search_body_becomes_parse_failure():
    gateway = SearchEngineGateway(OpenSearch(connection_class=GarbledConnection))
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    result = asyncio.run(service.search_contextual("ensemble"))

    assert isinstance(result.result, ParseFailure)
    assert result.result.raw == "<html>proxy error</html>"
