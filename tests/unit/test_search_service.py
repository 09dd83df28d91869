import asyncio
from datetime import date

import pytest

from paper_search.core.errors import SearchExecutionError
from paper_search.models.results import ParseFailure, SearchSuccess
from paper_search.services.query_builder import SearchFilters
from paper_search.services.search_service import SearchService, parse_search_response


def _response(*hits, total=None):
    return {
        "took": 4,
        "hits": {
            "total": {"value": total if total is not None else len(hits), "relation": "eq"},
            "max_score": 2.5,
            "hits": list(hits),
        },
    }


def _hit(doc_id, **source):
    base = {"id": doc_id, "title": f"Paper {doc_id}", "authors": [{"name": "Ada Lovelace", "ORCID": "", "sequence": "first"}]}
    base.update(source)
    return {"_id": doc_id, "_score": 1.0, "_source": base}


class FakeGateway:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else _response()
        self.error = error
        self.requests = []

    def search(self, index_name, body):
        self.requests.append((index_name, body))
        if self.error:
            raise self.error
        return self.response


class FakeEmbeddings:
    dimension = 3

    def __init__(self, vector=None, error=None):
        self.vector = vector if vector is not None else [0.1, 0.2, 0.3]
        self.error = error

    async def embed_text(self, text):
        if self.error:
            raise self.error
        return self.vector


def test_parse_search_response_builds_typed_hits():
    outcome = parse_search_response(_response(_hit("a", topics=[{"name": "ensemble", "relevanceScore": 0.8}]), total=42))

    assert isinstance(outcome, SearchSuccess)
    assert outcome.total == 42
    assert outcome.took_ms == 4
    assert outcome.hits[0].id == "a"
    assert outcome.hits[0].authors == ["Ada Lovelace"]
    assert outcome.hits[0].topics[0].relevance_score == 0.8


def test_parse_search_response_reads_matched_topic_inner_hit():
    hit = _hit("a")
    hit["inner_hits"] = {
        "topics": {"hits": {"hits": [{"_source": {"name": "ensemble", "relevanceScore": 0.9, "topScore": 0.1, "hotScore": 0.4}}]}}
    }

    outcome = parse_search_response(_response(hit))

    assert outcome.hits[0].matched_topic.name == "ensemble"
    assert outcome.hits[0].matched_topic.hot_score == 0.4


def test_parse_search_response_wraps_unreadable_body():
    outcome = parse_search_response("<html>gateway timeout</html>")

    assert isinstance(outcome, ParseFailure)
    assert outcome.error == "Failed to parse response"
    assert outcome.raw == "<html>gateway timeout</html>"


def test_search_uses_alias_and_clamped_pagination():
    gateway = FakeGateway(_response(_hit("a")))
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    result = asyncio.run(service.search(SearchFilters(query="graphs", sort="top"), page=0, per_page=1000))

    index_name, body = gateway.requests[0]
    assert index_name == "papers"
    assert body["from"] == 0 and body["size"] == 10
    assert result.strategy == "lexical"
    assert result.parameters.page == 1
    assert result.parameters.per_page == 10
    assert result.result.hits[0].id == "a"


def test_search_execution_error_propagates():
    gateway = FakeGateway(error=SearchExecutionError("OpenSearch search failed", status_code=400, raw_response={"error": "bad"}))
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    with pytest.raises(SearchExecutionError) as exc:
        asyncio.run(service.search_contextual("graphs"))
    assert exc.value.raw_response == {"error": "bad"}


def test_semantic_search_sends_hybrid_query():
    gateway = FakeGateway()
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    result = asyncio.run(service.search_semantic("graphs", per_page=5))

    body = gateway.requests[0][1]
    assert body["query"]["bool"]["should"][0]["knn"]["embeddingVector"] == {"vector": [0.1, 0.2, 0.3], "k": 5}
    assert result.strategy == "semantic"
    assert result.semantic_fallback is False


@pytest.mark.parametrize(
    "embeddings",
    [FakeEmbeddings(error=RuntimeError("backend down")), FakeEmbeddings(vector=[0.1, 0.2])],
)
def test_semantic_search_falls_back_to_contextual(embeddings):
    gateway = FakeGateway()
    service = SearchService(gateway, embeddings, alias="papers")

    result = asyncio.run(service.search_semantic("graphs"))

    body = gateway.requests[0][1]
    assert "multi_match" in body["query"]
    assert body["query"]["multi_match"]["minimum_should_match"] == "75%"
    assert result.strategy == "semantic"
    assert result.semantic_fallback is True


def test_semantic_fallback_keeps_abstract_filter():
    gateway = FakeGateway()
    service = SearchService(gateway, FakeEmbeddings(error=RuntimeError("backend down")), alias="papers")

    result = asyncio.run(service.search_semantic("graphs", has_abstract=True))

    body = gateway.requests[0][1]
    assert body["query"]["bool"]["filter"] == [{"term": {"hasAbstract": True}}]
    assert result.semantic_fallback is True
    assert result.parameters.has_abstract is True


def test_list_by_topic_normalizes_sort():
    gateway = FakeGateway()
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    result = asyncio.run(service.list_by_topic("ensemble", sort="RELEVANCE", today=date(2024, 1, 1)))

    body = gateway.requests[0][1]
    assert body["sort"][0]["_script"]["script"]["params"]["scoreField"] == "relevanceScore"
    assert result.parameters.topic == "ensemble"
    assert result.parameters.sort == "relevance"


def test_list_papers_defaults_to_latest():
    gateway = FakeGateway()
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    result = asyncio.run(service.list_papers(sort="nonsense"))

    assert gateway.requests[0][1]["sort"] == [{"publishedAt": {"order": "desc"}}]
    assert result.parameters.sort == "latest"


def test_compare_runs_contextual_and_lexical():
    gateway = FakeGateway(_response(_hit("a")))
    service = SearchService(gateway, FakeEmbeddings(), alias="papers")

    comparison = asyncio.run(service.compare("graphs", per_page=3))

    assert comparison.contextual.strategy == "contextual"
    assert comparison.lexical.strategy == "lexical"
    assert [req[1]["size"] for req in gateway.requests] == [3, 3]
    assert [req[1]["sort"][0] for req in gateway.requests] == [
        {"_score": {"order": "desc"}},
        {"publishedAt": {"order": "desc"}},
    ]
