from datetime import date

from paper_search.services.index_schema import HEAVY_FIELDS
from paper_search.services.query_builder import (
    TOPIC_SCORE_SCRIPT,
    SearchFilters,
    build_contextual_query,
    build_duplicate_check_query,
    build_lexical_query,
    build_list_query,
    build_semantic_query,
    build_topic_query,
    clamp_pagination,
    relevance_sort,
)


def _assert_common_envelope(body):
    assert body["track_total_hits"] is True
    assert body["_source"]["excludes"] == HEAVY_FIELDS


def test_lexical_query_with_all_filters():
    filters = SearchFilters(
        query="graph networks",
        author="Lovelace",
        journal="Nature",
        has_abstract=True,
        from_date=date(2020, 1, 1),
        to_date=date(2021, 12, 31),
        topics=["ensemble", " ", "boosting"],
        sort="hot",
    )

    body = build_lexical_query(filters, offset=20, size=10)

    _assert_common_envelope(body)
    assert body["from"] == 20 and body["size"] == 10
    must = body["query"]["bool"]["must"]
    free_text = must[0]["bool"]
    assert free_text["minimum_should_match"] == 1
    assert free_text["should"][0]["multi_match"]["fields"] == ["title^3", "abstract^2", "journal"]
    assert free_text["should"][0]["multi_match"]["fuzziness"] == "AUTO"
    assert free_text["should"][1]["nested"]["path"] == "authors"
    assert must[1] == {"nested": {"path": "authors", "query": {"match": {"authors.name": "Lovelace"}}}}
    filters_clause = body["query"]["bool"]["filter"]
    assert {"term": {"journal.keyword": "Nature"}} in filters_clause
    assert {"term": {"hasAbstract": True}} in filters_clause
    assert {"range": {"publishedAt": {"gte": "2020-01-01", "lte": "2021-12-31"}}} in filters_clause
    assert {"nested": {"path": "topics", "query": {"terms": {"topics.name": ["ensemble", "boosting"]}}}} in filters_clause
    assert body["sort"] == [{"publicationHotScore": {"order": "desc"}}]


def test_lexical_query_defaults_to_relevance_and_has_no_filters():
    body = build_lexical_query(SearchFilters(sort="unknown"))

    assert body["query"] == {"bool": {"must": [], "filter": []}}
    assert body["sort"] == [{"_score": {"order": "desc"}}]


def test_lexical_sort_aliases():
    assert build_lexical_query(SearchFilters(sort="pagerank"))["sort"] == [{"pageRank": {"order": "desc"}}]
    assert build_lexical_query(SearchFilters(sort="date"))["sort"] == [{"publishedAt": {"order": "desc"}}]
    assert build_lexical_query(SearchFilters(sort="LATEST"))["sort"] == [{"publishedAt": {"order": "desc"}}]


def test_contextual_query_shape():
    body = build_contextual_query("protein folding", sort="top")

    _assert_common_envelope(body)
    match = body["query"]["multi_match"]
    assert match["fields"][0] == "contextualContent^3"
    assert "contextualContent.english^2" in match["fields"]
    assert match["minimum_should_match"] == "75%"
    assert set(body["highlight"]["fields"]) == {"contextualContent", "title", "abstract"}
    assert body["sort"] == [{"_score": {"order": "desc"}}, {"pageRank": {"order": "desc"}}]


def test_semantic_query_combines_knn_and_lexical():
    body = build_semantic_query("protein folding", [0.1, 0.2], sort="latest", size=7)

    _assert_common_envelope(body)
    should = body["query"]["bool"]["should"]
    assert body["query"]["bool"]["minimum_should_match"] == 1
    assert should[0] == {"knn": {"embeddingVector": {"vector": [0.1, 0.2], "k": 7}}}
    assert should[1]["multi_match"]["minimum_should_match"] == "70%"
    assert body["sort"][0] == {"_score": {"order": "desc"}}
    assert body["sort"][1] == {"publishedAt": {"order": "desc"}}


def test_contextual_query_filters_on_abstract_presence():
    body = build_contextual_query("protein folding", has_abstract=True)

    query = body["query"]["bool"]
    assert query["must"][0]["multi_match"]["minimum_should_match"] == "75%"
    assert query["filter"] == [{"term": {"hasAbstract": True}}]


def test_semantic_query_filters_on_abstract_presence():
    body = build_semantic_query("protein folding", [0.1, 0.2], has_abstract=False)

    assert body["query"]["bool"]["filter"] == [{"term": {"hasAbstract": False}}]
    assert len(body["query"]["bool"]["should"]) == 2
    assert "filter" not in build_semantic_query("protein folding", [0.1, 0.2])["query"]["bool"]


def test_relevance_sort_without_tiebreak():
    assert relevance_sort(None) == [{"_score": {"order": "desc"}}]


def test_topic_query_relevance_uses_scripted_sort():
    body = build_topic_query("ensemble", sort="relevance", today=date(2024, 3, 1))

    _assert_common_envelope(body)
    nested = body["query"]["bool"]["must"][0]["nested"]
    assert nested["path"] == "topics"
    assert nested["query"] == {"term": {"topics.name": "ensemble"}}
    assert nested["inner_hits"]["size"] == 1
    assert body["query"]["bool"]["filter"] == [{"range": {"publishedAt": {"lte": "2024-03-01"}}}]
    script_sort = body["sort"][0]["_script"]
    assert script_sort["type"] == "number"
    assert script_sort["order"] == "desc"
    assert script_sort["script"]["source"] == TOPIC_SCORE_SCRIPT
    assert script_sort["script"]["params"] == {"topicName": "ensemble", "scoreField": "relevanceScore"}


def test_topic_query_sort_variants():
    hot = build_topic_query("ensemble", sort=None)["sort"][0]["_script"]["script"]["params"]
    top = build_topic_query("ensemble", sort="top")["sort"][0]["_script"]["script"]["params"]

    assert hot["scoreField"] == "hotScore"
    assert top["scoreField"] == "topScore"
    assert build_topic_query("ensemble", sort="latest")["sort"] == [{"publishedAt": {"order": "desc"}}]
    assert build_topic_query("ensemble", sort="bogus")["sort"][0]["_script"]["script"]["params"]["scoreField"] == "hotScore"


def test_topic_score_script_scans_topics_by_name():
    assert "params._source.topics" in TOPIC_SCORE_SCRIPT
    assert "topic.name == params.topicName" in TOPIC_SCORE_SCRIPT
    assert "return 0;" in TOPIC_SCORE_SCRIPT


def test_list_query():
    body = build_list_query(sort="hot", has_abstract=False, offset=10, size=5, today=date(2024, 3, 1))

    _assert_common_envelope(body)
    assert body["query"]["bool"]["must"] == [{"match_all": {}}]
    assert body["query"]["bool"]["filter"] == [
        {"range": {"publishedAt": {"lte": "2024-03-01"}}},
        {"term": {"hasAbstract": False}},
    ]
    assert body["sort"] == [{"publicationHotScore": {"order": "desc"}}]
    assert build_list_query(sort="whatever")["sort"] == [{"publishedAt": {"order": "desc"}}]


def test_duplicate_check_query():
    body = build_duplicate_check_query()

    assert body["size"] == 0
    assert body["track_total_hits"] is True
    assert body["aggs"]["duplicate_ids"]["terms"] == {"field": "id", "min_doc_count": 2, "size": 1000}


def test_clamp_pagination():
    assert (clamp_pagination(0, 500).page, clamp_pagination(0, 500).per_page) == (1, 10)
    assert clamp_pagination(3, 25).offset == 50
    assert clamp_pagination(None, 0).per_page == 10
    assert clamp_pagination(2, 100).per_page == 100
