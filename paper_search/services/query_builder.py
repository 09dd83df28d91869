"""Request bodies for the papers index.

Every builder returns a plain dict ready for ``SearchEngineGateway.search``. Results never carry
the heavy fields (embedding, contextual and full text) and always request an exact hit count.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from paper_search.services.index_schema import EMBEDDING_FIELD, HEAVY_FIELDS

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
DUPLICATE_BUCKETS = 1000

_SEARCH_SORT_FIELDS = {
    "hot": "publicationHotScore",
    "hotscore": "publicationHotScore",
    "top": "pageRank",
    "pagerank": "pageRank",
    "latest": "publishedAt",
    "date": "publishedAt",
}
LIST_SORTS = ("hot", "top", "latest")
TOPIC_SORTS = ("hot", "top", "relevance", "latest")
_TOPIC_SCORE_FIELDS = {"hot": "hotScore", "top": "topScore", "relevance": "relevanceScore"}

TOPIC_SCORE_SCRIPT = """
if (params._source.topics != null) {
  for (topic in params._source.topics) {
    if (topic.name == params.topicName) {
      def value = topic.get(params.scoreField);
      return value != null ? value : 0;
    }
  }
}
return 0;
""".strip()

CONTEXTUAL_FIELDS = ["contextualContent^3", "contextualContent.english^2", "title^2", "abstract", "openSummary"]
SEMANTIC_LEXICAL_FIELDS = ["contextualContent^3", "title^2", "abstract"]
LEXICAL_FIELDS = ["title^3", "abstract^2", "journal"]


@dataclass
class Pagination:
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def clamp_pagination(page: int | None, per_page: int | None) -> Pagination:
    page = page if page and page >= 1 else 1
    if per_page is None or per_page < 1 or per_page > MAX_PER_PAGE:
        per_page = DEFAULT_PER_PAGE
    return Pagination(page=page, per_page=per_page)


def normalize_sort(sort: str | None, allowed: Sequence[str], default: str) -> str:
    value = (sort or "").strip().lower()
    return value if value in allowed else default


@dataclass
class SearchFilters:
    query: str | None = None
    author: str | None = None
    journal: str | None = None
    has_abstract: bool | None = None
    from_date: date | None = None
    to_date: date | None = None
    topics: list[str] = field(default_factory=list)
    sort: str | None = None


def _today(today: date | None) -> str:
    return (today or datetime.now(timezone.utc).date()).isoformat()


def _envelope(offset: int, size: int) -> dict[str, Any]:
    return {
        "from": max(0, offset),
        "size": size,
        "track_total_hits": True,
        "_source": {"excludes": list(HEAVY_FIELDS)},
    }


def _desc(field_name: str) -> dict[str, Any]:
    return {field_name: {"order": "desc"}}


def search_sort_field(sort: str | None) -> str | None:
    return _SEARCH_SORT_FIELDS.get((sort or "").strip().lower())


def relevance_sort(sort: str | None) -> list[dict[str, Any]]:
    """Relevance first, the named sort (if any) as tiebreak."""
    clauses = [_desc("_score")]
    tiebreak = search_sort_field(sort)
    if tiebreak:
        clauses.append(_desc(tiebreak))
    return clauses


def _published_not_after(today: date | None) -> dict[str, Any]:
    return {"range": {"publishedAt": {"lte": _today(today)}}}


def build_lexical_query(filters: SearchFilters, *, offset: int = 0, size: int = DEFAULT_PER_PAGE) -> dict[str, Any]:
    must: list[dict[str, Any]] = []
    filter_clauses: list[dict[str, Any]] = []

    if filters.query and filters.query.strip():
        text = filters.query.strip()
        must.append(
            {
                "bool": {
                    "should": [
                        {"multi_match": {"query": text, "fields": LEXICAL_FIELDS, "type": "best_fields", "fuzziness": "AUTO"}},
                        {"nested": {"path": "authors", "query": {"match": {"authors.name": {"query": text, "fuzziness": "AUTO"}}}}},
                    ],
                    "minimum_should_match": 1,
                }
            }
        )
    if filters.author and filters.author.strip():
        must.append({"nested": {"path": "authors", "query": {"match": {"authors.name": filters.author.strip()}}}})

    if filters.journal and filters.journal.strip():
        filter_clauses.append({"term": {"journal.keyword": filters.journal.strip()}})
    if filters.has_abstract is not None:
        filter_clauses.append({"term": {"hasAbstract": filters.has_abstract}})
    if filters.from_date or filters.to_date:
        date_range: dict[str, str] = {}
        if filters.from_date:
            date_range["gte"] = filters.from_date.isoformat()
        if filters.to_date:
            date_range["lte"] = filters.to_date.isoformat()
        filter_clauses.append({"range": {"publishedAt": date_range}})
    topics = [t.strip() for t in filters.topics if t and t.strip()]
    if topics:
        filter_clauses.append({"nested": {"path": "topics", "query": {"terms": {"topics.name": topics}}}})

    sort_field = search_sort_field(filters.sort)
    body = _envelope(offset, size)
    body["query"] = {"bool": {"must": must, "filter": filter_clauses}}
    body["sort"] = [_desc(sort_field)] if sort_field else [_desc("_score")]
    return body


def build_contextual_query(
    query: str,
    *,
    sort: str | None = None,
    has_abstract: bool | None = None,
    offset: int = 0,
    size: int = DEFAULT_PER_PAGE,
) -> dict[str, Any]:
    body = _envelope(offset, size)
    match = {
        "multi_match": {
            "query": query,
            "fields": CONTEXTUAL_FIELDS,
            "type": "best_fields",
            "minimum_should_match": "75%",
        }
    }
    if has_abstract is None:
        body["query"] = match
    else:
        body["query"] = {"bool": {"must": [match], "filter": [{"term": {"hasAbstract": has_abstract}}]}}
    body["highlight"] = {
        "pre_tags": ["<em>"],
        "post_tags": ["</em>"],
        "fields": {
            "contextualContent": {"fragment_size": 150, "number_of_fragments": 3},
            "title": {"number_of_fragments": 0},
            "abstract": {"fragment_size": 150, "number_of_fragments": 2},
        },
    }
    body["sort"] = relevance_sort(sort)
    return body


def build_semantic_query(
    query: str,
    vector: Sequence[float],
    *,
    sort: str | None = None,
    has_abstract: bool | None = None,
    offset: int = 0,
    size: int = DEFAULT_PER_PAGE,
) -> dict[str, Any]:
    body = _envelope(offset, size)
    body["query"] = {
        "bool": {
            "should": [
                {"knn": {EMBEDDING_FIELD: {"vector": list(vector), "k": size}}},
                {
                    "multi_match": {
                        "query": query,
                        "fields": SEMANTIC_LEXICAL_FIELDS,
                        "type": "best_fields",
                        "minimum_should_match": "70%",
                    }
                },
            ],
            "minimum_should_match": 1,
        }
    }
    if has_abstract is not None:
        body["query"]["bool"]["filter"] = [{"term": {"hasAbstract": has_abstract}}]
    body["sort"] = relevance_sort(sort)
    return body


def topic_score_sort(topic: str, score_field: str) -> dict[str, Any]:
    return {
        "_script": {
            "type": "number",
            "script": {
                "lang": "painless",
                "source": TOPIC_SCORE_SCRIPT,
                "params": {"topicName": topic, "scoreField": score_field},
            },
            "order": "desc",
        }
    }


def build_topic_query(
    topic: str,
    *,
    sort: str | None = "hot",
    offset: int = 0,
    size: int = DEFAULT_PER_PAGE,
    today: date | None = None,
) -> dict[str, Any]:
    sort_name = normalize_sort(sort, TOPIC_SORTS, "hot")
    body = _envelope(offset, size)
    body["query"] = {
        "bool": {
            "must": [
                {
                    "nested": {
                        "path": "topics",
                        "query": {"term": {"topics.name": topic}},
                        "inner_hits": {"size": 1, "_source": ["topics.name", "topics.relevanceScore", "topics.topScore", "topics.hotScore"]},
                    }
                }
            ],
            "filter": [_published_not_after(today)],
        }
    }
    if sort_name == "latest":
        body["sort"] = [_desc("publishedAt")]
    else:
        body["sort"] = [topic_score_sort(topic, _TOPIC_SCORE_FIELDS[sort_name])]
    return body


def build_list_query(
    *,
    sort: str | None = "latest",
    has_abstract: bool | None = None,
    offset: int = 0,
    size: int = DEFAULT_PER_PAGE,
    today: date | None = None,
) -> dict[str, Any]:
    sort_name = normalize_sort(sort, LIST_SORTS, "latest")
    filter_clauses: list[dict[str, Any]] = [_published_not_after(today)]
    if has_abstract is not None:
        filter_clauses.append({"term": {"hasAbstract": has_abstract}})
    body = _envelope(offset, size)
    body["query"] = {"bool": {"must": [{"match_all": {}}], "filter": filter_clauses}}
    body["sort"] = [_desc(_SEARCH_SORT_FIELDS[sort_name])]
    return body


def build_duplicate_check_query(buckets: int = DUPLICATE_BUCKETS) -> dict[str, Any]:
    return {
        "size": 0,
        "track_total_hits": True,
        "aggs": {"duplicate_ids": {"terms": {"field": "id", "min_doc_count": 2, "size": buckets}}},
    }
