from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from paper_search.clients.embeddings_client import EmbeddingsClient
from paper_search.clients.search_engine import SearchEngineGateway
from paper_search.core.logging import log_event
from paper_search.models.results import (
    PaperHit,
    ParseFailure,
    SearchComparison,
    SearchOutcome,
    SearchParameters,
    SearchResult,
    SearchSuccess,
    TopicHit,
)
from paper_search.services.query_builder import (
    LIST_SORTS,
    TOPIC_SORTS,
    SearchFilters,
    build_contextual_query,
    build_lexical_query,
    build_list_query,
    build_semantic_query,
    build_topic_query,
    clamp_pagination,
    normalize_sort,
)

logger = logging.getLogger(__name__)


def _topic_hit(raw: dict[str, Any]) -> TopicHit:
    return TopicHit(
        name=str(raw.get("name") or ""),
        relevance_score=float(raw.get("relevanceScore") or 0.0),
        top_score=float(raw.get("topScore") or 0.0),
        hot_score=float(raw.get("hotScore") or 0.0),
    )


def _matched_topic(hit: dict[str, Any]) -> TopicHit | None:
    inner = ((hit.get("inner_hits") or {}).get("topics") or {}).get("hits") or {}
    for item in inner.get("hits") or []:
        source = item.get("_source") or {}
        if isinstance(source.get("topics"), dict):
            source = source["topics"]
        return _topic_hit(source)
    return None


def _paper_hit(hit: dict[str, Any]) -> PaperHit:
    source = hit.get("_source") or {}
    authors = [a.get("name") for a in source.get("authors") or [] if isinstance(a, dict) and a.get("name")]
    return PaperHit(
        id=str(hit.get("_id") or source.get("id") or ""),
        score=hit.get("_score"),
        doi=source.get("doi"),
        title=source.get("title"),
        abstract=source.get("abstract"),
        open_summary=source.get("openSummary"),
        journal=source.get("journal"),
        publisher=source.get("publisher"),
        authors=authors,
        published_at=source.get("publishedAt"),
        publication_hot_score=source.get("publicationHotScore"),
        page_rank=source.get("pageRank"),
        citations_count=source.get("citationsCount"),
        has_abstract=source.get("hasAbstract"),
        topics=[_topic_hit(t) for t in source.get("topics") or [] if isinstance(t, dict)],
        matched_topic=_matched_topic(hit),
        highlight=hit.get("highlight") or {},
        sort=hit.get("sort"),
    )


def parse_search_response(raw: Any) -> SearchOutcome:
    """Typed view of a raw search response; anything unreadable comes back as a ``ParseFailure``."""
    try:
        hits = raw["hits"]
        total = hits.get("total")
        total_value = int(total.get("value") or 0) if isinstance(total, dict) else int(total or 0)
        return SearchSuccess(
            total=total_value,
            max_score=hits.get("max_score"),
            took_ms=raw.get("took"),
            hits=[_paper_hit(hit) for hit in hits.get("hits") or []],
        )
    except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as exc:
        logger.warning("search_response_parse_failed", extra={"error": str(exc)})
        return ParseFailure(raw=raw)


class SearchService:
    def __init__(self, gateway: SearchEngineGateway, embeddings: EmbeddingsClient, *, alias: str | None = None):
        if alias is None:
            from paper_search.core.config import settings

            alias = settings.PAPERS_ALIAS
        self.gateway = gateway
        self.embeddings = embeddings
        self.alias = alias

    async def _execute(self, strategy: str, body: dict[str, Any]) -> SearchOutcome:
        started = time.perf_counter()
        raw = await asyncio.to_thread(self.gateway.search, self.alias, body)
        outcome = parse_search_response(raw)
        log_event(
            "search.executed",
            payload={
                "strategy": strategy,
                "index": self.alias,
                "total_hits": outcome.total if isinstance(outcome, SearchSuccess) else None,
                "parse_failed": isinstance(outcome, ParseFailure),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return outcome

    async def search(self, filters: SearchFilters, *, page: int = 1, per_page: int = 10) -> SearchResult:
        pagination = clamp_pagination(page, per_page)
        body = build_lexical_query(filters, offset=pagination.offset, size=pagination.per_page)
        outcome = await self._execute("lexical", body)
        return SearchResult(
            strategy="lexical",
            parameters=SearchParameters(
                query=filters.query,
                author=filters.author,
                journal=filters.journal,
                has_abstract=filters.has_abstract,
                from_date=filters.from_date.isoformat() if filters.from_date else None,
                to_date=filters.to_date.isoformat() if filters.to_date else None,
                topics=list(filters.topics),
                sort=filters.sort,
                page=pagination.page,
                per_page=pagination.per_page,
            ),
            result=outcome,
            timestamp=datetime.now(timezone.utc),
        )

    async def search_contextual(
        self, query: str, *, sort: str | None = None, has_abstract: bool | None = None, page: int = 1, per_page: int = 10
    ) -> SearchResult:
        pagination = clamp_pagination(page, per_page)
        body = build_contextual_query(
            query, sort=sort, has_abstract=has_abstract, offset=pagination.offset, size=pagination.per_page
        )
        outcome = await self._execute("contextual", body)
        return SearchResult(
            strategy="contextual",
            parameters=SearchParameters(
                query=query, has_abstract=has_abstract, sort=sort, page=pagination.page, per_page=pagination.per_page
            ),
            result=outcome,
            timestamp=datetime.now(timezone.utc),
        )

    async def search_semantic(
        self, query: str, *, sort: str | None = None, has_abstract: bool | None = None, page: int = 1, per_page: int = 10
    ) -> SearchResult:
        """Hybrid knn + lexical search, falling back to the contextual shape without a usable embedding."""
        pagination = clamp_pagination(page, per_page)
        vector: list[float] | None = None
        reason = None
        try:
            vector = await self.embeddings.embed_text(query)
            if len(vector) != self.embeddings.dimension:
                reason = f"embedding dimension {len(vector)} != {self.embeddings.dimension}"
                vector = None
            elif not any(vector):
                reason = "empty embedding"
                vector = None
        except Exception as exc:  # noqa: BLE001
            reason = str(exc) or type(exc).__name__

        if vector is None:
            log_event("search.semantic.fallback", level=logging.WARNING, payload={"reason": reason})
            result = await self.search_contextual(
                query, sort=sort, has_abstract=has_abstract, page=pagination.page, per_page=pagination.per_page
            )
            return result.model_copy(update={"strategy": "semantic", "semantic_fallback": True})

        body = build_semantic_query(
            query, vector, sort=sort, has_abstract=has_abstract, offset=pagination.offset, size=pagination.per_page
        )
        outcome = await self._execute("semantic", body)
        return SearchResult(
            strategy="semantic",
            parameters=SearchParameters(
                query=query, has_abstract=has_abstract, sort=sort, page=pagination.page, per_page=pagination.per_page
            ),
            result=outcome,
            timestamp=datetime.now(timezone.utc),
        )

    async def list_papers(
        self,
        *,
        page: int = 1,
        per_page: int = 10,
        sort: str | None = "latest",
        has_abstract: bool | None = None,
        today: date | None = None,
    ) -> SearchResult:
        pagination = clamp_pagination(page, per_page)
        sort_name = normalize_sort(sort, LIST_SORTS, "latest")
        body = build_list_query(
            sort=sort_name, has_abstract=has_abstract, offset=pagination.offset, size=pagination.per_page, today=today
        )
        outcome = await self._execute("list", body)
        return SearchResult(
            strategy="list",
            parameters=SearchParameters(
                has_abstract=has_abstract, sort=sort_name, page=pagination.page, per_page=pagination.per_page
            ),
            result=outcome,
            timestamp=datetime.now(timezone.utc),
        )

    async def list_by_topic(
        self,
        topic: str,
        *,
        page: int = 1,
        per_page: int = 10,
        sort: str | None = "hot",
        today: date | None = None,
    ) -> SearchResult:
        pagination = clamp_pagination(page, per_page)
        sort_name = normalize_sort(sort, TOPIC_SORTS, "hot")
        body = build_topic_query(topic, sort=sort_name, offset=pagination.offset, size=pagination.per_page, today=today)
        outcome = await self._execute("topic", body)
        return SearchResult(
            strategy="topic",
            parameters=SearchParameters(topic=topic, sort=sort_name, page=pagination.page, per_page=pagination.per_page),
            result=outcome,
            timestamp=datetime.now(timezone.utc),
        )

    async def compare(self, query: str, *, per_page: int = 10) -> SearchComparison:
        contextual = await self.search_contextual(query, sort="latest", per_page=per_page)
        lexical = await self.search(SearchFilters(query=query, sort="latest"), per_page=per_page)
        return SearchComparison(query=query, contextual=contextual, lexical=lexical, timestamp=datetime.now(timezone.utc))
