"""Typed results returned by the read path, index administration and the sync control surface."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class TopicHit(BaseModel):
    name: str
    relevance_score: float = 0.0
    top_score: float = 0.0
    hot_score: float = 0.0


class PaperHit(BaseModel):
    id: str
    score: float | None = None
    doi: str | None = None
    title: str | None = None
    abstract: str | None = None
    open_summary: str | None = None
    journal: str | None = None
    publisher: str | None = None
    authors: list[str] = Field(default_factory=list)
    published_at: str | None = None
    publication_hot_score: float | None = None
    page_rank: float | None = None
    citations_count: int | None = None
    has_abstract: bool | None = None
    topics: list[TopicHit] = Field(default_factory=list)
    matched_topic: TopicHit | None = None
    highlight: dict[str, list[str]] = Field(default_factory=dict)
    sort: list[Any] | None = None


class SearchSuccess(BaseModel):
    kind: Literal["success"] = "success"
    total: int
    max_score: float | None = None
    took_ms: int | None = None
    hits: list[PaperHit] = Field(default_factory=list)


class ParseFailure(BaseModel):
    kind: Literal["parse_failure"] = "parse_failure"
    error: str = "Failed to parse response"
    raw: Any = None


SearchOutcome = Annotated[Union[SearchSuccess, ParseFailure], Field(discriminator="kind")]


class SearchParameters(BaseModel):
    query: str | None = None
    author: str | None = None
    journal: str | None = None
    has_abstract: bool | None = None
    from_date: str | None = None
    to_date: str | None = None
    topics: list[str] = Field(default_factory=list)
    topic: str | None = None
    sort: str | None = None
    page: int = 1
    per_page: int = 10


class SearchResult(BaseModel):
    strategy: Literal["lexical", "contextual", "semantic", "list", "topic"]
    parameters: SearchParameters
    result: SearchOutcome
    semantic_fallback: bool = False
    timestamp: datetime


class SearchComparison(BaseModel):
    query: str
    contextual: SearchResult
    lexical: SearchResult
    timestamp: datetime


class IndexInfo(BaseModel):
    kind: Literal["index_info"] = "index_info"
    aliases: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    mappings: dict[str, Any] = Field(default_factory=dict)
    document_count: int = 0
    store_size_bytes: int = 0


class DuplicateBucket(BaseModel):
    id: str
    count: int


class DuplicateReport(BaseModel):
    kind: Literal["duplicates"] = "duplicates"
    total_documents: int = 0
    duplicate_ids: list[DuplicateBucket] = Field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicate_ids)


class DataDistribution(BaseModel):
    kind: Literal["distribution"] = "distribution"
    cluster_status: str | None = None
    number_of_nodes: int = 0
    active_shards: int = 0
    unassigned_shards: int = 0
    document_count: int = 0
    store_size_bytes: int = 0


IndexDetails = Annotated[Union[IndexInfo, DuplicateReport, DataDistribution], Field(discriminator="kind")]


class IndexOperationResult(BaseModel):
    success: bool
    message: str
    index_name: str
    error: str | None = None
    status_code: int | None = None
    details: IndexDetails | None = None


class SyncCommandResult(BaseModel):
    status: Literal["started", "already_running", "stopped", "not_running"]
    message: str
    run_id: str | None = None
