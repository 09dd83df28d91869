"""Source records read from MongoDB and the denormalized paper document written to OpenSearch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

UNKNOWN_PUBLISHED_AT = date(1, 1, 1)


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _first_str(value: Any) -> str:
    if isinstance(value, list):
        return _as_str(value[0]) if value else ""
    return ""


@dataclass
class TopicScore:
    name: str
    relevance_score: float = 0.0
    top_score: float = 0.0
    hot_score: float = 0.0
    hot_score_6m: float = 0.0

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "TopicScore":
        return cls(
            name=_as_str(doc.get("name")),
            relevance_score=_as_float(doc.get("relevanceScore")),
            top_score=_as_float(doc.get("topScore")),
            hot_score=_as_float(doc.get("hotScore")),
            hot_score_6m=_as_float(doc.get("hotScore_6m")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "relevanceScore": self.relevance_score,
            "topScore": self.top_score,
            "hotScore": self.hot_score,
            "hotScore6m": self.hot_score_6m,
        }


@dataclass
class SourceStatRecord:
    key: str
    topics: list[TopicScore] = field(default_factory=list)
    publication_hot_score: float = 0.0
    publication_hot_score_6m: float = 0.0
    page_rank: float = 0.0

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "SourceStatRecord":
        raw_topics = doc.get("topicRelatedScores")
        topics = [TopicScore.from_document(t) for t in raw_topics if isinstance(t, dict)] if isinstance(raw_topics, list) else []
        return cls(
            key=_as_str(doc.get("_id")),
            topics=topics,
            publication_hot_score=_as_float(doc.get("publicationHotScore")),
            publication_hot_score_6m=_as_float(doc.get("publicationHotScore_6m")),
            page_rank=_as_float(doc.get("pageRank")),
        )


@dataclass
class SourceAuthor:
    given: str = ""
    family: str = ""
    orcid: str = ""
    sequence: str = ""

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "SourceAuthor":
        return cls(
            given=_as_str(doc.get("given")),
            family=_as_str(doc.get("family")),
            orcid=_as_str(doc.get("ORCID")),
            sequence=_as_str(doc.get("sequence")),
        )


@dataclass
class PublishedDate:
    year: int
    month: int | None = None
    day: int | None = None


@dataclass
class SourceReferenceRecord:
    key: str
    title: str = ""
    abstract: str = ""
    journal: str = ""
    publisher: str = ""
    authors: list[SourceAuthor] = field(default_factory=list)
    doi: str | None = None
    citation_count: int = 0
    published: PublishedDate | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "SourceReferenceRecord":
        raw = doc.get("raw_data")
        raw = raw if isinstance(raw, dict) else {}

        authors = []
        if isinstance(raw.get("author"), list):
            authors = [SourceAuthor.from_document(a) for a in raw["author"] if isinstance(a, dict)]

        published = None
        published_at = doc.get("publishedAt")
        if isinstance(published_at, dict):
            year = _as_int(published_at.get("year"))
            if year is not None:
                published = PublishedDate(
                    year=year,
                    month=_as_int(published_at.get("month")),
                    day=_as_int(published_at.get("day")),
                )

        doi = raw.get("DOI")
        return cls(
            key=_as_str(doc.get("_id")),
            title=_first_str(raw.get("title")),
            abstract=_as_str(raw.get("abstract")),
            journal=_first_str(raw.get("container-title")),
            publisher=_as_str(raw.get("publisher")),
            authors=authors,
            doi=_as_str(doi) if doi else None,
            citation_count=_as_int(raw.get("is-referenced-by-count")) or 0,
            published=published,
        )


@dataclass
class PaperAuthor:
    name: str
    orcid: str = ""
    sequence: str = ""

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "ORCID": self.orcid, "sequence": self.sequence}


@dataclass
class IndexedPaper:
    id: str
    doi: str
    title: str
    abstract: str
    contextual_content: str
    oipub_id: int = 0
    open_summary: str = ""
    journal: str = ""
    publisher: str = ""
    authors: list[PaperAuthor] = field(default_factory=list)
    published_at: date = UNKNOWN_PUBLISHED_AT
    publication_date_parts: list[int] = field(default_factory=list)
    publication_hot_score: float = 0.0
    publication_hot_score_6m: float = 0.0
    page_rank: float = 0.0
    citations_count: int = 0
    vote_score: int = 0
    topics: list[TopicScore] = field(default_factory=list)
    embedding_vector: list[float] = field(default_factory=list)

    @property
    def full_text(self) -> str:
        return self.contextual_content

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "oipubId": self.oipub_id,
            "doi": self.doi,
            "title": self.title,
            "abstract": self.abstract,
            "openSummary": self.open_summary,
            "fullText": self.full_text,
            "contextualContent": self.contextual_content,
            "embeddingVector": list(self.embedding_vector),
            "journal": self.journal,
            "publisher": self.publisher,
            "authors": [a.to_document() for a in self.authors],
            "publishedAt": self.published_at.isoformat(),
            "publicationDateParts": list(self.publication_date_parts),
            "publicationHotScore": self.publication_hot_score,
            "publicationHotScore6m": self.publication_hot_score_6m,
            "pageRank": self.page_rank,
            "citationsCount": self.citations_count,
            "voteScore": self.vote_score,
            "topics": [t.to_document() for t in self.topics],
            "hasAbstract": bool(self.abstract),
            "hasOpenSummary": bool(self.open_summary),
        }
