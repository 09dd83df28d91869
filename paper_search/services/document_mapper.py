from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from paper_search.models.papers import (
    UNKNOWN_PUBLISHED_AT,
    IndexedPaper,
    PaperAuthor,
    PublishedDate,
    SourceAuthor,
    SourceReferenceRecord,
    SourceStatRecord,
)
from paper_search.services.text_normalizer import normalize_text

LOGGER = logging.getLogger(__name__)


@dataclass
class MappedPaper:
    paper: IndexedPaper
    contextual_text: str


@dataclass
class PageMapping:
    mapped: list[MappedPaper] = field(default_factory=list)
    missing_reference: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def build_contextual_text(title: str, abstract: str, summary: str = "") -> str:
    return " ".join(part.strip() for part in (title, abstract, summary) if part and part.strip())


def _published(published: PublishedDate | None) -> tuple[date, list[int]]:
    if published is None:
        return UNKNOWN_PUBLISHED_AT, []
    parts = [published.year]
    if published.month is not None:
        parts.append(published.month)
        if published.day is not None:
            parts.append(published.day)
    return date(published.year, published.month or 1, published.day or 1), parts


def _authors(source_authors: Sequence[SourceAuthor]) -> list[PaperAuthor]:
    authors = []
    for author in source_authors:
        name = f"{author.given} {author.family}".strip()
        if not name:
            continue
        authors.append(PaperAuthor(name=name, orcid=author.orcid, sequence=author.sequence))
    return authors


def map_paper(stat: SourceStatRecord, reference: SourceReferenceRecord, key: str) -> MappedPaper | None:
    """First pass: every field except the embedding. ``None`` means the paper is excluded."""
    title = normalize_text(reference.title)
    abstract = normalize_text(reference.abstract)
    if not title and not abstract:
        LOGGER.warning("paper_excluded_missing_title_and_abstract", extra={"paper_key": key})
        return None

    open_summary = ""
    contextual = build_contextual_text(title, abstract, open_summary)
    published_at, date_parts = _published(reference.published)
    paper = IndexedPaper(
        id=key,
        doi=reference.doi or key,
        title=title,
        abstract=abstract,
        open_summary=open_summary,
        contextual_content=contextual,
        journal=reference.journal,
        publisher=reference.publisher,
        authors=_authors(reference.authors),
        published_at=published_at,
        publication_date_parts=date_parts,
        publication_hot_score=stat.publication_hot_score,
        publication_hot_score_6m=stat.publication_hot_score_6m,
        page_rank=stat.page_rank,
        citations_count=reference.citation_count,
        topics=[dataclasses.replace(topic) for topic in stat.topics],
    )
    return MappedPaper(paper=paper, contextual_text=contextual)


def attach_embedding(mapped: MappedPaper, vector: Sequence[float]) -> IndexedPaper:
    return dataclasses.replace(mapped.paper, embedding_vector=list(vector))


def map_page(stats: Sequence[SourceStatRecord], references: dict[str, SourceReferenceRecord]) -> PageMapping:
    result = PageMapping()
    for stat in stats:
        reference = references.get(stat.key)
        if reference is None:
            LOGGER.warning("paper_reference_missing", extra={"paper_key": stat.key})
            result.missing_reference.append(stat.key)
            continue
        try:
            mapped = map_paper(stat, reference, stat.key)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("paper_mapping_failed", extra={"paper_key": stat.key, "error": str(exc)})
            result.failed.append(stat.key)
            continue
        if mapped is None:
            result.excluded.append(stat.key)
            continue
        result.mapped.append(mapped)
    return result
