from __future__ import annotations

import logging
from typing import Any

from paper_search.clients.search_engine import SearchEngineGateway, is_protected_index
from paper_search.core.errors import ProtectedIndexError, SearchEngineError
from paper_search.models.results import (
    DataDistribution,
    DuplicateBucket,
    DuplicateReport,
    IndexInfo,
    IndexOperationResult,
)
from paper_search.services.index_schema import index_body
from paper_search.services.query_builder import build_duplicate_check_query

logger = logging.getLogger(__name__)

INDEX_MISSING_MESSAGE = "Index does not exist"


def _total_hits(response: dict[str, Any]) -> int:
    total = (response.get("hits") or {}).get("total")
    if isinstance(total, dict):
        return int(total.get("value") or 0)
    return int(total or 0)


def _primaries(stats: dict[str, Any], index_name: str) -> dict[str, Any]:
    indices = stats.get("indices") or {}
    entry = indices.get(index_name)
    if entry is None and len(indices) == 1:
        entry = next(iter(indices.values()))
    if entry is None:
        entry = stats.get("_all") or {}
    return entry.get("primaries") or {}


def _doc_count(stats: dict[str, Any], index_name: str) -> int:
    return int((_primaries(stats, index_name).get("docs") or {}).get("count") or 0)


def _store_size(stats: dict[str, Any], index_name: str) -> int:
    return int((_primaries(stats, index_name).get("store") or {}).get("size_in_bytes") or 0)


class IndexAdmin:
    """Lifecycle and diagnostics for the papers index. Engine failures become unsuccessful results."""

    def __init__(self, gateway: SearchEngineGateway, *, index_name: str | None = None, alias: str | None = None, embedding_dim: int | None = None):
        if index_name is None or alias is None or embedding_dim is None:
            from paper_search.core.config import settings

            index_name = index_name or settings.PAPERS_INDEX_NAME
            alias = alias or settings.PAPERS_ALIAS
            embedding_dim = embedding_dim or settings.EMBEDDING_DIM
        self.gateway = gateway
        self.index_name = index_name
        self.alias = alias
        self.embedding_dim = embedding_dim

    def _failure(self, operation: str, index_name: str, exc: SearchEngineError) -> IndexOperationResult:
        logger.error("index_operation_failed", extra={"operation": operation, "index": index_name, "error": str(exc)})
        return IndexOperationResult(
            success=False,
            message=f"Failed to {operation} index",
            index_name=index_name,
            error=str(exc),
            status_code=exc.status_code,
        )

    def _missing(self, index_name: str) -> IndexOperationResult:
        return IndexOperationResult(success=False, message=INDEX_MISSING_MESSAGE, index_name=index_name, status_code=404)

    def create_papers_index(self) -> IndexOperationResult:
        name = self.index_name
        try:
            if self.gateway.index_exists(name):
                logger.info("papers_index_exists", extra={"index": name})
                return IndexOperationResult(success=True, message="Index already exists", index_name=name)
            self.gateway.create_index(name, index_body(alias=self.alias, embedding_dim=self.embedding_dim))
        except SearchEngineError as exc:
            return self._failure("create", name, exc)
        logger.info("papers_index_created", extra={"index": name, "alias": self.alias})
        return IndexOperationResult(success=True, message="Papers index created successfully", index_name=name)

    def delete_index(self, index_name: str) -> IndexOperationResult:
        try:
            if is_protected_index(index_name):
                raise ProtectedIndexError(index_name)
            if not self.gateway.index_exists(index_name):
                return self._missing(index_name)
            self.gateway.delete_index(index_name)
        except ProtectedIndexError as exc:
            logger.warning("protected_index_delete_rejected", extra={"index": index_name})
            return IndexOperationResult(success=False, message=str(exc), index_name=index_name, error=exc.error_code, status_code=400)
        except SearchEngineError as exc:
            return self._failure("delete", index_name, exc)
        logger.info("index_deleted", extra={"index": index_name})
        return IndexOperationResult(success=True, message=f"Index '{index_name}' deleted successfully", index_name=index_name)

    def get_index_info(self, index_name: str) -> IndexOperationResult:
        try:
            if not self.gateway.index_exists(index_name):
                return self._missing(index_name)
            described = self.gateway.get_index(index_name)
            stats = self.gateway.stats(index_name)
        except SearchEngineError as exc:
            return self._failure("describe", index_name, exc)
        entry = described.get(index_name)
        if entry is None and len(described) == 1:
            entry = next(iter(described.values()))
        entry = entry or {}
        info = IndexInfo(
            aliases=sorted((entry.get("aliases") or {}).keys()),
            settings=entry.get("settings") or {},
            mappings=entry.get("mappings") or {},
            document_count=_doc_count(stats, index_name),
            store_size_bytes=_store_size(stats, index_name),
        )
        return IndexOperationResult(success=True, message="Index information retrieved", index_name=index_name, details=info)

    def refresh_index(self, index_name: str) -> IndexOperationResult:
        try:
            if not self.gateway.index_exists(index_name):
                return self._missing(index_name)
            self.gateway.refresh(index_name)
        except SearchEngineError as exc:
            return self._failure("refresh", index_name, exc)
        return IndexOperationResult(success=True, message=f"Index '{index_name}' refreshed successfully", index_name=index_name)

    def check_duplicates(self, index_name: str) -> IndexOperationResult:
        try:
            if not self.gateway.index_exists(index_name):
                return self._missing(index_name)
            response = self.gateway.search(index_name, build_duplicate_check_query())
        except SearchEngineError as exc:
            return self._failure("check duplicates in", index_name, exc)
        buckets = ((response.get("aggregations") or {}).get("duplicate_ids") or {}).get("buckets") or []
        report = DuplicateReport(
            total_documents=_total_hits(response),
            duplicate_ids=[DuplicateBucket(id=str(b.get("key")), count=int(b.get("doc_count") or 0)) for b in buckets],
        )
        message = f"Found {len(report.duplicate_ids)} duplicated ids" if report.has_duplicates else "No duplicates found"
        return IndexOperationResult(success=True, message=message, index_name=index_name, details=report)

    def data_distribution(self, index_name: str) -> IndexOperationResult:
        try:
            if not self.gateway.index_exists(index_name):
                return self._missing(index_name)
            health = self.gateway.cluster_health(index_name)
            stats = self.gateway.stats(index_name)
        except SearchEngineError as exc:
            return self._failure("inspect", index_name, exc)
        distribution = DataDistribution(
            cluster_status=health.get("status"),
            number_of_nodes=int(health.get("number_of_nodes") or 0),
            active_shards=int(health.get("active_shards") or 0),
            unassigned_shards=int(health.get("unassigned_shards") or 0),
            document_count=_doc_count(stats, index_name),
            store_size_bytes=_store_size(stats, index_name),
        )
        return IndexOperationResult(success=True, message="Data distribution retrieved", index_name=index_name, details=distribution)
