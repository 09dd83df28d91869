"""Narrow OpenSearch contract used by the sync pipeline and the read path."""

from __future__ import annotations

import logging
from typing import Any, Callable

from opensearchpy import OpenSearch
from opensearchpy.exceptions import OpenSearchException, SerializationError, TransportError

from paper_search.core.errors import (
    BulkIndexingError,
    ProtectedIndexError,
    SearchEngineError,
    SearchExecutionError,
)

logger = logging.getLogger(__name__)

_PROTECTED_PREFIXES = (".",)
_PROTECTED_NAMES = {"_all", "*"}


def is_protected_index(index_name: str) -> bool:
    name = (index_name or "").strip()
    return not name or name in _PROTECTED_NAMES or name.startswith(_PROTECTED_PREFIXES)


def _status_code(exc: OpenSearchException) -> int | None:
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def _raw_response(exc: OpenSearchException) -> Any:
    if isinstance(exc, TransportError):
        return exc.info if exc.info is not None else exc.error
    return str(exc)


def build_client() -> OpenSearch:
    from paper_search.core.config import settings

    verify_certs = not settings.OPENSEARCH_TRUST_SELF_SIGNED
    return OpenSearch(
        hosts=settings.opensearch_hosts,
        http_auth=(settings.OPENSEARCH_USERNAME, settings.OPENSEARCH_PASSWORD),
        verify_certs=verify_certs,
        ssl_show_warn=verify_certs,
        timeout=settings.OPENSEARCH_TIMEOUT_SECONDS,
    )


class SearchEngineGateway:
    def __init__(self, client: Any = None):
        self.client = client if client is not None else build_client()

    def _call(
        self,
        operation: str,
        fn: Callable[..., Any],
        *,
        error_cls: type[SearchEngineError] = SearchEngineError,
        **kwargs: Any,
    ) -> Any:
        try:
            return fn(**kwargs)
        except OpenSearchException as exc:
            status_code = _status_code(exc)
            logger.error(
                "opensearch_operation_failed",
                extra={"operation": operation, "status_code": status_code, "error": str(exc)},
            )
            raise error_cls(
                f"OpenSearch {operation} failed: {exc}",
                status_code=status_code,
                raw_response=_raw_response(exc),
            ) from exc

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except OpenSearchException as exc:
            logger.error("opensearch_health_check_failed", extra={"error": str(exc)})
            return False

    def index_exists(self, index_name: str) -> bool:
        return bool(self._call("index_exists", self.client.indices.exists, index=index_name))

    def create_index(self, index_name: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._call("create_index", self.client.indices.create, index=index_name, body=body)

    def get_index(self, index_name: str) -> dict[str, Any]:
        return self._call("get_index", self.client.indices.get, index=index_name)

    def delete_index(self, index_name: str) -> dict[str, Any]:
        if is_protected_index(index_name):
            raise ProtectedIndexError(index_name)
        return self._call("delete_index", self.client.indices.delete, index=index_name)

    def refresh(self, index_name: str) -> dict[str, Any]:
        return self._call("refresh", self.client.indices.refresh, index=index_name)

    def stats(self, index_name: str) -> dict[str, Any]:
        return self._call("stats", self.client.indices.stats, index=index_name)

    def cluster_health(self, index_name: str | None = None) -> dict[str, Any]:
        if index_name:
            return self._call("cluster_health", self.client.cluster.health, index=index_name)
        return self._call("cluster_health", self.client.cluster.health)

    def bulk(self, actions: list[dict[str, Any]]) -> dict[str, Any]:
        return self._call("bulk", self.client.bulk, error_cls=BulkIndexingError, body=actions)

    def search(self, index_name: str, body: dict[str, Any]) -> Any:
        """Raw search response; an undecodable body is returned as the raw text for the caller to flag."""

        def _search(**kwargs: Any) -> Any:
            try:
                return self.client.search(**kwargs)
            except SerializationError as exc:
                raw = exc.args[0] if exc.args else str(exc)
                logger.warning("opensearch_response_undecodable", extra={"operation": "search", "error": str(exc)})
                return raw

        return self._call("search", _search, error_cls=SearchExecutionError, index=index_name, body=body)
