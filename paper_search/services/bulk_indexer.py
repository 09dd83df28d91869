from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from paper_search.clients.search_engine import SearchEngineGateway
from paper_search.core.errors import BulkIndexingError
from paper_search.models.papers import IndexedPaper

logger = logging.getLogger(__name__)


@dataclass
class BulkItemError:
    id: str
    status: int | None
    reason: str


@dataclass
class BulkIndexResult:
    created: int = 0
    updated: int = 0
    errors: list[BulkItemError] = field(default_factory=list)

    @property
    def indexed(self) -> int:
        return self.created + self.updated


def build_actions(index_name: str, papers: Sequence[IndexedPaper]) -> list[dict[str, Any]]:
    actions: list[dict[str, Any]] = []
    for paper in papers:
        document = paper.to_document()
        actions.append({"index": {"_index": index_name, "_id": document["id"]}})
        actions.append(document)
    return actions


def _error_reason(error: Any) -> str:
    if isinstance(error, dict):
        reason = error.get("reason") or error.get("type") or ""
        return str(reason)
    return str(error or "")


class BulkIndexer:
    def __init__(self, gateway: SearchEngineGateway):
        self.gateway = gateway

    def index_batch(self, index_name: str, papers: Sequence[IndexedPaper]) -> BulkIndexResult:
        """Write ``papers`` with one bulk request and classify every item of the response.

        Raises ``BulkIndexingError`` when the request itself fails or the response is not a
        bulk response; item level failures are logged and reported in ``errors``.
        """
        result = BulkIndexResult()
        if not papers:
            return result

        response = self.gateway.bulk(build_actions(index_name, papers))
        items = response.get("items") if isinstance(response, dict) else None
        if not isinstance(items, list):
            raise BulkIndexingError("Bulk response has no items", raw_response=response)

        for item in items:
            outcome = item.get("index") if isinstance(item, dict) else None
            if not isinstance(outcome, dict):
                result.errors.append(BulkItemError(id="", status=None, reason="malformed bulk item"))
                continue
            status = outcome.get("status")
            doc_id = str(outcome.get("_id") or "")
            if outcome.get("error") or (isinstance(status, int) and status >= 300):
                error = BulkItemError(id=doc_id, status=status, reason=_error_reason(outcome.get("error")))
                logger.error(
                    "bulk_item_failed",
                    extra={"index": index_name, "doc_id": error.id, "status_code": error.status, "error": error.reason},
                )
                result.errors.append(error)
            elif outcome.get("result") == "created" or status == 201:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            "bulk_batch_indexed",
            extra={
                "index": index_name,
                "documents": len(papers),
                "created": result.created,
                "updated": result.updated,
                "errors": len(result.errors),
            },
        )
        return result
