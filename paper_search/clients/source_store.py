"""MongoDB access for publication statistics and their crossref reference records."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from paper_search.core.errors import SourceStoreError
from paper_search.models.papers import SourceReferenceRecord, SourceStatRecord

logger = logging.getLogger(__name__)

_STAT_PROJECTION = {
    "_id": 1,
    "topicRelatedScores": 1,
    "publicationHotScore": 1,
    "publicationHotScore_6m": 1,
    "pageRank": 1,
}


class MongoSourceStore:
    """Reads source pages ordered by ``_id`` and bulk-fetches the joined references."""

    def __init__(
        self,
        client: Any = None,
        database: str | None = None,
        stats_collection: str | None = None,
        references_collection: str | None = None,
    ):
        if client is None or database is None or stats_collection is None or references_collection is None:
            from paper_search.core.config import settings

            if client is None:
                client = MongoClient(settings.MONGO_URI, serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS)
            database = database or settings.MONGO_DATABASE
            stats_collection = stats_collection or settings.MONGO_STATS_COLLECTION
            references_collection = references_collection or settings.MONGO_REFERENCES_COLLECTION
        self.client = client
        self.db = client[database]
        self.stats_collection = stats_collection
        self.references_collection = references_collection

    def ping(self) -> bool:
        try:
            result = self.client.admin.command("ping")
            return float(result.get("ok", 0)) == 1.0
        except PyMongoError as exc:
            logger.error("mongodb_health_check_failed", extra={"error": str(exc)})
            return False

    def fetch_page(self, after_key: str | None, limit: int) -> list[SourceStatRecord]:
        query: dict[str, Any] = {"_id": {"$gt": after_key}} if after_key else {}
        try:
            cursor = (
                self.db[self.stats_collection]
                .find(query, _STAT_PROJECTION)
                .sort("_id", ASCENDING)
                .limit(int(limit))
            )
            documents = list(cursor)
        except PyMongoError as exc:
            raise SourceStoreError(f"Failed to fetch publication statistics after {after_key!r}: {exc}") from exc
        logger.info("source_page_fetched", extra={"after_key": after_key, "limit": limit, "count": len(documents)})
        return [SourceStatRecord.from_document(doc) for doc in documents]

    def fetch_references_by_keys(self, keys: Sequence[str]) -> dict[str, SourceReferenceRecord]:
        if not keys:
            return {}
        try:
            documents = list(self.db[self.references_collection].find({"_id": {"$in": list(keys)}}))
        except PyMongoError as exc:
            raise SourceStoreError(f"Failed to fetch {len(keys)} reference records: {exc}") from exc
        references = {}
        for doc in documents:
            record = SourceReferenceRecord.from_document(doc)
            references[record.key] = record
        logger.info("source_references_fetched", extra={"requested": len(keys), "found": len(references)})
        return references

    def close(self) -> None:
        self.client.close()
