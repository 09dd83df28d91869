from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

from paper_search.clients.search_engine import SearchEngineGateway
from paper_search.clients.source_store import MongoSourceStore

logger = logging.getLogger(__name__)


class ServiceHealth(BaseModel):
    name: str
    status: Literal["healthy", "unhealthy"]


class HealthReport(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    services: list[ServiceHealth]
    timestamp: datetime


async def check_health(source_store: MongoSourceStore, gateway: SearchEngineGateway) -> HealthReport:
    mongo_ok, opensearch_ok = await asyncio.gather(
        asyncio.to_thread(source_store.ping),
        asyncio.to_thread(gateway.ping),
    )
    services = [
        ServiceHealth(name="mongodb", status="healthy" if mongo_ok else "unhealthy"),
        ServiceHealth(name="opensearch", status="healthy" if opensearch_ok else "unhealthy"),
    ]
    healthy = sum(1 for s in services if s.status == "healthy")
    if healthy == len(services):
        overall = "healthy"
    elif healthy == 0:
        overall = "unhealthy"
    else:
        overall = "degraded"
    if overall != "healthy":
        logger.warning("health_check_degraded", extra={"mongodb": mongo_ok, "opensearch": opensearch_ok})
    return HealthReport(status=overall, services=services, timestamp=datetime.now(timezone.utc))
