import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from paper_search.clients.embeddings_client import EmbeddingsClient
from paper_search.clients.search_engine import SearchEngineGateway
from paper_search.clients.source_store import MongoSourceStore
from paper_search.core.errors import SearchExecutionError
from paper_search.models.results import IndexOperationResult, SearchComparison, SearchResult, SyncCommandResult
from paper_search.schemas.api import ErrorEnvelope, ErrorInfo, SyncStatusResponse
from paper_search.services.health import HealthReport, check_health
from paper_search.services.index_admin import INDEX_MISSING_MESSAGE, IndexAdmin
from paper_search.services.query_builder import SearchFilters
from paper_search.services.search_service import SearchService
from paper_search.services.sync_orchestrator import SyncOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@lru_cache
def get_source_store() -> MongoSourceStore:
    return MongoSourceStore()


@lru_cache
def get_gateway() -> SearchEngineGateway:
    return SearchEngineGateway()


@lru_cache
def get_embeddings_client() -> EmbeddingsClient:
    return EmbeddingsClient()


@lru_cache
def get_sync_orchestrator() -> SyncOrchestrator:
    return SyncOrchestrator(
        source_store=get_source_store(),
        gateway=get_gateway(),
        embeddings=get_embeddings_client(),
    )


def get_search_service() -> SearchService:
    return SearchService(get_gateway(), get_embeddings_client())


def get_index_admin() -> IndexAdmin:
    return IndexAdmin(get_gateway())


def _error(code: str, message: str, status_code: int, *, retryable: bool = False, details: dict[str, Any] | None = None) -> HTTPException:
    envelope = ErrorEnvelope(
        error=ErrorInfo(
            code=code,
            message=message,
            details=details,
            retryable=retryable,
            timestamp=datetime.now(timezone.utc),
        )
    )
    return HTTPException(status_code=status_code, detail=envelope.model_dump(mode="json"))


def _search_failed(exc: SearchExecutionError) -> HTTPException:
    logger.error("search_execution_failed", extra={"status_code": exc.status_code, "error": str(exc)})
    return _error(
        exc.error_code,
        str(exc),
        status.HTTP_502_BAD_GATEWAY,
        retryable=exc.retryable,
        details={"engine_status_code": exc.status_code, "raw_response": exc.raw_response},
    )


def _index_response(result: IndexOperationResult) -> JSONResponse:
    if result.success:
        status_code = status.HTTP_200_OK
    elif result.message == INDEX_MISSING_MESSAGE:
        status_code = status.HTTP_404_NOT_FOUND
    elif result.status_code == status.HTTP_400_BAD_REQUEST:
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/v1/sync/start", response_model=SyncCommandResult)
async def start_sync(orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)) -> SyncCommandResult:
    result = await orchestrator.start()
    if result.status == "already_running":
        raise _error("SYNC_ALREADY_RUNNING", result.message, status.HTTP_409_CONFLICT, details={"run_id": result.run_id})
    return result


@router.post("/v1/sync/stop", response_model=SyncCommandResult)
async def stop_sync(orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)) -> SyncCommandResult:
    return await orchestrator.stop()


@router.get("/v1/sync/status", response_model=SyncStatusResponse)
async def sync_status(orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)) -> SyncStatusResponse:
    current = orchestrator.status()
    checkpoint = current.checkpoint
    return SyncStatusResponse(
        is_running=current.is_running,
        run_id=current.run_id,
        last_id=checkpoint.last_id,
        total_retrieved=checkpoint.total_retrieved,
        total_indexed=checkpoint.total_indexed,
        started_at=checkpoint.started_at,
        last_interaction_at=checkpoint.last_interaction_at,
        critical_errors=checkpoint.critical_errors,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/v1/papers/search", response_model=SearchResult)
async def search_papers(
    query: str | None = None,
    author: str | None = None,
    journal: str | None = None,
    has_abstract: bool | None = Query(None, alias="hasAbstract"),
    from_date: date | None = Query(None, alias="fromDate"),
    to_date: date | None = Query(None, alias="toDate"),
    topics: str | None = None,
    sort_by: str | None = Query(None, alias="sortBy"),
    page: int = 1,
    per_page: int = Query(10, alias="perPage"),
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    filters = SearchFilters(
        query=query,
        author=author,
        journal=journal,
        has_abstract=has_abstract,
        from_date=from_date,
        to_date=to_date,
        topics=[t.strip() for t in (topics or "").split(",") if t.strip()],
        sort=sort_by,
    )
    try:
        return await service.search(filters, page=page, per_page=per_page)
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.get("/v1/papers/search/contextual", response_model=SearchResult)
async def search_papers_contextual(
    query: str,
    sort: str | None = None,
    has_abstract: bool | None = Query(None, alias="hasAbstract"),
    page: int = 1,
    per_page: int = Query(10, alias="perPage"),
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    try:
        return await service.search_contextual(
            query, sort=sort, has_abstract=has_abstract, page=page, per_page=per_page
        )
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.get("/v1/papers/search/semantic", response_model=SearchResult)
async def search_papers_semantic(
    query: str,
    sort: str | None = None,
    has_abstract: bool | None = Query(None, alias="hasAbstract"),
    page: int = 1,
    per_page: int = Query(10, alias="perPage"),
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    try:
        return await service.search_semantic(
            query, sort=sort, has_abstract=has_abstract, page=page, per_page=per_page
        )
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.get("/v1/papers/search/compare", response_model=SearchComparison)
async def compare_search(
    query: str,
    size: int = 10,
    service: SearchService = Depends(get_search_service),
) -> SearchComparison:
    try:
        return await service.compare(query, per_page=size)
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.get("/v1/papers/list", response_model=SearchResult)
async def list_papers(
    page: int = 1,
    per_page: int = Query(10, alias="perPage"),
    sort: str = "latest",
    has_abstract: bool | None = Query(None, alias="hasAbstract"),
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    try:
        return await service.list_papers(page=page, per_page=per_page, sort=sort, has_abstract=has_abstract)
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.get("/v1/papers/topics/{topic}", response_model=SearchResult)
async def list_papers_by_topic(
    topic: str,
    page: int = 1,
    per_page: int = Query(10, alias="perPage"),
    sort: str = "hot",
    service: SearchService = Depends(get_search_service),
) -> SearchResult:
    try:
        return await service.list_by_topic(topic, page=page, per_page=per_page, sort=sort)
    except SearchExecutionError as exc:
        raise _search_failed(exc) from exc


@router.post("/v1/indices/papers", response_model=IndexOperationResult)
def create_papers_index(admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.create_papers_index())


@router.delete("/v1/indices/{name}", response_model=IndexOperationResult)
def delete_index(name: str, admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.delete_index(name))


@router.get("/v1/indices/{name}", response_model=IndexOperationResult)
def get_index_info(name: str, admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.get_index_info(name))


@router.post("/v1/indices/{name}/refresh", response_model=IndexOperationResult)
def refresh_index(name: str, admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.refresh_index(name))


@router.get("/v1/indices/{name}/duplicates", response_model=IndexOperationResult)
def check_duplicates(name: str, admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.check_duplicates(name))


@router.get("/v1/indices/{name}/distribution", response_model=IndexOperationResult)
def data_distribution(name: str, admin: IndexAdmin = Depends(get_index_admin)) -> JSONResponse:
    return _index_response(admin.data_distribution(name))


@router.get("/v1/health", response_model=HealthReport)
async def health(
    source_store: MongoSourceStore = Depends(get_source_store),
    gateway: SearchEngineGateway = Depends(get_gateway),
) -> JSONResponse:
    report = await check_health(source_store, gateway)
    status_code = status.HTTP_200_OK if report.status == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))
