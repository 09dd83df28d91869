from __future__ import annotations

from typing import Any


class PaperSearchError(RuntimeError):
    error_code = "PAPER_SEARCH_ERROR"
    retryable = False

    def __init__(self, message: str, *, error_code: str | None = None, retryable: bool | None = None) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code
        if retryable is not None:
            self.retryable = retryable


class EmbeddingBackendError(PaperSearchError):
    error_code = "EMBEDDING_BACKEND_ERROR"
    retryable = True


class SourceStoreError(PaperSearchError):
    error_code = "SOURCE_STORE_ERROR"
    retryable = True


class SearchEngineError(PaperSearchError):
    error_code = "SEARCH_ENGINE_ERROR"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        raw_response: Any = None,
        error_code: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, retryable=retryable)
        self.status_code = status_code
        self.raw_response = raw_response


class SearchExecutionError(SearchEngineError):
    error_code = "SEARCH_EXECUTION_FAILED"
    retryable = False


class BulkIndexingError(SearchEngineError):
    error_code = "BULK_INDEXING_FAILED"


class ProtectedIndexError(PaperSearchError):
    error_code = "PROTECTED_INDEX"

    def __init__(self, index_name: str) -> None:
        super().__init__(f"System index '{index_name}' cannot be deleted")
        self.index_name = index_name


class SyncFatalError(PaperSearchError):
    error_code = "SYNC_FATAL"
