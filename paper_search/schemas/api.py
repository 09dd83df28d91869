from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
    retryable: bool = False
    timestamp: datetime


class ErrorEnvelope(BaseModel):
    error: ErrorInfo


class SyncStatusResponse(BaseModel):
    is_running: bool
    run_id: str | None = None
    last_id: str | None = None
    total_retrieved: int = 0
    total_indexed: int = 0
    started_at: datetime | None = None
    last_interaction_at: datetime | None = None
    critical_errors: list[str] = Field(default_factory=list)
    timestamp: datetime
