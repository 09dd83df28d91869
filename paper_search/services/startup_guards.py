from __future__ import annotations

import logging

from paper_search.core.config import Settings, settings

logger = logging.getLogger(__name__)


class StartupValidationError(RuntimeError):
    def __init__(self, error_code: str, message: str):
        super().__init__(message)
        self.error_code = error_code


def validate_required_settings(config: Settings | None = None) -> None:
    config = config or settings
    missing = []
    if not config.EMBEDDINGS_API_KEY.strip():
        missing.append("EMBEDDINGS_API_KEY")
    if not config.EMBEDDINGS_MODEL.strip():
        missing.append("EMBEDDINGS_MODEL")
    if not config.MONGO_URI.strip():
        missing.append("MONGO_URI")
    if not config.MONGO_DATABASE.strip():
        missing.append("MONGO_DATABASE")
    if not config.opensearch_hosts:
        missing.append("OPENSEARCH_URLS")
    if missing:
        raise StartupValidationError("CONFIG_MISSING", f"Missing required settings: {', '.join(missing)}")
    logger.info(
        "startup_required_settings_present",
        extra={"opensearch_hosts": len(config.opensearch_hosts), "embeddings_model": config.EMBEDDINGS_MODEL},
    )
