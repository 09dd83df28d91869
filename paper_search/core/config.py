from pydantic import computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "paper-search-service"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "local"
    HOST: str = "0.0.0.0"
    SERVICE_PORT: int = 8300
    LOG_LEVEL: str = "INFO"

    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DATABASE: str = "papers"
    MONGO_STATS_COLLECTION: str = "publicationStatistics"
    MONGO_REFERENCES_COLLECTION: str = "crossref_raw_data"
    MONGO_TIMEOUT_MS: int = 10000

    OPENSEARCH_URLS: str = "https://localhost:9200"
    OPENSEARCH_USERNAME: str = "admin"
    OPENSEARCH_PASSWORD: str = ""
    OPENSEARCH_TRUST_SELF_SIGNED: bool = False
    OPENSEARCH_TIMEOUT_SECONDS: int = 30
    PAPERS_INDEX_NAME: str = "papers_v3"
    PAPERS_ALIAS: str = "papers"

    EMBEDDINGS_BASE_URL: str = "https://api.together.xyz/v1"
    EMBEDDINGS_API_KEY: str = ""
    EMBEDDINGS_MODEL: str = "togethercomputer/m2-bert-80M-32k-retrieval"
    EMBEDDING_DIM: int = 768
    EMBEDDINGS_CHUNK_SIZE: int = 20
    EMBEDDINGS_MAX_TEXT_CHARS: int = 32000
    EMBEDDINGS_TIMEOUT_SECONDS: int = 300

    SYNC_BATCH_SIZE: int = 200
    SYNC_CHECKPOINT_FILE: str = "data/sync-statistics.json"
    SYNC_BATCH_DELAY_SECONDS: float = 1.0
    SYNC_ERROR_BACKOFF_SECONDS: float = 5.0
    SYNC_MAX_CRITICAL_ERRORS: int = 50
    SYNC_MAX_CONSECUTIVE_FAILURES: int = 0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        normalized = value.upper().strip()
        if normalized not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)}")
        return normalized

    @model_validator(mode="after")
    def validate_numeric_ranges(self) -> "Settings":
        if self.SERVICE_PORT < 1 or self.SERVICE_PORT > 65535:
            raise ValueError("SERVICE_PORT must be between 1 and 65535")
        if self.EMBEDDING_DIM < 1:
            raise ValueError("EMBEDDING_DIM must be >= 1")
        if self.EMBEDDINGS_CHUNK_SIZE < 1:
            raise ValueError("EMBEDDINGS_CHUNK_SIZE must be >= 1")
        if self.EMBEDDINGS_MAX_TEXT_CHARS < 1:
            raise ValueError("EMBEDDINGS_MAX_TEXT_CHARS must be >= 1")
        if self.SYNC_BATCH_SIZE < 1:
            raise ValueError("SYNC_BATCH_SIZE must be >= 1")
        if self.SYNC_MAX_CRITICAL_ERRORS < 1:
            raise ValueError("SYNC_MAX_CRITICAL_ERRORS must be >= 1")
        if self.SYNC_MAX_CONSECUTIVE_FAILURES < 0:
            raise ValueError("SYNC_MAX_CONSECUTIVE_FAILURES must be >= 0")
        if self.SYNC_BATCH_DELAY_SECONDS < 0 or self.SYNC_ERROR_BACKOFF_SECONDS < 0:
            raise ValueError("sync delays must be >= 0")
        return self

    @computed_field
    @property
    def opensearch_hosts(self) -> list[str]:
        return [url.strip() for url in self.OPENSEARCH_URLS.split(",") if url.strip()]


settings = Settings()
