"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Required fields (e.g. SECRET_KEY, ELASTICSEARCH_URL)
are validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    All settings are optional with defaults except those validated in
    validate_required_and_backend (secret_key, and elasticsearch_url when
    the Elasticsearch backend is selected).
    """

    # App
    app_name: str = "search-service"
    app_version: str = "1.0.0"
    debug: bool = False
    # Root log level; DEBUG when debug is set and this is left empty
    log_level: str | None = None

    # Security
    secret_key: SecretStr = SecretStr("")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480  # 8 hours
    # Roles allowed to read stats and index manually (comma-separated)
    admin_roles: str = "admin,CEO,President"

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Search engine: "elasticsearch" or "memory" (local development and tests)
    search_backend: str = "elasticsearch"
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_username: str | None = None
    elasticsearch_password: SecretStr | None = None
    elasticsearch_request_timeout: float = 10.0
    index_prefix: str = "htma"
    index_shards: int = 1
    index_replicas: int = 0

    # Broker (Redis Streams)
    broker_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    broker_consumer_group: str = "search-service"
    broker_consumer_name: str = "search-service-1"
    broker_block_ms: int = 1000
    broker_max_deliveries: int = 5
    broker_reconnect_max_attempts: int = 10
    broker_reconnect_initial_backoff: float = 1.0
    broker_reconnect_max_backoff: float = 30.0

    # Index synchronizer: retries of transient engine failures per event
    sync_max_attempts: int = 3
    sync_retry_backoff_seconds: float = 0.5

    # Delete tombstones: kept this long, purged on this interval
    tombstone_retention_hours: float = 72.0
    tombstone_purge_interval_seconds: float = 3600.0

    # Search
    suggest_limit: int = 10
    enforce_document_permissions: bool = False
    rate_limit_search: str = "120/minute"
    rate_limit_suggest: str = "300/minute"

    # OpenTelemetry
    telemetry_enabled: bool = True
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def admin_role_set(self) -> frozenset[str]:
        """Parsed admin_roles."""
        return frozenset(r.strip() for r in self.admin_roles.split(",") if r.strip())

    @model_validator(mode="after")
    def validate_required_and_backend(self) -> "Settings":
        """Validate required env and search backend.

        - SECRET_KEY always required (JWT verification).
        - Elasticsearch: ELASTICSEARCH_URL required.
        """
        if not self.secret_key.get_secret_value():
            raise ValueError(
                "SECRET_KEY is required. Use the same key as the service that issues tokens."
            )
        if self.search_backend == "elasticsearch":
            if not self.elasticsearch_url:
                raise ValueError(
                    "ELASTICSEARCH_URL is required when search_backend is 'elasticsearch'. "
                    "Set in environment or .env file."
                )
        elif self.search_backend != "memory":
            raise ValueError(
                f"search_backend must be 'elasticsearch' or 'memory', got: {self.search_backend!r}"
            )
        if self.broker_max_deliveries < 1:
            raise ValueError("BROKER_MAX_DELIVERIES must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
