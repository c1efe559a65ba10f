"""
Application configuration.
All settings are loaded from environment variables (or .env).
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    database_url has no default - it MUST be set.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"  # local, development, production
    # Comma-separated. Empty = default list in main.py.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    database_connect_timeout: int = 5
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # ===========================================
    # REDIS (idempotency keys)
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    idempotency_ttl: int = 300  # 5 minutes

    # ===========================================
    # AUTH (resolved upstream)
    # ===========================================
    user_id_header: str = "X-User-Id"

    # ===========================================
    # BILLING
    # ===========================================
    # Charged per output when a model has no price (NULL or 0).
    default_cost_per_output: int = 1
    max_outputs_per_request: int = 4
    # Attempts for one atomic ledger operation when the chain tail moved underneath it.
    ledger_max_retries: int = 3

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("default_cost_per_output", "max_outputs_per_request", "ledger_max_retries")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper().strip()

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
