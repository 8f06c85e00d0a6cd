"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated list. Empty = default list in main.py.
    cors_origins: str = ""
    api_prefix: str = "/api/v1"
    # Public URL of the storefront, used for provider return/cancel/notify links
    public_app_url: str = "http://localhost:3000"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # AUTH (Supabase-issued JWT)
    # ===========================================
    supabase_jwt_secret: str  # Required, no default
    supabase_jwt_audience: str = "authenticated"
    session_cookie_name: str = "sb-access-token"

    # ===========================================
    # PAYPAL
    # ===========================================
    paypal_client_id: str = ""
    paypal_secret: str = ""
    paypal_api_base: str = "https://api-m.sandbox.paypal.com"

    # ===========================================
    # TOKENPAY (crypto gateway)
    # ===========================================
    tokenpay_api_url: str = ""
    tokenpay_api_token: str = ""  # shared signing secret
    tokenpay_default_currency: str = "EVM_BSC_USDT_BEP20"

    # ===========================================
    # CRON
    # ===========================================
    cron_secret: str  # Required, no default
    sync_pending_interval_minutes: int = 5

    # ===========================================
    # ORDERS
    # ===========================================
    default_currency: str = "USD"
    # NB: applied regardless of the plan interval
    subscription_period_days: int = 30
    idempotency_ttl: int = 300  # 5 minutes

    # ===========================================
    # INTERNAL SERVICES
    # ===========================================
    http_client_timeout: float = 10.0
    http_client_timeout_long: float = 30.0

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("public_app_url", "paypal_api_base", "tokenpay_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("cron_secret")
    @classmethod
    def validate_cron_secret(cls, v: str) -> str:
        """Ensure cron secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("cron_secret must be at least 16 characters")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
