import warnings
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "CHANGE_THIS_PRODUCTION_SECRET_MIN_32_CHARS",
    "secret",
}


class Settings(BaseSettings):
    APP_NAME: str = "Custom Domains API"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change_this"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8  # 8 days

    # Logging
    LOG_FORMAT: str = "auto"   # auto / json / human
    LOG_LEVEL: str = ""        # empty: INFO for json, DEBUG otherwise

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "custom_domains"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Cloudflare for SaaS (custom hostnames)
    CLOUDFLARE_API_BASE: str = "https://api.cloudflare.com/client/v4"
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""

    # Custom domain provisioning
    CUSTOM_DOMAIN_EDGE_TARGET: str = "edge.dataruapp.com"   # default CNAME target
    CUSTOM_DOMAIN_TXT_PREFIX: str = "_cf-custom-hostname"
    DOH_ENDPOINT: str = "https://cloudflare-dns.com/dns-query"

    # Hosts served by the platform itself (never treated as custom domains)
    APP_DOMAIN: str = ""
    APP_HOSTS: str = ""

    # Outbound HTTP (DoH / Cloudflare / HTTPS liveness)
    OUTBOUND_HTTP_TIMEOUT: float = 8.0
    OUTBOUND_HTTP_RETRIES: int = 2

    # Host → link code resolution cache
    DOMAIN_CACHE_BACKEND: str = "memory"   # memory / redis
    DOMAIN_CACHE_TTL: int = 60             # seconds, positive hits
    DOMAIN_CACHE_NEGATIVE_TTL: int = 30    # seconds, misses
    DOMAIN_CACHE_REDIS_URL: str = ""

    # Scheduled refresh of domains waiting on TLS
    DOMAIN_REFRESH_INTERVAL_SECONDS: int = 300
    DOMAIN_REFRESH_BATCH_SIZE: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set a strong random key (≥ 32 chars) in .env or environment. "
                    f"Hint: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
                )
            if not self.DATABASE_URL and self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
            if not self.CLOUDFLARE_ACCOUNT_ID or not self.CLOUDFLARE_API_TOKEN:
                warnings.warn(
                    "CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN are not set. "
                    "Domain verification will fail until they are configured.",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def default_hosts(self) -> set[str]:
        """Hosts that bypass custom-domain routing entirely."""
        hosts = {
            "localhost",
            "localhost:3000",
            "localhost:8000",
            "127.0.0.1",
            "127.0.0.1:3000",
            "127.0.0.1:8000",
            "",
        }
        if self.APP_DOMAIN.strip():
            hosts.add(self.APP_DOMAIN.strip().lower())
        for host in self.APP_HOSTS.split(","):
            if host.strip():
                hosts.add(host.strip().lower())
        return hosts

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

settings = Settings()
