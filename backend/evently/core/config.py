from functools import lru_cache
from typing import List, Optional

from json import loads as json_loads, JSONDecodeError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Evently backend.

    All values come from environment variables or backend/.env.
    This is the single source of truth for:
    - environment (dev/staging/prod)
    - database URL
    - CORS / allowed origins
    - auth / token settings
    - email delivery
    - credential link lifetimes (invites, verification, previews)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # High-level environment flags
    environment: str = Field(
        default="dev",
        description="Deployment environment identifier (dev|staging|prod)",
    )
    debug: bool = Field(default=True)
    version: str = Field(default="dev")

    # Database
    database_url: str = Field(
        default="sqlite:///./evently.db",
        description="SQLAlchemy-style DB URL (SQLite for dev, Postgres in prod).",
    )

    # Auth / tokens
    jwt_secret: str = Field(
        default="supersecret",
        description="JWT signing secret; override in all non-dev environments.",
    )
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60)

    # Credential links
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public base URL used to build emailed RSVP / verification links.",
    )
    invite_expiry_days: int = Field(default=30)
    verification_expiry_hours: int = Field(default=24)
    preview_token_expiry_days: int = Field(default=7)
    min_token_length: int = Field(
        default=20,
        description="Presented tokens shorter than this are rejected before verification.",
    )

    # CORS / frontends
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description=(
            "Allowed frontend origins. Either a comma-separated string or a JSON list like "
            '["http://localhost:3000","http://127.0.0.1:3000"].'
        ),
    )

    # API docs toggle
    enable_docs: bool = Field(default=False)

    # Email
    email_provider: str = Field(default="log", description="log | smtp | resend")
    email_from: str = Field(default="Evently <no-reply@evently.local>")
    resend_api_key: Optional[str] = Field(default=None)
    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    email_webhook_secret: Optional[str] = Field(
        default=None,
        description="Shared secret expected in X-Webhook-Token on delivery-status callbacks.",
    )

    # Performance budgets (log warnings only)
    slow_http_ms: float = Field(default=1500.0)
    slow_db_query_ms: float = Field(default=250.0)
    slow_db_total_ms: float = Field(default=800.0)
    log_db_sql: bool = Field(default=False)

    def origins_list(self) -> List[str]:
        """
        Normalize ALLOWED_ORIGINS into a clean List[str] for CORSMiddleware.

        Supports a comma-separated string or a JSON array.
        """
        raw = self.allowed_origins
        if not raw:
            return []

        raw_str = str(raw).strip()

        if raw_str.startswith("[") and raw_str.endswith("]"):
            try:
                parsed = json_loads(raw_str)
                if isinstance(parsed, list):
                    return [str(o).strip() for o in parsed if str(o).strip()]
            except JSONDecodeError:
                pass

        return [o.strip() for o in raw_str.split(",") if o.strip()]

    @property
    def is_prod(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the app only parses env once.
    """
    return Settings()


settings = get_settings()
