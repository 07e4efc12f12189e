"""
Application configuration.

Centralized environment-based settings using Pydantic v2.
"""

from typing import Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --------------------
    # Environment
    # --------------------
    ENV: str = "dev"

    # --------------------
    # OIDC (IBM Verify)
    # --------------------
    VERIFY_TENANT_URL: str = ""
    VERIFY_DISCOVERY_URL: str = ""
    VERIFY_OIDC_CLIENT_ID: str = ""
    VERIFY_OIDC_CLIENT_SECRET: str = ""
    VERIFY_OIDC_REDIRECT_URI: str = ""
    VERIFY_OIDC_SCOPE: str = "openid profile email"

    # --------------------
    # Privacy API
    # --------------------
    VERIFY_PRIVACY_BASE_URL: str = ""

    # --------------------
    # Web app
    # --------------------
    APP_BASE_URL: str = ""
    SESSION_SECRET: str = "demo-session-secret-change-in-production"
    SESSION_MAX_AGE_SECONDS: int = Field(default=30 * 60, gt=0)
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    RATE_LIMIT_ENABLED: bool = True

    # --------------------
    # Error tracking
    # --------------------
    SENTRY_DSN: Optional[str] = None

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="MYITR_",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENV == "prod"

    @property
    def privacy_base_url(self) -> str:
        """Privacy API root; tenants usually serve it from the tenant URL."""
        return (self.VERIFY_PRIVACY_BASE_URL or self.VERIFY_TENANT_URL).rstrip("/")


settings = Settings()
