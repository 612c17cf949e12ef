import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from accounts.errors import ErrorKind, HandlerError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Supabase project
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Email delivery (Resend)
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com"

    # Storage cleanup
    STORAGE_BUCKET: str = "prescriptions"
    STORAGE_PAGE_SIZE: int = 100
    STORAGE_MAX_PAGES: int = 1000

    # OTP
    OTP_RPC_FUNCTION: str = "create_email_otp"
    OTP_EMAIL_FROM: str = "PharmC <onboarding@resend.dev>"
    OTP_EMAIL_SUBJECT: str = "Your PharmC verification code"

    HTTP_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    def require(self, *names: str) -> None:
        """
        Raise MISCONFIGURED_SERVER unless every named setting is non-empty.
        """
        missing = [name for name in names if not (getattr(self, name) or "").strip()]
        if missing:
            logger.error("Missing required settings: %s", ", ".join(missing))
            raise HandlerError(ErrorKind.MISCONFIGURED_SERVER, "Missing server env vars")


@lru_cache
def get_settings() -> Settings:
    return Settings()
