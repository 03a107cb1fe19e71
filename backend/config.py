from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Database
    DATABASE_URL: str = "sqlite:///./data/membership.db"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "https://forms.ukhsc.org",
        "https://web.ukhsc.org",
    ]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Application
    APP_NAME: str = "Membership Backend"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CURRENT_ENVIRONMENT: str = "development"
    SERVICE_STATUS: str = "Normal"  # Normal | Maintenance | Suspended
    # End of the current partnership contract; stamped on new members as expired_at
    CONTRACT_END_DATE: Optional[datetime] = None

    # ── Authentication ─────────────────────────────────────────────────
    # JWT
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 45
    ORDERER_TOKEN_EXPIRE_DAYS: int = 60

    # Google OAuth (used for both consumer Google and Workspace for Education)
    GOOGLE_OAUTH_CLIENT_ID: str = ""
    GOOGLE_OAUTH_CLIENT_SECRET: str = ""
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v3/userinfo"

    # Union staff bootstrap (set via env vars for first-run setup)
    LOCAL_STAFF_USERNAME: Optional[str] = None
    LOCAL_STAFF_EMAIL: Optional[str] = None
    LOCAL_STAFF_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
