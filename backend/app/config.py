import os
import secrets
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional

DATA_DIR = Path(__file__).parent / "data"

class Settings(BaseSettings):
    # API Configuration
    PROJECT_NAME: str = "Farlandet"
    DEBUG: bool = False

    # Database
    # Falls back to a local SQLite file when unset
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT: int = 5  # seconds to wait for a pooled connection
    DB_STATEMENT_TIMEOUT_MS: int = 30000

    # CORS Configuration
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Security
    # Random per process unless set in the environment
    JWT_SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours
    MODERATOR_EMAILS: str = ""  # comma-separated

    # Listing
    DEFAULT_PAGE_LIMIT: int = 50
    MAX_PAGE_LIMIT: int = 100
    DASHBOARD_RECENT_LIMIT: int = 10

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        DATA_DIR.mkdir(exist_ok=True)
        return f"sqlite:///{DATA_DIR}/resources.db"

    def is_moderator_email(self, email: Optional[str]) -> bool:
        if not email:
            return False
        allowed = [e.strip().lower() for e in self.MODERATOR_EMAILS.split(",") if e.strip()]
        return email.strip().lower() in allowed

settings = Settings()

# Comma-separated overrides are easier to set in hosting dashboards than JSON lists
if os.getenv("CORS_ORIGINS"):
    settings.BACKEND_CORS_ORIGINS = [
        str(origin).strip() for origin in os.getenv("CORS_ORIGINS").split(",")
    ]
