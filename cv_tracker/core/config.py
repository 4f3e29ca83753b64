from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # PostgreSQL Configuration
    postgres_user: str = Field(default="admin")
    postgres_password: str = Field(default="admin")
    postgres_db: str = Field(default="cvtracker")
    postgres_host: str = Field(default="db")
    postgres_port: int = Field(default=5432)
    # Full URL override, e.g. sqlite+aiosqlite:///./cvtracker.db for local runs
    database_url_override: str = Field(default="")

    # Application Configuration
    app_env: str = Field(default="dev")
    api_port: int = Field(default=8000)
    jwt_secret: str = Field(default="change-me-in-production-use-a-secure-random-string")
    access_token_expires: int = Field(default=3600)  # 1 hour

    # Object storage
    media_root: str = Field(default="media")
    media_base_url: str = Field(default="/media")
    storage_timeout_seconds: float = Field(default=30.0)
    # When False, attachment deletion failures during record deletion are logged and ignored
    strict_attachment_cleanup: bool = Field(default=False)

    # Upload widget defaults
    upload_max_size_mb: int = Field(default=10)
    upload_accept: str = Field(default=".pdf,.doc,.docx")
    upload_progress_step: int = Field(default=10)
    upload_progress_interval: float = Field(default=0.1)  # seconds

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def upload_accept_list(self) -> List[str]:
        return [ext.strip() for ext in self.upload_accept.split(",") if ext.strip()]

    # CORS - dashboard origin plus the browser extension (filter out None values)
    allowed_origins: List[str] = [
        origin for origin in [
            "http://localhost:3000",
            os.getenv("FRONTEND_URL"),
            os.getenv("EXTENSION_ORIGIN"),
        ] if origin is not None
    ]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
