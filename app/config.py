from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Group Directory API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # API
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Storage layout (everything lives under DATA_DIR)
    DATA_DIR: str = "/var/data"
    DB_FILENAME: str = "db.json"
    UPLOADS_DIRNAME: str = "uploads"

    # Bundled frontend, mounted at "/" only when the directory exists
    PUBLIC_DIR: str = "public"

    # Listing rules
    GROUP_LINK_PREFIX: str = "https://chat.whatsapp.com/"
    GROUP_LINK_PREFIX_REQUIRED: bool = True

    # Uploads
    UPLOAD_FILENAME_PREFIX: str = "groupImage"
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024  # 5 MiB
    # Empty list accepts any content type
    UPLOAD_ALLOWED_CONTENT_TYPES: List[str] = [
        "image/jpeg",
        "image/jpg",
        "image/pjpeg",
        "image/png",
        "image/gif",
        "image/webp",
    ]

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    CREATE_RATE_LIMIT: str = "20/minute"  # Prevent listing spam

    # Metrics
    METRICS_ENABLED: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = False
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # API Documentation (Swagger UI / OpenAPI)
    ENABLE_DOCS: bool = True

    @property
    def data_dir(self) -> Path:
        return Path(self.DATA_DIR)

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.DB_FILENAME

    @property
    def uploads_dir(self) -> Path:
        return self.data_dir / self.UPLOADS_DIRNAME


settings = Settings()
