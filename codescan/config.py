"""
Application configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Codescan"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Logging
    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "codescan"

    # Celery / Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None

    # GitHub API client
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_USER_AGENT: str = "Codescan/1.0"
    GITHUB_REQUEST_TIMEOUT: float = 30.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_RATE_LIMIT_WARN_THRESHOLD: int = 100

    # File discovery policy
    DISCOVERY_EXTENSIONS: List[str] = [
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".vue",
        ".svelte",
        ".mjs",
        ".cjs",
        ".mts",
        ".cts",
    ]
    DISCOVERY_SKIP_DIRECTORIES: List[str] = [
        "node_modules",
        ".git",
        ".next",
        "dist",
        "build",
        "coverage",
        ".nyc_output",
        "public",
        "static",
        "assets",
        ".cache",
        ".parcel-cache",
        ".eslintcache",
    ]
    DISCOVERY_MAX_FILE_SIZE: int = 1024 * 1024
    DISCOVERY_MAX_DEPTH: int = 10

    # CI/CD webhook analysis
    WEBHOOK_EXTENSIONS: List[str] = [".ts", ".tsx", ".js", ".jsx"]

    # External analyzer
    ANALYZER_URL: str = "http://localhost:9000/analyze"
    ANALYZER_TIMEOUT: float = 120.0

    # Notifications
    NOTIFICATION_TIMEOUT: float = 10.0

    # Maintenance
    STALE_JOB_MINUTES: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
