"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "LSP Insight System"
    app_version: str = "1.0.0"
    debug: bool = False

    # Storage
    local_storage_path: str = "./data"

    # Generative model settings
    llm_provider: str = "gemini"  # "gemini" or "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048
    llm_timeout: float = 120.0

    # Legacy key (still accepted)
    gemini_api_key: Optional[str] = None

    # Stream retries
    llm_retry_attempts: int = 3
    llm_retry_min_wait: float = 1.0  # seconds
    llm_retry_max_wait: float = 8.0

    # Session images
    max_image_bytes: int = 10 * 1024 * 1024  # 10 MB
    allowed_image_types: list[str] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    ]

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/lsp_insight.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def resolved_api_key(self) -> Optional[str]:
        """API key for the collaborator, falling back to the legacy variable."""
        return self.llm_api_key or self.gemini_api_key


settings = Settings()
