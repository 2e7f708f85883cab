import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Set

from dotenv import load_dotenv

from .constants import ALLOWED_MIME_TYPES

# Load .env early so os.getenv can pick up values defined there.
BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    openrouter_api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    openrouter_base_url: str = field(
        default_factory=lambda: os.getenv(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1/chat/completions"
        )
    )
    openrouter_referer: str = field(default_factory=lambda: os.getenv("OPENROUTER_REFERER", ""))
    openrouter_app_name: str = field(
        default_factory=lambda: os.getenv("OPENROUTER_APP_NAME", "j-listing-optimizer")
    )
    text_model: str = field(default_factory=lambda: os.getenv("TEXT_MODEL", "google/gemini-2.5-flash"))
    text_model_online: str = field(default_factory=lambda: os.getenv("TEXT_MODEL_ONLINE", ""))
    image_model: str = field(
        default_factory=lambda: os.getenv("IMAGE_MODEL", "google/gemini-2.5-flash-image-preview")
    )
    request_timeout: int = field(default_factory=lambda: _env_int("REQUEST_TIMEOUT", 120))
    image_request_timeout: int = field(default_factory=lambda: _env_int("IMAGE_REQUEST_TIMEOUT", 180))
    max_image_bytes: int = field(default_factory=lambda: _env_int("MAX_IMAGE_BYTES", 5 * 1024 * 1024))
    allowed_mime_types: Set[str] = field(default_factory=lambda: set(ALLOWED_MIME_TYPES))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "info"))
    log_llm_raw: bool = field(default_factory=lambda: _env_bool("LOG_LLM_RAW", False))
    log_requests: bool = field(default_factory=lambda: _env_bool("LOG_REQUESTS", True))
    log_requests_retention_days: int = field(
        default_factory=lambda: _env_int("LOG_REQUESTS_RETENTION_DAYS", 7)
    )
    log_requests_max_files: int = field(default_factory=lambda: _env_int("LOG_REQUESTS_MAX_FILES", 1000))
    session_ttl_seconds: int = field(default_factory=lambda: _env_int("SESSION_TTL_SECONDS", 6 * 60 * 60))
    cors_allow_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ALLOW_ORIGINS", "*"))

    def __post_init__(self) -> None:
        # Grounded calls go through the ":online" variant, which adds web search.
        if not self.text_model_online and self.text_model:
            suffix = ":online"
            if self.text_model.endswith(suffix):
                self.text_model_online = self.text_model
            else:
                self.text_model_online = f"{self.text_model}{suffix}"


def load_settings() -> Settings:
    return Settings()
