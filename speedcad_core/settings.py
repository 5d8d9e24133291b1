import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUBMISSION_EXTENSIONS = [".step", ".stp", ".stl", ".iges", ".igs", ".zip", ".rar"]
DEFAULT_DRAWING_EXTENSIONS = [".pdf", ".png", ".jpg", ".jpeg", ".dwg", ".dxf", ".step", ".stl"]


def _normalize_extensions(value: str | List[str] | None) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    normalized: List[str] = []
    for item in items:
        ext = str(item).strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if ext not in normalized:
            normalized.append(ext)
    return normalized


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SPEEDCAD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    competition_id: int = 1
    default_tolerance: float = Field(default=5.0, gt=0)

    # External calls
    io_timeout_seconds: float = Field(default=10.0, gt=0)
    upload_timeout_seconds: float = Field(default=120.0, gt=0)

    # Observers
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    tick_interval_seconds: float = Field(default=1.0, gt=0)

    # Admission policy
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    submission_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SUBMISSION_EXTENSIONS)
    )
    drawing_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DRAWING_EXTENSIONS)
    )
    submissions_bucket: str = "submissions"
    drawings_bucket: str = "admin-drawings"

    log_level: str = "INFO"

    @field_validator("submission_extensions", "drawing_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, value: str | List[str] | None) -> List[str]:
        """Accept "step,stl" or [".STEP", "stl"] and store lowercase dotted suffixes."""
        return _normalize_extensions(value)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
