"""Configuration management for Sitesnap."""

import os
from typing import Any, Callable, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sitesnap import __version__
from sitesnap.core.errors import InvalidConfigError

# Load .env file
load_dotenv()

DEFAULT_SITEMAP_CANDIDATES = [
    "sitemap.xml",
    "pages-sitemap.xml",
    "blog-sitemap.xml",
    "product-sitemap.xml",
]

# Upper bound for metadata fetch workers within a sub-batch
MAX_WORKER_CAP = 5

ENV_PREFIX = "SITESNAP_"


class SitesnapConfig(BaseModel):
    """Behavioral settings for discovery, classification and merge."""

    model_config = ConfigDict(validate_default=True, validate_assignment=True)

    # Discovery
    sitemap_candidates: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SITEMAP_CANDIDATES),
        description="Sitemap filenames tried in order against the base URL",
    )
    max_retries: int = Field(default=3, ge=1, description="Attempts per fetch before giving up")
    backoff_base: float = Field(default=1.0, ge=0.0, description="Backoff seconds; delay = base * attempt")
    timeout: int = Field(default=30, ge=1, description="Request timeout in seconds")
    user_agent: Optional[str] = Field(default=None, description="Custom user agent string")

    # Crawl fallback
    crawl_max_depth: int = Field(default=2, ge=0, description="Maximum crawl depth from the base URL")
    crawl_max_pages: int = Field(default=200, ge=1, description="Maximum pages fetched by one crawl")
    crawl_mode: Literal["fallback", "always"] = Field(
        default="fallback", description="Crawl only when sitemaps are empty, or always"
    )

    # Pipeline
    batch_size: int = Field(default=10, ge=1, description="URLs per merge sub-batch")
    max_workers: int = Field(default=1, ge=1, description="Concurrent metadata fetches per sub-batch")
    target_likes_min: int = Field(default=50, ge=0, description="Lower bound for article target likes")
    target_likes_max: int = Field(default=100, ge=0, description="Upper bound for article target likes")

    # Storage / logging
    db_path: str = Field(default="data/sitesnap.db", description="SQLite snapshot database path")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")

    @field_validator("sitemap_candidates", mode="before")
    @classmethod
    def split_candidates(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            v = [item.strip() for item in v.split(",")]
        return v

    @field_validator("sitemap_candidates")
    @classmethod
    def validate_candidates(cls, v: List[str]) -> List[str]:
        cleaned = [item.strip().lstrip("/") for item in v if item and item.strip()]
        if not cleaned:
            raise ValueError("at least one sitemap candidate is required")
        return cleaned

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v > MAX_WORKER_CAP:
            raise ValueError(f"max_workers must be <= {MAX_WORKER_CAP}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_target_range(self) -> "SitesnapConfig":
        """Target likes range must not be inverted."""
        if self.target_likes_min > self.target_likes_max:
            raise ValueError(
                f"target_likes_min ({self.target_likes_min}) exceeds target_likes_max ({self.target_likes_max})"
            )
        return self

    @property
    def target_likes_range(self) -> tuple:
        return (self.target_likes_min, self.target_likes_max)

    @property
    def effective_user_agent(self) -> str:
        return self.user_agent or f"sitesnap/{__version__} (+https://github.com/sitesnap/sitesnap)"

    @classmethod
    def from_env(cls, **overrides: Any) -> "SitesnapConfig":
        """
        Load configuration from SITESNAP_* environment variables.

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            Validated configuration

        Raises:
            InvalidConfigError: If an environment value cannot be converted
        """
        values = {}
        for field_name, convert in _ENV_FIELDS.items():
            env_key = f"{ENV_PREFIX}{field_name.upper()}"
            raw = os.getenv(env_key)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = convert(raw)
            except ValueError as e:
                raise InvalidConfigError(env_key, raw, str(e)) from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _identity(raw: str) -> str:
    return raw


_ENV_FIELDS: dict[str, Callable[[str], Any]] = {
    "sitemap_candidates": _identity,
    "max_retries": int,
    "backoff_base": float,
    "timeout": int,
    "user_agent": _identity,
    "crawl_max_depth": int,
    "crawl_max_pages": int,
    "crawl_mode": lambda raw: raw.strip().lower(),
    "batch_size": int,
    "max_workers": int,
    "target_likes_min": int,
    "target_likes_max": int,
    "db_path": _identity,
    "log_level": _identity,
}
