from __future__ import annotations

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def _get_default_db_url() -> str:
    """Build database URL from environment or use defaults."""
    host = os.getenv("DFINDER_DB_HOST", "localhost")
    port = os.getenv("DFINDER_DB_PORT", "5432")
    user = os.getenv("DFINDER_DB_USER", "dfinder")
    password = os.getenv("DFINDER_DB_PASSWORD", "dfinder")
    name = os.getenv("DFINDER_DB_NAME", "dfinder")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


class WorkerSettings(BaseSettings):
    # Database - async SQLAlchemy DSN
    database_url: str = Field(
        default_factory=_get_default_db_url,
        description="Async SQLAlchemy connection string.",
    )

    # Queue
    redis_url: str = "redis://127.0.0.1:6379/0"
    queue_name: str = "duplicate_finder"
    poll_timeout: float = Field(
        1.0,
        description="Seconds to block on the queue before re-checking the stop signal.",
    )
    source_url_template: Optional[str] = Field(
        None,
        description="Source URL for requests without one, e.g. https://cdn.example.org/{picture_id}.jpg",
    )

    # Similarity
    threshold: int = Field(
        3,
        ge=0,
        le=64,
        description="Maximum Hamming distance for two pictures to be linked.",
    )

    # HTTP settings
    http_timeout: int = 30
    http_retries: int = 3

    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "DFINDER_",
        "case_sensitive": False,
    }


settings = WorkerSettings()
