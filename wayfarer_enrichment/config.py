"""
Configuration for enrichment runs.

Connection and credential settings come from environment variables; run
settings come from the job/op config or the command line and are validated
once, before any work starts.
"""

import logging
import os
from typing import Optional
from urllib.parse import unquote, urlparse

from dagster import Config
from pydantic import Field, field_validator

from wayfarer_enrichment.generation import DEFAULT_MAX_ATTEMPTS, DEFAULT_MODEL, DEFAULT_TIMEOUT_SECONDS
from wayfarer_enrichment.store import DEFAULT_CLAIM_TTL_SECONDS
from wayfarer_enrichment.tasks import TASKS

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

DEFAULT_BATCH_SIZE = 5
MAX_WORKERS_LIMIT = 16


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging for command-line runs; LOG_LEVEL wins when no level is passed."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def get_database_config() -> dict:
    """Database resource config from WAYFARER_DB_* variables, or DATABASE_URL when set."""
    url = os.getenv("DATABASE_URL")
    if url:
        parsed = urlparse(url)
        return {
            "host": parsed.hostname or "localhost",
            "port": parsed.port or 5432,
            "database": (parsed.path or "/postgres").lstrip("/") or "postgres",
            "user": unquote(parsed.username or ""),
            "password": unquote(parsed.password or ""),
        }
    return {
        "host": os.getenv("WAYFARER_DB_HOST", "localhost"),
        "port": int(os.getenv("WAYFARER_DB_PORT", "5432")),
        "database": os.getenv("WAYFARER_DB_NAME", "postgres"),
        "user": os.getenv("WAYFARER_DB_USER", "postgres"),
        "password": os.getenv("WAYFARER_DB_PASSWORD", ""),
    }


def get_generation_config() -> dict:
    return {
        "api_key": os.getenv("OPENAI_API_KEY", ""),
        "model": os.getenv("OPENAI_ENRICHMENT_MODEL", DEFAULT_MODEL),
        "timeout_seconds": float(os.getenv("OPENAI_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
        "max_attempts": int(os.getenv("OPENAI_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))),
    }


def default_batch_size() -> int:
    return int(os.getenv("ENRICHMENT_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))


class EnrichmentConfig(Config):
    """Settings for one bounded enrichment run."""

    entity_type: str = Field(description="Which enrichment to run, e.g. itinerary or destination_narrative")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, description="Maximum entities attempted in this run")
    completeness_threshold: Optional[int] = Field(
        default=None,
        ge=0,
        description="Minimum text length that counts as complete; the task default when omitted",
    )
    dry_run: bool = Field(default=False, description="Select and build prompts only; no provider calls or writes")
    max_workers: int = Field(default=1, ge=1, le=MAX_WORKERS_LIMIT, description="Concurrent generations per batch")
    request_delay: float = Field(default=2.0, ge=0, description="Minimum seconds between provider calls")
    batch_delay: float = Field(default=10.0, ge=0, description="Seconds to pause between concurrent batches")
    deadline_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Stop starting new entities after this many seconds",
    )
    claim_ttl_seconds: int = Field(
        default=DEFAULT_CLAIM_TTL_SECONDS,
        ge=1,
        description="Age after which another run's claim is treated as abandoned",
    )

    @field_validator("entity_type")
    @classmethod
    def _known_entity_type(cls, value):
        value = value.strip().lower()
        if value not in TASKS:
            raise ValueError(f"unknown entity type {value!r}; expected one of {sorted(TASKS)}")
        return value
