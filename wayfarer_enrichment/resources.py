"""
Dagster resources for the enrichment pipeline.

Resources provide managed access to the catalog database and the generation
provider. The command-line entry points use the same classes outside Dagster
through `open_pool()`/`close()`.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.pool import PoolError, SimpleConnectionPool

from dagster import ConfigurableResource
from pydantic import Field, PrivateAttr

from wayfarer_enrichment.config import get_database_config, get_generation_config
from wayfarer_enrichment.errors import StoreUnavailable
from wayfarer_enrichment.generation import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
    GenerationClient,
)
from wayfarer_enrichment.store import DEFAULT_CLAIM_TTL_SECONDS, EntityStore


class DatabaseResource(ConfigurableResource):
    """
    PostgreSQL database resource for the travel catalog.

    Provides connection pooling and automatic cleanup.
    """

    host: str = Field(description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="postgres", description="Database name")
    user: str = Field(description="Database user")
    password: str = Field(default="", description="Database password")
    min_connections: int = Field(default=1, description="Minimum connections in pool")
    max_connections: int = Field(default=10, description="Maximum connections in pool")

    _pool: Optional[SimpleConnectionPool] = PrivateAttr(default=None)

    def open_pool(self) -> None:
        if self._pool is not None:
            return
        try:
            self._pool = SimpleConnectionPool(
                self.min_connections,
                self.max_connections,
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
            )
        except psycopg2.OperationalError as e:
            raise StoreUnavailable(f"cannot connect to {self.host}:{self.port}/{self.database}: {e}") from e

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    def setup_for_execution(self, context) -> None:
        """Initialize connection pool when resource is set up."""
        self.open_pool()
        context.log.info(f"Initialized database connection pool (min={self.min_connections}, max={self.max_connections})")

    def teardown_after_execution(self, context) -> None:
        """Clean up connection pool when resource is torn down."""
        if self._pool is not None:
            self.close()
            context.log.info("Closed database connection pool")

    @contextmanager
    def get_connection(self) -> Iterator[psycopg2.extensions.connection]:
        """
        Get a database connection from the pool.

        Yields:
            A psycopg2 connection that is automatically returned to the pool.
        """
        if self._pool is None:
            self.open_pool()
        try:
            conn = self._pool.getconn()
        except PoolError as e:
            raise StoreUnavailable(f"connection pool exhausted: {e}") from e
        try:
            yield conn
        finally:
            # Broken connections are discarded rather than handed to the next caller.
            self._pool.putconn(conn, close=bool(conn.closed))

    def get_store(self, claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS) -> EntityStore:
        return EntityStore(self, claim_ttl_seconds=claim_ttl_seconds)


class GenerationResource(ConfigurableResource):
    """OpenAI-backed generation client; one client per run, shared by every entity."""

    api_key: str = Field(default="", description="OpenAI API key")
    model: str = Field(default=DEFAULT_MODEL, description="Pinned chat model snapshot")
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, description="Per-request timeout")
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, description="Attempts per request, including the first")

    def get_client(self) -> GenerationClient:
        return GenerationClient.from_api_key(
            self.api_key,
            model=self.model,
            timeout=self.timeout_seconds,
            max_attempts=self.max_attempts,
        )


def database_resource_from_env() -> DatabaseResource:
    return DatabaseResource(**get_database_config())


def generation_resource_from_env() -> GenerationResource:
    return GenerationResource(**get_generation_config())
