from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .connection import ConnectionManager, EngineFactory
from .errors import describe_error, utc_timestamp
from .importer import TransactionalImporter
from .schema import SchemaBootstrapper
from .stats import get_table_stats

logger = logging.getLogger(__name__)


class DatabaseService:
    """Database operations behind the HTTP API, sharing one connection pool.

    Built once by the application and closed on shutdown; tests build their
    own instance per store.
    """

    def __init__(self, engine_factory: EngineFactory = create_engine, environ: Mapping[str, str] | None = None) -> None:
        self.connections = ConnectionManager(engine_factory=engine_factory, environ=environ)
        self.bootstrapper = SchemaBootstrapper(self.connections)
        self.importer = TransactionalImporter(self.connections)

    def __enter__(self) -> DatabaseService:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.connections.is_open

    def create_connection(self, config: Mapping[str, Any] | None = None) -> Engine:
        return self.connections.open(config)

    def ensure_connection(self, config: Mapping[str, Any] | None = None) -> Engine:
        """Reuse the open pool unless a config is given or none exists yet."""
        if config or not self.connections.is_open:
            return self.connections.open(config)
        return self.connections.engine

    def test_connection(self, config: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return self.connections.test_connection(config)

    def initialize_schema(self) -> dict[str, Any]:
        return self.bootstrapper.initialize()

    def get_table_stats(self) -> dict[str, Any]:
        return get_table_stats(self.connections.engine)

    def import_data(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.importer.import_data(payload)

    def health(self) -> dict[str, Any]:
        db_status = "disconnected"
        db_error = None
        if self.connections.is_open:
            try:
                self.connections.ping()
                db_status = "connected"
            except SQLAlchemyError as exc:
                db_status = "error"
                db_error = describe_error(exc)
                logger.warning("health check ping failed: %s", db_error)
        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "timestamp": utc_timestamp(),
            "database": {"status": db_status, "error": db_error},
        }

    def close(self) -> None:
        self.connections.close()
