from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

from pymysql.constants import CLIENT
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from .config import CHARSET, COLLATION, DatabaseConfig, resolve_database_config
from .errors import DatabaseNotInitializedError, describe_error, error_code, utc_timestamp

logger = logging.getLogger(__name__)

EngineFactory = Callable[..., Engine]


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def engine_options(config: DatabaseConfig, single_connection: bool = False) -> dict[str, Any]:
    timeout_seconds = config.connect_timeout_ms / 1000
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if single_connection:
        options["poolclass"] = NullPool
    if config.is_sqlite:
        return options

    connect_args: dict[str, Any] = {
        "charset": CHARSET,
        "init_command": f"SET NAMES {CHARSET} COLLATE {COLLATION}",
        "client_flag": CLIENT.MULTI_STATEMENTS | CLIENT.FOUND_ROWS,
        "connect_timeout": max(1, int(timeout_seconds)),
    }
    if config.ssl:
        connect_args["ssl"] = {"check_hostname": False}

    options["connect_args"] = connect_args
    if not single_connection:
        options.update(pool_size=config.connection_limit, max_overflow=0, pool_timeout=timeout_seconds)
    return options


def build_engine(
    config: DatabaseConfig,
    include_database: bool = True,
    single_connection: bool = False,
    engine_factory: EngineFactory = create_engine,
) -> Engine:
    engine = engine_factory(config.url(include_database=include_database), **engine_options(config, single_connection))
    if config.is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def ping(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


class ConnectionManager:
    """Owns the process-wide connection pool and the configuration it was built from."""

    def __init__(self, engine_factory: EngineFactory = create_engine, environ: Mapping[str, str] | None = None) -> None:
        self.engine_factory = engine_factory
        self.environ = environ
        self._engine: Engine | None = None
        self._config: DatabaseConfig | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseNotInitializedError()
        return self._engine

    @property
    def config(self) -> DatabaseConfig:
        if self._config is None:
            raise DatabaseNotInitializedError()
        return self._config

    def resolve(self, overrides: Mapping[str, Any] | None = None) -> DatabaseConfig:
        return resolve_database_config(overrides, self.environ)

    def open(self, overrides: Mapping[str, Any] | None = None) -> Engine:
        config = self.resolve(overrides)
        self.close()
        self._config = config
        self._engine = build_engine(config, engine_factory=self.engine_factory)
        logger.info("database pool created for %s", config.safe_dict())
        return self._engine

    def reopen(self) -> Engine:
        config = self.config
        self.close()
        self._config = config
        self._engine = build_engine(config, engine_factory=self.engine_factory)
        return self._engine

    def temporary_engine(self, include_database: bool = True) -> Engine:
        return build_engine(
            self.config,
            include_database=include_database,
            single_connection=True,
            engine_factory=self.engine_factory,
        )

    def ping(self) -> None:
        ping(self.engine)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def test_connection(self, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
        config = self.resolve(overrides)
        engine: Engine | None = None
        try:
            engine = build_engine(config, single_connection=True, engine_factory=self.engine_factory)
            started = time.perf_counter()
            ping(engine)
            latency_ms = round((time.perf_counter() - started) * 1000)
            return {
                "success": True,
                "message": "Connection established successfully",
                "latency": f"{latency_ms}ms",
                "timestamp": utc_timestamp(),
            }
        except SQLAlchemyError as exc:
            logger.error("database connection test failed for %s: %s", config.safe_dict(), describe_error(exc))
            return {
                "success": False,
                "message": describe_error(exc),
                "error": error_code(exc),
                "timestamp": utc_timestamp(),
            }
        finally:
            if engine is not None:
                engine.dispose()
