from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import CHARSET, COLLATION
from .connection import ConnectionManager
from .errors import SchemaInitializationError, describe_error, is_unknown_database, utc_timestamp
from .stats import get_table_stats

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).resolve().parent / "sql"
DATABASE_SCRIPT = "create_database.sql"
SCHEMA_SCRIPT = "init.sql"


def split_sql_statements(sql: str) -> list[str]:
    statements = []
    current: list[str] = []
    for line in sql.splitlines(keepends=True):
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        current.append(line)
        if stripped.endswith(";"):
            statements.append("".join(current).strip().rstrip(";").strip())
            current = []
    tail = "".join(current).strip()
    if tail:
        statements.append(tail)
    return [s for s in statements if s]


def load_schema_statements(include_database_statements: bool, sql_dir: Path = SQL_DIR) -> list[str]:
    scripts = [DATABASE_SCRIPT, SCHEMA_SCRIPT] if include_database_statements else [SCHEMA_SCRIPT]
    statements: list[str] = []
    for name in scripts:
        statements.extend(split_sql_statements((sql_dir / name).read_text(encoding="utf-8")))
    return statements


def create_database_statement(engine: Engine, database: str) -> str:
    quoted = engine.dialect.identifier_preparer.quote_identifier(database)
    return f"CREATE DATABASE IF NOT EXISTS {quoted} CHARACTER SET {CHARSET} COLLATE {COLLATION}"


class SchemaBootstrapper:
    """Makes sure the target database and every finance table exist."""

    def __init__(self, connections: ConnectionManager, sql_dir: Path = SQL_DIR) -> None:
        self.connections = connections
        self.sql_dir = sql_dir

    def initialize(self) -> dict[str, Any]:
        try:
            include_database_statements = not self.connections.config.database
            self._ensure_database()
            statements = load_schema_statements(include_database_statements, self.sql_dir)
            with self.connections.engine.begin() as conn:
                for stmt in statements:
                    conn.execute(text(stmt))
            stats = get_table_stats(self.connections.engine)
        except Exception as exc:
            logger.error("schema initialization failed: %s", describe_error(exc))
            raise SchemaInitializationError.wrap(exc) from exc

        logger.info("schema ready with %d tables", stats["totalTables"])
        return {
            "success": True,
            "message": "Schema initialized successfully",
            "tables": stats["tables"],
            "timestamp": utc_timestamp(),
        }

    def _ensure_database(self) -> None:
        try:
            self.connections.ping()
        except SQLAlchemyError as exc:
            database = self.connections.config.database
            if not database or not is_unknown_database(exc):
                raise
            logger.warning("database %r does not exist yet, creating it", database)
            self._create_database(database)
            self.connections.reopen()

    def _create_database(self, database: str) -> None:
        server = self.connections.temporary_engine(include_database=False)
        try:
            with server.begin() as conn:
                conn.execute(text(create_database_statement(server, database)))
        finally:
            server.dispose()
