from __future__ import annotations

from typing import Any

from sqlalchemy import func, inspect, select, table, text
from sqlalchemy.engine import Connection, Engine

from .errors import utc_timestamp

MYSQL_SIZE_QUERY = """
    select coalesce(sum(data_length + index_length), 0) as size_bytes
    from information_schema.tables
    where table_schema = database()
"""

# keyed by SQLAlchemy dialect name; mariadb+pymysql reports "mariadb"
SIZE_QUERIES = {
    "mysql": MYSQL_SIZE_QUERY,
    "mariadb": MYSQL_SIZE_QUERY,
    "sqlite": "select page_count * page_size as size_bytes from pragma_page_count(), pragma_page_size()",
}


def _database_size_mb(conn: Connection) -> float:
    query = SIZE_QUERIES.get(conn.dialect.name)
    if query is None:
        return 0.0
    size_bytes = conn.execute(text(query)).scalar() or 0
    return round(float(size_bytes) / 1024 / 1024, 2)


def count_rows(conn: Connection, table_name: str) -> int:
    return int(conn.execute(select(func.count()).select_from(table(table_name))).scalar_one())


def get_table_stats(engine: Engine) -> dict[str, Any]:
    """Row count per table plus totals and on-disk size of the current database."""
    with engine.connect() as conn:
        table_names = sorted(inspect(conn).get_table_names())
        tables = {name: count_rows(conn, name) for name in table_names}
        size_mb = _database_size_mb(conn)
    return {
        "tables": tables,
        "totalTables": len(table_names),
        "totalRecords": sum(tables.values()),
        "sizeMB": size_mb,
        "timestamp": utc_timestamp(),
    }
