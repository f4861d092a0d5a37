from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .connection import ConnectionManager
from .errors import DataImportError, describe_error, utc_timestamp

logger = logging.getLogger(__name__)

RESULT_KEYS = (
    "categories",
    "accounts",
    "transactions",
    "budgets",
    "investments",
    "savings_goals",
    "recurring_transactions",
    "assets",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class Column:
    name: str
    default: Any = None

    @property
    def keys(self) -> tuple[str, ...]:
        camel = _camel(self.name)
        return (camel, self.name) if camel != self.name else (self.name,)

    def value(self, record: Mapping[str, Any]) -> Any:
        for key in self.keys:
            if record.get(key) is not None:
                value = record[key]
                break
        else:
            value = None
        if self.default is not None and value in (None, ""):
            return self.default
        return value


@dataclass(frozen=True)
class EntityMapping:
    """How one payload list maps onto a table, upserted by ``id``."""

    key: str
    table: str
    columns: tuple[Column, ...]
    insert_sql: str = field(init=False, repr=False)
    update_sql: str = field(init=False, repr=False)
    exists_sql: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        names = [c.name for c in self.columns]
        insert_cols = ", ".join(["id", *names, "created_at", "updated_at"])
        insert_vals = ", ".join([":id", *(f":{n}" for n in names), "CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP"])
        assignments = ", ".join([*(f"{n} = :{n}" for n in names), "updated_at = CURRENT_TIMESTAMP"])
        object.__setattr__(self, "insert_sql", f"insert into {self.table} ({insert_cols}) values ({insert_vals})")
        object.__setattr__(self, "update_sql", f"update {self.table} set {assignments} where id = :id")
        object.__setattr__(self, "exists_sql", f"select 1 from {self.table} where id = :id")

    def params(self, record: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(record, Mapping):
            raise ValueError(f"{self.key} entries must be objects, got {type(record).__name__}")
        params = {c.name: c.value(record) for c in self.columns}
        params["id"] = record.get("id")
        return params

    def upsert(self, conn: Connection, record: Mapping[str, Any]) -> None:
        params = self.params(record)
        if conn.execute(text(self.exists_sql), {"id": params["id"]}).first() is None:
            conn.execute(text(self.insert_sql), params)
        else:
            conn.execute(text(self.update_sql), params)


# Referenced tables come first so foreign keys always resolve inside the transaction.
IMPORT_ORDER = (
    EntityMapping("categories", "categories", (Column("name"), Column("type"), Column("color"), Column("icon"))),
    EntityMapping(
        "accounts",
        "accounts",
        (Column("name"), Column("type"), Column("balance"), Column("currency", default="EUR")),
    ),
    EntityMapping(
        "transactions",
        "transactions",
        (
            Column("amount"),
            Column("type"),
            Column("description"),
            Column("category_id"),
            Column("account_id"),
            Column("date"),
        ),
    ),
    EntityMapping(
        "budgets",
        "budgets",
        (
            Column("name"),
            Column("amount"),
            Column("spent", default=0),
            Column("category_id"),
            Column("period"),
            Column("start_date"),
            Column("end_date"),
        ),
    ),
    # TODO: add mappings for investments, savings_goals, recurring_transactions and assets;
    # recurring_transactions must come after categories and accounts.
)


def _records(payload: Mapping[str, Any], key: str) -> list[Any]:
    rows = payload.get(key)
    return rows if isinstance(rows, list) else []


class TransactionalImporter:
    def __init__(self, connections: ConnectionManager) -> None:
        self.connections = connections

    def import_data(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Upsert every supported entity list in one all-or-nothing transaction."""
        results = {key: 0 for key in RESULT_KEYS}
        try:
            with self.connections.engine.begin() as conn:
                for mapping in IMPORT_ORDER:
                    for record in _records(payload, mapping.key):
                        mapping.upsert(conn, record)
                        results[mapping.key] += 1
        except Exception as exc:
            logger.error("data import rolled back: %s", describe_error(exc))
            raise DataImportError.wrap(exc) from exc

        logger.info("data import committed: %s", results)
        return {
            "success": True,
            "message": "Data imported successfully",
            "results": results,
            "timestamp": utc_timestamp(),
        }
