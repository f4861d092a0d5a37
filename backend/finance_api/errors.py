from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import DBAPIError

# MySQL / MariaDB server and client error numbers with the names the UI knows.
MYSQL_ERROR_CODES = {
    1044: "ER_DBACCESS_DENIED_ERROR",
    1045: "ER_ACCESS_DENIED_ERROR",
    1049: "ER_BAD_DB_ERROR",
    1050: "ER_TABLE_EXISTS_ERROR",
    1062: "ER_DUP_ENTRY",
    1146: "ER_NO_SUCH_TABLE",
    1216: "ER_NO_REFERENCED_ROW",
    1452: "ER_NO_REFERENCED_ROW_2",
    2003: "ECONNREFUSED",
    2005: "ENOTFOUND",
    2013: "PROTOCOL_CONNECTION_LOST",
}
UNKNOWN_DATABASE_ERRNO = 1049


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _driver_error(exc: BaseException) -> BaseException:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return exc.orig
    return exc


def driver_errno(exc: BaseException) -> int | None:
    args = getattr(_driver_error(exc), "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def describe_error(exc: BaseException) -> str:
    """Human readable driver message, without SQLAlchemy's statement dump."""
    orig = _driver_error(exc)
    args = getattr(orig, "args", ())
    if len(args) >= 2 and isinstance(args[0], int):
        return str(args[1])
    return str(orig) or orig.__class__.__name__


def error_code(exc: BaseException, default: str = "CONNECTION_ERROR") -> str:
    errno = driver_errno(exc)
    if errno is None:
        return default
    return MYSQL_ERROR_CODES.get(errno, f"ER_{errno}")


def is_unknown_database(exc: BaseException) -> bool:
    if driver_errno(exc) == UNKNOWN_DATABASE_ERRNO:
        return True
    return "unknown database" in describe_error(exc).lower()


class FinanceDatabaseError(Exception):
    """Failure reported to callers as ``{success, message, error, timestamp}``."""

    default_message = "Database operation failed"
    default_code = "DATABASE_ERROR"

    def __init__(self, message: str | None = None, error: str | None = None, code: str | None = None) -> None:
        self.message = message or self.default_message
        self.error = error or self.message
        self.code = code or self.default_code
        self.timestamp = utc_timestamp()
        super().__init__(self.message)

    @classmethod
    def wrap(cls, exc: BaseException, message: str | None = None) -> FinanceDatabaseError:
        if isinstance(exc, FinanceDatabaseError):
            return cls(message, exc.error, exc.code)
        return cls(message, describe_error(exc), error_code(exc, cls.default_code))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "error": self.error,
            "code": self.code,
            "timestamp": self.timestamp,
        }


class DatabaseNotInitializedError(FinanceDatabaseError):
    default_message = "Database pool not initialized"
    default_code = "POOL_NOT_INITIALIZED"


class SchemaInitializationError(FinanceDatabaseError):
    default_message = "Failed to initialize schema"
    default_code = "SCHEMA_ERROR"


class DataImportError(FinanceDatabaseError):
    default_message = "Failed to import data"
    default_code = "IMPORT_ERROR"


class StatsError(FinanceDatabaseError):
    default_message = "Failed to get table statistics"
    default_code = "STATS_ERROR"
