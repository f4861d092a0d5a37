from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from sqlalchemy.engine import URL

DEFAULT_DRIVER = "mysql+pymysql"
DEFAULT_HOST = "mariadb"
DEFAULT_PORT = 3306
DEFAULT_USER = "finance_user"
DEFAULT_PASSWORD = "finance_user_password_2024"
DEFAULT_DATABASE = "personal_finance"
DEFAULT_CONNECTION_LIMIT = 10
DEFAULT_CONNECT_TIMEOUT_SECONDS = 30

CHARSET = "utf8mb4"
COLLATION = "utf8mb4_unicode_ci"


@dataclass(frozen=True)
class Settings:
    app_port: int = int(os.getenv("APP_PORT", "3000"))
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    environment: str = os.getenv("APP_ENV", os.getenv("NODE_ENV", "development"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    init_on_startup: bool = os.getenv("DB_INIT_ON_STARTUP", "false").strip().lower() == "true"


settings = Settings()


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_port(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_PORT
    if isinstance(value, str):
        try:
            value = int(value.strip(), 10)
        except ValueError:
            return DEFAULT_PORT
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return DEFAULT_PORT


def _positive_number(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number <= 0:
        return default
    return number


@dataclass(frozen=True)
class DatabaseConfig:
    """Resolved connection settings for the relational store."""

    driver: str = DEFAULT_DRIVER
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user: str = DEFAULT_USER
    password: str = field(default=DEFAULT_PASSWORD, repr=False)
    database: str | None = DEFAULT_DATABASE
    ssl: bool = False
    connection_limit: int = DEFAULT_CONNECTION_LIMIT
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_SECONDS * 1000

    @property
    def backend(self) -> str:
        return self.driver.split("+", 1)[0]

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    def without_database(self) -> DatabaseConfig:
        return replace(self, database=None)

    def url(self, include_database: bool = True) -> URL:
        database = self.database if include_database else None
        if self.is_sqlite:
            return URL.create(self.driver, database=database)
        return URL.create(
            self.driver,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=database,
        )

    def safe_dict(self) -> dict[str, Any]:
        return {
            "driver": self.driver,
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "database": self.database,
            "ssl": self.ssl,
            "connectionLimit": self.connection_limit,
            "connectTimeoutMs": self.connect_timeout_ms,
        }


def resolve_database_config(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> DatabaseConfig:
    """Merge caller values, environment and built-in defaults.

    A caller value wins when it is present and not blank, then the matching
    ``DB_*`` environment variable, then the default. ``overrides`` uses the
    field names the UI sends (``username``, ``useSSL``, ``connectionTimeout``,
    ``maxConnections``).
    """
    given = dict(overrides or {})
    env = os.environ if environ is None else environ

    def pick(key: str, env_key: str, default: str) -> str:
        return _text(given.get(key)) or _text(env.get(env_key)) or default

    ssl_flag = given.get("useSSL")
    if ssl_flag is None:
        ssl_flag = given.get("ssl")
    use_ssl = bool(ssl_flag) or (env.get("DB_SSL", "").strip().lower() == "true")

    port_value = given.get("port")
    if _text(port_value) is None:
        port_value = env.get("DB_PORT") or DEFAULT_PORT

    timeout_seconds = _positive_number(given.get("connectionTimeout"), DEFAULT_CONNECT_TIMEOUT_SECONDS)
    connection_limit = int(_positive_number(given.get("maxConnections"), DEFAULT_CONNECTION_LIMIT))

    return DatabaseConfig(
        driver=pick("driver", "DB_DRIVER", DEFAULT_DRIVER),
        host=pick("host", "DB_HOST", DEFAULT_HOST),
        port=normalize_port(port_value),
        user=pick("username", "DB_USER", DEFAULT_USER),
        password=pick("password", "DB_PASSWORD", DEFAULT_PASSWORD),
        database=pick("database", "DB_NAME", DEFAULT_DATABASE),
        ssl=use_ssl,
        connection_limit=connection_limit,
        connect_timeout_ms=int(timeout_seconds * 1000),
    )
