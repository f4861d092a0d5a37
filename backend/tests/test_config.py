from pymysql.constants import CLIENT
from sqlalchemy.pool import NullPool

from finance_api.config import DatabaseConfig, normalize_port, resolve_database_config
from finance_api.connection import engine_options


def test_explicit_value_beats_environment_and_default() -> None:
    env = {"DB_HOST": "env-host", "DB_USER": "env-user", "DB_NAME": "env_db"}
    config = resolve_database_config({"host": "explicit-host", "username": "me", "database": "mine"}, env)
    assert config.host == "explicit-host"
    assert config.user == "me"
    assert config.database == "mine"


def test_environment_beats_default_when_explicit_missing() -> None:
    env = {"DB_HOST": "env-host", "DB_PORT": "3307", "DB_PASSWORD": "s3cret", "DB_SSL": "true"}
    config = resolve_database_config({}, env)
    assert config.host == "env-host"
    assert config.port == 3307
    assert config.password == "s3cret"
    assert config.ssl is True


def test_defaults_when_nothing_given() -> None:
    config = resolve_database_config(None, {})
    assert config == DatabaseConfig()
    assert config.host == "mariadb"
    assert config.port == 3306
    assert config.user == "finance_user"
    assert config.database == "personal_finance"
    assert config.ssl is False
    assert config.connection_limit == 10
    assert config.connect_timeout_ms == 30000


def test_blank_explicit_values_fall_through() -> None:
    config = resolve_database_config({"host": "   ", "port": "", "database": ""}, {"DB_HOST": "env-host"})
    assert config.host == "env-host"
    assert config.port == 3306
    assert config.database == "personal_finance"


def test_port_normalization() -> None:
    assert normalize_port("3310") == 3310
    assert normalize_port(3311) == 3311
    assert normalize_port("not-a-port") == 3306
    assert normalize_port(float("nan")) == 3306
    assert normalize_port(None) == 3306


def test_timeout_and_pool_size_normalization() -> None:
    config = resolve_database_config({"connectionTimeout": 5, "maxConnections": "4"}, {})
    assert config.connect_timeout_ms == 5000
    assert config.connection_limit == 4

    fallback = resolve_database_config({"connectionTimeout": "soon", "maxConnections": 0}, {})
    assert fallback.connect_timeout_ms == 30000
    assert fallback.connection_limit == 10


def test_url_can_drop_database_name() -> None:
    config = resolve_database_config({"host": "db", "database": "finance"}, {})
    assert config.url().database == "finance"
    assert config.url(include_database=False).database is None
    assert config.url().drivername == "mysql+pymysql"


def test_safe_dict_hides_password() -> None:
    config = resolve_database_config({"password": "hunter2"}, {})
    assert "password" not in config.safe_dict()
    assert "hunter2" not in repr(config)


def test_mysql_engine_options() -> None:
    config = resolve_database_config({"useSSL": True, "connectionTimeout": 5, "maxConnections": 3}, {})
    options = engine_options(config)
    connect_args = options["connect_args"]
    assert connect_args["charset"] == "utf8mb4"
    assert "utf8mb4_unicode_ci" in connect_args["init_command"]
    assert connect_args["client_flag"] & CLIENT.MULTI_STATEMENTS
    assert connect_args["connect_timeout"] == 5
    assert connect_args["ssl"] == {"check_hostname": False}
    assert options["pool_size"] == 3
    assert options["max_overflow"] == 0
    assert options["pool_timeout"] == 5.0


def test_single_connection_options_use_null_pool() -> None:
    options = engine_options(DatabaseConfig(), single_connection=True)
    assert options["poolclass"] is NullPool
    assert "pool_size" not in options
    assert "ssl" not in options["connect_args"]
