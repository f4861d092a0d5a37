from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from finance_api.main import app, get_database
from finance_api.service import DatabaseService


@pytest.fixture
def sqlite_env(tmp_path: Path) -> dict[str, str]:
    """Environment that points the service at a throwaway SQLite file."""
    return {"DB_DRIVER": "sqlite", "DB_NAME": str(tmp_path / "finance.sqlite")}


@pytest.fixture
def db(sqlite_env: dict[str, str]) -> Iterator[DatabaseService]:
    service = DatabaseService(environ=sqlite_env)
    service.create_connection()
    yield service
    service.close()


@pytest.fixture
def ready_db(db: DatabaseService) -> DatabaseService:
    db.initialize_schema()
    return db


@pytest.fixture
def client(db: DatabaseService) -> Iterator[TestClient]:
    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fetch_all(db: DatabaseService):
    def _fetch(sql: str, params: dict | None = None) -> list[dict]:
        with db.connections.engine.connect() as conn:
            return [dict(row) for row in conn.execute(text(sql), params or {}).mappings().all()]

    return _fetch
