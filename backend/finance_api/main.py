import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import FinanceDatabaseError, StatsError
from .schemas import (
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    ConnectionConfig,
    ConnectionTestResponse,
    DatabaseErrorResponse,
    HealthResponse,
    ImportRequest,
    ImportResponse,
    SchemaInitResponse,
    StatusResponse,
    TableStatsResponse,
)
from .service import DatabaseService

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {500: {"model": DatabaseErrorResponse}}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    db = DatabaseService()
    app.state.db = db
    db.create_connection()
    logger.info("database pool initialized for %s", db.connections.config.safe_dict())
    if settings.init_on_startup:
        try:
            db.initialize_schema()
        except FinanceDatabaseError as exc:
            logger.error("startup schema initialization failed: %s", exc.error)
    try:
        yield
    finally:
        db.close()
        logger.info("database pool closed")


app = FastAPI(
    title="Personal Finance API",
    version=settings.app_version,
    description="Database bootstrap, statistics and data import for the personal finance manager.",
    lifespan=lifespan,
)


def get_database(request: Request) -> DatabaseService:
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = DatabaseService()
        request.app.state.db = db
    return db


def _config_overrides(config: Optional[ConnectionConfig]) -> dict:
    return config.overrides() if config is not None else {}


def build_error_response(details: list[ApiErrorDetail], message: str = "Invalid request payload") -> JSONResponse:
    payload = ApiErrorResponse(
        error=ApiErrorPayload(code="VALIDATION_ERROR", message=message, details=details)
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[ApiErrorDetail] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", []) if item != "body")
        details.append(ApiErrorDetail(field=loc or "body", message=err.get("msg", "validation error")))
    return build_error_response(details)


@app.exception_handler(FinanceDatabaseError)
async def database_error_handler(request: Request, exc: FinanceDatabaseError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=exc.to_dict())


@app.api_route("/health", methods=["GET", "POST"], response_model=HealthResponse)
@app.api_route("/api/health", methods=["GET", "POST"], response_model=HealthResponse)
def health(db: DatabaseService = Depends(get_database)) -> HealthResponse:
    return HealthResponse(**db.health())


@app.get("/api/status", response_model=StatusResponse)
async def api_status() -> StatusResponse:
    return StatusResponse(
        message="Personal Finance Manager API",
        version=settings.app_version,
        environment=settings.environment,
    )


@app.post("/api/db/test", response_model=ConnectionTestResponse, response_model_exclude_none=True)
def check_database_connection(
    config: Optional[ConnectionConfig] = None,
    db: DatabaseService = Depends(get_database),
) -> ConnectionTestResponse:
    return ConnectionTestResponse(**db.test_connection(_config_overrides(config)))


@app.post("/api/db/init", response_model=SchemaInitResponse, responses=ERROR_RESPONSES)
def initialize_database(
    config: Optional[ConnectionConfig] = None,
    db: DatabaseService = Depends(get_database),
) -> SchemaInitResponse:
    db.ensure_connection(_config_overrides(config))
    return SchemaInitResponse(**db.initialize_schema())


def _table_stats(db: DatabaseService, config: Optional[ConnectionConfig]) -> TableStatsResponse:
    db.ensure_connection(_config_overrides(config))
    try:
        stats = db.get_table_stats()
    except Exception as exc:
        logger.error("failed to get table stats: %s", exc)
        raise StatsError.wrap(exc) from exc
    return TableStatsResponse(data=stats)


@app.get("/api/db/stats", response_model=TableStatsResponse, responses=ERROR_RESPONSES)
def get_database_stats(db: DatabaseService = Depends(get_database)) -> TableStatsResponse:
    return _table_stats(db, None)


@app.post("/api/db/stats", response_model=TableStatsResponse, responses=ERROR_RESPONSES)
def post_database_stats(
    config: Optional[ConnectionConfig] = None,
    db: DatabaseService = Depends(get_database),
) -> TableStatsResponse:
    return _table_stats(db, config)


@app.post("/api/db/import", response_model=ImportResponse, responses=ERROR_RESPONSES)
def import_database_data(payload: ImportRequest, db: DatabaseService = Depends(get_database)) -> ImportResponse:
    db.ensure_connection(_config_overrides(payload.config))
    return ImportResponse(**db.import_data(payload.data))
