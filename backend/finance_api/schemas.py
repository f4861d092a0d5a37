from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class DatabaseErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str
    code: str
    timestamp: str


class ConnectionConfig(BaseModel):
    """Connection settings as entered in the settings screen; every field is optional."""

    model_config = ConfigDict(extra="ignore")

    host: Optional[str] = None
    port: Optional[Union[int, str]] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    useSSL: Optional[bool] = None
    connectionTimeout: Optional[float] = Field(default=None, gt=0)
    maxConnections: Optional[int] = Field(default=None, ge=1, le=1000)

    def overrides(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ImportRequest(BaseModel):
    config: Optional[ConnectionConfig] = None
    data: dict[str, Any]


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    latency: Optional[str] = None
    error: Optional[str] = None
    timestamp: str


class SchemaInitResponse(BaseModel):
    success: bool
    message: str
    tables: dict[str, int]
    timestamp: str


class TableStats(BaseModel):
    tables: dict[str, int]
    totalTables: int
    totalRecords: int
    sizeMB: float
    timestamp: str


class TableStatsResponse(BaseModel):
    success: bool = True
    data: TableStats


class ImportResults(BaseModel):
    categories: int = 0
    accounts: int = 0
    transactions: int = 0
    budgets: int = 0
    investments: int = 0
    savings_goals: int = 0
    recurring_transactions: int = 0
    assets: int = 0


class ImportResponse(BaseModel):
    success: bool
    message: str
    results: ImportResults
    timestamp: str


class DatabaseHealth(BaseModel):
    status: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str
    timestamp: str
    database: DatabaseHealth


class StatusResponse(BaseModel):
    message: str
    version: str
    environment: str
