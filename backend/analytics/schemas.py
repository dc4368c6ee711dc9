from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict
from typing import Optional, List, Dict, Any, Literal, Union


ColumnDataType = Literal["text", "integer", "decimal", "currency", "date", "datetime", "boolean"]


class HealthResponse(BaseModel):
    status: str = "ok"
    app: str
    env: str


# --- Variables ---
class VariableOption(BaseModel):
    label: str
    value: str


class Variable(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    dashboardId: Optional[str] = None
    name: str
    value: str = ""
    isExpression: bool = Field(default=False, description="Evaluate value as a JavaScript expression")
    options: Optional[List[VariableOption]] = Field(default=None, description="Dropdown choices")
    showOnDashboard: Optional[bool] = None
    lastModified: Optional[Union[int, str]] = None


class RequestContext(BaseModel):
    department: Optional[str] = None
    owner: Optional[str] = None


# --- Query results ---
class QueryResult(BaseModel):
    columns: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)


class DataSource(BaseModel):
    id: str
    name: str = ""
    type: str = Field(description="LocalStorage (Demo) | DuckDB | PostgreSQL | MySQL | SQL Server | MongoDB | ...")
    connectionString: str = ""


class QueryRequest(BaseModel):
    dataSource: DataSource
    query: str


class QueryDefinition(BaseModel):
    id: str
    dataSourceId: Optional[str] = None
    query: str = ""


# --- Formatting ---
class FormattingSettings(BaseModel):
    dateFormat: str = "DD/MM/YYYY"
    dateTimeFormat: str = "DD/MM/YYYY HH:mm:ss"
    currencySymbol: str = "R$"
    currencyPosition: Literal["prefix", "suffix"] = "prefix"
    decimalSeparator: str = ","
    thousandsSeparator: str = "."
    currencyDecimalPlaces: int = Field(default=2, ge=0, le=20)
    numberDecimalPlaces: int = Field(default=2, ge=0, le=20)


# --- Cards ---
class CardConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    dashboardId: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    query: str = ""
    dataSourceId: Optional[str] = None
    queries: Optional[List[QueryDefinition]] = Field(default=None, description="Multi-query cards; supersedes query/dataSourceId")
    postProcessingScript: Optional[str] = None
    columnTypes: Optional[Dict[str, ColumnDataType]] = None


class _PipelineInputs(BaseModel):
    variables: List[Variable] = Field(default_factory=list)
    libraryScript: Optional[str] = None
    department: Optional[str] = None
    owner: Optional[str] = None


class CardProcessRequest(_PipelineInputs):
    card: CardConfig
    results: List[QueryResult] = Field(default_factory=list)
    savedColumnTypes: Optional[Dict[str, ColumnDataType]] = None


class CardRunRequest(_PipelineInputs):
    card: CardConfig
    dataSources: List[DataSource] = Field(default_factory=list)
    savedColumnTypes: Optional[Dict[str, ColumnDataType]] = None


class CardExportRequest(_PipelineInputs):
    card: CardConfig
    dataSources: List[DataSource] = Field(default_factory=list)
    formattingSettings: Optional[FormattingSettings] = None


class CardRunResponse(BaseModel):
    title: str = ""
    description: Optional[str] = None
    result: Optional[QueryResult] = None
    columnTypes: Dict[str, ColumnDataType] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class InferTypesRequest(BaseModel):
    result: QueryResult
    savedColumnTypes: Optional[Dict[str, ColumnDataType]] = None


class InferTypesResponse(BaseModel):
    columnTypes: Dict[str, ColumnDataType]


class ScriptRunRequest(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    script: str = ""
    context: Dict[str, Any] = Field(default_factory=dict)
    libraryScript: Optional[str] = None


class ScriptRunResponse(BaseModel):
    processedData: List[Dict[str, Any]]
    logs: List[str] = Field(default_factory=list)


# --- Variables API ---
class ResolveVariablesRequest(_PipelineInputs):
    dashboardId: Optional[str] = Field(default=None, description="When set, only this dashboard's variables are used")


class ResolveVariablesResponse(BaseModel):
    values: Dict[str, Any]


class EvaluateRequest(BaseModel):
    expression: str
    context: Dict[str, Any] = Field(default_factory=dict)
    libraryScript: Optional[str] = None


class EvaluateResponse(BaseModel):
    ok: bool
    value: Any = None
    text: Optional[str] = None
    error: Optional[str] = None
    logs: List[str] = Field(default_factory=list)


class SubstituteRequest(ResolveVariablesRequest):
    text: str


class SubstituteResponse(BaseModel):
    text: str


# --- Query API ---
class QueryRunRequest(_PipelineInputs):
    dataSource: DataSource
    query: str
    removeLimits: bool = Field(default=False, description="Strip TOP/LIMIT/OFFSET-FETCH before running")


class QueryRunResponse(BaseModel):
    columns: List[str]
    rows: List[List[Any]]
    query: str
    elapsedMs: Optional[int] = None


class StripLimitsRequest(BaseModel):
    sql: str


class StripLimitsResponse(BaseModel):
    sql: str


class TestConnectionRequest(BaseModel):
    dataSource: DataSource


class TestConnectionResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
