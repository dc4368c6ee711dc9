from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices


class Settings(BaseSettings):
    """Application configuration using Pydantic v2 settings.

    - Parses comma-separated CORS origins into a list
    - Reads environment from APP_ENV or ENVIRONMENT
    - Ignores unknown env keys
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Analytics Card Pipeline API"
    environment: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV", "ENVIRONMENT"))
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    # CORS (comma-separated string)
    cors_origins: str = Field(default="http://localhost:3000,http://127.0.0.1:3000")

    # Script sandbox budgets (0 disables the limit)
    script_timeout_ms: int = Field(
        default=5000,
        validation_alias=AliasChoices("SCRIPT_TIMEOUT_MS"),
        description="Wall-clock budget for a single expression or post-processing script",
    )
    script_memory_limit_mb: int = Field(
        default=0,
        validation_alias=AliasChoices("SCRIPT_MEMORY_LIMIT_MB"),
        description="Hard V8 heap limit per evaluation context",
    )

    # Column type inference
    type_sample_rows: int = Field(default=50, validation_alias=AliasChoices("TYPE_SAMPLE_ROWS"))

    # Local demo store (DuckDB)
    demo_duckdb_path: str = Field(default=":memory:", validation_alias=AliasChoices("DEMO_DUCKDB_PATH"))

    # Clamp for rows returned by /api/query
    query_max_rows: int = Field(default=10000, validation_alias=AliasChoices("QUERY_MAX_ROWS"))

    @property
    def cors_origins_list(self) -> list[str]:
        return [x.strip() for x in str(self.cors_origins).split(",") if x.strip()]


settings = Settings()
