"""Pydantic models for the db.toml configuration file."""

from pydantic import BaseModel, Field, field_validator

from db_schema_sync.runners.sql import DEFAULT_METADATA_TABLE

DRIVERS = ("asyncpg", "psycopg")


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    dialect: str = "postgres"
    driver: str = "asyncpg"

    @field_validator("driver")
    @classmethod
    def _known_driver(cls, value: str) -> str:
        if value not in DRIVERS:
            raise ValueError(f"Unknown driver '{value}'. Expected one of: {', '.join(DRIVERS)}")
        return value


class SyncSettings(BaseModel):
    """The ``[sync]`` table: where the model lives and how it is built."""

    models: str | None = None  # "package.module:attribute"
    entity_prefix: str = ""
    schema_name: str | None = Field(default=None, alias="schema")
    uuid_extension: str = "uuid-ossp"
    metadata_table: str = DEFAULT_METADATA_TABLE

    model_config = {"populate_by_name": True}


class DatabaseConfig(BaseModel):
    """Complete database configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    sync: SyncSettings = Field(default_factory=SyncSettings)
