from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

class HealthStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"

class ConnectionHealth(BaseModel):
    db_alias: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    server_version: Optional[str] = None
    error_message: Optional[str] = None

class ColumnDef(BaseModel):
    name: str
    data_type: str
    is_nullable: bool
    default_expression: Optional[str] = None

class TableSchema(BaseModel):
    table_name: str
    database: str = "default"
    columns: List[ColumnDef]

class ConnectionSpec(BaseModel):
    """
    Raw connection parameters for the analytical store.
    Strings are trimmed here; emptiness of host/password is checked by
    the connector factory so it can raise ConfigurationError.
    """
    host: str
    port: int
    username: str = "default"
    password: str = ""

    @field_validator("host", "password", mode="before")
    @classmethod
    def _trim(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("username", mode="before")
    @classmethod
    def _default_username(cls, value):
        value = str(value).strip() if value is not None else ""
        return value or "default"

    @field_validator("port", mode="before")
    @classmethod
    def _trim_port(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

class QueryMode(str, Enum):
    PREVIEW = "preview"
    EXPORT = "export"
    COUNT = "count"

class TransferSpec(BaseModel):
    """
    What to move: a single table, or a two-table join projected against
    the first join table. Column order is significant.
    """
    database: str = "default"
    table: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    join_tables: Optional[List[str]] = None
    join_condition: Optional[str] = None

    @field_validator("database", mode="before")
    @classmethod
    def _default_database(cls, value):
        value = str(value).strip() if value is not None else ""
        return value or "default"

    @field_validator("columns", mode="before")
    @classmethod
    def _trim_columns(cls, value):
        if value is None:
            return []
        return [str(c).strip() for c in value if str(c).strip()]

    @property
    def is_join(self) -> bool:
        return (
            self.join_tables is not None
            and len(self.join_tables) == 2
            and bool(self.join_condition and self.join_condition.strip())
        )

class TransferResult(BaseModel):
    """Outcome of one import transfer. Immutable once produced."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    table: str
    rows_processed: int = 0
    rows_committed: int = 0
    succeeded: bool = True
    first_error: Optional[Exception] = None
    batches_flushed: int = 0
    batches_failed: int = 0
    cancelled: bool = False

    @property
    def message(self) -> str:
        if self.succeeded:
            return f"Imported {self.rows_processed} rows into {self.table}"
        if self.cancelled:
            head = "Import cancelled"
        else:
            head = f"Import failed: {self.first_error}"
        if self.rows_processed != self.rows_committed:
            return f"{head} ({self.rows_processed} rows read, {self.rows_committed} rows committed)"
        return f"{head} ({self.rows_committed} rows committed)"

class ExportArtifact(BaseModel):
    """
    Exported file plus its independently counted row total.
    The count and the file come from two queries and are not snapshot
    consistent under concurrent writes to the source.
    """
    model_config = ConfigDict(frozen=True)

    filename: str
    path: Path
    row_count: int
    bytes_written: int = 0
