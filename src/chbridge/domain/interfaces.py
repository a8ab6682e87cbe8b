from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol
from .models import ConnectionHealth, TableSchema

Record = Dict[str, str]

class StoreHandle(Protocol):
    """Query/insert capability against the analytical store."""

    def query_rows(self, query: str) -> List[Dict[str, Any]]:
        ...

    def query_scalar(self, query: str, key: str) -> Optional[Any]:
        ...

    def stream_text(self, query: str, fmt: str = "CSVWithNames") -> Iterator[bytes]:
        ...

    def insert_rows(self, table: str, rows: List[Mapping[str, Any]]) -> None:
        ...

    def check_health(self) -> ConnectionHealth:
        ...

    def get_all_tables(self, database: str = "default") -> List[str]:
        ...

    def get_schema(self, table_name: str, database: str = "default") -> TableSchema:
        ...

    def close(self) -> None:
        ...

