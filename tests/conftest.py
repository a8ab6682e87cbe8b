import threading
import time
from typing import Any, Dict, List, Optional
import pytest
from chbridge.domain.models import ConnectionHealth, HealthStatus, TableSchema, ColumnDef
from chbridge.exceptions import InsertError


class FakeStore:
    """
    In-memory stand-in for the ClickHouse handle.
    Records every query and insert, and notices overlapping inserts.
    """
    def __init__(
        self,
        count: Optional[int] = None,
        rows: Optional[List[Dict[str, Any]]] = None,
        csv_chunks: Optional[List[bytes]] = None,
        fail_batches=(),
        insert_delay: float = 0.0,
    ):
        self.count = count
        self.rows = rows or []
        self.csv_chunks = csv_chunks or []
        self.fail_batches = set(fail_batches)
        self.insert_delay = insert_delay

        self.queries: List[str] = []
        self.inserts: List[tuple] = []
        self.batch_sizes: List[int] = []
        self.committed = 0
        self.closed = False
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()
        self._calls = 0

    def query_rows(self, query: str) -> List[Dict[str, Any]]:
        self.queries.append(query)
        return list(self.rows)

    def query_scalar(self, query: str, key: str):
        self.queries.append(query)
        if self.count is None:
            return None
        return self.count

    def stream_text(self, query: str, fmt: str = "CSVWithNames"):
        self.queries.append(query)
        for chunk in self.csv_chunks:
            yield chunk

    def insert_rows(self, table: str, rows):
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
            index = self._calls
            self._calls += 1
        try:
            if self.insert_delay:
                time.sleep(self.insert_delay)
            self.inserts.append((table, rows))
            self.batch_sizes.append(len(rows))
            if index in self.fail_batches:
                raise InsertError(f"server rejected batch {index}")
            self.committed += len(rows)
        finally:
            with self._lock:
                self._in_flight -= 1

    def check_health(self) -> ConnectionHealth:
        return ConnectionHealth(db_alias="fake", status=HealthStatus.SUCCESS, latency_ms=1.0)

    def get_all_tables(self, database: str = "default") -> List[str]:
        return ["orders", "users"]

    def get_schema(self, table_name: str, database: str = "default") -> TableSchema:
        return TableSchema(
            table_name=table_name,
            database=database,
            columns=[
                ColumnDef(name="id", data_type="UInt64", is_nullable=False),
                ColumnDef(name="name", data_type="Nullable(String)", is_nullable=True),
            ],
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def write_csv(tmp_path):
    def _write(rows: int, header: str = "id,name,city", name: str = "upload.csv", delimiter: str = ","):
        path = tmp_path / name
        lines = [header.replace(",", delimiter)]
        for i in range(rows):
            lines.append(delimiter.join([str(i), f"name{i}", f"city{i}"]))
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write
