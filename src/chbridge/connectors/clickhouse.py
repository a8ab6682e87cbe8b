import json
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional
import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError
from ..domain.models import ColumnDef, ConnectionHealth, HealthStatus, TableSchema
from ..etl.planner import qualified_name, quote_identifier
from ..exceptions import ConnectionError, InsertError, QueryError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 1 << 16

class ClickHouseConnector:
    """
    Lazy handle to a ClickHouse server over its HTTP(S) interface.
    Nothing touches the network until the first query or insert.
    """
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "default",
        password: str = "",
        interface: str = "http",
        db_alias: str = "unknown",
        connect_timeout: int = 10,
        query_timeout: int = 300,
        insert_timeout: int = 300,
        verify: bool = True,
        compression: Optional[str] = "gzip",
        async_insert: bool = True,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.interface = interface
        self.db_alias = db_alias
        self.connect_timeout = connect_timeout
        self.query_timeout = query_timeout
        self.insert_timeout = insert_timeout
        self.verify = verify
        self.compression = compression
        self.async_insert = async_insert
        self._client_factory = client_factory or clickhouse_connect.get_client
        self._client = None

    def __repr__(self) -> str:
        return f"ClickHouseConnector({self.interface}://{self.host}:{self.port}, user={self.username!r})"

    @property
    def url(self) -> str:
        return f"{self.interface}://{self.host}:{self.port}"

    @staticmethod
    def _enforce_read_only(statement: str) -> None:
        """
        Query paths only carry read statements; writes go through insert_rows.
        """
        sql = statement.strip().upper()

        allowed_starts = (
            "SELECT",
            "WITH",
            "SHOW",
            "DESCRIBE",
            "DESC",
            "EXPLAIN",
            "EXISTS",
        )

        if not any(sql.startswith(keyword) for keyword in allowed_starts):
            raise PermissionError(
                f"SAFETY BLOCK: Operation blocked! Only read-only queries are allowed. "
                f"Attempted: {sql[:50]}..."
            )

    def connect(self):
        if not self._client:
            try:
                self._client = self._client_factory(
                    host=self.host,
                    port=self.port,
                    username=self.username,
                    password=self.password,
                    interface=self.interface,
                    connect_timeout=self.connect_timeout,
                    send_receive_timeout=max(self.query_timeout, self.insert_timeout),
                    verify=self.verify,
                    compress=self.compression or False,
                    client_name="chbridge",
                )
                logger.debug("Opened ClickHouse client for %s", self.url)
            except ClickHouseError as e:
                raise ConnectionError(f"Failed to create client for {self.url}: {e}")
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _query_settings(self) -> Dict[str, Any]:
        return {"max_execution_time": self.query_timeout}

    def _insert_settings(self) -> Dict[str, Any]:
        if not self.async_insert:
            return {}
        return {"async_insert": 1, "wait_for_async_insert": 1}

    def check_health(self) -> ConnectionHealth:
        start_time = time.time()
        status = HealthStatus.FAILED
        error_msg = None
        version = None

        try:
            client = self.connect()
            client.query("SELECT 1")
            version = getattr(client, "server_version", None)
            status = HealthStatus.SUCCESS
        except (ClickHouseError, ConnectionError) as e:
            error_msg = str(e)
            status = HealthStatus.FAILED

        latency = (time.time() - start_time) * 1000  # ms

        if latency > self.connect_timeout * 1000 and status == HealthStatus.SUCCESS:
            status = HealthStatus.TIMEOUT

        return ConnectionHealth(
            db_alias=self.db_alias,
            status=status,
            latency_ms=round(latency, 2),
            server_version=version,
            error_message=error_msg
        )

    def query_rows(self, query: str) -> List[Dict[str, Any]]:
        self._enforce_read_only(query)
        client = self.connect()
        try:
            result = client.query(query, settings=self._query_settings())
            return list(result.named_results())
        except ClickHouseError as e:
            raise QueryError(f"Query failed: {e}") from e

    def query_scalar(self, query: str, key: str) -> Optional[Any]:
        rows = self.query_rows(query)
        if not rows:
            return None
        return rows[0].get(key)

    def stream_text(self, query: str, fmt: str = "CSVWithNames") -> Iterator[bytes]:
        """
        Yields the raw response body in the requested output format, so the
        server does the serialization and the result is never held whole.
        """
        self._enforce_read_only(query)
        client = self.connect()
        try:
            stream = client.raw_stream(query, settings=self._query_settings(), fmt=fmt)
        except ClickHouseError as e:
            raise QueryError(f"Query failed: {e}") from e

        try:
            while True:
                chunk = stream.read(STREAM_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        except (ClickHouseError, OSError) as e:
            raise QueryError(f"Result stream interrupted: {e}") from e
        finally:
            stream.close()

    def insert_rows(self, table: str, rows: List[Mapping[str, Any]]) -> None:
        if not rows:
            return
        client = self.connect()
        # JSONEachRow lets the server coerce text values to the column types
        block = "\n".join(json.dumps(row, ensure_ascii=False) for row in rows).encode("utf-8")
        try:
            client.raw_insert(
                table,
                insert_block=block,
                settings=self._insert_settings(),
                fmt="JSONEachRow",
            )
        except ClickHouseError as e:
            raise InsertError(f"Insert into {table} failed: {e}") from e

    def get_all_tables(self, database: str = "default") -> List[str]:
        rows = self.query_rows(f"SHOW TABLES FROM {quote_identifier(database)}")
        return [next(iter(row.values())) for row in rows if row]

    def get_schema(self, table_name: str, database: str = "default") -> TableSchema:
        rows = self.query_rows(f"DESCRIBE TABLE {qualified_name(database, table_name)}")
        if not rows:
            raise QueryError(f"Table '{database}.{table_name}' not found or not accessible.")

        cols = []
        for row in rows:
            data_type = str(row.get("type", ""))
            cols.append(ColumnDef(
                name=row["name"],
                data_type=data_type,
                is_nullable=data_type.startswith("Nullable("),
                default_expression=row.get("default_expression") or None,
            ))
        return TableSchema(table_name=table_name, database=database, columns=cols)
