import logging
import os
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional
from ..domain.interfaces import Record, StoreHandle
from ..exceptions import DataSourceError, InsertError

logger = logging.getLogger(__name__)

class FileLoader:
    """Writes export artifacts. A file only appears under its final name once complete."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def write_stream(self, filename: str, chunks: Iterable[bytes]) -> int:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.output_dir, prefix=f".{filename}.", suffix=".part")
        except OSError as e:
            raise DataSourceError(f"Cannot create export file in {self.output_dir}: {e}") from e

        written = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
                    written += len(chunk)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.output_dir / filename)
        except OSError as e:
            self._discard(tmp_name)
            raise DataSourceError(f"Failed to write {filename}: {e}") from e
        except BaseException:
            # Query errors from the chunk source also leave nothing behind
            self._discard(tmp_name)
            raise
        return written

    @staticmethod
    def _discard(tmp_name: str) -> None:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass

class BatchFlusher:
    """
    Single-slot flush channel between the file reader and the store.

    The worker pool has one thread and submit() first waits for the
    previous flush, so at most one insert is ever in flight and batches
    reach the store in file order. A failed batch is recorded and the
    following batches are still sent.
    """
    def __init__(self, connector: StoreHandle, table: str):
        self.connector = connector
        self.table = table
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"flush-{table}")
        self._pending: Optional[Future] = None
        self.rows_submitted = 0
        self.rows_committed = 0
        self.batches_flushed = 0
        self.batches_failed = 0
        self.first_error: Optional[InsertError] = None

    def submit(self, batch: List[Record]) -> None:
        """Takes ownership of batch; blocks while the previous flush is outstanding."""
        self.wait()
        batch_index = self.batches_flushed + self.batches_failed
        row_offset = self.rows_submitted
        self.rows_submitted += len(batch)
        self._pending = self._executor.submit(self._flush, batch, batch_index, row_offset)

    def wait(self) -> None:
        if self._pending is None:
            return
        pending, self._pending = self._pending, None
        pending.result()

    def close(self) -> None:
        try:
            self.wait()
        finally:
            self._executor.shutdown(wait=True)

    def _flush(self, batch: List[Record], batch_index: int, row_offset: int) -> None:
        logger.debug("Flushing batch %d (%d rows) into %s", batch_index, len(batch), self.table)
        try:
            self.connector.insert_rows(self.table, batch)
        except Exception as e:
            self.batches_failed += 1
            error = InsertError(
                f"Batch {batch_index} (rows {row_offset + 1}-{row_offset + len(batch)}) failed: {e}",
                batch_index=batch_index,
                row_offset=row_offset,
                rows_committed=self.rows_committed,
            )
            logger.error("Insert into %s failed: %s", self.table, error)
            if self.first_error is None:
                self.first_error = error
            return
        self.batches_flushed += 1
        self.rows_committed += len(batch)
