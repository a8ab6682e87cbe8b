import logging
import threading
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence
from ..domain.interfaces import Record, StoreHandle
from ..domain.models import TransferResult
from ..exceptions import DataSourceError
from .loader import BatchFlusher
from .transformer import Transformer

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

class ImportState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"

class ImportBatcher:
    """
    Delimited file -> store, in fixed-size batches.

    The reader fills a batch, hands it to the flusher and starts a fresh
    one. With a flush still outstanding the hand-off blocks, which is the
    only point where reading waits on the network.

    rows_processed counts rows read; rows_committed counts rows the store
    acknowledged. They differ whenever a batch failed or the run stopped
    early.
    """
    def __init__(
        self,
        connector: StoreHandle,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.connector = connector
        self.batch_size = batch_size
        self.cancel_event = cancel_event or threading.Event()
        self.transformer = Transformer()
        self.state = ImportState.IDLE

    def run(self, records: Iterable[Mapping[str, str]], table: str, columns: Sequence[str]) -> TransferResult:
        flusher = BatchFlusher(self.connector, table)
        batch: List[Record] = []
        rows_read = 0
        read_error: Optional[DataSourceError] = None
        cancelled = False

        self.state = ImportState.STREAMING
        try:
            try:
                for record in self.transformer.apply(records, columns):
                    if self.cancel_event.is_set():
                        cancelled = True
                        break

                    batch.append(record)
                    rows_read += 1

                    if len(batch) >= self.batch_size:
                        self.state = ImportState.FLUSHING
                        flusher.submit(batch)
                        batch = []
                        self.state = ImportState.STREAMING
            except DataSourceError as e:
                read_error = e
            except OSError as e:
                read_error = DataSourceError(f"Read failed after {rows_read} rows: {e}")

            if read_error is None and not cancelled:
                self.state = ImportState.DRAINING
                if batch:
                    flusher.submit(batch)
        finally:
            flusher.close()

        if read_error is not None:
            logger.error("Import into %s aborted after %d rows: %s", table, rows_read, read_error)
            self.state = ImportState.FAILED
        else:
            self.state = ImportState.DONE

        if cancelled:
            logger.warning(
                "Import into %s cancelled: %d rows read, %d committed",
                table, rows_read, flusher.rows_committed,
            )

        # A read error is fatal; flush failures are not, so it takes precedence
        first_error = read_error or flusher.first_error
        result = TransferResult(
            table=table,
            rows_processed=rows_read,
            rows_committed=flusher.rows_committed,
            succeeded=first_error is None and not cancelled,
            first_error=first_error,
            batches_flushed=flusher.batches_flushed,
            batches_failed=flusher.batches_failed,
            cancelled=cancelled,
        )
        logger.info(result.message)
        return result
