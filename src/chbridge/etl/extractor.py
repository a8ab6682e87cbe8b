import logging
from typing import Any, Dict, Iterator, List
from pathlib import Path
import pandas as pd
import pyarrow.parquet as pq
from ..domain.interfaces import Record, StoreHandle
from ..exceptions import DataSourceError

logger = logging.getLogger(__name__)

class Extractor:
    """Record extractor supporting delimited files, Parquet and the store"""

    def from_file(self, file_path: Path, delimiter: str = ",", chunk_size: int = 10000) -> Iterator[Record]:
        """
        Lazily yields header-keyed records, every value as text.
        Calling again restarts from the top of the file.
        """
        if not file_path.exists():
            raise DataSourceError(f"File not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix == ".parquet":
            yield from self._from_parquet(file_path, chunk_size)
        else:
            yield from self._from_delimited(file_path, delimiter, chunk_size)

    def _from_delimited(self, file_path: Path, delimiter: str, chunk_size: int) -> Iterator[Record]:
        try:
            with pd.read_csv(
                file_path,
                sep=delimiter,
                dtype=str,
                keep_default_na=False,
                index_col=False,
                chunksize=chunk_size,
            ) as reader:
                for chunk in reader:
                    header = [str(col).strip() for col in chunk.columns]
                    for values in chunk.itertuples(index=False, name=None):
                        # Short rows are padded with "" for the missing trailing fields
                        yield dict(zip(header, values))
        except pd.errors.EmptyDataError:
            logger.warning("File %s is empty", file_path)
        except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
            raise DataSourceError(f"Failed to read {file_path}: {e}") from e

    def _from_parquet(self, file_path: Path, chunk_size: int) -> Iterator[Record]:
        try:
            parquet_file = pq.ParquetFile(file_path)
            for batch in parquet_file.iter_batches(batch_size=chunk_size):
                for row in batch.to_pylist():
                    yield {
                        str(name).strip(): str(value)
                        for name, value in row.items()
                        if value is not None
                    }
        except OSError as e:
            raise DataSourceError(f"Failed to read {file_path}: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"Malformed Parquet file {file_path}: {e}") from e

    def from_db(self, connector: StoreHandle, query: str) -> List[Dict[str, Any]]:
        return connector.query_rows(query)
