import logging
import time
from pathlib import Path
from typing import Optional
from ..domain.interfaces import StoreHandle
from ..domain.models import ExportArtifact, QueryMode, TransferSpec
from .loader import FileLoader
from .planner import QueryPlanner

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "CSVWithNames"

class ExportStreamer:
    """
    Store -> delimited file.

    The row count comes from its own count query, run before the export
    query. Both share the same FROM/JOIN clause, but they are two reads:
    a concurrent writer on the source can make them disagree.
    """
    def __init__(self, connector: StoreHandle, export_dir: Path, planner: Optional[QueryPlanner] = None):
        self.connector = connector
        self.planner = planner or QueryPlanner()
        self.loader = FileLoader(export_dir)

    def count(self, spec: TransferSpec) -> int:
        value = self.connector.query_scalar(self.planner.plan(spec, QueryMode.COUNT), "count")
        return int(value) if value is not None else 0

    def export(self, spec: TransferSpec) -> ExportArtifact:
        # Planned up front so an invalid TransferSpec fails before any I/O
        data_query = self.planner.plan(spec, QueryMode.EXPORT)

        row_count = self.count(spec)
        logger.info("Exporting %d rows: %s", row_count, data_query)

        filename = self._unique_filename(spec)
        written = self.loader.write_stream(filename, self.connector.stream_text(data_query, EXPORT_FORMAT))

        logger.info("Export complete: %s (%d bytes)", filename, written)
        return ExportArtifact(
            filename=filename,
            path=self.loader.output_dir / filename,
            row_count=row_count,
            bytes_written=written,
        )

    def _unique_filename(self, spec: TransferSpec) -> str:
        if spec.is_join:
            label = "_".join(spec.join_tables)
        else:
            label = spec.table.strip()
        label = "".join(c if c.isalnum() or c in "-_" else "_" for c in label)

        stem = f"export_{label}_{int(time.time() * 1000)}"
        filename = f"{stem}.csv"
        suffix = 1
        while (self.loader.output_dir / filename).exists():
            filename = f"{stem}_{suffix}.csv"
            suffix += 1
        return filename
