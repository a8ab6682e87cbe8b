import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from ..config import AppConfig
from ..domain.interfaces import StoreHandle
from ..domain.models import ExportArtifact, QueryMode, TransferResult, TransferSpec
from ..exceptions import DataSourceError, PlanError
from .exporter import ExportStreamer
from .extractor import Extractor
from .importer import ImportBatcher
from .planner import QueryPlanner, qualified_name

logger = logging.getLogger(__name__)

class TransferPipeline:
    """Facade: preview, export and import against one store handle"""
    def __init__(self, connector: StoreHandle, config: Optional[AppConfig] = None):
        self.connector = connector
        self.config = config or AppConfig()
        self.planner = QueryPlanner(preview_limit=self.config.preview_limit)
        self.extractor = Extractor()

    def preview(self, spec: TransferSpec, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        planner = QueryPlanner(preview_limit=limit) if limit else self.planner
        return self.extractor.from_db(self.connector, planner.plan(spec, QueryMode.PREVIEW))

    def count(self, spec: TransferSpec) -> int:
        return ExportStreamer(self.connector, self.config.export_dir, self.planner).count(spec)

    def export(self, spec: TransferSpec, export_dir: Optional[Path] = None) -> ExportArtifact:
        streamer = ExportStreamer(self.connector, export_dir or self.config.export_dir, self.planner)
        return streamer.export(spec)

    def import_file(
        self,
        file_path: Path,
        spec: TransferSpec,
        delimiter: str = ",",
        cancel_event: Optional[threading.Event] = None,
    ) -> TransferResult:
        file_path = Path(file_path)
        if not spec.columns:
            raise PlanError("At least one column is required")
        if not file_path.exists():
            raise DataSourceError(f"Uploaded file not found: {file_path}")

        table = spec.table.strip() if spec.table and spec.table.strip() else self.config.default_table
        if "." not in table:
            table = qualified_name(spec.database, table)
        logger.info("Importing %s into %s (batch size %d)", file_path, table, self.config.batch_size)

        records = self.extractor.from_file(file_path, delimiter or ",", self.config.read_chunk_size)
        batcher = ImportBatcher(self.connector, self.config.batch_size, cancel_event)
        return batcher.run(records, table, spec.columns)
