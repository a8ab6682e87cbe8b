from typing import Optional
from pydantic import BaseModel
from ..domain.interfaces import StoreHandle
from ..domain.models import ConnectionHealth, HealthStatus, TableSchema
from .checker import ConnectionChecker
from .crawler import SchemaCrawler

class InspectionReport(BaseModel):
    health: ConnectionHealth
    schema_info: Optional[dict[str, TableSchema]] = None

class InspectorFacade:
    """
    Facade Pattern: connectivity check plus schema discovery.
    """
    def __init__(self, connector: StoreHandle):
        self._checker = ConnectionChecker(connector)
        self._crawler = SchemaCrawler(connector)

    @property
    def crawler(self) -> SchemaCrawler:
        return self._crawler

    def run_diagnostics(self, database: str = "default", crawl: bool = True) -> InspectionReport:
        # 1. Check connection first (Fail Fast)
        health = self._checker.check_health()
        if health.status != HealthStatus.SUCCESS or not crawl:
            return InspectionReport(health=health)

        # 2. Crawl Schema only if connection is successful
        return InspectionReport(health=health, schema_info=self._crawler.extract_all(database))
