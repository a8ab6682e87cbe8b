import logging
from typing import Dict, List
from ..domain.interfaces import StoreHandle
from ..domain.models import TableSchema
from ..exceptions import QueryError

logger = logging.getLogger(__name__)

class SchemaCrawler:
    """
    SRP: Responsible only for metadata/schema crawling.
    """
    def __init__(self, connector: StoreHandle):
        self.connector = connector

    def list_tables(self, database: str = "default") -> List[str]:
        return self.connector.get_all_tables(database)

    def describe(self, table: str, database: str = "default") -> TableSchema:
        return self.connector.get_schema(table, database)

    def extract_all(self, database: str = "default") -> Dict[str, TableSchema]:
        """
        Crawls all visible tables of a database and their columns.
        A table that cannot be described is logged and skipped.
        """
        schemas = {}
        for table in self.list_tables(database):
            try:
                schemas[table] = self.describe(table, database)
            except QueryError as e:
                logger.warning("Skipping %s.%s: %s", database, table, e)
        return schemas
