from typing import Optional


class ChbridgeException(Exception):
    """Base Exception Class"""
    pass

class ConnectionError(ChbridgeException):
    """Connection Failure"""
    pass

class ConfigurationError(ChbridgeException):
    """Configuration Error (bad connection parameters, config file)"""
    pass

class PlanError(ChbridgeException):
    """Invalid table / column / join specification"""
    pass

class QueryError(ChbridgeException):
    """The store rejected or failed a query"""
    pass

class InsertError(ChbridgeException):
    """
    A batch flush failed.
    Carries the batch position so callers know how many rows were
    durably committed before the failure.
    """
    def __init__(
        self,
        message: str,
        batch_index: Optional[int] = None,
        row_offset: Optional[int] = None,
        rows_committed: Optional[int] = None,
    ):
        super().__init__(message)
        self.batch_index = batch_index
        self.row_offset = row_offset
        self.rows_committed = rows_committed

class DataSourceError(ChbridgeException):
    """Data Source Error (File not found, malformed, write failure, etc.)"""
    pass
