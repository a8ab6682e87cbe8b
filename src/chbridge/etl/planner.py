import re
from typing import List
from ..domain.models import QueryMode, TransferSpec
from ..exceptions import PlanError

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

LEFT_ALIAS = "t1"
RIGHT_ALIAS = "t2"

def quote_identifier(name: str) -> str:
    """Plain names pass through untouched; anything else is backtick-quoted."""
    if _PLAIN_IDENTIFIER.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"

def qualified_name(database: str, table: str) -> str:
    return f"{quote_identifier(database)}.{quote_identifier(table)}"

class QueryPlanner:
    """
    Builds the query text for preview, export and count.
    All three modes share one FROM/JOIN clause so the count always
    describes the same row set as the export.
    """
    def __init__(self, preview_limit: int = 5):
        self.preview_limit = preview_limit

    def plan(self, spec: TransferSpec, mode: QueryMode) -> str:
        source = self.from_clause(spec)

        if mode == QueryMode.COUNT:
            return f"SELECT count() AS count FROM {source}"

        query = f"SELECT {', '.join(self.projection(spec))} FROM {source}"
        if mode == QueryMode.PREVIEW:
            query += f" LIMIT {self.preview_limit}"
        return query

    def from_clause(self, spec: TransferSpec) -> str:
        if spec.is_join:
            condition = spec.join_condition.strip()
            if ";" in condition:
                raise PlanError("Join condition must be a single predicate")
            left, right = spec.join_tables
            return (
                f"{qualified_name(spec.database, left)} AS {LEFT_ALIAS} "
                f"JOIN {qualified_name(spec.database, right)} AS {RIGHT_ALIAS} "
                f"ON {condition}"
            )
        if not spec.table or not spec.table.strip():
            raise PlanError("Either a table or two join tables with a condition are required")
        return qualified_name(spec.database, spec.table.strip())

    def projection(self, spec: TransferSpec) -> List[str]:
        if not spec.columns:
            raise PlanError("At least one column is required")
        if spec.is_join:
            # Columns are resolved against the first join table
            return [f"{LEFT_ALIAS}.{quote_identifier(col)}" for col in spec.columns]
        return [quote_identifier(col) for col in spec.columns]
