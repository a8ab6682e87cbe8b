from typing import Iterable, Iterator, Mapping, Sequence
from ..domain.interfaces import Record

def project(record: Mapping[str, str], columns: Sequence[str]) -> Record:
    """
    Keep only the requested columns that the record actually carries.
    Missing columns get no key at all, never an empty string.
    """
    return {col: record[col] for col in columns if col in record}

class Transformer:
    """Record-level projection"""

    def apply(self, records: Iterable[Mapping[str, str]], columns: Sequence[str]) -> Iterator[Record]:
        for record in records:
            yield project(record, columns)
