from .membership import (
    ClosureResult,
    DifferenceRow,
    DifferenceTable,
    IncidenceTable,
    InfoRecord,
)

__all__ = [
    'ClosureResult',
    'DifferenceRow',
    'DifferenceTable',
    'IncidenceTable',
    'InfoRecord',
]
