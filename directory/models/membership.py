"""
Result types produced by the membership resolver, the difference engine and
the info lookup service.

All of these are built fresh for one run and never persisted. The ``to_*``
helpers shape them into the tabular form handed to a result sink.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

GROUP_COLUMN = "Group"

NOT_FOUND = "Not Found"
LOOKUP_FAILED = "Lookup Failed"

STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"
STATUS_LOOKUP_FAILED = "lookup_failed"


@dataclass
class ClosureResult:
    """Transitive group membership of a single principal."""
    principal: str
    groups: List[str] = field(default_factory=list)
    self_referential: bool = False
    unresolved: Dict[str, str] = field(default_factory=dict)
    lookups: int = 0

    def __contains__(self, group: str) -> bool:
        return group in self.groups

    def __iter__(self) -> Iterator[str]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def to_dataframe(self) -> pd.DataFrame:
        """Single ``Group`` column, one row per group, sorted."""
        return pd.DataFrame({GROUP_COLUMN: list(self.groups)}, columns=[GROUP_COLUMN])


class IncidenceTable:
    """
    Mapping from group name to the compared principals that belong to it.

    Built once from each principal's group set and read-only afterwards.
    Every group key maps to between 1 and N principals.
    """

    def __init__(self, principals: Sequence[str], group_sets: Mapping[str, Iterable[str]]):
        self.principals: Tuple[str, ...] = tuple(principals)

        incidence: Dict[str, set] = {}
        for principal in self.principals:
            for group in group_sets.get(principal, ()):
                incidence.setdefault(group, set()).add(principal)

        self._incidence = MappingProxyType(
            {group: frozenset(members) for group, members in incidence.items()}
        )

    def members(self, group: str) -> FrozenSet[str]:
        return self._incidence.get(group, frozenset())

    def count(self, group: str) -> int:
        return len(self.members(group))

    def groups(self) -> List[str]:
        return sorted(self._incidence)

    def items(self):
        return self._incidence.items()

    def __contains__(self, group: str) -> bool:
        return group in self._incidence

    def __iter__(self) -> Iterator[str]:
        return iter(self.groups())

    def __len__(self) -> int:
        return len(self._incidence)

    def __repr__(self) -> str:
        return f"IncidenceTable(principals={len(self.principals)}, groups={len(self)})"


@dataclass(frozen=True)
class DifferenceRow:
    """One group that at least one compared principal lacks."""
    group: str
    members: FrozenSet[str]

    def is_member(self, principal: str) -> bool:
        return principal in self.members

    def cells(self, principals: Sequence[str]) -> List[str]:
        """Principal name where present, empty string where absent."""
        return [p if p in self.members else "" for p in principals]


def sentinel_for(status: str) -> str:
    return NOT_FOUND if status == STATUS_NOT_FOUND else LOOKUP_FAILED


@dataclass
class DifferenceTable:
    """
    Row-per-group, column-per-principal comparison with shared groups suppressed.

    Principals that could not be resolved are listed in ``unresolved`` and
    their cells carry the "Not Found" / "Lookup Failed" sentinel instead of
    the empty string used for "not a member".
    """
    principals: Tuple[str, ...]
    rows: List[DifferenceRow] = field(default_factory=list)
    shared_groups: List[str] = field(default_factory=list)
    unresolved_status: Dict[str, str] = field(default_factory=dict)

    @property
    def unresolved(self) -> List[str]:
        return [p for p in self.principals if p in self.unresolved_status]

    @property
    def columns(self) -> List[str]:
        return [GROUP_COLUMN] + list(self.principals)

    def groups(self) -> List[str]:
        return [row.group for row in self.rows]

    def row_for(self, group: str) -> Optional[DifferenceRow]:
        for row in self.rows:
            if row.group == group:
                return row
        return None

    def to_records(self) -> List[List[str]]:
        markers = {p: sentinel_for(status) for p, status in self.unresolved_status.items()}
        return [
            [row.group] + [markers.get(p, cell) for p, cell in zip(self.principals, row.cells(self.principals))]
            for row in self.rows
        ]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.to_records(), columns=self.columns)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass
class InfoRecord:
    """Attribute row for one requested group or user name."""
    name: str
    fields: Dict[str, str] = field(default_factory=dict)
    status: str = STATUS_FOUND

    @property
    def found(self) -> bool:
        return self.status == STATUS_FOUND

    @classmethod
    def placeholder(cls, name: str, columns: Sequence[str], status: str) -> "InfoRecord":
        """Row whose every field carries the sentinel for ``status``."""
        return cls(name=name, fields={column: sentinel_for(status) for column in columns}, status=status)

    def as_row(self, name_column: str, columns: Sequence[str]) -> Dict[str, str]:
        row = {name_column: self.name}
        for column in columns:
            row[column] = self.fields.get(column, "")
        return row


def records_to_dataframe(
    records: Sequence[InfoRecord], name_column: str, columns: Sequence[str]
) -> pd.DataFrame:
    """Shape info records into a frame, one row per record, input order kept."""
    rows = [record.as_row(name_column, columns) for record in records]
    return pd.DataFrame(rows, columns=[name_column] + list(columns))
