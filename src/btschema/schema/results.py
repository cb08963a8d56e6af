"""
Outcome types returned by schema operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..exceptions import AdminError


class OperationStatus(str, Enum):
    """Status of a schema operation."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class OperationResult:
    """
    Result of one ensure, GC-rule or drop operation.

    A failed result still lists whatever was applied before the failure;
    nothing is rolled back.
    """

    operation: str
    instance: str
    status: OperationStatus = OperationStatus.SUCCESS
    tables_created: List[str] = field(default_factory=list)
    families_created: Dict[str, List[str]] = field(default_factory=dict)
    families_updated: Dict[str, List[str]] = field(default_factory=dict)
    skipped_tables: List[str] = field(default_factory=list)
    skipped_families: Dict[str, List[str]] = field(default_factory=dict)
    dropped_prefixes: Dict[str, List[bytes]] = field(default_factory=dict)
    error: Optional[AdminError] = None
    execution_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def mutation_count(self) -> int:
        """Count of tables, families and row ranges created, updated or dropped."""
        return (
            len(self.tables_created)
            + sum(len(f) for f in self.families_created.values())
            + sum(len(f) for f in self.families_updated.values())
            + sum(len(p) for p in self.dropped_prefixes.values())
        )

    def fail(self, error: AdminError) -> None:
        self.status = OperationStatus.FAILED
        self.error = error

    def raise_for_status(self) -> None:
        """Raise the recorded error if the operation failed."""
        if self.error is not None:
            raise self.error


@dataclass
class TablePlan:
    """Pending work for one table."""

    table: str
    exists: bool
    missing_families: List[str]

    @property
    def up_to_date(self) -> bool:
        return self.exists and not self.missing_families


@dataclass
class SchemaPlan:
    """Read-only comparison of desired and observed schema."""

    instance: str
    tables: List[TablePlan] = field(default_factory=list)

    @property
    def missing_tables(self) -> List[str]:
        return [t.table for t in self.tables if not t.exists]

    @property
    def is_empty(self) -> bool:
        return all(t.up_to_date for t in self.tables)
