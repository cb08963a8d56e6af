"""
Value types exchanged with an admin session.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, Optional

from ..exceptions import ValidationError
from .paths import TablePath


@dataclass(frozen=True)
class MaxAgeGcRule:
    """Garbage-collect cells older than ``max_age_seconds``."""

    max_age_seconds: int

    def __post_init__(self) -> None:
        if self.max_age_seconds < 0:
            raise ValidationError(
                f"Max age must not be negative, got {self.max_age_seconds}s"
            )

    @classmethod
    def from_duration(cls, duration: timedelta) -> "MaxAgeGcRule":
        """Build a rule from a duration, dropping anything below one second."""
        return cls(int(duration.total_seconds()))

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.max_age_seconds)

    def __str__(self) -> str:
        return f"max_age={self.max_age_seconds}s"


class ModificationKind(str, Enum):
    """What a column family modification does."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ColumnFamilyModification:
    """A single entry of a modify-column-families batch."""

    family_id: str
    kind: ModificationKind
    gc_rule: Optional[MaxAgeGcRule] = None

    @classmethod
    def create(cls, family_id: str) -> "ColumnFamilyModification":
        return cls(family_id, ModificationKind.CREATE)

    @classmethod
    def update(cls, family_id: str, gc_rule: MaxAgeGcRule) -> "ColumnFamilyModification":
        return cls(family_id, ModificationKind.UPDATE, gc_rule)


@dataclass
class TableMetadata:
    """Column families of a table and their GC rules.

    A family whose rule is absent or of a kind other than max-age maps to
    ``None``.
    """

    path: TablePath
    column_families: Dict[str, Optional[MaxAgeGcRule]] = field(default_factory=dict)

    def has_column_family(self, family_id: str) -> bool:
        return family_id in self.column_families
