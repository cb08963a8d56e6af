"""
Resource paths for Bigtable instances and tables.

The admin API addresses everything by hierarchical resource name:
``projects/{project}/instances/{instance}`` for an instance and
``projects/{project}/instances/{instance}/tables/{table}`` for a table.
"""

import re
from dataclasses import dataclass

from ..exceptions import ValidationError


_TABLE_PATH_RE = re.compile(
    r"^projects/(?P<project>[^/]+)/instances/(?P<instance>[^/]+)/tables/(?P<table>[^/]+)$"
)
_INSTANCE_PATH_RE = re.compile(r"^projects/(?P<project>[^/]+)/instances/(?P<instance>[^/]+)$")


def _require(value: str, what: str) -> None:
    if not value or "/" in value:
        raise ValidationError(f"Invalid {what}: {value!r}")


@dataclass(frozen=True)
class InstancePath:
    """Identifies a Bigtable instance."""

    project: str
    instance: str

    def __post_init__(self) -> None:
        _require(self.project, "project id")
        _require(self.instance, "instance id")

    @property
    def path(self) -> str:
        return f"projects/{self.project}/instances/{self.instance}"

    def table(self, table_id: str) -> "TablePath":
        """Build the path of a table inside this instance."""
        return TablePath(self.project, self.instance, table_id)

    @classmethod
    def parse(cls, path: str) -> "InstancePath":
        match = _INSTANCE_PATH_RE.match(path)
        if not match:
            raise ValidationError(f"Not an instance path: {path!r}")
        return cls(match["project"], match["instance"])

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class TablePath:
    """Identifies a table; unique within a cluster."""

    project: str
    instance: str
    table: str

    def __post_init__(self) -> None:
        _require(self.project, "project id")
        _require(self.instance, "instance id")
        _require(self.table, "table id")

    @property
    def instance_path(self) -> InstancePath:
        return InstancePath(self.project, self.instance)

    @property
    def path(self) -> str:
        return f"{self.instance_path.path}/tables/{self.table}"

    @classmethod
    def parse(cls, path: str) -> "TablePath":
        """Parse a fully qualified table name as returned by the admin API."""
        match = _TABLE_PATH_RE.match(path)
        if not match:
            raise ValidationError(f"Not a table path: {path!r}")
        return cls(match["project"], match["instance"], match["table"])

    def __str__(self) -> str:
        return self.path
