"""
Pytest configuration and shared fixtures for btschema tests.

This module provides an in-memory admin session that records every call,
plus configuration fixtures shared by the unit tests.
"""

from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest
import yaml

from btschema.admin.models import (
    ColumnFamilyModification,
    MaxAgeGcRule,
    ModificationKind,
    TableMetadata,
)
from btschema.admin.paths import InstancePath, TablePath
from btschema.admin.session import AdminSession
from btschema.config import BtSchemaConfig
from btschema.exceptions import AdminAlreadyExistsError, AdminError, AdminNotFoundError


MUTATING_CALLS = ("create_table", "modify_column_families", "drop_row_range")


class RecordingAdminSession(AdminSession):
    """
    In-memory admin session.

    Behaves like the service for the calls the reconciler makes and records
    each call as a tuple ``(method, target, *args)`` in ``calls``.
    """

    def __init__(
        self,
        tables: Optional[Dict[str, Dict[str, Optional[MaxAgeGcRule]]]] = None,
        instance: Optional[InstancePath] = None,
    ):
        self.instance = instance or InstancePath("test-project", "test-instance")
        self.tables: Dict[TablePath, Dict[str, Optional[MaxAgeGcRule]]] = {
            self.instance.table(name): dict(families)
            for name, families in (tables or {}).items()
        }
        self.calls: List[Tuple] = []
        self.dropped: List[Tuple[str, bytes]] = []
        self.hidden_from_listing: Set[str] = set()
        self.closed = False
        self._failures: Dict[Tuple[str, Optional[str]], AdminError] = {}
        self._before: Dict[str, Callable[[], None]] = {}

    def fail_on(self, method: str, error: AdminError, table: Optional[str] = None) -> None:
        """Make ``method`` raise ``error`` (for ``table`` only, if given)."""
        self._failures[(method, table)] = error

    def before(self, method: str, hook: Callable[[], None]) -> None:
        """Run ``hook`` once, right before the next call to ``method``."""
        self._before[method] = hook

    def _enter(self, method: str, table: Optional[str], *args) -> None:
        self.calls.append((method, table, *args))
        hook = self._before.pop(method, None)
        if hook:
            hook()
        error = self._failures.get((method, table)) or self._failures.get((method, None))
        if error:
            raise error

    def calls_to(self, method: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == method]

    @property
    def mutating_calls(self) -> List[Tuple]:
        return [c for c in self.calls if c[0] in MUTATING_CALLS]

    def families(self, table: str) -> Dict[str, Optional[MaxAgeGcRule]]:
        return self.tables[self.instance.table(table)]

    async def list_tables(self, instance: InstancePath) -> Set[TablePath]:
        self._enter("list_tables", None)
        return {
            path for path in self.tables
            if path.instance_path == instance and path.table not in self.hidden_from_listing
        }

    async def get_table(self, table: TablePath) -> TableMetadata:
        self._enter("get_table", table.table)
        if table not in self.tables:
            raise AdminNotFoundError("Table not found", operation="get_table", resource=str(table))
        return TableMetadata(table, dict(self.tables[table]))

    async def create_table(self, instance: InstancePath, table_id: str) -> TablePath:
        self._enter("create_table", table_id)
        path = instance.table(table_id)
        if path in self.tables:
            raise AdminAlreadyExistsError(
                "Table already exists", operation="create_table", resource=str(path)
            )
        self.tables[path] = {}
        return path

    async def modify_column_families(
        self,
        table: TablePath,
        modifications: List[ColumnFamilyModification],
    ) -> TableMetadata:
        self._enter("modify_column_families", table.table, list(modifications))
        if table not in self.tables:
            raise AdminNotFoundError(
                "Table not found", operation="modify_column_families", resource=str(table)
            )
        families = dict(self.tables[table])
        for modification in modifications:
            exists = modification.family_id in families
            if modification.kind == ModificationKind.CREATE and exists:
                raise AdminAlreadyExistsError(
                    f"Column family {modification.family_id} already exists",
                    operation="modify_column_families",
                    resource=str(table),
                )
            if modification.kind == ModificationKind.UPDATE and not exists:
                raise AdminNotFoundError(
                    f"Column family {modification.family_id} not found",
                    operation="modify_column_families",
                    resource=str(table),
                )
            families[modification.family_id] = modification.gc_rule
        self.tables[table] = families
        return TableMetadata(table, dict(families))

    async def drop_row_range(self, table: TablePath, row_key_prefix: bytes) -> None:
        self._enter("drop_row_range", table.table, row_key_prefix)
        self.dropped.append((table.table, row_key_prefix))

    async def close(self) -> None:
        self.closed = True


def modification_ids(call: Tuple) -> List[str]:
    """Family ids of a recorded modify_column_families call."""
    return [m.family_id for m in call[2]]


# ============================================================================
# Session Fixtures
# ============================================================================

@pytest.fixture
def instance() -> InstancePath:
    return InstancePath("test-project", "test-instance")


@pytest.fixture
def empty_session(instance) -> RecordingAdminSession:
    """Session against an instance with no tables."""
    return RecordingAdminSession(instance=instance)


@pytest.fixture
def populated_session(instance) -> RecordingAdminSession:
    """Session against an instance with a few existing tables."""
    return RecordingAdminSession(
        {
            "events": {"raw": None},
            "users": {"profile": MaxAgeGcRule(3600), "prefs": None},
            "legacy": {"old": None},
        },
        instance=instance,
    )


@pytest.fixture
def session_factory():
    """Factory usable as TableAdmin.session_factory; exposes the sessions it opened."""

    class Factory:
        def __init__(self):
            self.session = RecordingAdminSession()
            self.opened = 0

        @asynccontextmanager
        async def __call__(self, instance_config, settings):
            self.opened += 1
            try:
                yield self.session
            finally:
                await self.session.close()

    return Factory()


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config_data() -> Dict:
    return {
        "instance": {"project": "test-project", "instance": "test-instance"},
        "tables": [
            {"name": "events", "column_families": ["raw", "agg"]},
            {
                "name": "sessions",
                "column_families": ["state"],
                "cell_expiration_seconds": 86400,
            },
        ],
        "admin": {"timeout_seconds": 30, "max_concurrency": 2},
    }


@pytest.fixture
def sample_config(sample_config_data) -> BtSchemaConfig:
    return BtSchemaConfig(**sample_config_data)


@pytest.fixture
def temp_config_file(sample_config_data, tmp_path) -> str:
    """Configuration file written to a temporary directory."""
    path = tmp_path / "btschema.yaml"
    path.write_text(yaml.safe_dump(sample_config_data), encoding="utf-8")
    return str(path)
