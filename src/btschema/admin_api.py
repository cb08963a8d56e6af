"""
Table administration entry points.

Each call opens exactly one admin session, runs a single reconciler or
eraser operation inside it and closes the session on every exit path.
"""

import logging
from datetime import timedelta
from typing import AsyncContextManager, Callable, Optional

from .admin.bigtable import open_admin_session
from .admin.models import MaxAgeGcRule
from .admin.session import AdminSession
from .config import AdminSettings, BtSchemaConfig, InstanceConfig
from .exceptions import AdminError
from .schema.eraser import RangeEraser, encode_row_prefix
from .schema.reconciler import DesiredSchema, SchemaReconciler
from .schema.results import OperationResult, SchemaPlan


logger = logging.getLogger(__name__)


SessionFactory = Callable[[InstanceConfig, AdminSettings], AsyncContextManager[AdminSession]]


class TableAdmin:
    """Bigtable table admin helper commands."""

    def __init__(
        self,
        instance: InstanceConfig,
        settings: Optional[AdminSettings] = None,
        session_factory: SessionFactory = open_admin_session,
    ):
        self.instance = instance
        self.settings = settings or AdminSettings()
        self.session_factory = session_factory
        self.reconciler = SchemaReconciler(self.settings.max_concurrency)
        self.eraser = RangeEraser()

    @classmethod
    def from_config(
        cls,
        config: BtSchemaConfig,
        session_factory: SessionFactory = open_admin_session,
    ) -> "TableAdmin":
        return cls(config.instance, config.admin, session_factory)

    async def ensure_tables(self, desired: DesiredSchema) -> OperationResult:
        """Ensure that tables and column families exist."""
        try:
            async with self.session_factory(self.instance, self.settings) as session:
                return await self.reconciler.ensure_schema(session, self.instance.path, desired)
        except AdminError as e:
            return self._failed("ensure_schema", e)

    async def set_gc_rule(self, desired: DesiredSchema, gc_rule: MaxAgeGcRule) -> OperationResult:
        """Adds or modifies a GC rule for the given tables and column families."""
        try:
            async with self.session_factory(self.instance, self.settings) as session:
                return await self.reconciler.set_gc_rule(
                    session, self.instance.path, desired, gc_rule
                )
        except AdminError as e:
            return self._failed("set_gc_rule", e)

    async def set_cell_expiration(
        self, desired: DesiredSchema, cell_expiration: timedelta
    ) -> OperationResult:
        """Adds or modifies a max-age rule; granularity is one second."""
        return await self.set_gc_rule(desired, MaxAgeGcRule.from_duration(cell_expiration))

    async def plan(self, desired: DesiredSchema) -> SchemaPlan:
        """Compare desired and live schema without changing anything."""
        async with self.session_factory(self.instance, self.settings) as session:
            return await self.reconciler.plan_schema(session, self.instance.path, desired)

    async def drop_row_range(self, table: str, row_key_prefix: str) -> OperationResult:
        """Permanently deletes the rows of ``table`` matching a key prefix."""
        table_path = self.instance.path.table(table)
        # Rejects an empty prefix before any session is opened.
        encode_row_prefix(row_key_prefix)
        try:
            async with self.session_factory(self.instance, self.settings) as session:
                return await self.eraser.drop_row_range(session, table_path, row_key_prefix)
        except AdminError as e:
            return self._failed("drop_row_range", e)

    def _failed(self, operation: str, error: AdminError) -> OperationResult:
        # Reached when the session could not be opened or closed.
        logger.error(f"{operation} failed for {self.instance.path}: {error}")
        result = OperationResult(operation=operation, instance=str(self.instance.path))
        result.fail(error)
        return result
