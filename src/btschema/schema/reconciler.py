"""
Schema reconciliation core logic for btschema.

Compares the desired tables and column families against what the instance
actually holds and issues only the mutations needed to close the gap.
Reconciliation is additive: nothing is ever dropped or renamed.
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..admin.models import ColumnFamilyModification, MaxAgeGcRule
from ..admin.paths import InstancePath, TablePath
from ..admin.session import AdminSession
from ..exceptions import AdminAlreadyExistsError, AdminError, AdminNotFoundError
from .results import OperationResult, SchemaPlan, TablePlan


logger = logging.getLogger(__name__)


DesiredSchema = Mapping[str, Iterable[str]]


def normalize_schema(desired: DesiredSchema) -> Dict[str, List[str]]:
    """Copy the desired schema, dropping repeated family names within a table."""
    return {table: list(dict.fromkeys(families)) for table, families in desired.items()}


class SchemaReconciler:
    """
    Brings tables and column families of an instance in line with a desired schema.

    The reconciler is stateless; every operation receives the admin session
    it should use. Per-table work runs through a semaphore so that at most
    ``max_concurrency`` tables are being reconciled at once. Steps for a
    single table are always sequential.
    """

    def __init__(self, max_concurrency: int = 1):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency

    async def ensure_schema(
        self,
        session: AdminSession,
        instance: InstancePath,
        desired: DesiredSchema,
    ) -> OperationResult:
        """
        Ensure that tables and column families exist.

        Creates every desired table missing from the instance, then creates
        the desired column families missing from each table with one batched
        call per table.

        Args:
            session: Admin session for this operation
            instance: Instance holding the tables
            desired: Table name to column family names

        Returns:
            OperationResult listing created tables and families
        """
        schema = normalize_schema(desired)
        result = OperationResult(operation="ensure_schema", instance=str(instance))
        start_time = time.monotonic()

        logger.info(f"Ensuring tables and column families exist in instance {instance.instance}")

        try:
            existing = await session.list_tables(instance)

            async def ensure(table_id: str, families: List[str]) -> None:
                await self._ensure_table(session, instance, existing, table_id, families, result)

            await self._for_each_table(schema.items(), ensure)

        except AdminError as e:
            logger.error(f"ensure_schema failed for {instance}: {e}")
            result.fail(e)

        finally:
            result.execution_time_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            f"ensure_schema completed for {instance}: {result.status.value} "
            f"({result.mutation_count} mutations, {result.execution_time_ms:.1f}ms)"
        )
        return result

    async def set_gc_rule(
        self,
        session: AdminSession,
        instance: InstancePath,
        desired: DesiredSchema,
        gc_rule: MaxAgeGcRule,
    ) -> OperationResult:
        """
        Set a GC rule on existing column families.

        Missing tables and families are skipped with a log message; this
        never creates anything. The current rule is not compared, so the
        update is issued even when the family already carries ``gc_rule``.
        """
        schema = normalize_schema(desired)
        result = OperationResult(operation="set_gc_rule", instance=str(instance))
        start_time = time.monotonic()

        try:
            existing = await session.list_tables(instance)

            present: Dict[str, List[str]] = {}
            for table_id, families in schema.items():
                if instance.table(table_id) in existing:
                    present[table_id] = families
                else:
                    logger.info(
                        f"Skipping modification for non-existent table {instance.table(table_id)}"
                    )
                    result.skipped_tables.append(table_id)

            async def update(table_id: str, families: List[str]) -> None:
                await self._update_gc_rule(
                    session, instance.table(table_id), families, gc_rule, result
                )

            await self._for_each_table(present.items(), update)

        except AdminError as e:
            logger.error(f"set_gc_rule failed for {instance}: {e}")
            result.fail(e)

        finally:
            result.execution_time_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            f"set_gc_rule completed for {instance}: {result.status.value} "
            f"({result.mutation_count} families updated, {len(result.skipped_tables)} tables skipped)"
        )
        return result

    async def set_cell_expiration(
        self,
        session: AdminSession,
        instance: InstancePath,
        desired: DesiredSchema,
        cell_expiration: timedelta,
    ) -> OperationResult:
        """
        Set cell expiration on existing column families.

        Note: minimum granularity is one second; fractions are truncated.
        """
        return await self.set_gc_rule(
            session, instance, desired, MaxAgeGcRule.from_duration(cell_expiration)
        )

    async def plan_schema(
        self,
        session: AdminSession,
        instance: InstancePath,
        desired: DesiredSchema,
    ) -> SchemaPlan:
        """
        Report what ``ensure_schema`` would create, without mutating anything.

        Raises:
            AdminError: If listing or fetching a table fails
        """
        schema = normalize_schema(desired)
        plan = SchemaPlan(instance=str(instance))
        existing = await session.list_tables(instance)

        async def inspect(table_id: str, families: List[str]) -> None:
            path = instance.table(table_id)
            if path not in existing:
                plan.tables.append(TablePlan(table_id, False, list(families)))
                return
            metadata = await session.get_table(path)
            missing = [cf for cf in families if not metadata.has_column_family(cf)]
            plan.tables.append(TablePlan(table_id, True, missing))

        await self._for_each_table(schema.items(), inspect)
        plan.tables.sort(key=lambda t: t.table)
        return plan

    async def _ensure_table(
        self,
        session: AdminSession,
        instance: InstancePath,
        existing: Set[TablePath],
        table_id: str,
        families: List[str],
        result: OperationResult,
    ) -> None:
        path = instance.table(table_id)

        if path not in existing:
            logger.info(f"Creating table {table_id}")
            try:
                await session.create_table(instance, table_id)
                result.tables_created.append(table_id)
            except AdminAlreadyExistsError:
                logger.info(f"Table {table_id} was created by another caller")
        else:
            logger.info(f"Table {table_id} exists")

        await self._ensure_column_families(session, path, families, result)

    async def _ensure_column_families(
        self,
        session: AdminSession,
        path: TablePath,
        families: List[str],
        result: OperationResult,
    ) -> None:
        missing = await self._missing_families(session, path, families)
        if not missing:
            logger.info(f"Column families {families} exist in {path}")
            return

        logger.info(f"Creating column families {missing} in {path}")
        try:
            await session.modify_column_families(
                path, [ColumnFamilyModification.create(cf) for cf in missing]
            )
        except AdminAlreadyExistsError:
            # Another caller created some of them; retry once with what is left.
            missing = await self._missing_families(session, path, families)
            if missing:
                logger.info(f"Retrying creation of column families {missing} in {path}")
                await session.modify_column_families(
                    path, [ColumnFamilyModification.create(cf) for cf in missing]
                )

        if missing:
            result.families_created[path.table] = missing

    async def _missing_families(
        self,
        session: AdminSession,
        path: TablePath,
        families: List[str],
    ) -> List[str]:
        metadata = await session.get_table(path)
        return [cf for cf in families if not metadata.has_column_family(cf)]

    async def _update_gc_rule(
        self,
        session: AdminSession,
        path: TablePath,
        families: List[str],
        gc_rule: MaxAgeGcRule,
        result: OperationResult,
    ) -> None:
        modifications = await self._gc_rule_modifications(session, path, families, gc_rule, result)
        if not modifications:
            return

        logger.info(f"Updating gcRule ({gc_rule}) for column families {families} in {path}")
        try:
            await session.modify_column_families(path, modifications)
        except AdminNotFoundError:
            # A family or the table went away after the fetch; retry once with what is left.
            modifications = await self._gc_rule_modifications(
                session, path, [m.family_id for m in modifications], gc_rule, result
            )
            if not modifications:
                return
            logger.info(f"Retrying gcRule update for column families {families} in {path}")
            await session.modify_column_families(path, modifications)

        result.families_updated[path.table] = [m.family_id for m in modifications]

    async def _gc_rule_modifications(
        self,
        session: AdminSession,
        path: TablePath,
        families: List[str],
        gc_rule: MaxAgeGcRule,
        result: OperationResult,
    ) -> Optional[List[ColumnFamilyModification]]:
        """Update modifications for the families of ``families`` that exist; None if the table is gone."""
        try:
            metadata = await session.get_table(path)
        except AdminNotFoundError:
            logger.info(f"Skipping modification for non-existent table {path}")
            result.skipped_tables.append(path.table)
            return None

        modifications = []
        for cf in families:
            if metadata.has_column_family(cf):
                modifications.append(ColumnFamilyModification.update(cf, gc_rule))
            else:
                logger.info(f"Skipping modification for non-existent column family {cf} in table {path}")
                result.skipped_families.setdefault(path.table, []).append(cf)
        return modifications

    async def _for_each_table(
        self,
        items: Iterable[Tuple[str, List[str]]],
        worker: Callable[[str, List[str]], Awaitable[None]],
    ) -> None:
        """Run ``worker`` per table; the first failure cancels the rest."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        aborted = asyncio.Event()

        async def guarded(table_id: str, families: List[str]) -> None:
            async with semaphore:
                if aborted.is_set():
                    return
                try:
                    await worker(table_id, families)
                except BaseException:
                    aborted.set()
                    raise

        tasks = [asyncio.ensure_future(guarded(t, f)) for t, f in items]
        if not tasks:
            return

        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
