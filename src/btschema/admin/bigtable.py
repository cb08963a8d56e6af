"""
Cloud Bigtable implementation of the admin session.

Wraps ``BigtableTableAdminAsyncClient`` from google-cloud-bigtable, converts
between its protobuf messages and btschema's value types, and translates
API errors into ``AdminError``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, List, Optional, Set

import grpc
from google.api_core import exceptions as core_exceptions
from google.api_core.client_options import ClientOptions
from google.auth import exceptions as auth_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud.bigtable_admin_v2 import BigtableTableAdminAsyncClient
from google.cloud.bigtable_admin_v2.services.bigtable_table_admin.transports import (
    BigtableTableAdminGrpcAsyncIOTransport,
)
from google.cloud.bigtable_admin_v2.types import (
    ColumnFamily,
    GcRule,
    ModifyColumnFamiliesRequest,
    Table,
)

from ..config import AdminSettings, InstanceConfig
from ..exceptions import (
    AdminAlreadyExistsError,
    AdminConnectionError,
    AdminError,
    AdminNotFoundError,
    AdminPermissionError,
)
from .models import ColumnFamilyModification, MaxAgeGcRule, ModificationKind, TableMetadata
from .paths import InstancePath, TablePath
from .session import AdminSession


logger = logging.getLogger(__name__)


def gc_rule_to_proto(rule: MaxAgeGcRule) -> GcRule:
    return GcRule(max_age=rule.max_age)


def gc_rule_from_proto(rule: Optional[GcRule]) -> Optional[MaxAgeGcRule]:
    """Read back a max-age rule; any other rule kind is reported as ``None``."""
    if rule is None or GcRule.pb(rule).WhichOneof("rule") != "max_age":
        return None
    return MaxAgeGcRule.from_duration(rule.max_age)


def modification_to_proto(
    modification: ColumnFamilyModification,
) -> ModifyColumnFamiliesRequest.Modification:
    family = ColumnFamily()
    if modification.gc_rule is not None:
        family = ColumnFamily(gc_rule=gc_rule_to_proto(modification.gc_rule))

    if modification.kind == ModificationKind.CREATE:
        return ModifyColumnFamiliesRequest.Modification(
            id=modification.family_id, create=family
        )
    return ModifyColumnFamiliesRequest.Modification(
        id=modification.family_id, update=family
    )


def table_from_proto(path: TablePath, table: Table) -> TableMetadata:
    return TableMetadata(
        path=path,
        column_families={
            family_id: gc_rule_from_proto(family.gc_rule)
            for family_id, family in table.column_families.items()
        },
    )


def translate_error(
    error: core_exceptions.GoogleAPIError,
    operation: str,
    resource: str,
) -> AdminError:
    """Map a google-api-core error onto the btschema hierarchy."""
    message = f"{operation} failed for {resource}"
    if isinstance(error, core_exceptions.AlreadyExists):
        error_class = AdminAlreadyExistsError
    elif isinstance(error, core_exceptions.NotFound):
        error_class = AdminNotFoundError
    elif isinstance(error, (core_exceptions.PermissionDenied, core_exceptions.Unauthenticated)):
        error_class = AdminPermissionError
    else:
        error_class = AdminError
    return error_class(message, operation=operation, resource=resource, cause=error)


class BigtableAdminSession(AdminSession):
    """Admin session backed by the Bigtable table admin API."""

    def __init__(
        self,
        client: BigtableTableAdminAsyncClient,
        settings: Optional[AdminSettings] = None,
    ):
        self.client = client
        self.settings = settings or AdminSettings()
        self._closed = False

    async def _call(self, operation: str, resource: Any, request: Awaitable) -> Any:
        try:
            return await request
        except core_exceptions.GoogleAPIError as e:
            logger.debug(f"{operation} on {resource} raised {e!r}")
            raise translate_error(e, operation, str(resource)) from e

    async def list_tables(self, instance: InstancePath) -> Set[TablePath]:
        timeout = self.settings.timeout_seconds

        async def collect() -> Set[TablePath]:
            pager = await self.client.list_tables(
                request={"parent": instance.path, "view": Table.View.NAME_ONLY},
                timeout=timeout,
            )
            return {TablePath.parse(table.name) async for table in pager}

        tables = await self._call("list_tables", instance, collect())
        logger.debug(f"Found {len(tables)} tables in {instance}")
        return tables

    async def get_table(self, table: TablePath) -> TableMetadata:
        response = await self._call(
            "get_table",
            table,
            self.client.get_table(
                request={"name": table.path, "view": Table.View.SCHEMA_VIEW},
                timeout=self.settings.timeout_seconds,
            ),
        )
        return table_from_proto(table, response)

    async def create_table(self, instance: InstancePath, table_id: str) -> TablePath:
        response = await self._call(
            "create_table",
            instance.table(table_id),
            self.client.create_table(
                request={"parent": instance.path, "table_id": table_id, "table": Table()},
                timeout=self.settings.timeout_seconds,
            ),
        )
        return TablePath.parse(response.name)

    async def modify_column_families(
        self,
        table: TablePath,
        modifications: List[ColumnFamilyModification],
    ) -> TableMetadata:
        response = await self._call(
            "modify_column_families",
            table,
            self.client.modify_column_families(
                request={
                    "name": table.path,
                    "modifications": [modification_to_proto(m) for m in modifications],
                },
                timeout=self.settings.timeout_seconds,
            ),
        )
        return table_from_proto(table, response)

    async def drop_row_range(self, table: TablePath, row_key_prefix: bytes) -> None:
        await self._call(
            "drop_row_range",
            table,
            self.client.drop_row_range(
                request={"name": table.path, "row_key_prefix": row_key_prefix},
                timeout=self.settings.timeout_seconds,
            ),
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.client.transport.close()


def create_admin_client(instance: InstanceConfig) -> BigtableTableAdminAsyncClient:
    """Build a table admin client for the configured instance."""
    emulator_host = instance.effective_emulator_host
    try:
        if emulator_host:
            logger.info(f"Using Bigtable emulator at {emulator_host}")
            transport = BigtableTableAdminGrpcAsyncIOTransport(
                credentials=AnonymousCredentials(),
                channel=grpc.aio.insecure_channel(emulator_host),
            )
            return BigtableTableAdminAsyncClient(transport=transport)

        client_options = None
        if instance.credentials_file:
            client_options = ClientOptions(credentials_file=instance.credentials_file)
        return BigtableTableAdminAsyncClient(client_options=client_options)

    except (auth_exceptions.GoogleAuthError, core_exceptions.GoogleAPIError) as e:
        raise AdminConnectionError(
            f"Failed to create admin client: {e}",
            operation="connect",
            resource=str(instance.path),
            cause=e,
        ) from e


@asynccontextmanager
async def open_admin_session(
    instance: InstanceConfig,
    settings: Optional[AdminSettings] = None,
) -> AsyncIterator[AdminSession]:
    """Open a session for one top-level operation and always close it."""
    logger.debug(f"Opening admin session for {instance.path}")
    session = BigtableAdminSession(create_admin_client(instance), settings)
    try:
        yield session
    finally:
        logger.debug(f"Closing admin session for {instance.path}")
        await session.close()
