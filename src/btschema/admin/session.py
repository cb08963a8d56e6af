"""
Abstract admin session.

This module provides the interface the schema reconciler and range eraser
consume. Any object implementing it can stand in for the Bigtable client,
which keeps the reconciliation logic independent of the transport.
"""

from abc import ABC, abstractmethod
from typing import List, Set

from .models import ColumnFamilyModification, TableMetadata
from .paths import InstancePath, TablePath


class AdminSession(ABC):
    """
    Table administration capability scoped to one top-level operation.

    Implementations raise ``AdminError`` (or a subclass) for every failure
    reported by the underlying service.
    """

    @abstractmethod
    async def list_tables(self, instance: InstancePath) -> Set[TablePath]:
        """
        List all tables in an instance.

        Args:
            instance: Instance to list

        Returns:
            Paths of every table under the instance
        """
        pass

    @abstractmethod
    async def get_table(self, table: TablePath) -> TableMetadata:
        """
        Fetch a table's column families and their GC rules.

        Raises:
            AdminNotFoundError: If the table does not exist
        """
        pass

    @abstractmethod
    async def create_table(self, instance: InstancePath, table_id: str) -> TablePath:
        """
        Create an empty table with no column families.

        Raises:
            AdminAlreadyExistsError: If the table already exists
        """
        pass

    @abstractmethod
    async def modify_column_families(
        self,
        table: TablePath,
        modifications: List[ColumnFamilyModification],
    ) -> TableMetadata:
        """
        Apply a batch of column family modifications in one call.

        The service applies the batch atomically; on failure none of the
        modifications take effect.
        """
        pass

    @abstractmethod
    async def drop_row_range(self, table: TablePath, row_key_prefix: bytes) -> None:
        """Permanently delete every row whose key starts with ``row_key_prefix``."""
        pass

    async def close(self) -> None:
        """Release the resources held by the session."""
        pass

    async def __aenter__(self) -> "AdminSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
