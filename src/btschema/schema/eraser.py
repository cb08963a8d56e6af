"""
Prefix-scoped bulk deletion of rows.
"""

import logging
import time

from ..admin.paths import TablePath
from ..admin.session import AdminSession
from ..exceptions import AdminError, ValidationError
from .results import OperationResult


logger = logging.getLogger(__name__)


def encode_row_prefix(row_key_prefix: str) -> bytes:
    """Encode a row key prefix the way row keys are written: UTF-8."""
    if not row_key_prefix:
        # An empty prefix would match, and delete, every row of the table.
        raise ValidationError("Row key prefix must not be empty")
    return row_key_prefix.encode("utf-8")


class RangeEraser:
    """Permanently deletes row ranges; never retries."""

    async def drop_row_range(
        self,
        session: AdminSession,
        table: TablePath,
        row_key_prefix: str,
    ) -> OperationResult:
        """
        Delete every row of ``table`` whose key starts with ``row_key_prefix``.

        A failed result must not be retried blindly: the service may have
        deleted the range before the error was reported.

        Raises:
            ValidationError: If the prefix is empty
        """
        prefix = encode_row_prefix(row_key_prefix)
        result = OperationResult(operation="drop_row_range", instance=str(table.instance_path))
        start_time = time.monotonic()

        logger.info(f"Dropping rows with prefix {prefix!r} from {table}")
        try:
            await session.drop_row_range(table, prefix)
            result.dropped_prefixes[table.table] = [prefix]
        except AdminError as e:
            logger.error(f"drop_row_range failed for {table}: {e}")
            result.fail(e)
        finally:
            result.execution_time_ms = (time.monotonic() - start_time) * 1000

        return result
