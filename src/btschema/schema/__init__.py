"""
Schema management package for btschema.

This package provides:
- Table and column family reconciliation
- GC rule updates on existing column families
- Prefix-scoped row range deletion
"""

from .reconciler import SchemaReconciler, normalize_schema
from .eraser import RangeEraser, encode_row_prefix
from .results import OperationResult, OperationStatus, SchemaPlan, TablePlan

__all__ = [
    "SchemaReconciler",
    "normalize_schema",
    "RangeEraser",
    "encode_row_prefix",
    "OperationResult",
    "OperationStatus",
    "SchemaPlan",
    "TablePlan",
]
