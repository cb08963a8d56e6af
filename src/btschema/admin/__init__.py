"""
Admin session package for btschema.

This package provides:
- Instance and table resource paths
- GC rule and column family modification types
- The abstract admin session and its Cloud Bigtable implementation
"""

from .paths import InstancePath, TablePath
from .models import ColumnFamilyModification, MaxAgeGcRule, ModificationKind, TableMetadata
from .session import AdminSession

__all__ = [
    "InstancePath",
    "TablePath",
    "ColumnFamilyModification",
    "MaxAgeGcRule",
    "ModificationKind",
    "TableMetadata",
    "AdminSession",
]
