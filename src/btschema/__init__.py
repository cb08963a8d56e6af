"""
btschema: idempotent table and column family management for Cloud Bigtable.

btschema creates the tables and column families a service expects, sets
cell expiration on them, and drops row ranges by key prefix.
"""

__version__ = "0.1.0"

from .config import BtSchemaConfig
from .exceptions import BtSchemaError, ConfigurationError, AdminError, ValidationError

__all__ = [
    "__version__",
    "BtSchemaConfig",
    "BtSchemaError",
    "ConfigurationError",
    "AdminError",
    "ValidationError",
]
