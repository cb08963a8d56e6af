"""
Configuration system for btschema using Pydantic.
"""

import os
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .admin.paths import InstancePath
from .exceptions import ConfigurationError


class InstanceConfig(BaseModel):
    """Bigtable instance coordinates and connection options."""

    project: str = Field(..., description="Google Cloud project id")
    instance: str = Field(..., description="Bigtable instance id")
    emulator_host: Optional[str] = Field(
        None, description="host:port of a Bigtable emulator"
    )
    credentials_file: Optional[str] = Field(
        None, description="Service account key file (defaults to ADC)"
    )

    @property
    def path(self) -> InstancePath:
        return InstancePath(self.project, self.instance)

    @property
    def effective_emulator_host(self) -> Optional[str]:
        """Configured emulator host, falling back to BIGTABLE_EMULATOR_HOST."""
        return self.emulator_host or os.environ.get("BIGTABLE_EMULATOR_HOST") or None


class TableSpec(BaseModel):
    """Desired state of a single table."""

    name: str = Field(..., description="Table id")
    column_families: List[str] = Field(
        default_factory=list, description="Column families that must exist"
    )
    cell_expiration_seconds: Optional[int] = Field(
        None, ge=0, description="Max-age GC rule applied to every family"
    )

    @field_validator("column_families")
    @classmethod
    def dedupe_families(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))


class AdminSettings(BaseModel):
    """Admin call behaviour."""

    timeout_seconds: float = Field(60.0, gt=0, description="Per-call RPC timeout")
    max_concurrency: int = Field(
        1, ge=1, description="Tables reconciled concurrently within one call"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class BtSchemaConfig(BaseSettings):
    """Main btschema configuration."""

    instance: InstanceConfig = Field(..., description="Target Bigtable instance")
    tables: List[TableSpec] = Field(
        default_factory=list, description="Desired tables"
    )
    admin: AdminSettings = Field(
        default_factory=AdminSettings, description="Admin call settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="BTSCHEMA_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "BtSchemaConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_table(self, name: str) -> TableSpec:
        """Get a table spec by name."""
        for table in self.tables:
            if table.name == name:
                return table
        raise ConfigurationError(f"Table '{name}' not found in configuration")

    def desired_schema(self) -> Dict[str, List[str]]:
        """Table name to column families, as consumed by the reconciler."""
        return {table.name: list(table.column_families) for table in self.tables}

    def expiration_groups(self) -> Dict[int, Dict[str, List[str]]]:
        """Group tables with a cell expiration by their max age in seconds."""
        groups: Dict[int, Dict[str, List[str]]] = defaultdict(dict)
        for table in self.tables:
            if table.cell_expiration_seconds is not None and table.column_families:
                groups[table.cell_expiration_seconds][table.name] = list(
                    table.column_families
                )
        return dict(groups)

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        seen: Dict[str, int] = {}
        for index, table in enumerate(self.tables):
            if not table.name.strip() or "/" in table.name:
                raise ConfigurationError(f"Table #{index} has an invalid name: {table.name!r}")
            if table.name in seen:
                raise ConfigurationError(f"Table '{table.name}' is declared more than once")
            seen[table.name] = index

            for family in table.column_families:
                if not family.strip():
                    raise ConfigurationError(
                        f"Table '{table.name}' declares an empty column family name"
                    )

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

    def summary(self) -> List[Tuple[str, str, str]]:
        """Rows of (table, families, expiration) for display."""
        rows = []
        for table in self.tables:
            expiration = (
                f"{table.cell_expiration_seconds}s"
                if table.cell_expiration_seconds is not None
                else "-"
            )
            rows.append((table.name, ", ".join(table.column_families) or "-", expiration))
        return rows
