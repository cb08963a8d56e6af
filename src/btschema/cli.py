"""
Command-line interface for btschema.
"""

import asyncio
import sys
from datetime import timedelta
from functools import wraps
from pathlib import Path
from typing import Dict, List, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .admin_api import TableAdmin
from .config import BtSchemaConfig, InstanceConfig, TableSpec
from .exceptions import BtSchemaError, ConfigurationError
from .logging_setup import configure_logging
from .schema.results import OperationResult, SchemaPlan


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BtSchemaError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
    return wrapper


def _load_config(path: str) -> BtSchemaConfig:
    config = BtSchemaConfig.from_yaml(path)
    config.validate_config()
    debug = (click.get_current_context().find_root().obj or {}).get("debug", False)
    configure_logging(config.logging, debug=debug)
    return config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """btschema: idempotent table and column family management for Cloud Bigtable."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="btschema.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new btschema configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Set the project, instance and tables in the configuration file")
    console.print("2. Run: btschema validate-config -c your-config.yaml")
    console.print("3. Run: btschema plan -c your-config.yaml")
    console.print("4. Run: btschema ensure -c your-config.yaml")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        bt_config = BtSchemaConfig.from_yaml(config)
        bt_config.validate_config()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(bt_config)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def plan(config: str):
    """Show tables and column families that ensure would create."""
    bt_config = _load_config(config)
    admin = TableAdmin.from_config(bt_config)

    schema_plan = asyncio.run(admin.plan(bt_config.desired_schema()))
    _display_plan(schema_plan)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--skip-expiration",
    is_flag=True,
    help="Do not apply configured cell expirations",
)
@handle_errors
def ensure(config: str, skip_expiration: bool):
    """Create missing tables and column families."""
    bt_config = _load_config(config)
    admin = TableAdmin.from_config(bt_config)
    console.print(f"[blue]Ensuring schema in {bt_config.instance.path}[/blue]")

    async def run_ensure() -> List[OperationResult]:
        results = [await admin.ensure_tables(bt_config.desired_schema())]
        if results[0].ok and not skip_expiration:
            for seconds, tables in sorted(bt_config.expiration_groups().items()):
                results.append(
                    await admin.set_cell_expiration(tables, timedelta(seconds=seconds))
                )
        return results

    results = asyncio.run(run_ensure())
    for result in results:
        _display_result(result)

    if not all(r.ok for r in results):
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--seconds",
    type=click.IntRange(min=0),
    required=True,
    help="Maximum cell age in seconds",
)
@click.option(
    "--table",
    "-t",
    "tables",
    multiple=True,
    help="Restrict to these tables (default: all configured tables)",
)
@handle_errors
def set_expiration(config: str, seconds: int, tables: Tuple[str, ...]):
    """Set a max-age GC rule on configured column families."""
    bt_config = _load_config(config)
    desired = _select_tables(bt_config, tables)
    admin = TableAdmin.from_config(bt_config)

    result = asyncio.run(admin.set_cell_expiration(desired, timedelta(seconds=seconds)))
    _display_result(result)

    if not result.ok:
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--table",
    "-t",
    required=True,
    help="Table to delete rows from",
)
@click.option(
    "--prefix",
    "-p",
    required=True,
    help="Row key prefix of the rows to delete",
)
@click.option(
    "--yes",
    is_flag=True,
    help="Do not ask for confirmation",
)
@handle_errors
def drop_prefix(config: str, table: str, prefix: str, yes: bool):
    """Permanently delete all rows whose key starts with a prefix."""
    bt_config = _load_config(config)

    if not yes and not click.confirm(
        f"Permanently delete rows with prefix '{prefix}' from {table}?"
    ):
        console.print("[yellow]Aborted[/yellow]")
        return

    admin = TableAdmin.from_config(bt_config)
    result = asyncio.run(admin.drop_row_range(table, prefix))
    _display_result(result)

    if not result.ok:
        console.print(
            "[yellow]The range may have been partially deleted; "
            "check the table before retrying.[/yellow]"
        )
        sys.exit(1)


def _select_tables(config: BtSchemaConfig, tables: Tuple[str, ...]) -> Dict[str, List[str]]:
    desired = config.desired_schema()
    if not tables:
        return desired
    return {name: list(config.get_table(name).column_families) for name in tables}


def _create_default_config() -> BtSchemaConfig:
    """Create a default configuration with examples."""
    return BtSchemaConfig(
        instance=InstanceConfig(
            project="${GOOGLE_CLOUD_PROJECT}",
            instance="${BIGTABLE_INSTANCE}",
        ),
        tables=[
            TableSpec(name="events", column_families=["raw", "agg"]),
            TableSpec(
                name="sessions",
                column_families=["state"],
                cell_expiration_seconds=7 * 24 * 3600,
            ),
        ],
    )


def _display_config_summary(config: BtSchemaConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")
    console.print(f"Instance: {config.instance.path}")
    if config.instance.effective_emulator_host:
        console.print(f"Emulator: {config.instance.effective_emulator_host}")

    table_table = Table(title="Tables")
    table_table.add_column("Table", style="cyan")
    table_table.add_column("Column Families", style="magenta")
    table_table.add_column("Cell Expiration", style="yellow")

    for row in config.summary():
        table_table.add_row(*row)

    console.print(table_table)


def _display_plan(schema_plan: SchemaPlan):
    if schema_plan.is_empty:
        console.print(f"[green]✓[/green] {schema_plan.instance} is up to date")
        return

    plan_table = Table(title=f"Pending changes in {schema_plan.instance}")
    plan_table.add_column("Table", style="cyan")
    plan_table.add_column("Action", style="magenta")
    plan_table.add_column("Missing Column Families", style="green")

    for table_plan in schema_plan.tables:
        if table_plan.up_to_date:
            continue
        action = "update" if table_plan.exists else "create"
        plan_table.add_row(table_plan.table, action, ", ".join(table_plan.missing_families) or "-")

    console.print(plan_table)


def _display_result(result: OperationResult):
    if not result.ok:
        console.print(f"[red]✗[/red] {result.operation} failed: {result.error}")
    else:
        console.print(
            f"[green]✓[/green] {result.operation} succeeded "
            f"({result.mutation_count} changes, {result.execution_time_ms:.1f}ms)"
        )

    for table in result.tables_created:
        console.print(f"  created table {table}")
    for table, families in sorted(result.families_created.items()):
        console.print(f"  created column families {', '.join(families)} in {table}")
    for table, families in sorted(result.families_updated.items()):
        console.print(f"  updated column families {', '.join(families)} in {table}")
    for table in result.skipped_tables:
        console.print(f"  [yellow]skipped missing table {table}[/yellow]")
    for table, families in sorted(result.skipped_families.items()):
        console.print(
            f"  [yellow]skipped missing column families {', '.join(families)} in {table}[/yellow]"
        )
    for table, prefixes in result.dropped_prefixes.items():
        for prefix in prefixes:
            console.print(f"  dropped rows with prefix {prefix!r} from {table}")


if __name__ == "__main__":
    main()
