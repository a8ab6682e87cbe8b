import logging
import typer
from typing import List, Optional
from pathlib import Path
from .config import AppConfig
from .connectors.clickhouse import ClickHouseConnector
from .connectors.factory import get_connector
from .domain.models import HealthStatus, TransferSpec
from .etl.pipeline import TransferPipeline
from .exceptions import ChbridgeException
from .inspector import InspectorFacade

app = typer.Typer(help="ClickHouse <-> flat file bulk transfer toolkit")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

def setup_logger(level=logging.INFO) -> logging.Logger:
    logger = logging.getLogger("chbridge")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(h)
    logger.setLevel(level)
    return logger

# Shared options
ConfigOpt = typer.Option(None, "--config", "-c", help="Path to configuration file")
AliasOpt = typer.Option(None, "--alias", "-a", help="Connection alias from the config file")
HostOpt = typer.Option(None, "--host", envvar="CHBRIDGE_HOST", help="ClickHouse host (may include http:// or https://)")
PortOpt = typer.Option(8123, "--port", envvar="CHBRIDGE_PORT", help="ClickHouse HTTP port")
UserOpt = typer.Option("default", "--user", "-u", envvar="CHBRIDGE_USER", help="Username")
PasswordOpt = typer.Option(None, "--password", envvar="CHBRIDGE_PASSWORD", help="Password or token")
DatabaseOpt = typer.Option(None, "--database", "-d", help="Database (defaults to the profile's or 'default')")

def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]

def _fail(message: str) -> None:
    typer.secho(f"❌ {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)

def _resolve(config, alias, host, port, user, password, database):
    """Returns (app_config, connector, database) from a config profile or direct flags."""
    app_config = AppConfig.from_yaml(config) if config else AppConfig()
    setup_logger(app_config.log_level)

    if alias:
        profile = app_config.get_connection(alias)
        connector = get_connector(profile, config=app_config)
        return app_config, connector, database or profile.database

    if not host:
        _fail("Either --alias (with --config) or --host is required")

    params = {"host": host, "port": port, "username": user, "password": password}
    return app_config, get_connector(params, alias=host, config=app_config), database or "default"

def _spec(database, table, columns, join_tables, join_condition) -> TransferSpec:
    return TransferSpec(
        database=database,
        table=table,
        columns=_split(columns),
        join_tables=_split(join_tables) or None,
        join_condition=join_condition,
    )

@app.command()
def check_conn(
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also list tables and column counts"),
):
    """
    Connectivity health check and schema discovery.
    """
    connector = None
    try:
        _, connector, database = _resolve(config, alias, host, port, user, password, database)
        report = InspectorFacade(connector).run_diagnostics(database, crawl=verbose)
    except ChbridgeException as e:
        _fail(f"Connection check failed: {e}")
    finally:
        if connector:
            connector.close()

    if report.health.status == HealthStatus.SUCCESS:
        typer.secho(
            f"✅ {report.health.db_alias}: Connection Successful ({report.health.latency_ms}ms)",
            fg=typer.colors.GREEN,
        )
        if report.schema_info is not None:
            typer.echo(f"   Found {len(report.schema_info)} tables in {database}.")
            for table, schema in report.schema_info.items():
                typer.echo(f"     - {table}: {len(schema.columns)} columns")
    else:
        _fail(f"{report.health.db_alias}: Connection Failed. Error: {report.health.error_message}")

@app.command()
def tables(
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
):
    """List tables of a database."""
    connector: Optional[ClickHouseConnector] = None
    try:
        _, connector, database = _resolve(config, alias, host, port, user, password, database)
        names = InspectorFacade(connector).crawler.list_tables(database)
    except (ChbridgeException, PermissionError) as e:
        _fail(f"Failed to fetch tables: {e}")
    finally:
        if connector:
            connector.close()

    for name in names:
        typer.echo(name)

@app.command()
def columns(
    table: str = typer.Option(..., "--table", "-t", help="Table to describe"),
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
):
    """List the columns of a table."""
    connector: Optional[ClickHouseConnector] = None
    try:
        _, connector, database = _resolve(config, alias, host, port, user, password, database)
        schema = InspectorFacade(connector).crawler.describe(table, database)
    except (ChbridgeException, PermissionError) as e:
        _fail(f"Failed to fetch columns: {e}")
    finally:
        if connector:
            connector.close()

    for col in schema.columns:
        typer.echo(f"{col.name}\t{col.data_type}")

@app.command()
def preview(
    columns: str = typer.Option(..., "--columns", help="Comma-separated column list"),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Source table"),
    join_tables: Optional[str] = typer.Option(None, "--join-tables", help="Two comma-separated tables to join"),
    join_condition: Optional[str] = typer.Option(None, "--join-condition", help="Join predicate, e.g. 't1.id = t2.id'"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Rows to show (default from config)"),
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
):
    """Show a small sample of the rows an export would produce."""
    connector: Optional[ClickHouseConnector] = None
    try:
        app_config, connector, database = _resolve(config, alias, host, port, user, password, database)
        spec = _spec(database, table, columns, join_tables, join_condition)
        rows = TransferPipeline(connector, app_config).preview(spec, limit)
    except (ChbridgeException, PermissionError) as e:
        _fail(f"Failed to preview data: {e}")
    finally:
        if connector:
            connector.close()

    typer.echo("\t".join(spec.columns))
    for row in rows:
        typer.echo("\t".join("" if v is None else str(v) for v in row.values()))

@app.command()
def export(
    columns: str = typer.Option(..., "--columns", help="Comma-separated column list"),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Source table"),
    join_tables: Optional[str] = typer.Option(None, "--join-tables", help="Two comma-separated tables to join"),
    join_condition: Optional[str] = typer.Option(None, "--join-condition", help="Join predicate"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Directory for the CSV (default from config)"),
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
):
    """
    Export a table (or a two-table join) to a CSV file with a header row.
    """
    connector: Optional[ClickHouseConnector] = None
    try:
        app_config, connector, database = _resolve(config, alias, host, port, user, password, database)
        spec = _spec(database, table, columns, join_tables, join_condition)
        artifact = TransferPipeline(connector, app_config).export(spec, output_dir)
    except (ChbridgeException, PermissionError) as e:
        _fail(f"Failed to export data: {e}")
    finally:
        if connector:
            connector.close()

    typer.secho(f"✅ Export complete: {artifact.filename}", fg=typer.colors.GREEN)
    typer.echo(f"   Rows: {artifact.row_count}")
    typer.echo(f"   Path: {artifact.path}")

@app.command("import")
def import_(
    file: Path = typer.Option(..., "--file", "-f", help="Delimited file (or .parquet) to load"),
    columns: str = typer.Option(..., "--columns", help="Comma-separated columns to load"),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Target table (default from config)"),
    delimiter: str = typer.Option(",", "--delimiter", help="Field delimiter, '\\t' for tab"),
    config: Optional[Path] = ConfigOpt,
    alias: Optional[str] = AliasOpt,
    host: Optional[str] = HostOpt,
    port: int = PortOpt,
    user: str = UserOpt,
    password: Optional[str] = PasswordOpt,
    database: Optional[str] = DatabaseOpt,
):
    """
    Stream a delimited file into a table as batched inserts.
    """
    if delimiter == "\\t":
        delimiter = "\t"

    connector: Optional[ClickHouseConnector] = None
    try:
        app_config, connector, database = _resolve(config, alias, host, port, user, password, database)
        spec = TransferSpec(database=database, table=table, columns=_split(columns))
        result = TransferPipeline(connector, app_config).import_file(file, spec, delimiter)
    except (ChbridgeException, PermissionError) as e:
        _fail(f"Failed to import data: {e}")
    finally:
        if connector:
            connector.close()

    if not result.succeeded:
        _fail(result.message)
    typer.secho(f"✅ {result.message}", fg=typer.colors.GREEN)

if __name__ == "__main__":
    app()
